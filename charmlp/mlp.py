"""Character-level MLP built on a fresh dynamic graph for every step."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from charmlp.autograd import CompGraph, Node
from charmlp.names import softmax
from charmlp.shaping import (
    average_columns,
    concat_nodes,
    cross_entropy_loss,
    get_row_node,
)


@dataclass(frozen=True)
class Hyperparameters:
    """Sizes and training settings for the name model."""

    context_window: int = 4
    lookup_dimensions: int = 32
    hidden_layer_size: int = 2048
    num_examples: int = 64
    num_iter: int = 20000
    learning_rate: float = 0.01


class DynamicMLP:
    """Embedding, one tanh hidden layer and a softmax output over the alphabet."""

    def __init__(
        self,
        hyper: Hyperparameters,
        vocab_size: int,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.hyper = hyper
        self.vocab_size = vocab_size
        self.graph = CompGraph()
        inputs = hyper.context_window * hyper.lookup_dimensions
        self.lookup = Node(vocab_size, hyper.lookup_dimensions, True, True, rng)
        self.hidden_weights = Node(inputs, hyper.hidden_layer_size, True, True, rng)
        self.output_weights = Node(hyper.hidden_layer_size, vocab_size, True, True, rng)
        self.hidden_biases = Node(1, hyper.hidden_layer_size, parameter=True)
        self.output_biases = Node(1, vocab_size, parameter=True)
        # Small output weights keep the initial logits close to zero.
        self.output_weights.values *= 0.01
        self.parameters = [
            self.lookup,
            self.hidden_weights,
            self.output_weights,
            self.output_biases,
            self.hidden_biases,
        ]

    def _embed(self, context: Sequence[int]) -> Node:
        if len(context) != self.hyper.context_window:
            raise ValueError(
                f"Context has {len(context)} entries, expected {self.hyper.context_window}"
            )
        rows = (get_row_node(self.lookup, index, self.graph) for index in context)
        return concat_nodes(rows, self.graph, horizontal=True)

    def train_step(
        self, batch: Iterable[tuple[Sequence[int], int]], learning_rate: float
    ) -> float:
        """Run one gradient-descent step on ``batch`` and return its mean loss."""
        examples = list(batch)
        if not examples:
            raise ValueError("Cannot train on an empty batch")
        expected = Node(len(examples), self.vocab_size)
        for row, (_, target) in enumerate(examples):
            expected.values[row, target] = 1.0
        try:
            inputs = concat_nodes(
                (self._embed(context) for context, _ in examples), self.graph
            )
            hidden = (
                inputs.dot_product(self.hidden_weights, self.graph)
                .tanh(self.graph)
                .add(self.hidden_biases, self.graph)
            )
            logits = hidden.dot_product(self.output_weights, self.graph).add(
                self.output_biases, self.graph
            )
            losses = cross_entropy_loss(logits, expected, self.graph)
            loss = average_columns(losses, self.graph)
            loss.backwards(self.graph)
            for parameter in self.parameters:
                parameter.values -= learning_rate * parameter.gradients
            return float(loss.values[0, 0])
        finally:
            self.graph.cleanup()

    def next_probabilities(self, context: Sequence[int]) -> np.ndarray:
        """Probabilities of every character following ``context``."""
        try:
            inputs = self._embed(context)
            hidden = inputs.dot_product(self.hidden_weights, self.graph).add(
                self.hidden_biases, self.graph
            )
            logits = hidden.dot_product(self.output_weights, self.graph).add(
                self.output_biases, self.graph
            )
            return softmax(logits.values[0])
        finally:
            self.graph.cleanup()