"""Character-level MLP whose graph is built once and replayed every step."""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from charmlp.mlp import Hyperparameters
from charmlp.static_graph import (
    Graph,
    Matrix,
    add_vector,
    average,
    cross_entropy_loss,
    dot_product,
    embed,
    tanh_operation,
)

STATIC_HYPERPARAMETERS = Hyperparameters(
    hidden_layer_size=128, num_examples=32, num_iter=10000
)


class StaticMLP:
    """Embedding, one tanh hidden layer and softmax output on a pre-built graph."""

    def __init__(
        self,
        hyper: Hyperparameters,
        vocab_size: int,
        batch_size: int,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.hyper = hyper
        self.vocab_size = vocab_size
        self.graph = Graph()
        inputs = hyper.lookup_dimensions * hyper.context_window
        self.lookup = Matrix(vocab_size, hyper.lookup_dimensions, True, True, rng)
        self.hidden_weights = Matrix(inputs, hyper.hidden_layer_size, True, True, rng)
        self.output_weights = Matrix(hyper.hidden_layer_size, vocab_size, True, False, rng)
        self.hidden_biases = Matrix(1, hyper.hidden_layer_size, parameter=True)
        self.output_biases = Matrix(1, vocab_size, parameter=True)
        self.parameters = [
            self.lookup,
            self.hidden_weights,
            self.output_weights,
            self.hidden_biases,
            self.output_biases,
        ]
        weights = self.output_weights.values
        weights *= 0.01

        self.indexes = Matrix(batch_size, hyper.context_window)
        self.expected = Matrix(batch_size, vocab_size)
        self.embedded = Matrix()
        self.hidden = Matrix()
        self.logits = Matrix()
        self.softmax = Matrix()
        self.log_losses = Matrix()
        self.loss = Matrix()

        embed(self.graph, self.indexes, self.lookup, self.embedded)
        dot_product(self.graph, self.embedded, self.hidden_weights, self.hidden)
        add_vector(self.graph, self.hidden, self.hidden_biases, self.hidden)
        tanh_operation(self.graph, self.hidden, self.hidden)
        dot_product(self.graph, self.hidden, self.output_weights, self.logits)
        add_vector(self.graph, self.logits, self.output_biases, self.logits)
        cross_entropy_loss(
            self.graph, self.logits, self.expected, self.log_losses, self.softmax
        )
        average(self.graph, self.log_losses, self.loss)

    def _check_context(self, context: Sequence[int]) -> None:
        if len(context) != self.hyper.context_window:
            raise ValueError(
                f"Context has {len(context)} entries, expected {self.hyper.context_window}"
            )

    def train_step(
        self, batch: Iterable[tuple[Sequence[int], int]], learning_rate: float
    ) -> float:
        """Run one gradient-descent step on ``batch`` and return its mean loss."""
        examples = list(batch)
        if len(examples) != self.indexes.height:
            raise ValueError(
                f"Batch has {len(examples)} examples, expected {self.indexes.height}"
            )
        self.indexes.reset_values()
        self.expected.reset_values()
        for row, (context, target) in enumerate(examples):
            self._check_context(context)
            self.indexes.values[row] = context
            self.expected.values[row, target] = 1.0

        self.graph.forward_pass()
        self.loss.gradients[0, 0] = 1.0
        self.graph.backward_pass()
        for parameter in self.parameters:
            values = parameter.values
            values -= learning_rate * parameter.gradients
        result = float(self.loss.values[0, 0])

        self.graph.reset_visited_gradients()
        self.indexes.reset_values()
        self.expected.reset_values()
        return result

    def set_generation_mode(self) -> None:
        """Shrink the graph's input to a single context for sampling."""
        self.indexes.resize(1, self.indexes.width)
        self.expected.resize(1, self.expected.width)
        self.indexes.reset_values()
        self.expected.reset_values()

    def next_probabilities(self, context: Sequence[int]) -> np.ndarray:
        """Probabilities of every character following ``context``."""
        if self.indexes.height != 1:
            raise RuntimeError("Call set_generation_mode before sampling")
        self._check_context(context)
        self.indexes.values[0] = context
        with np.errstate(divide="ignore", invalid="ignore"):
            self.graph.forward_pass()
        return self.softmax.values[0].copy()