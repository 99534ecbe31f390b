"""Command that trains the name model and then samples new names from it."""

from __future__ import annotations

import argparse
import random
import sys
import time
from dataclasses import replace
from typing import Iterator, Protocol, Sequence

import numpy as np

from charmlp.encoding import EncodingError, decode_char
from charmlp.names import ALPHABET, END_INDEX, Example, build_examples, load_words, pick_index
from charmlp.static_mlp import STATIC_HYPERPARAMETERS, StaticMLP


class _Sampler(Protocol):
    def next_probabilities(self, context: Sequence[int]) -> Sequence[float]: ...


class _RandomSource(Protocol):
    def random(self) -> float: ...


def generate_names(
    model: _Sampler,
    alphabet: Sequence[str],
    context_window: int,
    rng: _RandomSource | np.random.Generator | random.Random,
    count: int | None = None,
) -> Iterator[str]:
    """Sample names one character at a time; ``count=None`` never stops."""
    produced = 0
    context = [END_INDEX] * context_window
    letters: list[str] = []
    while count is None or produced < count:
        choice = pick_index(model.next_probabilities(context), rng.random())
        if choice != END_INDEX:
            context = context[1:] + [choice]
            letters.append(decode_char(choice, alphabet))
        else:
            yield "".join(letters)
            produced += 1
            letters = []
            context = [END_INDEX] * context_window


def _train(
    model: StaticMLP,
    examples: Sequence[Example],
    rng: np.random.Generator,
    batch_size: int,
    num_iter: int,
    learning_rate: float,
) -> None:
    total_ms = 0.0
    for iteration in range(num_iter + 1):
        batch = [examples[int(rng.integers(len(examples)))] for _ in range(batch_size)]
        rate = learning_rate if iteration * 2 < num_iter else learning_rate * 0.5
        started = time.perf_counter()
        model.train_step(batch, rate)
        total_ms += (time.perf_counter() - started) * 1000.0
        if iteration % 100 == 0:
            print(f"{iteration}/{num_iter}")
            print(f"Average step time: {total_ms / (iteration + 1):g}")
            print(model.loss.format(), flush=True)


def main(argv: Sequence[str] | None = None) -> int:
    """Train on a file of names, then print sampled names."""
    defaults = STATIC_HYPERPARAMETERS
    parser = argparse.ArgumentParser(
        prog="charmlp", description="Train a character-level MLP on names and sample new ones."
    )
    parser.add_argument("names", nargs="?", default="names.txt", help="file with one name per line")
    parser.add_argument("--iterations", type=int, default=defaults.num_iter)
    parser.add_argument("--context", type=int, default=defaults.context_window)
    parser.add_argument("--embedding", type=int, default=defaults.lookup_dimensions)
    parser.add_argument("--hidden", type=int, default=defaults.hidden_layer_size)
    parser.add_argument("--batch", type=int, default=defaults.num_examples)
    parser.add_argument("--learning-rate", type=float, default=defaults.learning_rate)
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--count", type=int, default=None, help="names to sample (default: forever)")
    args = parser.parse_args(argv)

    hyper = replace(
        defaults,
        context_window=args.context,
        lookup_dimensions=args.embedding,
        hidden_layer_size=args.hidden,
        num_examples=args.batch,
        num_iter=args.iterations,
        learning_rate=args.learning_rate,
    )
    try:
        words = load_words(args.names, ALPHABET)
    except (OSError, EncodingError) as error:
        print(f"error: {error}", file=sys.stderr)
        return 1
    examples = build_examples(words, hyper.context_window)
    if not examples:
        print("error: no training examples", file=sys.stderr)
        return 1

    rng = np.random.default_rng(args.seed)
    model = StaticMLP(hyper, len(ALPHABET), hyper.num_examples, rng)
    _train(model, examples, rng, hyper.num_examples, hyper.num_iter, hyper.learning_rate)

    model.set_generation_mode()
    for name in generate_names(model, ALPHABET, hyper.context_window, rng, args.count):
        print(name, flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())