"""Loading name lists and turning them into character-level training examples."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

import numpy as np

from charmlp.encoding import encode_char

ALPHABET: tuple[str, ...] = tuple(".abcdefghijklmnopqrstuvwxyz")
"""The characters a name may contain; ``.`` marks both padding and end of name."""

END_INDEX = 0
"""Index of the end-of-name marker, also used to pad contexts."""

Example = tuple[tuple[int, ...], int]


def encode_words(lines: Iterable[str], alphabet: Sequence[str] = ALPHABET) -> list[list[int]]:
    """Encode each line as character indexes followed by the end marker."""
    end = encode_char(".", alphabet)
    return [[encode_char(char, alphabet) for char in line] + [end] for line in lines]


def load_words(path: str | Path, alphabet: Sequence[str] = ALPHABET) -> list[list[int]]:
    """Read one name per line from ``path`` and encode every line."""
    return encode_words(Path(path).read_text().splitlines(), alphabet)


def build_examples(words: Iterable[Sequence[int]], context_window: int) -> list[Example]:
    """Pair every character with the ``context_window`` characters before it.

    Positions before the start of a word are padded with the end marker.
    """
    examples: list[Example] = []
    for word in words:
        padded = [END_INDEX] * context_window + list(word)
        for position, target in enumerate(word):
            examples.append((tuple(padded[position : position + context_window]), target))
    return examples


def softmax(values: Iterable[float]) -> np.ndarray:
    """Numerically stable softmax of a one-dimensional sequence."""
    array = np.asarray(list(values), dtype=np.float64)
    exps = np.exp(array - array.max())
    return exps / exps.sum()


def pick_index(probabilities: Iterable[float], threshold: float) -> int:
    """First index whose cumulative probability reaches ``threshold``.

    If rounding keeps the total below the threshold, the last index is chosen.
    """
    total = 0.0
    last: int | None = None
    for index, probability in enumerate(probabilities):
        total += probability
        if total >= threshold:
            return index
        last = index
    if last is None:
        raise ValueError("Cannot pick from an empty distribution")
    return last