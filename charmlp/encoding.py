"""Mapping between characters and their positions in an alphabet."""

from __future__ import annotations

from typing import Sequence


class EncodingError(ValueError):
    """A character or index has no place in the alphabet."""


def encode_char(char: str, alphabet: Sequence[str]) -> int:
    """Return the position of ``char`` in ``alphabet``."""
    for index, candidate in enumerate(alphabet):
        if candidate == char:
            return index
    raise EncodingError(f"char: {char!r} could not be encoded")


def decode_char(index: int, alphabet: Sequence[str]) -> str:
    """Return the character at ``index`` in ``alphabet``."""
    if not 0 <= index < len(alphabet):
        raise EncodingError(f"index {index} is outside the alphabet of size {len(alphabet)}")
    return alphabet[index]