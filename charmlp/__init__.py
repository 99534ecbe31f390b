"""Reverse-mode autograd on NumPy and a character-level MLP name generator."""

__version__ = "0.1.0"