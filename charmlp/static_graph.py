"""Pre-built computational graph whose operations write into reusable matrices."""

from __future__ import annotations

from typing import Callable

import numpy as np

PassFn = Callable[[], None]


class Matrix:
    """A resizable matrix of values and gradients backed by reusable storage.

    Shrinking keeps the existing storage and reinterprets it row by row;
    storage is only replaced when the new shape needs more room.
    """

    def __init__(
        self,
        height: int = 1,
        width: int = 1,
        randomise: bool = False,
        parameter: bool = False,
        rng: np.random.Generator | None = None,
    ) -> None:
        size = height * width
        if randomise:
            generator = rng if rng is not None else np.random.default_rng()
            self._value_buffer = generator.uniform(-1.0, 1.0, size=size)
        else:
            self._value_buffer = np.zeros(size, dtype=np.float64)
        self._grad_buffer = np.zeros(size, dtype=np.float64)
        self._height = height
        self._width = width
        self.parameter = parameter

    @property
    def height(self) -> int:
        return self._height

    @property
    def width(self) -> int:
        return self._width

    @property
    def shape(self) -> tuple[int, int]:
        return (self._height, self._width)

    @property
    def capacity(self) -> int:
        """Number of elements the current storage can hold."""
        return self._value_buffer.size

    @property
    def values(self) -> np.ndarray:
        return self._value_buffer[: self._height * self._width].reshape(self.shape)

    @values.setter
    def values(self, new: np.ndarray) -> None:
        self.values[...] = new

    @property
    def gradients(self) -> np.ndarray:
        return self._grad_buffer[: self._height * self._width].reshape(self.shape)

    @gradients.setter
    def gradients(self, new: np.ndarray) -> None:
        self.gradients[...] = new

    def reset_values(self, value: float = 0.0) -> None:
        """Set every value to ``value``."""
        self.values.fill(value)

    def reset_grads(self, value: float = 0.0) -> None:
        """Set every gradient to ``value``."""
        self.gradients.fill(value)

    def resize(self, height: int, width: int) -> None:
        """Change the shape, reallocating (and losing data) only when growing."""
        size = height * width
        if size > self.capacity:
            self._value_buffer = np.zeros(size, dtype=np.float64)
            self._grad_buffer = np.zeros(size, dtype=np.float64)
        self._height = height
        self._width = width

    def format(self, grad: bool = False) -> str:
        """Render the values, or the gradients when ``grad`` is true."""
        kind = "Gradients" if grad else "Values"
        data = self.gradients if grad else self.values
        lines = [f"Node {self.height} x {self.width} {kind}:"]
        for row in data:
            lines.append("[ " + ", ".join(f"{v:g}" for v in row) + " ]")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


class Graph:
    """Ordered forward and backward functions plus the matrices they touch."""

    def __init__(self) -> None:
        self.forward_functions: list[PassFn] = []
        self.backward_functions: list[PassFn] = []
        self.visited: set[Matrix] = set()

    def forward_pass(self) -> None:
        """Run every forward function in the order they were added."""
        for func in self.forward_functions:
            func()

    def backward_pass(self) -> None:
        """Run every backward function in reverse order."""
        for func in reversed(self.backward_functions):
            func()

    def add_forward(self, func: PassFn) -> None:
        self.forward_functions.append(func)

    def add_backward(self, func: PassFn) -> None:
        self.backward_functions.append(func)

    def reset_visited_gradients(self) -> None:
        """Zero the gradients of every matrix the graph has touched."""
        for matrix in self.visited:
            matrix.reset_grads()

    def _register(self, forward: PassFn, backward: PassFn, *matrices: Matrix) -> None:
        self.add_forward(forward)
        self.add_backward(backward)
        self.visited.update(matrices)


def _lookup_indexes(indexes: Matrix, table: Matrix) -> np.ndarray:
    idx = indexes.values.astype(np.intp)
    if idx.size and (idx.min() < 0 or idx.max() >= table.height):
        raise IndexError(f"Embedding index out of range for table of height {table.height}")
    return idx


def embed(graph: Graph, indexes: Matrix, table: Matrix, output: Matrix) -> None:
    """Replace each index with the matching row of ``table``, laid side by side.

    The output has shape ``indexes.height x (indexes.width * table.width)``.
    No gradients are computed for ``indexes``.
    """
    output.resize(indexes.height, indexes.width * table.width)

    def forward() -> None:
        output.resize(indexes.height, indexes.width * table.width)
        idx = _lookup_indexes(indexes, table)
        output.values[...] = table.values[idx].reshape(output.shape)

    def backward() -> None:
        idx = _lookup_indexes(indexes, table)
        grads = output.gradients.reshape(indexes.height, indexes.width, table.width)
        np.add.at(table.gradients, idx, grads)

    graph._register(forward, backward, table, output)


def average(graph: Graph, source: Matrix, output: Matrix) -> None:
    """Mean of every element of ``source`` into a ``1 x 1`` output."""
    output.resize(1, 1)

    def forward() -> None:
        output.resize(1, 1)
        output.values[0, 0] = source.values.sum() / source.values.size

    def backward() -> None:
        source.gradients += output.gradients[0, 0] / source.values.size

    graph._register(forward, backward, source, output)


def dot_product(graph: Graph, first: Matrix, second: Matrix, output: Matrix) -> None:
    """Matrix product of ``first`` and ``second``; ``output`` must be a third matrix."""
    if first.width != second.height:
        raise ValueError(
            f"Cannot dot product {first.height} x {first.width} matrix "
            f"with {second.height} x {second.width} matrix"
        )
    if output is first or output is second:
        raise ValueError("Output of a dot product cannot be one of its inputs")
    output.resize(first.height, second.width)

    def forward() -> None:
        output.resize(first.height, second.width)
        output.values[...] = first.values @ second.values

    def backward() -> None:
        first.gradients[...] = output.gradients @ second.values.T
        second.gradients[...] = first.values.T @ output.gradients

    graph._register(forward, backward, first, second, output)


def cross_entropy_loss(
    graph: Graph, source: Matrix, expected: Matrix, output: Matrix, softmax: Matrix
) -> None:
    """Row-wise softmax of ``source`` into ``softmax`` and per-row loss into ``output``.

    No gradients are computed for ``expected`` or ``softmax``.
    """
    if source.shape != expected.shape:
        raise ValueError(
            f"Cannot take cross entropy of {source.height} x {source.width} matrix "
            f"against {expected.height} x {expected.width} expected values"
        )
    if output is source:
        raise ValueError("Output of cross entropy cannot be its input")
    output.resize(source.height, 1)
    softmax.resize(source.height, source.width)

    def forward() -> None:
        output.resize(source.height, 1)
        softmax.resize(source.height, source.width)
        exps = np.exp(source.values - source.values.max(axis=1, keepdims=True))
        softmax.values[...] = exps / exps.sum(axis=1, keepdims=True)
        output.values[:, 0] = (expected.values * -np.log(softmax.values)).sum(axis=1)

    def backward() -> None:
        source.gradients += (softmax.values - expected.values) * output.gradients

    graph._register(forward, backward, source, output)


def add_vector(graph: Graph, matrix: Matrix, vector: Matrix, output: Matrix) -> None:
    """Add a ``1 x width`` vector to every row of ``matrix``; may run in place."""
    if vector.height != 1:
        raise ValueError(f"Vector must have a height of 1, not {vector.height}")
    if vector.width != matrix.width:
        raise ValueError(
            f"Cannot add 1 x {vector.width} vector to {matrix.height} x {matrix.width} matrix"
        )
    output.resize(matrix.height, matrix.width)

    def forward() -> None:
        output.resize(matrix.height, matrix.width)
        output.values[...] = matrix.values + vector.values[0]

    def backward() -> None:
        if matrix is not output:
            matrix.gradients += output.gradients
        vector.gradients[0] += output.gradients.sum(axis=0)

    graph._register(forward, backward, matrix, vector, output)


def tanh_operation(graph: Graph, source: Matrix, output: Matrix) -> None:
    """Element-wise hyperbolic tangent; may run in place."""
    output.resize(source.height, source.width)

    def forward() -> None:
        output.resize(source.height, source.width)
        output.values[...] = np.tanh(source.values)

    def backward() -> None:
        local = (1.0 - output.values**2) * output.gradients
        if source is output:
            source.gradients[...] = local
        else:
            source.gradients += local

    graph._register(forward, backward, source, output)