"""Dynamic computational graph of matrix nodes with reverse-mode gradients."""

from __future__ import annotations

from typing import Callable

import numpy as np

BackwardFn = Callable[[], None]


class CompGraph:
    """Records nodes in creation order together with their backward functions."""

    def __init__(self) -> None:
        self.topological: list[tuple[Node, BackwardFn]] = []
        self.visited: set[Node] = set()

    def add_to_graph(self, node: Node, backward: BackwardFn) -> None:
        """Append a node and the function that pushes its gradient to its parents."""
        self.topological.append((node, backward))
        self.visited.add(node)

    def mark_visited(self, *args: Node) -> None:
        """Remember nodes whose gradients must be reset on cleanup."""
        self.visited.update(args)

    def backwards(self) -> None:
        """Run every backward function in reverse topological order."""
        for _, backward in reversed(self.topological):
            backward()

    def reset_visited_gradients(self) -> None:
        """Zero the gradients of every node the graph has touched."""
        for node in self.visited:
            node.gradients.fill(0.0)

    def cleanup(self) -> None:
        """Reset gradients and forget all recorded nodes and functions."""
        self.reset_visited_gradients()
        self.visited.clear()
        self.topological.clear()


class Node:
    """A two-dimensional matrix of values with a matching matrix of gradients."""

    def __init__(
        self,
        height: int,
        width: int,
        randomise: bool = False,
        parameter: bool = False,
        rng: np.random.Generator | None = None,
    ) -> None:
        if randomise:
            generator = rng if rng is not None else np.random.default_rng()
            self.values = generator.uniform(-1.0, 1.0, size=(height, width))
        else:
            self.values = np.zeros((height, width), dtype=np.float64)
        self.gradients = np.zeros((height, width), dtype=np.float64)
        self.parameter = parameter

    @classmethod
    def scalar(cls, value: float, parameter: bool = False) -> Node:
        """Create a 1 x 1 node holding a single value."""
        node = cls(1, 1, parameter=parameter)
        node.values[0, 0] = value
        return node

    @property
    def height(self) -> int:
        return self.values.shape[0]

    @property
    def width(self) -> int:
        return self.values.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    def backwards(self, graph: CompGraph) -> None:
        """Seed this node's gradients with ones and backpropagate through the graph."""
        self.gradients.fill(1.0)
        graph.backwards()

    def add(self, other: Node, graph: CompGraph) -> Node:
        """Element-wise sum; other may be 1 x 1, a single row or a single column."""
        oh, ow = other.shape
        if (oh, ow) == (1, 1):
            axes: tuple[int, ...] = (0, 1)
        elif oh == 1:
            if ow != self.width:
                raise ValueError(f"Cannot add 1 x {ow} row to {self.height} x {self.width} matrix")
            axes = (0,)
        elif ow == 1:
            if oh != self.height:
                raise ValueError(f"Cannot add {oh} x 1 column to {self.height} x {self.width} matrix")
            axes = (1,)
        else:
            if other.shape != self.shape:
                raise ValueError(
                    f"Cannot add {oh} x {ow} matrix to {self.height} x {self.width} matrix"
                )
            axes = ()

        out = Node(self.height, self.width)
        out.values[...] = self.values + other.values

        def backward() -> None:
            self.gradients += out.gradients
            other.gradients += np.sum(out.gradients, axis=axes, keepdims=True)

        graph.add_to_graph(out, backward)
        graph.mark_visited(self, other)
        return out

    def multiply(self, other: Node, graph: CompGraph) -> Node:
        """Product of two 1 x 1 nodes."""
        if self.values.size != 1 or other.values.size != 1:
            raise ValueError("Cannot multiply larger than 1 x 1 size Node")
        out = Node.scalar(float(self.values.flat[0] * other.values.flat[0]))

        def backward() -> None:
            grad = out.gradients[0, 0]
            self_value = self.values.flat[0]
            other_value = other.values.flat[0]
            self.gradients.flat[0] += other_value * grad
            other.gradients.flat[0] += self_value * grad

        graph.add_to_graph(out, backward)
        graph.mark_visited(self, other)
        return out

    def dot_product(
        self,
        other: Node,
        graph: CompGraph,
        transpose_first: bool = False,
        transpose_second: bool = False,
    ) -> Node:
        """Matrix product, optionally transposing either operand first."""
        first = self.values.T if transpose_first else self.values
        second = other.values.T if transpose_second else other.values
        if first.shape[1] != second.shape[0]:
            raise ValueError(
                f"Cannot dot product {first.shape[0]} x {first.shape[1]} matrix "
                f"with {second.shape[0]} x {second.shape[1]} matrix"
            )
        out = Node(first.shape[0], second.shape[1])
        out.values[...] = first @ second

        def backward() -> None:
            a = self.values.T if transpose_first else self.values
            b = other.values.T if transpose_second else other.values
            grad_a = out.gradients @ b.T
            grad_b = a.T @ out.gradients
            self.gradients[...] = grad_a.T if transpose_first else grad_a
            other.gradients[...] = grad_b.T if transpose_second else grad_b

        graph.add_to_graph(out, backward)
        graph.mark_visited(self, other)
        return out

    def tanh(self, graph: CompGraph) -> Node:
        """Element-wise hyperbolic tangent."""
        out = Node(self.height, self.width)
        out.values[...] = np.tanh(self.values)

        def backward() -> None:
            self.gradients[...] = (1.0 - out.values**2) * out.gradients

        graph.add_to_graph(out, backward)
        graph.mark_visited(self)
        return out

    def __str__(self) -> str:
        lines = [f"Node {self.height} x {self.width}:"]
        for row in self.values:
            lines.append("[ " + ", ".join(f"{v:g}" for v in row) + " ]")
        return "\n".join(lines)