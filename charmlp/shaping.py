"""Reductions, slicing, concatenation and loss operations on graph nodes."""

from __future__ import annotations

from functools import reduce
from typing import Iterable

import numpy as np

from charmlp.autograd import CompGraph, Node


def cross_entropy_loss(node: Node, expected: Node, graph: CompGraph) -> Node:
    """Row-wise softmax followed by the negative log-likelihood of the expected rows.

    Returns a ``height x 1`` node holding one loss per row.
    """
    if node.shape != expected.shape:
        raise ValueError(
            f"Cannot take cross entropy of {node.height} x {node.width} matrix "
            f"against {expected.height} x {expected.width} expected values"
        )
    shifted = node.values - node.values.max(axis=1, keepdims=True)
    exps = np.exp(shifted)

    softmax = Node(node.height, node.width)
    softmax.values[...] = exps / exps.sum(axis=1, keepdims=True)

    out = Node(node.height, 1)
    out.values[:, 0] = -(np.log(softmax.values) * expected.values).sum(axis=1)

    def backward() -> None:
        node.gradients += (softmax.values - expected.values) * out.gradients

    graph.add_to_graph(out, backward)
    graph.mark_visited(node, softmax, expected)
    return out


def average_columns(node: Node, graph: CompGraph) -> Node:
    """Mean of each column, giving a ``1 x width`` node."""
    out = Node(1, node.width)
    out.values[...] = node.values.sum(axis=0, keepdims=True) * (1.0 / node.height)

    def backward() -> None:
        node.gradients += (1.0 / node.height) * out.gradients

    graph.add_to_graph(out, backward)
    graph.mark_visited(node)
    return out


def average_rows(node: Node, graph: CompGraph) -> Node:
    """Mean of each row, giving a ``height x 1`` node."""
    out = Node(node.height, 1)
    out.values[...] = node.values.sum(axis=1, keepdims=True) * (1.0 / node.width)

    def backward() -> None:
        node.gradients += (1.0 / node.width) * out.gradients

    graph.add_to_graph(out, backward)
    graph.mark_visited(node)
    return out


def _check_index(index: int, limit: int, what: str) -> None:
    if not 0 <= index < limit:
        raise IndexError(f"{what} {index} out of range for size {limit}")


def get_node(node: Node, row: int, col: int, graph: CompGraph) -> Node:
    """The single element at ``(row, col)`` as a ``1 x 1`` node."""
    _check_index(row, node.height, "Row")
    _check_index(col, node.width, "Column")
    out = Node.scalar(float(node.values[row, col]))

    def backward() -> None:
        node.gradients[row, col] += out.gradients[0, 0]

    graph.add_to_graph(out, backward)
    graph.mark_visited(node)
    return out


def get_column_node(node: Node, col: int, graph: CompGraph) -> Node:
    """Column ``col`` as a ``height x 1`` node."""
    _check_index(col, node.width, "Column")
    out = Node(node.height, 1)
    out.values[:, 0] = node.values[:, col]

    def backward() -> None:
        node.gradients[:, col] += out.gradients[:, 0]

    graph.add_to_graph(out, backward)
    graph.mark_visited(node)
    return out


def get_row_node(node: Node, row: int, graph: CompGraph) -> Node:
    """Row ``row`` as a ``1 x width`` node."""
    _check_index(row, node.height, "Row")
    out = Node(1, node.width)
    out.values[0, :] = node.values[row, :]

    def backward() -> None:
        node.gradients[row, :] += out.gradients[0, :]

    graph.add_to_graph(out, backward)
    graph.mark_visited(node)
    return out


def concat_horizontally(node: Node, other: Node, graph: CompGraph) -> Node:
    """Place ``other`` to the right of ``node``; heights must match."""
    if node.height != other.height:
        raise ValueError(
            f"Cannot concat horizontally: heights {node.height} and {other.height} differ"
        )
    split = node.width
    out = Node(node.height, node.width + other.width)
    out.values[...] = np.hstack((node.values, other.values))

    def backward() -> None:
        node.gradients += out.gradients[:, :split]
        other.gradients += out.gradients[:, split:]

    graph.add_to_graph(out, backward)
    graph.mark_visited(node, other)
    return out


def concat_vertically(node: Node, other: Node, graph: CompGraph) -> Node:
    """Place ``other`` below ``node``; widths must match."""
    if node.width != other.width:
        raise ValueError(
            f"Cannot concat vertically: widths {node.width} and {other.width} differ"
        )
    split = node.height
    out = Node(node.height + other.height, node.width)
    out.values[...] = np.vstack((node.values, other.values))

    def backward() -> None:
        node.gradients += out.gradients[:split, :]
        other.gradients += out.gradients[split:, :]

    graph.add_to_graph(out, backward)
    graph.mark_visited(node, other)
    return out


def concat_nodes(nodes: Iterable[Node], graph: CompGraph, horizontal: bool = False) -> Node:
    """Concatenate nodes pairwise from left to right, vertically unless ``horizontal``."""
    items = list(nodes)
    if not items:
        raise ValueError("Cannot concat an empty sequence of nodes")
    join = concat_horizontally if horizontal else concat_vertically
    return reduce(lambda acc, nxt: join(acc, nxt, graph), items[1:], items[0])