import numpy as np
import pytest

from charmlp.autograd import CompGraph, Node
from charmlp.shaping import (
    average_columns,
    average_rows,
    concat_horizontally,
    concat_nodes,
    concat_vertically,
    cross_entropy_loss,
    get_column_node,
    get_node,
    get_row_node,
)


def make(values):
    arr = np.asarray(values, dtype=np.float64)
    node = Node(arr.shape[0], arr.shape[1])
    node.values[...] = arr
    return node


def test_average_columns_example():
    graph = CompGraph()
    out = average_columns(make([[1, 2], [3, 4]]), graph)
    assert out.shape == (1, 2)
    np.testing.assert_allclose(out.values, [[2, 3]])


def test_average_rows_example():
    graph = CompGraph()
    out = average_rows(make([[1, 2], [3, 4]]), graph)
    assert out.shape == (2, 1)
    np.testing.assert_allclose(out.values, [[1.5], [3.5]])


def test_average_columns_gradient_spreads_evenly():
    graph = CompGraph()
    source = make([[1, 2], [3, 4], [5, 6]])
    out = average_columns(source, graph)
    out.backwards(graph)
    np.testing.assert_allclose(source.gradients, np.full((3, 2), 1.0 / 3))


def test_average_rows_gradient_spreads_evenly():
    graph = CompGraph()
    source = make([[1, 2, 3, 4]])
    out = average_rows(source, graph)
    out.backwards(graph)
    np.testing.assert_allclose(source.gradients, np.full((1, 4), 0.25))


def test_cross_entropy_worked_example():
    graph = CompGraph()
    logits = make([[-1.14254, -0.727683], [0.660491, 1.19685]])
    expected = make([[1, 0], [0, 1]])
    out = cross_entropy_loss(logits, expected, graph)
    assert out.shape == (2, 1)
    np.testing.assert_allclose(out.values, [[0.921934], [0.460504]], rtol=1e-5)


def test_cross_entropy_shift_invariant():
    logits = [[0.3, -1.2, 2.0], [1.0, 1.0, -0.5]]
    expected = make([[0, 0, 1], [1, 0, 0]])
    first = cross_entropy_loss(make(logits), expected, CompGraph())
    shifted = cross_entropy_loss(make(np.asarray(logits) + 7.0), expected, CompGraph())
    np.testing.assert_allclose(first.values, shifted.values)
    assert np.all(first.values >= 0)


def test_cross_entropy_gradient_matches_finite_difference():
    base = np.array([[0.2, -0.4, 1.1], [0.5, 0.0, -0.3]])
    expected = make([[0, 1, 0], [0, 0, 1]])

    graph = CompGraph()
    logits = make(base)
    loss = cross_entropy_loss(logits, expected, graph)
    loss.backwards(graph)

    eps = 1e-6
    numeric = np.zeros_like(base)
    for idx in np.ndindex(base.shape):
        plus, minus = base.copy(), base.copy()
        plus[idx] += eps
        minus[idx] -= eps
        up = cross_entropy_loss(make(plus), expected, CompGraph()).values.sum()
        down = cross_entropy_loss(make(minus), expected, CompGraph()).values.sum()
        numeric[idx] = (up - down) / (2 * eps)
    np.testing.assert_allclose(logits.gradients, numeric, atol=1e-6)
    np.testing.assert_allclose(logits.gradients.sum(axis=1), [0.0, 0.0], atol=1e-12)


def test_cross_entropy_shape_mismatch():
    with pytest.raises(ValueError):
        cross_entropy_loss(make([[1, 2]]), make([[1, 0, 0]]), CompGraph())


def test_get_node_value_and_gradient():
    graph = CompGraph()
    source = make([[1, 2], [3, 4]])
    out = get_node(source, 1, 0, graph)
    assert out.shape == (1, 1)
    assert out.values[0, 0] == 3
    out.backwards(graph)
    np.testing.assert_allclose(source.gradients, [[0, 0], [1, 0]])


@pytest.mark.parametrize("row,col", [(2, 0), (0, 2), (-1, 0)])
def test_get_node_out_of_bounds(row, col):
    with pytest.raises(IndexError):
        get_node(make([[1, 2], [3, 4]]), row, col, CompGraph())


def test_get_column_node():
    graph = CompGraph()
    source = make([[1, 2], [3, 4]])
    out = get_column_node(source, 1, graph)
    np.testing.assert_allclose(out.values, [[2], [4]])
    out.backwards(graph)
    np.testing.assert_allclose(source.gradients, [[0, 1], [0, 1]])


def test_get_row_node():
    graph = CompGraph()
    source = make([[1, 2], [3, 4]])
    out = get_row_node(source, 0, graph)
    np.testing.assert_allclose(out.values, [[1, 2]])
    out.backwards(graph)
    np.testing.assert_allclose(source.gradients, [[1, 1], [0, 0]])


def test_get_row_and_column_out_of_bounds():
    with pytest.raises(IndexError):
        get_row_node(make([[1, 2]]), 1, CompGraph())
    with pytest.raises(IndexError):
        get_column_node(make([[1, 2]]), 2, CompGraph())


def test_concat_horizontally_example():
    graph = CompGraph()
    out = concat_horizontally(make([[1, 2], [3, 4]]), make([[5, 6], [7, 8]]), graph)
    np.testing.assert_allclose(out.values, [[1, 2, 5, 6], [3, 4, 7, 8]])


def test_concat_vertically_example():
    graph = CompGraph()
    out = concat_vertically(make([[1, 2], [3, 4]]), make([[5, 6], [7, 8]]), graph)
    np.testing.assert_allclose(out.values, [[1, 2], [3, 4], [5, 6], [7, 8]])


def test_concat_horizontally_routes_gradients():
    graph = CompGraph()
    left = make([[1], [2]])
    right = make([[3, 4, 5], [6, 7, 8]])
    out = concat_horizontally(left, right, graph)
    out.gradients[...] = np.arange(8).reshape(2, 4)
    graph.backwards()
    np.testing.assert_allclose(left.gradients, out.gradients[:, :1])
    np.testing.assert_allclose(right.gradients, out.gradients[:, 1:])


def test_concat_vertically_routes_gradients():
    graph = CompGraph()
    top = make([[1, 2]])
    bottom = make([[3, 4], [5, 6]])
    out = concat_vertically(top, bottom, graph)
    out.gradients[...] = np.arange(6).reshape(3, 2)
    graph.backwards()
    np.testing.assert_allclose(top.gradients, out.gradients[:1])
    np.testing.assert_allclose(bottom.gradients, out.gradients[1:])


def test_concat_mismatch_errors():
    with pytest.raises(ValueError):
        concat_horizontally(make([[1, 2]]), make([[1], [2]]), CompGraph())
    with pytest.raises(ValueError):
        concat_vertically(make([[1, 2]]), make([[1, 2, 3]]), CompGraph())


def test_concat_nodes_both_directions():
    parts = [[[1, 2]], [[3, 4]], [[5, 6]]]
    vertical = concat_nodes([make(p) for p in parts], CompGraph())
    np.testing.assert_allclose(vertical.values, np.vstack(parts))
    horizontal = concat_nodes([make(p) for p in parts], CompGraph(), horizontal=True)
    np.testing.assert_allclose(horizontal.values, np.hstack(parts))


def test_concat_nodes_single_returns_same_node():
    node = make([[1, 2]])
    assert concat_nodes([node], CompGraph()) is node


def test_concat_nodes_empty():
    with pytest.raises(ValueError):
        concat_nodes([], CompGraph())