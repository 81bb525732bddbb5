"""
Forward- and reverse-mode differentiation.

Gradients are checked against central finite differences of the evaluated
graph, and the two modes are checked against each other.
"""
import zlib

import numpy as np
import pytest

from aad_graph import (
    OpKind, MatMulMode, BackwardGrad, ForwardGrad, differentiate_reverse, differentiate_forward,
    grad, grads, jvp, compute, Tensor,
    constant, scalar, variable, add, mul, sub, div, matmul, reshape, slice_, index,
    merge, merge_flat, extend, one, sum_, select, assign, debug_assign,
    sin, cos, relu, abs_, neg, sigmoid, scale, shift, powf, step, sign,
    ReentrantDerivation, ShapeMismatch,
)
from aad_graph.ops import Assign

EPS = 1e-6


def _values(rng, shape, positive=False):
    # keep away from 0 so that ReLU/Abs kinks and 1/x poles are not crossed
    x = np.asarray(rng.uniform(0.3, 1.5, size=shape))
    if not positive:
        x = x * rng.choice([-1.0, 1.0], size=shape)
    return x


def _loss(f, x, rng):
    """Scalar root: weighted sum of f(x), weights random and fixed."""
    y = f(x)
    w = constant(y.shape, rng.normal(size=y.shape))
    return sum_(y * w)


def _finite_difference(root, x, xv):
    g = np.zeros(xv.size)
    flat = xv.reshape(-1)
    for i in range(flat.size):
        up, down = flat.copy(), flat.copy()
        up[i] += EPS
        down[i] -= EPS
        fu = compute(root, [(x, up)])[0]
        fd = compute(root, [(x, down)])[0]
        g[i] = (fu - fd) / (2 * EPS)
    return g


B34 = np.linspace(-1.0, 1.0, 12)


def _shape(rng, ndim=None, low=1):
    """Random shape with dims in [low, 4]; rank 0 to 2 unless given."""
    if ndim is None:
        ndim = int(rng.integers(0, 3))
    return tuple(int(d) for d in rng.integers(low, 5, size=ndim))


def ANY(rng):
    return _shape(rng)


def ROWS(rng):
    return _shape(rng, int(rng.integers(1, 3)))


def MATRIX(rng):
    return _shape(rng, 2)


def TALL(rng):
    return _shape(rng, 2, low=2)


def fixed(shape):
    return lambda rng: shape


# name -> (draws the input shape from the case rng, f, positive inputs only)
CASES = {
    "sin":       (ANY, lambda x: sin(x), False),
    "cos":       (ANY, lambda x: cos(x), False),
    "relu":      (ANY, lambda x: relu(x), False),
    "abs":       (ANY, lambda x: abs_(x), False),
    "neg":       (ANY, lambda x: neg(x), False),
    "sigmoid":   (ANY, lambda x: sigmoid(x), False),
    "scale":     (ANY, lambda x: scale(x, 2.5), False),
    "shift":     (ANY, lambda x: shift(x, -1.0), False),
    "pow0":      (ANY, lambda x: powf(x, 0.0) * x, False),
    "pow1":      (ANY, lambda x: powf(x, 1.0), False),
    "pow2":      (ANY, lambda x: powf(x, 2.0), False),
    "pow3":      (ANY, lambda x: x ** 3, False),
    "pow_half":  (ANY, lambda x: powf(x, 0.5), True),
    "recip":     (ANY, lambda x: 2.0 / x, True),
    "step_sign": (ANY, lambda x: x * step(x) + sign(x), False),
    "add3":      (ANY, lambda x: add(x, x * x, sin(x)), False),
    "mul3":      (ANY, lambda x: mul(x, cos(x), x + 1.0), False),
    "sub":       (ANY, lambda x: sub(x, x * x), False),
    "div":       (ANY, lambda x: div(sin(x), x * x + 1.0), False),
    "rsub":      (ANY, lambda x: 3.0 - x * x, False),
    "broadcast": (ANY, lambda x: x * sum_(x) + sum_(x * x), False),
    "reshape":   (ANY, lambda x: reshape(x * x, x.shape[::-1]), False),
    "slice":     (TALL, lambda x: slice_(x * x, 1, x.shape[0] - 1), False),
    "index":     (MATRIX, lambda x: index(sin(x), [d - 1 for d in x.shape]), False),
    "merge":     (ROWS, lambda x: merge([x, x * x]), False),
    "merge_pad": (ANY, lambda x: merge_flat(2, [x], (x.size + 4,)), False),
    "extend":    (ANY, lambda x: extend(sum_(x * x), (2, 3)), False),
    "select_p":  (ANY, lambda x: select(scalar(1.0), sin(x), x * x), False),
    "select_n":  (ANY, lambda x: select(scalar(-1.0), sin(x), x * x), False),
    "assign":    (ANY, lambda x: assign(x * x), False),
    "debug":     (ANY, lambda x: debug_assign("x^2", x * x), False),
    "matmul_NN": (fixed((2, 3)), lambda x: matmul(x, constant((3, 4), B34), MatMulMode.NN), False),
    "matmul_NT": (fixed((2, 3)), lambda x: matmul(x, constant((4, 3), B34), MatMulMode.NT), False),
    "matmul_TN": (fixed((2, 3)), lambda x: matmul(x, constant((2, 6), B34), MatMulMode.TN), False),
    "matmul_TT": (fixed((2, 3)), lambda x: matmul(x, constant((6, 2), B34), MatMulMode.TT), False),
    "matmul_rNN": (fixed((3, 4)), lambda x: matmul(constant((2, 3), B34[:6]), x, MatMulMode.NN), False),
    "matmul_rNT": (fixed((4, 3)), lambda x: matmul(constant((2, 3), B34[:6]), x, MatMulMode.NT), False),
    "matmul_rTN": (fixed((2, 4)), lambda x: matmul(constant((2, 3), B34[:6]), x, MatMulMode.TN), False),
    "matmul_rTT": (fixed((4, 2)), lambda x: matmul(constant((2, 3), B34[:6]), x, MatMulMode.TT), False),
    "matmul_xx": (fixed((3, 3)), lambda x: matmul(x, x), False),
}


@pytest.mark.parametrize("name", sorted(CASES))
def test_reverse_matches_finite_differences(name):
    shape_of, f, positive = CASES[name]
    rng = np.random.default_rng(zlib.crc32(name.encode()))
    shape = shape_of(rng)
    x = variable(shape)
    xv = _values(rng, shape, positive)
    root = _loss(f, x, rng)

    g = compute(grad(root, x), [(x, xv)])
    np.testing.assert_allclose(g, _finite_difference(root, x, xv), rtol=1e-5, atol=1e-6)


@pytest.mark.parametrize("name", sorted(CASES))
def test_forward_agrees_with_reverse(name):
    shape_of, f, positive = CASES[name]
    rng = np.random.default_rng(zlib.crc32(name.encode()))
    shape = shape_of(rng)
    x = variable(shape)
    xv = _values(rng, shape, positive)
    v = np.asarray(rng.normal(size=shape))
    root = _loss(f, x, rng)

    g = compute(grad(root, x), [(x, xv)])
    d = compute(jvp(root, [(x, constant(shape, v))]), [(x, xv)])
    np.testing.assert_allclose(d[0], g @ v.reshape(-1), rtol=1e-9, atol=1e-12)


def test_forward_agrees_with_reverse_for_several_seeds():
    rng = np.random.default_rng(7)
    x = variable((3,))
    y = variable((3,))
    root = sum_(sin(x) * y + x * x / (y * y + 1.0))
    xv, yv = rng.normal(size=3), rng.normal(size=3)
    vx, vy = rng.normal(size=3), rng.normal(size=3)
    binds = [(x, xv), (y, yv)]

    gx, gy = (compute(g, binds) for g in grads(root, [x, y]))
    d = compute(jvp(root, [(x, constant((3,), vx)), (y, constant((3,), vy))]), binds)
    np.testing.assert_allclose(d[0], gx @ vx + gy @ vy, rtol=1e-9)


# ----------------------------- concrete scenarios ----------------------------- #
def test_gradient_of_a_plus_a():
    a = scalar(1.0)
    b = a + a
    assert compute(grad(b, a)).tolist() == [2.0]


def test_gradient_of_division():
    a = scalar(1.0)
    b = scalar(2.0)
    y = a / b
    assert compute(grad(y, a)).tolist() == [0.5]
    assert compute(grad(y, b)).tolist() == [-0.25]


def test_gradient_of_product_and_difference():
    a = scalar(1.0)
    b = scalar(2.0)
    assert compute(grad(a * b, a)).tolist() == [2.0]
    assert compute(grad(a * b, b)).tolist() == [1.0]
    assert compute(grad(a - b, a)).tolist() == [1.0]
    assert compute(grad(a - b, b)).tolist() == [-1.0]


def test_matrix_mul_gradients():
    a = constant((2, 3), np.ones(6))
    b = constant((3, 4), np.ones(12))
    cot = constant((2, 4), np.ones(8))
    y = matmul(a, b)

    table = differentiate_reverse(y, cot)
    expect_a = compute(matmul(cot, b, MatMulMode.NT))   # cot @ B^T
    expect_b = compute(matmul(a, cot, MatMulMode.TN))   # A^T @ cot
    np.testing.assert_array_equal(compute(table[a]), expect_a)
    np.testing.assert_array_equal(compute(table[b]), expect_b)
    np.testing.assert_array_equal(expect_a, np.full(6, 4.0))
    np.testing.assert_array_equal(expect_b, np.full(12, 2.0))


def test_matrix_mul_gradients_with_values():
    a = constant((2, 3), [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    b = constant((3, 4), np.arange(1.0, 13.0))
    y = a.matmul(b)
    np.testing.assert_array_equal(compute(y), [38, 44, 50, 56, 83, 98, 113, 128])
    ga = compute(grad(y, a)).reshape(2, 3)
    gb = compute(grad(y, b)).reshape(3, 4)
    A, B, G = np.arange(1.0, 7.0).reshape(2, 3), np.arange(1.0, 13.0).reshape(3, 4), np.ones((2, 4))
    np.testing.assert_array_equal(ga, G @ B.T)
    np.testing.assert_array_equal(gb, A.T @ G)


def test_slice_row_gradient():
    a = constant((2, 3), [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    b = a.get([1])
    assert compute(grad(b, a)).tolist() == [0.0, 0.0, 0.0, 1.0, 1.0, 1.0]


def test_sum_scale_gradient_is_ones():
    a = constant((2, 3), np.arange(6.0))
    assert compute(grad(sum_(a), a)).tolist() == [1.0] * 6


def test_select_routes_cotangent_by_condition():
    c = variable(())
    p = constant((2,), [1.0, 2.0])
    n = constant((2,), [3.0, 4.0])
    y = select(c, p, n)
    gp, gn = grads(y, [p, n])
    assert compute(gp, [(c, [1.0])]).tolist() == [1.0, 1.0]
    assert compute(gn, [(c, [1.0])]).tolist() == [0.0, 0.0]
    # the same gradient graph, decided again under other bindings
    assert compute(gp, [(c, [-1.0])]).tolist() == [0.0, 0.0]
    assert compute(gn, [(c, [0.0])]).tolist() == [1.0, 1.0]


# ------------------------------- reverse engine ------------------------------- #
def test_reverse_result_holds_assign_nodes_for_visited_nodes_only():
    a = scalar(1.0)
    b = scalar(2.0)
    unused = scalar(3.0)
    y = a * b + a
    table = differentiate_reverse(y)
    assert y in table and a in table and b in table
    assert unused not in table
    assert all(g.kind is OpKind.ASSIGN for g in table.values())
    assert compute(table[a]).tolist() == [3.0]
    assert compute(grad(y, unused)).tolist() == [0.0]


def test_reverse_processes_parents_before_children():
    ctx = BackwardGrad()
    x = scalar(0.5)
    u = sin(x)
    v = u * u + u           # u feeds two parents, one of them twice
    ctx.append(v, one(()))
    table = ctx.result()
    order = [node.key for node in table]
    assert order == sorted(order, reverse=True)
    expected = (2 * np.sin(0.5) + 1) * np.cos(0.5)
    np.testing.assert_allclose(compute(table[x]), [expected])


def test_reverse_seed_shape_is_checked():
    a = constant((2,), [1.0, 2.0])
    with pytest.raises(ShapeMismatch):
        differentiate_reverse(a, scalar(1.0))


def test_reverse_rejects_contribution_to_finished_node():
    class SelfFeeding(Assign):
        def backward_grad(self, node, g, ctx):
            ctx.append(node, g)

    x = scalar(1.0)
    y = Tensor(x.shape, (x,), SelfFeeding())
    with pytest.raises(ReentrantDerivation):
        differentiate_reverse(y)


def test_reverse_with_custom_seed_scales_gradient():
    x = variable((2,))
    y = x * x
    g = differentiate_reverse(y, constant((2,), [1.0, 10.0]))[x]
    assert compute(g, [(x, [3.0, 4.0])]).tolist() == [6.0, 80.0]


# ------------------------------- forward engine ------------------------------- #
def test_forward_unseeded_leaves_have_zero_tangent():
    x = variable((2,))
    c = constant((2,), [1.0, 2.0])
    ctx = differentiate_forward([(x, one((2,)))])
    assert compute(ctx.compute(c)).tolist() == [0.0, 0.0]
    assert compute(ctx.compute(x * c), [(x, [5.0, 5.0])]).tolist() == [1.0, 2.0]


def test_forward_sums_repeated_seeds():
    x = variable((2,))
    y = x * 2.0
    ctx = ForwardGrad([(x, one((2,))), (x, one((2,)))])
    assert compute(ctx.compute(y), [(x, [0.0, 0.0])]).tolist() == [4.0, 4.0]


def test_forward_seed_on_intermediate_node_adds_derived_tangent():
    x = variable(())
    y = x * 3.0
    z = sin(y)
    ctx = differentiate_forward([(y, one(())), (x, one(()))])
    binds = [(x, [0.2])]
    assert compute(ctx.compute(y), binds).tolist() == [4.0]
    np.testing.assert_allclose(compute(ctx.compute(z), binds), [4.0 * np.cos(0.6)])


def test_forward_memoizes_tangents():
    x = variable((2,))
    y = sin(x)
    ctx = differentiate_forward([(x, one((2,)))])
    assert ctx.compute(y) is ctx.compute(y)


def test_forward_seed_shape_is_checked():
    x = variable((2,))
    with pytest.raises(ShapeMismatch):
        differentiate_forward([(x, one((3,)))])


def test_forward_detects_reentrant_derivation():
    class Loop(Assign):
        def forward_grad(self, node, ctx):
            return ctx.compute(node)

    x = variable(())
    y = Tensor((), (x,), Loop())
    ctx = differentiate_forward([(x, one(()))])
    with pytest.raises(ReentrantDerivation):
        ctx.compute(y)


def test_gradient_graph_can_be_differentiated_again():
    x = variable(())
    y = x * x * x
    g = grad(y, x)            # 3x^2
    h = grad(g, x)            # 6x
    assert compute(h, [(x, [2.0])]).tolist() == [12.0]


# ------------------------------- deep graphs -------------------------------- #
DEPTH = 2500


def _sin_chain(x):
    y = x
    for _ in range(DEPTH):
        y = sin(y)
    return y


def _sin_chain_reference(x0):
    value, slope = x0, 1.0
    for _ in range(DEPTH):
        slope *= np.cos(value)
        value = np.sin(value)
    return value, slope


def test_deep_chain_evaluates_and_differentiates():
    x = variable(())
    y = _sin_chain(x)
    assert y.level == DEPTH
    value, slope = _sin_chain_reference(0.5)
    binds = [(x, [0.5])]

    np.testing.assert_allclose(compute(y, binds), [value], rtol=1e-12)
    np.testing.assert_allclose(compute(grad(y, x), binds), [slope], rtol=1e-10)
    np.testing.assert_allclose(compute(jvp(y, [(x, one(()))]), binds), [slope], rtol=1e-10)
