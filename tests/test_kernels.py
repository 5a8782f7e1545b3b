"""Gradient checks of the reference kernels against central differences."""
import numpy as np
import pytest

from simplenn import KernelError
from simplenn.kernels import lookup
from simplenn.helpers.Backend import backend
from simplenn import layers as L

from conftest import numeric_grad, away_from_zero


def check_input_gradient(layer, x, rng, rtol=1e-4, atol=1e-6):
    forward, backward = lookup(layer)
    y, aux = forward(x, layer)
    weights = rng.standard_normal(np.shape(y))

    def objective():
        out, _ = forward(x, layer, aux)
        return float(np.sum(out * weights))

    dzdx, grads = backward(x, layer, weights, aux)
    np.testing.assert_allclose(dzdx, numeric_grad(objective, x), rtol=rtol, atol=atol)
    return y, grads


def check_parameter_gradients(layer, x, rng, rtol=1e-4, atol=1e-6):
    forward, backward = lookup(layer)
    y, _ = forward(x, layer)
    weights = rng.standard_normal(np.shape(y))

    def objective():
        out, _ = forward(x, layer)
        return float(np.sum(out * weights))

    _, grads = backward(x, layer, weights)
    assert len(grads) == len(layer.params())
    for p, g in zip(layer.params(), grads):
        np.testing.assert_allclose(g, numeric_grad(objective, p), rtol=rtol, atol=atol)


def test_conv_stride_and_padding(rng):
    layer = L.Conv2D(rng.standard_normal((4, 3, 3, 3)), rng.standard_normal(4), stride=2, pad=1)
    x = rng.standard_normal((2, 3, 5, 5))
    y, grads = check_input_gradient(layer, x, rng)
    assert y.shape == (2, 4, 3, 3)
    assert [g.shape for g in grads] == [(4, 3, 3, 3), (4,)]
    check_parameter_gradients(layer, x, rng)


def test_conv_matches_direct_correlation(rng):
    w = rng.standard_normal((2, 1, 2, 2))
    b = np.array([0.5, -1.0])
    layer = L.Conv2D(w, b)
    x = rng.standard_normal((1, 1, 3, 3))
    y, _ = lookup(layer)[0](x, layer)
    expected = np.empty((1, 2, 2, 2))
    for o in range(2):
        for i in range(2):
            for j in range(2):
                expected[0, o, i, j] = np.sum(x[0, 0, i:i + 2, j:j + 2] * w[o, 0]) + b[o]
    np.testing.assert_allclose(y, expected)


def test_conv_asymmetric_padding(rng):
    layer = L.Conv2D(rng.standard_normal((2, 2, 2, 3)), rng.standard_normal(2), pad=(0, 1, 2, 0))
    x = rng.standard_normal((1, 2, 4, 4))
    y, _ = check_input_gradient(layer, x, rng)
    assert y.shape == (1, 2, 4, 4)


def test_conv_channel_mismatch_raises(rng):
    layer = L.Conv2D(rng.standard_normal((2, 3, 3, 3)), np.zeros(2))
    with pytest.raises(KernelError):
        lookup(layer)[0](rng.standard_normal((1, 2, 5, 5)), layer)


def test_deconv(rng):
    layer = L.ConvTranspose2D(rng.standard_normal((3, 2, 3, 3)), rng.standard_normal(2), stride=2, crop=1)
    x = rng.standard_normal((2, 3, 3, 3))
    y, _ = check_input_gradient(layer, x, rng)
    assert y.shape == (2, 2, 5, 5)
    check_parameter_gradients(layer, x, rng)


@pytest.mark.parametrize(
    "pool,stride,pad,method,shape",
    [
        (2, 2, 0, "max", (2, 3, 4, 4)),
        (3, 2, 1, "max", (1, 2, 5, 5)),
        (3, 2, 1, "avg", (1, 2, 5, 5)),
        ((2, 3), 1, 0, "avg", (2, 1, 4, 5)),
    ],
)
def test_pooling(rng, pool, stride, pad, method, shape):
    layer = L.Pool2D(pool=pool, stride=stride, pad=pad, method=method)
    check_input_gradient(layer, rng.standard_normal(shape), rng)


def test_max_pool_values():
    layer = L.Pool2D(pool=2, stride=2)
    x = np.arange(16, dtype=np.float64).reshape(1, 1, 4, 4)
    y, _ = lookup(layer)[0](x, layer)
    np.testing.assert_array_equal(y[0, 0], [[5, 7], [13, 15]])


@pytest.mark.parametrize(
    "layer",
    [
        L.LocalResponseNorm(param=(5, 2.0, 0.1, 0.75)),
        L.LocalResponseNorm(param=(2, 1.0, 0.5, 0.5)),
        L.SpatialNorm(param=(3, 3, 0.5, 0.75)),
        L.SpatialNorm(param=(2, 3, 1.0, 0.5)),
        L.NormOffset(param=(0.3, 0.5)),
        L.LeakyReLU(leak=0.2),
        L.Sigmoid(),
        L.Tanh(),
        L.Softmax(),
        L.MulConst(2.5),
        L.Reshape((6, 4)),
    ],
    ids=lambda layer: layer.kind,
)
def test_parameter_free_kernels(rng, layer):
    x = away_from_zero(rng, (2, 6, 2, 2))
    check_input_gradient(layer, x, rng)


def test_relu_backward_from_output_matches_input(rng):
    layer = L.ReLU()
    forward, backward = lookup(layer)
    x = away_from_zero(rng, (3, 4))
    y, _ = forward(x, layer)
    dzdy = rng.standard_normal(y.shape)
    np.testing.assert_array_equal(backward(x, layer, dzdy)[0], backward(y, layer, dzdy)[0])


def test_batch_norm(rng):
    layer = L.BatchNorm((rng.uniform(0.5, 1.5, 3), rng.standard_normal(3)), epsilon=1e-5)
    x = rng.standard_normal((4, 3, 2, 2))
    y, _ = check_input_gradient(layer, x, rng)
    normalized = (y - layer.bias.reshape(1, 3, 1, 1)) / layer.gain.reshape(1, 3, 1, 1)
    np.testing.assert_allclose(normalized.mean(axis=(0, 2, 3)), 0, atol=1e-10)
    check_parameter_gradients(layer, x, rng)


def test_batch_norm_with_moments(rng):
    moments = np.stack([rng.standard_normal(3), rng.uniform(0.5, 2.0, 3)], axis=1)
    layer = L.BatchNorm((rng.uniform(0.5, 1.5, 3), rng.standard_normal(3)), moments=moments)
    x = rng.standard_normal((2, 3))
    y, _ = check_input_gradient(layer, x, rng)
    expected = layer.gain * (x - moments[:, 0]) / moments[:, 1] + layer.bias
    np.testing.assert_allclose(y, expected)
    check_parameter_gradients(layer, x, rng)


def test_dot(rng):
    layer = L.Dot(rng.standard_normal((5, 12)))
    x = rng.standard_normal((2, 3, 2, 2))
    y, grads = check_input_gradient(layer, x, rng)
    assert y.shape == (2, 5)
    assert grads[0].shape == (5, 12)
    check_parameter_gradients(layer, x, rng)


def test_dot_feature_mismatch_raises(rng):
    layer = L.Dot(rng.standard_normal((5, 4)))
    with pytest.raises(KernelError):
        lookup(layer)[0](rng.standard_normal((2, 3)), layer)


def test_dropout_scales_kept_units(rng):
    layer = L.Dropout(rate=0.5)
    forward, backward = lookup(layer)
    x = np.ones((200, 10))
    y, mask = forward(x, layer)
    assert set(np.unique(mask)) <= {0.0, 2.0}
    np.testing.assert_array_equal(y, mask)
    np.testing.assert_array_equal(backward(x, layer, np.ones_like(x), mask)[0], mask)


def probabilities(rng, shape):
    p = rng.uniform(0.1, 1.0, size=shape)
    return p / p.sum(axis=1, keepdims=True)


@pytest.mark.parametrize(
    "make_layer,make_x",
    [
        (lambda r: L.LogLoss(r.integers(0, 4, size=(3,))), lambda r: probabilities(r, (3, 4))),
        (lambda r: L.LogLoss(r.integers(0, 4, size=(2, 2, 2))), lambda r: probabilities(r, (2, 4, 2, 2))),
        (lambda r: L.SoftmaxLogLoss(r.integers(0, 5, size=(3,))), lambda r: r.standard_normal((3, 5, 1, 1))),
        (lambda r: L.MSELoss(r.standard_normal((3, 4))), lambda r: r.standard_normal((3, 4))),
        (lambda r: L.BCELoss(r.uniform(0, 1, (3, 4))), lambda r: r.uniform(0.1, 0.9, (3, 4))),
        (lambda r: L.PDist(r.standard_normal((2, 3, 2, 2))), lambda r: r.standard_normal((2, 3, 2, 2))),
        (lambda r: L.PDist(r.standard_normal((2, 3)), p=1.5, no_root=True), lambda r: r.standard_normal((2, 3))),
        (lambda r: L.CarliniWagnerLoss(r.integers(0, 4, size=(5,)), kappa=0.3), lambda r: r.standard_normal((5, 4))),
        (lambda r: L.ProbabilityMarginLoss(r.integers(0, 4, size=(5,))), lambda r: r.standard_normal((5, 4))),
    ],
    ids=["loss", "loss-spatial", "softmaxloss", "mseloss", "bce", "pdist", "pdist-noroot", "cwloss", "pmloss"],
)
def test_losses(rng, make_layer, make_x):
    layer = make_layer(rng)
    check_input_gradient(layer, make_x(rng), rng)


def test_softmax_log_loss_value():
    layer = L.SoftmaxLogLoss([0, 1])
    x = np.log(np.array([[0.5, 0.25, 0.25], [0.2, 0.6, 0.2]]))
    y, _ = lookup(layer)[0](x, layer)
    assert y.shape == ()
    np.testing.assert_allclose(y, -np.log(0.5) - np.log(0.6))


def test_carlini_wagner_margin():
    layer = L.CarliniWagnerLoss([0, 2], kappa=1.0)
    x = np.array([[3.0, 1.0, 2.0], [0.0, 5.0, 1.0]])
    y, _ = lookup(layer)[0](x, layer)
    # item 0: 3 - 2 = 1; item 1: 1 - 5 = -4, clamped to -kappa
    np.testing.assert_allclose(y, 1.0 - 1.0)


def test_label_out_of_range_raises():
    layer = L.LogLoss([0, 3])
    with pytest.raises(KernelError):
        lookup(layer)[0](np.full((2, 3), 1 / 3), layer)


def test_seeded_dropout_masks_repeat():
    layer = L.Dropout(rate=0.4)
    x = np.ones((8, 8))
    backend.seed(3)
    _, first = lookup(layer)[0](x, layer)
    backend.seed(3)
    _, second = lookup(layer)[0](x, layer)
    np.testing.assert_array_equal(first, second)
