import numpy as np
import pytest

from simplenn import ConfigurationError, StateConsistencyError, StateRecord, register_kernel
from simplenn.kernels import KERNELS
from simplenn import layers as L

from conftest import numeric_grad


def mlp(rng):
    return [
        L.Dot(rng.standard_normal((6, 4))),
        L.ReLU(),
        L.Dot(rng.standard_normal((3, 6))),
        L.SoftmaxLogLoss([2, 0, 1]),
    ]


def test_input_gradient_matches_finite_differences(executor, rng):
    layers = mlp(rng)
    x = rng.standard_normal((3, 4))
    records = executor.run(layers, x, dzdy=1.0)

    def loss():
        return float(executor.forward(layers, x)[-1].activation)

    np.testing.assert_allclose(records[0].activation_gradient, numeric_grad(loss, x), rtol=1e-4, atol=1e-6)


def test_relu_dot_chain_gradient(executor, rng):
    layers = [L.Dot(rng.standard_normal((6, 4))), L.ReLU(), L.Dot(rng.standard_normal((2, 6))), L.ReLU()]
    x = rng.standard_normal((3, 4))
    dzdy = rng.standard_normal((3, 2))
    records = executor.run(layers, x, dzdy=dzdy)

    def objective():
        return float(np.sum(executor.forward(layers, x)[-1].activation * dzdy))

    np.testing.assert_allclose(records[0].activation_gradient, numeric_grad(objective, x), rtol=1e-4, atol=1e-6)


def test_parameter_gradients_land_on_the_layer_record(executor, rng):
    layers = mlp(rng)
    x = rng.standard_normal((3, 4))
    records = executor.run(layers, x, dzdy=1.0)

    def loss():
        return float(executor.forward(layers, x)[-1].activation)

    for i in (0, 2):
        (grad,) = records[i + 1].parameter_gradients
        np.testing.assert_allclose(grad, numeric_grad(loss, layers[i].weights), rtol=1e-4, atol=1e-6)
    assert records[2].parameter_gradients is None
    assert records[4].parameter_gradients is None


def test_every_record_is_marked_backward(executor, rng):
    records = executor.run(mlp(rng), rng.standard_normal((3, 4)), dzdy=1.0)
    assert all(r.stage == "backward" for r in records)
    assert all(r.activation_gradient is not None for r in records)
    assert all(r.backward_time >= 0.0 for r in records[1:])


def test_accumulate_adds_to_existing_gradients(executor, rng):
    layers = mlp(rng)
    x = rng.standard_normal((3, 4))
    once = executor.run(layers, x, dzdy=1.0)
    first = [g.copy() for g in once[1].parameter_gradients]

    executor.backward(layers, once, 1.0, accumulate=True)

    for a, b in zip(once[1].parameter_gradients, first):
        np.testing.assert_allclose(a, 2 * b)


def test_without_accumulate_gradients_are_replaced(executor, rng):
    layers = mlp(rng)
    x = rng.standard_normal((3, 4))
    records = executor.run(layers, x, dzdy=1.0)
    first = [g.copy() for g in records[3].parameter_gradients]

    executor.backward(layers, records, 1.0)

    np.testing.assert_allclose(records[3].parameter_gradients[0], first[0])


def test_back_prop_depth_limits_the_sweep(executor, rng):
    layers = mlp(rng)
    records = executor.run(layers, rng.standard_normal((3, 4)), dzdy=1.0, back_prop_depth=2)

    assert records[2].activation_gradient is not None
    assert records[3].parameter_gradients is not None
    assert records[2].stage == "backward"
    for r in records[:2]:
        assert r.activation_gradient is None
        assert r.stage == "forward"
    assert records[1].parameter_gradients is None


def test_zero_depth_only_seeds_the_output(executor, rng):
    records = executor.run(mlp(rng), rng.standard_normal((3, 4)), dzdy=1.0, back_prop_depth=0)
    assert records[4].activation_gradient is not None
    assert all(r.activation_gradient is None for r in records[:4])


@pytest.fixture
def forward_only_kind():
    register_kernel("scale2", lambda x, layer, aux=None: (2 * x, None))
    yield "scale2"
    del KERNELS["scale2"]


def test_kind_without_backward_fails_before_mutating(executor, rng, forward_only_kind):
    class Scale2(L.Layer):
        kind = forward_only_kind

    layers = [L.ReLU(), Scale2()]
    records = executor.forward(layers, rng.standard_normal((2, 3)))
    assert records[2].activation is not None

    with pytest.raises(ConfigurationError) as err:
        executor.backward(layers, records, np.ones((2, 3)))

    assert err.value.layer_index == 1
    assert records[1].activation_gradient is None
    assert records[1].stage == "forward"


def test_backward_before_forward_raises(executor):
    records = StateRecord.allocate(1)
    with pytest.raises(StateConsistencyError):
        executor.backward([L.ReLU()], records, np.ones((1, 1)))


def test_output_gradient_must_match_the_output_shape(executor, rng):
    layers = [L.Dot(rng.standard_normal((2, 3)))]
    records = executor.forward(layers, rng.standard_normal((4, 3)))

    with pytest.raises(StateConsistencyError):
        executor.backward(layers, records, np.ones((1, 2)))
    assert records[0].activation_gradient is None

    executor.backward(layers, records, 2.0)
    np.testing.assert_allclose(records[0].activation_gradient, np.tile(2.0 * layers[0].weights.sum(axis=0), (4, 1)))


def test_backward_checks_record_count(executor, rng):
    layers = mlp(rng)
    records = executor.forward(layers, rng.standard_normal((3, 4)))
    with pytest.raises(ConfigurationError):
        executor.backward(layers[:2], records, 1.0)


def test_dropout_backward_uses_the_stored_mask(executor):
    x = np.ones((40, 10))
    records = executor.run([L.Dropout(rate=0.5)], x, dzdy=np.ones_like(x))
    np.testing.assert_array_equal(records[0].activation_gradient, records[1].auxiliary)


def test_batch_norm_moments_path_through_executor(executor, rng):
    moments = np.stack([np.zeros(3), np.full(3, 2.0)], axis=1)
    layer = L.BatchNorm((np.ones(3), np.zeros(3)), moments=moments)
    x = rng.standard_normal((4, 3, 2, 2))
    records = executor.run([layer], x, dzdy=np.ones_like(x))

    np.testing.assert_allclose(records[1].activation, x / 2.0)
    np.testing.assert_allclose(records[0].activation_gradient, np.full_like(x, 0.5))
    dgain, dbias = records[1].parameter_gradients
    np.testing.assert_allclose(dgain, (x / 2.0).sum(axis=(0, 2, 3)))
    np.testing.assert_allclose(dbias, np.full(3, 16.0))
