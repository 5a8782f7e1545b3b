import numpy as np
import pytest

from simplenn import ConfigurationError, Network
from simplenn import layers as L
from simplenn.helpers.preprocessing import channel_means, subtract_average


def test_evaluate_subtracts_the_channel_average(rng):
    net = Network([L.ReLU()], average_image=np.array([1.0, -2.0]))
    x = rng.standard_normal((3, 2, 4, 4))
    records = net.evaluate(x)
    np.testing.assert_allclose(records[0].activation, x - np.array([1.0, -2.0]).reshape(1, 2, 1, 1))


def test_average_image_layouts_agree(rng):
    chw = rng.standard_normal((3, 5, 5))
    hwc = np.transpose(chw, (1, 2, 0))
    np.testing.assert_allclose(channel_means(chw, 3), chw.reshape(3, -1).mean(axis=1))
    np.testing.assert_allclose(channel_means(hwc, 3), channel_means(chw, 3))


def test_average_with_wrong_channel_count():
    with pytest.raises(ConfigurationError):
        subtract_average(np.zeros((1, 3, 2, 2)), np.zeros(4))


def test_network_without_average_passes_input_through(rng):
    x = rng.standard_normal((2, 3))
    net = Network([L.Tanh()])
    np.testing.assert_array_equal(net.evaluate(x)[0].activation, x)


def test_add_builds_layers_from_dicts(rng):
    net = Network()
    net.add({"type": "dot", "weights": [rng.standard_normal((3, 4))]}).add({"type": "our_loss", "class": [0, 2]})
    assert len(net) == 2
    assert isinstance(net.layers[1], L.ProbabilityMarginLoss)
    records = net.evaluate(rng.standard_normal((2, 4)), dzdy=1.0)
    assert records[0].activation_gradient.shape == (2, 4)


def test_parameters_lists_only_parametric_layers(rng):
    net = Network([L.Conv2D.init(1, 2), L.ReLU(), L.Dot.init(8, 3)])
    params = net.parameters()
    assert [i for i, _ in params] == [0, 2]
    assert len(params[0][1]) == 2
    assert "conv" in repr(net)


def test_evaluate_forwards_options(rng):
    net = Network([L.Sigmoid(), L.ReLU()])
    records = net.evaluate(rng.standard_normal((2, 3)), conserveMemory=True)
    assert records[0].activation is None
