from ..helpers.Backend import backend
from ..errors import KernelError


def relu_forward(x, layer, aux=None):
    return backend.maximum(x, 0), None


def relu_backward(x, layer, dzdy, aux=None):
    # only the sign of x matters, so the layer's own output works as x too
    return dzdy * (x > 0), None


def lrelu_forward(x, layer, aux=None):
    return backend.where(x > 0, x, layer.leak * x), None


def lrelu_backward(x, layer, dzdy, aux=None):
    return dzdy * backend.where(x > 0, 1.0, layer.leak).astype(dzdy.dtype), None


def _sigmoid(x):
    return 1.0 / (1.0 + backend.exp(-x))


def sigmoid_forward(x, layer, aux=None):
    return _sigmoid(x), None


def sigmoid_backward(x, layer, dzdy, aux=None):
    y = _sigmoid(x)
    return dzdy * (y * (1.0 - y)), None


def tanh_forward(x, layer, aux=None):
    return backend.tanh(x), None


def tanh_backward(x, layer, dzdy, aux=None):
    y = backend.tanh(x)
    return dzdy * (1.0 - y * y), None


def softmax(x):
    # Stable softmax over the channel axis
    z = x - backend.max(x, axis=1, keepdims=True)
    e = backend.exp(z)
    return e / backend.sum(e, axis=1, keepdims=True)


def softmax_forward(x, layer, aux=None):
    return softmax(x), None


def softmax_backward(x, layer, dzdy, aux=None):
    y = softmax(x)
    return y * (dzdy - backend.sum(dzdy * y, axis=1, keepdims=True)), None


def dropout_forward(x, layer, aux=None):
    """
    Inverted dropout: kept units are scaled by 1/(1-rate) so inference needs no rescale.
    A given ``aux`` (a previously drawn mask) is reused instead of drawing a new one.
    """
    if aux is None:
        keep = 1.0 - layer.rate
        aux = (backend.random.rand(*x.shape) < keep).astype(x.dtype) / keep
    elif aux.shape != x.shape:
        raise KernelError(f"dropout mask has shape {tuple(aux.shape)}, input has {tuple(x.shape)}")
    return x * aux, aux


def dropout_backward(x, layer, dzdy, aux=None):
    return dzdy * aux, None
