from ..helpers.Backend import backend
from ..errors import KernelError


def reshape_forward(x, layer, aux=None):
    new_shape = (x.shape[0],) + layer.new_shape
    try:
        return backend.reshape(x, new_shape), None
    except ValueError as e:
        raise KernelError(f"cannot reshape {tuple(x.shape)} to {new_shape}") from e


def reshape_backward(x, layer, dzdy, aux=None):
    return backend.reshape(dzdy, x.shape), None


def mulconst_forward(x, layer, aux=None):
    return x * layer.constant, None


def mulconst_backward(x, layer, dzdy, aux=None):
    return dzdy * layer.constant, None


def dot_forward(x, layer, aux=None):
    # x: (batch, ...) is flattened to (batch, in_features)
    x_flat = backend.reshape(x, (x.shape[0], -1))
    if x_flat.shape[1] != layer.weights.shape[1]:
        raise KernelError(
            f"input has {x_flat.shape[1]} features, weights expect {layer.weights.shape[1]}"
        )
    return backend.matmul(x_flat, backend.transpose(layer.weights)), None


def dot_backward(x, layer, dzdy, aux=None):
    x_flat = backend.reshape(x, (x.shape[0], -1))
    dW = backend.matmul(backend.transpose(dzdy), x_flat)  # (out, in)
    dx = backend.reshape(backend.matmul(dzdy, layer.weights), x.shape)  # (B, in)
    return dx, [dW]
