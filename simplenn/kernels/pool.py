from ..helpers.Backend import backend
from ..errors import KernelError
from .im2col import im2col, col2im


def _windows(x, pool, stride, pad, value):
    # treat every (batch, channel) plane as its own single-channel image
    if x.ndim != 4:
        raise KernelError(f"pooling expects a 4-D (B, C, H, W) input, got shape {tuple(x.shape)}")
    B, C, H, W = x.shape
    planes = backend.reshape(x, (B * C, 1, H, W))
    cols, H_out, W_out = im2col(planes, pool[0], pool[1], stride, pad, value=value)
    return cols, H_out, W_out  # cols: (B*C, HW, kh*kw)


def avg_pool(x, pool, stride, pad):
    B, C = x.shape[:2]
    cols, H_out, W_out = _windows(x, pool, stride, pad, 0.0)
    # padded cells count towards the window area
    return backend.reshape(backend.mean(cols, axis=-1), (B, C, H_out, W_out))


def avg_pool_adjoint(dzdy, x_shape, pool, stride, pad):
    B, C, H, W = x_shape
    k2 = pool[0] * pool[1]
    go = backend.reshape(dzdy, (B * C, -1, 1)) / k2
    cols = go * backend.ones((1, 1, k2), dtype=go.dtype)
    dx = col2im(cols, (B * C, 1, H, W), pool[0], pool[1], stride, pad)
    return backend.reshape(dx, x_shape)


def pool_forward(x, layer, aux=None):
    if layer.method == "avg":
        return avg_pool(x, layer.pool, layer.stride, layer.pad), None
    cols, H_out, W_out = _windows(x, layer.pool, layer.stride, layer.pad, -backend.inf)
    B, C = x.shape[:2]
    return backend.reshape(backend.max(cols, axis=-1), (B, C, H_out, W_out)), None


def pool_backward(x, layer, dzdy, aux=None):
    if layer.method == "avg":
        return avg_pool_adjoint(dzdy, x.shape, layer.pool, layer.stride, layer.pad), None

    B, C, H, W = x.shape
    kh, kw = layer.pool
    cols, _, _ = _windows(x, layer.pool, layer.stride, layer.pad, -backend.inf)

    # route each window's gradient to its argmax position (first one on ties)
    argmax = backend.argmax(cols, axis=-1)  # (B*C, HW)
    offsets = backend.arange(kh * kw)
    mask = (offsets[None, None, :] == argmax[:, :, None]).astype(dzdy.dtype)
    go = backend.reshape(dzdy, (B * C, -1, 1))
    dx = col2im(mask * go, (B * C, 1, H, W), kh, kw, layer.stride, layer.pad)
    return backend.reshape(dx, x.shape), None
