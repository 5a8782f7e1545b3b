from ..helpers.Backend import backend
from ..errors import KernelError
from .pool import avg_pool, avg_pool_adjoint


# ---------- cross-channel (local response) normalization ----------
def _channel_window_sum(a, before, after):
    """S[:, k] = sum of a[:, k-before .. k+after], clipped at the channel edges."""
    C = a.shape[1]
    widths = [(0, 0)] * a.ndim
    widths[1] = (before + 1, after)
    cs = backend.cumsum(backend.pad(a, widths), axis=1)
    return cs[:, before + after + 1:] - cs[:, :C]


def _lrn_window(layer):
    depth = int(layer.param[0])
    if depth < 1:
        raise KernelError(f"normalization depth must be >= 1, got {depth}")
    before = (depth - 1) // 2
    return before, depth - 1 - before


def lrn_forward(x, layer, aux=None):
    _, kappa, alpha, beta = layer.param
    before, after = _lrn_window(layer)
    L = kappa + alpha * _channel_window_sum(x * x, before, after)
    return x * L ** -beta, None


def lrn_backward(x, layer, dzdy, aux=None):
    _, kappa, alpha, beta = layer.param
    before, after = _lrn_window(layer)
    L = kappa + alpha * _channel_window_sum(x * x, before, after)
    # the transpose of a window sum swaps the window's extents
    t = _channel_window_sum(dzdy * x * L ** (-beta - 1), after, before)
    return dzdy * L ** -beta - 2.0 * alpha * beta * x * t, None


# ---------- spatial normalization ----------
def _same_padding(h, w):
    top, left = (h - 1) // 2, (w - 1) // 2
    return top, h - 1 - top, left, w - 1 - left


def _spnorm_parts(x, layer):
    h, w, alpha, _ = layer.param
    window = (int(h), int(w))
    pad = _same_padding(*window)
    n = 1.0 + alpha * avg_pool(x * x, window, (1, 1), pad)
    return n, window, pad


def spnorm_forward(x, layer, aux=None):
    beta = layer.param[3]
    n, _, _ = _spnorm_parts(x, layer)
    return x * n ** -beta, None


def spnorm_backward(x, layer, dzdy, aux=None):
    alpha, beta = layer.param[2], layer.param[3]
    n, window, pad = _spnorm_parts(x, layer)
    t = avg_pool_adjoint(dzdy * x * n ** (-beta - 1), x.shape, window, (1, 1), pad)
    return dzdy * n ** -beta - 2.0 * alpha * beta * x * t, None


# ---------- batch normalization ----------
def _bn_axes(x, channels):
    if x.ndim < 2 or x.shape[1] != channels:
        raise KernelError(f"batch norm expects {channels} channels, got shape {tuple(x.shape)}")
    axes = (0,) + tuple(range(2, x.ndim))
    shape = (1, channels) + (1,) * (x.ndim - 2)
    return axes, shape


def _bn_batch_statistics(x, layer, axes):
    mu = backend.mean(x, axis=axes, keepdims=True)
    sigma = backend.sqrt(backend.var(x, axis=axes, keepdims=True) + layer.epsilon)
    return mu, sigma


def _bn_fixed_statistics(layer, shape):
    moments = layer.moments
    if moments.shape != (shape[1], 2):
        raise KernelError(f"moments must have shape ({shape[1]}, 2), got {tuple(moments.shape)}")
    return backend.reshape(moments[:, 0], shape), backend.reshape(moments[:, 1], shape)


def bnorm_forward(x, layer, aux=None):
    axes, shape = _bn_axes(x, layer.gain.shape[0])
    mu, sigma = _bn_batch_statistics(x, layer, axes)
    xhat = (x - mu) / sigma
    return backend.reshape(layer.gain, shape) * xhat + backend.reshape(layer.bias, shape), None


def bnorm_backward(x, layer, dzdy, aux=None):
    axes, shape = _bn_axes(x, layer.gain.shape[0])
    mu, sigma = _bn_batch_statistics(x, layer, axes)
    xhat = (x - mu) / sigma
    m = x.size // shape[1]

    dgain = backend.sum(dzdy * xhat, axis=axes)
    dbias = backend.sum(dzdy, axis=axes)
    dxhat = dzdy * backend.reshape(layer.gain, shape)
    dx = (
        m * dxhat
        - backend.sum(dxhat, axis=axes, keepdims=True)
        - xhat * backend.sum(dxhat * xhat, axis=axes, keepdims=True)
    ) / (m * sigma)
    return dx, [dgain, dbias]


def bnorm_moments_forward(x, layer, aux=None):
    axes, shape = _bn_axes(x, layer.gain.shape[0])
    mu, sigma = _bn_fixed_statistics(layer, shape)
    xhat = (x - mu) / sigma
    return backend.reshape(layer.gain, shape) * xhat + backend.reshape(layer.bias, shape), None


def bnorm_moments_backward(x, layer, dzdy, aux=None):
    # statistics are constants here, so the input gradient is a plain rescale
    axes, shape = _bn_axes(x, layer.gain.shape[0])
    mu, sigma = _bn_fixed_statistics(layer, shape)
    xhat = (x - mu) / sigma
    dx = dzdy * backend.reshape(layer.gain, shape) / sigma
    return dx, [backend.sum(dzdy * xhat, axis=axes), backend.sum(dzdy, axis=axes)]


# ---------- norm offset ----------
def _sq_norm(x):
    return backend.maximum(backend.sum(x * x, axis=1, keepdims=True), 1e-8)


def noffset_forward(x, layer, aux=None):
    scale, exponent = layer.param
    return x - scale * _sq_norm(x) ** exponent, None


def noffset_backward(x, layer, dzdy, aux=None):
    scale, exponent = layer.param
    L = _sq_norm(x)
    dx = dzdy - (2.0 * scale * exponent) * x * backend.sum(dzdy, axis=1, keepdims=True) * L ** (exponent - 1)
    return dx, None
