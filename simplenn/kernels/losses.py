"""
Loss kernels.

Every loss here reduces to a 0-d array except ``pdist``, which keeps one
distance per item and location. ``dzdy`` is broadcast against that output, so
seeding backward with 1 gives the plain derivative of the loss.
"""
import math

from ..helpers.Backend import backend
from ..errors import KernelError
from .activations import softmax

EPS = 1e-12


def _labels(x, labels):
    """Reshape class labels to x's shape without the channel axis; validate the range."""
    if x.ndim < 2:
        raise KernelError(f"loss input needs a channel axis, got shape {tuple(x.shape)}")
    target_shape = (x.shape[0],) + tuple(x.shape[2:])
    if labels.size != math.prod(target_shape):
        raise KernelError(f"{labels.size} labels do not match input of shape {tuple(x.shape)}")
    labels = backend.reshape(labels, target_shape)
    if labels.size and (int(labels.min()) < 0 or int(labels.max()) >= x.shape[1]):
        raise KernelError(f"labels must lie in [0, {x.shape[1]})")
    return labels


def _one_hot(x, labels):
    classes = backend.reshape(backend.arange(x.shape[1]), (1, -1) + (1,) * (x.ndim - 2))
    return (classes == labels[:, None, ...]).astype(x.dtype)


def _scalar(value, like):
    return backend.asarray(value, dtype=like.dtype)


# ---------- log-loss over class probabilities ----------
def log_loss_forward(x, layer, aux=None):
    labels = _labels(x, layer.labels)
    picked = backend.take_along_axis(x, labels[:, None, ...], axis=1)
    return _scalar(-backend.sum(backend.log(backend.maximum(picked, EPS))), x), None


def log_loss_backward(x, layer, dzdy, aux=None):
    labels = _labels(x, layer.labels)
    picked = backend.take_along_axis(x, labels[:, None, ...], axis=1)
    return _one_hot(x, labels) * (-dzdy / backend.maximum(picked, EPS)), None


# ---------- fused softmax + log-loss ----------
def softmax_log_loss_forward(x, layer, aux=None):
    labels = _labels(x, layer.labels)
    z = x - backend.max(x, axis=1, keepdims=True)
    logsumexp = backend.log(backend.sum(backend.exp(z), axis=1, keepdims=True))
    picked = backend.take_along_axis(z, labels[:, None, ...], axis=1)
    return _scalar(backend.sum(logsumexp - picked), x), None


def softmax_log_loss_backward(x, layer, dzdy, aux=None):
    labels = _labels(x, layer.labels)
    return dzdy * (softmax(x) - _one_hot(x, labels)), None


# ---------- regression losses ----------
def _check_target(x, target):
    if target.shape != x.shape:
        raise KernelError(f"target has shape {tuple(target.shape)}, input has {tuple(x.shape)}")


def mse_forward(x, layer, aux=None):
    _check_target(x, layer.target)
    d = x - layer.target
    return _scalar(backend.mean(d * d), x), None


def mse_backward(x, layer, dzdy, aux=None):
    _check_target(x, layer.target)
    return dzdy * (2.0 / x.size) * (x - layer.target), None


def bce_forward(x, layer, aux=None):
    _check_target(x, layer.target)
    p = backend.clip(x, EPS, 1.0 - EPS)
    t = layer.target
    return _scalar(-backend.sum(t * backend.log(p) + (1.0 - t) * backend.log(1.0 - p)), x), None


def bce_backward(x, layer, dzdy, aux=None):
    _check_target(x, layer.target)
    p = backend.clip(x, EPS, 1.0 - EPS)
    return dzdy * (p - layer.target) / (p * (1.0 - p)), None


def pdist_forward(x, layer, aux=None):
    _check_target(x, layer.target)
    s = backend.sum(backend.abs(x - layer.target) ** layer.p, axis=1, keepdims=True)
    return (s if layer.no_root else s ** (1.0 / layer.p)), None


def pdist_backward(x, layer, dzdy, aux=None):
    _check_target(x, layer.target)
    p = layer.p
    d = x - layer.target
    # epsilon keeps |d|^(p-2) finite where d == 0
    g = d * backend.maximum(backend.abs(d), layer.epsilon) ** (p - 2)
    if layer.no_root:
        return dzdy * p * g, None
    y = backend.sum(backend.abs(d) ** p, axis=1, keepdims=True) ** (1.0 / p)
    return dzdy * g / backend.maximum(y, layer.epsilon) ** (p - 1), None


# ---------- adversarial margin losses ----------
def _margin_parts(scores, labels):
    """One-hots of the label and of the best other class, and the margin between them."""
    onehot = _one_hot(scores, labels)
    others = backend.where(onehot > 0, -backend.inf, scores)
    runner_up = backend.argmax(others, axis=1)
    other_hot = _one_hot(scores, runner_up)
    margin = backend.sum(scores * (onehot - other_hot), axis=1)
    return onehot, other_hot, margin


def _flat_scores(x):
    if x.ndim < 2 or x.shape[1] < 2 or any(d != 1 for d in x.shape[2:]):
        raise KernelError(f"margin losses expect (B, C) or (B, C, 1, 1) scores with C >= 2, got {tuple(x.shape)}")
    return backend.reshape(x, (x.shape[0], x.shape[1]))


def cw_loss_forward(x, layer, aux=None):
    z = _flat_scores(x)
    _, _, margin = _margin_parts(z, _labels(z, layer.labels))
    return _scalar(backend.sum(backend.maximum(margin, -layer.kappa)), x), None


def cw_loss_backward(x, layer, dzdy, aux=None):
    z = _flat_scores(x)
    onehot, other_hot, margin = _margin_parts(z, _labels(z, layer.labels))
    active = (margin > -layer.kappa).astype(z.dtype)[:, None]
    return backend.reshape(dzdy * active * (onehot - other_hot), x.shape), None


def pm_loss_forward(x, layer, aux=None):
    p = softmax(_flat_scores(x))
    _, _, margin = _margin_parts(p, _labels(p, layer.labels))
    return _scalar(backend.sum(margin), x), None


def pm_loss_backward(x, layer, dzdy, aux=None):
    p = softmax(_flat_scores(x))
    onehot, other_hot, _ = _margin_parts(p, _labels(p, layer.labels))
    g = dzdy * (onehot - other_hot)
    dz = p * (g - backend.sum(g * p, axis=1, keepdims=True))
    return backend.reshape(dz, x.shape), None
