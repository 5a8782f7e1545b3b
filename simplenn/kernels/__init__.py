"""
Kernel registry.

Maps a layer kind to its ``(forward, backward)`` pair:

    forward(x, layer, aux=None) -> (y, aux)
    backward(x, layer, dzdy, aux=None) -> (dzdx, [parameter gradients] or None)

The ``custom`` kind is not registered: its callables live on the layer itself.
"""
from .conv import conv_forward, conv_backward, deconv_forward, deconv_backward
from .pool import pool_forward, pool_backward
from .normalization import (
    lrn_forward,
    lrn_backward,
    spnorm_forward,
    spnorm_backward,
    bnorm_forward,
    bnorm_backward,
    bnorm_moments_forward,
    bnorm_moments_backward,
    noffset_forward,
    noffset_backward,
)
from .activations import (
    relu_forward,
    relu_backward,
    lrelu_forward,
    lrelu_backward,
    sigmoid_forward,
    sigmoid_backward,
    tanh_forward,
    tanh_backward,
    softmax_forward,
    softmax_backward,
    dropout_forward,
    dropout_backward,
)
from .losses import (
    log_loss_forward,
    log_loss_backward,
    softmax_log_loss_forward,
    softmax_log_loss_backward,
    mse_forward,
    mse_backward,
    bce_forward,
    bce_backward,
    pdist_forward,
    pdist_backward,
    cw_loss_forward,
    cw_loss_backward,
    pm_loss_forward,
    pm_loss_backward,
)
from .shape import (
    reshape_forward,
    reshape_backward,
    mulconst_forward,
    mulconst_backward,
    dot_forward,
    dot_backward,
)

KERNELS = {
    "conv": (conv_forward, conv_backward),
    "deconv": (deconv_forward, deconv_backward),
    "pool": (pool_forward, pool_backward),
    "normalize": (lrn_forward, lrn_backward),
    "spnorm": (spnorm_forward, spnorm_backward),
    "bnorm": (bnorm_forward, bnorm_backward),
    "noffset": (noffset_forward, noffset_backward),
    "relu": (relu_forward, relu_backward),
    "lrelu": (lrelu_forward, lrelu_backward),
    "sigmoid": (sigmoid_forward, sigmoid_backward),
    "tanh": (tanh_forward, tanh_backward),
    "softmax": (softmax_forward, softmax_backward),
    "dropout": (dropout_forward, dropout_backward),
    "loss": (log_loss_forward, log_loss_backward),
    "softmaxloss": (softmax_log_loss_forward, softmax_log_loss_backward),
    "mseloss": (mse_forward, mse_backward),
    "bce": (bce_forward, bce_backward),
    "pdist": (pdist_forward, pdist_backward),
    "cwloss": (cw_loss_forward, cw_loss_backward),
    "pmloss": (pm_loss_forward, pm_loss_backward),
    "reshape": (reshape_forward, reshape_backward),
    "mulconst": (mulconst_forward, mulconst_backward),
    "dot": (dot_forward, dot_backward),
}

# batch norm with caller-supplied moments uses its own entry points
_MOMENTS_KERNELS = (bnorm_moments_forward, bnorm_moments_backward)


def register_kernel(kind, forward, backward=None):
    """Add or replace the kernels for ``kind``. A kind without backward can only run forward."""
    KERNELS[kind] = (forward, backward)


def lookup(layer):
    """Return the (forward, backward) pair for ``layer``, or None for an unknown kind."""
    if layer.kind == "bnorm" and getattr(layer, "moments", None) is not None:
        return _MOMENTS_KERNELS
    return KERNELS.get(layer.kind)


__all__ = ["KERNELS", "register_kernel", "lookup"]
