from .Backend import backend
from ..errors import ConfigurationError


def channel_means(average_image, channels):
    """
    Per-channel averages from either a (C,) vector or an average image laid
    out (C, H, W) or (H, W, C).
    """
    avg = backend.float_array(average_image)
    if avg.ndim == 1:
        means = avg
    elif avg.ndim == 3 and avg.shape[0] == channels:
        means = backend.mean(backend.reshape(avg, (channels, -1)), axis=1)
    elif avg.ndim == 3 and avg.shape[-1] == channels:
        means = backend.mean(backend.reshape(avg, (-1, channels)), axis=0)
    else:
        raise ConfigurationError(f"cannot read per-channel averages from shape {tuple(avg.shape)}")
    if means.shape[0] != channels:
        raise ConfigurationError(f"{means.shape[0]} channel averages for {channels} channels")
    return means


def subtract_average(x, average_image):
    """Subtract the per-channel average from every item of an NCHW batch. Returns a new array."""
    x = backend.float_array(x)
    if x.ndim < 2:
        raise ConfigurationError(f"expected a (B, C, ...) batch, got shape {tuple(x.shape)}")
    means = channel_means(average_image, x.shape[1]).astype(x.dtype)
    return x - backend.reshape(means, (1, -1) + (1,) * (x.ndim - 2))
