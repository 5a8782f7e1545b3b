import numpy as np
from .Layer import Layer
from ..helpers.Backend import backend
from ..errors import ConfigurationError


def _params(value, count, kind):
    if value is None:
        return None
    value = tuple(float(v) for v in value)
    if len(value) != count:
        raise ConfigurationError(f"param must have {count} entries, got {len(value)}", kind=kind)
    return value


class LocalResponseNorm(Layer):
    """Cross-channel normalization; param = (depth, kappa, alpha, beta)."""
    kind = "normalize"
    required = ("param",)

    def __init__(self, param=(5, 2.0, 1e-4, 0.75), **kwargs):
        super().__init__(**kwargs)
        self.param = _params(param, 4, self.kind)


class SpatialNorm(Layer):
    """Spatial normalization; param = (height, width, alpha, beta)."""
    kind = "spnorm"
    required = ("param",)

    def __init__(self, param=(3, 3, 1.0, 0.5), **kwargs):
        super().__init__(**kwargs)
        self.param = _params(param, 4, self.kind)


class BatchNorm(Layer):
    """
    Batch normalization over (N, H, W) for every channel.

    weights = (gain, bias), both shaped (C,). When ``moments`` (C, 2) holding
    [mean, sigma] is given, those statistics are used instead of the batch's own.
    """
    kind = "bnorm"
    required = ("gain", "bias")

    def __init__(self, weights=None, moments=None, epsilon=1e-4, **kwargs):
        super().__init__(**kwargs)
        gain, bias = weights if weights is not None else (None, None)
        self.gain = backend.float_array(gain) if gain is not None else None
        self.bias = backend.float_array(bias) if bias is not None else None
        self.moments = backend.float_array(moments) if moments is not None else None
        self.epsilon = float(epsilon)

    @classmethod
    def init(cls, channels, dtype=np.float32, **kwargs):
        return cls((backend.xp.ones((channels,), dtype=dtype), backend.zeros((channels,), dtype=dtype)), **kwargs)

    @classmethod
    def from_statistics(cls, weights, mu, v, epsilon=1e-4, **kwargs):
        """Fixed-statistics variant built from a running mean and variance."""
        mu = backend.float_array(mu).reshape(-1)
        sigma = backend.xp.sqrt(backend.float_array(v).reshape(-1) + epsilon)
        return cls(weights, moments=backend.xp.stack([mu, sigma], axis=1), epsilon=epsilon, **kwargs)

    def params(self):
        return [self.gain, self.bias]


class NormOffset(Layer):
    """y = x - scale * (sum over channels of x^2) ** exponent; param = (scale, exponent)."""
    kind = "noffset"
    required = ("param",)

    def __init__(self, param=(1.0, 0.5), **kwargs):
        super().__init__(**kwargs)
        self.param = _params(param, 2, self.kind)
