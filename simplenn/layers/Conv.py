import numpy as np
from .Layer import Layer, to_pair, to_padding
from ..helpers.Backend import backend


def _he_normal(shape, fan_in, dtype):
    # Initialize on CPU, then move to the active backend
    w = np.random.randn(*shape) * np.sqrt(2.0 / fan_in)
    return backend.ensure_array(w.astype(dtype))


class Conv2D(Layer):
    """Convolution. weights: (out_channels, in_channels, kh, kw), bias: (out_channels,)."""
    kind = "conv"
    required = ("weights", "bias")

    def __init__(self, weights, bias=None, stride=1, pad=0, **kwargs):
        super().__init__(**kwargs)
        self.weights = backend.float_array(weights) if weights is not None else None
        if bias is None and self.weights is not None:
            bias = backend.zeros((self.weights.shape[0],), dtype=self.weights.dtype)
        self.bias = backend.float_array(bias) if bias is not None else None
        self.stride = to_pair(stride)
        self.pad = to_padding(pad)

    @classmethod
    def init(cls, in_channels, out_channels, kernel_size=3, stride=1, pad=0, dtype=np.float32, **kwargs):
        """He-initialized convolution, zero bias."""
        kh, kw = to_pair(kernel_size)
        fan_in = in_channels * kh * kw
        weights = _he_normal((out_channels, in_channels, kh, kw), fan_in, dtype)
        return cls(weights, backend.zeros((out_channels,), dtype=dtype), stride=stride, pad=pad, **kwargs)

    def params(self):
        return [self.weights, self.bias]


class ConvTranspose2D(Layer):
    """
    Transposed convolution (the adjoint of Conv2D).

    weights: (in_channels, out_channels, kh, kw), bias: (out_channels,).
    ``crop`` removes rows/columns from the upsampled output the same way
    ``pad`` adds them to the input of a convolution.
    """
    kind = "deconv"
    required = ("weights", "bias")

    def __init__(self, weights, bias=None, stride=1, crop=0, **kwargs):
        super().__init__(**kwargs)
        self.weights = backend.float_array(weights) if weights is not None else None
        if bias is None and self.weights is not None:
            bias = backend.zeros((self.weights.shape[1],), dtype=self.weights.dtype)
        self.bias = backend.float_array(bias) if bias is not None else None
        self.stride = to_pair(stride)
        self.crop = to_padding(crop)

    @classmethod
    def init(cls, in_channels, out_channels, kernel_size=2, stride=2, crop=0, dtype=np.float32, **kwargs):
        kh, kw = to_pair(kernel_size)
        weights = _he_normal((in_channels, out_channels, kh, kw), in_channels * kh * kw, dtype)
        return cls(weights, backend.zeros((out_channels,), dtype=dtype), stride=stride, crop=crop, **kwargs)

    def params(self):
        return [self.weights, self.bias]
