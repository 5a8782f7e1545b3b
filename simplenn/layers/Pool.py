from .Layer import Layer, to_pair, to_padding
from ..errors import ConfigurationError


class Pool2D(Layer):
    kind = "pool"
    required = ("pool", "method")

    def __init__(self, pool=2, stride=None, pad=0, method="max", **kwargs):
        super().__init__(**kwargs)
        if method not in ("max", "avg"):
            raise ConfigurationError(f"unknown pooling method {method!r}", kind=self.kind)
        self.pool = to_pair(pool)
        # stride defaults to the window size (non-overlapping windows)
        self.stride = to_pair(stride) if stride is not None else self.pool
        self.pad = to_padding(pad)
        self.method = method
