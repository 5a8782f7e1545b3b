import numpy as np
from .Layer import Layer
from ..helpers.Backend import backend


class Reshape(Layer):
    """Row-major reshape of every item; ``new_shape`` excludes the batch axis."""
    kind = "reshape"
    required = ("new_shape",)

    def __init__(self, new_shape, **kwargs):
        super().__init__(**kwargs)
        self.new_shape = tuple(int(d) for d in new_shape) if new_shape is not None else None


class MulConst(Layer):
    kind = "mulconst"
    required = ("constant",)

    def __init__(self, constant, **kwargs):
        super().__init__(**kwargs)
        self.constant = float(constant) if constant is not None else None


class Dot(Layer):
    """
    Dot product with a weight matrix, no bias: y = flatten(x) @ W.T

    weights: (out_features, in_features); the output is (batch, out_features).
    """
    kind = "dot"
    required = ("weights",)

    def __init__(self, weights, **kwargs):
        super().__init__(**kwargs)
        self.weights = backend.float_array(weights) if weights is not None else None

    @classmethod
    def init(cls, in_features, out_features, dtype=np.float32, **kwargs):
        # He initialization, built on CPU then moved to the backend
        weights_cpu = (np.random.randn(out_features, in_features) * np.sqrt(2.0 / in_features)).astype(dtype)
        return cls(backend.ensure_array(weights_cpu), **kwargs)

    def params(self):
        return [self.weights]
