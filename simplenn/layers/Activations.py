from .Layer import Layer
from ..errors import ConfigurationError


class ReLU(Layer):
    kind = "relu"


class LeakyReLU(Layer):
    kind = "lrelu"

    def __init__(self, leak=0.01, **kwargs):
        super().__init__(**kwargs)
        self.leak = float(leak)


class Sigmoid(Layer):
    kind = "sigmoid"


class Tanh(Layer):
    kind = "tanh"


class Softmax(Layer):
    # normalizes over the channel axis (axis 1)
    kind = "softmax"


class Dropout(Layer):
    kind = "dropout"
    required = ("rate",)

    def __init__(self, rate=0.5, **kwargs):
        super().__init__(**kwargs)
        rate = float(rate)
        if not 0.0 <= rate < 1.0:
            raise ConfigurationError(f"dropout rate must be in [0, 1), got {rate}", kind=self.kind)
        self.rate = rate
