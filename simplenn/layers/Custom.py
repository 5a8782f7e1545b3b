from .Layer import Layer


class CustomLayer(Layer):
    """
    User-defined stage.

    ``forward(layer, rec_in, rec_out)`` must return the filled ``rec_out`` and
    ``backward(layer, rec_in, rec_out)`` must return ``rec_in`` with its
    gradients set. Both receive whole StateRecords, so the callables are free
    to read or write ``auxiliary`` and ``parameter_gradients`` as well.
    Extra keyword arguments become attributes of the layer.
    """
    kind = "custom"
    required = ("forward", "backward")

    def __init__(self, forward, backward, trainable=None, **kwargs):
        layer_kwargs = {k: kwargs.pop(k) for k in ("name", "remember_output") if k in kwargs}
        super().__init__(**layer_kwargs)
        self.forward = forward
        self.backward = backward
        self.trainable = list(trainable or [])
        for key, value in kwargs.items():
            setattr(self, key, value)

    def params(self):
        return self.trainable
