from .layers import make_layer
from .Pipeline import PipelineExecutor
from .helpers.preprocessing import subtract_average


class Network:
    """
    A layer chain plus its input normalization.

    ``evaluate`` is the one-call entry point: subtract the per-channel average
    (when one is set), run forward, and run backward when ``dzdy`` is given.
    """
    def __init__(self, layers=None, average_image=None, executor=None):
        self.layers = [make_layer(l, i) for i, l in enumerate(layers or [])]
        self.average_image = average_image
        self.executor = executor if executor is not None else PipelineExecutor()

    def add(self, layer):
        """Appends a layer (object or dict) to the chain."""
        layer = make_layer(layer, len(self.layers))
        self.layers.append(layer)
        return self

    def __len__(self):
        return len(self.layers)

    def normalize(self, x):
        if self.average_image is None:
            return x
        return subtract_average(x, self.average_image)

    def evaluate(self, x, dzdy=None, options=None, **kwargs):
        return self.executor.run(self.layers, self.normalize(x), dzdy, options, **kwargs)

    def parameters(self):
        # list of (layer_index, [params]) for layers that have any
        return [(i, L.params()) for i, L in enumerate(self.layers) if L.params()]

    def __repr__(self):
        body = ", ".join(L.kind for L in self.layers)
        return f"Network([{body}])"
