from ..layers import make_layer
from ..errors import StateConsistencyError


class SGDOptimizer:
    """
    Applies the parameter gradients left in a record list by backward.

    Gradients of layer i are read from records[i + 1].parameter_gradients and
    matched against layer.params() in order; updates happen in place.
    """
    def __init__(self, layers, lr=1e-2, weight_decay=0.0, momentum=0.0):
        self.layers = [make_layer(l, i) for i, l in enumerate(layers)]
        self.lr = lr
        self.wd = weight_decay
        self.momentum = momentum
        self.velocity = {}  # (layer index, param index) -> buffer

    def step(self, records):
        for i, layer in enumerate(self.layers):
            grads = records[i + 1].parameter_gradients
            if grads is None:
                # not reached by backward (e.g. outside back_prop_depth)
                continue
            params = layer.params()
            if len(params) != len(grads):
                raise StateConsistencyError(
                    f"{len(grads)} gradients for {len(params)} parameters", layer_index=i, kind=layer.kind
                )
            for j, (p, g) in enumerate(zip(params, grads)):
                if self.wd != 0.0:
                    g = g + self.wd * p  # L2 weight decay
                if self.momentum:
                    v = self.velocity.get((i, j))
                    v = g.copy() if v is None else self.momentum * v + g
                    self.velocity[(i, j)] = v
                    g = v
                p -= self.lr * g

    def zero_grad(self, records):
        for rec in records:
            if rec.parameter_gradients is not None:
                for g in rec.parameter_gradients:
                    g[...] = 0.0

    def reset(self):
        self.velocity = {}

    def __repr__(self):
        return f"SGDOptimizer(lr={self.lr}, weight_decay={self.wd}, momentum={self.momentum})"

