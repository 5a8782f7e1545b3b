from .Layer import Layer
from .Conv import Conv2D, ConvTranspose2D
from .Pool import Pool2D
from .Normalization import LocalResponseNorm, SpatialNorm, BatchNorm, NormOffset
from .Activations import ReLU, LeakyReLU, Sigmoid, Tanh, Softmax, Dropout
from .Losses import (
    LogLoss,
    SoftmaxLogLoss,
    MSELoss,
    BCELoss,
    PDist,
    CarliniWagnerLoss,
    ProbabilityMarginLoss,
    LOSS_KINDS,
)
from .Shape import Reshape, MulConst, Dot
from .Custom import CustomLayer
from ..errors import ConfigurationError

LAYER_TYPES = {
    cls.kind: cls
    for cls in (
        Conv2D, ConvTranspose2D, Pool2D, LocalResponseNorm, SpatialNorm, BatchNorm,
        NormOffset, ReLU, LeakyReLU, Sigmoid, Tanh, Softmax, Dropout, LogLoss,
        SoftmaxLogLoss, MSELoss, BCELoss, PDist, CarliniWagnerLoss,
        ProbabilityMarginLoss, Reshape, MulConst, Dot, CustomLayer,
    )
}

# names used by older network descriptions
ALIASES = {
    "reshape_theano": "reshape",
    "our_loss": "pmloss",
    "bnorm_custom": "bnorm",
    "myconv": "conv",
}

# dict key -> constructor argument
_RENAMES = {
    "rememberOutput": "remember_output",
    "class": "labels",
    "noRoot": "no_root",
    "my_moments": "moments",
}


def _weights(d, count):
    if "weights" in d:
        w = list(d.pop("weights"))
    else:
        # legacy separate fields
        w = [d.pop("filters", None), d.pop("biases", None)]
    return (w + [None] * count)[:count]


def make_layer(spec, index=None):
    """
    Build a Layer from a plain dict such as ``{"type": "conv", "weights": [W, b]}``.
    Layer instances pass through unchanged.
    """
    if isinstance(spec, Layer):
        return spec
    if not isinstance(spec, dict):
        raise ConfigurationError(f"cannot build a layer from {type(spec).__name__}", layer_index=index)
    d = dict(spec)
    raw_kind = d.pop("type", None)
    kind = ALIASES.get(raw_kind, raw_kind)
    if kind not in LAYER_TYPES:
        raise ConfigurationError(f"unknown layer type {raw_kind!r}", layer_index=index, kind=raw_kind)
    d = {_RENAMES.get(k, k): v for k, v in d.items()}

    if kind in ("conv", "deconv"):
        d["weights"], d["bias"] = _weights(d, 2)
        if kind == "deconv" and "pad" in d:
            d["crop"] = d.pop("pad")
        d.pop("mode", None)
    elif kind == "dot":
        d["weights"] = _weights(d, 1)[0]
    elif kind == "bnorm":
        d["weights"] = tuple(_weights(d, 2))
        if raw_kind == "bnorm_custom" or ("mu" in d and "v" in d):
            mu, v = d.pop("mu", None), d.pop("v", None)
            if mu is None or v is None:
                raise ConfigurationError("fixed statistics need both 'mu' and 'v'", layer_index=index, kind=kind)
            return BatchNorm.from_statistics(d.pop("weights"), mu, v, **d)
    elif kind == "bce" and "p" in d:
        d["target"] = d.pop("p")
    elif kind == "pdist" and "x0" in d:
        d["target"] = d.pop("x0")

    cls = LAYER_TYPES[kind]
    try:
        layer = cls(**d)
    except TypeError as e:
        raise ConfigurationError(str(e), layer_index=index, kind=kind) from e
    layer.validate(index)
    return layer


__all__ = [
    "Layer",
    "Conv2D",
    "ConvTranspose2D",
    "Pool2D",
    "LocalResponseNorm",
    "SpatialNorm",
    "BatchNorm",
    "NormOffset",
    "ReLU",
    "LeakyReLU",
    "Sigmoid",
    "Tanh",
    "Softmax",
    "Dropout",
    "LogLoss",
    "SoftmaxLogLoss",
    "MSELoss",
    "BCELoss",
    "PDist",
    "CarliniWagnerLoss",
    "ProbabilityMarginLoss",
    "Reshape",
    "MulConst",
    "Dot",
    "CustomLayer",
    "LOSS_KINDS",
    "LAYER_TYPES",
    "make_layer",
]
