from .Layer import Layer
from ..helpers.Backend import backend


class _ClassLoss(Layer):
    """Losses driven by integer class labels, shaped like x without its channel axis."""
    required = ("labels",)

    def __init__(self, labels, **kwargs):
        super().__init__(**kwargs)
        self.labels = backend.ensure_array(labels).astype("int64") if labels is not None else None


class _TargetLoss(Layer):
    """Losses comparing x against a target tensor of the same shape."""
    required = ("target",)

    def __init__(self, target, **kwargs):
        super().__init__(**kwargs)
        self.target = backend.float_array(target) if target is not None else None


class LogLoss(_ClassLoss):
    """-sum(log x[label]); x holds class probabilities."""
    kind = "loss"


class SoftmaxLogLoss(_ClassLoss):
    """Softmax followed by log-loss, fused for numerical stability."""
    kind = "softmaxloss"


class CarliniWagnerLoss(_ClassLoss):
    """sum over items of max(z[label] - max_{j != label} z[j], -kappa)."""
    kind = "cwloss"

    def __init__(self, labels, kappa=0.0, **kwargs):
        super().__init__(labels, **kwargs)
        self.kappa = float(kappa)


class ProbabilityMarginLoss(_ClassLoss):
    """sum over items of p[label] - max_{j != label} p[j], with p = softmax(z)."""
    kind = "pmloss"


class MSELoss(_TargetLoss):
    kind = "mseloss"


class BCELoss(_TargetLoss):
    """Binary cross-entropy of probabilities x against targets in [0, 1]."""
    kind = "bce"


class PDist(_TargetLoss):
    """
    p-distance between x and target along the channel axis, one value per
    item and location. With ``no_root`` the distance is raised to the p-th power.
    """
    kind = "pdist"

    def __init__(self, target, p=2.0, no_root=False, epsilon=1e-6, **kwargs):
        super().__init__(target, **kwargs)
        self.p = float(p)
        self.no_root = bool(no_root)
        self.epsilon = float(epsilon)


LOSS_KINDS = frozenset(
    cls.kind
    for cls in (LogLoss, SoftmaxLogLoss, MSELoss, BCELoss, PDist, CarliniWagnerLoss, ProbabilityMarginLoss)
)
