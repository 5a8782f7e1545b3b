import numpy as np
import pytest

from simplenn import PipelineExecutor


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def executor():
    return PipelineExecutor()


def numeric_grad(f, x, eps=1e-6):
    """Central differences of the scalar f() w.r.t. every entry of x (perturbed in place)."""
    grad = np.zeros_like(x)
    it = np.nditer(x, flags=["multi_index"])
    for _ in it:
        idx = it.multi_index
        old = x[idx]
        x[idx] = old + eps
        fp = f()
        x[idx] = old - eps
        fm = f()
        x[idx] = old
        grad[idx] = (fp - fm) / (2 * eps)
    return grad


def away_from_zero(rng, shape, low=0.1):
    """Random values with |v| >= low, so kinks at 0 are never crossed."""
    return rng.uniform(low, 1.0, size=shape) * rng.choice([-1.0, 1.0], size=shape)
