import numpy as np
import pytest


@pytest.fixture
def steps():
    """Ten observations: a = 1..10, y switches from 0 to 1 after a = 5."""
    return {"y": np.repeat([0.0, 1.0], 5), "a": np.arange(1.0, 11.0)}


@pytest.fixture
def noisy_choices():
    """Binary choices drawn from a softmax around nu = 5 with tau = 1."""
    rng = np.random.default_rng(0)
    a = rng.uniform(0.0, 10.0, size=300)
    p = 1.0 / (1.0 + np.exp(-(a - 5.0) / 1.0))
    y = (rng.uniform(size=a.shape) < p).astype(float)
    return {"y": y, "a": a}


@pytest.fixture
def noisy_distances():
    """Continuous responses y = a - 4 + N(0, 0.5)."""
    rng = np.random.default_rng(1)
    a = rng.uniform(0.0, 10.0, size=200)
    y = a - 4.0 + rng.normal(0.0, 0.5, size=a.shape)
    return {"y": y, "a": a}
