"""
pytest configuration and shared fixtures.
"""

import matplotlib

matplotlib.use('Agg')

import matplotlib.pyplot as plt
import numpy as np
import pytest

from lmmdeck.datasets import load_sleepstudy, simulate_sleepstudy


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def sleepstudy():
    """The sleepstudy data frame (fresh copy per test)."""
    return load_sleepstudy()


@pytest.fixture
def simulated(rng):
    """Sleepstudy-shaped data drawn from the random-slope model."""
    return simulate_sleepstudy(rng, n_subjects=30, n_days=8)


@pytest.fixture(autouse=True)
def close_figures():
    """Close matplotlib figures opened by a test."""
    yield
    plt.close('all')
