"""Fitted sleepstudy models shared by the model tests.

Fits are module-scoped: each takes a fraction of a second but they are
used by many tests.
"""

import pytest

from lmmdeck.datasets import load_sleepstudy
from lmmdeck.models import lmer


@pytest.fixture(scope='module')
def fm1():
    """Random intercept, REML."""
    return lmer('Reaction ~ Days + (1 | Subject)', load_sleepstudy())


@pytest.fixture(scope='module')
def fm2():
    """Correlated random intercept and slope, REML."""
    return lmer('Reaction ~ Days + (Days | Subject)', load_sleepstudy())


@pytest.fixture(scope='module')
def fm3():
    """Uncorrelated random intercept and slope, REML."""
    return lmer('Reaction ~ Days + (Days || Subject)', load_sleepstudy())


@pytest.fixture(scope='module')
def fm1_ml():
    return lmer('Reaction ~ Days + (1 | Subject)', load_sleepstudy(), reml=False)


@pytest.fixture(scope='module')
def fm2_ml():
    return lmer('Reaction ~ Days + (Days | Subject)', load_sleepstudy(), reml=False)
