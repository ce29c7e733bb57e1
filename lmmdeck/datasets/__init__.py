"""
Reference data for the deck.

Public API:
    load_sleepstudy()       — the lme4 sleepstudy table
    sleepstudy_description() — prose description of the study
    simulate_sleepstudy()   — draw data from the random-slope model
"""

from lmmdeck.datasets.sleepstudy import (
    SUBJECTS,
    N_DAYS,
    load_sleepstudy,
    sleepstudy_description,
)
from lmmdeck.datasets.simulate import simulate_sleepstudy

__all__ = [
    "SUBJECTS",
    "N_DAYS",
    "load_sleepstudy",
    "sleepstudy_description",
    "simulate_sleepstudy",
]
