"""
Tests for the Result[P] envelope.

Validates:
    - Generic type parameter works with arbitrary payload types
    - Frozen immutability
    - Default factories (warnings, provenance)
    - has_warning() method
    - Provenance metadata contains expected version keys
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from lmmdeck.core.result import Result, _default_provenance


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


def _result(**kwargs):
    defaults = dict(
        params=FakeParams(value=1.0),
        info={},
        timing=None,
        backend_name="statsmodels_mixedlm",
    )
    defaults.update(kwargs)
    return Result(**defaults)


# ═══════════════════════════════════════════════════════════════════════
# Construction and field access
# ═══════════════════════════════════════════════════════════════════════


class TestResultConstruction:
    """Result can be created with any payload type."""

    def test_basic_creation(self):
        result = _result(
            params=FakeParams(value=42.0),
            info={"method": "REML"},
            timing={"total_seconds": 0.01, "fit": 0.008},
        )
        assert result.params.value == 42.0
        assert result.info["method"] == "REML"
        assert result.timing["fit"] == 0.008
        assert result.backend_name == "statsmodels_mixedlm"

    def test_timing_none(self):
        assert _result().timing is None


# ═══════════════════════════════════════════════════════════════════════
# Defaults and immutability
# ═══════════════════════════════════════════════════════════════════════


class TestDefaults:

    def test_warnings_default_empty(self):
        result = _result()
        assert result.warnings == ()
        assert isinstance(result.warnings, tuple)

    def test_provenance_auto_generated(self):
        prov = _result().provenance
        assert "lmmdeck_version" in prov
        assert "numpy_version" in prov
        assert "statsmodels_version" in prov

    def test_provenance_explicit_override(self):
        result = _result(provenance={"custom": "metadata"})
        assert result.provenance == {"custom": "metadata"}


class TestImmutability:
    """Result is frozen: attributes cannot be reassigned."""

    def test_cannot_set_params(self):
        result = _result()
        with pytest.raises(FrozenInstanceError):
            result.params = FakeParams(value=2.0)

    def test_cannot_set_warnings(self):
        result = _result()
        with pytest.raises(FrozenInstanceError):
            result.warnings = ("new warning",)


# ═══════════════════════════════════════════════════════════════════════
# has_warning()
# ═══════════════════════════════════════════════════════════════════════


class TestHasWarning:

    def test_no_warnings_returns_false(self):
        assert _result().has_warning("anything") is False

    def test_substring_match(self):
        result = _result(warnings=("boundary (singular) fit: variance near zero",))
        assert result.has_warning("singular") is True
        assert result.has_warning("variance near zero") is True
        assert result.has_warning("converge") is False


class TestDefaultProvenance:

    def test_versions_are_strings(self):
        prov = _default_provenance()
        assert all(isinstance(v, str) for v in prov.values())

    def test_independent_copies(self):
        prov1 = _default_provenance()
        prov2 = _default_provenance()
        assert prov1 is not prov2
        assert prov1 == prov2
