"""
Tests for DeckConfig.

Validates:
    - Defaults and field validation
    - from_mapping() rejects unknown keys
    - from_env() reads LMMDECK_* variables, overrides win
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from lmmdeck.core.config import ENV_FIGURE_DPI, ENV_OUTPUT_DIR, DeckConfig
from lmmdeck.core.exceptions import ValidationError


class TestDefaults:

    def test_default_values(self):
        config = DeckConfig()
        assert config.output_dir == Path('build')
        assert config.formats == ('md',)
        assert config.figure_dpi == 120
        assert config.optimizer == 'lbfgs'
        assert config.figure_dir == Path('build') / 'figures'

    def test_frozen(self):
        config = DeckConfig()
        with pytest.raises(FrozenInstanceError):
            config.figure_dpi = 300

    def test_coerces_path_and_formats(self):
        config = DeckConfig(output_dir='out', formats=['md', 'html'])
        assert config.output_dir == Path('out')
        assert config.formats == ('md', 'html')


class TestValidation:

    @pytest.mark.parametrize("kwargs, match", [
        ({'formats': ()}, "at least one"),
        ({'formats': ('pdf',)}, "unsupported"),
        ({'figure_format': 'jpg'}, "figure_format"),
        ({'figure_dpi': 0}, "figure_dpi"),
        ({'figure_dpi': 72.5}, "figure_dpi"),
        ({'optimizer': 'bobyqa'}, "optimizer"),
        ({'singular_tol': 0.0}, "singular_tol"),
    ])
    def test_invalid_fields(self, kwargs, match):
        with pytest.raises(ValidationError, match=match):
            DeckConfig(**kwargs)


class TestConstructors:

    def test_from_mapping(self):
        config = DeckConfig.from_mapping({'figure_dpi': 200, 'formats': ['html']})
        assert config.figure_dpi == 200
        assert config.formats == ('html',)

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ValidationError, match="Unknown config keys \\['dpi'\\]"):
            DeckConfig.from_mapping({'dpi': 200})

    def test_from_env(self):
        env = {ENV_OUTPUT_DIR: '/tmp/deck', ENV_FIGURE_DPI: '90'}
        config = DeckConfig.from_env(env)
        assert config.output_dir == Path('/tmp/deck')
        assert config.figure_dpi == 90

    def test_overrides_win_and_none_ignored(self):
        env = {ENV_FIGURE_DPI: '90'}
        config = DeckConfig.from_env(env, figure_dpi=150, title=None)
        assert config.figure_dpi == 150
        assert config.title is None

    def test_from_env_bad_dpi(self):
        with pytest.raises(ValidationError, match=ENV_FIGURE_DPI):
            DeckConfig.from_env({ENV_FIGURE_DPI: 'high'})

    def test_with_overrides(self):
        config = DeckConfig().with_overrides(figure_format='svg')
        assert config.figure_format == 'svg'
        with pytest.raises(ValidationError):
            DeckConfig().with_overrides(figure_format='gif')
