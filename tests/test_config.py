"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from helped.config import HelpedConfig, load_config
from helped.constants import DEFAULT_RATE_LIMITS, RateLimitAction, RateLimitPreset


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, ""))
        assert cfg == HelpedConfig()
        assert cfg.rate_limits == DEFAULT_RATE_LIMITS

    def test_values(self, tmp_path):
        cfg = load_config(_write(tmp_path, (
            "timezone: Europe/Berlin\n"
            "rate_limit_sweep_seconds: 60\n"
            "api_port: 9000\n"
            "rate_limits:\n"
            "  applause:\n"
            "    limit: 20\n"
            "  RECORD_ACTION:\n"
            "    limit: 3\n"
            "    window_seconds: 3600\n"
        )))
        assert cfg.timezone == "Europe/Berlin"
        assert cfg.rate_limit_sweep_seconds == 60
        assert cfg.api_port == 9000
        assert cfg.rate_limits[RateLimitAction.APPLAUSE] == RateLimitPreset(20, 3600)
        assert cfg.rate_limits[RateLimitAction.RECORD_ACTION] == RateLimitPreset(3, 3600)
        # Untouched presets keep their defaults
        assert cfg.rate_limits[RateLimitAction.CREATE_ACCOUNT] == RateLimitPreset(5, 3600)

    def test_unknown_preset(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown rate limit preset"):
            load_config(_write(tmp_path, "rate_limits:\n  SHOUTING:\n    limit: 1\n"))

    def test_non_positive_limit(self, tmp_path):
        with pytest.raises(ValueError, match="positive"):
            load_config(_write(tmp_path, "rate_limits:\n  APPLAUSE:\n    limit: 0\n"))

    def test_non_positive_sweep(self, tmp_path):
        with pytest.raises(ValueError, match="rate_limit_sweep_seconds"):
            load_config(_write(tmp_path, "rate_limit_sweep_seconds: 0\n"))

    def test_defaults_are_not_shared(self):
        a, b = HelpedConfig(), HelpedConfig()
        assert a.rate_limits is not b.rate_limits
