"""Tests for random sampling resolution and process-wide settings."""

from __future__ import annotations

import logging

import pytest

from meshtrace.sampling import (
    legacy_sampling_value,
    resolve_random_sampling,
    validate_default_sampling,
)
from meshtrace.settings import TracingSettings


# =============================================================================
# Sampling Resolver Tests
# =============================================================================


class TestResolveRandomSampling:
    """Tests for resolve_random_sampling."""

    def test_provider_percentage_wins(self):
        """A nonzero directive percentage is used verbatim."""
        assert resolve_random_sampling(25.0, 50.0, 1.0) == 25.0

    def test_provider_percentage_not_clamped(self):
        """Directive percentages are not clamped."""
        assert resolve_random_sampling(150.0, 50.0, 1.0) == 150.0

    def test_zero_provider_percentage_means_unset(self):
        """Zero falls through to the legacy chain."""
        assert resolve_random_sampling(0.0, 50.0, 1.0) == 50.0
        assert resolve_random_sampling(0.0, 0.0, 7.0) == 7.0

    def test_legacy_sampling_overrides_default(self):
        """Legacy proxy sampling overrides the process default."""
        assert resolve_random_sampling(0.0, 30.0, 10.0) == 30.0

    def test_legacy_sampling_over_100_forced_to_one(self):
        """Legacy values above 100 become 1.0."""
        assert resolve_random_sampling(0.0, 101.0, 10.0) == 1.0

    def test_legacy_sampling_of_100_kept(self):
        """Exactly 100 is a valid legacy value."""
        assert legacy_sampling_value(100.0, 10.0) == 100.0

    def test_default_used_when_legacy_unset(self):
        """The default applies when legacy sampling is 0."""
        assert legacy_sampling_value(0.0, 42.0) == 42.0


class TestValidateDefaultSampling:
    """Tests for default sampling validation."""

    @pytest.mark.parametrize("value", [0.0, 1.0, 55.5, 100.0])
    def test_in_range(self, value):
        """In-range values are kept."""
        assert validate_default_sampling(value) == value

    @pytest.mark.parametrize("value", [-0.1, 100.1, 1000.0])
    def test_out_of_range(self, value, caplog):
        """Out-of-range values become 1.0 with a warning."""
        with caplog.at_level(logging.WARNING, logger="meshtrace.sampling"):
            assert validate_default_sampling(value) == 1.0
        assert "out of range" in caplog.text


# =============================================================================
# Settings Tests
# =============================================================================


class TestTracingSettings:
    """Tests for TracingSettings."""

    def test_defaults(self):
        """Default settings sample 1% with built-in tags."""
        settings = TracingSettings()
        assert settings.default_sampling == 1.0
        assert settings.enable_builtin_tags is True

    def test_invalid_default_sampling_replaced(self):
        """Invalid sampling is replaced when settings are created."""
        assert TracingSettings(default_sampling=250.0).default_sampling == 1.0

    def test_frozen(self):
        """Settings are immutable."""
        settings = TracingSettings()
        with pytest.raises(AttributeError):
            settings.default_sampling = 5.0  # type: ignore[misc]

    def test_from_env(self, monkeypatch):
        """Settings are read from environment variables."""
        monkeypatch.setenv("PILOT_TRACE_SAMPLING", "12.5")
        monkeypatch.setenv("PILOT_ENABLE_ISTIO_TAGS", "false")

        settings = TracingSettings.from_env()

        assert settings.default_sampling == 12.5
        assert settings.enable_builtin_tags is False

    def test_from_env_defaults(self, monkeypatch):
        """Missing variables fall back to defaults."""
        monkeypatch.delenv("PILOT_TRACE_SAMPLING", raising=False)
        monkeypatch.delenv("PILOT_ENABLE_ISTIO_TAGS", raising=False)

        settings = TracingSettings.from_env()

        assert settings.default_sampling == 1.0
        assert settings.enable_builtin_tags is True

    def test_from_env_invalid_values(self, monkeypatch):
        """Unparseable variables fall back to defaults."""
        monkeypatch.setenv("PILOT_TRACE_SAMPLING", "lots")
        monkeypatch.setenv("PILOT_ENABLE_ISTIO_TAGS", "maybe")

        settings = TracingSettings.from_env()

        assert settings.default_sampling == 1.0
        assert settings.enable_builtin_tags is True

    def test_from_env_out_of_range(self, monkeypatch):
        """Out-of-range environment sampling is forced to 1.0."""
        monkeypatch.setenv("PILOT_TRACE_SAMPLING", "200")
        assert TracingSettings.from_env().default_sampling == 1.0
