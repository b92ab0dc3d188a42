"""
Tests for clusterview/shared/core/config.py - Configuration management
"""
import pytest
from unittest.mock import patch
from pydantic import ValidationError

from clusterview.shared.core.config import Settings, get_settings, reload_settings_from_environment


class TestSettingsDefaults:
    def test_defaults_without_environment(self):
        """Defaults apply when no environment or .env values are present."""
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.GANGLIA_COLLECTOR_URL == "http://localhost"
        assert settings.GANGLIA_TIMEOUT_SECONDS == 5.0
        assert settings.GANGLIA_COMPONENT_NAMESPACES == {}
        assert settings.METRIC_DESCRIPTORS_PATH is None
        assert settings.is_production is False

    def test_namespace_maps_parse_from_json_env(self):
        env = {
            "GANGLIA_COMPONENT_NAMESPACES": '{"NAMENODE": "GridNN"}',
            "GANGLIA_CLUSTER_NAMESPACES": '{"c1": "GridC1"}',
        }
        with patch.dict("os.environ", env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.GANGLIA_COMPONENT_NAMESPACES == {"NAMENODE": "GridNN"}
        assert settings.GANGLIA_CLUSTER_NAMESPACES == {"c1": "GridC1"}


class TestSettingsValidation:
    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"GANGLIA_COLLECTOR_URL": "ftp://ganglia"}, "GANGLIA_COLLECTOR_URL"),
            ({"GANGLIA_TIMEOUT_SECONDS": 0}, "GANGLIA_TIMEOUT_SECONDS must be > 0"),
            ({"GANGLIA_TIMEOUT_SECONDS": 120}, "GANGLIA_TIMEOUT_SECONDS must be <= 60"),
            ({"GANGLIA_MAX_CONCURRENCY": 0}, "GANGLIA_MAX_CONCURRENCY"),
            ({"GANGLIA_HOST_NAMESPACE": "  "}, "GANGLIA_HOST_NAMESPACE"),
            ({"STORE_TIMEOUT_SECONDS": -1}, "STORE_TIMEOUT_SECONDS"),
        ],
    )
    def test_invalid_values_are_rejected(self, overrides, message):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValidationError) as exc:
                Settings(_env_file=None, **overrides)

        assert message in str(exc.value)

    def test_testing_flag_forbidden_in_production(self):
        """TESTING must never leak into production runtimes."""
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None, ENVIRONMENT="production", TESTING=True)

            settings = Settings(_env_file=None, ENVIRONMENT="production")
        assert settings.is_production


class TestSettingsCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reload_picks_up_environment_changes(self, monkeypatch):
        before = get_settings()
        monkeypatch.setenv("GANGLIA_MAX_CONCURRENCY", "3")

        refreshed = reload_settings_from_environment()

        assert refreshed is not before
        assert refreshed.GANGLIA_MAX_CONCURRENCY == 3
        assert get_settings() is refreshed
