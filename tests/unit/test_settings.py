"""
Unit tests for the configuration settings module.

Tests cover:
- Valid configuration loading and defaults
- Field validation for cookie and store settings
- Startup validation (missing secret, unusable save path, production rules)
- Environment-specific configuration loading
"""

import os
import pytest
from unittest.mock import patch

from config.settings import (
    Settings,
    Environment,
    ConfigurationError,
    get_settings,
    validate_startup,
    clear_settings_cache,
)
from session.boundary import CookieAttributes


@pytest.fixture(autouse=True)
def reset_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def valid_env_vars():
    """Provide valid environment variables for testing."""
    return {
        "SESSION_SECRET": "k1",
        "ENVIRONMENT": "development",
    }


class TestSettings:
    """Tests for the Settings class."""

    def test_valid_configuration_loads_successfully(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            settings = Settings(_env_file=None)

            assert settings.session_secret == "k1"
            assert settings.environment == Environment.DEVELOPMENT

    def test_default_values_are_applied(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            settings = Settings(_env_file=None)

            assert settings.session_cookie_name == "KITSESSID"
            assert settings.session_duration_seconds == 604800
            assert settings.session_cookie_path == "/"
            assert settings.session_cookie_domain is None
            assert settings.session_cookie_secure is False
            assert settings.session_cookie_http_only is True
            assert settings.session_cookie_same_site == "lax"
            assert settings.session_store_type == "memory"
            assert settings.session_gc_interval_seconds == 3600
            assert settings.session_gc_probability == 1.0
            assert settings.log_level == "INFO"
            assert settings.otel_service_name == "session-service"

    def test_secret_may_be_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert Settings(_env_file=None).session_secret is None

    def test_blank_secret_is_treated_as_unset(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_SECRET": "   "}, clear=True):
            assert Settings(_env_file=None).session_secret is None

    def test_invalid_log_level_raises_error(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "LOG_LEVEL": "INVALID_LEVEL"}, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings(_env_file=None)

            assert "log_level" in str(exc_info.value).lower()

    def test_log_level_is_case_insensitive(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "LOG_LEVEL": "debug"}, clear=True):
            assert Settings(_env_file=None).log_level == "DEBUG"

    @pytest.mark.parametrize("name", ["", "   ", "my session", "a;b", "a=b"])
    def test_invalid_cookie_name_raises_error(self, valid_env_vars, name):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_COOKIE_NAME": name}, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings(_env_file=None)

            assert "session_cookie_name" in str(exc_info.value).lower()

    def test_same_site_is_normalized(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_COOKIE_SAME_SITE": "Strict"}, clear=True):
            assert Settings(_env_file=None).session_cookie_same_site == "strict"

    def test_invalid_same_site_raises_error(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_COOKIE_SAME_SITE": "sometimes"}, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings(_env_file=None)

            assert "same_site" in str(exc_info.value).lower()

    def test_same_site_none_requires_secure(self, valid_env_vars):
        env_vars = {**valid_env_vars, "SESSION_COOKIE_SAME_SITE": "none"}

        with patch.dict(os.environ, env_vars, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings(_env_file=None)
            assert "secure" in str(exc_info.value).lower()

        with patch.dict(os.environ, {**env_vars, "SESSION_COOKIE_SECURE": "true"}, clear=True):
            assert Settings(_env_file=None).session_cookie_same_site == "none"

    def test_invalid_store_type_raises_error(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_STORE_TYPE": "memcached"}, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings(_env_file=None)

            assert "session_store_type" in str(exc_info.value).lower()

    def test_redis_store_requires_url(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_STORE_TYPE": "redis"}, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings(_env_file=None)

            assert "redis_url" in str(exc_info.value).lower()

    def test_redis_store_with_url(self, valid_env_vars):
        env_vars = {
            **valid_env_vars,
            "SESSION_STORE_TYPE": "REDIS",
            "REDIS_URL": "redis://localhost:6379/0",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

            assert settings.session_store_type == "redis"
            assert settings.redis_url == "redis://localhost:6379/0"

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_non_positive_duration_raises_error(self, valid_env_vars, value):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_DURATION_SECONDS": value}, clear=True):
            with pytest.raises(Exception):
                Settings(_env_file=None)

    @pytest.mark.parametrize("value", ["-0.1", "1.5"])
    def test_gc_probability_out_of_range_raises_error(self, valid_env_vars, value):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_GC_PROBABILITY": value}, clear=True):
            with pytest.raises(Exception):
                Settings(_env_file=None)

    def test_cookie_attributes(self, valid_env_vars):
        env_vars = {
            **valid_env_vars,
            "SESSION_COOKIE_PATH": "/app",
            "SESSION_COOKIE_DOMAIN": "example.com",
            "SESSION_COOKIE_SECURE": "true",
            "SESSION_COOKIE_SAME_SITE": "strict",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            attributes = Settings(_env_file=None).cookie_attributes()

        assert attributes == CookieAttributes(
            path="/app",
            domain="example.com",
            secure=True,
            http_only=True,
            same_site="strict",
        )


class TestConfigurationError:
    """Tests for the ConfigurationError exception."""

    def test_error_message_includes_missing_fields(self):
        error = ConfigurationError(
            "Configuration failed",
            missing_fields=["session_secret"]
        )

        assert "session_secret" in str(error)
        assert "Missing required fields" in str(error)

    def test_error_message_includes_invalid_fields(self):
        error = ConfigurationError(
            "Configuration failed",
            invalid_fields={"session_store_type": "unknown store"}
        )

        assert "session_store_type" in str(error)
        assert "unknown store" in str(error)

    def test_get_settings_raises_configuration_error_on_invalid_config(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "SESSION_STORE_TYPE": "memcached"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                get_settings()

        assert "session_store_type" in exc_info.value.invalid_fields

    def test_get_settings_is_cached(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            assert get_settings() is get_settings()


class TestValidateStartup:
    """Tests for the validate_startup function."""

    def test_validate_startup_succeeds_with_valid_config(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            validate_startup()

    def test_validate_startup_requires_secret(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                validate_startup()

        assert exc_info.value.missing_fields == ["session_secret"]

    def test_validate_startup_rejects_file_save_path(self, valid_env_vars, tmp_path):
        not_a_directory = tmp_path / "sessions"
        not_a_directory.write_text("")
        env_vars = {
            **valid_env_vars,
            "SESSION_STORE_TYPE": "file",
            "SESSION_SAVE_PATH": str(not_a_directory),
        }

        with patch.dict(os.environ, env_vars, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                validate_startup()

        assert "session_save_path" in exc_info.value.invalid_fields

    def test_validate_startup_accepts_missing_save_path(self, valid_env_vars, tmp_path):
        env_vars = {
            **valid_env_vars,
            "SESSION_STORE_TYPE": "file",
            "SESSION_SAVE_PATH": str(tmp_path / "not-created-yet"),
        }

        with patch.dict(os.environ, env_vars, clear=True):
            validate_startup()

    def test_validate_startup_production_rules(self, valid_env_vars):
        env_vars = {**valid_env_vars, "ENVIRONMENT": "production"}

        with patch.dict(os.environ, env_vars, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                validate_startup()

        assert "session_cookie_secure" in exc_info.value.invalid_fields
        assert "session_store_type" in exc_info.value.invalid_fields

    def test_validate_startup_production_succeeds(self, valid_env_vars):
        env_vars = {
            **valid_env_vars,
            "ENVIRONMENT": "production",
            "SESSION_COOKIE_SECURE": "true",
            "SESSION_STORE_TYPE": "redis",
            "REDIS_URL": "redis://localhost:6379/0",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            validate_startup()


class TestEnvironmentSpecificConfiguration:
    """Tests for environment-specific configuration loading."""

    def test_detect_environment_from_env_var(self):
        from config.settings import _detect_environment

        with patch.dict(os.environ, {"ENVIRONMENT": "development"}, clear=True):
            assert _detect_environment() == Environment.DEVELOPMENT

        with patch.dict(os.environ, {"ENVIRONMENT": "staging"}, clear=True):
            assert _detect_environment() == Environment.STAGING

        with patch.dict(os.environ, {"ENVIRONMENT": "PRODUCTION"}, clear=True):
            assert _detect_environment() == Environment.PRODUCTION

    def test_detect_environment_defaults_to_development(self):
        from config.settings import _detect_environment

        with patch.dict(os.environ, {}, clear=True):
            assert _detect_environment() == Environment.DEVELOPMENT

    def test_detect_environment_handles_invalid_value(self):
        from config.settings import _detect_environment

        with patch.dict(os.environ, {"ENVIRONMENT": "invalid_env"}, clear=True):
            assert _detect_environment() == Environment.DEVELOPMENT

    @pytest.mark.parametrize("environment,expected", [
        (Environment.DEVELOPMENT, ".env.development"),
        (Environment.STAGING, ".env.staging"),
        (Environment.PRODUCTION, ".env.production"),
    ])
    def test_get_env_files(self, environment, expected):
        from config.settings import _get_env_files

        assert _get_env_files(environment) == (".env", expected)

    def test_create_settings_for_environment(self, valid_env_vars):
        from config.settings import create_settings_for_environment

        with patch.dict(os.environ, valid_env_vars, clear=True):
            settings = create_settings_for_environment(Environment.STAGING)
            assert isinstance(settings, Settings)
            assert settings.session_secret == "k1"

    def test_create_settings_auto_detects_environment(self, valid_env_vars):
        from config.settings import create_settings_for_environment

        with patch.dict(os.environ, {**valid_env_vars, "ENVIRONMENT": "staging"}, clear=True):
            settings = create_settings_for_environment()
            assert settings.environment == Environment.STAGING

    def test_clear_settings_cache_allows_reload(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "LOG_LEVEL": "DEBUG"}, clear=True):
            assert get_settings().log_level == "DEBUG"

        clear_settings_cache()

        with patch.dict(os.environ, {**valid_env_vars, "LOG_LEVEL": "ERROR"}, clear=True):
            assert get_settings().log_level == "ERROR"
