"""
Configuration management for the session service.

This module provides centralized configuration loading and validation using
Pydantic settings. The session secret and store connection details are
loaded from environment variables or .env files.

- Load all secrets from environment variables or .env files
- Fail startup with a descriptive error message listing missing values
- Support environment-specific configuration files for development,
  staging, and production
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from session.boundary import CookieAttributes


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file
    overrides it.

    Args:
        environment: The target environment.

    Returns:
        Tuple of .env file paths to load.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")

    return (".env", env_specific_file)


class Settings(BaseSettings):
    """
    Session service settings loaded from environment variables.

    ``session_secret`` has no default. It may be left unset while loading
    settings (the manager then reports itself as not ready), but
    ``validate_startup()`` refuses to continue without it.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Session Configuration
    session_secret: Optional[str] = Field(
        default=None,
        description="Secret used to encrypt and authenticate session data"
    )
    session_cookie_name: str = Field(
        default="KITSESSID",
        description="Name of the cookie carrying the session identifier"
    )
    session_duration_seconds: int = Field(
        default=60 * 60 * 24 * 7,
        ge=1,
        description="Session lifetime in seconds (stored expiry and cookie max-age)"
    )

    # Cookie Attributes
    session_cookie_path: str = Field(
        default="/",
        description="Cookie Path attribute"
    )
    session_cookie_domain: Optional[str] = Field(
        default=None,
        description="Cookie Domain attribute"
    )
    session_cookie_secure: bool = Field(
        default=False,
        description="Cookie Secure attribute"
    )
    session_cookie_http_only: bool = Field(
        default=True,
        description="Cookie HttpOnly attribute"
    )
    session_cookie_same_site: Optional[str] = Field(
        default="lax",
        description="Cookie SameSite attribute (lax, strict, none)"
    )

    # Session Store Configuration
    session_store_type: str = Field(
        default="memory",
        description="Session store type: 'memory', 'file' or 'redis'"
    )
    session_save_path: str = Field(
        default="/tmp/sessions",
        description="Directory holding session files for the file store"
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for session storage"
    )

    # Garbage Collection
    session_gc_interval_seconds: int = Field(
        default=3600,
        ge=0,
        description="Minimum number of seconds between GC sweeps"
    )
    session_gc_probability: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Probability that an eligible GC call sweeps"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    otel_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry collector endpoint URL"
    )
    otel_service_name: str = Field(
        default="session-service",
        description="Service name for OpenTelemetry traces"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank secret as unset."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("session_cookie_name")
    @classmethod
    def validate_session_cookie_name(cls, v: str) -> str:
        """Validate that the cookie name is a non-empty token."""
        v = v.strip()
        if not v:
            raise ValueError("session_cookie_name cannot be empty")
        if any(c in v for c in " \t;,="):
            raise ValueError("session_cookie_name must not contain whitespace, ';', ',' or '='")
        return v

    @field_validator("session_cookie_same_site")
    @classmethod
    def validate_session_cookie_same_site(cls, v: Optional[str]) -> Optional[str]:
        """Validate the SameSite attribute."""
        if v is None:
            return None
        v = v.strip().lower()
        if v not in {"lax", "strict", "none"}:
            raise ValueError("session_cookie_same_site must be 'lax', 'strict' or 'none'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("session_store_type")
    @classmethod
    def validate_session_store_type(cls, v: str) -> str:
        """Validate that session_store_type names a known store."""
        v = v.strip().lower()
        if v not in {"memory", "file", "redis"}:
            raise ValueError("session_store_type must be 'memory', 'file' or 'redis'")
        return v

    @model_validator(mode="after")
    def validate_session_store_config(self) -> "Settings":
        """Validate that the selected store has its connection details."""
        if self.session_store_type == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when session_store_type is 'redis'")
        if self.session_cookie_same_site == "none" and not self.session_cookie_secure:
            raise ValueError("session_cookie_same_site 'none' requires session_cookie_secure")
        return self

    def cookie_attributes(self) -> CookieAttributes:
        """Cookie attributes to pass through to the boundary."""
        return CookieAttributes(
            path=self.session_cookie_path,
            domain=self.session_cookie_domain,
            secure=self.session_cookie_secure,
            http_only=self.session_cookie_http_only,
            same_site=self.session_cookie_same_site,
        )


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Factory function to create Settings for a specific environment.

    Args:
        environment: Optional environment override. If not provided, detected from
                    the ENVIRONMENT variable.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If settings are invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [env_file for env_file in env_files if Path(env_file).exists()]
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        # Extract field-level errors from Pydantic ValidationError
        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', [])) or "settings"
                error_type = error.get('type', '')
                error_msg = error.get('msg', str(error))

                if error_type == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the settings singleton, loading it on first use.

    Raises:
        ConfigurationError: If settings are invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None


def validate_startup() -> None:
    """
    Validate settings before the application accepts requests.

    Raises:
        ConfigurationError: If the session secret is missing, the file
            store directory is unusable, or production cookies are not
            marked Secure.
    """
    settings = get_settings()

    if not settings.session_secret:
        raise ConfigurationError(
            "Session secret must be configured before handling requests",
            missing_fields=["session_secret"]
        )

    validation_errors = {}

    if settings.session_store_type == "file":
        save_path = Path(settings.session_save_path)
        if save_path.exists() and not save_path.is_dir():
            validation_errors["session_save_path"] = (
                f"Session save path is not a directory: {settings.session_save_path}"
            )

    if settings.environment == Environment.PRODUCTION:
        if not settings.session_cookie_secure:
            validation_errors["session_cookie_secure"] = (
                "Production environment requires Secure session cookies"
            )
        if settings.session_store_type == "memory":
            validation_errors["session_store_type"] = (
                "The in-memory store loses sessions on restart; "
                "use 'file' or 'redis' in production"
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )

