# Configuration module for the session service
from .settings import (
    ConfigurationError,
    Environment,
    Settings,
    get_settings,
    validate_startup,
)

__all__ = ["Settings", "Environment", "ConfigurationError", "get_settings", "validate_startup"]
