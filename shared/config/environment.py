"""
Environment detection for the ride query service.

The deployment environment decides logging defaults (console verbosity, JSON
output, file rotation) and whether the server runs with debug behaviour.
"""

import os
from enum import Enum
from functools import lru_cache
from typing import Any, Dict


ENVIRONMENT_VARIABLES = ('ENVIRONMENT', 'APP_ENV')


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @property
    def is_development(self) -> bool:
        return self == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        return self == Environment.TESTING

    @property
    def is_staging(self) -> bool:
        return self == Environment.STAGING

    @property
    def is_production(self) -> bool:
        return self == Environment.PRODUCTION

    @property
    def is_debug_enabled(self) -> bool:
        """Debug responses are only allowed outside deployed environments."""
        return self in {Environment.DEVELOPMENT, Environment.TESTING}

    @property
    def log_level(self) -> str:
        """Default root log level for the environment."""
        if self.is_production:
            return "WARNING"
        elif self.is_staging:
            return "INFO"
        else:
            return "DEBUG"


@lru_cache()
def get_environment() -> Environment:
    """
    Detect and return current environment.

    The first valid value among ENVIRONMENT and APP_ENV wins; anything
    unrecognised is skipped. Defaults to DEVELOPMENT.
    """
    for env_var in ENVIRONMENT_VARIABLES:
        env_value = os.getenv(env_var)
        if env_value:
            try:
                return Environment(env_value.strip().lower())
            except ValueError:
                continue

    return Environment.DEVELOPMENT


def get_environment_info() -> Dict[str, Any]:
    """Environment summary reported by the health endpoint."""
    env = get_environment()
    return {
        'environment': env.value,
        'debug_enabled': env.is_debug_enabled,
        'log_level': env.log_level,
    }
