"""
Configuration management for the ride query service.

Settings come from environment variables and .env files; logging is set up
once per process through setup_logging().
"""

from .settings import (
    Settings,
    get_settings,
    reload_settings,
    DatabaseConfig,
    CompilerConfig,
    DomainConventions,
    ServerConfig,
)
from .logging_config import setup_logging, LoggingConfig
from .environment import Environment, get_environment

__all__ = [
    'Settings',
    'get_settings',
    'reload_settings',
    'DatabaseConfig',
    'CompilerConfig',
    'DomainConventions',
    'ServerConfig',
    'setup_logging',
    'LoggingConfig',
    'Environment',
    'get_environment'
]

__version__ = '1.0.0'
