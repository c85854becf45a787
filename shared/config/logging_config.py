"""
Logging configuration for the ride query service.

One call to setup_logging() installs console and rotating-file handlers on the
root logger. Every component then logs through logging.getLogger(<name>).
Each HTTP request is tagged with a request id that the formatters can emit.
"""

import contextvars
import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from .environment import get_environment


_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar('request_id', default=None)

_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'exc_info', 'exc_text',
    'stack_info', 'taskName', 'message', 'asctime',
}


class LoggingConfig(BaseModel):
    """Logging configuration model."""
    model_config = ConfigDict(extra='forbid')

    level: str = Field(default="INFO", description="Root logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
        description="Log message format"
    )
    date_format: str = Field(default="%Y-%m-%d %H:%M:%S")

    # File logging
    enable_file_logging: bool = Field(default=True)
    log_file_path: str = Field(default="logs/query_service.log")
    max_file_size_mb: int = Field(default=20, ge=1, le=1000)
    backup_count: int = Field(default=5, ge=1, le=50)

    # Console logging
    enable_console_logging: bool = Field(default=True)
    console_level: str = Field(default="INFO")

    # Structured logging
    enable_json_logging: bool = Field(default=False)

    component_levels: Dict[str, str] = Field(default_factory=dict)

    suppress_noisy_loggers: bool = Field(default=True)
    noisy_loggers: List[str] = Field(
        default_factory=lambda: [
            'sqlalchemy.engine',
            'sqlalchemy.pool',
            'uvicorn.access',
            'urllib3.connectionpool',
        ]
    )


class RequestIdFilter(logging.Filter):
    """Copies the current request id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or '-'
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS and not key.startswith('_'):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def set_request_id(request_id: Optional[str]) -> contextvars.Token:
    """Bind a request id to the current context; returns the reset token."""
    return _request_id.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    _request_id.reset(token)


def setup_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Setup centralized logging configuration.

    Args:
        config: Optional logging configuration. Environment-appropriate
                defaults are used when omitted.

    Returns:
        Root logger instance
    """
    if config is None:
        config = get_default_logging_config()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, config.level.upper()))

    if config.enable_file_logging:
        _setup_file_logging(root_logger, config)

    if config.enable_console_logging:
        _setup_console_logging(root_logger, config)

    for logger_name, level in config.component_levels.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, level.upper()))

    if config.suppress_noisy_loggers:
        for logger_name in config.noisy_loggers:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.info(f"Logging configured for environment: {get_environment().value}")
    return root_logger


def _build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.enable_json_logging:
        return StructuredFormatter()
    return logging.Formatter(fmt=config.format, datefmt=config.date_format)


def _setup_file_logging(logger: logging.Logger, config: LoggingConfig) -> None:
    """File logging with size-based rotation."""
    log_path = Path(config.log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=str(log_path),
        maxBytes=config.max_file_size_mb * 1024 * 1024,
        backupCount=config.backup_count,
        encoding='utf-8'
    )
    file_handler.setFormatter(_build_formatter(config))
    file_handler.setLevel(getattr(logging, config.level.upper()))
    file_handler.addFilter(RequestIdFilter())
    logger.addHandler(file_handler)


def _setup_console_logging(logger: logging.Logger, config: LoggingConfig) -> None:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_build_formatter(config))
    console_handler.setLevel(getattr(logging, config.console_level.upper()))
    console_handler.addFilter(RequestIdFilter())
    logger.addHandler(console_handler)


def get_default_logging_config() -> LoggingConfig:
    """Get default logging configuration based on environment."""
    env = get_environment()

    config_dict: Dict[str, Any] = {'level': env.log_level}

    if env.is_development:
        config_dict.update({
            'console_level': 'DEBUG',
            'enable_json_logging': False,
        })
    elif env.is_testing:
        config_dict.update({
            'console_level': 'WARNING',
            'enable_file_logging': False,
        })
    elif env.is_production:
        config_dict.update({
            'console_level': 'WARNING',
            'enable_json_logging': True,
            'max_file_size_mb': 100,
            'backup_count': 10
        })

    return LoggingConfig(**config_dict)
