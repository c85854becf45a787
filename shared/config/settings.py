"""
Centralized settings management for the ride query service.

Settings load from the process environment and an optional .env file. The
PostgreSQL connection uses the conventional libpq variable names (PGHOST,
PGPORT, PGDATABASE, PGUSER, PGPASSWORD, PGSSLMODE) so the same environment
works for psql and for the service.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from .environment import Environment, get_environment
from .logging_config import LoggingConfig, get_default_logging_config


class DatabaseConfig(BaseModel):
    """PostgreSQL connection configuration."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    # Connection parameters
    host: str = Field(..., description="Database host")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    database: str = Field(..., description="Database name")
    schema_name: str = Field(default="public", description="Schema holding the ride tables")
    sslmode: str = Field(default="prefer", description="libpq sslmode")

    # Authentication
    username: str = Field(..., description="Database username")
    password: SecretStr = Field(..., description="Database password")

    # Pool configuration
    max_connections: int = Field(default=20, ge=1, le=100)
    idle_timeout_seconds: int = Field(default=30, ge=1, le=3600)
    connect_timeout_seconds: int = Field(default=2, ge=1, le=300)

    def get_connection_url(self) -> URL:
        """SQLAlchemy URL for the psycopg2 dialect."""
        return URL.create(
            "postgresql+psycopg2",
            username=self.username,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def get_engine_options(self) -> Dict[str, Any]:
        """Keyword arguments for sqlalchemy.create_engine."""
        return {
            'pool_size': self.max_connections,
            'max_overflow': 0,
            'pool_timeout': self.connect_timeout_seconds,
            'pool_recycle': self.idle_timeout_seconds,
            'pool_pre_ping': True,
            'connect_args': {
                'connect_timeout': self.connect_timeout_seconds,
                'sslmode': self.sslmode,
                'application_name': 'ride-query-service',
            },
        }


class DomainConventions(BaseModel):
    """Fixed table and column names of the ride domain."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    fact_table: str = "trips"
    fact_start_column: str = "started_at"
    fact_end_column: str = "ended_at"
    fact_station_key: str = "start_station_id"
    fact_gender_column: str = "rider_gender"

    station_table: str = "stations"
    station_key: str = "station_id"
    station_name_column: str = "station_name"

    weather_table: str = "daily_weather"
    weather_date_column: str = "weather_date"
    precipitation_column: str = "precipitation_mm"

    location_pattern: str = "%Congress Avenue%"


class CompilerConfig(BaseModel):
    """Tuning for the question compiler."""
    model_config = ConfigDict(extra='forbid')

    min_similarity: float = Field(default=0.3, ge=0.0, le=1.0)
    # Year assumed by "first week of <month>" when the question names none.
    reference_year: int = Field(default=2025, ge=1900, le=2100)
    match_cache_size: int = Field(default=1024, ge=1, le=1_000_000)
    conventions: DomainConventions = Field(default_factory=DomainConventions)


class ServerConfig(BaseModel):
    """HTTP transport configuration."""
    model_config = ConfigDict(extra='forbid')

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class Settings(BaseSettings):
    """
    Main application settings.

    Flat PG* and HOST/PORT fields come straight from the environment; the
    nested component configurations are derived from them unless supplied
    explicitly (for example COMPILER__REFERENCE_YEAR=2026).
    """
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_nested_delimiter='__',
        extra='ignore',
        case_sensitive=False
    )

    # Environment
    environment: Environment = Field(default_factory=get_environment)

    # PostgreSQL connection
    PGHOST: str = Field(default="")
    PGPORT: int = Field(default=5432)
    PGDATABASE: str = Field(default="")
    PGUSER: str = Field(default="")
    PGPASSWORD: SecretStr = Field(default=SecretStr(""))
    PGSSLMODE: str = Field(default="prefer")

    # HTTP server
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)

    # Component configurations
    database: Optional[DatabaseConfig] = None
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    server: Optional[ServerConfig] = None
    logging: LoggingConfig = Field(default_factory=get_default_logging_config)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        if self.database is None and not self.validate_required_credentials():
            self.database = DatabaseConfig(
                host=self.PGHOST,
                port=self.PGPORT,
                database=self.PGDATABASE,
                username=self.PGUSER,
                password=self.PGPASSWORD,
                sslmode=self.PGSSLMODE,
            )

        if self.server is None:
            self.server = ServerConfig(host=self.HOST, port=self.PORT)

    @field_validator('environment', mode='before')
    @classmethod
    def parse_environment(cls, v):
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    def validate_required_credentials(self) -> List[str]:
        """Return the names of required PG* variables that are missing."""
        missing = []
        if not self.PGHOST:
            missing.append('PGHOST')
        if not self.PGDATABASE:
            missing.append('PGDATABASE')
        if not self.PGUSER:
            missing.append('PGUSER')
        if not self.PGPASSWORD.get_secret_value():
            missing.append('PGPASSWORD')
        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get global settings instance.

    Missing database credentials are only logged here; the compiler works
    without a database and the server refuses to start on its own.
    """
    settings = Settings()

    logger = logging.getLogger(__name__)
    missing_creds = settings.validate_required_credentials()
    if missing_creds:
        logger.warning(f"Missing database credentials: {', '.join(missing_creds)}")
    logger.info(f"Settings loaded for environment: {settings.environment.value}")

    return settings


def reload_settings() -> Settings:
    """Reload settings from environment/files."""
    get_settings.cache_clear()
    return get_settings()
