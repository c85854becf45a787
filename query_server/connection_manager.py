#!/usr/bin/env python3
"""
PostgreSQL Connection Manager
=============================

Owns the SQLAlchemy engine and its connection pool. Database calls are
blocking; callers run them in worker threads through run_in_thread() so the
event loop stays free while a query is in flight.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from shared.config.settings import DatabaseConfig
from shared.utils.metrics import get_metrics_collector


T = TypeVar('T')


def create_db_engine(db_config: DatabaseConfig) -> Engine:
    """Pooled engine for the configured database."""
    return create_engine(db_config.get_connection_url(), **db_config.get_engine_options())


class PostgresConnectionManager:
    """Lifecycle and health of the pooled PostgreSQL engine."""

    HEALTH_CHECK_QUERY = "SELECT 1"

    def __init__(self, db_config: Optional[DatabaseConfig] = None, engine: Optional[Engine] = None):
        if db_config is None and engine is None:
            raise ValueError("Either a database configuration or an engine is required")
        self.db_config = db_config
        self._engine = engine
        self.logger = logging.getLogger("PostgresConnectionManager")
        self.metrics = get_metrics_collector()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_db_engine(self.db_config)
        return self._engine

    async def initialize(self) -> None:
        """Create the pool and prove one connection works."""
        target = f"{self.db_config.host}:{self.db_config.port}/{self.db_config.database}" if self.db_config else "engine"
        self.logger.info(f"Connecting to PostgreSQL at {target}")
        await self.run_in_thread(self._ping)
        self.metrics.counter("database.connections.established").increment()
        self.logger.info("PostgreSQL connection pool ready")

    async def is_healthy(self) -> bool:
        try:
            await self.run_in_thread(self._ping)
            return True
        except SQLAlchemyError as e:
            self.logger.warning(f"Health check failed: {e}")
            return False

    async def run_in_thread(self, func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(func, *args)

    async def cleanup(self) -> None:
        """Close every pooled connection."""
        if self._engine is not None:
            self.logger.info("Disposing PostgreSQL connection pool")
            await self.run_in_thread(self._engine.dispose)
            self._engine = None

    def _ping(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text(self.HEALTH_CHECK_QUERY))
