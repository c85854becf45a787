#!/usr/bin/env python3
"""
PostgreSQL Schema Inspector
===========================

Reads the tables and columns of the ride schema from information_schema and
hands them to the query service as a SchemaSnapshot.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.schemas.query_models import SchemaSnapshot

from .connection_manager import PostgresConnectionManager
from .errors import SchemaUnavailableError


SCHEMA_QUERY = text(
    "SELECT table_name, column_name, data_type, is_nullable "
    "FROM information_schema.columns "
    "WHERE table_schema = :schema_name "
    "ORDER BY table_name, ordinal_position"
)


class PostgresSchemaInspector:
    """Schema provider backed by information_schema.columns."""

    def __init__(self, connection_manager: PostgresConnectionManager, schema_name: str = "public"):
        self.connection_manager = connection_manager
        self.schema_name = schema_name
        self.logger = logging.getLogger("PostgresSchemaInspector")

    async def get_schema(self) -> SchemaSnapshot:
        self.logger.info(f"Loading schema '{self.schema_name}'")
        try:
            rows = await self.connection_manager.run_in_thread(self._fetch_rows)
        except SQLAlchemyError as e:
            self.logger.error(f"Schema query failed: {e}")
            raise SchemaUnavailableError(f"Failed to load database schema: {getattr(e, 'orig', None) or e}") from e

        snapshot = SchemaSnapshot.from_rows(rows)
        if snapshot.is_empty:
            raise SchemaUnavailableError(f"No tables found in schema '{self.schema_name}'")

        self.logger.info(f"Loaded {len(snapshot.tables)} tables: {', '.join(snapshot.table_names())}")
        return snapshot

    def _fetch_rows(self) -> List[Dict[str, Any]]:
        with self.connection_manager.engine.connect() as connection:
            result = connection.execute(SCHEMA_QUERY, {'schema_name': self.schema_name})
            return [dict(row) for row in result.mappings()]


class StaticSchemaProvider:
    """Serves a fixed snapshot, e.g. one read from a schema file."""

    def __init__(self, snapshot: SchemaSnapshot):
        self.snapshot = snapshot

    async def get_schema(self) -> SchemaSnapshot:
        return self.snapshot
