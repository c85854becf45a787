#!/usr/bin/env python3
"""
PostgreSQL Query Executor
=========================

Runs compiled queries. Compiled text uses $n positional placeholders; they are
rewritten to SQLAlchemy named binds (:p1, :p2, ...) so the values are always
sent separately from the statement.
"""

import logging
import re
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.utils.metrics import get_metrics_collector

from .connection_manager import PostgresConnectionManager
from .errors import ExecutionFailureError


_POSITIONAL = re.compile(r'\$(\d+)')


def to_named_binds(sql: str, parameters: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """Rewrite $n to :pn and key the parameters accordingly."""
    statement = _POSITIONAL.sub(lambda m: f":p{m.group(1)}", sql)
    binds = {f"p{ordinal}": value for ordinal, value in enumerate(parameters, start=1)}
    return statement, binds


class PostgresQueryExecutor:
    """Executes read-only statements on pooled connections."""

    def __init__(self, connection_manager: PostgresConnectionManager):
        self.connection_manager = connection_manager
        self.logger = logging.getLogger("PostgresQueryExecutor")
        self.metrics = get_metrics_collector()

    async def execute(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        statement, binds = to_named_binds(sql, parameters)
        try:
            with self.metrics.timer("database.query.duration").time_context():
                rows = await self.connection_manager.run_in_thread(self._execute_sync, statement, binds)
        except SQLAlchemyError as e:
            self.metrics.counter("database.query.errors").increment()
            # The driver's own message; SQLAlchemy's str() appends the statement.
            message = str(getattr(e, 'orig', None) or e).strip()
            self.logger.error(f"Query execution failed: {message}")
            raise ExecutionFailureError(message) from e

        self.metrics.counter("database.query.success").increment()
        self.logger.debug(f"Query returned {len(rows)} rows")
        return rows

    def _execute_sync(self, statement: str, binds: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self.connection_manager.engine.connect() as connection:
            result = connection.execute(text(statement), binds)
            return [dict(row) for row in result.mappings()]
