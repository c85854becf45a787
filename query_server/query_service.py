#!/usr/bin/env python3
"""
Query Service
=============

Answers ride questions end to end: loads the schema once, compiles each
question, checks the compiled SQL, executes it and reshapes the rows into the
smallest useful answer (a number, a string or a list of rows).

Collaborators are duck-typed:
    schema_provider.get_schema() -> SchemaSnapshot          (awaitable)
    executor.execute(sql, parameters) -> list of row dicts  (awaitable)
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Sequence

from nl2sql.query_generator import QueryGenerator
from nl2sql.semantic_mapper import SemanticMapper
from shared.config.settings import CompilerConfig
from shared.schemas.query_models import CompiledQuery, QueryIntent, QueryResponse, SchemaSnapshot
from shared.utils.metrics import get_metrics_collector
from shared.utils.validation import SQLValidator

from .errors import EmptyInputError, QueryServiceError, SchemaUnavailableError, UncompilableQueryError


def _plain_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _scalar(value: Any, intent: QueryIntent) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return value
    if intent is QueryIntent.AVERAGE:
        return int(round(value))
    if intent is QueryIntent.TOTAL:
        return round(float(value), 1)
    return _plain_value(value)


def reshape(rows: Sequence[Mapping[str, Any]], intent: QueryIntent) -> Any:
    """
    Collapse a result set.

    No rows gives None. One row with one column gives that value, rounded to
    a whole number for averages and to one decimal for totals. One row whose
    leading value is text gives the text. Anything else stays a list of rows.
    """
    if not rows:
        return None

    if len(rows) == 1:
        values = list(rows[0].values())
        if len(values) == 1:
            return _scalar(values[0], intent)
        if values and isinstance(values[0], str):
            return values[0]

    return [{key: _plain_value(value) for key, value in row.items()} for row in rows]


class QueryService:
    """Orchestrates schema loading, compilation and execution."""

    def __init__(
        self,
        schema_provider: Any,
        executor: Any,
        config: Optional[CompilerConfig] = None,
        validator: Optional[SQLValidator] = None
    ):
        self.schema_provider = schema_provider
        self.executor = executor
        self.config = config or CompilerConfig()
        self.mapper = SemanticMapper(
            min_score=self.config.min_similarity,
            cache_size=self.config.match_cache_size,
        )
        self.generator = QueryGenerator(self.mapper, self.config)
        self.validator = validator or SQLValidator()
        self.logger = logging.getLogger("QueryService")
        self.metrics = get_metrics_collector()

        self._init_lock = asyncio.Lock()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def schema(self) -> SchemaSnapshot:
        return self.mapper.schema

    async def initialize(self) -> None:
        """Load and publish the schema once; concurrent callers share the load."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            await self._load_schema()
            self._initialized = True

    async def reload_schema(self) -> None:
        """Replace the schema snapshot and its match cache together."""
        async with self._init_lock:
            await self._load_schema()
            self._initialized = True

    async def _load_schema(self) -> None:
        self.logger.info("Loading schema from provider")
        try:
            snapshot = await self.schema_provider.get_schema()
        except SchemaUnavailableError:
            raise
        except Exception as e:
            raise SchemaUnavailableError(f"Failed to load database schema: {e}") from e

        if snapshot is None or snapshot.is_empty:
            raise SchemaUnavailableError("Schema provider returned no tables")

        self.mapper.publish(snapshot)
        self.metrics.counter("query_service.schema_loads").increment()

    def compile(self, question: str, now: Optional[datetime] = None) -> CompiledQuery:
        return self.generator.compile(question, now=now)

    def _check_compiled(self, compiled: CompiledQuery) -> None:
        if compiled.is_empty:
            raise UncompilableQueryError()
        validation = self.validator.validate_sql_query(compiled.text, compiled.parameters)
        if not validation.is_valid:
            raise UncompilableQueryError(details={'errors': validation.errors})

    async def answer(self, question: Any, now: Optional[datetime] = None) -> QueryResponse:
        """Answer one question; failures come back in the response's error field."""
        self.metrics.counter("query_service.questions").increment()
        try:
            if not isinstance(question, str) or not question.strip():
                raise EmptyInputError()

            await self.initialize()
            compiled = self.compile(question, now=now)
            self._check_compiled(compiled)

            with self.metrics.timer("query_service.execution").time_context():
                rows = await self.executor.execute(compiled.text, list(compiled.parameters))

        except QueryServiceError as e:
            self.metrics.counter(f"query_service.errors.{e.error_code.lower()}").increment()
            self.logger.warning(f"Question failed [{e.error_code}]: {e.message}")
            return QueryResponse.failure(e.message)
        except Exception as e:
            self.metrics.counter("query_service.errors.execution_failure").increment()
            self.logger.error(f"Query execution failed: {e}", exc_info=True)
            return QueryResponse.failure(str(e))

        self.metrics.counter("query_service.answered").increment()
        return QueryResponse(query=compiled.text, result=reshape(rows, compiled.intent), error=None)

    def get_status(self) -> Dict[str, Any]:
        cache = self.mapper.cache
        return {
            'schema_loaded': self._initialized,
            'tables': self.schema.table_names(),
            'match_cache': cache.get_cache_info() if cache is not None else None,
        }
