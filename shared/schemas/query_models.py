"""
Query Data Models
=================

Values passed between the tokenizer, column matcher, clause builders and the
query service, plus the pydantic models of the HTTP boundary.

Compiler values are frozen dataclasses: a published schema snapshot and every
compiled query are read-only once built.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field


NUMERIC_TYPE_MARKERS = ('integer', 'smallint', 'bigint', 'decimal', 'numeric', 'real', 'double', 'float')
TEMPORAL_TYPE_MARKERS = ('timestamp', 'date', 'time', 'interval')

TIMESTAMP_LITERAL_FORMAT = '%Y-%m-%d %H:%M:%S'


def is_numeric_type(declared_type: str) -> bool:
    lowered = declared_type.lower()
    return any(marker in lowered for marker in NUMERIC_TYPE_MARKERS)


def is_temporal_type(declared_type: str) -> bool:
    lowered = declared_type.lower()
    return any(marker in lowered for marker in TEMPORAL_TYPE_MARKERS)


class QueryIntent(str, Enum):
    """Analytic operation a question asks for."""
    TALLY = "tally"
    AVERAGE = "average"
    TOTAL = "total"
    MAXIMUM = "maximum"
    MINIMUM = "minimum"
    ENUMERATE = "enumerate"
    FILTER = "filter"


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of the target store; identity is (table, column)."""
    table: str
    column: str
    declared_type: str
    nullable: bool = True


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: Tuple[ColumnDescriptor, ...] = ()


@dataclass(frozen=True)
class SchemaSnapshot:
    """Ordered tables and columns as reported by the schema provider."""
    tables: Tuple[TableSchema, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not any(table.columns for table in self.tables)

    def table_names(self) -> List[str]:
        return [table.name for table in self.tables]

    def columns(self) -> List[ColumnDescriptor]:
        return [column for table in self.tables for column in table.columns]

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "SchemaSnapshot":
        """
        Build a snapshot from information_schema.columns rows.

        Rows must already be ordered by table and ordinal position; tables
        keep their first-seen order.
        """
        grouped: Dict[str, List[ColumnDescriptor]] = {}
        for row in rows:
            table_name = row['table_name']
            nullable = row.get('is_nullable', 'YES')
            grouped.setdefault(table_name, []).append(ColumnDescriptor(
                table=table_name,
                column=row['column_name'],
                declared_type=row['data_type'],
                nullable=str(nullable).upper() != 'NO',
            ))
        return cls(tables=tuple(TableSchema(name, tuple(columns)) for name, columns in grouped.items()))

    @classmethod
    def from_dict(cls, tables: Mapping[str, Iterable[Tuple[str, str]]]) -> "SchemaSnapshot":
        """Snapshot from {table: [(column, declared_type), ...]}."""
        return cls(tables=tuple(
            TableSchema(name, tuple(ColumnDescriptor(name, column, declared_type) for column, declared_type in columns))
            for name, columns in tables.items()
        ))


@dataclass(frozen=True)
class ColumnMatch:
    """A scored candidate mapping of a question token to a column."""
    table: str
    column: str
    declared_type: str
    score: float
    token: str = ""

    @property
    def is_numeric(self) -> bool:
        return is_numeric_type(self.declared_type)

    @property
    def is_temporal(self) -> bool:
        return is_temporal_type(self.declared_type)

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass(frozen=True)
class DateRange:
    """Inclusive start and end instants."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError("DateRange end precedes start")

    def as_parameters(self) -> Tuple[str, str]:
        """Timestamp literals with millisecond precision, e.g. 2025-06-30 23:59:59.999."""
        return (_timestamp_literal(self.start), _timestamp_literal(self.end))


def _timestamp_literal(value: datetime) -> str:
    return f"{value.strftime(TIMESTAMP_LITERAL_FORMAT)}.{value.microsecond // 1000:03d}"


@dataclass(frozen=True)
class SemanticContext:
    """Per-question inputs shared by the clause builders."""
    question: str
    schema: SchemaSnapshot
    tokens: Tuple[str, ...]
    intent: QueryIntent

    @property
    def lowered(self) -> str:
        return self.question.lower()


@dataclass(frozen=True)
class CompiledQuery:
    """Query text with $n placeholders and its positional parameters."""
    text: str
    parameters: Tuple[Any, ...] = ()
    intent: QueryIntent = QueryIntent.FILTER
    matches: Tuple[ColumnMatch, ...] = field(default=(), compare=False, repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


class QueryResponse(BaseModel):
    """Answer returned for one question."""
    query: str = ""
    result: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "QueryResponse":
        return cls(query="", result=None, error=message)


class HealthStatus(BaseModel):
    status: str = "OK"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    schema_loaded: bool = False
    database_healthy: Optional[bool] = None
    tables: int = 0
    environment: Dict[str, Any] = Field(default_factory=dict)
    metrics: Dict[str, Any] = Field(default_factory=dict)
