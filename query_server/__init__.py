"""HTTP service answering ride questions against PostgreSQL."""

from .errors import (
    EmptyInputError,
    ExecutionFailureError,
    QueryServiceError,
    SchemaUnavailableError,
    UncompilableQueryError,
)
from .query_service import QueryService, reshape

__all__ = [
    'QueryService',
    'reshape',
    'QueryServiceError',
    'EmptyInputError',
    'UncompilableQueryError',
    'ExecutionFailureError',
    'SchemaUnavailableError',
]
