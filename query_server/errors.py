"""Errors raised while answering a question."""

from typing import Any, Dict, Optional


class QueryServiceError(Exception):
    """Base exception for the query service."""

    default_message = "Query service error"
    default_code = "QUERY_SERVICE_ERROR"

    def __init__(self, message: Optional[str] = None, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.error_code = error_code or self.default_code
        self.details = details or {}


class EmptyInputError(QueryServiceError):
    default_message = "Question cannot be empty"
    default_code = "EMPTY_INPUT"


class UncompilableQueryError(QueryServiceError):
    default_message = "Unable to generate SQL query from the question"
    default_code = "UNCOMPILABLE_QUERY"


class ExecutionFailureError(QueryServiceError):
    default_message = "Query execution failed"
    default_code = "EXECUTION_FAILURE"


class SchemaUnavailableError(QueryServiceError):
    """Raised when no schema could be loaded; the service cannot start."""
    default_message = "Database schema is unavailable"
    default_code = "SCHEMA_UNAVAILABLE"
