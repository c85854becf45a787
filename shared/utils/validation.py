"""
SQL validation for the ride query service.

The compiler only ever emits single read-only SELECT statements with bound
parameters. SQLValidator re-checks that contract on the final text before it
reaches the database, and also checks that the positional placeholders line
up with the parameter list.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import sqlparse


PLACEHOLDER_PATTERN = re.compile(r'\$(\d+)')


@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[str] = None
    warnings: List[str] = None
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []
        if self.warnings is None:
            self.warnings = []
        if self.metadata is None:
            self.metadata = {}


def count_placeholders(query: str) -> int:
    """Number of $n positional placeholders in the query text."""
    return len(PLACEHOLDER_PATTERN.findall(query))


class SQLValidator:
    """
    Read-only policy checks for compiled queries.

    This is a guard on the compiler's own output. User values never reach
    the query text; they travel as bound parameters.
    """

    DANGEROUS_KEYWORDS = {
        'DROP', 'DELETE', 'TRUNCATE', 'ALTER', 'CREATE', 'INSERT', 'UPDATE',
        'GRANT', 'REVOKE', 'EXEC', 'EXECUTE', 'MERGE', 'COPY'
    }

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def validate_sql_query(
        self,
        query: str,
        parameters: Optional[Sequence[Any]] = None,
        read_only: bool = True
    ) -> ValidationResult:
        """Validate SQL text, and its parameter list when given."""
        if not query or not query.strip():
            return ValidationResult(is_valid=False, errors=['SQL query is required'])

        errors = []
        warnings = []

        statements = [stmt for stmt in sqlparse.parse(query.strip()) if stmt.token_first(skip_cm=True) is not None]
        if not statements:
            return ValidationResult(is_valid=False, errors=['Could not parse SQL query'])
        if len(statements) > 1:
            errors.append('Multiple statements are not allowed')

        statement = statements[0]
        statement_type = statement.get_type()
        if read_only:
            if statement_type != 'SELECT':
                errors.append(f'Only SELECT statements are allowed, got {statement_type}')
            dangerous_found = self._check_dangerous_keywords(statements)
            if dangerous_found:
                errors.append(f'Dangerous SQL operations not allowed: {", ".join(dangerous_found)}')

        if parameters is not None:
            errors.extend(self._check_placeholders(query, parameters))

        if ';' in query.strip().rstrip(';'):
            warnings.append('Statement separator found inside query')

        if errors:
            self.logger.warning(f"Rejected SQL: {'; '.join(errors)}")

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            metadata={'statement_type': statement_type}
        )

    def _check_dangerous_keywords(self, statements: List[sqlparse.sql.Statement]) -> List[str]:
        """Keyword tokens only, so identifiers such as updated_at pass."""
        found = []
        for statement in statements:
            for token in statement.flatten():
                if token.is_keyword and token.normalized in self.DANGEROUS_KEYWORDS and token.normalized not in found:
                    found.append(token.normalized)
        return sorted(found)

    def _check_placeholders(self, query: str, parameters: Sequence[Any]) -> List[str]:
        count = count_placeholders(query)
        if count != len(parameters):
            return [f'Placeholder count {count} does not match parameter count {len(parameters)}']
        ordinals = [int(n) for n in PLACEHOLDER_PATTERN.findall(query)]
        if ordinals != list(range(1, count + 1)):
            return ['Placeholders must be numbered $1..$n in order']
        return []
