"""
Question compiler for the ride data store.

Turns a natural-language question about trips, stations and weather into a
parameterized SQL query.
"""

from .date_extractor import extract_date_range
from .intent_analyzer import classify
from .query_generator import QueryGenerator
from .semantic_mapper import ColumnMatcher, SemanticMapper
from .tokenizer import normalize

__all__ = [
    'QueryGenerator',
    'SemanticMapper',
    'ColumnMatcher',
    'classify',
    'extract_date_range',
    'normalize',
]
