"""
Natural Language to SQL Query Generator

Compiles a ride question into one parameterized PostgreSQL SELECT:

1. normalise the question into tokens and classify its intent
2. rank schema columns against the tokens
3. extract a date range from the wording
4. build selection, source, filter, grouping and ordering clauses
5. join the non-empty clauses and number the bound-value markers $1..$n

Compilation never fails: a question with no recognisable vocabulary becomes
SELECT * FROM the fact table with no parameters.
"""

import itertools
import logging
import re
from datetime import datetime
from typing import Optional

from shared.config.settings import CompilerConfig
from shared.schemas.query_models import CompiledQuery, SemanticContext
from shared.utils.metrics import track_performance

from .clause_builders import (
    MARKER,
    ClauseInputs,
    build_filter,
    build_grouping,
    build_ordering,
    build_selection,
    build_source,
)
from .date_extractor import extract_date_range
from .intent_analyzer import classify
from .semantic_mapper import SemanticMapper
from .tokenizer import normalize


_MARKER_PATTERN = re.compile(re.escape(MARKER))


def number_placeholders(text: str) -> str:
    """Replace each marker, left to right, with $1, $2, ..."""
    ordinals = itertools.count(1)
    return _MARKER_PATTERN.sub(lambda _: f"${next(ordinals)}", text)


class QueryGenerator:
    """Compiles questions against the mapper's published schema."""

    def __init__(self, mapper: Optional[SemanticMapper] = None, config: Optional[CompilerConfig] = None):
        self.config = config or CompilerConfig()
        self.mapper = mapper or SemanticMapper(
            min_score=self.config.min_similarity,
            cache_size=self.config.match_cache_size,
        )
        self.logger = logging.getLogger("QueryGenerator")

    def build_context(self, question: str) -> SemanticContext:
        question = question or ''
        return SemanticContext(
            question=question,
            schema=self.mapper.schema,
            tokens=normalize(question),
            intent=classify(question),
        )

    @track_performance("compiler.compile")
    def compile(self, question: str, now: Optional[datetime] = None) -> CompiledQuery:
        context = self.build_context(question)
        matches = tuple(self.mapper.match(context.tokens))
        date_range = extract_date_range(context.question, now=now, reference_year=self.config.reference_year)

        inputs = ClauseInputs(
            context=context,
            matches=matches,
            date_range=date_range,
            conventions=self.config.conventions,
        )

        selection = build_selection(inputs)
        filters = build_filter(inputs)
        grouping = build_grouping(inputs)
        ordering = build_ordering(inputs)
        source = build_source(inputs, selection.tables | filters.tables | grouping.tables)

        fragments = [selection, source, filters, grouping, ordering]
        text = number_placeholders(" ".join(f.text for f in fragments if not f.is_empty))
        parameters = tuple(value for f in fragments for value in f.parameters)

        self.logger.debug(
            f"Compiled intent={context.intent.value} tokens={list(context.tokens)} "
            f"candidates={len(matches)} sql={text}"
        )
        return CompiledQuery(text=text, parameters=parameters, intent=context.intent, matches=matches)
