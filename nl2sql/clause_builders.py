"""
Clause builders for compiled ride queries.

Each clause is produced from a small ordered rule table: a rule looks at the
question, its intent and the ranked column candidates and either returns a
fragment or None; the first fragment wins, otherwise the clause default
applies. The filter clause is the exception: every predicate rule that
applies contributes, in table order, so parameters stay in placeholder order.

Fragments mark bound values with "?" and never contain text taken from the
question. The generator numbers the markers $1..$n once the clauses are
joined.
"""

import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, FrozenSet, List, Optional, Sequence, Tuple

from shared.config.settings import DomainConventions
from shared.schemas.query_models import ColumnMatch, DateRange, QueryIntent, SemanticContext

from .semantic_mapper import SYNONYMS


MARKER = '?'

STATION_KEYWORDS = ('station', 'point', 'dock', 'name', 'avenue')
TIME_KEYWORDS = ('time', 'duration', 'minutes', 'hours')
DURATION_TERMS = frozenset(TIME_KEYWORDS).union(*(SYNONYMS.get(keyword, ()) for keyword in TIME_KEYWORDS))
DISTANCE_KEYWORDS = ('distance', 'kilometres', 'km', 'miles')

STATION_NEED_TERMS = ('station', 'docking', 'avenue', 'congress')
WEATHER_NEED_TERMS = ('rain',)
LOCATION_TERMS = ('congress avenue', 'congress', 'avenue')

_FEMALE_PATTERN = re.compile(r'\b(women|woman|female|females)\b')
_MALE_PATTERN = re.compile(r'\b(men|man|male|males)\b')


@dataclass(frozen=True)
class ClauseFragment:
    """SQL text with its bound values and the tables the text refers to."""
    text: str = ""
    parameters: Tuple[Any, ...] = ()
    tables: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if self.text.count(MARKER) != len(self.parameters):
            raise ValueError(
                f"Fragment has {self.text.count(MARKER)} markers but {len(self.parameters)} parameters"
            )

    @property
    def is_empty(self) -> bool:
        return not self.text


EMPTY = ClauseFragment()


@dataclass(frozen=True)
class ClauseInputs:
    """Everything a rule may look at."""
    context: SemanticContext
    matches: Tuple[ColumnMatch, ...]
    date_range: Optional[DateRange]
    conventions: DomainConventions = field(default_factory=DomainConventions)

    @property
    def intent(self) -> QueryIntent:
        return self.context.intent

    @property
    def lowered(self) -> str:
        return self.context.lowered

    @cached_property
    def station_candidate(self) -> Optional[ColumnMatch]:
        return find_column(self.matches, STATION_KEYWORDS)

    @cached_property
    def needs_station(self) -> bool:
        return any(term in self.lowered for term in STATION_NEED_TERMS)

    @cached_property
    def needs_weather(self) -> bool:
        return any(term in self.lowered for term in WEATHER_NEED_TERMS)

    @cached_property
    def mentions_duration(self) -> bool:
        return any(token in DURATION_TERMS for token in self.context.tokens)


Rule = Callable[[ClauseInputs], Optional[ClauseFragment]]


def find_column(
    matches: Sequence[ColumnMatch],
    keywords: Sequence[str],
    accept: Optional[Callable[[ColumnMatch], bool]] = None
) -> Optional[ColumnMatch]:
    """Best-ranked match whose column or table name holds a keyword; keywords in priority order."""
    for keyword in keywords:
        for match in matches:
            if keyword in match.column.lower() or keyword in match.table.lower():
                if accept is None or accept(match):
                    return match
    return None


def find_numeric_column(matches: Sequence[ColumnMatch], keywords: Sequence[str]) -> Optional[ColumnMatch]:
    return find_column(matches, keywords, accept=lambda match: match.is_numeric)


def find_time_column(matches: Sequence[ColumnMatch]) -> Optional[ColumnMatch]:
    """A duration-named column, or failing that any timestamp-like one."""
    named = find_column(matches, TIME_KEYWORDS)
    if named is not None:
        return named
    return next((match for match in matches if match.is_temporal), None)


def is_station_identifier(column: str) -> bool:
    lowered = column.lower()
    return 'station' in lowered or 'id' in lowered


def first_fragment(rules: Sequence[Rule], inputs: ClauseInputs, default: ClauseFragment = EMPTY) -> ClauseFragment:
    for rule in rules:
        fragment = rule(inputs)
        if fragment is not None:
            return fragment
    return default


# Selection

def _select_tally(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    if inputs.intent is QueryIntent.TALLY:
        return ClauseFragment("SELECT COUNT(*) AS count")
    return None


def _select_average(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    if inputs.intent is not QueryIntent.AVERAGE:
        return None
    if find_time_column(inputs.matches) is None and not inputs.mentions_duration:
        return None
    c = inputs.conventions
    return ClauseFragment(
        f"SELECT ROUND(AVG(EXTRACT(EPOCH FROM ({c.fact_table}.{c.fact_end_column} - "
        f"{c.fact_table}.{c.fact_start_column})) / 60)) AS average",
        tables=frozenset({c.fact_table}),
    )


def _select_total(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    if inputs.intent is not QueryIntent.TOTAL:
        return None
    candidate = find_numeric_column(inputs.matches, DISTANCE_KEYWORDS)
    if candidate is None:
        return None
    return ClauseFragment(
        f"SELECT ROUND(CAST(SUM({candidate.qualified_name}) AS numeric), 1) AS total",
        tables=frozenset({candidate.table}),
    )


def _select_maximum(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    candidate = inputs.station_candidate
    if inputs.intent is not QueryIntent.MAXIMUM or candidate is None:
        return None
    c = inputs.conventions
    if is_station_identifier(candidate.column):
        return ClauseFragment(
            f"SELECT {c.station_table}.{c.station_name_column}, COUNT(*) AS count",
            tables=frozenset({c.station_table}),
        )
    return ClauseFragment(
        f"SELECT {candidate.qualified_name}, COUNT(*) AS count",
        tables=frozenset({candidate.table}),
    )


def _select_enumerate(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    candidate = inputs.station_candidate
    if inputs.intent is not QueryIntent.ENUMERATE or candidate is None:
        return None
    return ClauseFragment(f"SELECT {candidate.qualified_name}", tables=frozenset({candidate.table}))


SELECTION_RULES: Tuple[Rule, ...] = (
    _select_tally,
    _select_average,
    _select_total,
    _select_maximum,
    _select_enumerate,
)

SELECT_ALL = ClauseFragment("SELECT *")


def build_selection(inputs: ClauseInputs) -> ClauseFragment:
    return first_fragment(SELECTION_RULES, inputs, SELECT_ALL)


# Filter

def _filter_date_range(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    if inputs.date_range is None:
        return None
    c = inputs.conventions
    column = f"{c.fact_table}.{c.fact_start_column}"
    return ClauseFragment(
        f"{column} >= CAST(? AS timestamp) AND {column} <= CAST(? AS timestamp)",
        parameters=inputs.date_range.as_parameters(),
        tables=frozenset({c.fact_table}),
    )


def _filter_gender(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    if _FEMALE_PATTERN.search(inputs.lowered):
        gender = 'female'
    elif _MALE_PATTERN.search(inputs.lowered):
        gender = 'male'
    else:
        return None
    c = inputs.conventions
    return ClauseFragment(
        f"{c.fact_table}.{c.fact_gender_column} = ?",
        parameters=(gender,),
        tables=frozenset({c.fact_table}),
    )


def _filter_weather(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    if not inputs.needs_weather:
        return None
    c = inputs.conventions
    return ClauseFragment(
        f"{c.weather_table}.{c.precipitation_column} > ?",
        parameters=(0,),
        tables=frozenset({c.weather_table}),
    )


def _filter_location(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    # Only one location predicate, whichever term is found first.
    if not any(term in inputs.lowered for term in LOCATION_TERMS):
        return None
    c = inputs.conventions
    return ClauseFragment(
        f"{c.station_table}.{c.station_name_column} ILIKE ?",
        parameters=(c.location_pattern,),
        tables=frozenset({c.station_table}),
    )


FILTER_RULES: Tuple[Rule, ...] = (
    _filter_date_range,
    _filter_gender,
    _filter_weather,
    _filter_location,
)


def build_filter(inputs: ClauseInputs) -> ClauseFragment:
    predicates = [fragment for fragment in (rule(inputs) for rule in FILTER_RULES) if fragment is not None]
    if not predicates:
        return EMPTY
    return ClauseFragment(
        "WHERE " + " AND ".join(predicate.text for predicate in predicates),
        parameters=tuple(value for predicate in predicates for value in predicate.parameters),
        tables=frozenset().union(*(predicate.tables for predicate in predicates)),
    )


# Grouping and ordering

def _group_by_station(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    candidate = inputs.station_candidate
    if inputs.intent not in (QueryIntent.MAXIMUM, QueryIntent.TALLY) or candidate is None:
        return None
    c = inputs.conventions
    if is_station_identifier(candidate.column):
        return ClauseFragment(
            f"GROUP BY {c.station_table}.{c.station_name_column}",
            tables=frozenset({c.station_table}),
        )
    return ClauseFragment(f"GROUP BY {candidate.qualified_name}", tables=frozenset({candidate.table}))


def _order_by_count(inputs: ClauseInputs) -> Optional[ClauseFragment]:
    # Requires the count projection of the maximum selection.
    if inputs.intent is QueryIntent.MAXIMUM and inputs.station_candidate is not None:
        return ClauseFragment("ORDER BY count DESC LIMIT 1")
    return None


GROUPING_RULES: Tuple[Rule, ...] = (_group_by_station,)
ORDERING_RULES: Tuple[Rule, ...] = (_order_by_count,)


def build_grouping(inputs: ClauseInputs) -> ClauseFragment:
    return first_fragment(GROUPING_RULES, inputs)


def build_ordering(inputs: ClauseInputs) -> ClauseFragment:
    return first_fragment(ORDERING_RULES, inputs)


# Source and joins

def matched_tables(matches: Sequence[ColumnMatch]) -> List[str]:
    """Distinct tables of the candidates, best-ranked first."""
    tables: List[str] = []
    for match in matches:
        if match.table not in tables:
            tables.append(match.table)
    return tables


def choose_start_table(inputs: ClauseInputs, referenced: FrozenSet[str]) -> str:
    """
    The fact table, unless every candidate lives in one other table and
    nothing else in the query needs the fact table or a dimension joined to it.
    """
    c = inputs.conventions
    tables = matched_tables(inputs.matches)
    if not tables or c.fact_table in tables:
        return c.fact_table

    other = tables[0]
    if inputs.needs_weather or not referenced <= {other}:
        return c.fact_table
    if inputs.needs_station and other != c.station_table:
        return c.fact_table
    return other


def _join_station(inputs: ClauseInputs, referenced: FrozenSet[str]) -> Optional[str]:
    c = inputs.conventions
    if inputs.needs_station or c.station_table in referenced:
        return (
            f"LEFT JOIN {c.station_table} ON "
            f"{c.fact_table}.{c.fact_station_key} = {c.station_table}.{c.station_key}"
        )
    return None


def _join_weather(inputs: ClauseInputs, referenced: FrozenSet[str]) -> Optional[str]:
    c = inputs.conventions
    if inputs.needs_weather or c.weather_table in referenced:
        return (
            f"LEFT JOIN {c.weather_table} ON "
            f"DATE({c.fact_table}.{c.fact_start_column}) = {c.weather_table}.{c.weather_date_column}"
        )
    return None


# Riders' gender is a fact-table column, so no user dimension join exists.
JOIN_RULES = (_join_station, _join_weather)


def build_source(inputs: ClauseInputs, referenced: FrozenSet[str] = frozenset()) -> ClauseFragment:
    """FROM clause; joins only hang off the fact table."""
    start = choose_start_table(inputs, referenced)
    parts = [f"FROM {start}"]
    if start == inputs.conventions.fact_table:
        parts.extend(join for join in (rule(inputs, referenced) for rule in JOIN_RULES) if join)
    return ClauseFragment(" ".join(parts), tables=frozenset({start}))
