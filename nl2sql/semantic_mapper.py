"""
Schema-Aware Column Matching

Scores every (column, token) pair of the published schema snapshot and returns
the pairs worth keeping, best first. Three signals compete for each pair and
the strongest wins:

- containment: token and column name contain one another (0.9)
- synonyms: a domain synonym of the token and the column name contain one
  another (0.8)
- similarity: Sørensen-Dice coefficient over character bigrams (0.0 - 1.0)

A token that also relates to the owning table's name earns a 0.1 bonus, which
can lift the score above 1.0. Pairs under the minimum score are dropped.

Ranked lists are memoised per token set. The snapshot and its cache are
published together and only ever replaced together.
"""

import logging
from collections import Counter
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from shared.schemas.query_models import ColumnMatch, SchemaSnapshot
from shared.utils.caching import MemoryCache


CONTAINMENT_SCORE = 0.9
SYNONYM_SCORE = 0.8
TABLE_BONUS = 0.1
DEFAULT_MIN_SCORE = 0.3

SYNONYM_GROUPS: Tuple[Tuple[str, ...], ...] = (
    ('time', 'duration', 'minutes', 'hours', 'ride_time'),
    ('station', 'docking', 'point', 'stop', 'hub', 'avenue'),
    ('departure', 'start', 'beginning', 'leave', 'depart'),
    ('kilometres', 'km', 'distance', 'miles', 'length'),
    ('women', 'female', 'woman', 'girl'),
    ('rainy', 'rain', 'wet', 'stormy', 'precipitation'),
    ('congress', 'avenue', 'street', 'road'),
)


def _build_synonyms(groups: Iterable[Sequence[str]]) -> Mapping[str, Tuple[str, ...]]:
    """Symmetric lookup: every word of a group maps to all its other words."""
    table: Dict[str, List[str]] = {}
    for group in groups:
        for word in group:
            related = table.setdefault(word, [])
            for other in group:
                if other != word and other not in related:
                    related.append(other)
    return MappingProxyType({word: tuple(related) for word, related in table.items()})


SYNONYMS = _build_synonyms(SYNONYM_GROUPS)


def _bigrams(value: str) -> Counter:
    return Counter(value[i:i + 2] for i in range(len(value) - 1))


def similarity(first: str, second: str) -> float:
    """Dice coefficient of the two strings' bigram multisets."""
    first = ''.join(first.split())
    second = ''.join(second.split())
    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    overlap = sum((_bigrams(first) & _bigrams(second)).values())
    return (2.0 * overlap) / (len(first) + len(second) - 2)


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def score_column(token: str, column: str, table: str) -> float:
    """Score of one token against one column of one table."""
    column = column.lower()
    table = table.lower()

    base = CONTAINMENT_SCORE if _contains_either(token, column) else 0.0
    if base < SYNONYM_SCORE and any(_contains_either(synonym, column) for synonym in SYNONYMS.get(token, ())):
        base = SYNONYM_SCORE
    base = max(base, similarity(token, column))

    if _contains_either(token, table):
        base += TABLE_BONUS
    return base


def cache_key(tokens: Iterable[str]) -> str:
    """Order-independent key of a token set."""
    return '|'.join(sorted(set(tokens)))


class ColumnMatcher:
    """Ranks schema columns against question tokens, memoising per token set."""

    def __init__(self, schema: SchemaSnapshot, cache: MemoryCache, min_score: float = DEFAULT_MIN_SCORE):
        self.schema = schema
        self.cache = cache
        self.min_score = min_score
        self.logger = logging.getLogger("ColumnMatcher")

    def match(self, tokens: Iterable[str]) -> List[ColumnMatch]:
        key = cache_key(tokens)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        ordered_tokens = key.split('|') if key else []
        matches = self._score_all(ordered_tokens)
        self.cache.set(key, tuple(matches))
        self.logger.debug(f"Matched {len(matches)} column candidates for tokens [{key}]")
        return matches

    def _score_all(self, tokens: Sequence[str]) -> List[ColumnMatch]:
        matches = []
        for table in self.schema.tables:
            for column in table.columns:
                for token in tokens:
                    score = score_column(token, column.column, table.name)
                    if score >= self.min_score:
                        matches.append(ColumnMatch(
                            table=table.name,
                            column=column.column,
                            declared_type=column.declared_type,
                            score=score,
                            token=token,
                        ))
        # sorted() is stable: ties keep schema discovery order
        return sorted(matches, key=lambda m: m.score, reverse=True)


class SemanticMapper:
    """
    Holds the published schema snapshot with its match cache.

    Both live in one tuple attribute so a reload swaps them in a single
    assignment; readers never see a new snapshot with an old cache.
    """

    def __init__(self, min_score: float = DEFAULT_MIN_SCORE, cache_size: int = 1024):
        self.min_score = min_score
        self.cache_size = cache_size
        self.logger = logging.getLogger("SemanticMapper")
        self._published: Optional[Tuple[SchemaSnapshot, MemoryCache]] = None

    @property
    def schema(self) -> SchemaSnapshot:
        return self._published[0] if self._published else SchemaSnapshot()

    @property
    def cache(self) -> Optional[MemoryCache]:
        return self._published[1] if self._published else None

    def publish(self, schema: SchemaSnapshot) -> None:
        """Install a snapshot together with an empty cache."""
        self._published = (schema, MemoryCache(max_size=self.cache_size))
        self.logger.info(
            f"Published schema with {len(schema.tables)} tables and {len(schema.columns())} columns"
        )

    def matcher(self) -> ColumnMatcher:
        if self._published is None:
            return ColumnMatcher(SchemaSnapshot(), MemoryCache(max_size=1), self.min_score)
        schema, cache = self._published
        return ColumnMatcher(schema, cache, self.min_score)

    def match(self, tokens: Iterable[str]) -> List[ColumnMatch]:
        return self.matcher().match(tokens)
