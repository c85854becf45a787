import pytest

from nl2sql.semantic_mapper import ColumnMatcher, SemanticMapper, SYNONYMS, cache_key, score_column, similarity
from shared.schemas.query_models import SchemaSnapshot
from shared.utils.caching import MemoryCache


def test_similarity():
    assert similarity("trips", "trips") == 1.0
    assert similarity("trip", "trips") == pytest.approx(6 / 7)
    assert similarity("night", "nacht") == pytest.approx(0.25)
    assert similarity("a", "abc") == 0.0


def test_synonyms_are_symmetric():
    assert 'docking' in SYNONYMS['station']
    assert 'station' in SYNONYMS['docking']
    assert 'docking' not in SYNONYMS['docking']


def test_score_column_containment_with_table_bonus():
    assert score_column("station", "station_name", "stations") == pytest.approx(1.0)


def test_score_column_synonym():
    assert score_column("docking", "station_name", "stations") == pytest.approx(0.8)


def test_score_column_similarity_with_table_bonus():
    assert score_column("trips", "trip_id", "trips") == pytest.approx(0.7)


def test_cache_key_ignores_order_and_duplicates():
    assert cache_key(["trips", "many", "trips"]) == cache_key(["many", "trips"]) == "many|trips"


def test_match_ranks_best_first(ride_schema):
    matcher = ColumnMatcher(ride_schema, MemoryCache(max_size=16))
    matches = matcher.match(("many", "trips", "made"))

    assert matches[0].qualified_name == "trips.trip_id"
    assert matches[0].score == pytest.approx(0.7)
    assert all(m.score >= 0.3 for m in matches)
    assert [m.score for m in matches] == sorted((m.score for m in matches), reverse=True)


def test_match_is_order_independent_and_cached(ride_schema):
    cache = MemoryCache(max_size=16)
    matcher = ColumnMatcher(ride_schema, cache)

    first = matcher.match(("docking", "departures"))
    second = matcher.match(("departures", "docking"))

    assert first == second
    assert len(cache) == 1
    assert cache.get_cache_info()['stats']['hits'] == 1


def test_match_respects_min_score(ride_schema):
    matcher = ColumnMatcher(ride_schema, MemoryCache(max_size=4), min_score=0.95)
    assert all(m.score >= 0.95 for m in matcher.match(("station",)))


def test_unpublished_mapper_matches_nothing():
    mapper = SemanticMapper()
    assert mapper.cache is None
    assert mapper.match(("trips",)) == []
    assert mapper.schema.is_empty


def test_publish_replaces_schema_and_cache_together(ride_schema):
    mapper = SemanticMapper()
    mapper.publish(ride_schema)
    mapper.match(("trips",))
    old_cache = mapper.cache
    assert len(old_cache) == 1

    smaller = SchemaSnapshot.from_dict({'stations': [('station_name', 'text')]})
    mapper.publish(smaller)

    assert mapper.schema is smaller
    assert mapper.cache is not old_cache
    assert len(mapper.cache) == 0
    assert {m.table for m in mapper.match(("trips", "station"))} == {'stations'}
