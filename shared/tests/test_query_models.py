from datetime import datetime, timedelta

import pytest

from shared.schemas.query_models import ColumnMatch, DateRange, HealthStatus, QueryResponse, SchemaSnapshot, is_numeric_type


def test_snapshot_from_information_schema_rows():
    rows = [
        {'table_name': 'trips', 'column_name': 'trip_id', 'data_type': 'integer', 'is_nullable': 'NO'},
        {'table_name': 'trips', 'column_name': 'started_at', 'data_type': 'timestamp without time zone', 'is_nullable': 'YES'},
        {'table_name': 'stations', 'column_name': 'station_name', 'data_type': 'text', 'is_nullable': 'YES'},
    ]
    snapshot = SchemaSnapshot.from_rows(rows)

    assert snapshot.table_names() == ['trips', 'stations']
    assert [c.column for c in snapshot.tables[0].columns] == ['trip_id', 'started_at']
    assert snapshot.columns()[0].nullable is False
    assert [c.table for c in snapshot.columns()] == ['trips', 'trips', 'stations']
    assert not snapshot.is_empty
    assert SchemaSnapshot().is_empty


def test_column_types():
    assert is_numeric_type('double precision')
    assert not is_numeric_type('character varying')

    match = ColumnMatch('trips', 'started_at', 'timestamp without time zone', 0.9)
    assert match.is_temporal
    assert not match.is_numeric
    assert match.qualified_name == 'trips.started_at'


def test_date_range_must_be_ordered():
    with pytest.raises(ValueError):
        DateRange(start=datetime(2025, 6, 2), end=datetime(2025, 6, 1))


def test_failure_response():
    assert QueryResponse.failure("Question cannot be empty").model_dump() == {
        'query': "", 'result': None, 'error': "Question cannot be empty",
    }


def test_health_status_timestamp_is_utc():
    status = HealthStatus()
    assert status.timestamp.utcoffset() == timedelta(0)
    assert status.database_healthy is None
