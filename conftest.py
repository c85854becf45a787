import pytest

from shared.config.environment import get_environment
from shared.config.settings import get_settings
from shared.schemas.query_models import SchemaSnapshot
from shared.utils.metrics import get_metrics_collector


RIDE_SCHEMA = {
    'trips': [
        ('trip_id', 'integer'),
        ('bike_id', 'integer'),
        ('started_at', 'timestamp without time zone'),
        ('ended_at', 'timestamp without time zone'),
        ('start_station_id', 'integer'),
        ('end_station_id', 'integer'),
        ('rider_gender', 'character varying'),
        ('rider_birth_year', 'integer'),
        ('trip_distance_km', 'numeric'),
    ],
    'stations': [
        ('station_id', 'integer'),
        ('station_name', 'character varying'),
        ('latitude', 'double precision'),
        ('longitude', 'double precision'),
        ('capacity', 'integer'),
    ],
    'daily_weather': [
        ('weather_date', 'date'),
        ('precipitation_mm', 'numeric'),
        ('temperature_max_c', 'numeric'),
        ('temperature_min_c', 'numeric'),
    ],
}

PG_VARIABLES = ('PGHOST', 'PGPORT', 'PGDATABASE', 'PGUSER', 'PGPASSWORD', 'PGSSLMODE', 'HOST', 'PORT')


class StaticProvider:
    def __init__(self, snapshot=None, error=None):
        self.snapshot = snapshot
        self.error = error
        self.calls = 0

    async def get_schema(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


class RecordingExecutor:
    def __init__(self, rows=None, error=None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.calls = []

    async def execute(self, sql, parameters):
        self.calls.append((sql, list(parameters)))
        if self.error is not None:
            raise self.error
        return self.rows


@pytest.fixture(autouse=True)
def testing_environment(monkeypatch):
    monkeypatch.setenv('ENVIRONMENT', 'testing')
    for name in PG_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    get_environment.cache_clear()
    get_settings.cache_clear()
    get_metrics_collector().reset()
    yield
    get_environment.cache_clear()
    get_settings.cache_clear()


@pytest.fixture
def ride_schema():
    return SchemaSnapshot.from_dict(RIDE_SCHEMA)


@pytest.fixture
def provider_factory():
    return StaticProvider


@pytest.fixture
def executor_factory():
    return RecordingExecutor


@pytest.fixture
def ride_schema_tables():
    return RIDE_SCHEMA
