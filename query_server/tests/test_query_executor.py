import asyncio

import pytest
from sqlalchemy import create_engine

from query_server.connection_manager import PostgresConnectionManager
from query_server.errors import ExecutionFailureError, SchemaUnavailableError
from query_server.query_executor import PostgresQueryExecutor, to_named_binds
from query_server.schema_inspector import PostgresSchemaInspector, StaticSchemaProvider


@pytest.fixture
def manager():
    return PostgresConnectionManager(engine=create_engine("sqlite://"))


def test_to_named_binds():
    statement, binds = to_named_binds(
        "SELECT * FROM trips WHERE trips.rider_gender = $1 AND trips.trip_id > $2", ['female', 10]
    )
    assert statement == "SELECT * FROM trips WHERE trips.rider_gender = :p1 AND trips.trip_id > :p2"
    assert binds == {'p1': 'female', 'p2': 10}


def test_connection_manager_needs_config_or_engine():
    with pytest.raises(ValueError):
        PostgresConnectionManager()


def test_execute_binds_parameters(manager):
    executor = PostgresQueryExecutor(manager)
    rows = asyncio.run(executor.execute("SELECT $1 AS value, $2 AS label", [5, "x'; DROP TABLE trips; --"]))
    assert rows == [{'value': 5, 'label': "x'; DROP TABLE trips; --"}]


def test_execute_failure_carries_driver_message(manager):
    executor = PostgresQueryExecutor(manager)
    with pytest.raises(ExecutionFailureError) as excinfo:
        asyncio.run(executor.execute("SELECT * FROM missing_table"))
    assert "missing_table" in excinfo.value.message
    assert "SELECT" not in excinfo.value.message


def test_health_and_cleanup(manager):
    assert asyncio.run(manager.is_healthy()) is True
    asyncio.run(manager.cleanup())
    assert manager._engine is None


def test_inspector_wraps_database_errors(manager):
    inspector = PostgresSchemaInspector(manager)
    with pytest.raises(SchemaUnavailableError):
        asyncio.run(inspector.get_schema())


def test_static_provider(ride_schema):
    assert asyncio.run(StaticSchemaProvider(ride_schema).get_schema()) is ride_schema
