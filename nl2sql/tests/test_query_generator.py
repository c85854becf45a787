from datetime import datetime

import pytest

from nl2sql.query_generator import QueryGenerator, number_placeholders
from shared.config.settings import CompilerConfig
from shared.schemas.query_models import QueryIntent
from shared.utils.metrics import get_metrics_collector
from shared.utils.validation import SQLValidator, count_placeholders

JUNE_2025 = ('2025-06-01 00:00:00.000', '2025-06-30 23:59:59.999')


@pytest.fixture
def generator(ride_schema):
    generator = QueryGenerator()
    generator.mapper.publish(ride_schema)
    return generator


def test_number_placeholders():
    assert number_placeholders("a = ? AND b = ? OR c = ?") == "a = $1 AND b = $2 OR c = $3"
    assert number_placeholders("SELECT *") == "SELECT *"


def test_trip_count(generator):
    compiled = generator.compile("How many trips were made?")
    assert compiled.text == "SELECT COUNT(*) AS count FROM trips"
    assert compiled.parameters == ()
    assert compiled.intent is QueryIntent.TALLY


def test_average_ride_time_at_location(generator):
    compiled = generator.compile(
        "What was the average ride time for journeys that started at Congress Avenue in June 2025?"
    )
    assert compiled.text == (
        "SELECT ROUND(AVG(EXTRACT(EPOCH FROM (trips.ended_at - trips.started_at)) / 60)) AS average "
        "FROM trips LEFT JOIN stations ON trips.start_station_id = stations.station_id "
        "WHERE trips.started_at >= CAST($1 AS timestamp) AND trips.started_at <= CAST($2 AS timestamp) "
        "AND stations.station_name ILIKE $3"
    )
    assert compiled.parameters == JUNE_2025 + ('%Congress Avenue%',)


def test_busiest_station_in_first_week(generator):
    compiled = generator.compile(
        "Which docking point saw the most departures during the first week of June 2025?"
    )
    assert compiled.text == (
        "SELECT stations.station_name, COUNT(*) AS count "
        "FROM trips LEFT JOIN stations ON trips.start_station_id = stations.station_id "
        "WHERE trips.started_at >= CAST($1 AS timestamp) AND trips.started_at <= CAST($2 AS timestamp) "
        "GROUP BY stations.station_name ORDER BY count DESC LIMIT 1"
    )
    assert compiled.parameters == ('2025-06-01 00:00:00.000', '2025-06-07 23:59:59.999')
    assert compiled.intent is QueryIntent.MAXIMUM


def test_distance_by_women_on_rainy_days(generator):
    compiled = generator.compile("How many kilometres were ridden by women on rainy days in June 2025?")
    assert compiled.text == (
        "SELECT ROUND(CAST(SUM(trips.trip_distance_km) AS numeric), 1) AS total "
        "FROM trips LEFT JOIN daily_weather ON DATE(trips.started_at) = daily_weather.weather_date "
        "WHERE trips.started_at >= CAST($1 AS timestamp) AND trips.started_at <= CAST($2 AS timestamp) "
        "AND trips.rider_gender = $3 AND daily_weather.precipitation_mm > $4"
    )
    assert compiled.parameters == JUNE_2025 + ('female', 0)
    assert compiled.intent is QueryIntent.TOTAL


def test_unrecognised_question_selects_everything(generator):
    compiled = generator.compile("show me unicorn data")
    assert compiled.text == "SELECT * FROM trips"
    assert compiled.parameters == ()


def test_last_month_is_relative_to_now(generator):
    compiled = generator.compile("How many trips last month?", now=datetime(2025, 7, 15))
    assert compiled.text == (
        "SELECT COUNT(*) AS count FROM trips "
        "WHERE trips.started_at >= CAST($1 AS timestamp) AND trips.started_at <= CAST($2 AS timestamp)"
    )
    assert compiled.parameters == JUNE_2025


def test_reference_year_applies_to_first_week(ride_schema):
    generator = QueryGenerator(config=CompilerConfig(reference_year=2024))
    generator.mapper.publish(ride_schema)
    compiled = generator.compile("How many trips in the first week of June?")
    assert compiled.parameters[0] == '2024-06-01 00:00:00.000'


def test_bare_injection_compiles_to_select_all(generator):
    assert generator.compile("'; DROP TABLE trips; --").text == "SELECT * FROM trips"


@pytest.mark.parametrize('keyword', ['DROP', 'DELETE', 'UPDATE', 'INSERT', 'ALTER'])
def test_question_text_never_reaches_sql(generator, keyword):
    compiled = generator.compile(f"trips from Congress Avenue'; {keyword} TABLE stations; --")
    assert keyword not in compiled.text.upper()
    assert "'" not in compiled.text
    assert ";" not in compiled.text
    assert compiled.parameters[-1] == '%Congress Avenue%'
    assert count_placeholders(compiled.text) == len(compiled.parameters)
    assert SQLValidator().validate_sql_query(compiled.text, compiled.parameters).is_valid


def test_average_trip_duration(generator):
    compiled = generator.compile("What is the average trip duration?")
    assert compiled.text == (
        "SELECT ROUND(AVG(EXTRACT(EPOCH FROM (trips.ended_at - trips.started_at)) / 60)) AS average FROM trips"
    )
    assert compiled.parameters == ()
    assert compiled.intent is QueryIntent.AVERAGE


@pytest.mark.parametrize('question', [
    "How many trips were made?",
    "What was the average ride time for journeys that started at Congress Avenue in June 2025?",
    "Which docking point saw the most departures during the first week of June 2025?",
    "How many kilometres were ridden by women on rainy days in June 2025?",
    "List the stations",
    "show me unicorn data",
])
def test_compiled_queries_are_valid_and_deterministic(generator, question):
    compiled = generator.compile(question)
    assert count_placeholders(compiled.text) == len(compiled.parameters)
    assert SQLValidator().validate_sql_query(compiled.text, compiled.parameters).is_valid
    assert generator.compile(question) == compiled


def test_compile_without_schema_still_produces_a_query():
    compiled = QueryGenerator().compile("How many trips were made?")
    assert compiled.text == "SELECT COUNT(*) AS count FROM trips"


def test_compile_is_timed(generator):
    generator.compile("How many trips were made?")
    summary = get_metrics_collector().get_summary()
    assert summary['counters']['compiler.compile.calls'] == 1
    assert summary['timers']['compiler.compile.duration']['count'] == 1
