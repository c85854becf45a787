import pytest

from nl2sql.intent_analyzer import classify
from shared.schemas.query_models import QueryIntent


@pytest.mark.parametrize('question,intent', [
    ("How many trips were made?", QueryIntent.TALLY),
    ("Count the rides from Congress Avenue", QueryIntent.TALLY),
    ("What was the average ride time in June 2025?", QueryIntent.AVERAGE),
    ("avg trip length", QueryIntent.AVERAGE),
    ("Total rides on rainy days", QueryIntent.TOTAL),
    ("Which docking point saw the most departures?", QueryIntent.MAXIMUM),
    ("Which station had the least traffic?", QueryIntent.MINIMUM),
    ("List the stations", QueryIntent.ENUMERATE),
    ("show me unicorn data", QueryIntent.FILTER),
])
def test_classify(question, intent):
    assert classify(question) is intent


def test_distance_vocabulary_wins_over_count():
    question = "How many kilometres were ridden by women on rainy days in June 2025?"
    assert classify(question) is QueryIntent.TOTAL


def test_average_checked_before_sum_and_list():
    assert classify("What is the average of the sum?") is QueryIntent.AVERAGE


def test_classify_is_deterministic():
    question = "Which docking point saw the most departures during the first week of June 2025?"
    assert {classify(question) for _ in range(5)} == {QueryIntent.MAXIMUM}


def test_classify_handles_empty_input():
    assert classify("") is QueryIntent.FILTER
