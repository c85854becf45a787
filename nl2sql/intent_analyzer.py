"""
Intent Analysis for Ride Questions

Maps a question to exactly one analytic intent by keyword containment against
the lower-cased question. Rules are evaluated top to bottom and the first hit
wins, so order matters: distance vocabulary has to be seen before the generic
count words, otherwise "how many kilometres" would become a row count.

Intent Types:
- tally: row counts ("how many trips")
- average: mean ride duration
- total: summed distance
- maximum / minimum: extremum by group
- enumerate: list values of a column
- filter: anything else
"""

from typing import Optional, Tuple

from shared.schemas.query_models import QueryIntent


IntentRule = Tuple[Tuple[str, ...], QueryIntent]

INTENT_RULES: Tuple[IntentRule, ...] = (
    (('distance', 'kilometres', 'km', 'miles'), QueryIntent.TOTAL),
    (('average', 'avg'), QueryIntent.AVERAGE),
    (('sum', 'total'), QueryIntent.TOTAL),
    (('maximum', 'max', 'most'), QueryIntent.MAXIMUM),
    (('minimum', 'min', 'least'), QueryIntent.MINIMUM),
    (('count', 'how many'), QueryIntent.TALLY),
    (('which', 'what', 'list'), QueryIntent.ENUMERATE),
)


def matching_rule(question: str) -> Optional[IntentRule]:
    """First rule with a keyword contained in the question, if any."""
    lowered = (question or '').lower()
    for rule in INTENT_RULES:
        keywords, _ = rule
        if any(keyword in lowered for keyword in keywords):
            return rule
    return None


def classify(question: str) -> QueryIntent:
    """Classify a question; FILTER when no rule matches."""
    rule = matching_rule(question)
    return rule[1] if rule else QueryIntent.FILTER
