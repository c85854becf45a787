"""Question normalisation: lower-case, strip punctuation, drop stop words."""

import re
from typing import Tuple

STOP_WORDS = frozenset({
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of',
    'with', 'by', 'what', 'when', 'where', 'why', 'how', 'which', 'who', 'was',
    'were', 'is', 'are', 'be', 'been', 'being', 'have', 'has', 'had', 'do',
    'does', 'did', 'will', 'would', 'could', 'should',
})

MIN_TOKEN_LENGTH = 3

_NON_WORD = re.compile(r'[^\w\s]')


def normalize(question: str) -> Tuple[str, ...]:
    """
    Meaningful words of a question, in first-seen order without duplicates.

    >>> normalize("How many trips were made?")
    ('many', 'trips', 'made')
    """
    if not question:
        return ()

    cleaned = _NON_WORD.sub(' ', question.lower())
    seen = {}
    for word in cleaned.split():
        if len(word) >= MIN_TOKEN_LENGTH and word not in STOP_WORDS:
            seen.setdefault(word, None)
    return tuple(seen)
