"""
Date range extraction from informal phrasing.

Recognised, in priority order:
- "last month": the whole previous calendar month relative to now
- "first week of <month>": days 1-7 of the month named right after the phrase
- a month name followed by a year: the whole calendar month

"first week of June" carries no year. The year then comes from the caller's
reference_year (CompilerConfig.reference_year) rather than the clock, since
the ride data covers a fixed period.
"""

import calendar
import re
from datetime import datetime, time
from typing import Optional

from dateutil.relativedelta import relativedelta

from shared.schemas.query_models import DateRange


MONTHS = {name.lower(): number for number, name in enumerate(calendar.month_name) if name}

_MONTH_ALTERNATION = '|'.join(MONTHS)
_MONTH_YEAR_PATTERN = re.compile(rf'\b({_MONTH_ALTERNATION})\s+(?:of\s+)?((?:19|20)\d{{2}})\b')
_YEAR_PATTERN = re.compile(r'\b((?:19|20)\d{2})\b')
_LAST_MONTH_PATTERN = re.compile(r'\blast\s+month\b')
_FIRST_WEEK_PATTERN = re.compile(
    rf'\bfirst\s+week\s+(?:of\s+)?({_MONTH_ALTERNATION})\b(?:\s+(?:of\s+)?((?:19|20)\d{{2}})\b)?'
)

START_OF_DAY = time(0, 0, 0, 0)
END_OF_DAY = time(23, 59, 59, 999000)


def _day_range(year: int, month: int, first_day: int, last_day: int) -> DateRange:
    return DateRange(
        start=datetime.combine(datetime(year, month, first_day).date(), START_OF_DAY),
        end=datetime.combine(datetime(year, month, last_day).date(), END_OF_DAY),
    )


def month_range(year: int, month: int) -> DateRange:
    """The whole calendar month, inclusive."""
    return _day_range(year, month, 1, calendar.monthrange(year, month)[1])


def extract_date_range(
    question: str,
    now: Optional[datetime] = None,
    reference_year: int = 2025
) -> Optional[DateRange]:
    """Concrete inclusive range for the question's date phrase, or None."""
    lowered = (question or '').lower()

    if _LAST_MONTH_PATTERN.search(lowered):
        previous = (now or datetime.now()) - relativedelta(months=1)
        return month_range(previous.year, previous.month)

    first_week = _FIRST_WEEK_PATTERN.search(lowered)
    if first_week:
        year_text = first_week.group(2)
        if year_text is None:
            year_match = _YEAR_PATTERN.search(lowered)
            year_text = year_match.group(1) if year_match else None
        year = int(year_text) if year_text else reference_year
        return _day_range(year, MONTHS[first_week.group(1)], 1, 7)

    month_year = _MONTH_YEAR_PATTERN.search(lowered)
    if month_year:
        return month_range(int(month_year.group(2)), MONTHS[month_year.group(1)])

    return None
