"""Calendar-date helpers shared by the workbook reader and the evolution walk."""

import re
from datetime import date, datetime, timedelta
from typing import Any, Iterator

import pandas as pd

# Year-first text, month and day possibly unpadded (e.g. "2024-3-5")
YEAR_FIRST_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:$|[T ])")


def to_date(value: Any) -> date:
    """Normalize a worksheet cell value to a calendar date.

    Accepts ``date``, ``datetime`` (time of day is dropped), pandas
    ``Timestamp`` and strings. Year-first text such as ``2024-3-5`` is read
    as year-month-day; any other text is read day first (``dd/mm/yyyy``).

    Args:
        value: The raw value to convert.

    Returns:
        The calendar date the value represents.

    Raises:
        ValueError: If the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty date value")
        match = YEAR_FIRST_DATE.match(text)
        if match:
            year, month, day = (int(part) for part in match.groups())
            return date(year, month, day)
        return pd.to_datetime(text, dayfirst=True).date()
    raise ValueError(f"Cannot interpret {value!r} as a date")


def is_empty_cell(value: Any) -> bool:
    """Return True for cells the spreadsheet would show as blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def iter_days(first_date: date, last_date: date) -> Iterator[date]:
    """Yield every calendar day from first_date to last_date, inclusive.

    Nothing is yielded when first_date is after last_date.
    """
    current_date = first_date
    while current_date <= last_date:
        yield current_date
        current_date = current_date + timedelta(days=1)
