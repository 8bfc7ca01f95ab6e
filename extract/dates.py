"""Date normalization for human-written dates.

Accepts numeric ``M/D/Y`` (month-first), written ``Month D, Year``, day-first
``D Month Year`` and canonical ``YYYY-MM-DD``, returning ``YYYY-MM-DD`` or
``None`` when the input cannot be read as a real calendar date.

Known limitation: a numeric date such as ``04/05/2025`` is always read
month-first (April 5), never day-first.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from dateutil import parser as date_parser

from extract.patterns import (
    DATE_DAY_FIRST,
    DATE_GRAMMARS,
    DATE_ISO,
    DATE_NUMERIC,
    DATE_WRITTEN,
    find_ordered,
)

logger = logging.getLogger(__name__)


def normalize_date(value: str | date | None) -> str | None:
    """Convert a date string (or date object) to ``YYYY-MM-DD``.

    Never raises: malformed or impossible dates (``02/30/2025``) yield None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        iso = DATE_ISO.match(text)
        if iso:
            return date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3))).isoformat()

        numeric = DATE_NUMERIC.fullmatch(text)
        if numeric:
            month, day, year = (int(g) for g in numeric.groups())
            if year < 100:
                year += 2000
            return date(year, month, day).isoformat()

        # dateutil fills missing fields from today, so only hand it complete dates
        if DATE_WRITTEN.fullmatch(text):
            parsed = date_parser.parse(text, fuzzy=False)
        elif DATE_DAY_FIRST.fullmatch(text):
            parsed = date_parser.parse(text, dayfirst=True, fuzzy=False)
        else:
            return None
        return parsed.date().isoformat()
    except (ValueError, OverflowError, TypeError) as e:
        logger.debug(f"Unparseable date {text!r}: {e}")
        return None


def extract_dates(text: str) -> list[str]:
    """Return every date found in text, normalized, de-duplicated and sorted."""
    if not text:
        return []

    found: set[str] = set()
    for match in find_ordered(DATE_GRAMMARS, text):
        normalized = normalize_date(match.group(0))
        if normalized:
            found.add(normalized)
    return sorted(found)


def week_start(day: date | None = None) -> date:
    """Monday on or before ``day`` (today when omitted)."""
    day = day or date.today()
    return day - timedelta(days=day.weekday())


def week_bounds(day: date | None = None) -> tuple[date, date]:
    """Monday..Sunday of the week containing ``day``."""
    monday = week_start(day)
    return monday, monday + timedelta(days=6)


def saturday_of_week(day: date | None = None) -> date:
    return week_start(day) + timedelta(days=5)
