"""Compiled regex library for itinerary and schedule extraction.

Keywords (labels such as "Confirmation" or "Passenger") match case-insensitively;
the values they introduce (codes, proper names, airport codes) are matched
case-sensitively so ordinary lowercase prose is not picked up.
"""
from __future__ import annotations

import re

from config.lookup_tables import ACTIVITY_KEYWORDS, AIRLINE_NAMES, MONTH_NAMES, WEEKDAYS

_MONTHS = "|".join(MONTH_NAMES)
_AIRLINE_CODES = "|".join(AIRLINE_NAMES)

# "AA 1234", "DL1234", "Flight 1234", "flight #88"
FLIGHT_NUMBER = re.compile(
    rf"(?<![A-Za-z0-9])({_AIRLINE_CODES})\s?(\d{{1,4}})\b"
    r"|\b(?i:flight)\s*#?\s*(\d{1,4})\b"
)

# Three date grammars: numeric month-first, written "Month D, Year", day-first "D Month Year"
DATE_NUMERIC = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{4}|\d{2})\b")
DATE_WRITTEN = re.compile(
    rf"\b({_MONTHS})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?(?:,\s*|\s+)(\d{{4}})\b",
    re.IGNORECASE,
)
DATE_DAY_FIRST = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+({_MONTHS})\.?,?\s+(\d{{4}})\b",
    re.IGNORECASE,
)
DATE_ISO = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

DATE_GRAMMARS = (DATE_NUMERIC, DATE_WRITTEN, DATE_DAY_FIRST)

TIME = re.compile(r"\b(\d{1,2}):(\d{2})(?:\s*([AaPp]\.?[Mm]\.?))?")

TIME_RANGE = re.compile(
    r"\b\d{1,2}:\d{2}\s*(?:[AaPp][Mm])?\s*(?:-|to|\u2013)\s*\d{1,2}:\d{2}\s*(?:[AaPp][Mm])?",
    re.IGNORECASE,
)

CONFIRMATION_CODE = re.compile(
    r"\b(?i:confirmation(?:\s+(?:code|number|no\.?))?|pnr|booking(?:\s+(?:reference|ref\.?|code))?"
    r"|record\s+locator)"
    r"[\s:#]*([A-Z0-9]{5,8})\b"
)

# Labeled names first, honorifics second
TRAVELER_NAME_LABELED = re.compile(
    r"\b(?i:passenger|traveler|traveller|name)\s*:?[ \t]*([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)?)"
)
TRAVELER_NAME_HONORIFIC = re.compile(
    r"\b(?:Mr|Mrs|Ms|Miss|Dr)\.?[ \t]+([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)?)"
)
TRAVELER_NAMES = (TRAVELER_NAME_LABELED, TRAVELER_NAME_HONORIFIC)

# "from Boston", "to New York, NY", "departing JFK"
CITY = re.compile(
    r"\b(?i:from|to|departing|arriving|depart|arrive)\b[:\s]+"
    r"([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)?(?:,\s*[A-Z]{2}\b)?|[A-Z]{3}\b)"
)

WEEKDAY = re.compile(rf"\b({'|'.join(WEEKDAYS)})\b", re.IGNORECASE)

ACTIVITY_PATTERNS: list[tuple[str, re.Pattern]] = [
    (entry["type"], re.compile(rf"\b(?:{'|'.join(entry['patterns'])})\b", re.IGNORECASE))
    for entry in ACTIVITY_KEYWORDS
]


def find_ordered(patterns: tuple[re.Pattern, ...] | list[re.Pattern], text: str) -> list[re.Match]:
    """Collect matches of several alternative grammars in text order.

    Matches overlapping an earlier (or longer, at the same offset) match are
    dropped so one date in the text is never counted twice.
    """
    matches = [m for pattern in patterns for m in pattern.finditer(text)]
    matches.sort(key=lambda m: (m.start(), -(m.end() - m.start())))

    ordered: list[re.Match] = []
    last_end = -1
    for match in matches:
        if match.start() < last_end:
            continue
        ordered.append(match)
        last_end = match.end()
    return ordered
