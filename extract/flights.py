"""Flight itinerary extraction from free text (emails, PDF text, OCR output).

Fragments (flight numbers, dates, times, confirmation codes, names, cities)
are collected independently and associated by position:

- the i-th flight number takes the (2i)-th and (2i+1)-th dates as departure
  and return, and the (2i)-th time as departure time;
- the first confirmation code and the first traveler name are copied onto
  every flight, so multi-traveler itineraries need manual review;
- the first two city/airport tokens become origin and destination.

Results are a best guess meant for human confirmation.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from config.lookup_tables import AIRLINE_NAMES
from extract import patterns
from extract.dates import normalize_date

logger = logging.getLogger(__name__)


@dataclass
class CandidateFlight:
    """A provisional flight record extracted from text."""
    airline: str | None
    airline_code: str | None
    flight_number: str
    departure_date: str | None = None
    departure_time: str | None = None
    return_date: str | None = None
    confirmation_code: str | None = None
    traveler_name: str | None = None
    origin: str | None = None
    destination: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def airline_name(code: str | None) -> str | None:
    """Resolve a two-letter code to a display name; unknown codes pass through."""
    if not code:
        return code
    return AIRLINE_NAMES.get(code.upper(), code)


def _nth(items: list, index: int):
    return items[index] if index < len(items) else None


def _first_group(matches: list, group: int = 1) -> str | None:
    return matches[0].group(group).strip() if matches else None


def extract_flights(text: str) -> list[CandidateFlight]:
    """Extract candidate flights from free text.

    Returns an empty list when no flight number is present, regardless of
    what other fragments the text contains. Never raises.

    Airline codes and confirmation codes are only recognised in upper case
    ("UA 88", "Confirmation: ABC123"); "ua 88" is not a flight and a
    lower-case code is not picked up. Numeric dates are read month-first.
    """
    if not text or not isinstance(text, str):
        return []

    try:
        flight_numbers = list(patterns.FLIGHT_NUMBER.finditer(text))
        if not flight_numbers:
            return []

        dates = [m.group(0) for m in patterns.find_ordered(patterns.DATE_GRAMMARS, text)]
        times = [m.group(0).strip() for m in patterns.TIME.finditer(text)]
        confirmations = list(patterns.CONFIRMATION_CODE.finditer(text))
        names = [m for pattern in patterns.TRAVELER_NAMES for m in pattern.finditer(text)]
        cities = list(patterns.CITY.finditer(text))

        confirmation_code = _first_group(confirmations)
        traveler_name = _first_group(names)
        origin = cities[0].group(1).strip() if len(cities) > 0 else None
        destination = cities[1].group(1).strip() if len(cities) > 1 else None

        flights = []
        for index, match in enumerate(flight_numbers):
            code, number = match.group(1), match.group(2)
            if code:
                code = code.upper()
                flight_number = f"{code}{number}"
            else:
                flight_number = match.group(3)

            flights.append(CandidateFlight(
                airline=airline_name(code),
                airline_code=code,
                flight_number=flight_number,
                departure_date=normalize_date(_nth(dates, index * 2)),
                return_date=normalize_date(_nth(dates, index * 2 + 1)),
                departure_time=_nth(times, index * 2),
                confirmation_code=confirmation_code,
                traveler_name=traveler_name,
                origin=origin,
                destination=destination,
            ))

        logger.debug(f"Extracted {len(flights)} flight(s) from text of length {len(text)}")
        return flights

    except Exception as e:
        logger.error(f"Flight extraction failed: {e}", exc_info=True)
        return []
