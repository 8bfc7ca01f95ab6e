"""Activity schedule hints from free text.

Every keyword occurrence of a category is paired with the i-th weekday and
i-th time range found anywhere in the text. Output is advisory and is shown
for review, never committed automatically.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from extract import patterns

logger = logging.getLogger(__name__)


@dataclass
class ActivityHint:
    """Possible recurring activity mentioned in text."""
    type: str
    name: str
    day: str | None = None
    time_range: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def extract_activities(text: str) -> list[ActivityHint]:
    """Scan text for activity keywords and nearby schedule tokens. Never raises."""
    if not text or not isinstance(text, str):
        return []

    try:
        days = [m.group(0) for m in patterns.WEEKDAY.finditer(text)]
        time_ranges = [m.group(0).strip() for m in patterns.TIME_RANGE.finditer(text)]

        hints: list[ActivityHint] = []
        for activity_type, pattern in patterns.ACTIVITY_PATTERNS:
            for index, match in enumerate(pattern.finditer(text)):
                hints.append(ActivityHint(
                    type=activity_type,
                    name=match.group(0),
                    day=days[index] if index < len(days) else None,
                    time_range=time_ranges[index] if index < len(time_ranges) else None,
                ))

        logger.debug(f"Extracted {len(hints)} activity hint(s)")
        return hints

    except Exception as e:
        logger.error(f"Activity extraction failed: {e}", exc_info=True)
        return []
