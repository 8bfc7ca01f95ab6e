"""Calendar feed import: iCalendar VEVENTs -> travel records.

Event summaries follow a "Name destination" convention ("Ivan Paris").
Each sync fetches the feed, matches every event to a family member, and
imports trips that are not already present under the natural key
(member_id, departure_date, destination). Storage is per event, so a failed
insert is reported in the summary and the remaining events still import.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Iterator

import httpx
from icalendar import Calendar
from sqlalchemy import Date, DateTime, Integer, String, Text, exists, insert, literal, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from hub import models
from hub.config import settings
from hub.pipelines.matching import load_members, match_exact, match_in_text, strip_member_name

logger = logging.getLogger(__name__)


class CalendarFetchError(Exception):
    """Raised when a feed cannot be fetched or is not valid iCalendar."""
    pass


@dataclass
class FeedEvent:
    """The parts of a VEVENT the importer uses."""
    summary: str
    start: date
    end: date


@dataclass
class SyncSummary:
    """Outcome of one sync run."""
    parsed: int = 0
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    trips: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _feed_url(url: str) -> str:
    url = url.strip()
    if url.lower().startswith("webcal://"):
        return "https://" + url[len("webcal://"):]
    return url


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(settings.calendar.fetch_attempts),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    reraise=True,
)
async def _download(client: httpx.AsyncClient, url: str) -> bytes:
    response = await client.get(url, follow_redirects=True)
    response.raise_for_status()
    return response.content


async def fetch_calendar(url: str, *, client: httpx.AsyncClient | None = None) -> Calendar:
    """Download and parse an iCalendar feed.

    Raises:
        CalendarFetchError: If the feed is unreachable, returns non-2xx, or
            is not parseable iCalendar
    """
    url = _feed_url(url)
    try:
        if client is not None:
            content = await _download(client, url)
        else:
            async with httpx.AsyncClient(timeout=settings.calendar.fetch_timeout) as own_client:
                content = await _download(own_client, url)
    except httpx.HTTPStatusError as e:
        logger.error(f"Calendar feed returned {e.response.status_code}: {url}")
        raise CalendarFetchError(f"Calendar feed returned HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.error(f"Calendar feed unreachable: {url}: {e}")
        raise CalendarFetchError(f"Calendar feed unreachable: {e}") from e

    try:
        return Calendar.from_ical(content)
    except ValueError as e:
        logger.error(f"Calendar feed is not valid iCalendar: {e}")
        raise CalendarFetchError(f"Invalid iCalendar data: {e}") from e


def _as_date(value) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def iter_events(calendar: Calendar) -> Iterator[FeedEvent | None]:
    """Yield each VEVENT of the feed; None for events without a start date.

    Non-event components (timezones, todos, journals) are skipped entirely.
    """
    for component in calendar.walk():
        if component.name != "VEVENT":
            continue

        dtstart = component.get("DTSTART")
        start = _as_date(dtstart.dt) if dtstart is not None else None
        if start is None:
            yield None
            continue

        dtend = component.get("DTEND")
        end = _as_date(dtend.dt) if dtend is not None else None

        yield FeedEvent(
            summary=str(component.get("SUMMARY", "") or ""),
            start=start,
            end=end or start,
        )


def match_event(event: FeedEvent, members: list[models.FamilyMember]) -> models.FamilyMember | None:
    """First word of the summary as an exact name, else any member name in the summary."""
    words = event.summary.split()
    member = match_exact(words[0] if words else None, members)
    if member is None:
        member = match_in_text(event.summary, members)
    return member


def _trip_exists(member_id: int, departure_date: date, destination: str):
    return exists().where(
        models.Travel.member_id == member_id,
        models.Travel.departure_date == departure_date,
        models.Travel.destination == destination,
    ).correlate(None)


async def _upsert_trip(
    session: AsyncSession,
    member: models.FamilyMember,
    event: FeedEvent,
    destination: str,
) -> bool:
    """Insert the trip unless already present. Returns True when a row was written.

    The guarded INSERT ... SELECT ... WHERE NOT EXISTS writes nothing for a
    duplicate. The key is not a storage-level constraint, so a zero row count
    is re-checked before counting the event as skipped.
    """
    notes = f"Synced from calendar: {event.summary}"
    columns = ["member_id", "destination", "departure_date", "return_date", "source", "notes", "created_at"]
    guarded = insert(models.Travel.__table__).from_select(
        columns,
        select(
            literal(member.id, Integer),
            literal(destination, String),
            literal(event.start, Date),
            literal(event.end, Date),
            literal("calendar", String),
            literal(notes, Text),
            literal(datetime.utcnow(), DateTime),
        ).where(~_trip_exists(member.id, event.start, destination)),
    )
    result = await session.execute(guarded)
    if result.rowcount:
        await session.commit()
        return True

    existing = await session.execute(select(_trip_exists(member.id, event.start, destination)))
    if existing.scalar():
        await session.commit()
        return False

    session.add(models.Travel(
        member_id=member.id,
        destination=destination,
        departure_date=event.start,
        return_date=event.end,
        source="calendar",
        notes=notes,
    ))
    await session.commit()
    return True


async def _mark_synced(session: AsyncSession) -> None:
    """Best-effort last_synced update; failures are logged, never raised."""
    try:
        await session.execute(
            update(models.CalendarSettings)
            .where(models.CalendarSettings.id == 1)
            .values(last_synced=datetime.utcnow())
        )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning(f"Could not update calendar last_synced: {e}")


async def sync_calendar(
    session: AsyncSession,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> SyncSummary:
    """Import travel from an iCalendar feed.

    Raises:
        CalendarFetchError: If the feed cannot be fetched or parsed; nothing
            is imported in that case
    """
    calendar = await fetch_calendar(url, client=client)
    members = await load_members(session)

    summary = SyncSummary()
    for event in iter_events(calendar):
        summary.parsed += 1
        if event is None:
            summary.skipped += 1
            continue

        member = match_event(event, members)
        if member is None:
            summary.skipped += 1
            summary.errors.append(f'Could not match name in: "{event.summary}"')
            logger.warning(f"Unmatched calendar event: {event.summary!r}")
            continue

        destination = strip_member_name(event.summary, member.name)
        try:
            written = await _upsert_trip(session, member, event, destination)
        except SQLAlchemyError as e:
            await session.rollback()
            summary.errors.append(f'DB error for "{event.summary}": {e}')
            logger.error(f"Failed to import calendar event {event.summary!r}: {e}", exc_info=True)
            # rollback expires loaded members
            members = await load_members(session)
            continue

        if not written:
            summary.skipped += 1
            logger.debug(f"Already imported: {event.summary!r}")
            continue

        summary.imported += 1
        summary.trips.append({
            "member": member.name,
            "destination": destination,
            "departure": event.start.isoformat(),
            "return": event.end.isoformat(),
        })

    await _mark_synced(session)

    logger.info(
        f"Calendar sync: {summary.parsed} parsed, {summary.imported} imported, "
        f"{summary.skipped} skipped, {len(summary.errors)} error(s)"
    )
    return summary


async def preview_calendar(
    session: AsyncSession,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Dry run of ``sync_calendar``: report what would be imported, write nothing."""
    calendar = await fetch_calendar(url, client=client)
    members = await load_members(session)

    events = []
    for event in iter_events(calendar):
        if event is None:
            continue

        member = match_event(event, members)
        destination = strip_member_name(event.summary, member.name) if member else (event.summary or "Travel")
        events.append({
            "original": event.summary,
            "matched_member": member.name if member else None,
            "destination": destination,
            "departure_date": event.start.isoformat(),
            "return_date": event.end.isoformat(),
            "will_import": member is not None,
        })

    return {
        "total_events": len(events),
        "will_import": sum(1 for e in events if e["will_import"]),
        "events": events,
    }


async def get_calendar_settings(session: AsyncSession) -> models.CalendarSettings | None:
    return await session.get(models.CalendarSettings, 1)


async def save_calendar_url(session: AsyncSession, url: str | None) -> models.CalendarSettings:
    """Create or update the single calendar settings row."""
    row = await session.get(models.CalendarSettings, 1)
    if row is None:
        row = models.CalendarSettings(id=1, calendar_url=url)
        session.add(row)
    else:
        row.calendar_url = url
    await session.commit()
    return row
