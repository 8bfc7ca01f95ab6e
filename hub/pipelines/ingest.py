"""Document ingestion: pasted itineraries, uploads (PDF/image) and emails.

Implementations here:
- normalize text and run the flight/activity/date extractors;
- match extracted travelers to family members and flag misses for review;
- log every ingested text once, keyed by its SHA-256 content hash;
- persist confirmed flights as travel records.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping

from sqlalchemy import Table, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from extract.activities import extract_activities
from extract.dates import extract_dates, normalize_date
from extract.flights import extract_flights
from hub import models
from hub.config import settings
from hub.parsers import ParseError, parse_file
from hub.pipelines.matching import load_members, match_member
from hub.pipelines.normalization import normalize_text

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Raised when ingestion fails for reasons other than unparseable input."""
    pass


@dataclass
class FlightReview:
    """Extracted flights awaiting human confirmation."""
    flights: list[dict]
    needs_review: bool


@dataclass
class IngestedUpload:
    """Result of processing one uploaded file."""
    filename: str
    extracted: dict
    raw_text: str


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _dialect_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise IngestionError(f"Conflict-ignoring inserts are not supported on {dialect}")


async def insert_ignore_conflicts(
    session: AsyncSession,
    table: Table,
    rows: Iterable[Mapping[str, Any]],
    *,
    index_elements: list[str],
) -> int:
    """Insert all rows in one parameterized statement, skipping conflicts.

    Returns the number of rows actually written.
    """
    rows = [dict(row) for row in rows]
    if not rows:
        return 0

    insert = _dialect_insert(session)
    stmt = insert(table).values(rows).on_conflict_do_nothing(index_elements=index_elements)
    result = await session.execute(stmt)
    return max(result.rowcount or 0, 0)


async def record_document(
    session: AsyncSession,
    *,
    source_type: str,
    text: str,
    extracted_data: dict,
    filename: str | None = None,
    file_type: str | None = None,
    notes: str | None = None,
) -> bool:
    """Log an ingested text once; identical content is ignored.

    Returns True when a new document row was written.
    """
    digest = content_hash(text)
    try:
        written = await insert_ignore_conflicts(
            session,
            models.IngestedDocument.__table__,
            [{
                "filename": filename,
                "file_type": file_type,
                "source_type": source_type,
                "content_hash": digest,
                "extracted_data": extracted_data,
                "notes": notes,
            }],
            index_elements=["content_hash"],
        )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to record ingested document: {e}", exc_info=True)
        raise IngestionError(f"Could not record document: {e}") from e

    if not written:
        logger.info(f"Document {digest[:12]} already ingested, not stored again")
    return bool(written)


def extract_document(text: str) -> dict:
    """Run every extractor over text. Never raises; empty lists when nothing is found."""
    return {
        "flights": [f.to_dict() for f in extract_flights(text)],
        "activities": [a.to_dict() for a in extract_activities(text)],
        "dates": extract_dates(text),
    }


async def review_itinerary(
    session: AsyncSession,
    text: str,
    *,
    source: str | None = None,
) -> FlightReview:
    """Extract flights from pasted text and match travelers to members.

    Raises:
        ParseError: If no flight number is found
    """
    normalized = normalize_text(text or "")
    flights = extract_flights(normalized)
    if not flights:
        raise ParseError(
            "Could not parse flight information. Please ensure the text contains "
            "flight details like dates, flight numbers, and destinations"
        )

    members = await load_members(session)

    processed = []
    for flight in flights:
        member = match_member(flight.traveler_name, members, text=normalized)
        processed.append({
            **flight.to_dict(),
            "member_id": member.id if member else None,
            "member_name": member.name if member else flight.traveler_name,
            "needs_member_assignment": member is None,
        })

    logger.info(
        f"Extracted {len(processed)} flight(s), "
        f"{sum(1 for f in processed if f['needs_member_assignment'])} need member assignment"
    )

    await record_document(
        session,
        source_type=source or "text",
        text=text,
        extracted_data={"flights": processed},
    )

    return FlightReview(
        flights=processed,
        needs_review=any(f["needs_member_assignment"] for f in processed),
    )


def _as_date(value: Any) -> date | None:
    normalized = normalize_date(value)
    return date.fromisoformat(normalized) if normalized else None


async def confirm_flights(
    session: AsyncSession,
    flights: Iterable[Mapping[str, Any]],
) -> list[models.Travel]:
    """Persist reviewed flights as travel records.

    Entries without a ``member_id`` are skipped.

    Raises:
        IngestionError: If the insert fails; nothing is saved in that case
    """
    saved: list[models.Travel] = []
    try:
        for flight in flights:
            if not flight.get("member_id"):
                logger.debug(f"Skipping flight {flight.get('flight_number')} without member")
                continue

            trip = models.Travel(
                member_id=flight["member_id"],
                destination=flight.get("destination"),
                departure_date=_as_date(flight.get("departure_date")),
                departure_time=flight.get("departure_time"),
                return_date=_as_date(flight.get("return_date")),
                return_time=flight.get("return_time"),
                flight_number=flight.get("flight_number"),
                airline=flight.get("airline"),
                confirmation_code=flight.get("confirmation_code"),
                notes=flight.get("notes"),
                source="itinerary",
            )
            session.add(trip)
            saved.append(trip)

        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to save confirmed flights: {e}", exc_info=True)
        raise IngestionError(f"Could not save flights: {e}") from e

    logger.info(f"Saved {len(saved)} confirmed flight(s)")
    return saved


def _stage_upload(content: bytes, filename: str) -> Path:
    upload_dir = Path(settings.uploads.dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / f"{uuid.uuid4().hex}-{Path(filename).name}"
    path.write_bytes(content)
    return path


async def ingest_upload(
    session: AsyncSession,
    content: bytes,
    filename: str,
) -> IngestedUpload:
    """Extract text from an uploaded PDF or image and run the extractors.

    The staged copy of the upload is removed whether or not processing succeeds.

    Raises:
        ParseError: If no text can be read from the file
    """
    path = _stage_upload(content, filename)
    try:
        parsed = await asyncio.to_thread(parse_file, path, filename)
        text = normalize_text(parsed.text)

        extracted = {"text": parsed.text, **extract_document(text)}
        if "num_pages" in parsed.metadata:
            extracted["num_pages"] = parsed.metadata["num_pages"]

        await record_document(
            session,
            source_type=parsed.file_type.value,
            text=parsed.text,
            extracted_data=extracted,
            filename=filename,
            file_type=parsed.file_type.value,
        )

        logger.info(
            f"Ingested {filename}: {len(extracted['flights'])} flight(s), "
            f"{len(extracted['activities'])} activity hint(s)"
        )
        return IngestedUpload(
            filename=filename,
            extracted=extracted,
            raw_text=parsed.text[:settings.ingest.preview_chars],
        )
    finally:
        path.unlink(missing_ok=True)


async def ingest_email(
    session: AsyncSession,
    *,
    subject: str | None,
    body: str | None,
    sender: str | None = None,
    sent_at: str | None = None,
) -> dict:
    """Run the extractors over an email's subject and body."""
    full_text = f"{subject or ''}\n{body or ''}"
    extracted = {
        "subject": subject,
        "from": sender,
        "date": sent_at,
        **extract_document(normalize_text(full_text, clean_html_tags=True)),
    }

    await record_document(
        session,
        source_type="email",
        text=full_text,
        extracted_data=extracted,
        notes=f"From: {sender}, Subject: {subject}",
    )

    return {
        "extracted": extracted,
        "has_flight_info": bool(extracted["flights"]),
        "has_activity_info": bool(extracted["activities"]),
    }


async def list_documents(
    session: AsyncSession,
    *,
    limit: int | None = None,
    source_type: str | None = None,
) -> list[models.IngestedDocument]:
    """Ingestion history, newest first."""
    query = select(models.IngestedDocument)
    if source_type:
        query = query.where(models.IngestedDocument.source_type == source_type)
    query = query.order_by(models.IngestedDocument.processed_at.desc(), models.IngestedDocument.id.desc())
    query = query.limit(limit or settings.ingest.history_limit)

    result = await session.execute(query)
    return list(result.scalars().all())
