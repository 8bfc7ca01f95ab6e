"""FastAPI app: family members, document ingestion, calendar sync and survey.

Endpoints return JSON; domain errors are translated to ``ErrorResponse``
bodies by the exception handlers below.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models
from .config import settings
from .db import get_session
from .logging_config import setup_logging
from .parsers import FileType, ParseError, detect_file_type
from .pipelines.calendar_sync import (
    CalendarFetchError,
    get_calendar_settings,
    preview_calendar,
    save_calendar_url,
    sync_calendar,
)
from .pipelines.ingest import (
    IngestionError,
    confirm_flights,
    ingest_email,
    ingest_upload,
    list_documents,
    review_itinerary,
)
from .pipelines.matching import load_members
from .pipelines.survey_parsing import create_question, list_questions, parse_response, submit_response

logger = logging.getLogger(__name__)


# Pydantic request/response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class MemberDTO(BaseModel):
    """Family member."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    role: str
    color: str | None = None


class CreateMemberRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    role: str = Field(default="other", pattern="^(parent|child|other)$")
    color: str | None = None


class FlightDTO(BaseModel):
    """Candidate flight, as extracted and as sent back for confirmation."""
    model_config = ConfigDict(extra="ignore")

    airline: str | None = None
    airline_code: str | None = None
    flight_number: str | None = None
    departure_date: str | None = None
    departure_time: str | None = None
    return_date: str | None = None
    return_time: str | None = None
    confirmation_code: str | None = None
    traveler_name: str | None = None
    origin: str | None = None
    destination: str | None = None
    notes: str | None = None
    member_id: int | None = None
    member_name: str | None = None
    needs_member_assignment: bool = False


class ItineraryRequest(BaseModel):
    text: str = Field(min_length=1)
    source: str | None = None


class ItineraryResponse(BaseModel):
    flights: list[FlightDTO]
    needs_review: bool


class ConfirmFlightsRequest(BaseModel):
    flights: list[FlightDTO]


class TravelDTO(BaseModel):
    """Stored travel record."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_id: int
    destination: str | None = None
    departure_date: date | None = None
    return_date: date | None = None
    departure_time: str | None = None
    return_time: str | None = None
    flight_number: str | None = None
    airline: str | None = None
    confirmation_code: str | None = None
    notes: str | None = None
    source: str


class ConfirmFlightsResponse(BaseModel):
    saved: list[TravelDTO]
    count: int


class UploadResponse(BaseModel):
    """Text extraction result for an uploaded PDF or image."""
    filename: str
    extracted: dict[str, Any]
    raw_text: str


class EmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str | None = None
    body: str | None = None
    sender: str | None = Field(default=None, alias="from")
    sent_at: str | None = Field(default=None, alias="date")


class EmailResponse(BaseModel):
    extracted: dict[str, Any]
    has_flight_info: bool
    has_activity_info: bool


class DocumentDTO(BaseModel):
    """Ingestion history entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str | None = None
    file_type: str | None = None
    source_type: str
    extracted_data: dict[str, Any] | None = None
    notes: str | None = None
    processed_at: datetime


class CalendarURLRequest(BaseModel):
    calendar_url: str | None = None


class CalendarSettingsResponse(BaseModel):
    calendar_url: str | None = None
    last_synced: datetime | None = None


class SyncResponse(BaseModel):
    """Calendar sync summary."""
    parsed: int
    imported: int
    skipped: int
    errors: list[str]
    trips: list[dict[str, Any]]


class PreviewEventDTO(BaseModel):
    original: str
    matched_member: str | None = None
    destination: str
    departure_date: str
    return_date: str
    will_import: bool


class PreviewResponse(BaseModel):
    total_events: int
    will_import: int
    events: list[PreviewEventDTO]


class CreateQuestionRequest(BaseModel):
    question_text: str = Field(min_length=1)
    question_type: str = "text"
    category: str | None = None
    priority: int = Field(default=5, ge=1, le=10)


class QuestionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_text: str
    question_type: str
    category: str | None = None
    priority: int
    active: bool


class ParseResponseRequest(BaseModel):
    response_text: str
    week_start_date: date | None = None


class ParsedItemDTO(BaseModel):
    type: str
    member: str | None = None
    details: str
    line: str


class ParseResponseResult(BaseModel):
    parsed: list[ParsedItemDTO]
    errors: list[str]
    message: str


class SubmitResponseRequest(BaseModel):
    question_id: int
    response_text: str | None = None
    week_start_date: date | None = None


class SurveyResponseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_id: int
    response_text: str | None = None
    response_date: date
    week_start_date: date | None = None


class SubmitResponseResult(BaseModel):
    response: SurveyResponseDTO
    parse_result: ParseResponseResult | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    setup_logging()
    logger.info("Application starting up")

    yield

    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Household operations: itinerary, document, calendar and survey ingestion",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Dashboard dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ParseError)
async def parse_error_handler(request, exc: ParseError):
    """Handle unparseable input."""
    logger.warning(f"Parse error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error=str(exc), detail="parse_error").model_dump(),
    )


@app.exception_handler(CalendarFetchError)
async def calendar_fetch_error_handler(request, exc: CalendarFetchError):
    """Handle unreachable or invalid calendar feeds."""
    logger.error(f"Calendar fetch error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=ErrorResponse(error=str(exc), detail="calendar_fetch_error").model_dump(),
    )


@app.exception_handler(IngestionError)
async def ingestion_error_handler(request, exc: IngestionError):
    """Handle ingestion storage failures."""
    logger.error(f"Ingestion error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error=str(exc), detail="ingestion_error").model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request, exc: StarletteHTTPException):
    """Render HTTP errors in the same shape as domain errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Unexpected error {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal server error: {str(e)}",
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=settings.version)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "members": "/members",
            "flight_itinerary": "/ingest/flight-itinerary",
            "confirm_flights": "/ingest/flight-itinerary/confirm",
            "pdf": "/ingest/pdf",
            "image": "/ingest/image",
            "email": "/ingest/email",
            "history": "/ingest/history",
            "calendar_settings": "/calendar/settings",
            "calendar_sync": "/calendar/sync",
            "calendar_preview": "/calendar/preview",
            "survey_questions": "/survey/questions",
            "survey_responses": "/survey/responses",
            "parse_response": "/survey/parse-response",
            "docs": "/docs",
        },
    }


# Family members
@app.get("/members", response_model=list[MemberDTO])
async def get_members(session: AsyncSession = Depends(get_session)) -> list[MemberDTO]:
    """All family members, in matching order."""
    members = await load_members(session)
    return [MemberDTO.model_validate(m) for m in members]


@app.post("/members", response_model=MemberDTO, status_code=status.HTTP_201_CREATED)
async def create_member(
    request: CreateMemberRequest,
    session: AsyncSession = Depends(get_session),
) -> MemberDTO:
    member = models.FamilyMember(name=request.name.strip(), role=request.role, color=request.color)
    session.add(member)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Member {request.name!r} already exists",
        )
    logger.info(f"Created family member {member.name}")
    return MemberDTO.model_validate(member)


# Ingestion
@app.post("/ingest/flight-itinerary", response_model=ItineraryResponse)
async def ingest_flight_itinerary(
    request: ItineraryRequest,
    session: AsyncSession = Depends(get_session),
) -> ItineraryResponse:
    """Extract candidate flights from pasted itinerary text for review.

    Nothing is saved as travel until the flights are confirmed.

    Raises:
        ParseError: (400) If no flight number is found in the text
    """
    try:
        review = await review_itinerary(session, request.text, source=request.source)
    except (ParseError, IngestionError):
        raise
    except Exception as e:
        raise _internal_error("parsing itinerary", e)

    return ItineraryResponse(
        flights=[FlightDTO(**f) for f in review.flights],
        needs_review=review.needs_review,
    )


@app.post(
    "/ingest/flight-itinerary/confirm",
    response_model=ConfirmFlightsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def confirm_flight_itinerary(
    request: ConfirmFlightsRequest,
    session: AsyncSession = Depends(get_session),
) -> ConfirmFlightsResponse:
    """Persist reviewed flights; entries without a member are not saved."""
    saved = await confirm_flights(session, [f.model_dump() for f in request.flights])
    return ConfirmFlightsResponse(
        saved=[TravelDTO.model_validate(t) for t in saved],
        count=len(saved),
    )


async def _read_upload(file: UploadFile, expected: FileType) -> bytes:
    """Validate an upload's name, type and size and return its bytes."""
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )

    file_ext = Path(file.filename).suffix.lower()
    allowed = settings.uploads.allowed_extensions
    if file_ext not in allowed or detect_file_type(file.filename) != expected:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type for {expected.value} upload. Allowed: {', '.join(allowed)}",
        )

    content = await file.read()
    if len(content) > settings.uploads.max_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large (max {settings.uploads.max_bytes} bytes)",
        )
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )
    return content


async def _ingest_upload(file: UploadFile, expected: FileType, session: AsyncSession) -> UploadResponse:
    try:
        content = await _read_upload(file, expected)
        logger.info(f"Received {expected.value} upload: {file.filename}")

        result = await ingest_upload(session, content, file.filename)
        return UploadResponse(
            filename=result.filename,
            extracted=result.extracted,
            raw_text=result.raw_text,
        )
    except (HTTPException, ParseError, IngestionError):
        raise
    except Exception as e:
        raise _internal_error(f"processing {file.filename}", e)
    finally:
        await file.close()


@app.post("/ingest/pdf", response_model=UploadResponse)
async def ingest_pdf(
    file: UploadFile = File(..., description="PDF document (itinerary, school calendar, schedule)"),
    session: AsyncSession = Depends(get_session),
) -> UploadResponse:
    """Extract text from a PDF and run the flight, activity and date extractors."""
    return await _ingest_upload(file, FileType.PDF, session)


@app.post("/ingest/image", response_model=UploadResponse)
async def ingest_image(
    file: UploadFile = File(..., description="Photo or screenshot (JPEG, PNG)"),
    session: AsyncSession = Depends(get_session),
) -> UploadResponse:
    """OCR an image and run the flight, activity and date extractors."""
    return await _ingest_upload(file, FileType.IMAGE, session)


@app.post("/ingest/email", response_model=EmailResponse)
async def ingest_email_endpoint(
    request: EmailRequest,
    session: AsyncSession = Depends(get_session),
) -> EmailResponse:
    """Run the extractors over an email's subject and body."""
    try:
        result = await ingest_email(
            session,
            subject=request.subject,
            body=request.body,
            sender=request.sender,
            sent_at=request.sent_at,
        )
    except IngestionError:
        raise
    except Exception as e:
        raise _internal_error("processing email", e)
    return EmailResponse(**result)


@app.get("/ingest/history", response_model=list[DocumentDTO])
async def ingest_history(
    limit: int | None = Query(default=None, ge=1, le=1000),
    source_type: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[DocumentDTO]:
    """Previously ingested documents, newest first."""
    documents = await list_documents(session, limit=limit, source_type=source_type)
    return [DocumentDTO.model_validate(d) for d in documents]


# Calendar feed
@app.get("/calendar/settings", response_model=CalendarSettingsResponse)
async def get_calendar_feed_settings(session: AsyncSession = Depends(get_session)) -> CalendarSettingsResponse:
    row = await get_calendar_settings(session)
    if row is None:
        return CalendarSettingsResponse()
    return CalendarSettingsResponse(calendar_url=row.calendar_url, last_synced=row.last_synced)


@app.post("/calendar/settings", response_model=CalendarSettingsResponse)
async def save_calendar_feed_settings(
    request: CalendarURLRequest,
    session: AsyncSession = Depends(get_session),
) -> CalendarSettingsResponse:
    row = await save_calendar_url(session, request.calendar_url)
    logger.info("Calendar feed URL updated")
    return CalendarSettingsResponse(calendar_url=row.calendar_url, last_synced=row.last_synced)


async def _resolve_calendar_url(request: CalendarURLRequest, session: AsyncSession) -> str:
    """The URL from the request, else the stored one."""
    if request.calendar_url and request.calendar_url.strip():
        return request.calendar_url.strip()

    row = await get_calendar_settings(session)
    if row is not None and row.calendar_url:
        return row.calendar_url

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Calendar URL is required",
    )


@app.post("/calendar/sync", response_model=SyncResponse)
async def calendar_sync(
    request: CalendarURLRequest,
    session: AsyncSession = Depends(get_session),
) -> SyncResponse:
    """Import trips from an iCalendar feed.

    Returns a summary with per-event errors; a feed that cannot be fetched
    fails the whole request (502).
    """
    url = await _resolve_calendar_url(request, session)
    try:
        summary = await sync_calendar(session, url)
    except CalendarFetchError:
        raise
    except Exception as e:
        raise _internal_error("syncing calendar", e)
    return SyncResponse(**summary.to_dict())


@app.post("/calendar/preview", response_model=PreviewResponse)
async def calendar_preview(
    request: CalendarURLRequest,
    session: AsyncSession = Depends(get_session),
) -> PreviewResponse:
    """Report what a sync would import without writing anything."""
    url = await _resolve_calendar_url(request, session)
    try:
        preview = await preview_calendar(session, url)
    except CalendarFetchError:
        raise
    except Exception as e:
        raise _internal_error("previewing calendar", e)
    return PreviewResponse(**preview)


# Weekly survey
@app.get("/survey/questions", response_model=list[QuestionDTO])
async def get_survey_questions(session: AsyncSession = Depends(get_session)) -> list[QuestionDTO]:
    questions = await list_questions(session)
    return [QuestionDTO.model_validate(q) for q in questions]


@app.post("/survey/questions", response_model=QuestionDTO, status_code=status.HTTP_201_CREATED)
async def create_survey_question(
    request: CreateQuestionRequest,
    session: AsyncSession = Depends(get_session),
) -> QuestionDTO:
    question = await create_question(
        session,
        question_text=request.question_text,
        question_type=request.question_type,
        category=request.category,
        priority=request.priority,
    )
    return QuestionDTO.model_validate(question)


@app.post("/survey/responses", response_model=SubmitResponseResult, status_code=status.HTTP_201_CREATED)
async def create_survey_response(
    request: SubmitResponseRequest,
    session: AsyncSession = Depends(get_session),
) -> SubmitResponseResult:
    """Store a survey answer; answers to "other" questions are parsed into records."""
    try:
        response, parsed = await submit_response(
            session,
            question_id=request.question_id,
            response_text=request.response_text,
            week_start_date=request.week_start_date,
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return SubmitResponseResult(
        response=SurveyResponseDTO.model_validate(response),
        parse_result=ParseResponseResult(**parsed.to_dict()) if parsed else None,
    )


@app.post("/survey/parse-response", response_model=ParseResponseResult)
async def parse_survey_response(
    request: ParseResponseRequest,
    session: AsyncSession = Depends(get_session),
) -> ParseResponseResult:
    """Split a free-text answer into travel, activity and note items and store them."""
    try:
        result = await parse_response(session, request.response_text, request.week_start_date)
    except Exception as e:
        raise _internal_error("parsing survey response", e)
    return ParseResponseResult(**result.to_dict())
