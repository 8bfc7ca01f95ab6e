"""Weekly survey: questions, responses and free-text response parsing.

A response blob is split into clauses (lines, semicolons, commas). Each
clause is classified in order as travel ("Ivan flying to Denver"), an
activity ("Marnie climbing on Saturday") or a plain note, and travel and
activity clauses are stored immediately. Every clause is committed on its
own so one bad clause never loses the others.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.lookup_tables import WEEKDAYS
from extract.dates import saturday_of_week, week_bounds
from hub import models
from hub.pipelines.matching import load_members, match_exact, match_in_text
from hub.pipelines.normalization import normalize_text

logger = logging.getLogger(__name__)

CLAUSE_SEPARATORS = re.compile(r"[,\n;]+")

TRAVEL_CLAUSE = re.compile(
    r"\b(\w+)\s+(?:going|traveling|travelling|trip|flying|visiting)\s+(?:to\s+)?(.+)$",
    re.IGNORECASE,
)

_FILLER = r"(?:has|is doing|is|goes to|going to|at|for|'s|-)"
LEADING_FILLER = re.compile(rf"^(?:\s*{_FILLER}(?=\s|$))+\s*", re.IGNORECASE)
TRAILING_FILLER = re.compile(rf"(?:\s+{_FILLER})+\s*$", re.IGNORECASE)

# "on Saturday", "at 3pm", "at 10:30": when the activity happens, not what it is
TRAILING_WHEN = re.compile(
    rf"\s+(?:(?:on|this)\s+(?:{'|'.join(WEEKDAYS)})s?"
    r"|at\s+\d{1,2}(?::\d{2})?\s*(?:[ap]\.?m\.?)?)\s*$",
    re.IGNORECASE,
)

MIN_ACTIVITY_NAME = 3


@dataclass
class ParsedItem:
    """One classified clause."""
    type: str
    details: str
    line: str
    member: str | None = None

    def to_dict(self) -> dict:
        item = {"type": self.type, "details": self.details, "line": self.line}
        if self.member is not None:
            item["member"] = self.member
        return item


@dataclass
class ParseResult:
    """All clauses of one response, plus the clauses that could not be stored."""
    parsed: list[ParsedItem] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        counts = {kind: sum(1 for item in self.parsed if item.type == kind) for kind in ("travel", "activity", "note")}
        return (
            f"Parsed {len(self.parsed)} items: {counts['travel']} travel, "
            f"{counts['activity']} activities, {counts['note']} notes"
        )

    def to_dict(self) -> dict:
        return {
            "parsed": [item.to_dict() for item in self.parsed],
            "errors": self.errors,
            "message": self.message,
        }


def split_clauses(text: str) -> list[str]:
    """Non-empty trimmed clauses of a response blob."""
    return [clause.strip() for clause in CLAUSE_SEPARATORS.split(text or "") if clause.strip()]


def activity_name(clause: str, member_name: str) -> str:
    """Strip the member's name, filler words and a trailing "when" phrase from a clause."""
    name = re.sub(re.escape(member_name) + r"(?:'s)?", " ", clause, flags=re.IGNORECASE)
    name = re.sub(r"\s+", " ", name).strip()

    previous = None
    while name != previous:
        previous = name
        name = TRAILING_WHEN.sub("", name)
        name = LEADING_FILLER.sub("", name)
        name = TRAILING_FILLER.sub("", name).strip()
    return name


async def _store_travel(
    session: AsyncSession,
    member: models.FamilyMember,
    destination: str,
    week: date,
    line: str,
) -> None:
    monday, sunday = week_bounds(week)
    session.add(models.Travel(
        member_id=member.id,
        destination=destination,
        departure_date=monday,
        return_date=sunday,
        source="survey",
        notes=f"From survey: {line}",
    ))
    await session.commit()


async def _find_or_create_activity(
    session: AsyncSession,
    member: models.FamilyMember,
    name: str,
) -> models.Activity:
    result = await session.execute(
        select(models.Activity)
        .where(models.Activity.member_id == member.id, func.lower(models.Activity.name) == name.lower())
        .order_by(models.Activity.id)
        .limit(1)
    )
    activity = result.scalar_one_or_none()
    if activity is None:
        activity = models.Activity(member_id=member.id, name=name, type="other", notes="Created from survey")
        session.add(activity)
        await session.flush()
        logger.debug(f"Created activity {name!r} for {member.name}")
    return activity


async def _store_activity(
    session: AsyncSession,
    member: models.FamilyMember,
    name: str,
    week: date,
    line: str,
) -> None:
    activity = await _find_or_create_activity(session, member, name)
    session.add(models.ActivityInstance(
        activity_id=activity.id,
        date=saturday_of_week(week),
        status="scheduled",
        source="survey",
        notes=f"From survey: {line}",
    ))
    await session.commit()


async def _classify_clause(
    session: AsyncSession,
    clause: str,
    members: Sequence[models.FamilyMember],
    week: date,
) -> ParsedItem:
    travel = TRAVEL_CLAUSE.search(clause)
    if travel:
        member = match_exact(travel.group(1), members)
        if member is not None:
            destination = travel.group(2).strip().rstrip(".!")
            await _store_travel(session, member, destination, week, clause)
            return ParsedItem(type="travel", member=member.name, details=destination, line=clause)

    member = match_in_text(clause, members)
    if member is not None:
        name = activity_name(clause, member.name)
        if len(name) >= MIN_ACTIVITY_NAME:
            await _store_activity(session, member, name, week, clause)
            return ParsedItem(type="activity", member=member.name, details=name, line=clause)

    return ParsedItem(type="note", details=clause, line=clause)


async def parse_response(
    session: AsyncSession,
    response_text: str,
    week_start_date: date | None = None,
) -> ParseResult:
    """Classify and store every clause of a free-text survey response.

    Args:
        session: Database session
        response_text: Multi-line, comma or semicolon separated answer
        week_start_date: Any day of the target week (current week when omitted)

    Returns:
        ParseResult with one item per stored or noted clause, and one error
        message per clause whose storage failed
    """
    week = week_start_date or date.today()
    members = await load_members(session)

    result = ParseResult()
    for clause in split_clauses(normalize_text(response_text or "")):
        try:
            item = await _classify_clause(session, clause, members, week)
        except SQLAlchemyError as e:
            await session.rollback()
            result.errors.append(f'Failed to save "{clause}": {e}')
            logger.error(f"Survey clause {clause!r} not stored: {e}", exc_info=True)
            members = await load_members(session)
            continue
        result.parsed.append(item)

    logger.info(f"{result.message} ({len(result.errors)} failed)")
    return result


async def create_question(
    session: AsyncSession,
    *,
    question_text: str,
    question_type: str = "text",
    category: str | None = None,
    priority: int = 5,
) -> models.SurveyQuestion:
    question = models.SurveyQuestion(
        question_text=question_text,
        question_type=question_type,
        category=category,
        priority=priority,
    )
    session.add(question)
    await session.commit()
    return question


async def list_questions(session: AsyncSession) -> list[models.SurveyQuestion]:
    """Active questions, highest priority (lowest number) first."""
    result = await session.execute(
        select(models.SurveyQuestion)
        .where(models.SurveyQuestion.active.is_(True))
        .order_by(models.SurveyQuestion.priority, models.SurveyQuestion.id)
    )
    return list(result.scalars().all())


async def submit_response(
    session: AsyncSession,
    *,
    question_id: int,
    response_text: str | None,
    week_start_date: date | None = None,
) -> tuple[models.SurveyResponse, ParseResult | None]:
    """Store a response; free-text answers to "other" questions are also parsed.

    Raises:
        LookupError: If the question does not exist
    """
    question = await session.get(models.SurveyQuestion, question_id)
    if question is None:
        raise LookupError(f"Survey question {question_id} not found")

    response = models.SurveyResponse(
        question_id=question_id,
        response_text=response_text,
        response_date=date.today(),
        week_start_date=week_start_date,
    )
    session.add(response)
    await session.commit()

    parsed = None
    if question.category == "other" and response_text:
        parsed = await parse_response(session, response_text, week_start_date)
        # a failed clause rolls back, which expires the stored response
        await session.refresh(response)
    return response, parsed
