"""Core SQLAlchemy models (2.x style) for the household schema.

Family members, travel, activities and their dated instances, ingested
documents, calendar feed settings, and weekly survey questions/responses.
"""

from __future__ import annotations

import datetime as dt
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class FamilyMember(Base):
    """Family members; ``name`` is the display key used for text matching."""
    __tablename__ = "family_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="other")  # parent, child, other
    color: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    # Relationships
    trips: Mapped[list[Travel]] = relationship("Travel", back_populates="member")
    activities: Mapped[list[Activity]] = relationship("Activity", back_populates="member")


class Travel(Base):
    """Trips. (member_id, departure_date, destination) is a soft natural key."""
    __tablename__ = "travel"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    destination: Mapped[str | None] = mapped_column(String(255))
    departure_date: Mapped[date | None] = mapped_column(Date)
    return_date: Mapped[date | None] = mapped_column(Date)
    departure_time: Mapped[str | None] = mapped_column(String(20))
    return_time: Mapped[str | None] = mapped_column(String(20))
    flight_number: Mapped[str | None] = mapped_column(String(20))
    airline: Mapped[str | None] = mapped_column(String(100))
    confirmation_code: Mapped[str | None] = mapped_column(String(20))
    notes: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")  # manual, itinerary, calendar, survey
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    # Relationship
    member: Mapped[FamilyMember] = relationship("FamilyMember", back_populates="trips")

    __table_args__ = (
        Index("ix_travel_natural_key", "member_id", "departure_date", "destination"),
    )


class Activity(Base):
    """Recurring activities, matched by (member_id, lower(name))."""
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    color: Mapped[str | None] = mapped_column(String(20))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    # Relationships
    member: Mapped[FamilyMember] = relationship("FamilyMember", back_populates="activities")
    instances: Mapped[list[ActivityInstance]] = relationship("ActivityInstance", back_populates="activity")


class ActivityInstance(Base):
    """A dated occurrence of an activity."""
    __tablename__ = "activity_instances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    activity_id: Mapped[int] = mapped_column(
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")  # scheduled, cancelled
    notes: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    # Relationship
    activity: Mapped[Activity] = relationship("Activity", back_populates="instances")


class IngestedDocument(Base):
    """Append-only log of ingested text, de-duplicated by content hash."""
    __tablename__ = "ingested_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str | None] = mapped_column(String(255))
    file_type: Mapped[str | None] = mapped_column(String(20))
    source_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    extracted_data: Mapped[dict | None] = mapped_column(JSON)
    notes: Mapped[str | None] = mapped_column(Text)
    processed_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_ingested_documents_processed_at", "processed_at"),
    )


class CalendarSettings(Base):
    """Single-row (id=1) calendar feed configuration."""
    __tablename__ = "calendar_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    calendar_url: Mapped[str | None] = mapped_column(Text)
    last_synced: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)


class SurveyQuestion(Base):
    """Weekly survey questions."""
    __tablename__ = "survey_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    category: Mapped[str | None] = mapped_column(String(50), index=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    responses: Mapped[list[SurveyResponse]] = relationship("SurveyResponse", back_populates="question")


class SurveyResponse(Base):
    """Answers to survey questions for a given week."""
    __tablename__ = "survey_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("survey_questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    response_text: Mapped[str | None] = mapped_column(Text)
    response_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_start_date: Mapped[date | None] = mapped_column(Date, index=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    question: Mapped[SurveyQuestion] = relationship("SurveyQuestion", back_populates="responses")
