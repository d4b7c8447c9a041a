from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional
from sqlalchemy import JSON, CheckConstraint, Date, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB

from .db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    target_industries: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    target_titles: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class Lead(Base):
    __tablename__ = "leads"
    __table_args__ = (
        Index("leads_user_idx", "user_id"),
        Index("leads_user_level_score_idx", "user_id", "priority_level", "priority_score"),
        CheckConstraint("priority_score IS NULL OR priority_score BETWEEN 0 AND 14", name="leads_priority_score_range"),
        CheckConstraint(
            "priority_level IS NULL OR priority_level IN ('high', 'medium', 'low')",
            name="leads_priority_level_values",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    person_name: Mapped[Optional[str]] = mapped_column(Text)
    person_title: Mapped[Optional[str]] = mapped_column(Text)
    company_name: Mapped[Optional[str]] = mapped_column(Text)
    company_industry: Mapped[Optional[str]] = mapped_column(Text)
    buying_signals: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Computed by scoring, never user-edited
    priority_score: Mapped[Optional[int]] = mapped_column(Integer)
    priority_level: Mapped[Optional[str]] = mapped_column(Text)
    buying_signal_score: Mapped[Optional[int]] = mapped_column(Integer)
    fit_score: Mapped[Optional[int]] = mapped_column(Integer)
    signal_breakdown: Mapped[Optional[list]] = mapped_column(JSONType)
    first_scored_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_rescored_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class DailyFocus(Base):
    __tablename__ = "daily_focus"
    __table_args__ = (
        UniqueConstraint("user_id", "focus_date", name="daily_focus_user_date_uidx"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    focus_date: Mapped[date] = mapped_column(Date, nullable=False)
    lead_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LeadAction(Base):
    __tablename__ = "lead_actions"
    __table_args__ = (
        Index("lead_actions_user_type_date_idx", "user_id", "action_type", "action_date"),
        Index("lead_actions_lead_idx", "lead_id"),
        CheckConstraint(
            "action_type IN ('contacted', 'viewed', 'added_to_focus', 'generated_outreach')",
            name="lead_actions_type_values",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    lead_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)
    action_type: Mapped[str] = mapped_column(Text, nullable=False)
    action_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    # "metadata" is reserved on declarative classes
    action_metadata: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)


class JobRun(Base):
    __tablename__ = "job_runs"
    __table_args__ = (
        Index("job_runs_name_status_idx", "job_name", "status"),
        Index("job_runs_started_at_idx", "started_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_name: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    details: Mapped[Optional[dict]] = mapped_column(JSONType)
    error: Mapped[Optional[str]] = mapped_column(Text)


def as_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))
