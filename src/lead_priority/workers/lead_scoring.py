from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import session_scope
from ..errors import LeadNotFoundError, PersistenceError
from ..models import Lead, UserProfile, as_uuid
from ..scoring import BreakdownEntry, ScoreResult, score_lead

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def load_lead(session: Session, lead_id, user_id, for_update: bool = False) -> Lead:
    stmt = select(Lead).where(Lead.id == as_uuid(lead_id)).where(Lead.user_id == as_uuid(user_id))
    if for_update:
        # Single writer per lead between the first-score check and the write
        stmt = stmt.with_for_update()
    lead = session.execute(stmt).scalar_one_or_none()
    if lead is None:
        raise LeadNotFoundError(lead_id, user_id)
    return lead


def is_scored(lead: Lead) -> bool:
    return lead.priority_score is not None and lead.first_scored_at is not None


def stored_result(lead: Lead) -> ScoreResult:
    return ScoreResult(
        buying_signal_score=lead.buying_signal_score or 0,
        fit_score=lead.fit_score or 0,
        priority_score=lead.priority_score or 0,
        priority_level=lead.priority_level,
        breakdown=[BreakdownEntry.from_dict(entry) for entry in (lead.signal_breakdown or [])],
    )


def priority_payload(lead: Lead) -> dict:
    return {
        **stored_result(lead).to_dict(),
        "first_scored_at": _isoformat(lead.first_scored_at),
        "last_rescored_at": _isoformat(lead.last_rescored_at),
    }


def compute_lead_score(session: Session, lead: Lead) -> ScoreResult:
    profile = session.get(UserProfile, lead.user_id)
    target_industries = profile.target_industries if profile else []
    target_titles = profile.target_titles if profile else []
    return score_lead(
        lead.buying_signals,
        lead.company_industry,
        lead.person_title,
        target_industries,
        target_titles,
    )


def save_priority_score(session: Session, lead: Lead, result: ScoreResult, now: Optional[datetime] = None) -> None:
    """Write score fields; the first score sets first_scored_at, later ones last_rescored_at."""
    now = now or _utc_now()
    lead.priority_score = result.priority_score
    lead.priority_level = result.priority_level
    lead.buying_signal_score = result.buying_signal_score
    lead.fit_score = result.fit_score
    lead.signal_breakdown = [entry.to_dict() for entry in result.breakdown]
    if lead.first_scored_at is None:
        lead.first_scored_at = now
        lead.last_rescored_at = None
    else:
        lead.last_rescored_at = now
    session.flush()


def calculate_priority_score(
    lead_id,
    user_id,
    force_recalculate: bool = False,
    now: Optional[datetime] = None,
) -> dict:
    """Score one lead and persist the result.

    Returns the stored payload plus ``cached`` telling whether the stored
    result was reused. Raises LeadNotFoundError or PersistenceError.
    """
    try:
        with session_scope() as session:
            lead = load_lead(session, lead_id, user_id, for_update=True)
            if not force_recalculate and is_scored(lead):
                return {**priority_payload(lead), "cached": True}

            result = compute_lead_score(session, lead)
            save_priority_score(session, lead, result, now=now)
            payload = {**priority_payload(lead), "cached": False}
    except SQLAlchemyError as exc:
        logger.error("Failed to save priority score for lead %s: %s", lead_id, exc)
        raise PersistenceError(f"Failed to save priority score for lead {lead_id}") from exc

    logger.debug(
        "Scored lead %s: %d (%s)",
        lead_id,
        payload["priority_score"],
        payload["priority_level"],
    )
    return payload


def recalculate_priority_score(lead_id, user_id, now: Optional[datetime] = None) -> dict:
    return calculate_priority_score(lead_id, user_id, force_recalculate=True, now=now)


def get_priority_score(lead_id, user_id) -> Optional[dict]:
    """Stored score for a lead, or None when it has not been scored yet."""
    try:
        with session_scope() as session:
            lead = load_lead(session, lead_id, user_id)
            if not is_scored(lead):
                return None
            return priority_payload(lead)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to read priority score for lead {lead_id}") from exc
