"""Today's Focus: a small, ordered set of leads per user and calendar date.

Selection:
1. An existing focus for (user, date) is returned unchanged.
2. Leads contacted within the exclusion window and yesterday's focus are excluded.
3. High-priority leads by score, backfilled with medium-priority leads when short.
4. Diversity re-ranking when there are more candidates than slots.
5. The ordered ids are persisted; position 1 is the top priority.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..actions import contacted_lead_ids_since
from ..db import session_scope
from ..errors import PersistenceError
from ..models import DailyFocus, Lead, as_uuid
from ..scoring import PRIORITY_HIGH, PRIORITY_MEDIUM

logger = logging.getLogger(__name__)

DEFAULT_FOCUS_LIMIT = 5
DEFAULT_EXCLUDE_CONTACTED_DAYS = 7


@dataclass
class FocusResult:
    focus: dict
    leads: list[dict] = field(default_factory=list)
    created: bool = False


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def apply_diversity(candidates: Sequence[Any], limit: int) -> list[Any]:
    """Prefer distinct companies, then distinct industries, then score.

    ``candidates`` must already be in score-descending order; that order is
    kept within every pass. Pools that fit in ``limit`` are returned as is.
    """
    if len(candidates) <= limit:
        return list(candidates)

    selected: list[int] = []
    taken: set[int] = set()
    used_companies: set[str] = set()
    used_industries: set[str] = set()

    def take(index: int) -> None:
        selected.append(index)
        taken.add(index)
        industry = _key(getattr(candidates[index], "company_industry", None))
        if industry:
            used_industries.add(industry)

    for index, candidate in enumerate(candidates):
        if len(selected) >= limit:
            break
        company = _key(getattr(candidate, "company_name", None))
        if company and company not in used_companies:
            used_companies.add(company)
            take(index)

    if len(selected) < limit:
        for index, candidate in enumerate(candidates):
            if len(selected) >= limit:
                break
            if index in taken:
                continue
            industry = _key(getattr(candidate, "company_industry", None))
            if industry and industry not in used_industries:
                take(index)

    if len(selected) < limit:
        for index in range(len(candidates)):
            if len(selected) >= limit:
                break
            if index not in taken:
                take(index)

    return [candidates[index] for index in selected[:limit]]


def focus_payload(focus: DailyFocus) -> dict:
    return {
        "id": str(focus.id),
        "user_id": str(focus.user_id),
        "focus_date": focus.focus_date.isoformat(),
        "lead_ids": [str(lead_id) for lead_id in (focus.lead_ids or [])],
        "generated_at": focus.generated_at.isoformat() if focus.generated_at else None,
    }


def focus_lead_payload(lead: Lead, position: int) -> dict:
    return {
        "id": str(lead.id),
        "person_name": lead.person_name,
        "person_title": lead.person_title,
        "company_name": lead.company_name,
        "company_industry": lead.company_industry,
        "priority_score": lead.priority_score,
        "priority_level": lead.priority_level,
        "buying_signals": lead.buying_signals or [],
        "priority_position": position,
    }


def find_focus(session: Session, user_id, focus_date: date) -> Optional[DailyFocus]:
    return session.execute(
        select(DailyFocus)
        .where(DailyFocus.user_id == as_uuid(user_id))
        .where(DailyFocus.focus_date == focus_date)
    ).scalar_one_or_none()


def focus_exists(session: Session, user_id, focus_date: date) -> bool:
    return find_focus(session, user_id, focus_date) is not None


def ordered_focus_leads(session: Session, focus: DailyFocus) -> list[dict]:
    lead_ids = [str(lead_id) for lead_id in (focus.lead_ids or [])]
    if not lead_ids:
        return []
    rows = session.execute(
        select(Lead)
        .where(Lead.user_id == focus.user_id)
        .where(Lead.id.in_([as_uuid(lead_id) for lead_id in lead_ids]))
    ).scalars().all()
    by_id = {str(lead.id): lead for lead in rows}
    ordered = [by_id[lead_id] for lead_id in lead_ids if lead_id in by_id]
    return [focus_lead_payload(lead, position) for position, lead in enumerate(ordered, start=1)]


def _leads_by_level(
    session: Session,
    user_id,
    level: str,
    excluded: set[str],
    limit: Optional[int] = None,
) -> list[Lead]:
    stmt = (
        select(Lead)
        .where(Lead.user_id == as_uuid(user_id))
        .where(Lead.priority_level == level)
        .order_by(Lead.priority_score.desc(), Lead.created_at, Lead.id)
    )
    if excluded:
        stmt = stmt.where(Lead.id.notin_([as_uuid(lead_id) for lead_id in excluded]))
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.execute(stmt).scalars().all())


def select_candidates(session: Session, user_id, limit: int, excluded: set[str]) -> list[Lead]:
    """All eligible high-priority leads, topped up with medium ones when short."""
    candidates = _leads_by_level(session, user_id, PRIORITY_HIGH, excluded)
    if len(candidates) < limit:
        chosen = excluded | {str(lead.id) for lead in candidates}
        candidates.extend(
            _leads_by_level(session, user_id, PRIORITY_MEDIUM, chosen, limit=limit - len(candidates))
        )
    return candidates


def exclusion_set(
    session: Session,
    user_id,
    focus_date: date,
    exclude_contacted_days: int,
    now: datetime,
) -> set[str]:
    excluded = contacted_lead_ids_since(session, user_id, now - timedelta(days=exclude_contacted_days))
    yesterday = find_focus(session, user_id, focus_date - timedelta(days=1))
    if yesterday is not None:
        excluded |= {str(lead_id) for lead_id in (yesterday.lead_ids or [])}
    return excluded


def _existing_result(user_id, focus_date: date) -> FocusResult:
    with session_scope() as session:
        existing = find_focus(session, user_id, focus_date)
        if existing is None:
            raise PersistenceError(f"Daily focus for user {user_id} on {focus_date} could not be saved")
        return FocusResult(
            focus=focus_payload(existing),
            leads=ordered_focus_leads(session, existing),
            created=False,
        )


def generate_daily_focus(
    user_id,
    focus_date: Optional[date] = None,
    limit: int = DEFAULT_FOCUS_LIMIT,
    exclude_contacted_days: int = DEFAULT_EXCLUDE_CONTACTED_DAYS,
    now: Optional[datetime] = None,
) -> FocusResult:
    now = now or _utc_now()
    focus_date = focus_date or now.date()
    limit = max(int(limit), 1)

    try:
        with session_scope() as session:
            existing = find_focus(session, user_id, focus_date)
            if existing is not None:
                return FocusResult(
                    focus=focus_payload(existing),
                    leads=ordered_focus_leads(session, existing),
                    created=False,
                )

            excluded = exclusion_set(session, user_id, focus_date, exclude_contacted_days, now)
            candidates = select_candidates(session, user_id, limit, excluded)
            selected = apply_diversity(candidates, limit)

            focus = DailyFocus(
                user_id=as_uuid(user_id),
                focus_date=focus_date,
                lead_ids=[str(lead.id) for lead in selected],
                generated_at=now,
            )
            session.add(focus)
            session.flush()
            result = FocusResult(
                focus=focus_payload(focus),
                leads=[focus_lead_payload(lead, position) for position, lead in enumerate(selected, start=1)],
                created=True,
            )
    except IntegrityError:
        # Another writer created this date's focus first; theirs is the day's record
        logger.info("Daily focus for user %s on %s already generated concurrently", user_id, focus_date)
        return _existing_result(user_id, focus_date)
    except SQLAlchemyError as exc:
        logger.error("Failed to save daily focus for user %s: %s", user_id, exc)
        raise PersistenceError(f"Failed to save daily focus for user {user_id}") from exc

    logger.info(
        "Generated focus for user %s on %s: %d leads (%d candidates, %d excluded)",
        user_id,
        focus_date,
        len(selected),
        len(candidates),
        len(excluded),
    )
    return result


def find_daily_focus(user_id, focus_date: Optional[date] = None) -> Optional[FocusResult]:
    """Stored focus for the date, or None when it has not been generated."""
    focus_date = focus_date or _utc_now().date()
    try:
        with session_scope() as session:
            existing = find_focus(session, user_id, focus_date)
            if existing is None:
                return None
            return FocusResult(
                focus=focus_payload(existing),
                leads=ordered_focus_leads(session, existing),
                created=False,
            )
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to read daily focus for user {user_id}") from exc


def get_daily_focus(
    user_id,
    focus_date: Optional[date] = None,
    limit: int = DEFAULT_FOCUS_LIMIT,
    exclude_contacted_days: int = DEFAULT_EXCLUDE_CONTACTED_DAYS,
) -> FocusResult:
    """Stored focus for the date, generated on demand when absent."""
    existing = find_daily_focus(user_id, focus_date)
    if existing is not None:
        return existing
    return generate_daily_focus(
        user_id,
        focus_date=focus_date,
        limit=limit,
        exclude_contacted_days=exclude_contacted_days,
    )
