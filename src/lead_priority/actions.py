from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import session_scope
from .errors import PersistenceError
from .models import LeadAction, as_uuid
from .workers.lead_scoring import load_lead

logger = logging.getLogger(__name__)

ACTION_CONTACTED = "contacted"
ACTION_VIEWED = "viewed"
ACTION_ADDED_TO_FOCUS = "added_to_focus"
ACTION_GENERATED_OUTREACH = "generated_outreach"
ACTION_TYPES = (ACTION_CONTACTED, ACTION_VIEWED, ACTION_ADDED_TO_FOCUS, ACTION_GENERATED_OUTREACH)


def action_payload(action: LeadAction) -> dict:
    return {
        "id": str(action.id),
        "user_id": str(action.user_id),
        "lead_id": str(action.lead_id),
        "action_type": action.action_type,
        "action_date": action.action_date.isoformat() if action.action_date else None,
        "metadata": action.action_metadata or {},
    }


def track_lead_action(
    user_id,
    lead_id,
    action_type: str,
    metadata: Optional[dict] = None,
    action_date: Optional[datetime] = None,
) -> dict:
    """Append one action to the log. Raises ValueError for unknown action types."""
    if action_type not in ACTION_TYPES:
        raise ValueError(f"Invalid action_type. Must be one of: {', '.join(ACTION_TYPES)}")

    try:
        with session_scope() as session:
            lead = load_lead(session, lead_id, user_id)
            action = LeadAction(
                user_id=lead.user_id,
                lead_id=lead.id,
                action_type=action_type,
                action_metadata=dict(metadata or {}),
            )
            if action_date is not None:
                action.action_date = action_date
            session.add(action)
            session.flush()
            session.refresh(action)
            payload = action_payload(action)
    except SQLAlchemyError as exc:
        logger.error("Failed to track %s action for lead %s: %s", action_type, lead_id, exc)
        raise PersistenceError(f"Failed to track lead action for lead {lead_id}") from exc

    logger.info("Lead %s marked %s by user %s", lead_id, action_type, user_id)
    return payload


def mark_lead_contacted(user_id, lead_id, metadata: Optional[dict] = None, action_date: Optional[datetime] = None) -> dict:
    return track_lead_action(user_id, lead_id, ACTION_CONTACTED, metadata=metadata, action_date=action_date)


def contacted_lead_ids_since(session: Session, user_id, since: datetime) -> set[str]:
    rows = session.execute(
        select(LeadAction.lead_id)
        .where(LeadAction.user_id == as_uuid(user_id))
        .where(LeadAction.action_type == ACTION_CONTACTED)
        .where(LeadAction.action_date >= since)
    ).scalars().all()
    return {str(lead_id) for lead_id in rows}
