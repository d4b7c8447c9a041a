from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import case, func, select

from .actions import ACTION_CONTACTED
from .db import session_scope
from .jobs import job_payload, latest_job
from .models import DailyFocus, Lead, LeadAction
from .scoring import PRIORITY_LEVELS
from .sweeps import FOCUS_JOB, RESCORE_JOB


def _job_summary(run) -> dict | None:
    if run is None:
        return None
    return job_payload(run, include_details=False)


def collect_metrics() -> dict:
    now = datetime.now(timezone.utc)
    with session_scope() as session:
        lead_totals = session.execute(
            select(
                func.count(Lead.id),
                func.sum(case((Lead.first_scored_at.isnot(None), 1), else_=0)),
                func.count(func.distinct(Lead.user_id)),
            )
        ).first()

        level_rows = session.execute(
            select(Lead.priority_level, func.count(Lead.id))
            .where(Lead.priority_level.isnot(None))
            .group_by(Lead.priority_level)
        ).all()

        focus_today = int(
            session.execute(
                select(func.count(DailyFocus.id)).where(DailyFocus.focus_date == now.date())
            ).scalar()
            or 0
        )

        contacted_last_7d = int(
            session.execute(
                select(func.count(LeadAction.id))
                .where(LeadAction.action_type == ACTION_CONTACTED)
                .where(LeadAction.action_date >= now - timedelta(days=7))
            ).scalar()
            or 0
        )

        last_rescore = _job_summary(latest_job(session, RESCORE_JOB))
        last_focus = _job_summary(latest_job(session, FOCUS_JOB))

    total_leads = int(lead_totals[0] or 0) if lead_totals else 0
    scored_leads = int(lead_totals[1] or 0) if lead_totals else 0
    levels = {level: 0 for level in PRIORITY_LEVELS}
    for level, count in level_rows:
        levels[level] = int(count)

    return {
        "leads": {
            "total": total_leads,
            "scored": scored_leads,
            "unscored": total_leads - scored_leads,
            "users": int(lead_totals[2] or 0) if lead_totals else 0,
            "by_priority_level": levels,
        },
        "focus": {
            "date": now.date().isoformat(),
            "generated_today": focus_today,
        },
        "actions": {
            "contacted_last_7_days": contacted_last_7d,
        },
        "jobs": {
            RESCORE_JOB: last_rescore,
            FOCUS_JOB: last_focus,
        },
    }
