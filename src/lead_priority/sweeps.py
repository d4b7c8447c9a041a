"""Scheduled sweeps: re-score every lead, generate today's focus for every user.

Both are safe to re-run. A failing lead or user is logged and counted; it
never stops the rest of the sweep. Only failing to enumerate users aborts.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select

from .config import load_config
from .db import session_scope
from .jobs import complete_job, fail_job, start_job
from .models import JobRun, Lead
from .notifications import notify_error, notify_sweep_complete
from .workers.daily_focus import focus_exists, generate_daily_focus
from .workers.lead_scoring import recalculate_priority_score

logger = logging.getLogger(__name__)

RESCORE_JOB = "rescore_leads"
FOCUS_JOB = "generate_focus"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def success_rate(succeeded: int, total: int) -> str:
    if total <= 0:
        return "0%"
    return f"{succeeded / total * 100:.2f}%"


def users_with_leads() -> list:
    with session_scope() as session:
        return list(
            session.execute(select(Lead.user_id).distinct().order_by(Lead.user_id)).scalars().all()
        )


def lead_ids_for_user(user_id) -> list:
    with session_scope() as session:
        return list(
            session.execute(
                select(Lead.id).where(Lead.user_id == user_id).order_by(Lead.created_at, Lead.id)
            ).scalars().all()
        )


def _start_run(job_name: str, scope: Optional[str] = None, details: Optional[dict] = None):
    with session_scope() as session:
        return start_job(session, job_name, scope=scope, details=details).id


def _finish_run(run_id, processed: int, details: dict) -> None:
    with session_scope() as session:
        run = session.get(JobRun, run_id)
        if run is not None:
            complete_job(session, run, processed_count=processed, details=details)


def _fail_run(run_id, error: str) -> None:
    try:
        with session_scope() as session:
            run = session.get(JobRun, run_id)
            if run is not None:
                fail_job(session, run, error=error)
    except Exception:
        logger.exception("Could not record failure for job run %s", run_id)


def _map_users(work: Callable, user_ids: list, max_workers: int) -> list:
    """Run ``work`` per user, in order; results come back in the same order."""
    if max_workers <= 1 or len(user_ids) <= 1:
        return [work(user_id) for user_id in user_ids]
    with ThreadPoolExecutor(max_workers=min(max_workers, len(user_ids))) as pool:
        return list(pool.map(work, user_ids))


def _rescore_user(user_id, now: Optional[datetime]) -> dict:
    stats = {"leads": 0, "success": 0, "failed": 0}
    try:
        lead_ids = lead_ids_for_user(user_id)
    except Exception as exc:
        logger.exception("Error fetching leads for user %s: %s", user_id, exc)
        stats["error"] = str(exc)
        return stats

    stats["leads"] = len(lead_ids)
    for lead_id in lead_ids:
        try:
            recalculate_priority_score(lead_id, user_id, now=now)
            stats["success"] += 1
        except Exception as exc:
            stats["failed"] += 1
            logger.exception("Failed to rescore lead %s: %s", lead_id, exc)
    return stats


def rescore_all_leads(now: Optional[datetime] = None, max_workers: Optional[int] = None) -> dict:
    config = load_config()
    workers = max_workers if max_workers is not None else config.sweep_max_workers
    started = time.monotonic()
    run_id = _start_run(RESCORE_JOB)

    try:
        user_ids = users_with_leads()
    except Exception as exc:
        _fail_run(run_id, str(exc))
        notify_error(RESCORE_JOB, str(exc))
        raise

    per_user = _map_users(lambda user_id: _rescore_user(user_id, now), user_ids, workers)
    user_stats = {str(user_id): stats for user_id, stats in zip(user_ids, per_user)}

    total_leads = sum(stats["leads"] for stats in per_user)
    succeeded = sum(stats["success"] for stats in per_user)
    failed = sum(stats["failed"] for stats in per_user)
    stats = {
        "users_processed": len(user_ids),
        "total_leads": total_leads,
        "successfully_rescored": succeeded,
        "failed": failed,
        "success_rate": success_rate(succeeded, total_leads),
    }
    summary = {
        "success": True,
        "timestamp": _utc_now().isoformat(),
        "duration_ms": int((time.monotonic() - started) * 1000),
        "stats": stats,
        "user_stats": user_stats,
    }

    _finish_run(run_id, succeeded, stats)
    logger.info(
        "Lead re-scoring sweep completed: users=%d leads=%d rescored=%d failed=%d",
        len(user_ids),
        total_leads,
        succeeded,
        failed,
    )
    if failed:
        notify_sweep_complete(RESCORE_JOB, summary)
    return summary


def _focus_for_user(
    user_id,
    focus_date: date,
    limit: int,
    exclude_contacted_days: int,
    now: Optional[datetime],
) -> dict:
    try:
        with session_scope() as session:
            if focus_exists(session, user_id, focus_date):
                return {"status": "already_exists"}

        result = generate_daily_focus(
            user_id,
            focus_date=focus_date,
            limit=limit,
            exclude_contacted_days=exclude_contacted_days,
            now=now,
        )
        if not result.created:
            return {"status": "already_exists", "lead_count": len(result.focus["lead_ids"])}
        return {"status": "success", "lead_count": len(result.focus["lead_ids"])}
    except Exception as exc:
        logger.exception("Error generating focus for user %s: %s", user_id, exc)
        return {"status": "failed", "error": str(exc)}


def generate_focus_for_all_users(
    focus_date: Optional[date] = None,
    limit: Optional[int] = None,
    exclude_contacted_days: Optional[int] = None,
    now: Optional[datetime] = None,
    max_workers: Optional[int] = None,
) -> dict:
    config = load_config()
    focus_date = focus_date or (now or _utc_now()).date()
    limit = limit if limit is not None else config.focus_limit
    if exclude_contacted_days is None:
        exclude_contacted_days = config.focus_exclude_contacted_days
    workers = max_workers if max_workers is not None else config.sweep_max_workers
    started = time.monotonic()
    run_id = _start_run(FOCUS_JOB, scope=focus_date.isoformat())

    try:
        user_ids = users_with_leads()
    except Exception as exc:
        _fail_run(run_id, str(exc))
        notify_error(FOCUS_JOB, str(exc))
        raise

    per_user = _map_users(
        lambda user_id: _focus_for_user(user_id, focus_date, limit, exclude_contacted_days, now),
        user_ids,
        workers,
    )
    focus_stats = {str(user_id): outcome for user_id, outcome in zip(user_ids, per_user)}

    generated = sum(1 for outcome in per_user if outcome["status"] == "success")
    existing = sum(1 for outcome in per_user if outcome["status"] == "already_exists")
    failed = sum(1 for outcome in per_user if outcome["status"] == "failed")
    stats = {
        "users_processed": len(user_ids),
        "newly_generated": generated,
        "already_exists": existing,
        "failed": failed,
        "success_rate": success_rate(generated + existing, len(user_ids)),
    }
    summary = {
        "success": True,
        "timestamp": _utc_now().isoformat(),
        "focus_date": focus_date.isoformat(),
        "duration_ms": int((time.monotonic() - started) * 1000),
        "stats": stats,
        "focus_stats": focus_stats,
    }

    _finish_run(run_id, generated, {"focus_date": focus_date.isoformat(), **stats})
    logger.info(
        "Daily focus sweep completed for %s: users=%d generated=%d existing=%d failed=%d",
        focus_date,
        len(user_ids),
        generated,
        existing,
        failed,
    )
    if failed:
        notify_sweep_complete(FOCUS_JOB, summary)
    return summary
