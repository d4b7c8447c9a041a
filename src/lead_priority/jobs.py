"""JobRun bookkeeping for the sweeps.

One row per sweep invocation. ``scope`` is the focus date for focus sweeps
and ``__all_users__`` for re-score sweeps.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import JobRun

ALL_USERS_SCOPE = "__all_users__"

STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


def start_job(session: Session, job_name: str, scope: Optional[str] = None, details: Optional[dict] = None) -> JobRun:
    run = JobRun(
        job_name=job_name,
        scope=(scope or "").strip() or ALL_USERS_SCOPE,
        status=STATUS_RUNNING,
        details=details,
    )
    session.add(run)
    session.flush()
    return run


def _finish(run: JobRun, status: str) -> None:
    run.status = status
    run.finished_at = datetime.now(timezone.utc)


def complete_job(session: Session, run: JobRun, processed_count: int = 0, details: Optional[dict] = None) -> None:
    _finish(run, STATUS_SUCCESS)
    run.processed_count = processed_count
    if details is not None:
        run.details = details
    session.flush()


def fail_job(session: Session, run: JobRun, error: str) -> None:
    _finish(run, STATUS_FAILED)
    run.error = error[:4000]
    session.flush()


def latest_job(session: Session, job_name: str) -> Optional[JobRun]:
    stmt = (
        select(JobRun)
        .where(JobRun.job_name == job_name)
        .order_by(JobRun.started_at.desc(), JobRun.id.desc())
        .limit(1)
    )
    return session.execute(stmt).scalar_one_or_none()


def recent_jobs(session: Session, limit: int = 50) -> list[JobRun]:
    stmt = select(JobRun).order_by(JobRun.started_at.desc(), JobRun.id.desc()).limit(limit)
    return list(session.execute(stmt).scalars().all())


def job_payload(run: JobRun, include_details: bool = True) -> dict:
    payload = {
        "id": str(run.id),
        "job_name": run.job_name,
        "scope": run.scope,
        "status": run.status,
        "started_at": run.started_at.isoformat() if run.started_at else None,
        "finished_at": run.finished_at.isoformat() if run.finished_at else None,
        "processed_count": run.processed_count,
        "error": run.error,
    }
    if include_details:
        payload["details"] = run.details
    return payload
