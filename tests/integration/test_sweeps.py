from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import lead_priority.db as db_module
import lead_priority.sweeps as sweeps
from lead_priority.db import Base, session_scope
from lead_priority.metrics import collect_metrics
from lead_priority.models import DailyFocus, JobRun, Lead, UserProfile
from lead_priority.sweeps import (
    FOCUS_JOB,
    RESCORE_JOB,
    generate_focus_for_all_users,
    rescore_all_leads,
    success_rate,
)

NOW = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
FOCUS_DATE = date(2026, 3, 10)


@pytest.fixture
def two_users(make_profile, make_lead):
    first, second = uuid.uuid4(), uuid.uuid4()
    make_profile(first, industries=["SaaS"], titles=["CTO"])
    leads = {
        first: [
            make_lead(first, company="Acme", industry="SaaS", title="CTO", signals=[{"type": "funding", "title": "A"}]),
            make_lead(first, company="Beta", industry="Retail", title="Intern", signals=[]),
        ],
        second: [
            make_lead(
                second,
                company="Gamma",
                signals=[{"type": "funding", "title": "B"}, {"type": "leadership_change", "title": "C"}, {"type": "hiring", "title": "D"}],
            ),
        ],
    }
    return leads


@pytest.fixture
def notifications(monkeypatch):
    sent = {"complete": [], "error": []}
    monkeypatch.setattr(sweeps, "notify_sweep_complete", lambda job, summary: sent["complete"].append((job, summary)))
    monkeypatch.setattr(sweeps, "notify_error", lambda job, error: sent["error"].append((job, error)))
    return sent


def _job_runs(job_name: str) -> list[JobRun]:
    with session_scope() as session:
        return session.query(JobRun).filter(JobRun.job_name == job_name).all()


def test_success_rate_formatting():
    assert success_rate(0, 0) == "0%"
    assert success_rate(3, 3) == "100.00%"
    assert success_rate(1, 3) == "33.33%"


def test_rescore_all_leads_scores_every_lead(two_users, reload_lead, notifications):
    summary = rescore_all_leads(now=NOW)

    assert summary["success"] is True
    assert summary["stats"] == {
        "users_processed": 2,
        "total_leads": 3,
        "successfully_rescored": 3,
        "failed": 0,
        "success_rate": "100.00%",
    }
    assert sum(stats["leads"] for stats in summary["user_stats"].values()) == 3

    acme, beta = two_users[next(iter(two_users))]
    assert reload_lead(acme.id).priority_score == 6
    assert reload_lead(acme.id).priority_level == "high"
    assert reload_lead(beta.id).priority_level == "low"
    assert notifications["complete"] == []

    runs = _job_runs(RESCORE_JOB)
    assert [run.status for run in runs] == ["success"]
    assert runs[0].processed_count == 3


def test_rescore_counts_failures_and_continues(monkeypatch, two_users, reload_lead, notifications):
    first_user = next(iter(two_users))
    broken = two_users[first_user][0]
    real = sweeps.recalculate_priority_score

    def _flaky(lead_id, user_id, now=None):
        if lead_id == broken.id:
            raise RuntimeError("boom")
        return real(lead_id, user_id, now=now)

    monkeypatch.setattr(sweeps, "recalculate_priority_score", _flaky)

    summary = rescore_all_leads(now=NOW)

    assert summary["stats"]["successfully_rescored"] == 2
    assert summary["stats"]["failed"] == 1
    assert summary["stats"]["success_rate"] == "66.67%"
    assert summary["user_stats"][str(first_user)] == {"leads": 2, "success": 1, "failed": 1}
    assert reload_lead(broken.id).priority_score is None
    assert [job for job, _ in notifications["complete"]] == [RESCORE_JOB]


@pytest.fixture
def file_database(tmp_path, monkeypatch):
    """A file-backed SQLite database so worker threads get their own connections."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'sweeps.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(db_module, "SessionLocal", sessionmaker(bind=engine, expire_on_commit=False))
    yield engine
    engine.dispose()


@pytest.fixture
def four_users(file_database) -> list[uuid.UUID]:
    user_ids = [uuid.uuid4() for _ in range(4)]
    with session_scope() as session:
        for user_id in user_ids:
            session.add(UserProfile(id=user_id, target_industries=["SaaS"], target_titles=["CTO"]))
            for index in range(3):
                session.add(
                    Lead(
                        user_id=user_id,
                        company_name=f"Company {index}",
                        company_industry="SaaS",
                        person_title="CTO",
                        buying_signals=[{"type": "funding", "title": f"Round {index}"}],
                    )
                )
    return user_ids


def test_worker_pool_rescore_isolates_a_failing_user(monkeypatch, four_users, notifications):
    broken_user = four_users[0]
    real = sweeps.recalculate_priority_score

    def _flaky(lead_id, user_id, now=None):
        if user_id == broken_user:
            raise RuntimeError("boom")
        return real(lead_id, user_id, now=now)

    monkeypatch.setattr(sweeps, "recalculate_priority_score", _flaky)

    summary = rescore_all_leads(now=NOW, max_workers=4)

    assert summary["stats"]["users_processed"] == 4
    assert summary["stats"]["total_leads"] == 12
    assert summary["stats"]["successfully_rescored"] == 9
    assert summary["stats"]["failed"] == 3
    assert summary["stats"]["success_rate"] == "75.00%"
    assert summary["user_stats"][str(broken_user)] == {"leads": 3, "success": 0, "failed": 3}
    for user_id in four_users[1:]:
        assert summary["user_stats"][str(user_id)] == {"leads": 3, "success": 3, "failed": 0}
    assert [job for job, _ in notifications["complete"]] == [RESCORE_JOB]


def test_worker_pool_focus_isolates_a_failing_user(monkeypatch, four_users, notifications):
    rescore_all_leads(now=NOW, max_workers=4)
    broken_user = four_users[1]
    real = sweeps.generate_daily_focus

    def _flaky(user_id, **kwargs):
        if user_id == broken_user:
            raise RuntimeError("focus failed")
        return real(user_id, **kwargs)

    monkeypatch.setattr(sweeps, "generate_daily_focus", _flaky)

    summary = generate_focus_for_all_users(focus_date=FOCUS_DATE, now=NOW, max_workers=4)

    assert summary["stats"]["users_processed"] == 4
    assert summary["stats"]["newly_generated"] == 3
    assert summary["stats"]["failed"] == 1
    assert summary["stats"]["success_rate"] == "75.00%"
    assert summary["focus_stats"][str(broken_user)] == {"status": "failed", "error": "focus failed"}
    for user_id in four_users:
        if user_id != broken_user:
            assert summary["focus_stats"][str(user_id)] == {"status": "success", "lead_count": 3}
    with session_scope() as session:
        assert session.query(DailyFocus).count() == 3


def test_rescore_with_no_leads_reports_zero_rate(notifications):
    summary = rescore_all_leads(now=NOW)

    assert summary["stats"]["users_processed"] == 0
    assert summary["stats"]["success_rate"] == "0%"


def test_user_enumeration_failure_aborts_the_sweep(monkeypatch, notifications):
    def _broken():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(sweeps, "users_with_leads", _broken)

    with pytest.raises(RuntimeError):
        rescore_all_leads(now=NOW)

    runs = _job_runs(RESCORE_JOB)
    assert [run.status for run in runs] == ["failed"]
    assert runs[0].error == "database unavailable"
    assert notifications["error"] == [(RESCORE_JOB, "database unavailable")]


def test_focus_sweep_generates_then_reports_existing(two_users, notifications):
    rescore_all_leads(now=NOW)

    first = generate_focus_for_all_users(focus_date=FOCUS_DATE, now=NOW)
    second = generate_focus_for_all_users(focus_date=FOCUS_DATE, now=NOW)

    assert first["focus_date"] == "2026-03-10"
    assert first["stats"]["users_processed"] == 2
    assert first["stats"]["newly_generated"] == 2
    assert first["stats"]["success_rate"] == "100.00%"
    assert {outcome["status"] for outcome in first["focus_stats"].values()} == {"success"}

    assert second["stats"]["newly_generated"] == 0
    assert second["stats"]["already_exists"] == 2
    assert second["stats"]["success_rate"] == "100.00%"

    with session_scope() as session:
        assert session.query(DailyFocus).count() == 2
    focus_runs = _job_runs(FOCUS_JOB)
    assert [run.status for run in focus_runs] == ["success", "success"]
    assert {run.scope for run in focus_runs} == {"2026-03-10"}


def test_focus_sweep_isolates_user_failures(monkeypatch, two_users, notifications):
    first_user, second_user = list(two_users)
    real = sweeps.generate_daily_focus

    def _flaky(user_id, **kwargs):
        if user_id == first_user:
            raise RuntimeError("focus failed")
        return real(user_id, **kwargs)

    monkeypatch.setattr(sweeps, "generate_daily_focus", _flaky)

    summary = generate_focus_for_all_users(focus_date=FOCUS_DATE, now=NOW)

    assert summary["stats"]["failed"] == 1
    assert summary["stats"]["newly_generated"] == 1
    assert summary["stats"]["success_rate"] == "50.00%"
    assert summary["focus_stats"][str(first_user)] == {"status": "failed", "error": "focus failed"}
    assert summary["focus_stats"][str(second_user)]["status"] == "success"
    assert [job for job, _ in notifications["complete"]] == [FOCUS_JOB]


def test_metrics_reflect_sweeps(two_users, notifications):
    rescore_all_leads(now=NOW)

    metrics = collect_metrics()

    assert metrics["leads"]["total"] == 3
    assert metrics["leads"]["scored"] == 3
    assert metrics["leads"]["unscored"] == 0
    assert metrics["leads"]["users"] == 2
    assert sum(metrics["leads"]["by_priority_level"].values()) == 3
    assert metrics["jobs"][RESCORE_JOB]["status"] == "success"
    assert metrics["jobs"][FOCUS_JOB] is None
