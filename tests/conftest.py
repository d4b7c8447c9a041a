from __future__ import annotations

import os
import uuid
from threading import Lock

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import lead_priority.models  # noqa: F401
from lead_priority.db import Base
import lead_priority.db as db_module
import lead_priority.api as api_module
from lead_priority.models import Lead, UserProfile

CRON_SECRET = "test-cron-secret"


class _AutomationStub:
    auto_start_enabled = False

    def __init__(self):
        self._run_lock = Lock()

    def start(self, updates=None):
        return self.status()

    def stop(self):
        return self.status()

    def run_now(self):
        return {"trigger": "manual", "busy": False}

    def update_settings(self, updates):
        return None

    def status(self):
        return {
            "running": False,
            "busy": False,
            "settings": {},
            "last_run_started_at": None,
            "last_run_finished_at": None,
            "last_error": None,
            "last_result": None,
            "run_count": 0,
        }


@pytest.fixture(scope="session")
def test_engine():
    url = os.getenv("LEAD_PRIORITY_TEST_DATABASE_URL")
    if url:
        engine = create_engine(url, pool_pre_ping=True)
    else:
        engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def _bind_test_db(monkeypatch, test_engine):
    TestSessionLocal = sessionmaker(bind=test_engine, expire_on_commit=False)
    monkeypatch.setattr(db_module, "_engine", test_engine, raising=False)
    monkeypatch.setattr(db_module, "SessionLocal", TestSessionLocal, raising=False)
    monkeypatch.delenv("NTFY_TOPIC", raising=False)
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session() -> Session:
    session = db_module.SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_profile(db_session: Session):
    def _make(user_id, industries=None, titles=None) -> UserProfile:
        row = UserProfile(
            id=user_id,
            target_industries=list(industries or []),
            target_titles=list(titles or []),
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_lead(db_session: Session):
    def _make(user_id, company="Acme Corp", industry="Technology", title="VP Sales", signals=None, **fields) -> Lead:
        row = Lead(
            user_id=user_id,
            person_name=fields.pop("person_name", "Jordan Example"),
            person_title=title,
            company_name=company,
            company_industry=industry,
            buying_signals=list(signals or []),
            **fields,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def reload_lead():
    def _reload(lead_id) -> Lead:
        with db_module.session_scope() as session:
            return session.get(Lead, lead_id)

    return _reload


@pytest.fixture
def cron_headers(monkeypatch) -> dict[str, str]:
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(api_module, "automation_controller", _AutomationStub(), raising=True)
    app = api_module.create_app()
    with TestClient(app) as test_client:
        yield test_client
