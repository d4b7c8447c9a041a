from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

import pytest
import uvicorn

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_api.py"


@pytest.fixture
def run_api(monkeypatch):
    spec = importlib.util.spec_from_file_location("run_api", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    return module, calls


def test_defaults_come_from_environment(monkeypatch, run_api):
    module, calls = run_api
    monkeypatch.setenv("PORT", "9100")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("HOST", raising=False)
    monkeypatch.setattr(sys, "argv", ["run_api.py"])

    module.main()

    assert calls == [
        (
            "lead_priority.api:app",
            {"host": "0.0.0.0", "port": 9100, "reload": False, "log_level": "warning"},
        )
    ]


def test_flags_override_environment(monkeypatch, run_api):
    module, calls = run_api
    monkeypatch.setenv("PORT", "9100")
    monkeypatch.setattr(sys, "argv", ["run_api.py", "--port", "8080", "--reload", "--host", "127.0.0.1"])

    module.main()

    _, kwargs = calls[0]
    assert kwargs["port"] == 8080
    assert kwargs["reload"] is True
    assert kwargs["host"] == "127.0.0.1"
