from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Config:
    database_url: str
    cron_secret: Optional[str]
    focus_limit: int
    focus_exclude_contacted_days: int
    sweep_max_workers: int
    auto_sweep_enabled: bool
    auto_sweep_interval_seconds: int
    ntfy_topic: Optional[str]
    ntfy_server: str
    log_level: str
    log_format: str


def load_config() -> Config:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set")

    # Heroku/Railway style URLs are not accepted by SQLAlchemy 2.x
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql+psycopg://", 1)

    return Config(
        database_url=database_url,
        cron_secret=(os.getenv("CRON_SECRET") or "").strip() or None,
        focus_limit=max(int(os.getenv("FOCUS_LIMIT", "5")), 1),
        focus_exclude_contacted_days=max(int(os.getenv("FOCUS_EXCLUDE_CONTACTED_DAYS", "7")), 0),
        sweep_max_workers=max(int(os.getenv("SWEEP_MAX_WORKERS", "1")), 1),
        auto_sweep_enabled=_env_bool("AUTO_SWEEP_ENABLED"),
        auto_sweep_interval_seconds=max(int(os.getenv("AUTO_SWEEP_INTERVAL_SECONDS", "86400")), 60),
        ntfy_topic=(os.getenv("NTFY_TOPIC") or "").strip() or None,
        ntfy_server=os.getenv("NTFY_SERVER", "https://ntfy.sh"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        log_format=os.getenv("LOG_FORMAT", "text").strip().lower(),
    )
