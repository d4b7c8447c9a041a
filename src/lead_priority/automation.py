from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Any, Optional

from .config import load_config
from .sweeps import generate_focus_for_all_users, rescore_all_leads


logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SweepSettings:
    interval_seconds: int = 86400
    rescore_enabled: bool = True
    focus_enabled: bool = True
    focus_limit: int = 5
    exclude_contacted_days: int = 7


class SweepController:
    """Runs the re-score sweep followed by the focus sweep on an interval.

    External schedulers hitting the cron endpoints stay the primary trigger;
    this loop is for deployments without one.
    """

    def __init__(self) -> None:
        config = load_config()
        self._settings = SweepSettings(
            interval_seconds=config.auto_sweep_interval_seconds,
            focus_limit=config.focus_limit,
            exclude_contacted_days=config.focus_exclude_contacted_days,
        )
        self._auto_start = config.auto_sweep_enabled

        self._thread: Optional[Thread] = None
        self._stop_event = Event()
        self._settings_lock = Lock()
        self._run_lock = Lock()
        self._state_lock = Lock()

        self._last_run_started_at: Optional[str] = None
        self._last_run_finished_at: Optional[str] = None
        self._last_error: Optional[str] = None
        self._last_result: Optional[dict[str, Any]] = None
        self._run_count: int = 0

    @property
    def auto_start_enabled(self) -> bool:
        return self._auto_start

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def update_settings(self, updates: dict[str, Any]) -> None:
        with self._settings_lock:
            for key, value in updates.items():
                if value is None or not hasattr(self._settings, key):
                    continue
                if key == "interval_seconds":
                    value = max(int(value), 60)
                elif key == "focus_limit":
                    value = max(int(value), 1)
                elif key == "exclude_contacted_days":
                    value = max(int(value), 0)
                setattr(self._settings, key, value)

    def _snapshot_settings(self) -> SweepSettings:
        with self._settings_lock:
            return SweepSettings(**asdict(self._settings))

    def _run_cycle(self, trigger: str) -> dict[str, Any]:
        if not self._run_lock.acquire(blocking=False):
            return {"trigger": trigger, "busy": True}

        settings = self._snapshot_settings()
        try:
            with self._state_lock:
                self._last_run_started_at = _utc_now()
                self._last_error = None

            rescore_result = rescore_all_leads() if settings.rescore_enabled else None
            focus_result = None
            if settings.focus_enabled:
                focus_result = generate_focus_for_all_users(
                    limit=settings.focus_limit,
                    exclude_contacted_days=settings.exclude_contacted_days,
                )

            result = {
                "trigger": trigger,
                "busy": False,
                "rescore": rescore_result,
                "focus": focus_result,
            }
            with self._state_lock:
                self._last_result = result
                self._last_run_finished_at = _utc_now()
                self._run_count += 1
            return result
        except Exception as exc:
            with self._state_lock:
                self._last_error = str(exc)
                self._last_run_finished_at = _utc_now()
            raise
        finally:
            self._run_lock.release()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._run_cycle(trigger="scheduled")
            except Exception as e:
                # Error is stored in state; keep loop alive for next interval.
                logger.exception("Error during scheduled sweep cycle: %s", e)

            wait_seconds = self._snapshot_settings().interval_seconds
            if self._stop_event.wait(wait_seconds):
                break

    def start(self, updates: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        if updates:
            self.update_settings(updates)

        if self.running:
            return self.status()

        self._stop_event = Event()
        self._thread = Thread(target=self._loop, daemon=True, name="lead-priority-sweeps")
        self._thread.start()
        logger.info("Sweep runner started")
        return self.status()

    def stop(self) -> dict[str, Any]:
        if self._thread and self._thread.is_alive():
            self._stop_event.set()
            self._thread.join(timeout=30)
            logger.info("Sweep runner stopped")
        return self.status()

    def run_now(self) -> dict[str, Any]:
        return self._run_cycle(trigger="manual")

    def status(self) -> dict[str, Any]:
        settings = self._snapshot_settings()
        with self._state_lock:
            return {
                "running": self.running,
                "busy": self._run_lock.locked(),
                "settings": asdict(settings),
                "last_run_started_at": self._last_run_started_at,
                "last_run_finished_at": self._last_run_finished_at,
                "last_error": self._last_error,
                "last_result": self._last_result,
                "run_count": self._run_count,
            }
