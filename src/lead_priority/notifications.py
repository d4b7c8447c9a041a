"""Push notifications via ntfy.sh.

Set NTFY_TOPIC in .env and subscribe to the topic in the ntfy app.

Sends notifications for:
- Sweeps that finished with per-lead or per-user failures
- Sweeps that aborted
"""
from __future__ import annotations

import logging
from typing import Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import load_config

logger = logging.getLogger(__name__)


def _give_up(retry_state) -> bool:
    logger.warning("ntfy notification failed: %s", retry_state.outcome.exception())
    return False


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(requests.RequestException),
    retry_error_callback=_give_up,
)
def _post(url: str, message: str, headers: dict[str, str]) -> bool:
    resp = requests.post(url, data=message.encode("utf-8"), headers=headers, timeout=10)
    if resp.ok:
        return True
    logger.warning("ntfy returned %d: %s", resp.status_code, resp.text[:200])
    return False


def send_notification(
    title: str,
    message: str,
    priority: str = "default",
    tags: Optional[list[str]] = None,
) -> bool:
    """Send a push notification via ntfy.sh.

    Returns True if sent, False if not configured or failed.
    """
    config = load_config()
    if not config.ntfy_topic:
        return False

    url = f"{config.ntfy_server.rstrip('/')}/{config.ntfy_topic}"
    headers: dict[str, str] = {
        "Title": title,
        "Priority": priority,
    }
    if tags:
        headers["Tags"] = ",".join(tags)

    sent = _post(url, message, headers)
    if sent:
        logger.debug("Notification sent: %s", title)
    return sent


def notify_sweep_complete(job_name: str, summary: dict) -> bool:
    """Send notification when a sweep finishes with failures."""
    stats = summary.get("stats", {})
    failed = int(stats.get("failed", 0))
    if failed <= 0:
        return False
    lines = [f"{key}: {value}" for key, value in stats.items()]
    return send_notification(
        title=f"{job_name}: {failed} failed",
        message="\n".join(lines),
        priority="high" if stats.get("success_rate") == "0%" else "default",
        tags=["warning"],
    )


def notify_error(job_name: str, error: str) -> bool:
    """Send notification when a sweep aborts."""
    return send_notification(
        title=f"Sweep Error: {job_name}",
        message=error[:500],
        priority="high",
        tags=["warning", "x"],
    )
