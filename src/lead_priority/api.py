from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
import hmac
import logging
import os
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ConfigDict
from starlette.middleware.base import BaseHTTPMiddleware

from .actions import ACTION_TYPES, mark_lead_contacted, track_lead_action
from .automation import SweepController
from .config import load_config
from .db import session_scope
from .errors import LeadNotFoundError, PersistenceError
from .jobs import job_payload, recent_jobs
from .logging_config import configure_logging
from .metrics import collect_metrics
from .sweeps import generate_focus_for_all_users, rescore_all_leads
from .workers.daily_focus import find_daily_focus, get_daily_focus
from .workers.lead_scoring import calculate_priority_score, get_priority_score

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'"
        return response


def _parse_origins() -> list[str]:
    raw = os.getenv(
        "FRONTEND_ORIGINS",
        ",".join(
            [
                "http://localhost:3000",
                "http://127.0.0.1:3000",
            ]
        ),
    )
    return [entry.strip() for entry in raw.split(",") if entry.strip()]


def require_cron_auth(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    authorization: Optional[str] = Header(default=None),
) -> None:
    config = load_config()
    expected = config.cron_secret
    if not expected:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(status_code=500, detail="Cron job not configured")

    token = x_api_key
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()

    if not token or not hmac.compare_digest(token, expected):
        logger.warning("Invalid cron secret")
        raise HTTPException(status_code=401, detail="Unauthorized")


class CalculatePriorityRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    lead_id: uuid.UUID
    force_recalculate: bool = False


class TrackActionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    lead_id: uuid.UUID
    action_type: str = Field(..., max_length=50)
    metadata: dict = Field(default_factory=dict)


class MarkContactedRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    metadata: dict = Field(default_factory=dict)


class SweepSettingsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    interval_seconds: Optional[int] = Field(None, ge=60, le=7 * 86400)
    rescore_enabled: Optional[bool] = None
    focus_enabled: Optional[bool] = None
    focus_limit: Optional[int] = Field(None, ge=1, le=50)
    exclude_contacted_days: Optional[int] = Field(None, ge=0, le=365)


automation_controller = SweepController()


def create_app() -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if automation_controller.auto_start_enabled:
            automation_controller.start()
        try:
            yield
        finally:
            automation_controller.stop()

    app = FastAPI(title="Lead Priority API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )

    @app.exception_handler(LeadNotFoundError)
    async def lead_not_found_handler(_: Request, exc: LeadNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"success": False, "error": "Lead not found"})

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(_: Request, exc: PersistenceError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/metrics")
    def api_metrics() -> dict:
        return collect_metrics()

    @app.get("/api/jobs")
    def api_jobs(limit: int = Query(default=50, ge=1, le=500)) -> list[dict]:
        with session_scope() as session:
            return [job_payload(run) for run in recent_jobs(session, limit)]

    @app.get("/api/users/{user_id}/leads/{lead_id}/priority")
    def api_get_priority(user_id: uuid.UUID, lead_id: uuid.UUID) -> dict:
        priority = get_priority_score(lead_id, user_id)
        if priority is None:
            return {
                "success": True,
                "scored": False,
                "priority": None,
                "message": "Lead has not been scored yet",
            }
        return {"success": True, "scored": True, "priority": priority}

    @app.post("/api/users/{user_id}/priority/calculate")
    def api_calculate_priority(user_id: uuid.UUID, payload: CalculatePriorityRequest) -> dict:
        priority = calculate_priority_score(
            payload.lead_id,
            user_id,
            force_recalculate=payload.force_recalculate,
        )
        return {"success": True, "priority": priority}

    @app.get("/api/users/{user_id}/focus")
    def api_get_focus(
        user_id: uuid.UUID,
        focus_date: Optional[date] = Query(default=None, alias="date"),
        generate: bool = Query(default=True),
    ) -> dict:
        config = load_config()
        if generate:
            result = get_daily_focus(
                user_id,
                focus_date=focus_date,
                limit=config.focus_limit,
                exclude_contacted_days=config.focus_exclude_contacted_days,
            )
        else:
            result = find_daily_focus(user_id, focus_date)
            if result is None:
                return {
                    "success": True,
                    "status": "not_generated",
                    "focus": None,
                    "leads": [],
                    "count": 0,
                    "message": "Today's focus has not been generated yet",
                }

        response = {
            "success": True,
            "status": "generated" if result.created else "existing",
            "focus": result.focus,
            "leads": result.leads,
            "count": len(result.leads),
        }
        if not result.focus["lead_ids"]:
            response["message"] = "No high or medium priority leads are available for focus"
        return response

    @app.post("/api/users/{user_id}/actions")
    def api_track_action(user_id: uuid.UUID, payload: TrackActionRequest) -> dict:
        if payload.action_type not in ACTION_TYPES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid action_type. Must be one of: {', '.join(ACTION_TYPES)}",
            )
        action = track_lead_action(user_id, payload.lead_id, payload.action_type, metadata=payload.metadata)
        return {"success": True, "action": action}

    @app.post("/api/users/{user_id}/leads/{lead_id}/contacted")
    def api_mark_contacted(
        user_id: uuid.UUID,
        lead_id: uuid.UUID,
        payload: Optional[MarkContactedRequest] = None,
    ) -> dict:
        metadata = payload.metadata if payload else {}
        action = mark_lead_contacted(user_id, lead_id, metadata=metadata)
        return {"success": True, "action": action}

    def _run_sweep(job_name: str, sweep) -> JSONResponse | dict:
        try:
            return sweep()
        except Exception as exc:
            logger.exception("Error in %s sweep: %s", job_name, exc)
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": f"Failed to run {job_name}",
                    "message": str(exc),
                },
            )

    @app.api_route("/api/cron/rescore-leads", methods=["GET", "POST"], dependencies=[Depends(require_cron_auth)])
    def api_cron_rescore_leads():
        return _run_sweep("rescore_leads", rescore_all_leads)

    @app.api_route("/api/cron/generate-focus", methods=["GET", "POST"], dependencies=[Depends(require_cron_auth)])
    def api_cron_generate_focus():
        return _run_sweep("generate_focus", generate_focus_for_all_users)

    @app.get("/api/automation/status")
    def api_automation_status() -> dict:
        return automation_controller.status()

    @app.post("/api/automation/start", dependencies=[Depends(require_cron_auth)])
    def api_automation_start(payload: Optional[SweepSettingsRequest] = None) -> dict:
        updates = payload.model_dump(exclude_none=True) if payload else {}
        return automation_controller.start(updates=updates)

    @app.post("/api/automation/stop", dependencies=[Depends(require_cron_auth)])
    def api_automation_stop() -> dict:
        return automation_controller.stop()

    @app.post("/api/automation/run-now", dependencies=[Depends(require_cron_auth)])
    def api_automation_run_now() -> dict:
        return automation_controller.run_now()

    @app.post("/api/automation/settings", dependencies=[Depends(require_cron_auth)])
    def api_automation_update_settings(payload: SweepSettingsRequest) -> dict:
        automation_controller.update_settings(payload.model_dump(exclude_none=True))
        return automation_controller.status()

    return app


app = create_app()
