from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.api.routes.scheduling import default_solver_settings
from app.core.exceptions import ConfigurationError

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    scheduler_ok = True
    scheduler_error: str | None = None
    solver_settings = None
    try:
        solver_settings = default_solver_settings()
    except ConfigurationError as exc:
        scheduler_ok = False
        scheduler_error = exc.message

    payload = {
        "status": "ok" if scheduler_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "scheduler": {
            "ok": scheduler_ok,
            "error": scheduler_error,
            "heuristic_section_threshold": (
                solver_settings.heuristic_section_threshold if solver_settings else None
            ),
            "seeded": bool(solver_settings and solver_settings.random_seed is not None),
            "time_budget_seconds": solver_settings.time_budget_seconds if solver_settings else None,
        },
    }
    return JSONResponse(status_code=200 if scheduler_ok else 503, content=payload)
