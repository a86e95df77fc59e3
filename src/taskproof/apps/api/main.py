from __future__ import annotations

import os
import sys
from datetime import date as date_type
from datetime import datetime, timezone
from uuid import uuid4

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query

from taskproof import __version__
from taskproof.core.logging import configure_logging
from taskproof.core.logging.context import log_context
from taskproof.core.models.llm_provider import TaskproofLLM
from taskproof.core.scheduler.jobs import CHECK_IN_JOB_ID, run_check_in
from taskproof.core.tasks.schemas import DailyOverview
from taskproof.core.tasks.store import TaskStore

from .deps import (
    get_completion_orchestrator,
    get_current_user_id,
    get_notification_router,
    get_scheduler_service,
    get_state_dir,
    get_task_store,
)
from .routes_ai import router as ai_router
from .routes_jobs import router as jobs_router
from .routes_messages import router as messages_router
from .routes_notifications import router as notifications_router
from .routes_tasks import router as tasks_router


def _is_on(name: str, default: str = "off") -> bool:
    return os.getenv(name, default).strip().casefold() == "on"


def _state_dir_writable() -> bool:
    try:
        state_dir = get_state_dir()
        marker = state_dir / ".write-check"
        marker.write_text("ok", encoding="utf-8")
        marker.unlink(missing_ok=True)
        return True
    except OSError:
        return False


app = FastAPI(title="Taskproof API", version=__version__)

app.include_router(tasks_router, prefix="/tasks", tags=["tasks"])
app.include_router(ai_router, prefix="/ai", tags=["ai"])
app.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
app.include_router(jobs_router, prefix="/jobs", tags=["jobs"])
app.include_router(messages_router, prefix="/messages", tags=["messages"])


@app.middleware("http")
async def request_context_middleware(request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
    with log_context(correlation_id=correlation_id):
        response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


@app.on_event("startup")
def startup() -> None:
    state_dir = get_state_dir()
    configure_logging(state_dir)
    app.state.task_store = get_task_store()
    app.state.notification_router = get_notification_router()
    app.state.orchestrator = get_completion_orchestrator()
    app.state.scheduler_service = get_scheduler_service()

    app.state.scheduler_service.start()

    if _is_on("TASKPROOF_CHECKINS_ENABLED", "off"):
        app.state.scheduler_service.add_interval(
            job_id=CHECK_IN_JOB_ID,
            minutes=int(os.getenv("TASKPROOF_CHECKIN_EVERY_MINUTES", "60")),
            func=run_check_in,
            kwargs={
                "state_dir": str(state_dir),
                "user_id": get_current_user_id(),
                "job_id": CHECK_IN_JOB_ID,
            },
        )


@app.on_event("shutdown")
def shutdown() -> None:
    get_scheduler_service().shutdown()


@app.get("/overview", response_model=DailyOverview)
def overview(
    date: str | None = Query(default=None),
    store: TaskStore = Depends(get_task_store),
    user_id: str = Depends(get_current_user_id),
) -> DailyOverview:
    if date:
        try:
            day = date_type.fromisoformat(date[:10])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD") from exc
    else:
        day = datetime.now(timezone.utc).date()
    return store.overview(user_id=user_id, day=day)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}


@app.get("/healthz/full")
def healthz_full() -> dict[str, object]:
    provider = os.getenv("TASKPROOF_LLM_PROVIDER", "off").strip().casefold()
    state_writable = _state_dir_writable()
    jobs = get_scheduler_service().list_jobs()
    return {
        "ok": state_writable,
        "version": __version__,
        "python": {"version": sys.version.split()[0]},
        "state_dir": {"path": str(get_state_dir()), "writable": state_writable},
        "llm": {
            "provider": provider,
            "features": {
                "follow_ups": TaskproofLLM.feature_enabled("TASKPROOF_LLM_FOLLOWUPS"),
            },
        },
        "scheduler": {
            "checkins_enabled": any(job.id == CHECK_IN_JOB_ID for job in jobs),
            "jobs": len(jobs),
        },
    }


def run() -> None:
    uvicorn.run(
        "taskproof.apps.api.main:app",
        reload=_is_on("TASKPROOF_RELOAD", "off"),
        host=os.getenv("TASKPROOF_HOST", "127.0.0.1"),
        port=int(os.getenv("TASKPROOF_PORT", "8000")),
    )
