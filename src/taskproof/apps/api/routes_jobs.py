from __future__ import annotations

from datetime import datetime
from pathlib import Path

from apscheduler.jobstores.base import JobLookupError
from fastapi import APIRouter, Depends, HTTPException

from taskproof.core.scheduler.jobs import CHECK_IN_JOB_ID, run_check_in, run_task_reminder
from taskproof.core.scheduler.scheduler import SchedulerService
from taskproof.core.scheduler.schemas import CheckInRequest, JobInfo, TaskReminderRequest
from taskproof.core.tasks.store import TaskStore

from .deps import get_current_user_id, get_scheduler_service, get_state_dir, get_task_store

router = APIRouter()


@router.get("", response_model=list[JobInfo])
def list_jobs(scheduler: SchedulerService = Depends(get_scheduler_service)) -> list[JobInfo]:
    return scheduler.list_jobs()


@router.post("/check-in")
def upsert_check_in(
    request: CheckInRequest,
    scheduler: SchedulerService = Depends(get_scheduler_service),
    state_dir: Path = Depends(get_state_dir),
    user_id: str = Depends(get_current_user_id),
) -> dict[str, object]:
    scheduler.add_interval(
        job_id=CHECK_IN_JOB_ID,
        minutes=request.every_minutes,
        func=run_check_in,
        kwargs={"state_dir": str(state_dir), "user_id": user_id, "job_id": CHECK_IN_JOB_ID},
    )
    return {"job_id": CHECK_IN_JOB_ID, "every_minutes": request.every_minutes}


@router.post("/reminder")
def create_task_reminder(
    request: TaskReminderRequest,
    scheduler: SchedulerService = Depends(get_scheduler_service),
    store: TaskStore = Depends(get_task_store),
    state_dir: Path = Depends(get_state_dir),
) -> dict[str, str]:
    try:
        run_at = datetime.fromisoformat(request.run_at_iso)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="run_at_iso must be an ISO datetime") from exc
    if store.get(request.task_id) is None:
        raise HTTPException(status_code=404, detail=f"task not found: {request.task_id}")

    job_id = f"reminder:{request.task_id}:{run_at.strftime('%Y%m%dT%H%M%S')}"
    scheduler.add_one_off(
        job_id=job_id,
        run_at_dt=run_at,
        func=run_task_reminder,
        kwargs={
            "state_dir": str(state_dir),
            "task_id": request.task_id,
            "message": request.message,
            "job_id": job_id,
        },
    )
    return {"job_id": job_id, "scheduled_for_iso": run_at.isoformat()}


@router.delete("/{job_id}")
def delete_job(job_id: str, scheduler: SchedulerService = Depends(get_scheduler_service)) -> dict[str, str]:
    try:
        scheduler.remove_job(job_id)
    except JobLookupError as exc:
        raise HTTPException(status_code=404, detail=f"job not found: {job_id}") from exc
    return {"status": "removed", "job_id": job_id}
