from __future__ import annotations

from pydantic import BaseModel, Field


class JobInfo(BaseModel):
    id: str
    next_run_time_iso: str | None
    trigger: str
    kwargs: dict = Field(default_factory=dict)


class TaskReminderRequest(BaseModel):
    task_id: str
    run_at_iso: str
    message: str | None = None


class CheckInRequest(BaseModel):
    every_minutes: int = Field(default=60, ge=1)
