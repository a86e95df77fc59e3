from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from taskproof.core.evidence.schemas import CompletionEvidence

TaskStatus = Literal["pending", "in_progress", "completed", "blocked"]
TaskSource = Literal["user", "message", "breakdown", "follow_up"]

# Statuses a plain edit may move a task into; "completed" goes through the evidence gate.
EDITABLE_STATUSES: frozenset[str] = frozenset({"pending", "in_progress", "blocked"})


class Task(BaseModel):
    id: str
    user_id: str
    project_id: str | None = None
    title: str
    description: str | None = None
    status: TaskStatus = "pending"
    priority: int = Field(default=1, ge=1, le=5)
    estimated_minutes: int | None = None
    actual_minutes: int | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    completed: bool = False
    completion_evidence: CompletionEvidence | None = None
    source: TaskSource = "user"
    origin_task_id: str | None = None
    created_at_iso: str
    updated_at_iso: str

    @model_validator(mode="after")
    def _completion_is_consistent(self) -> "Task":
        if self.completed and self.completion_evidence is None:
            raise ValueError("a completed task must carry completion evidence")
        if self.completed != (self.status == "completed"):
            raise ValueError("status is 'completed' exactly when the task is completed")
        return self


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    project_id: str | None = None
    status: Literal["pending", "in_progress", "blocked"] = "pending"
    priority: int = Field(default=1, ge=1, le=5)
    estimated_minutes: int | None = Field(default=None, ge=0)
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    source: TaskSource = "user"
    origin_task_id: str | None = None

    @model_validator(mode="after")
    def _window_is_ordered(self) -> "TaskCreate":
        if self.scheduled_start and self.scheduled_end and self.scheduled_end < self.scheduled_start:
            raise ValueError("scheduled_end must not precede scheduled_start")
        return self


class TaskUpdate(BaseModel):
    """Partial edit of a task. Only fields explicitly sent are applied."""

    title: str | None = None
    description: str | None = None
    project_id: str | None = None
    status: TaskStatus | None = None
    priority: int | None = Field(default=None, ge=1, le=5)
    estimated_minutes: int | None = Field(default=None, ge=0)
    actual_minutes: int | None = Field(default=None, ge=0)
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    completed: bool | None = None

    @field_validator("title", "status", "priority", "completed", mode="before")
    @classmethod
    def _not_null(cls, value: object) -> object:
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("title must not be blank")
        return value


class TaskListResponse(BaseModel):
    tasks: list[Task]


class DailyOverview(BaseModel):
    date: str
    task_count: int
    urgent_tasks: int
    completed_tasks: int
