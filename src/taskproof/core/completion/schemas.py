from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field

from taskproof.core.evidence.validator import RejectionReason
from taskproof.core.tasks.schemas import Task


class CompletionSucceeded(BaseModel):
    outcome: Literal["completed"] = "completed"
    task: Task
    follow_ups: list[Task] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    follow_up_status: Literal["ok", "timeout", "error", "disabled"] = "ok"
    skipped_follow_ups: list[dict[str, str]] = Field(default_factory=list)


class CompletionRejected(BaseModel):
    outcome: Literal["rejected"] = "rejected"
    task_id: str
    reason: RejectionReason
    guidance: str


class AlreadyCompleted(BaseModel):
    outcome: Literal["already_completed"] = "already_completed"
    reason: Literal["AlreadyCompleted"] = "AlreadyCompleted"
    task: Task
    guidance: str = "This task is already completed. Reopen it before submitting new evidence."


class TaskNotFound(BaseModel):
    outcome: Literal["not_found"] = "not_found"
    task_id: str


CompletionOutcome = Union[CompletionSucceeded, CompletionRejected, AlreadyCompleted, TaskNotFound]


class CompletionFailedError(RuntimeError):
    """The completion could not be persisted; nothing was changed."""

    def __init__(self, task_id: str, detail: str) -> None:
        super().__init__(f"completion failed for {task_id}: {detail}")
        self.task_id = task_id
