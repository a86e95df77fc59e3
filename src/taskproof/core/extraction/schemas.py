from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


def _clamp_priority(value: object, default: int = 3) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return min(5, max(1, number))


class FollowUpProposal(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    estimated_minutes: int | None = None
    priority: int = 3

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_in_range(cls, value: object) -> int:
        return _clamp_priority(value)


class EvidenceAnalysis(BaseModel):
    follow_ups: list[FollowUpProposal] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    # Raw follow-up entries that could not be parsed into a proposal.
    rejected_raw: list[dict] = Field(default_factory=list)


class MissingInfo(BaseModel):
    needs_due_date: bool = False
    needs_requirements: bool = False
    needs_priority: bool = False
    needs_timeline: bool = False
    required_questions: list[str] = Field(default_factory=list)

    @property
    def any_missing(self) -> bool:
        return self.needs_due_date or self.needs_requirements or self.needs_priority or self.needs_timeline


class TaskProposal(BaseModel):
    scenario: Literal["simple", "complex", "priority_critical"] = "simple"
    title: str = Field(min_length=1)
    description: str | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    estimated_minutes: int | None = Field(default=None, ge=0)
    priority: int = 3
    business_context: str = ""
    missing_info: MissingInfo | None = None

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_in_range(cls, value: object) -> int:
        return _clamp_priority(value)

    @property
    def is_complex(self) -> bool:
        return self.scenario in {"complex", "priority_critical"}


class SubtaskProposal(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    estimated_minutes: int = Field(default=30, ge=1)
    priority: int = 3

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_in_range(cls, value: object) -> int:
        return _clamp_priority(value)


class TaskBreakdown(BaseModel):
    subtasks: list[SubtaskProposal]
    total_minutes: int
    recommendations: list[str] = Field(default_factory=list)
    fallback: bool = False


class CompletionChallenge(BaseModel):
    challenge: str
    questions: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)


class RescheduleSuggestion(BaseModel):
    task_id: str = Field(validation_alias=AliasChoices("task_id", "taskId"))
    new_scheduled_start: datetime = Field(validation_alias=AliasChoices("new_scheduled_start", "newScheduledStart"))
    reason: str = ""


class ReschedulePlan(BaseModel):
    suggestions: list[RescheduleSuggestion] = Field(default_factory=list)
    message: str
    fallback: bool = False
