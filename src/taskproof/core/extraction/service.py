from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from taskproof.core.models.llm_provider import LLMOutputError, LLMTimeout, LLMUnavailable, TaskproofLLM
from taskproof.core.models.prompts import (
    SYSTEM_PROMPT,
    breakdown_user_prompt,
    challenge_user_prompt,
    evidence_analysis_user_prompt,
    extraction_user_prompt,
    reschedule_user_prompt,
)
from taskproof.core.tasks.schemas import Task

from .schemas import (
    CompletionChallenge,
    EvidenceAnalysis,
    FollowUpProposal,
    ReschedulePlan,
    RescheduleSuggestion,
    SubtaskProposal,
    TaskBreakdown,
    TaskProposal,
)

logger = logging.getLogger("taskproof.extraction")

RESCHEDULE_FALLBACK_MESSAGE = "I'll help you reschedule these tasks. Let's prioritize the most important ones first."


class ExtractionError(RuntimeError):
    """The language service could not produce a usable answer."""


class ExtractionTimeout(ExtractionError):
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _string_list(value: Any) -> list[str]:
    # A bare string here would otherwise be split into characters.
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


class ExtractionService:
    def __init__(self, llm: TaskproofLLM | None = None, clock: Callable[[], datetime] | None = None) -> None:
        self.llm = llm or TaskproofLLM()
        self.clock = clock or _utc_now

    def _complete_json(self, user: str, schema_hint: dict[str, Any], **kwargs: Any) -> dict:
        try:
            return self.llm.complete_json(system=SYSTEM_PROMPT, user=user, schema_hint=schema_hint, **kwargs)
        except LLMTimeout as exc:
            raise ExtractionTimeout(str(exc)) from exc
        except (LLMUnavailable, LLMOutputError) as exc:
            raise ExtractionError(str(exc)) from exc

    def analyze_evidence(self, description: str, task_title: str, timeout_s: float | None = None) -> EvidenceAnalysis:
        """Mine completion evidence for follow-up work. One attempt, no retry."""
        payload = self._complete_json(
            evidence_analysis_user_prompt(description, task_title, self.clock().isoformat()),
            schema_hint={"follow_ups": "array", "insights": "array"},
            attempts=1,
            timeout_s=timeout_s,
        )
        raw_follow_ups = payload.get("follow_ups", payload.get("followUpTasks", []))
        if not isinstance(raw_follow_ups, list):
            raise ExtractionError("follow_ups must be a list")

        analysis = EvidenceAnalysis(insights=_string_list(payload.get("insights")))
        for raw in raw_follow_ups:
            if not isinstance(raw, dict):
                continue
            try:
                analysis.follow_ups.append(FollowUpProposal.model_validate(raw))
            except ValidationError:
                analysis.rejected_raw.append(raw)
        return analysis

    def extract_task(self, message: str) -> TaskProposal | None:
        payload = self._complete_json(
            extraction_user_prompt(message, self.clock().isoformat()),
            schema_hint={"is_task": "boolean", "scenario": "simple|complex|priority_critical"},
        )
        if not payload.get("is_task", payload.get("isTask", False)):
            return None
        try:
            return TaskProposal.model_validate(payload)
        except ValidationError as exc:
            raise ExtractionError(f"unusable task proposal: {exc.error_count()} errors") from exc

    def break_down_task(self, description: str, estimated_minutes: int | None = None) -> TaskBreakdown:
        try:
            payload = self._complete_json(
                breakdown_user_prompt(description, estimated_minutes),
                schema_hint={"subtasks": "array", "total_minutes": "number", "recommendations": "array"},
            )
            subtasks = [SubtaskProposal.model_validate(raw) for raw in payload.get("subtasks") or []]
            if not subtasks:
                raise ExtractionError("breakdown returned no subtasks")
            return TaskBreakdown(
                subtasks=subtasks,
                total_minutes=sum(item.estimated_minutes for item in subtasks),
                recommendations=_string_list(payload.get("recommendations")),
            )
        except (ExtractionError, ValidationError, TypeError) as exc:
            logger.warning("task breakdown fell back", extra={"extra_fields": {"error": str(exc)}})
            minutes = estimated_minutes or 60
            return TaskBreakdown(
                subtasks=[SubtaskProposal(title="Complete task", description=description, estimated_minutes=minutes, priority=3)],
                total_minutes=minutes,
                recommendations=["Break this task down further when you have more details."],
                fallback=True,
            )

    def challenge_completion(
        self,
        title: str,
        description: str | None = None,
        priority: int = 3,
        estimated_minutes: int | None = None,
    ) -> CompletionChallenge:
        try:
            payload = self._complete_json(
                challenge_user_prompt(title, description, priority, estimated_minutes),
                schema_hint={"challenge": "string", "questions": "array", "concerns": "array"},
            )
            return CompletionChallenge.model_validate(payload)
        except (ExtractionError, ValidationError):
            return CompletionChallenge(
                challenge=f'Can you provide evidence that "{title}" is actually complete?',
                questions=[
                    "What specific work did you complete?",
                    "Have you checked the quality of your work?",
                    "Is there any documentation or proof of completion?",
                ],
                concerns=[
                    "Marking tasks complete without verification can lead to quality issues",
                    "Incomplete work may cause problems for clients or team members",
                ],
            )

    def reschedule(self, reason: str, tasks: list[Task]) -> ReschedulePlan:
        """Propose new start times for ``tasks``.

        Suggestions naming a task outside ``tasks`` are dropped. When the model
        is unavailable or answers badly the plan is empty and ``fallback`` is set.
        """
        known = {task.id for task in tasks}
        rows = [
            {
                "id": task.id,
                "title": task.title,
                "priority": task.priority,
                "scheduled_start": task.scheduled_start.isoformat() if task.scheduled_start else None,
                "estimated_minutes": task.estimated_minutes,
            }
            for task in tasks
        ]
        try:
            payload = self._complete_json(
                reschedule_user_prompt(reason, rows, self.clock().isoformat()),
                schema_hint={"suggestions": "array", "message": "string"},
            )
            raw_suggestions = payload.get("suggestions") or []
            if not isinstance(raw_suggestions, list):
                raise ExtractionError("suggestions must be a list")
        except ExtractionError as exc:
            logger.warning("reschedule fell back", extra={"extra_fields": {"error": str(exc)}})
            return ReschedulePlan(message=RESCHEDULE_FALLBACK_MESSAGE, fallback=True)

        suggestions: list[RescheduleSuggestion] = []
        for raw in raw_suggestions:
            if not isinstance(raw, dict):
                continue
            try:
                suggestion = RescheduleSuggestion.model_validate(raw)
            except ValidationError:
                continue
            if suggestion.task_id in known:
                suggestions.append(suggestion)
        message = payload.get("message")
        return ReschedulePlan(
            suggestions=suggestions,
            message=message if isinstance(message, str) and message.strip() else RESCHEDULE_FALLBACK_MESSAGE,
        )
