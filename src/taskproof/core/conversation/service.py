from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from taskproof.core.extraction.service import ExtractionError
from taskproof.core.intake.service import IntakeResult, TaskIntake
from taskproof.core.models.llm_provider import LLMUnavailable, TaskproofLLM
from taskproof.core.models.prompts import coach_system_prompt
from taskproof.core.notifications.store import NotificationStore
from taskproof.core.tasks.store import TaskStore, TaskStoreError

from .schemas import ConversationTurn, Message, MessageCreate
from .store import MessageStore

logger = logging.getLogger("taskproof.conversation")

UNAVAILABLE_REPLY = "I'm experiencing some technical difficulties. Let me help you in a moment."
COACH_MAX_TOKENS = 500
CONTEXT_TASKS = 5
CONTEXT_MESSAGES = 3


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _questions_reply(result: IntakeResult) -> str:
    proposal = result.proposal
    numbered = "\n".join(f"{index}. {question}" for index, question in enumerate(result.questions, start=1))
    return (
        f'STOP. I\'ve identified a {proposal.scenario} task: "{proposal.title}" '
        "but you've provided incomplete information.\n\n"
        "Vague planning leads to missed deadlines. I need specific details:\n\n"
        f"{numbered}\n\n"
        "Answer these and I'll schedule it."
    )


class CoachService:
    """Answers chat messages as the accountability coach.

    Each user message first goes through task intake. Incomplete task requests
    are answered with the missing questions and nothing is stored; anything
    else gets a model reply grounded in today's tasks and the recent history.
    """

    def __init__(
        self,
        messages: MessageStore,
        intake: TaskIntake,
        tasks: TaskStore,
        notifications: NotificationStore,
        llm: TaskproofLLM | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.messages = messages
        self.intake = intake
        self.tasks = tasks
        self.notifications = notifications
        self.llm = llm or TaskproofLLM()
        self.clock = clock or _utc_now

    def post(self, request: MessageCreate, user_id: str) -> ConversationTurn:
        # History is read before the new message lands so it is not echoed back as context.
        history = self.messages.recent(user_id, limit=CONTEXT_MESSAGES)
        saved = self.messages.append(user_id, request.role, request.content)
        if request.role != "user":
            return ConversationTurn(user_message=saved)
        return ConversationTurn(user_message=saved, assistant_message=self._reply(request.content, user_id, history))

    def _reply(self, content: str, user_id: str, history: list[Message]) -> Message:
        try:
            result = self.intake.create_from_message(content, user_id=user_id)
        except (ExtractionError, TaskStoreError) as exc:
            logger.warning("intake skipped for chat message", extra={"extra_fields": {"error": str(exc)}})
            result = IntakeResult(is_task=False)

        if result.questions and result.proposal is not None:
            return self.messages.append(
                user_id,
                "assistant",
                _questions_reply(result),
                {
                    "task_pending": True,
                    "pending_task": result.proposal.model_dump(mode="json"),
                    "questions": result.questions,
                },
            )

        metadata: dict[str, Any] = {}
        if result.task is not None:
            metadata["created_task_id"] = result.task.id
            metadata["subtask_ids"] = [task.id for task in result.subtasks]
            metadata["is_complex_project"] = bool(result.subtasks)

        today = self.tasks.list_tasks(user_id=user_id, day=self.clock().date())
        system = coach_system_prompt(
            today_tasks=[f"{task.title} (priority {task.priority})" for task in today[:CONTEXT_TASKS]],
            pending_notifications=len(self.notifications.list_all(user_id=user_id, acknowledged=False)),
            recent_messages=[f"{message.role}: {message.content}" for message in history],
            created_task=result.task.title if result.task is not None else None,
        )
        try:
            text = self.llm.complete_text(system=system, user=content, max_tokens=COACH_MAX_TOKENS)
            metadata["model"] = self.llm.config.model
        except LLMUnavailable as exc:
            logger.warning("coach reply unavailable", extra={"extra_fields": {"error": str(exc)}})
            text = UNAVAILABLE_REPLY
            metadata["error"] = True
        return self.messages.append(user_id, "assistant", text, metadata)
