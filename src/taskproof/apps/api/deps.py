from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from taskproof.core.completion.orchestrator import CompletionOrchestrator
from taskproof.core.conversation.service import CoachService
from taskproof.core.conversation.store import MessageStore
from taskproof.core.evidence.policy import EvidencePolicy, load_evidence_policy
from taskproof.core.extraction.service import ExtractionService
from taskproof.core.intake.service import TaskIntake
from taskproof.core.notifications.notifier import NotificationRouter, build_notification_router
from taskproof.core.notifications.store import NotificationStore
from taskproof.core.scheduler.scheduler import SchedulerService
from taskproof.core.tasks.store import TaskStore


@lru_cache(maxsize=1)
def get_state_dir() -> Path:
    configured = os.getenv("TASKPROOF_STATE_DIR")
    state_dir = Path(configured).expanduser() if configured else Path.home() / ".taskproof"
    state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir


def get_current_user_id() -> str:
    return os.getenv("TASKPROOF_DEFAULT_USER_ID", "demo-user")


@lru_cache(maxsize=1)
def get_task_store() -> TaskStore:
    return TaskStore(state_dir=get_state_dir())


@lru_cache(maxsize=1)
def get_notification_store() -> NotificationStore:
    return NotificationStore(state_dir=get_state_dir())


@lru_cache(maxsize=1)
def get_notification_router() -> NotificationRouter:
    return build_notification_router(store=get_notification_store())


@lru_cache(maxsize=1)
def get_evidence_policy() -> EvidencePolicy:
    return load_evidence_policy()


@lru_cache(maxsize=1)
def get_extraction_service() -> ExtractionService:
    return ExtractionService()


@lru_cache(maxsize=1)
def get_completion_orchestrator() -> CompletionOrchestrator:
    return CompletionOrchestrator(
        store=get_task_store(),
        extraction=get_extraction_service(),
        policy=get_evidence_policy(),
        notifier=get_notification_router(),
    )


@lru_cache(maxsize=1)
def get_task_intake() -> TaskIntake:
    return TaskIntake(store=get_task_store(), extraction=get_extraction_service())


@lru_cache(maxsize=1)
def get_message_store() -> MessageStore:
    return MessageStore(state_dir=get_state_dir())


@lru_cache(maxsize=1)
def get_coach_service() -> CoachService:
    return CoachService(
        messages=get_message_store(),
        intake=get_task_intake(),
        tasks=get_task_store(),
        notifications=get_notification_store(),
        llm=get_extraction_service().llm,
    )


@lru_cache(maxsize=1)
def get_scheduler_service() -> SchedulerService:
    return SchedulerService(state_dir=get_state_dir())


def reset_dependencies() -> None:
    for getter in (
        get_state_dir,
        get_task_store,
        get_notification_store,
        get_notification_router,
        get_evidence_policy,
        get_extraction_service,
        get_completion_orchestrator,
        get_task_intake,
        get_message_store,
        get_coach_service,
        get_scheduler_service,
    ):
        getter.cache_clear()
