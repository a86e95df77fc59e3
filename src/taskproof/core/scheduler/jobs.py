from __future__ import annotations

import logging
from pathlib import Path

from taskproof.core.logging.context import log_context
from taskproof.core.notifications.notifier import NotificationRouter, build_notification_router
from taskproof.core.notifications.store import NotificationStore
from taskproof.core.tasks.store import TaskStore

CHECK_IN_JOB_ID = "check-in"

logger = logging.getLogger("taskproof.jobs")


def check_in_message(store: TaskStore, user_id: str) -> str:
    active = store.list_tasks(user_id=user_id, status="in_progress")
    if active:
        return f'How are you progressing with "{active[0].title}"? What have you finished since the last check-in?'
    return "How are you progressing with your current task?"


def run_check_in(
    state_dir: str,
    user_id: str,
    job_id: str | None = None,
    router: NotificationRouter | None = None,
) -> None:
    """Send the periodic progress prompt.

    Scheduled jobs are rebuilt from plain kwargs, so collaborators are
    constructed from ``state_dir`` unless a router is handed in.
    """
    with log_context(job_id=job_id or CHECK_IN_JOB_ID, user_id=user_id):
        store = TaskStore(state_dir=Path(state_dir))
        active_router = router or build_notification_router(store=NotificationStore(state_dir=Path(state_dir)))
        active_router.send(
            title="Hourly Check-in",
            body=check_in_message(store, user_id),
            meta={"type": "check_in", "user_id": user_id, "priority": 3, "job_id": job_id},
        )
        logger.info("check-in sent")


def run_task_reminder(
    state_dir: str,
    task_id: str,
    message: str | None = None,
    job_id: str | None = None,
    router: NotificationRouter | None = None,
) -> None:
    with log_context(job_id=job_id, task_id=task_id):
        store = TaskStore(state_dir=Path(state_dir))
        task = store.get(task_id)
        if task is None or task.completed:
            logger.info("task reminder skipped", extra={"extra_fields": {"found": task is not None}})
            return
        active_router = router or build_notification_router(store=NotificationStore(state_dir=Path(state_dir)))
        active_router.send(
            title=f'Reminder: "{task.title}"',
            body=message or f'"{task.title}" is still open. Finish it and submit evidence when it is done.',
            meta={"type": "task_reminder", "user_id": task.user_id, "task_id": task.id, "priority": task.priority},
        )
        logger.info("task reminder sent")
