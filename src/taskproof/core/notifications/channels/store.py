from __future__ import annotations

import os

from taskproof.core.notifications.store import NotificationStore

_KNOWN_TYPES = {"check_in", "evidence_rejected", "follow_ups_created", "task_reminder"}


class StoreNotifier:
    """Persists notifications so clients can poll and acknowledge them."""

    def __init__(self, store: NotificationStore) -> None:
        self.store = store

    def send(self, title: str, body: str, meta: dict | None = None) -> None:
        meta = meta or {}
        kind = str(meta.get("type") or "task_reminder")
        self.store.append(
            user_id=str(meta.get("user_id") or os.getenv("TASKPROOF_DEFAULT_USER_ID", "demo-user")),
            type=kind if kind in _KNOWN_TYPES else "task_reminder",
            title=title,
            message=body,
            priority=int(meta.get("priority") or 1),
            related_task_id=meta.get("task_id"),
        )
