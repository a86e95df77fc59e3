from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

NotificationType = Literal["check_in", "evidence_rejected", "follow_ups_created", "task_reminder"]


class Notification(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    priority: int = Field(default=1, ge=1, le=5)
    acknowledged: bool = False
    related_task_id: str | None = None
    created_at_iso: str


class NotificationListResponse(BaseModel):
    notifications: list[Notification]
