from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from taskproof.core.notifications.schemas import Notification, NotificationListResponse
from taskproof.core.notifications.store import NotificationStore

from .deps import get_current_user_id, get_notification_store

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    acknowledged: bool | None = Query(default=None),
    store: NotificationStore = Depends(get_notification_store),
    user_id: str = Depends(get_current_user_id),
) -> NotificationListResponse:
    return NotificationListResponse(notifications=store.list_all(user_id=user_id, acknowledged=acknowledged))


@router.post("/{notification_id}/acknowledge", response_model=Notification)
def acknowledge_notification(
    notification_id: str,
    store: NotificationStore = Depends(get_notification_store),
) -> Notification:
    record = store.acknowledge(notification_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"notification not found: {notification_id}")
    return record
