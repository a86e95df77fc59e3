from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from taskproof.core.conversation.schemas import ConversationTurn, MessageCreate, MessageListResponse
from taskproof.core.conversation.service import CoachService
from taskproof.core.conversation.store import MessageStore

from .deps import get_coach_service, get_current_user_id, get_message_store

router = APIRouter()


@router.get("", response_model=MessageListResponse)
def list_messages(
    limit: int = Query(default=50, ge=1, le=500),
    store: MessageStore = Depends(get_message_store),
    user_id: str = Depends(get_current_user_id),
) -> MessageListResponse:
    return MessageListResponse(messages=store.recent(user_id, limit=limit))


@router.post("", response_model=ConversationTurn, status_code=201)
def post_message(
    request: MessageCreate,
    coach: CoachService = Depends(get_coach_service),
    user_id: str = Depends(get_current_user_id),
) -> ConversationTurn:
    try:
        return coach.post(request, user_id=user_id)
    except OSError as exc:
        raise HTTPException(status_code=503, detail="message could not be saved, try again") from exc
