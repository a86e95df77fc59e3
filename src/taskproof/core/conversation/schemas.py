from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

MessageRole = Literal["user", "assistant", "system"]


class Message(BaseModel):
    id: str
    user_id: str
    role: MessageRole
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at_iso: str


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    role: MessageRole = "user"


class ConversationTurn(BaseModel):
    user_message: Message
    # Only user messages get a reply.
    assistant_message: Message | None = None


class MessageListResponse(BaseModel):
    messages: list[Message]
