from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AttachmentKind(str, Enum):
    SCREENSHOT = "screenshot"
    PHOTO = "photo"
    DOCUMENT = "document"
    EMAIL = "email"
    CALL_LOG = "call_log"
    FILE = "file"
    LINK = "link"
    NOTE = "note"


class EvidenceAttachment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: AttachmentKind
    content: str = Field(default="", description="Inline content, data URL or reference")
    name: str | None = None


class CompletionEvidence(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str = ""
    attachments: list[EvidenceAttachment] = Field(default_factory=list)
