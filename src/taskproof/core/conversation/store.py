from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from .schemas import Message, MessageRole


class MessageStore:
    """Append-only chat history in ``messages.jsonl``."""

    def __init__(self, state_dir: Path | None = None) -> None:
        self.state_dir = state_dir or self._default_state_dir()
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.file_path = self.state_dir / "messages.jsonl"
        self._lock = threading.Lock()

    def _default_state_dir(self) -> Path:
        configured = os.getenv("TASKPROOF_STATE_DIR")
        if configured:
            return Path(configured).expanduser()
        return Path.home() / ".taskproof"

    def append(self, user_id: str, role: MessageRole, content: str, metadata: dict[str, Any] | None = None) -> Message:
        record = Message(
            id=str(uuid4()),
            user_id=user_id,
            role=role,
            content=content,
            metadata=metadata or {},
            created_at_iso=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            with self.file_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n")
        return record

    def recent(self, user_id: str, limit: int = 50) -> list[Message]:
        """The last ``limit`` messages of a user, oldest first."""
        if limit <= 0 or not self.file_path.exists():
            return []

        records: list[Message] = []
        with self._lock:
            with self.file_path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = Message.model_validate(json.loads(line))
                    except (json.JSONDecodeError, ValidationError):
                        continue
                    if record.user_id == user_id:
                        records.append(record)
        return records[-limit:]
