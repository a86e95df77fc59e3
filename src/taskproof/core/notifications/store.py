from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from .schemas import Notification, NotificationType


class NotificationStore:
    def __init__(self, state_dir: Path | None = None) -> None:
        self.state_dir = state_dir or self._default_state_dir()
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.file_path = self.state_dir / "notifications.jsonl"
        self._lock = threading.Lock()
        self._unreadable: list[str] = []

    def _default_state_dir(self) -> Path:
        configured = os.getenv("TASKPROOF_STATE_DIR")
        if configured:
            return Path(configured).expanduser()
        return Path.home() / ".taskproof"

    def _load_all(self) -> list[Notification]:
        self._unreadable = []
        if not self.file_path.exists() or self.file_path.stat().st_size == 0:
            return []

        records: list[Notification] = []
        with self.file_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(Notification.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError):
                    self._unreadable.append(line)
        return records

    def _rewrite(self, records: list[Notification]) -> None:
        # Rows this version cannot parse are kept as they were.
        tmp_path = self.file_path.with_suffix(".jsonl.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            for record in records:
                handle.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n")
            for raw in self._unreadable:
                handle.write(raw + "\n")
        os.replace(tmp_path, self.file_path)

    def append(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        priority: int = 1,
        related_task_id: str | None = None,
    ) -> Notification:
        record = Notification(
            id=str(uuid4()),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            priority=min(5, max(1, priority)),
            related_task_id=related_task_id,
            created_at_iso=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            with self.file_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n")
        return record

    def list_all(self, user_id: str | None = None, acknowledged: bool | None = None) -> list[Notification]:
        with self._lock:
            records = self._load_all()
        if user_id is not None:
            records = [record for record in records if record.user_id == user_id]
        if acknowledged is not None:
            records = [record for record in records if record.acknowledged == acknowledged]
        return sorted(records, key=lambda item: (item.priority, item.created_at_iso), reverse=True)

    def acknowledge(self, id: str) -> Notification | None:
        with self._lock:
            records = self._load_all()
            for record in records:
                if record.id == id:
                    record.acknowledged = True
                    self._rewrite(records)
                    return record
        return None
