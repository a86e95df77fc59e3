from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from taskproof.core.evidence.schemas import CompletionEvidence

from .schemas import EDITABLE_STATUSES, DailyOverview, Task, TaskCreate

logger = logging.getLogger("taskproof.tasks.store")


class TaskStoreError(RuntimeError):
    """Raised when the task file cannot be written."""


class TaskNotFoundError(LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}")
        self.task_id = task_id


class TaskAlreadyCompletedError(RuntimeError):
    def __init__(self, task: Task) -> None:
        super().__init__(f"task already completed: {task.id}")
        self.task = task


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskStore:
    """JSONL-backed task table.

    Every mutation is a read-modify-rewrite under one lock and lands on disk
    through ``os.replace``, so readers only ever see a whole file. Rows that
    fail to parse are hidden from readers but written back verbatim, so a
    rewrite never destroys them.
    """

    def __init__(self, state_dir: Path | None = None) -> None:
        self.state_dir = state_dir or self._default_state_dir()
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.file_path = self.state_dir / "tasks.jsonl"
        self._lock = threading.RLock()
        self._unreadable: list[str] = []

    def _default_state_dir(self) -> Path:
        configured = os.getenv("TASKPROOF_STATE_DIR")
        if configured:
            return Path(configured).expanduser()
        return Path.home() / ".taskproof"

    def _load_all(self) -> list[Task]:
        self._unreadable = []
        if not self.file_path.exists() or self.file_path.stat().st_size == 0:
            return []

        records: list[Task] = []
        with self.file_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(Task.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError):
                    logger.warning("skipping unreadable task row", extra={"extra_fields": {"file": str(self.file_path)}})
                    self._unreadable.append(line)
        return records

    def _rewrite(self, records: list[Task]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=".tasks-", suffix=".jsonl", dir=self.file_path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                for record in records:
                    handle.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n")
                for raw in self._unreadable:
                    handle.write(raw + "\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.file_path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise TaskStoreError(f"could not write {self.file_path.name}: {exc}") from exc

    def create(self, user_id: str, data: TaskCreate) -> Task:
        stamp = now_iso()
        task = Task(
            id=str(uuid4()),
            user_id=user_id,
            created_at_iso=stamp,
            updated_at_iso=stamp,
            **data.model_dump(),
        )
        with self._lock:
            records = self._load_all()
            records.append(task)
            self._rewrite(records)
        return task

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            for record in self._load_all():
                if record.id == task_id:
                    return record
        return None

    def list_tasks(
        self,
        user_id: str | None = None,
        day: date | None = None,
        status: str | None = None,
        completed: bool | None = None,
    ) -> list[Task]:
        with self._lock:
            records = self._load_all()

        selected: list[Task] = []
        for record in records:
            if user_id is not None and record.user_id != user_id:
                continue
            if status is not None and record.status != status:
                continue
            if completed is not None and record.completed != completed:
                continue
            if day is not None and (record.scheduled_start is None or record.scheduled_start.date() != day):
                continue
            selected.append(record)

        def _sort_key(task: Task) -> tuple[int, int, str]:
            start = task.scheduled_start.isoformat() if task.scheduled_start else ""
            return (-task.priority, 0 if start else 1, start)

        return sorted(selected, key=_sort_key)

    def update(self, task_id: str, fields: dict[str, Any]) -> Task:
        with self._lock:
            records = self._load_all()
            for idx, current in enumerate(records):
                if current.id != task_id:
                    continue
                merged = current.model_dump()
                merged.update(fields)
                merged["updated_at_iso"] = now_iso()
                # Re-validating the merged row keeps the completed/evidence pairing intact.
                updated = Task.model_validate(merged)
                records[idx] = updated
                self._rewrite(records)
                return updated
        raise TaskNotFoundError(task_id)

    def edit(self, task_id: str, fields: dict[str, Any]) -> Task:
        """Apply a user edit to a task.

        Whether the edit reopens a completed task is decided against the row as
        it stands under the lock, so an edit racing a completion either reopens
        the finished task or leaves it finished, never a mix of the two.
        Raises ``ValueError`` for an out-of-order schedule window.
        """
        with self._lock:
            current = self.get(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)

            fields = dict(fields)
            if current.completed and (fields.get("completed") is False or fields.get("status") in EDITABLE_STATUSES):
                fields["completed"] = False
                fields["completion_evidence"] = None
                fields.setdefault("status", "pending")

            start = fields.get("scheduled_start", current.scheduled_start)
            end = fields.get("scheduled_end", current.scheduled_end)
            if start is not None and end is not None:
                try:
                    out_of_order = end < start
                except TypeError as exc:
                    raise ValueError("scheduled_start and scheduled_end must share a timezone style") from exc
                if out_of_order:
                    raise ValueError("scheduled_end must not precede scheduled_start")

            return self.update(task_id, fields)

    def mark_completed(self, task_id: str, evidence: CompletionEvidence) -> Task:
        """Flip the task to completed with its evidence in a single write.

        The completed check happens under the same lock as the write, so of two
        racing completions only one can succeed.
        """
        with self._lock:
            current = self.get(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)
            if current.completed:
                raise TaskAlreadyCompletedError(current)
            return self.update(
                task_id,
                {
                    "completed": True,
                    "status": "completed",
                    "completion_evidence": evidence.model_dump(),
                },
            )

    def delete(self, task_id: str) -> bool:
        with self._lock:
            records = self._load_all()
            remaining = [record for record in records if record.id != task_id]
            if len(remaining) == len(records):
                return False
            self._rewrite(remaining)
            return True

    def overview(self, user_id: str, day: date) -> DailyOverview:
        tasks = self.list_tasks(user_id=user_id, day=day)
        return DailyOverview(
            date=day.isoformat(),
            task_count=len(tasks),
            urgent_tasks=sum(1 for task in tasks if task.priority >= 4),
            completed_tasks=sum(1 for task in tasks if task.completed),
        )
