from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from .context import get_log_context

_HEADER_KEYS = frozenset({"ts_iso_utc", "level", "logger", "service", "msg"})


def _utc_stamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Bound log context comes first, then the record's ``extra_fields``; neither
    may replace the header keys. Warnings and above also carry ``where``.
    """

    def __init__(self, service: str = "taskproof") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts_iso_utc": _utc_stamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "msg": record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            payload["where"] = f"{record.module}:{record.lineno}"

        extra_fields = getattr(record, "extra_fields", None)
        fields = {**get_log_context(), **(extra_fields if isinstance(extra_fields, dict) else {})}
        payload.update((key, value) for key, value in fields.items() if key not in _HEADER_KEYS)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["exc_type"] = exc_type.__name__ if exc_type else "Exception"
            payload["exc_msg"] = str(exc_value) if exc_value else ""
            payload["stack"] = self.formatException(record.exc_info)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)
