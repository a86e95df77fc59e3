from __future__ import annotations

import logging

from taskproof.core.http.client import request_with_retry
from taskproof.core.http.errors import TaskproofHTTPError

logger = logging.getLogger(__name__)

# Discord embed limits.
_TITLE_LIMIT = 256
_DESCRIPTION_LIMIT = 4096
_FIELD_VALUE_LIMIT = 1024
_MAX_FIELDS = 25

_PRIORITY_COLOURS = {
    1: 0x95A5A6,
    2: 0x3498DB,
    3: 0xF1C40F,
    4: 0xE67E22,
    5: 0xE74C3C,
}


def _priority(meta: dict) -> int:
    try:
        return min(5, max(1, int(meta.get("priority", 1))))
    except (TypeError, ValueError):
        return 1


def build_webhook_payload(title: str, body: str, meta: dict | None = None) -> dict:
    """One embed per notification, coloured by priority, with meta as inline fields."""
    meta = meta or {}
    embed: dict[str, object] = {
        "title": title[:_TITLE_LIMIT],
        "description": body[:_DESCRIPTION_LIMIT],
        "color": _PRIORITY_COLOURS[_priority(meta)],
    }
    fields = [
        {"name": str(key)[:_TITLE_LIMIT], "value": str(value)[:_FIELD_VALUE_LIMIT], "inline": True}
        for key, value in meta.items()
        if value not in (None, "")
    ]
    if fields:
        embed["fields"] = fields[:_MAX_FIELDS]
    # Mentions inside notification text never ping.
    return {"embeds": [embed], "allowed_mentions": {"parse": []}}


class DiscordWebhookNotifier:
    def __init__(self, webhook_url: str, timeout_s: float = 5.0) -> None:
        self.webhook_url = webhook_url
        self.timeout_s = timeout_s

    def send(self, title: str, body: str, meta: dict | None = None) -> None:
        try:
            request_with_retry(
                "POST",
                self.webhook_url,
                json=build_webhook_payload(title, body, meta),
                timeout_override=self.timeout_s,
                retries=1,
                redact_url=True,
            )
        except TaskproofHTTPError as exc:
            logger.warning(
                "discord webhook send failed",
                extra={"extra_fields": {"error": str(exc), "title": title[:_TITLE_LIMIT]}},
            )
