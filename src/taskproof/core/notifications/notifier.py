from __future__ import annotations

import logging
import os
from typing import Protocol

from .channels.console import ConsoleNotifier
from .channels.discord import DiscordWebhookNotifier
from .channels.store import StoreNotifier
from .store import NotificationStore

logger = logging.getLogger("taskproof.notifications")


class Notifier(Protocol):
    def send(self, title: str, body: str, meta: dict | None = None) -> None: ...


class NotificationRouter:
    def __init__(self, channels: list[Notifier]) -> None:
        self.channels = channels

    def send(self, title: str, body: str, meta: dict | None = None) -> None:
        payload_meta = meta or {}
        for channel in self.channels:
            channel.send(title=title, body=body, meta=payload_meta)


def build_notification_router(store: NotificationStore | None = None) -> NotificationRouter:
    configured = os.getenv("TASKPROOF_NOTIFIER", "console,store")
    requested = [name.strip().casefold() for name in configured.split(",") if name.strip()]
    channels: list[Notifier] = []

    if "console" in requested:
        channels.append(ConsoleNotifier())

    if "store" in requested:
        channels.append(StoreNotifier(store=store or NotificationStore()))

    if "discord" in requested:
        webhook = os.getenv("TASKPROOF_DISCORD_WEBHOOK_URL")
        if webhook:
            channels.append(DiscordWebhookNotifier(webhook_url=webhook))
        else:
            logger.warning("discord notifier requested but TASKPROOF_DISCORD_WEBHOOK_URL is not set; skipping")

    if not channels:
        channels.append(ConsoleNotifier())

    return NotificationRouter(channels=channels)
