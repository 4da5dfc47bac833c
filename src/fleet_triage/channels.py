"""Channel senders: deliver a rendered notification over one medium."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from fleet_triage.rules import Channel

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10.0  # seconds
NOTIFICATIONS_PATH = "/api/notifications"


@dataclass(frozen=True)
class NotificationPayload:
    """One rendered notification, built per matching rule per event."""

    type: str
    title: str
    message: str
    recipients: tuple[str, ...]
    channels: tuple[Channel, ...]
    priority: str
    rule_id: str = ""
    roles: tuple[str, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Return a dict suitable for JSON serialization."""
        return {
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "recipients": list(self.recipients),
            "roles": list(self.roles),
            "channels": [str(c) for c in self.channels],
            "priority": self.priority,
            "ruleId": self.rule_id,
            "timestamp": self.timestamp.isoformat(),
        }


class ChannelSender(Protocol):
    """Delivers a notification over one channel; raises on failure."""

    async def send(self, notification: NotificationPayload) -> None: ...


def channel_body(channel: Channel, notification: NotificationPayload) -> dict[str, Any]:
    """Build the JSON body each notification endpoint expects."""
    if channel == Channel.EMAIL:
        return {
            "recipients": list(notification.recipients),
            "subject": notification.title,
            "message": notification.message,
            "priority": notification.priority,
        }
    if channel == Channel.SMS:
        return {
            "recipients": list(notification.recipients),
            "message": notification.message,
            "priority": notification.priority,
        }
    if channel == Channel.PUSH:
        return {
            "title": notification.title,
            "message": notification.message,
            "tag": notification.type,
            "priority": notification.priority,
        }
    return notification.to_dict()


class HttpChannelSender:
    """POSTs notifications to ``<base_url>/api/notifications/<channel>``."""

    def __init__(self, channel: Channel, base_url: str, *, timeout: float = REQUEST_TIMEOUT) -> None:
        self.channel = channel
        self.url = f"{base_url.rstrip('/')}{NOTIFICATIONS_PATH}/{channel.value}"
        self._timeout = timeout

    async def send(self, notification: NotificationPayload) -> None:
        """Send one notification; raises httpx.HTTPError on transport or status errors."""
        # Event data may carry datetimes straight from the issue store.
        body = json.dumps(channel_body(self.channel, notification), default=str)
        logger.debug("POST %s (%s)", self.url, notification.title)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                self.url,
                content=body,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()


def build_http_senders(base_url: str) -> dict[Channel, ChannelSender]:
    """Create one HTTP sender per channel against *base_url*."""
    return {channel: HttpChannelSender(channel, base_url) for channel in Channel}
