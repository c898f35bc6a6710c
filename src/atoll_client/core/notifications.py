from __future__ import annotations

from enum import Enum
from typing import Awaitable, Callable, Optional


class NotificationLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


HostNotificationHandler = Callable[[str, NotificationLevel], Awaitable[None]]

RECONNECTING_MESSAGE = "reconnecting"
RECONNECTED_MESSAGE = "reconnected"
RECONNECT_FAILED_MESSAGE = "could not reconnect, try logging in again"


async def notify(
    handler: Optional[HostNotificationHandler],
    message: str,
    level: NotificationLevel,
) -> None:
    """Forward a session event to the embedding application, if it gave a handler."""
    if handler is not None:
        await handler(message, level)


__all__ = [
    "NotificationLevel",
    "HostNotificationHandler",
    "RECONNECTING_MESSAGE",
    "RECONNECTED_MESSAGE",
    "RECONNECT_FAILED_MESSAGE",
    "notify",
]
