"""
Notifier adapters

``notify(event_type, recipient, payload) -> bool`` is the whole contract.
Implementations are best-effort: they log and swallow their own errors and
report only whether the message was accepted for delivery.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Mapping, Protocol

from django.conf import settings  # type: ignore
from django.utils.module_loading import import_string  # type: ignore

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, event_type: str, recipient: str, payload: Mapping[str, Any]) -> bool:
        ...


class CeleryNotifier:
    """Hands messages to the ``notifications.deliver_notification`` task."""

    def notify(self, event_type: str, recipient: str, payload: Mapping[str, Any]) -> bool:
        from .tasks import deliver_notification

        if not recipient:
            logger.warning(f"Notification {event_type} dropped: no recipient")
            return False
        try:
            deliver_notification.delay(event_type, recipient, dict(payload))
        except Exception as e:
            logger.error(f"Failed to enqueue {event_type} for {recipient}: {e}", exc_info=True)
            return False
        logger.info(f"Notification {event_type} queued for {recipient}")
        return True


class NullNotifier:
    """Accepts and remembers every message. Used by tests."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    def notify(self, event_type: str, recipient: str, payload: Mapping[str, Any]) -> bool:
        self.sent.append((event_type, recipient, dict(payload)))
        return True

    def events(self) -> list[str]:
        return [event_type for event_type, _, _ in self.sent]

    def clear(self) -> None:
        self.sent.clear()


@lru_cache(maxsize=1)
def get_notifier() -> Notifier:
    """The notifier named by ``settings.SPONSORSHIP_NOTIFIER``."""

    return import_string(settings.SPONSORSHIP_NOTIFIER)()
