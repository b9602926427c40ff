"""
approval_services.notifications -- Outbound notification collaborator.

Responsibility:
    Define the event shape the engine emits (approval required, approved,
    rejected, SLA escalation) and the dispatcher protocol hosts implement.
    Delivery (email, push) is outside the engine.

Architecture position:
    Services -- collaborator protocol, a logging default, and
    ``dispatch_safely`` which every engine service uses to send.

Invariants enforced:
    - A notification failure never blocks or reverses a state transition:
      ``dispatch_safely`` logs the failure and returns False.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from approval_kernel.domain.approval import NotificationType
from approval_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


@dataclass(frozen=True)
class NotificationEvent:
    notification_type: NotificationType
    entity_type: str
    entity_id: UUID
    recipient_email: str | None
    recipient_id: str | None = None
    level: int | None = None
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher(Protocol):
    def notify(self, event: NotificationEvent) -> None:
        ...


class LoggingNotificationDispatcher:
    """Default dispatcher: records each event as a structured log line."""

    def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "notification_dispatched",
            extra={
                "notification_type": event.notification_type.value,
                "entity_type": event.entity_type,
                "entity_id": str(event.entity_id),
                "recipient_email": event.recipient_email,
                "approval_level": event.level,
            },
        )


def dispatch_safely(dispatcher: NotificationDispatcher, event: NotificationEvent) -> bool:
    """Send ``event``; log and swallow any delivery failure."""
    try:
        dispatcher.notify(event)
    except Exception:
        logger.warning(
            "notification_failed",
            extra={
                "notification_type": event.notification_type.value,
                "entity_type": event.entity_type,
                "entity_id": str(event.entity_id),
                "recipient_email": event.recipient_email,
            },
            exc_info=True,
        )
        return False
    return True
