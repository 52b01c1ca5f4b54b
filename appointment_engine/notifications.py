"""Notification hand-off.

The engine only produces NotificationEvents; delivery (push, in-app) belongs
to whatever sink is plugged in.
"""
from typing import List, Optional, Protocol, runtime_checkable

from appointment_engine.logging_config import get_logger
from appointment_engine.models import NotificationEvent, NotificationType

logger = get_logger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Delivery collaborator receiving status-change events."""

    async def deliver(self, event: NotificationEvent) -> None:
        ...


class InMemoryOutbox:
    """Collects events in order. Used for tests and local runs."""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    async def deliver(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def for_customer(self, customer_id: str) -> List[NotificationEvent]:
        return [e for e in self.events if e.customer_id == customer_id]


def build_notification(
    notification_type: NotificationType,
    customer_id: Optional[str],
    appointment_id: str,
    reason: Optional[str] = None
) -> NotificationEvent:
    return NotificationEvent(
        type=notification_type,
        customer_id=customer_id,
        appointment_id=appointment_id,
        reason=reason,
    )


async def dispatch(sink: Optional[NotificationSink], event: NotificationEvent) -> bool:
    """
    Hand an event to the sink, best-effort.

    The status change is already committed when this runs, so a delivery
    failure is logged and reported, never raised.

    Returns:
        True if delivered (or no sink configured), False on delivery failure
    """
    if sink is None:
        return True

    try:
        await sink.deliver(event)
    except Exception as e:
        logger.warning(
            "notification_delivery_failed",
            appointment_id=event.appointment_id,
            customer_id=event.customer_id,
            type=event.type.value,
            error=f"{type(e).__name__}: {e}",
        )
        return False

    return True
