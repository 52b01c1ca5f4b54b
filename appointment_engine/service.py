"""Public operation surface.

Wires every component to a single Storage Port so that availability, booking,
cancellation and approval all see the same slot grids and appointments.

Usage:
    service = create_scheduling_service(storage)
    slots = await service.find_available_slots("biz-1", "2025-01-21", 30)
    candidate = next(iter(slots))
    result = await service.book_appointment(
        "biz-1", "cust-1", "srv-1", "2025-01-21",
        datetime(2025, 1, 21, 9, 0), candidate.slot_indexes, 30,
        {"name": "Haircut", "price": 100},
    )
"""
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence, Union

from appointment_engine.approval import ApprovalWorkflow
from appointment_engine.availability import AvailabilityCalculator, SlotCandidates
from appointment_engine.booking import BookingCoordinator
from appointment_engine.cancellation import CancellationCoordinator
from appointment_engine.config import Settings, load_settings
from appointment_engine.models import ServiceDetails
from appointment_engine.notifications import NotificationSink
from appointment_engine.results import (
    ApprovalResult,
    BookingResult,
    CancellationResult,
    SlotDayResult,
)
from appointment_engine.slot_grid import SlotGridBuilder
from appointment_engine.storage.base import StoragePort
from appointment_engine.storage.memory import InMemoryStorage
from appointment_engine.storage.resilient import ResilientStorage


class SchedulingService:
    """Facade over the availability, booking, cancellation and approval components."""

    def __init__(
        self,
        storage: StoragePort,
        notifier: Optional[NotificationSink] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or Settings()
        self.storage = storage
        self.availability = AvailabilityCalculator(storage, self.settings)
        self.slot_grid = SlotGridBuilder(storage, self.settings)
        self.booking = BookingCoordinator(storage, self.settings)
        self.cancellation = CancellationCoordinator(storage, self.settings)
        self.approval = ApprovalWorkflow(storage, self.settings, notifier)

    async def find_available_slots(
        self,
        business_id: Optional[str],
        date: str,
        service_duration_minutes: int
    ) -> SlotCandidates:
        return await self.availability.find_available_slots(
            business_id, date, service_duration_minutes
        )

    async def open_slot_day(self, business_id: str, date: str) -> SlotDayResult:
        return await self.slot_grid.open_slot_day(business_id, date)

    async def book_appointment(
        self,
        business_id: str,
        customer_id: str,
        service_id: str,
        date: str,
        start_time: Union[datetime, str],
        slot_indexes: Sequence[int],
        service_duration_minutes: int,
        service_details: Union[ServiceDetails, Mapping[str, Any]]
    ) -> BookingResult:
        return await self.booking.book_appointment(
            business_id,
            customer_id,
            service_id,
            date,
            start_time,
            slot_indexes,
            service_duration_minutes,
            service_details,
        )

    async def cancel_appointment(
        self,
        business_id: str,
        appointment_id: str,
        date: str
    ) -> CancellationResult:
        return await self.cancellation.cancel_appointment(business_id, appointment_id, date)

    async def approve_appointment(self, business_id: str, appointment_id: str) -> ApprovalResult:
        return await self.approval.approve_appointment(business_id, appointment_id)

    async def reject_appointment(
        self,
        business_id: str,
        appointment_id: str,
        reason: Optional[str]
    ) -> ApprovalResult:
        return await self.approval.reject_appointment(business_id, appointment_id, reason)


def create_scheduling_service(
    storage: Optional[StoragePort] = None,
    notifier: Optional[NotificationSink] = None,
    settings: Optional[Settings] = None,
    resilient: bool = True
) -> SchedulingService:
    """
    Build a SchedulingService from environment settings.

    Args:
        storage: Backing store (defaults to a fresh InMemoryStorage)
        notifier: Optional delivery sink for notification events
        settings: Overrides environment-derived settings
        resilient: Wrap the store with circuit breaker and read retries
    """
    settings = settings or load_settings()
    storage = storage or InMemoryStorage()
    if resilient:
        storage = ResilientStorage.from_settings(storage, settings)
    return SchedulingService(storage, notifier=notifier, settings=settings)
