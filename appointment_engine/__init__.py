"""Appointment scheduling and slot allocation engine."""
from appointment_engine.availability import SlotCandidate, SlotCandidates, TimeOfDay
from appointment_engine.models import (
    Appointment,
    AppointmentStatus,
    NotificationEvent,
    NotificationType,
    ServiceDetails,
    Slot,
    SlotDay,
)
from appointment_engine.results import (
    ApprovalSucceeded,
    BookingSucceeded,
    CancellationSucceeded,
    OperationFailed,
    SlotDayOpened,
)
from appointment_engine.service import SchedulingService, create_scheduling_service

__version__ = "1.0.0"

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "ApprovalSucceeded",
    "BookingSucceeded",
    "CancellationSucceeded",
    "NotificationEvent",
    "NotificationType",
    "OperationFailed",
    "SchedulingService",
    "ServiceDetails",
    "Slot",
    "SlotCandidate",
    "SlotCandidates",
    "SlotDay",
    "SlotDayOpened",
    "TimeOfDay",
    "create_scheduling_service",
]
