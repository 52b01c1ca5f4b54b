"""Data model for businesses, slot grids, appointments and notifications.

Documents are stored with camelCase keys; models expose snake_case attributes
and accept either spelling.
"""
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from appointment_engine import config
from appointment_engine.errors import MalformedDataError


class DocumentModel(BaseModel):
    """Base for models persisted as camelCase documents."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def holds_slots(self) -> bool:
        """Non-terminal appointments keep their slots reserved."""
        return self in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class NotificationType(str, Enum):
    APPOINTMENT_APPROVED = "APPOINTMENT_APPROVED"
    APPOINTMENT_REJECTED = "APPOINTMENT_REJECTED"


class Slot(DocumentModel):
    """One fixed-duration unit of a business day."""
    index: int = Field(..., ge=0)
    time: str = Field(..., description="Start time, HH:MM (24-hour)")
    available: bool = True


class SlotDay(DocumentModel):
    """Ordered slot grid for one business on one date."""
    business_id: str
    date: str = Field(..., description="YYYY-MM-DD")
    slots: List[Slot] = Field(default_factory=list)
    slot_duration: Optional[int] = Field(None, gt=0, description="Granularity in minutes")

    @classmethod
    def from_document(cls, business_id: str, date: str, data: Any) -> "SlotDay":
        """
        Parse a stored slot grid.

        Entries that are not well-formed slots are kept as unavailable so that
        indexes stay aligned with their position.

        Raises:
            MalformedDataError: If the document or its slot list is unusable
        """
        if not isinstance(data, dict):
            raise MalformedDataError("Slot data is malformed")

        raw_slots = data.get("slots")
        if not isinstance(raw_slots, list):
            raise MalformedDataError("Slot data is malformed")

        slots = []
        for position, entry in enumerate(raw_slots):
            if (
                isinstance(entry, dict)
                and isinstance(entry.get("available"), bool)
                and isinstance(entry.get("time"), str)
            ):
                slots.append(Slot(index=position, time=entry["time"], available=entry["available"]))
            else:
                time_value = entry.get("time") if isinstance(entry, dict) else None
                slots.append(Slot(
                    index=position,
                    time=time_value if isinstance(time_value, str) else "",
                    available=False
                ))

        slot_duration = data.get("slotDuration")
        if not isinstance(slot_duration, int) or isinstance(slot_duration, bool) or slot_duration <= 0:
            slot_duration = None

        return cls(business_id=business_id, date=date, slots=slots, slot_duration=slot_duration)

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "slots": [slot.model_dump() for slot in self.slots],
        }
        if self.slot_duration:
            document["slotDuration"] = self.slot_duration
        return document


class ServiceDetails(DocumentModel):
    name: str = Field(..., min_length=1)
    price: float = Field(0, ge=0)


class DaySchedule(DocumentModel):
    """Opening hours for one weekday."""
    open: str = "00:00"
    close: str = "00:00"
    is_open: bool = False


class Business(DocumentModel):
    """Read-only view of a business owned by the registration subsystem."""
    id: str
    name: Optional[str] = None
    working_hours: Dict[str, DaySchedule] = Field(
        default_factory=lambda: {
            day: DaySchedule(**hours) for day, hours in config.DEFAULT_WORKING_HOURS.items()
        }
    )
    slot_duration: Optional[int] = Field(None, gt=0)

    def schedule_for(self, weekday: str) -> DaySchedule:
        return self.working_hours.get(weekday.lower(), DaySchedule())


class Appointment(DocumentModel):
    id: str
    business_id: str
    customer_id: Optional[str] = None
    service_id: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    slot_indexes: List[int] = Field(default_factory=list)
    status: AppointmentStatus
    service_name: Optional[str] = None
    service_price: Optional[float] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, appointment_id: str, data: Any) -> "Appointment":
        """
        Raises:
            MalformedDataError: If required fields are missing or invalid
        """
        if not isinstance(data, dict):
            raise MalformedDataError("Appointment data is malformed")

        try:
            return cls.model_validate({**data, "id": appointment_id})
        except ValidationError as e:
            raise MalformedDataError("Appointment data is malformed") from e


class NotificationEvent(DocumentModel):
    """Customer-visible status change handed to the delivery collaborator."""
    type: NotificationType
    customer_id: Optional[str] = None
    appointment_id: str
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
