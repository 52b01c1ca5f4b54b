"""Booking coordinator.

Reserves slots and creates a pending appointment in one atomic batch.

Concurrency: the slot grid update carries the version that was read, so two
bookings racing for the same day cannot both commit. The loser gets a failure
result and decides itself whether to retry.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from appointment_engine.availability import slots_needed
from appointment_engine.config import Settings
from appointment_engine.errors import (
    ErrorCode,
    InvalidRequestError,
    NotFoundError,
    PreconditionFailedError,
    SchedulingError,
    SlotConflictError,
    StorageError,
)
from appointment_engine.logging_config import generate_operation_id, get_logger
from appointment_engine.models import AppointmentStatus, ServiceDetails, SlotDay
from appointment_engine.paths import DocumentPaths
from appointment_engine.results import BookingResult, BookingSucceeded, OperationFailed
from appointment_engine.storage.base import MutationKind, Precondition, StoragePort, WriteOperation

logger = get_logger(__name__)


def validate_slot_indexes(slot_indexes: Sequence[int]) -> List[int]:
    """
    Check that indexes form one contiguous ascending run.

    Raises:
        InvalidRequestError: If empty, negative, duplicated or non-contiguous
    """
    indexes = list(slot_indexes or [])
    if not indexes:
        raise InvalidRequestError("At least one slot must be selected")

    if any(not isinstance(i, int) or isinstance(i, bool) or i < 0 for i in indexes):
        raise InvalidRequestError("Slot indexes must be non-negative integers")

    ordered = sorted(indexes)
    if ordered != list(range(ordered[0], ordered[0] + len(ordered))):
        raise InvalidRequestError("Slot indexes must be contiguous")

    return ordered


class BookingCoordinator:
    """Creates pending appointments and marks their slots unavailable."""

    def __init__(self, storage: StoragePort, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or Settings()
        self.paths = DocumentPaths(self.settings)

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
        """
        Book contiguous slots for a customer.

        Args:
            business_id: Business being booked
            customer_id: Authenticated customer
            service_id: Service being booked
            date: Day of the appointment (YYYY-MM-DD)
            start_time: Appointment start
            slot_indexes: Contiguous indexes chosen from an availability result
            service_duration_minutes: Service length; determines end time
            service_details: {"name": ..., "price": ...}

        Returns:
            BookingSucceeded with the new appointment id, or OperationFailed
        """
        # Generated up front and never reused, even if the commit fails
        appointment_id = uuid.uuid4().hex
        log = logger.bind(
            operation_id=generate_operation_id(),
            appointment_id=appointment_id,
            business_id=business_id,
            customer_id=customer_id,
            date=date,
        )

        try:
            operations = await self._prepare(
                appointment_id,
                business_id,
                customer_id,
                service_id,
                date,
                start_time,
                slot_indexes,
                service_duration_minutes,
                service_details,
            )
        except SchedulingError as e:
            log.info("booking_rejected", reason=str(e), code=e.code.value)
            return OperationFailed.from_error(e)
        except StorageError as e:
            log.warning("booking_read_failed", error=str(e))
            return OperationFailed.from_error(e)
        except Exception as e:
            log.error("booking_read_failed", error=f"{type(e).__name__}: {e}", exc_info=True)
            return OperationFailed.from_error(e)

        try:
            await self.storage.run_atomic_batch(operations)
        except PreconditionFailedError as e:
            log.warning("booking_conflict", error=str(e))
            return OperationFailed(error=str(e), code=ErrorCode.SLOT_CONFLICT)
        except StorageError as e:
            log.warning("booking_commit_failed", error=str(e))
            return OperationFailed.from_error(e)
        except Exception as e:
            log.error("booking_commit_failed", error=f"{type(e).__name__}: {e}", exc_info=True)
            return OperationFailed.from_error(e)

        log.info("appointment_booked", slot_indexes=list(slot_indexes))
        return BookingSucceeded(appointment_id=appointment_id)

    async def _prepare(
        self,
        appointment_id: str,
        business_id: str,
        customer_id: str,
        service_id: str,
        date: str,
        start_time: Union[datetime, str],
        slot_indexes: Sequence[int],
        service_duration_minutes: int,
        service_details: Union[ServiceDetails, Mapping[str, Any]]
    ) -> List[WriteOperation]:
        """Validate the request against the current grid and build the batch."""
        if not business_id or not customer_id or not service_id:
            raise InvalidRequestError("Business, customer and service are required")
        if not date:
            raise InvalidRequestError("Date is required")
        if not isinstance(service_duration_minutes, int) or service_duration_minutes <= 0:
            raise InvalidRequestError("Service duration must be a positive number of minutes")

        if isinstance(start_time, str):
            try:
                start_time = datetime.fromisoformat(start_time)
            except ValueError as e:
                raise InvalidRequestError("Invalid start time format") from e
        if not isinstance(start_time, datetime):
            raise InvalidRequestError("Start time is required")

        try:
            details = ServiceDetails.model_validate(
                service_details.model_dump() if isinstance(service_details, ServiceDetails)
                else dict(service_details or {})
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise InvalidRequestError("Service details must include a name and price") from e

        indexes = validate_slot_indexes(slot_indexes)

        slot_day_path = self.paths.slot_day(business_id, date)
        snapshot = await self.storage.get_document(slot_day_path)
        if snapshot is None:
            raise NotFoundError(f"No slots available for {date}")

        slot_day = SlotDay.from_document(business_id, date, snapshot.data)
        granularity = slot_day.slot_duration or self.settings.slot_granularity_minutes
        expected = slots_needed(service_duration_minutes, granularity)
        if len(indexes) != expected:
            raise InvalidRequestError(
                f"Service of {service_duration_minutes} minutes needs {expected} slots, "
                f"got {len(indexes)}"
            )

        if indexes[-1] >= len(slot_day.slots):
            raise SlotConflictError("Selected time slot is no longer available")
        if not all(slot_day.slots[i].available for i in indexes):
            raise SlotConflictError("Selected time slot is no longer available")

        slots_payload = [slot.model_dump() for slot in slot_day.slots]
        for i in indexes:
            slots_payload[i]["available"] = False

        timestamp = self.storage.server_timestamp()
        appointment: Dict[str, Any] = {
            "businessId": business_id,
            "customerId": customer_id,
            "serviceId": service_id,
            "date": date,
            "startTime": start_time,
            "endTime": start_time + timedelta(minutes=service_duration_minutes),
            "slotIndexes": indexes,
            "status": AppointmentStatus.PENDING.value,
            "serviceName": details.name,
            "servicePrice": details.price,
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }

        return [
            WriteOperation(
                self.paths.appointment(appointment_id),
                MutationKind.CREATE,
                appointment,
                Precondition(exists=False),
            ),
            WriteOperation(
                slot_day_path,
                MutationKind.UPDATE,
                {"slots": slots_payload},
                Precondition(version=snapshot.version),
            ),
        ]
