"""Cancellation coordinator.

Marks an appointment cancelled (it is never deleted) and frees its slots, in
one atomic batch.
"""
from typing import List, Optional, Sequence

from appointment_engine.config import Settings
from appointment_engine.errors import (
    InvalidRequestError,
    InvalidStateError,
    MalformedDataError,
    NotFoundError,
    SchedulingError,
    StorageError,
    UnauthorizedError,
)
from appointment_engine.logging_config import generate_operation_id, get_logger
from appointment_engine.models import Appointment, AppointmentStatus, SlotDay
from appointment_engine.paths import DocumentPaths
from appointment_engine.results import CancellationResult, CancellationSucceeded, OperationFailed
from appointment_engine.storage.base import MutationKind, Precondition, StoragePort, WriteOperation

logger = get_logger(__name__)


async def build_slot_release(
    storage: StoragePort,
    paths: DocumentPaths,
    business_id: str,
    date: str,
    slot_indexes: Sequence[int]
) -> Optional[WriteOperation]:
    """
    Versioned SlotDay update marking slot_indexes available again.

    Returns:
        The write operation, or None when the day has no slot grid
    """
    path = paths.slot_day(business_id, date)
    snapshot = await storage.get_document(path)
    if snapshot is None:
        return None

    slot_day = SlotDay.from_document(business_id, date, snapshot.data)
    slots_payload = [slot.model_dump() for slot in slot_day.slots]
    for i in slot_indexes:
        if 0 <= i < len(slots_payload):
            slots_payload[i]["available"] = True

    return WriteOperation(
        path,
        MutationKind.UPDATE,
        {"slots": slots_payload},
        Precondition(version=snapshot.version),
    )


class CancellationCoordinator:
    """Releases the slots of pending or confirmed appointments."""

    def __init__(self, storage: StoragePort, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or Settings()
        self.paths = DocumentPaths(self.settings)

    async def cancel_appointment(
        self,
        business_id: str,
        appointment_id: str,
        date: str
    ) -> CancellationResult:
        """
        Cancel an appointment and make its slots bookable again.

        Args:
            business_id: Business holding the slots
            appointment_id: Appointment to cancel
            date: Day of the appointment (YYYY-MM-DD)

        Returns:
            CancellationSucceeded, or OperationFailed
        """
        log = logger.bind(
            operation_id=generate_operation_id(),
            appointment_id=appointment_id,
            business_id=business_id,
            date=date,
        )

        try:
            operations = await self._prepare(business_id, appointment_id, date)
        except SchedulingError as e:
            log.info("cancellation_rejected", reason=str(e), code=e.code.value)
            return OperationFailed.from_error(e)
        except StorageError as e:
            log.warning("cancellation_read_failed", error=str(e))
            return OperationFailed.from_error(e)
        except Exception as e:
            log.error("cancellation_read_failed", error=f"{type(e).__name__}: {e}", exc_info=True)
            return OperationFailed.from_error(e)

        try:
            await self.storage.run_atomic_batch(operations)
        except StorageError as e:
            log.warning("cancellation_commit_failed", error=str(e))
            return OperationFailed.from_error(e)
        except Exception as e:
            log.error("cancellation_commit_failed", error=f"{type(e).__name__}: {e}", exc_info=True)
            return OperationFailed.from_error(e)

        log.info("appointment_cancelled")
        return CancellationSucceeded(appointment_id=appointment_id)

    async def _prepare(
        self,
        business_id: str,
        appointment_id: str,
        date: str
    ) -> List[WriteOperation]:
        if not business_id or not appointment_id:
            raise InvalidRequestError("Business and appointment are required")

        appointment_path = self.paths.appointment(appointment_id)
        snapshot = await self.storage.get_document(appointment_path)
        if snapshot is None:
            raise NotFoundError("Appointment not found")

        appointment = Appointment.from_document(appointment_id, snapshot.data)
        if appointment.business_id != business_id:
            raise UnauthorizedError("Unauthorized access")
        if not appointment.status.holds_slots:
            raise InvalidStateError("Appointment cannot be cancelled")
        if not appointment.date:
            # Without a date the slots it holds cannot be located
            raise MalformedDataError("Appointment has no date")
        if appointment.date != date:
            raise InvalidRequestError(f"Appointment is not on {date}")

        timestamp = self.storage.server_timestamp()
        operations = [
            WriteOperation(
                appointment_path,
                MutationKind.UPDATE,
                {
                    "status": AppointmentStatus.CANCELLED.value,
                    "cancelledAt": timestamp,
                    "updatedAt": timestamp,
                },
                Precondition(version=snapshot.version),
            )
        ]

        release = await build_slot_release(
            self.storage, self.paths, business_id, date, appointment.slot_indexes
        )
        if release is None:
            logger.warning(
                "cancellation_slot_day_missing",
                appointment_id=appointment_id,
                path=self.paths.slot_day(business_id, date),
            )
            return operations

        operations.append(release)
        return operations
