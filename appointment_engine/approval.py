"""Owner approval workflow.

State machine over Appointment.status:
- pending -> confirmed (approve)
- pending -> rejected (reject; its slots are released in the same batch)
- pending | confirmed -> cancelled (cancellation coordinator)

Checks run in a fixed order and the first failing one decides the error:
not found, unauthorized, not pending, missing rejection reason.
"""
from typing import Any, Dict, List, Optional

from appointment_engine.cancellation import build_slot_release
from appointment_engine.config import Settings
from appointment_engine.errors import (
    InvalidStateError,
    NotFoundError,
    PreconditionFailedError,
    SchedulingError,
    StorageError,
    UnauthorizedError,
)
from appointment_engine.logging_config import generate_operation_id, get_logger
from appointment_engine.models import Appointment, AppointmentStatus, NotificationType
from appointment_engine.notifications import NotificationSink, build_notification, dispatch
from appointment_engine.paths import DocumentPaths
from appointment_engine.results import ApprovalResult, ApprovalSucceeded, OperationFailed
from appointment_engine.storage.base import MutationKind, Precondition, StoragePort, WriteOperation

logger = get_logger(__name__)

NOT_FOUND_MESSAGE = "Appointment not found"
UNAUTHORIZED_MESSAGE = "Unauthorized access"
NOT_PENDING_MESSAGE = "Appointment is not in pending status"
REASON_REQUIRED_MESSAGE = "Rejection reason is required"


# Pattern: Current status → [allowed next statuses]
VALID_TRANSITIONS: Dict[AppointmentStatus, List[AppointmentStatus]] = {
    AppointmentStatus.PENDING: [
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.REJECTED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.CONFIRMED: [
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.REJECTED: [],
    AppointmentStatus.CANCELLED: [],
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


class ApprovalWorkflow:
    """Lets a business owner approve or reject pending appointments."""

    def __init__(
        self,
        storage: StoragePort,
        settings: Optional[Settings] = None,
        notifier: Optional[NotificationSink] = None
    ):
        self.storage = storage
        self.settings = settings or Settings()
        self.paths = DocumentPaths(self.settings)
        self.notifier = notifier

    async def approve_appointment(self, business_id: str, appointment_id: str) -> ApprovalResult:
        """
        Confirm a pending appointment.

        Returns:
            ApprovalSucceeded carrying an APPOINTMENT_APPROVED event, or OperationFailed
        """
        return await self._process(
            business_id,
            appointment_id,
            AppointmentStatus.CONFIRMED,
            reason=None,
        )

    async def reject_appointment(
        self,
        business_id: str,
        appointment_id: str,
        reason: Optional[str]
    ) -> ApprovalResult:
        """
        Reject a pending appointment; a non-blank reason is mandatory.

        Returns:
            ApprovalSucceeded carrying an APPOINTMENT_REJECTED event, or OperationFailed
        """
        return await self._process(
            business_id,
            appointment_id,
            AppointmentStatus.REJECTED,
            reason=reason,
        )

    async def _process(
        self,
        business_id: str,
        appointment_id: str,
        target: AppointmentStatus,
        reason: Optional[str]
    ) -> ApprovalResult:
        log = logger.bind(
            operation_id=generate_operation_id(),
            appointment_id=appointment_id,
            business_id=business_id,
            target=target.value,
        )

        try:
            result = await self._transition(business_id, appointment_id, target, reason)
        except SchedulingError as e:
            log.info("approval_rejected", reason=str(e), code=e.code.value)
            return OperationFailed.from_error(e)
        except StorageError as e:
            log.warning("approval_storage_failed", error=str(e))
            return OperationFailed.from_error(e)
        except Exception as e:
            log.error("approval_storage_failed", error=f"{type(e).__name__}: {e}", exc_info=True)
            return OperationFailed.from_error(e)

        delivered = await dispatch(self.notifier, result.notification)
        log.info("appointment_status_changed", notification_delivered=delivered)
        return result

    async def _transition(
        self,
        business_id: str,
        appointment_id: str,
        target: AppointmentStatus,
        reason: Optional[str]
    ) -> ApprovalSucceeded:
        if not appointment_id:
            raise NotFoundError(NOT_FOUND_MESSAGE)

        path = self.paths.appointment(appointment_id)
        snapshot = await self.storage.get_document(path)
        if snapshot is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)

        appointment = Appointment.from_document(appointment_id, snapshot.data)
        if appointment.business_id != business_id:
            raise UnauthorizedError(UNAUTHORIZED_MESSAGE)
        if appointment.status != AppointmentStatus.PENDING or not can_transition(appointment.status, target):
            raise InvalidStateError(NOT_PENDING_MESSAGE)

        fields = {
            "status": target.value,
            "updatedAt": self.storage.server_timestamp(),
        }

        if target == AppointmentStatus.REJECTED:
            if not isinstance(reason, str) or not reason.strip():
                raise InvalidStateError(REASON_REQUIRED_MESSAGE)
            fields["rejectionReason"] = reason
            notification = build_notification(
                NotificationType.APPOINTMENT_REJECTED,
                appointment.customer_id,
                appointment_id,
                reason=reason,
            )
        else:
            notification = build_notification(
                NotificationType.APPOINTMENT_APPROVED,
                appointment.customer_id,
                appointment_id,
            )

        precondition = Precondition(version=snapshot.version)
        try:
            if target == AppointmentStatus.REJECTED:
                await self._commit_rejection(path, fields, precondition, appointment)
            else:
                await self.storage.update_document(path, fields, precondition)
        except PreconditionFailedError:
            current = await self.storage.get_document(path)
            if current is None or current.data.get("status") != AppointmentStatus.PENDING.value:
                # Someone else processed the appointment between our read and write
                raise InvalidStateError(NOT_PENDING_MESSAGE)
            raise

        return ApprovalSucceeded(notification=notification)

    async def _commit_rejection(
        self,
        path: str,
        fields: Dict[str, Any],
        precondition: Precondition,
        appointment: Appointment
    ) -> None:
        """Reject and free the appointment's slots in one atomic batch."""
        operations = [WriteOperation(path, MutationKind.UPDATE, fields, precondition)]

        release = None
        if appointment.date:
            release = await build_slot_release(
                self.storage,
                self.paths,
                appointment.business_id,
                appointment.date,
                appointment.slot_indexes,
            )
        if release is None:
            logger.warning(
                "rejection_slot_day_missing",
                appointment_id=appointment.id,
                date=appointment.date,
            )
        else:
            operations.append(release)

        await self.storage.run_atomic_batch(operations)
