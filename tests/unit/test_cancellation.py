"""Tests for the cancellation coordinator."""
import pytest
from unittest.mock import patch

from appointment_engine.cancellation import CancellationCoordinator
from appointment_engine.errors import ErrorCode, StorageCommitError
from appointment_engine.results import CancellationSucceeded

BUSINESS_ID = "test-business-id"
APPOINTMENT_ID = "test-appointment-id"
DATE = "2025-01-21"


class TestCancelAppointment:
    """Test appointment cancellation (status change, never delete)."""

    @pytest.mark.asyncio
    async def test_successful_cancellation(self, storage, make_slot_day, make_appointment, paths):
        """Should cancel in one batch commit targeting the appointment."""
        make_slot_day(taken=(0, 1))
        make_appointment(APPOINTMENT_ID, business_id=BUSINESS_ID, status="confirmed")
        coordinator = CancellationCoordinator(storage)

        with patch.object(storage, "run_atomic_batch", wraps=storage.run_atomic_batch) as batch:
            result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert isinstance(result, CancellationSucceeded)
        assert result.appointment_id == APPOINTMENT_ID
        batch.assert_awaited_once()
        operations = batch.await_args.args[0]
        assert operations[0].collection == "appointments"

        appointment = await storage.get_document(paths.appointment(APPOINTMENT_ID))
        assert appointment.data["status"] == "cancelled"
        assert appointment.data["cancelledAt"] is not None
        assert appointment.data["updatedAt"] == appointment.data["cancelledAt"]

    @pytest.mark.asyncio
    async def test_releases_slots(self, storage, make_slot_day, make_appointment, paths):
        make_slot_day(taken=(0, 1, 3))
        make_appointment(APPOINTMENT_ID, slot_indexes=(0, 1))
        coordinator = CancellationCoordinator(storage)

        await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        snapshot = await storage.get_document(paths.slot_day(BUSINESS_ID, DATE))
        flags = [slot["available"] for slot in snapshot.data["slots"]]
        assert flags == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_commit_failure_returns_error(self, storage, make_slot_day, make_appointment, paths):
        make_slot_day(taken=(0, 1))
        make_appointment(APPOINTMENT_ID)
        coordinator = CancellationCoordinator(storage)

        with patch.object(
            storage, "run_atomic_batch", side_effect=StorageCommitError("Cancellation failed")
        ):
            result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert result.success is False
        assert result.error == "Cancellation failed"
        assert result.code == ErrorCode.STORAGE_ERROR

        appointment = await storage.get_document(paths.appointment(APPOINTMENT_ID))
        assert appointment.data["status"] == "pending"

    @pytest.mark.asyncio
    async def test_missing_slot_day_still_cancels(self, storage, make_appointment, paths):
        make_appointment(APPOINTMENT_ID)
        coordinator = CancellationCoordinator(storage)

        result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert result.success is True
        appointment = await storage.get_document(paths.appointment(APPOINTMENT_ID))
        assert appointment.data["status"] == "cancelled"


class TestCancellationFailures:
    """Test precondition failures."""

    @pytest.mark.asyncio
    async def test_not_found(self, storage):
        coordinator = CancellationCoordinator(storage)

        result = await coordinator.cancel_appointment(BUSINESS_ID, "missing", DATE)

        assert result.success is False
        assert result.error == "Appointment not found"
        assert result.code == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_other_business(self, storage, make_appointment):
        make_appointment(APPOINTMENT_ID, business_id="someone-else")
        coordinator = CancellationCoordinator(storage)

        result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert result.success is False
        assert result.error == "Unauthorized access"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["cancelled", "rejected"])
    async def test_terminal_status_cannot_be_cancelled(self, storage, make_appointment, status):
        make_appointment(APPOINTMENT_ID, status=status)
        coordinator = CancellationCoordinator(storage)

        result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert result.success is False
        assert result.error == "Appointment cannot be cancelled"
        assert result.code == ErrorCode.INVALID_STATE
        assert storage.commit_count == 0

    @pytest.mark.asyncio
    async def test_wrong_date(self, storage, make_appointment):
        make_appointment(APPOINTMENT_ID)
        coordinator = CancellationCoordinator(storage)

        result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, "2025-01-22")

        assert result.success is False
        assert result.code == ErrorCode.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_unexpected_commit_error_returns_failure(self, storage, make_slot_day, make_appointment, paths):
        make_slot_day(taken=(0, 1))
        make_appointment(APPOINTMENT_ID)
        coordinator = CancellationCoordinator(storage)

        with patch.object(
            storage, "run_atomic_batch", side_effect=RuntimeError("Cancellation failed")
        ):
            result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert result.success is False
        assert result.error == "Cancellation failed"
        assert result.code == ErrorCode.STORAGE_ERROR

        appointment = await storage.get_document(paths.appointment(APPOINTMENT_ID))
        assert appointment.data["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unexpected_read_error_returns_failure(self, storage, make_appointment):
        make_appointment(APPOINTMENT_ID)
        coordinator = CancellationCoordinator(storage)

        with patch.object(storage, "get_document", side_effect=ConnectionError("down")):
            result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert result.success is False
        assert result.code == ErrorCode.STORAGE_ERROR
        assert storage.commit_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("date", [None, ""])
    async def test_missing_date_is_malformed(self, storage, make_slot_day, make_appointment, date):
        make_slot_day(taken=(0, 1))
        make_appointment(APPOINTMENT_ID, date=date)
        coordinator = CancellationCoordinator(storage)

        result = await coordinator.cancel_appointment(BUSINESS_ID, APPOINTMENT_ID, DATE)

        assert result.success is False
        assert result.code == ErrorCode.MALFORMED_DATA
        assert storage.commit_count == 0
