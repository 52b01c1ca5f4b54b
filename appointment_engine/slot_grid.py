"""Lazy slot grid creation.

A SlotDay does not exist until someone opens it. Opening reads the business's
weekly schedule, lays out one slot per granularity step between opening and
closing time, and creates the document only if it is still absent.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import ValidationError

from appointment_engine.config import Settings
from appointment_engine.errors import (
    InvalidRequestError,
    MalformedDataError,
    NotFoundError,
    SchedulingError,
    StorageCommitError,
    StorageError,
)
from appointment_engine.logging_config import get_logger
from appointment_engine.models import Business, DaySchedule, Slot, SlotDay
from appointment_engine.paths import DocumentPaths
from appointment_engine.results import OperationFailed, SlotDayOpened, SlotDayResult
from appointment_engine.storage.base import MutationKind, Precondition, StoragePort, WriteOperation

logger = get_logger(__name__)


def build_slots(schedule: DaySchedule, granularity_minutes: int) -> List[Slot]:
    """
    Generate the slot grid for one opening window.

    Only slots that fit entirely before closing time are produced.

    Raises:
        MalformedDataError: If open/close are not HH:MM
    """
    if not schedule.is_open:
        return []

    try:
        opening = datetime.strptime(schedule.open, "%H:%M")
        closing = datetime.strptime(schedule.close, "%H:%M")
    except ValueError as e:
        raise MalformedDataError("Working hours are malformed") from e

    step = timedelta(minutes=granularity_minutes)
    slots = []
    current = opening
    while current + step <= closing:
        slots.append(Slot(index=len(slots), time=current.strftime("%H:%M"), available=True))
        current += step

    return slots


class SlotGridBuilder:
    """Materialises SlotDay documents from business schedules."""

    def __init__(self, storage: StoragePort, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or Settings()
        self.paths = DocumentPaths(self.settings)

    async def open_slot_day(self, business_id: str, date: str) -> SlotDayResult:
        """
        Return the SlotDay for (business_id, date), creating it if absent.

        Idempotent: an existing grid is returned untouched, including one
        created concurrently by another caller.
        """
        log = logger.bind(business_id=business_id, date=date)

        try:
            return await self._open(business_id, date)
        except SchedulingError as e:
            log.info("slot_day_not_opened", reason=str(e), code=e.code.value)
            return OperationFailed.from_error(e)
        except StorageError as e:
            log.warning("slot_day_storage_failed", error=str(e))
            return OperationFailed.from_error(e)
        except Exception as e:
            log.error("slot_day_storage_failed", error=f"{type(e).__name__}: {e}", exc_info=True)
            return OperationFailed.from_error(e)

    async def _open(self, business_id: str, date: str) -> SlotDayOpened:
        if not business_id:
            raise InvalidRequestError("Business id is required")

        try:
            weekday = datetime.strptime(date, "%Y-%m-%d").strftime("%A").lower()
        except (TypeError, ValueError) as e:
            raise InvalidRequestError("Invalid date format. Use YYYY-MM-DD") from e

        path = self.paths.slot_day(business_id, date)
        existing = await self.storage.get_document(path)
        if existing is not None:
            return SlotDayOpened(
                slot_day=SlotDay.from_document(business_id, date, existing.data),
                created=False,
            )

        business_snapshot = await self.storage.get_document(self.paths.business(business_id))
        if business_snapshot is None:
            raise NotFoundError("Business not found")

        try:
            business = Business.model_validate({**business_snapshot.data, "id": business_id})
        except ValidationError as e:
            raise MalformedDataError("Business data is malformed") from e

        schedule = business.schedule_for(weekday)
        if not schedule.is_open:
            raise InvalidRequestError(f"Business is closed on {weekday}")

        granularity = business.slot_duration or self.settings.slot_granularity_minutes
        slot_day = SlotDay(
            business_id=business_id,
            date=date,
            slots=build_slots(schedule, granularity),
            slot_duration=granularity,
        )

        try:
            await self.storage.run_atomic_batch([
                WriteOperation(
                    path,
                    MutationKind.CREATE,
                    slot_day.to_document(),
                    Precondition(exists=False),
                )
            ])
        except StorageCommitError:
            # Lost a creation race; the winner's grid is authoritative
            winner = await self.storage.get_document(path)
            if winner is None:
                raise
            return SlotDayOpened(
                slot_day=SlotDay.from_document(business_id, date, winner.data),
                created=False,
            )

        logger.info(
            "slot_day_opened",
            business_id=business_id,
            date=date,
            slots=len(slot_day.slots),
            slot_duration=granularity,
        )
        return SlotDayOpened(slot_day=slot_day, created=True)
