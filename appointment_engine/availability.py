"""Availability calculation.

Derives bookable start slots from a business's slot grid for one date and a
requested service duration. Never raises: missing or corrupted data means
"no availability".
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, Sequence, Tuple

from appointment_engine import config
from appointment_engine.config import Settings
from appointment_engine.errors import MalformedDataError, StorageError
from appointment_engine.logging_config import get_logger
from appointment_engine.models import Slot, SlotDay
from appointment_engine.paths import DocumentPaths
from appointment_engine.storage.base import StoragePort

logger = get_logger(__name__)


class TimeOfDay(str, Enum):
    """Time of day preferences."""
    MORNING = "morning"  # Before 12:00
    AFTERNOON = "afternoon"  # 12:00 and after
    ANY = "any"


@dataclass(frozen=True)
class SlotCandidate:
    """A start slot together with the slot indexes a booking must reserve."""
    index: int
    time: str
    slot_indexes: Tuple[int, ...]


def slots_needed(service_duration_minutes: int, granularity_minutes: int) -> int:
    """Number of consecutive slots covering the service duration."""
    return math.ceil(service_duration_minutes / granularity_minutes)


def _hour_of(time_hhmm: str) -> Optional[int]:
    try:
        return int(time_hhmm.split(":")[0])
    except (ValueError, AttributeError):
        return None


class SlotCandidates:
    """
    Lazy, restartable sequence of bookable starts.

    Nothing is computed until iteration, and every iteration starts over from
    the first slot, in ascending time order.
    """

    def __init__(
        self,
        slots: Sequence[Slot] = (),
        slots_needed: int = 1,
        predicate: Optional[Callable[[SlotCandidate], bool]] = None
    ):
        self._slots = tuple(slots)
        self._slots_needed = slots_needed
        self._predicate = predicate

    def __iter__(self) -> Iterator[SlotCandidate]:
        needed = self._slots_needed
        if needed < 1:
            return

        for start in range(len(self._slots) - needed + 1):
            window = self._slots[start:start + needed]
            if not all(slot.available for slot in window):
                continue

            candidate = SlotCandidate(
                index=window[0].index,
                time=window[0].time,
                slot_indexes=tuple(slot.index for slot in window),
            )
            if self._predicate is None or self._predicate(candidate):
                yield candidate

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None

    def __repr__(self) -> str:
        return f"SlotCandidates(slots={len(self._slots)}, slots_needed={self._slots_needed})"

    def filter_by_time_of_day(self, preference: TimeOfDay) -> "SlotCandidates":
        """
        Restrict candidates to a time of day.

        Args:
            preference: Morning, afternoon, or any

        Returns:
            New lazy view; self is unchanged
        """
        if preference == TimeOfDay.ANY:
            return self

        def matches(candidate: SlotCandidate) -> bool:
            hour = _hour_of(candidate.time)
            if hour is None:
                return False
            if preference == TimeOfDay.MORNING:
                return hour < config.MORNING_CUTOFF
            return hour >= config.MORNING_CUTOFF

        previous = self._predicate

        def combined(candidate: SlotCandidate) -> bool:
            return (previous is None or previous(candidate)) and matches(candidate)

        return SlotCandidates(self._slots, self._slots_needed, combined)


class AvailabilityCalculator:
    """Reads slot grids and computes bookable starts. Read-only."""

    def __init__(self, storage: StoragePort, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or Settings()
        self.paths = DocumentPaths(self.settings)

    async def find_available_slots(
        self,
        business_id: Optional[str],
        date: str,
        service_duration_minutes: int
    ) -> SlotCandidates:
        """
        Find every start slot from which the service fits in free slots.

        Args:
            business_id: Business to search; empty or None yields no slots
            date: Day to search (YYYY-MM-DD)
            service_duration_minutes: Length of the requested service

        Returns:
            SlotCandidates (empty on missing or malformed data)
        """
        if not business_id or not date:
            return SlotCandidates()

        if (
            not isinstance(service_duration_minutes, (int, float))
            or isinstance(service_duration_minutes, bool)
            or service_duration_minutes <= 0
        ):
            logger.warning(
                "availability_invalid_duration",
                business_id=business_id,
                date=date,
                service_duration_minutes=service_duration_minutes,
            )
            return SlotCandidates()

        path = self.paths.slot_day(business_id, date)
        try:
            snapshot = await self.storage.get_document(path)
        except StorageError as e:
            logger.warning("availability_read_failed", path=path, error=str(e))
            return SlotCandidates()
        except Exception as e:
            logger.error(
                "availability_read_failed",
                path=path,
                error=f"{type(e).__name__}: {e}",
                exc_info=True,
            )
            return SlotCandidates()

        if snapshot is None:
            return SlotCandidates()

        try:
            slot_day = SlotDay.from_document(business_id, date, snapshot.data)
        except MalformedDataError as e:
            logger.warning("availability_malformed_slots", path=path, error=str(e))
            return SlotCandidates()

        granularity = slot_day.slot_duration or self.settings.slot_granularity_minutes
        return SlotCandidates(
            slot_day.slots,
            slots_needed(service_duration_minutes, granularity),
        )
