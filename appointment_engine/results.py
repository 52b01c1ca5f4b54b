"""Result types returned by every public operation.

Each operation returns either a success variant or OperationFailed; expected
failures are never raised to the caller.
"""
from typing import Any, Dict, Literal, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from appointment_engine.errors import ErrorCode
from appointment_engine.models import NotificationEvent, SlotDay


class OperationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict in the wire shape, e.g. {"success": True, "appointmentId": ...}."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BookingSucceeded(OperationResult):
    success: Literal[True] = True
    appointment_id: str


class CancellationSucceeded(OperationResult):
    success: Literal[True] = True
    appointment_id: str


class ApprovalSucceeded(OperationResult):
    success: Literal[True] = True
    notification: NotificationEvent


class SlotDayOpened(OperationResult):
    success: Literal[True] = True
    slot_day: SlotDay
    created: bool


class OperationFailed(OperationResult):
    success: Literal[False] = False
    error: str
    code: ErrorCode

    @classmethod
    def from_error(cls, exc: Exception) -> "OperationFailed":
        """Build a failure from an error; anything without a `code` counts as a storage failure."""
        return cls(
            error=str(exc) or type(exc).__name__,
            code=getattr(exc, "code", ErrorCode.STORAGE_ERROR),
        )


BookingResult = Union[BookingSucceeded, OperationFailed]
CancellationResult = Union[CancellationSucceeded, OperationFailed]
ApprovalResult = Union[ApprovalSucceeded, OperationFailed]
SlotDayResult = Union[SlotDayOpened, OperationFailed]
