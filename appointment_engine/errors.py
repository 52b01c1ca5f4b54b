"""Error taxonomy for scheduling operations.

These exceptions are raised inside the coordinators and converted to
OperationFailed results at the public boundary; callers never need to catch them.
"""
from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable failure categories carried on failure results."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    INVALID_REQUEST = "invalid_request"
    SLOT_CONFLICT = "slot_conflict"
    STORAGE_ERROR = "storage_error"
    MALFORMED_DATA = "malformed_data"


class SchedulingError(Exception):
    """Base class for expected scheduling failures."""
    code = ErrorCode.INVALID_REQUEST


class InvalidRequestError(SchedulingError):
    """Caller supplied arguments that cannot describe a valid booking."""
    code = ErrorCode.INVALID_REQUEST


class NotFoundError(SchedulingError):
    """Referenced appointment (or slot day) does not exist."""
    code = ErrorCode.NOT_FOUND


class UnauthorizedError(SchedulingError):
    """Business does not own the appointment."""
    code = ErrorCode.UNAUTHORIZED


class InvalidStateError(SchedulingError):
    """Status precondition violated, or a required field is missing."""
    code = ErrorCode.INVALID_STATE


class SlotConflictError(SchedulingError):
    """Requested slots are already held by another appointment."""
    code = ErrorCode.SLOT_CONFLICT


class MalformedDataError(SchedulingError):
    """Stored data does not have the expected shape."""
    code = ErrorCode.MALFORMED_DATA


class StorageError(Exception):
    """Base class for storage layer failures."""
    code = ErrorCode.STORAGE_ERROR


class StorageCommitError(StorageError):
    """Raised when a batch or update is rejected; nothing was written."""
    pass


class PreconditionFailedError(StorageCommitError):
    """Raised when a document changed (or appeared/vanished) since it was read."""
    pass


class StorageUnavailableError(StorageError):
    """Raised when the store cannot be reached. Safe to retry for reads."""
    pass
