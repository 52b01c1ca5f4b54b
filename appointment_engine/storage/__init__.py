"""Storage Port contract and implementations."""
from appointment_engine.storage.base import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    MutationKind,
    Precondition,
    PreconditionFailedError,
    ServerTimestamp,
    StorageCommitError,
    StorageError,
    StoragePort,
    StorageUnavailableError,
    WriteOperation,
)
from appointment_engine.storage.memory import InMemoryStorage
from appointment_engine.storage.resilient import ResilientStorage

__all__ = [
    "SERVER_TIMESTAMP",
    "DocumentSnapshot",
    "InMemoryStorage",
    "MutationKind",
    "Precondition",
    "PreconditionFailedError",
    "ResilientStorage",
    "ServerTimestamp",
    "StorageCommitError",
    "StorageError",
    "StoragePort",
    "StorageUnavailableError",
    "WriteOperation",
]
