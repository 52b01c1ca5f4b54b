"""Storage Port contract.

Any document store can back the engine as long as it offers:
- keyed document reads returning a versioned snapshot
- all-or-nothing multi-document batches
- per-operation preconditions (exists / not exists / version unchanged)
- a server-side timestamp sentinel resolved at commit time
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from appointment_engine.errors import (  # noqa: F401
    PreconditionFailedError,
    StorageCommitError,
    StorageError,
    StorageUnavailableError,
)


class MutationKind(str, Enum):
    """Write operation kinds."""
    CREATE = "create"  # Fails if the document exists
    SET = "set"  # Overwrites (or creates) the whole document
    UPDATE = "update"  # Merges fields; fails if the document is missing


class ServerTimestamp:
    """Placeholder replaced by the store's clock when a write commits."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = ServerTimestamp()


@dataclass(frozen=True)
class Precondition:
    """Commit-time guard evaluated atomically with the batch."""
    exists: Optional[bool] = None
    version: Optional[int] = None


@dataclass(frozen=True)
class WriteOperation:
    path: str
    kind: MutationKind
    payload: Dict[str, Any] = field(default_factory=dict)
    precondition: Optional[Precondition] = None

    @property
    def collection(self) -> str:
        """Top-level collection the operation targets."""
        return self.path.split("/", 1)[0]


@dataclass(frozen=True)
class DocumentSnapshot:
    path: str
    data: Dict[str, Any]
    version: int

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class StoragePort(ABC):
    """Injected document store used by every coordinator."""

    @abstractmethod
    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        """Return the document at path, or None if it does not exist."""

    @abstractmethod
    async def run_atomic_batch(self, operations: Sequence[WriteOperation]) -> None:
        """
        Commit all operations or none of them.

        Raises:
            StorageCommitError: If any operation or precondition is rejected
            StorageUnavailableError: If the store cannot be reached
        """

    async def update_document(
        self,
        path: str,
        fields: Dict[str, Any],
        precondition: Optional[Precondition] = None
    ) -> None:
        """Merge fields into an existing document."""
        await self.run_atomic_batch([
            WriteOperation(path, MutationKind.UPDATE, fields, precondition)
        ])

    def server_timestamp(self) -> ServerTimestamp:
        return SERVER_TIMESTAMP
