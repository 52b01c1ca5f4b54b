"""In-memory Storage Port.

Pattern: single asyncio lock around each commit, every precondition checked
before any write is applied, per-document version bumped on every write.

Good for: tests, local development, single-process deployments.
NOT for: multi-process production (use a store with native transactions).
"""
import asyncio
import copy
from datetime import datetime, UTC
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from appointment_engine.storage.base import (
    DocumentSnapshot,
    MutationKind,
    PreconditionFailedError,
    ServerTimestamp,
    StorageCommitError,
    StoragePort,
    WriteOperation,
)


def _resolve_timestamps(value: Any, now: datetime) -> Any:
    """Replace server timestamp sentinels with the commit time."""
    if isinstance(value, ServerTimestamp):
        return now
    if isinstance(value, dict):
        return {k: _resolve_timestamps(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_timestamps(v, now) for v in value]
    return value


class InMemoryStorage(StoragePort):
    """Dictionary-backed document store with atomic compare-and-set batches."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        # {path: (data, version)}
        self._documents: Dict[str, Tuple[Dict[str, Any], int]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.commit_count = 0

    def seed(self, path: str, data: Dict[str, Any]) -> None:
        """Write a document directly, outside any batch."""
        _, version = self._documents.get(path, ({}, 0))
        self._documents[path] = (copy.deepcopy(data), version + 1)

    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        entry = self._documents.get(path)
        if entry is None:
            return None

        data, version = entry
        return DocumentSnapshot(path=path, data=copy.deepcopy(data), version=version)

    async def run_atomic_batch(self, operations: Sequence[WriteOperation]) -> None:
        if not operations:
            raise ValueError("Atomic batch requires at least one operation")

        async with self._lock:
            now = self._clock()
            # Stage against a view that includes earlier writes of the same batch
            staged: Dict[str, Optional[Tuple[Dict[str, Any], int]]] = {}

            for op in operations:
                current = staged[op.path] if op.path in staged else self._documents.get(op.path)
                self._check_precondition(op, current)

                payload = _resolve_timestamps(copy.deepcopy(op.payload), now)
                version = current[1] if current else 0

                if op.kind == MutationKind.CREATE:
                    if current is not None:
                        raise StorageCommitError(f"Document already exists: {op.path}")
                    staged[op.path] = (payload, version + 1)
                elif op.kind == MutationKind.SET:
                    staged[op.path] = (payload, version + 1)
                elif op.kind == MutationKind.UPDATE:
                    if current is None:
                        raise StorageCommitError(f"No document to update: {op.path}")
                    merged = {**current[0], **payload}
                    staged[op.path] = (merged, version + 1)
                else:
                    raise StorageCommitError(f"Unsupported mutation kind: {op.kind}")

            # Nothing above raised: apply everything
            for path, entry in staged.items():
                self._documents[path] = entry
            self.commit_count += 1

    @staticmethod
    def _check_precondition(
        op: WriteOperation,
        current: Optional[Tuple[Dict[str, Any], int]]
    ) -> None:
        precondition = op.precondition
        if precondition is None:
            return

        if precondition.exists is True and current is None:
            raise PreconditionFailedError(f"Document does not exist: {op.path}")
        if precondition.exists is False and current is not None:
            raise PreconditionFailedError(f"Document already exists: {op.path}")
        if precondition.version is not None:
            current_version = current[1] if current else 0
            if current_version != precondition.version:
                raise PreconditionFailedError(
                    f"Document changed since it was read: {op.path}"
                )
