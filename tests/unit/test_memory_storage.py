"""Tests for the in-memory Storage Port."""
import asyncio
from datetime import datetime, UTC

import pytest

from appointment_engine.storage import (
    SERVER_TIMESTAMP,
    InMemoryStorage,
    MutationKind,
    Precondition,
    PreconditionFailedError,
    StorageCommitError,
    WriteOperation,
)

NOW = datetime(2025, 1, 20, 12, 0, tzinfo=UTC)


class TestReads:

    @pytest.mark.asyncio
    async def test_missing_document(self, storage):
        assert await storage.get_document("appointments/nope") is None

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self, storage):
        storage.seed("appointments/a1", {"slotIndexes": [0, 1]})

        snapshot = await storage.get_document("appointments/a1")
        snapshot.data["slotIndexes"].append(2)

        again = await storage.get_document("appointments/a1")
        assert again.data["slotIndexes"] == [0, 1]
        assert again.id == "a1"

    @pytest.mark.asyncio
    async def test_seed_bumps_version(self, storage):
        storage.seed("appointments/a1", {"status": "pending"})
        storage.seed("appointments/a1", {"status": "confirmed"})

        snapshot = await storage.get_document("appointments/a1")
        assert snapshot.version == 2


class TestAtomicBatch:
    """Test all-or-nothing commits."""

    @pytest.mark.asyncio
    async def test_create_update_and_set(self, storage):
        storage.seed("businesses/b1/availableSlots/2025-01-21", {"slots": []})

        await storage.run_atomic_batch([
            WriteOperation("appointments/a1", MutationKind.CREATE, {"status": "pending"}),
            WriteOperation(
                "businesses/b1/availableSlots/2025-01-21",
                MutationKind.UPDATE,
                {"slotDuration": 15},
            ),
            WriteOperation("businesses/b1", MutationKind.SET, {"name": "Salon"}),
        ])

        slot_day = await storage.get_document("businesses/b1/availableSlots/2025-01-21")
        assert slot_day.data == {"slots": [], "slotDuration": 15}
        assert slot_day.version == 2
        assert (await storage.get_document("appointments/a1")).version == 1
        assert (await storage.get_document("businesses/b1")).data == {"name": "Salon"}
        assert storage.commit_count == 1

    @pytest.mark.asyncio
    async def test_resolves_server_timestamps(self, storage):
        await storage.run_atomic_batch([
            WriteOperation(
                "appointments/a1",
                MutationKind.CREATE,
                {"createdAt": SERVER_TIMESTAMP, "history": [{"at": SERVER_TIMESTAMP}]},
            ),
        ])

        snapshot = await storage.get_document("appointments/a1")
        assert snapshot.data == {"createdAt": NOW, "history": [{"at": NOW}]}

    @pytest.mark.asyncio
    async def test_failed_precondition_applies_nothing(self, storage):
        storage.seed("businesses/b1/availableSlots/2025-01-21", {"slots": []})

        with pytest.raises(PreconditionFailedError):
            await storage.run_atomic_batch([
                WriteOperation("appointments/a1", MutationKind.CREATE, {"status": "pending"}),
                WriteOperation(
                    "businesses/b1/availableSlots/2025-01-21",
                    MutationKind.UPDATE,
                    {"slots": [{"time": "09:00", "available": False}]},
                    Precondition(version=99),
                ),
            ])

        assert await storage.get_document("appointments/a1") is None
        slot_day = await storage.get_document("businesses/b1/availableSlots/2025-01-21")
        assert slot_day.data == {"slots": []}
        assert storage.commit_count == 0

    @pytest.mark.asyncio
    async def test_create_existing_fails(self, storage):
        storage.seed("appointments/a1", {"status": "pending"})

        with pytest.raises(StorageCommitError, match="already exists"):
            await storage.run_atomic_batch([
                WriteOperation("appointments/a1", MutationKind.CREATE, {"status": "confirmed"}),
            ])

    @pytest.mark.asyncio
    async def test_update_missing_fails(self, storage):
        with pytest.raises(StorageCommitError, match="No document to update"):
            await storage.run_atomic_batch([
                WriteOperation("appointments/a1", MutationKind.UPDATE, {"status": "confirmed"}),
            ])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("precondition,seeded", [
        (Precondition(exists=True), False),
        (Precondition(exists=False), True),
    ])
    async def test_exists_preconditions(self, storage, precondition, seeded):
        if seeded:
            storage.seed("appointments/a1", {"status": "pending"})

        with pytest.raises(PreconditionFailedError):
            await storage.run_atomic_batch([
                WriteOperation("appointments/a1", MutationKind.SET, {}, precondition),
            ])

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, storage):
        with pytest.raises(ValueError):
            await storage.run_atomic_batch([])

    @pytest.mark.asyncio
    async def test_concurrent_versioned_writers_one_wins(self):
        storage = InMemoryStorage()
        storage.seed("businesses/b1/availableSlots/2025-01-21", {"slots": []})
        snapshot = await storage.get_document("businesses/b1/availableSlots/2025-01-21")

        async def write(owner):
            await storage.run_atomic_batch([
                WriteOperation(
                    snapshot.path,
                    MutationKind.UPDATE,
                    {"owner": owner},
                    Precondition(version=snapshot.version),
                ),
            ])
            return owner

        results = await asyncio.gather(write("a"), write("b"), return_exceptions=True)

        winners = [r for r in results if isinstance(r, str)]
        losers = [r for r in results if isinstance(r, PreconditionFailedError)]
        assert len(winners) == 1
        assert len(losers) == 1


@pytest.mark.asyncio
async def test_update_document_merges_fields(storage):
    storage.seed("appointments/a1", {"status": "pending", "customerId": "c1"})

    await storage.update_document(
        "appointments/a1",
        {"status": "confirmed", "updatedAt": storage.server_timestamp()},
        Precondition(version=1),
    )

    snapshot = await storage.get_document("appointments/a1")
    assert snapshot.data == {"status": "confirmed", "customerId": "c1", "updatedAt": NOW}
