"""Shared test fixtures."""
from datetime import datetime, UTC

import pytest

from appointment_engine.config import Settings
from appointment_engine.notifications import InMemoryOutbox
from appointment_engine.paths import DocumentPaths
from appointment_engine.service import SchedulingService
from appointment_engine.storage.memory import InMemoryStorage

BUSINESS_ID = "test-business-id"
CUSTOMER_ID = "test-user-id"
SERVICE_ID = "test-service-id"
DATE = "2025-01-21"


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def paths(settings) -> DocumentPaths:
    return DocumentPaths(settings)


@pytest.fixture
def storage() -> InMemoryStorage:
    """Empty in-memory store with a fixed clock."""
    return InMemoryStorage(clock=lambda: datetime(2025, 1, 20, 12, 0, tzinfo=UTC))


@pytest.fixture
def make_slot_day(storage, paths):
    """Seed a slot grid; `taken` lists unavailable indexes."""
    def _create(
        business_id: str = BUSINESS_ID,
        date: str = DATE,
        times=("09:00", "09:15", "09:30", "09:45"),
        taken=(),
        slot_duration=None,
    ):
        data = {
            "slots": [
                {"time": t, "available": i not in taken}
                for i, t in enumerate(times)
            ]
        }
        if slot_duration is not None:
            data["slotDuration"] = slot_duration
        storage.seed(paths.slot_day(business_id, date), data)
        return data
    return _create


@pytest.fixture
def make_appointment(storage, paths):
    """Seed an appointment document."""
    def _create(
        appointment_id: str = "appointment789",
        business_id: str = BUSINESS_ID,
        customer_id: str = "customer456",
        status: str = "pending",
        date: str = DATE,
        slot_indexes=(0, 1),
        **extra,
    ):
        data = {
            "businessId": business_id,
            "customerId": customer_id,
            "status": status,
            "date": date,
            "startTime": datetime(2025, 1, 21, 13, 0),
            "slotIndexes": list(slot_indexes),
            "serviceName": "Haircut",
            "servicePrice": 100,
            **extra,
        }
        storage.seed(paths.appointment(appointment_id), data)
        return data
    return _create


@pytest.fixture
def outbox() -> InMemoryOutbox:
    return InMemoryOutbox()


@pytest.fixture
def service(storage, outbox, settings) -> SchedulingService:
    return SchedulingService(storage, notifier=outbox, settings=settings)
