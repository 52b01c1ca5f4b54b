"""Configuration for the scheduling engine.

Business defaults live here as module constants; deployment knobs are read
from the environment (a local .env file is honoured).
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


# Default weekly template applied to newly registered businesses
DEFAULT_WORKING_HOURS = {
    "sunday": {"open": "09:00", "close": "17:00", "isOpen": True},
    "monday": {"open": "09:00", "close": "17:00", "isOpen": True},
    "tuesday": {"open": "09:00", "close": "17:00", "isOpen": True},
    "wednesday": {"open": "09:00", "close": "17:00", "isOpen": True},
    "thursday": {"open": "09:00", "close": "17:00", "isOpen": True},
    "friday": {"open": "09:00", "close": "14:00", "isOpen": True},
    "saturday": {"open": "00:00", "close": "00:00", "isOpen": False},
}

MORNING_CUTOFF = 12  # 12:00 (noon)


@dataclass(frozen=True)
class Settings:
    slot_granularity_minutes: int = 15

    appointments_collection: str = "appointments"
    businesses_collection: str = "businesses"
    slots_subcollection: str = "availableSlots"

    # Resilience tuning (reads only; commits are never retried)
    storage_read_attempts: int = 3
    circuit_failure_threshold: int = 5
    circuit_timeout_seconds: int = 60

    log_level: str = "INFO"


def _positive_int(name: str, default: str) -> int:
    value = int(os.getenv(name, default))
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1")
    return value


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        dotenv_path: Optional .env file to load first (tests override this)

    Returns:
        Settings instance

    Raises:
        RuntimeError: If a numeric setting is out of range
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)

    return Settings(
        slot_granularity_minutes=_positive_int("SLOT_GRANULARITY_MINUTES", "15"),
        appointments_collection=os.getenv("APPOINTMENTS_COLLECTION", "appointments"),
        businesses_collection=os.getenv("BUSINESSES_COLLECTION", "businesses"),
        slots_subcollection=os.getenv("SLOTS_SUBCOLLECTION", "availableSlots"),
        storage_read_attempts=_positive_int("STORAGE_READ_ATTEMPTS", "3"),
        circuit_failure_threshold=_positive_int("CIRCUIT_FAILURE_THRESHOLD", "5"),
        circuit_timeout_seconds=_positive_int("CIRCUIT_TIMEOUT_SECONDS", "60"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
