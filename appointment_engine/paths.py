"""Document path scheme.

appointments/{appointmentId}
businesses/{businessId}
businesses/{businessId}/availableSlots/{date}
"""
from typing import Optional

from appointment_engine.config import Settings


class DocumentPaths:
    """Builds storage paths from configured collection names."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def appointment(self, appointment_id: str) -> str:
        return f"{self.settings.appointments_collection}/{appointment_id}"

    def business(self, business_id: str) -> str:
        return f"{self.settings.businesses_collection}/{business_id}"

    def slot_day(self, business_id: str, date: str) -> str:
        return f"{self.business(business_id)}/{self.settings.slots_subcollection}/{date}"
