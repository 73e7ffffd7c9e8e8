"""SQLAlchemy models."""

from __future__ import annotations

from ridesafe.models.emergency_contact import EmergencyContact
from ridesafe.models.sos_event import SosEvent, SosStatus
from ridesafe.models.user import User

__all__ = [
    "User",
    "EmergencyContact",
    "SosEvent",
    "SosStatus",
]
