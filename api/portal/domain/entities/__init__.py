"""
Entidades del dominio.
"""
from portal.domain.entities.event import Event, EventUpdate
from portal.domain.entities.admin import Admin
from portal.domain.entities.attendee import Attendee
from portal.domain.entities.venue import Venue
from portal.domain.entities.sync import SyncMetadataRecord, SyncResult, StepResult

__all__ = [
    "Event",
    "EventUpdate",
    "Admin",
    "Attendee",
    "Venue",
    "SyncMetadataRecord",
    "SyncResult",
    "StepResult",
]
