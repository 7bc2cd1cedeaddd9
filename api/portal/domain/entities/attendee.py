"""
Entidad Attendee: inscrito ligado a exactamente un evento.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Attendee:
    id: str
    email: Optional[str] = None
    preferred_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[str] = None
    phone: Optional[str] = None
    event: Optional[str] = None  # record id de Airtable del evento enlazado
    deleted_in_cockpit: bool = False
    event_volunteer: bool = False
    shirt_size: Optional[str] = None
    additional_accommodations: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    emergency_contact_1_phone: Optional[str] = None
    emergency_contact_1_name: Optional[str] = None
    checkin_completed: bool = False
    scanned_in: bool = False
