"""
Entidad Venue. Se une a Event por nombre de evento (no por id).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Venue:
    id: str
    venue_id: Optional[str] = None
    event_name: Optional[str] = None
    venue_name: Optional[str] = None
    address_1: Optional[str] = None
    address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip_code: Optional[str] = None
    venue_contact_name: Optional[str] = None
    venue_contact_email: Optional[str] = None
