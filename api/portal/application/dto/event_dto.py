"""
DTOs de eventos y asistentes.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.shared.constants.portal_constants import TriageStatus


class EventResponseDTO(BaseModel):
    """Evento tal como lo ve el portal (leído de Airtable)."""

    id: str
    event_name: Optional[str] = None
    email: Optional[str] = None
    poc_first_name: Optional[str] = None
    poc_last_name: Optional[str] = None
    poc_preferred_name: Optional[str] = None
    poc_slack_id: Optional[str] = None
    poc_dob: Optional[str] = None
    poc_age: Optional[int] = None
    location: Optional[str] = None
    slug: Optional[str] = None
    street_address: Optional[str] = None
    street_address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zipcode: Optional[str] = None
    lat: Optional[float] = None
    long: Optional[float] = None
    event_format: Optional[str] = None
    sub_organizers: Optional[str] = None
    estimated_attendee_count: Optional[int] = None
    project_url: Optional[str] = None
    project_description: Optional[str] = None
    triage_status: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    registration_deadline: Optional[str] = None
    notes: Optional[str] = None
    has_confirmed_venue: bool = False


class EventUpdateDTO(BaseModel):
    """
    Campos editables de un evento. Los ausentes no se tocan.

    event_name y poc_age son calculados en Airtable y no se aceptan.
    """

    model_config = ConfigDict(extra="forbid")

    poc_first_name: Optional[str] = None
    poc_last_name: Optional[str] = None
    poc_preferred_name: Optional[str] = None
    poc_slack_id: Optional[str] = None
    location: Optional[str] = None
    street_address: Optional[str] = None
    street_address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zipcode: Optional[str] = None
    event_format: Optional[str] = None
    estimated_attendee_count: Optional[int] = Field(None, ge=0)
    project_url: Optional[str] = None
    project_description: Optional[str] = None
    triage_status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("triage_status")
    @classmethod
    def triage_status_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        allowed = {s.value for s in TriageStatus}
        if v not in allowed:
            raise ValueError(f"triage_status debe ser uno de: {', '.join(sorted(allowed))}")
        return v


class AttendeeResponseDTO(BaseModel):
    """Asistente leído del espejo relacional."""

    airtable_id: str
    email: str
    preferred_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[date] = None
    phone: Optional[str] = None
    event_airtable_id: str
    deleted_in_cockpit: bool = False
    event_volunteer: bool = False
    shirt_size: Optional[str] = None
    additional_accommodations: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    emergency_contact_1_phone: Optional[str] = None
    emergency_contact_1_name: Optional[str] = None
    checkin_completed: bool = False
    scanned_in: bool = False
