"""
Entidad Event: un evento hackathon tal como vive en Airtable.

El id es el record id de Airtable: es la clave de union estable en todo el
sistema (espejo, cache, asistentes).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from portal.shared.constants.portal_constants import TriageStatus


@dataclass
class Event:
    """Evento hackathon (forma interna, ya traducida desde Airtable)."""

    id: str
    event_name: Optional[str] = None
    email: Optional[str] = None  # email del organizador (identidad)

    # Punto de contacto
    poc_first_name: Optional[str] = None
    poc_last_name: Optional[str] = None
    poc_preferred_name: Optional[str] = None
    poc_slack_id: Optional[str] = None
    poc_dob: Optional[str] = None
    poc_age: Optional[int] = None  # calculado en Airtable desde poc_dob

    # Ubicacion
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
    triage_status: TriageStatus = TriageStatus.PENDING
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    registration_deadline: Optional[str] = None
    notes: Optional[str] = None
    has_confirmed_venue: bool = False

    # Flags consumidos por la automatizacion de emails (fuera de este servicio)
    action_trigger_approval_email: Optional[str] = None
    action_trigger_rejection_email: Optional[str] = None
    action_trigger_hold_email: Optional[str] = None
    action_trigger_ask_email: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return self.event_name

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["triage_status"] = self.triage_status.value
        return data


@dataclass
class EventUpdate:
    """
    Campos editables de un evento desde el portal.

    event_name y poc_age son campos calculados en Airtable: no se escriben.
    Un atributo en None significa "no tocar".
    """

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
    estimated_attendee_count: Optional[int] = None
    project_url: Optional[str] = None
    project_description: Optional[str] = None
    triage_status: Optional[TriageStatus] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        # Un valor fuera del enum lanza ValueError antes de llegar a Airtable
        if self.triage_status is not None:
            self.triage_status = TriageStatus(self.triage_status)

    def changed_fields(self) -> Dict[str, Any]:
        """Retorna solo los campos con valor (los que hay que enviar)."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }
