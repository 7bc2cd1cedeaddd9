"""
Configuración del sync (entidad de dominio -> tabla espejo).

Por cada tipo de entidad se define aquí, una sola vez:
- la operación del lector que trae la colección completa
- la tabla/modelo destino y la columna de conflicto (airtable_id)
- la traducción entidad -> fila (saneamiento, enums, fechas)
- la validación previa al upsert (motivo de skip o None)
- el tamaño de batch

Este módulo no realiza I/O: solo define configuración.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from portal.domain.entities import Admin, Attendee, Event, Venue
from portal.infrastructure.database.models import (
    AdminModel,
    AttendeeModel,
    EventModel,
    VenueModel,
)
from portal.shared.constants.portal_constants import SyncEntity

from .types import parse_date, sanitize_string, to_float, to_int

Row = Dict[str, Any]

# Columnas que el espejo gestiona por su cuenta (no vienen de Airtable)
_UNMANAGED_COLUMNS = frozenset({"id", "created_at"})

SYNCED_AT_COLUMN = "synced_at"


@dataclass(frozen=True)
class EntitySyncSpec:
    """
    Config de un paso del pipeline.

    columns / update_columns se calculan en la construcción a partir del
    modelo ORM: el upsert sobrescribe todas las columnas espejadas salvo la
    clave de conflicto.
    """

    entity: SyncEntity
    model: Any
    fetch_operation: str
    to_row: Callable[[Any], Row]
    validate: Callable[[Any], Optional[str]]
    batch_size: int
    conflict_column: str = "airtable_id"
    # (columna de la fila, tabla padre) cuando la fila referencia otra tabla espejo
    parent_reference: Optional[tuple[str, str]] = None
    columns: tuple[str, ...] = field(init=False)
    update_columns: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size inválido para {self.entity.value}: {self.batch_size}")
        columns = tuple(
            c.name for c in self.model.__table__.columns if c.name not in _UNMANAGED_COLUMNS
        )
        object.__setattr__(self, "columns", columns)
        object.__setattr__(
            self,
            "update_columns",
            tuple(c for c in columns if c != self.conflict_column),
        )

    @property
    def table_name(self) -> str:
        return self.model.__tablename__


# ---------------------------------------------------------------------------
# Entidad -> fila espejo
# ---------------------------------------------------------------------------

def event_to_row(event: Event) -> Row:
    return {
        "airtable_id": event.id,
        "event_name": sanitize_string(event.event_name),
        "poc_first_name": sanitize_string(event.poc_first_name),
        "poc_last_name": sanitize_string(event.poc_last_name),
        "poc_preferred_name": sanitize_string(event.poc_preferred_name),
        "poc_slack_id": sanitize_string(event.poc_slack_id),
        "poc_dob": parse_date(event.poc_dob),
        "poc_age": to_int(event.poc_age),
        "email": sanitize_string(event.email),
        "location": sanitize_string(event.location),
        "slug": sanitize_string(event.slug),
        "street_address": sanitize_string(event.street_address),
        "street_address_2": sanitize_string(event.street_address_2),
        "city": sanitize_string(event.city),
        "state": sanitize_string(event.state),
        "country": sanitize_string(event.country),
        "zipcode": sanitize_string(event.zipcode),
        "event_format": sanitize_string(event.event_format),
        "sub_organizers": sanitize_string(event.sub_organizers),
        "estimated_attendee_count": to_int(event.estimated_attendee_count),
        "project_url": sanitize_string(event.project_url),
        "project_description": sanitize_string(event.project_description),
        "lat": to_float(event.lat),
        "long": to_float(event.long),
        "triage_status": event.triage_status.value,
        "start_date": parse_date(event.start_date),
        "end_date": parse_date(event.end_date),
        "registration_deadline": parse_date(event.registration_deadline),
        "notes": sanitize_string(event.notes),
        "action_trigger_approval_email": sanitize_string(event.action_trigger_approval_email),
        "action_trigger_rejection_email": sanitize_string(event.action_trigger_rejection_email),
        "action_trigger_hold_email": sanitize_string(event.action_trigger_hold_email),
        "action_trigger_ask_email": sanitize_string(event.action_trigger_ask_email),
        "has_confirmed_venue": bool(event.has_confirmed_venue),
    }


def admin_to_row(admin: Admin) -> Row:
    return {
        "airtable_id": admin.mirror_id,
        "email": sanitize_string(admin.email),
        "first_name": sanitize_string(admin.first_name),
        "last_name": sanitize_string(admin.last_name),
        "user_status": admin.user_status.value,
    }


def attendee_to_row(attendee: Attendee) -> Row:
    return {
        "airtable_id": attendee.id,
        "email": sanitize_string(attendee.email),
        "preferred_name": sanitize_string(attendee.preferred_name),
        "first_name": sanitize_string(attendee.first_name),
        "last_name": sanitize_string(attendee.last_name),
        "dob": parse_date(attendee.dob),
        "phone": sanitize_string(attendee.phone),
        "event_airtable_id": sanitize_string(attendee.event),
        "deleted_in_cockpit": bool(attendee.deleted_in_cockpit),
        "event_volunteer": bool(attendee.event_volunteer),
        "shirt_size": sanitize_string(attendee.shirt_size),
        "additional_accommodations": sanitize_string(attendee.additional_accommodations),
        "dietary_restrictions": sanitize_string(attendee.dietary_restrictions),
        "emergency_contact_1_phone": sanitize_string(attendee.emergency_contact_1_phone),
        "emergency_contact_1_name": sanitize_string(attendee.emergency_contact_1_name),
        "checkin_completed": bool(attendee.checkin_completed),
        "scanned_in": bool(attendee.scanned_in),
    }


def venue_to_row(venue: Venue) -> Row:
    return {
        "airtable_id": venue.id,
        "venue_id": sanitize_string(venue.venue_id),
        "event_name": sanitize_string(venue.event_name),
        "venue_name": sanitize_string(venue.venue_name),
        "address_1": sanitize_string(venue.address_1),
        "address_2": sanitize_string(venue.address_2),
        "city": sanitize_string(venue.city),
        "state": sanitize_string(venue.state),
        "country": sanitize_string(venue.country),
        "zip_code": sanitize_string(venue.zip_code),
        "venue_contact_name": sanitize_string(venue.venue_contact_name),
        "venue_contact_email": sanitize_string(venue.venue_contact_email),
    }


# ---------------------------------------------------------------------------
# Validación (motivo de skip, o None si la entidad se espeja)
# ---------------------------------------------------------------------------

def validate_event(event: Event) -> Optional[str]:
    if not sanitize_string(event.email):
        return "missing organizer email"
    return None


def validate_admin(admin: Admin) -> Optional[str]:
    if not sanitize_string(admin.email):
        return "missing email"
    return None


def validate_attendee(attendee: Attendee) -> Optional[str]:
    if not sanitize_string(attendee.email):
        return "missing email"
    if not sanitize_string(attendee.event):
        return "missing event reference"
    return None


def validate_venue(venue: Venue) -> Optional[str]:
    if not sanitize_string(venue.id):
        return "missing record id"
    return None


def build_sync_specs(batch_size: int = 50, admin_batch_size: int = 20) -> Dict[SyncEntity, EntitySyncSpec]:
    """Config de los cuatro pasos del pipeline."""
    return {
        SyncEntity.VENUES: EntitySyncSpec(
            entity=SyncEntity.VENUES,
            model=VenueModel,
            fetch_operation="fetch_all_venues",
            to_row=venue_to_row,
            validate=validate_venue,
            batch_size=batch_size,
        ),
        SyncEntity.EVENTS: EntitySyncSpec(
            entity=SyncEntity.EVENTS,
            model=EventModel,
            fetch_operation="fetch_all_events",
            to_row=event_to_row,
            validate=validate_event,
            batch_size=batch_size,
        ),
        SyncEntity.ADMINS: EntitySyncSpec(
            entity=SyncEntity.ADMINS,
            model=AdminModel,
            fetch_operation="fetch_all_admins",
            to_row=admin_to_row,
            validate=validate_admin,
            batch_size=admin_batch_size,
        ),
        SyncEntity.ATTENDEES: EntitySyncSpec(
            entity=SyncEntity.ATTENDEES,
            model=AttendeeModel,
            fetch_operation="fetch_all_attendees",
            to_row=attendee_to_row,
            validate=validate_attendee,
            batch_size=batch_size,
            parent_reference=("event_airtable_id", "events"),
        ),
    }
