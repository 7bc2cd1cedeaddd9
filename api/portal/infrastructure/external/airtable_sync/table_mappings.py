"""
Mapeos Airtable -> dominio por tabla.

Aquí vive la traducción del vocabulario de Airtable (snake_case, más algunos
nombres heredados como "action - trigger_approval_email") a los atributos de
las entidades del dominio.

Las funciones map_*_record son puras: reciben un AirtableRecord y devuelven
la entidad con valores por defecto para los fields ausentes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable

from portal.domain.entities import Admin, Attendee, Event, EventUpdate, Venue
from portal.shared.constants.portal_constants import normalize_triage_status, normalize_user_status

from .types import AirtableRecord, FieldMapping, first_link, sanitize_string, to_bool, to_float, to_int


EVENT_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("event_name", "event_name", sanitize_string),  # campo calculado
    FieldMapping("email", "email", sanitize_string),
    FieldMapping("poc_first_name", "poc_first_name", sanitize_string, writable=True),
    FieldMapping("poc_last_name", "poc_last_name", sanitize_string, writable=True),
    FieldMapping("poc_preferred_name", "poc_preferred_name", sanitize_string, writable=True),
    FieldMapping("poc_slack_id", "poc_slack_id", sanitize_string, writable=True),
    FieldMapping("poc_dob", "poc_dob", sanitize_string),
    FieldMapping("poc_age", "poc_age", to_int),  # calculado desde poc_dob
    FieldMapping("location", "location", sanitize_string, writable=True),
    FieldMapping("slug", "slug", sanitize_string),
    FieldMapping("street_address", "street_address", sanitize_string, writable=True),
    FieldMapping("street_address_2", "street_address_2", sanitize_string, writable=True),
    FieldMapping("city", "city", sanitize_string, writable=True),
    FieldMapping("state", "state", sanitize_string, writable=True),
    FieldMapping("country", "country", sanitize_string, writable=True),
    FieldMapping("zipcode", "zipcode", sanitize_string, writable=True),
    FieldMapping("lat", "lat", to_float),
    FieldMapping("long", "long", to_float),
    FieldMapping("event_format", "event_format", sanitize_string, writable=True),
    FieldMapping("sub_organizers", "sub_organizers", sanitize_string),
    FieldMapping("estimated_attendee_count", "estimated_attendee_count", to_int, writable=True),
    FieldMapping("project_url", "project_url", sanitize_string, writable=True),
    FieldMapping("project_description", "project_description", sanitize_string, writable=True),
    FieldMapping("triage_status", "triage_status", normalize_triage_status, writable=True),
    FieldMapping("start_date", "start_date", sanitize_string),
    FieldMapping("end_date", "end_date", sanitize_string),
    FieldMapping("registration_deadline", "registration_deadline", sanitize_string),
    FieldMapping("notes", "notes", sanitize_string, writable=True),
    FieldMapping("has_confirmed_venue", "has_confirmed_venue", to_bool, default=False),
    FieldMapping("action - trigger_approval_email", "action_trigger_approval_email", sanitize_string),
    FieldMapping("action - trigger_rejection_email", "action_trigger_rejection_email", sanitize_string),
    FieldMapping("action - trigger_hold_email", "action_trigger_hold_email", sanitize_string),
    FieldMapping("action - trigger_ask_email", "action_trigger_ask_email", sanitize_string),
)

ADMIN_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("email", "email", sanitize_string),
    FieldMapping("first_name", "first_name", sanitize_string),
    FieldMapping("last_name", "last_name", sanitize_string),
    FieldMapping("user_status", "user_status", normalize_user_status),
)

ATTENDEE_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("email", "email", sanitize_string),
    FieldMapping("preferred_name", "preferred_name", sanitize_string),
    FieldMapping("first_name", "first_name", sanitize_string),
    FieldMapping("last_name", "last_name", sanitize_string),
    FieldMapping("dob", "dob", sanitize_string),
    FieldMapping("phone", "phone", sanitize_string),
    FieldMapping("event", "event", first_link),
    FieldMapping("deleted_in_cockpit", "deleted_in_cockpit", to_bool, default=False),
    FieldMapping("event_volunteer", "event_volunteer", to_bool, default=False),
    FieldMapping("shirt_size", "shirt_size", sanitize_string),
    FieldMapping("additional_accommodations", "additional_accommodations", sanitize_string),
    FieldMapping("dietary_restrictions", "dietary_restrictions", sanitize_string),
    FieldMapping("emergency_contact_1_phone", "emergency_contact_1_phone", sanitize_string),
    FieldMapping("emergency_contact_1_name", "emergency_contact_1_name", sanitize_string),
    FieldMapping("checkin_completed", "checkin_completed", to_bool, default=False),
    FieldMapping("scanned_in", "scanned_in", to_bool, default=False),
)

VENUE_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("venue_id", "venue_id", sanitize_string),
    FieldMapping("event_name", "event_name", sanitize_string),
    FieldMapping("venue_name", "venue_name", sanitize_string),
    FieldMapping("address_1", "address_1", sanitize_string),
    FieldMapping("address_2", "address_2", sanitize_string),
    FieldMapping("city", "city", sanitize_string),
    FieldMapping("state", "state", sanitize_string),
    FieldMapping("country", "country", sanitize_string),
    FieldMapping("zip_code", "zip_code", sanitize_string),
    FieldMapping("venue_contact_name", "venue_contact_name", sanitize_string),
    FieldMapping("venue_contact_email", "venue_contact_email", sanitize_string),
)


def _apply_mappings(record: AirtableRecord, mappings: Iterable[FieldMapping]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for m in mappings:
        if m.airtable_field not in record.fields:
            if m.transform is not None and m.default is None:
                # Deja que el transform decida el default (p.ej. triage -> pending)
                values[m.attribute] = m.transform(None)
            else:
                values[m.attribute] = m.default
            continue
        raw = record.fields.get(m.airtable_field)
        values[m.attribute] = m.transform(raw) if m.transform else raw
    return values


def map_event_record(record: AirtableRecord) -> Event:
    return Event(id=record.record_id, **_apply_mappings(record, EVENT_FIELDS))


def map_admin_record(record: AirtableRecord) -> Admin:
    return Admin(id=record.record_id, **_apply_mappings(record, ADMIN_FIELDS))


def map_attendee_record(record: AirtableRecord) -> Attendee:
    return Attendee(id=record.record_id, **_apply_mappings(record, ATTENDEE_FIELDS))


def map_venue_record(record: AirtableRecord) -> Venue:
    return Venue(id=record.record_id, **_apply_mappings(record, VENUE_FIELDS))


_EVENT_WRITABLE = {m.attribute: m.airtable_field for m in EVENT_FIELDS if m.writable}


def event_update_to_fields(update: EventUpdate) -> Dict[str, Any]:
    """
    Traduce un EventUpdate a los fields de Airtable a enviar en el PATCH.

    Solo se envían atributos con valor y marcados como escribibles.
    """
    return {
        _EVENT_WRITABLE[attr]: value.value if isinstance(value, Enum) else value
        for attr, value in update.changed_fields().items()
        if attr in _EVENT_WRITABLE
    }
