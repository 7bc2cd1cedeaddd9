"""
Modelos de base de datos (ORM) del espejo relacional.

Cada tabla espejada tiene un airtable_id único (clave de upsert) y un
synced_at que el motor de sincronización sobrescribe en cada corrida.
"""
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from portal.infrastructure.database.session import Base


class EventModel(Base):
    """Espejo de la tabla events de Airtable."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    airtable_id = Column(String(255), nullable=False, unique=True, index=True)
    event_name = Column(String(500), nullable=True)
    poc_first_name = Column(String(255), nullable=True)
    poc_last_name = Column(String(255), nullable=True)
    poc_preferred_name = Column(String(255), nullable=True)
    poc_slack_id = Column(String(255), nullable=True)
    poc_dob = Column(Date, nullable=True)
    poc_age = Column(Integer, nullable=True)
    email = Column(String(500), nullable=False, index=True)
    location = Column(String(500), nullable=True)
    slug = Column(String(255), nullable=True)
    street_address = Column(String(500), nullable=True)
    street_address_2 = Column(String(500), nullable=True)
    city = Column(String(255), nullable=True)
    state = Column(String(255), nullable=True)
    country = Column(String(255), nullable=True)
    zipcode = Column(String(20), nullable=True)
    event_format = Column(String(32), nullable=True)
    sub_organizers = Column(Text, nullable=True)
    estimated_attendee_count = Column(Integer, nullable=True)
    project_url = Column(Text, nullable=True)
    project_description = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    long = Column(Float, nullable=True)
    triage_status = Column(String(32), nullable=False, default="pending", index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    registration_deadline = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    action_trigger_approval_email = Column(String(500), nullable=True)
    action_trigger_rejection_email = Column(String(500), nullable=True)
    action_trigger_hold_email = Column(String(500), nullable=True)
    action_trigger_ask_email = Column(String(500), nullable=True)
    has_confirmed_venue = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    synced_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<Event(airtable_id={self.airtable_id}, name={self.event_name}, triage={self.triage_status})>"


class AdminModel(Base):
    """Espejo de la tabla admins."""

    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    airtable_id = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(500), nullable=False, unique=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    user_status = Column(String(32), nullable=False, default="inactive", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    synced_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Admin(email={self.email}, status={self.user_status})>"


class AttendeeModel(Base):
    """
    Espejo de la tabla attendees.

    event_airtable_id referencia events.airtable_id: borrar un evento del
    espejo borra sus asistentes.
    """

    __tablename__ = "attendees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    airtable_id = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(500), nullable=False, index=True)
    preferred_name = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    dob = Column(Date, nullable=True)
    phone = Column(String(50), nullable=True)
    event_airtable_id = Column(
        String(255),
        ForeignKey("events.airtable_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    deleted_in_cockpit = Column(Boolean, nullable=False, default=False)
    event_volunteer = Column(Boolean, nullable=False, default=False)
    shirt_size = Column(String(20), nullable=True)
    additional_accommodations = Column(Text, nullable=True)
    dietary_restrictions = Column(Text, nullable=True)
    emergency_contact_1_phone = Column(String(50), nullable=True)
    emergency_contact_1_name = Column(String(255), nullable=True)
    checkin_completed = Column(Boolean, nullable=False, default=False)
    scanned_in = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    synced_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<Attendee(airtable_id={self.airtable_id}, event={self.event_airtable_id})>"


class VenueModel(Base):
    """Espejo de la tabla venues."""

    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    airtable_id = Column(String(255), nullable=False, unique=True, index=True)
    venue_id = Column(String(255), nullable=True)
    event_name = Column(String(500), nullable=True)
    venue_name = Column(String(500), nullable=True)
    address_1 = Column(String(500), nullable=True)
    address_2 = Column(String(500), nullable=True)
    city = Column(String(255), nullable=True)
    state = Column(String(255), nullable=True)
    country = Column(String(255), nullable=True)
    zip_code = Column(String(20), nullable=True)
    venue_contact_name = Column(String(255), nullable=True)
    venue_contact_email = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    synced_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Venue(airtable_id={self.airtable_id}, name={self.venue_name})>"


class SyncMetadataModel(Base):
    """
    Ledger de sincronización: una fila por tipo de entidad con el resultado
    de la última corrida.
    """

    __tablename__ = "sync_metadata"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String(100), nullable=False, unique=True, index=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_sync_status = Column(String(50), nullable=False, default="pending")
    records_synced = Column(Integer, nullable=False, default=0)
    errors_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)
    error_details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<SyncMetadata(table={self.table_name}, status={self.last_sync_status})>"


class SyncRunModel(Base):
    """Historial append-only: una fila por paso por corrida (diagnóstico)."""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String(100), nullable=False, index=True)
    status = Column(String(50), nullable=False)
    records_synced = Column(Integer, nullable=False, default=0)
    errors_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)
    error_details = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<SyncRun(id={self.id}, table={self.table_name}, status={self.status})>"
