"""
Lector tipado de colecciones de Airtable (eventos, admins, asistentes, venues).

- Traduce records de Airtable a entidades del dominio (table_mappings).
- Read-through cache opcional: con cache=None cada llamada va a Airtable.
  El motor de sincronizacion SIEMPRE usa un lector sin cache: su razon de ser
  es refrescar el espejo, servirle datos cacheados le daria staleness sin cota.
- Los errores de transporte se envuelven en SourceReadError (entidad + operacion).
  Un record inexistente en un lookup por id es None, nunca una excepcion.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

from loguru import logger

from portal.domain.entities import Admin, Attendee, Event, EventUpdate, Venue
from portal.infrastructure.cache.cache_service import ALL_EVENTS_CACHE_KEY, CacheService
from portal.shared.exceptions.sync import SourceReadError

from .airtable_client import AirtableClient, build_equals_formula, build_link_contains_formula
from .table_mappings import (
    event_update_to_fields,
    map_admin_record,
    map_attendee_record,
    map_event_record,
    map_venue_record,
)

T = TypeVar("T")

_MISS = object()

_SORT_BY_EVENT_NAME = [{"field": "event_name", "direction": "asc"}]


@dataclass(frozen=True)
class AirtableTables:
    """Nombres de las tablas en la base de Airtable."""

    events: str = "events"
    admins: str = "admins"
    attendees: str = "attendees"
    venues: str = "venues"


class AirtableRecordReader:
    """Lectura (y la unica escritura del portal: update_event) contra Airtable."""

    def __init__(
        self,
        client: AirtableClient,
        *,
        cache: Optional[CacheService] = None,
        tables: Optional[AirtableTables] = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._tables = tables or AirtableTables()

    @property
    def is_cached(self) -> bool:
        return self._cache is not None

    def uncached(self) -> "AirtableRecordReader":
        """Mismo cliente y tablas, sin cache (para el motor de sincronizacion)."""
        return AirtableRecordReader(self._client, cache=None, tables=self._tables)

    async def _call(self, entity: str, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        # El cliente es bloqueante (requests): se ejecuta en un thread
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except Exception as e:
            raise SourceReadError(entity, operation, e) from e

    def _cached(self, key: str) -> Any:
        if self._cache is None:
            return _MISS
        return self._cache.lookup(key, _MISS)

    def _generation(self, key: str) -> Any:
        # Se captura antes de ir a Airtable: si la clave se invalida mientras
        # tanto, el resultado no se cachea
        return self._cache.generation(key) if self._cache is not None else None

    # ------------------------------------------------------------------
    # Eventos
    # ------------------------------------------------------------------

    async def fetch_events_by_organizer(self, organizer_email: str) -> List[Event]:
        """Eventos cuyo email de organizador coincide exactamente, por nombre asc."""
        key = CacheService.events_cache_key(organizer_email)
        cached = self._cached(key)
        if cached is not _MISS:
            logger.debug(f"Cache hit para eventos del organizador: {organizer_email}")
            return cached

        generation = self._generation(key)
        records = await self._call(
            "events",
            "fetch_events_by_organizer",
            self._client.list_records,
            self._tables.events,
            filter_formula=build_equals_formula("email", organizer_email),
            sort=_SORT_BY_EVENT_NAME,
        )
        events = [map_event_record(r) for r in records]
        if self._cache is not None:
            self._cache.cache_events_by_organizer(organizer_email, events, generation)
        return events

    async def fetch_all_events(self) -> List[Event]:
        cached = self._cached(ALL_EVENTS_CACHE_KEY)
        if cached is not _MISS:
            logger.debug("Cache hit para todos los eventos")
            return cached

        generation = self._generation(ALL_EVENTS_CACHE_KEY)
        records = await self._call(
            "events",
            "fetch_all_events",
            self._client.list_records,
            self._tables.events,
            sort=_SORT_BY_EVENT_NAME,
        )
        events = [map_event_record(r) for r in records]
        if self._cache is not None:
            self._cache.cache_all_events(events, generation)
        return events

    async def fetch_event_by_id(self, event_id: str) -> Optional[Event]:
        """Evento por record id, o None si no existe en Airtable."""
        key = CacheService.event_cache_key(event_id)
        cached = self._cached(key)
        if cached is not _MISS:
            logger.debug(f"Cache hit para evento: {event_id}")
            return cached

        generation = self._generation(key)
        record = await self._call(
            "events",
            "fetch_event_by_id",
            self._client.get_record,
            self._tables.events,
            event_id,
        )
        if record is None:
            return None
        event = map_event_record(record)
        if self._cache is not None:
            self._cache.cache_event(event_id, event, generation)
        return event

    async def fetch_all_organizer_emails(self) -> List[str]:
        """Emails de organizador unicos y no vacios (orden de aparicion)."""
        key = CacheService.organizer_emails_cache_key()
        cached = self._cached(key)
        if cached is not _MISS:
            return cached

        generation = self._generation(key)
        records = await self._call(
            "events",
            "fetch_all_organizer_emails",
            self._client.list_records,
            self._tables.events,
            fields=["email"],
        )
        emails: List[str] = []
        seen = set()
        for record in records:
            email = map_event_record(record).email
            if email and email not in seen:
                seen.add(email)
                emails.append(email)
        if self._cache is not None:
            self._cache.cache_organizer_emails(emails, generation)
        return emails

    async def update_event(self, event_id: str, update: EventUpdate) -> Event:
        """
        Escribe en Airtable y luego invalida el cache del evento y de su
        organizador. La fuente se actualiza primero; el cache nunca guarda un
        valor que Airtable no tenga.
        """
        fields = event_update_to_fields(update)
        record = await self._call(
            "events",
            "update_event",
            self._client.update_record,
            self._tables.events,
            event_id,
            fields,
        )
        event = map_event_record(record)
        if self._cache is not None:
            self._cache.invalidate_event_caches(event_id, event.email)
        logger.info(f"Evento {event_id} actualizado en Airtable ({', '.join(sorted(fields)) or 'sin cambios'})")
        return event

    # ------------------------------------------------------------------
    # Admins
    # ------------------------------------------------------------------

    async def fetch_all_admins(self) -> List[Admin]:
        records = await self._call(
            "admins", "fetch_all_admins", self._client.list_records, self._tables.admins
        )
        return [map_admin_record(r) for r in records]

    async def fetch_admin_by_email(self, email: str) -> Optional[Admin]:
        records = await self._call(
            "admins",
            "fetch_admin_by_email",
            self._client.list_records,
            self._tables.admins,
            filter_formula=build_equals_formula("email", email),
            max_records=1,
        )
        return map_admin_record(records[0]) if records else None

    async def is_admin(self, email: str) -> bool:
        """
        True si el email pertenece a un admin con estado active/admin.

        Un fallo de transporte responde False (y se loguea): ante la duda,
        no se otorga acceso elevado.
        """
        key = CacheService.admin_check_cache_key(email)
        cached = self._cached(key)
        if cached is not _MISS:
            return cached

        generation = self._generation(key)
        try:
            admin = await self.fetch_admin_by_email(email)
        except SourceReadError as e:
            logger.error(f"Error verificando admin {email}: {e}")
            return False

        result = bool(admin and admin.is_elevated)
        if self._cache is not None:
            self._cache.cache_admin_check(email, result, generation)
        return result

    # ------------------------------------------------------------------
    # Asistentes y venues
    # ------------------------------------------------------------------

    async def fetch_all_attendees(self) -> List[Attendee]:
        records = await self._call(
            "attendees", "fetch_all_attendees", self._client.list_records, self._tables.attendees
        )
        return [map_attendee_record(r) for r in records]

    async def fetch_attendees_for_event(self, event_id: str) -> List[Attendee]:
        """Asistentes cuyo link 'event' contiene event_id (filtrado en Airtable)."""
        records = await self._call(
            "attendees",
            "fetch_attendees_for_event",
            self._client.list_records,
            self._tables.attendees,
            filter_formula=build_link_contains_formula("event", event_id),
        )
        # FIND es por substring: se confirma el link exacto
        result = []
        for record in records:
            links = record.fields.get("event") or []
            if isinstance(links, str):
                links = [links]
            if event_id in links:
                result.append(map_attendee_record(record))
        return result

    async def fetch_all_venues(self) -> List[Venue]:
        records = await self._call(
            "venues", "fetch_all_venues", self._client.list_records, self._tables.venues
        )
        return [map_venue_record(r) for r in records]
