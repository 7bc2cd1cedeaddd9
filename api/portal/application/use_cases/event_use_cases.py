"""
Casos de uso de eventos.

Las lecturas de eventos van contra Airtable a través del lector con cache;
los asistentes se leen del espejo relacional (engine de solo lectura).
"""
from typing import Any, Dict, List, Optional

from loguru import logger

from portal.domain.entities import Event, EventUpdate
from portal.infrastructure.external.airtable_sync.record_reader import AirtableRecordReader
from portal.infrastructure.repositories.mirror_query_repository import MirrorQueryRepository
from portal.shared.exceptions.domain import EntityNotFoundException, ValidationException


class EventUseCases:
    """Casos de uso para consultar y editar eventos."""

    def __init__(
        self,
        reader: AirtableRecordReader,
        query_repository: Optional[MirrorQueryRepository] = None,
    ):
        self.reader = reader
        self.query_repository = query_repository

    async def list_events_by_organizer(self, organizer_email: str) -> List[Event]:
        if not organizer_email or not organizer_email.strip():
            raise ValidationException("El email del organizador es obligatorio", field="organizer")
        return await self.reader.fetch_events_by_organizer(organizer_email.strip())

    async def get_event(self, event_id: str) -> Event:
        event = await self.reader.fetch_event_by_id(event_id)
        if event is None:
            raise EntityNotFoundException("Event", event_id)
        return event

    async def update_event(self, event_id: str, update: EventUpdate) -> Event:
        """
        Actualiza un evento en Airtable.

        Verifica primero que exista para responder 404 en vez de un error
        de transporte.
        """
        await self.get_event(event_id)
        if not update.changed_fields():
            raise ValidationException("No hay campos para actualizar")
        event = await self.reader.update_event(event_id, update)
        logger.info(f"Evento {event_id} actualizado desde el portal")
        return event

    async def get_attendees(self, event_id: str, include_deleted: bool = False) -> List[Dict[str, Any]]:
        """Asistentes de un evento según el espejo (404 si el evento no está espejado)."""
        if self.query_repository is None:
            raise RuntimeError("EventUseCases sin repositorio de consultas")
        if await self.query_repository.get_event(event_id) is None:
            raise EntityNotFoundException("Event", event_id)
        return await self.query_repository.get_attendees_by_event(event_id, include_deleted=include_deleted)
