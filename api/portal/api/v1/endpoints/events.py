"""
Endpoints de eventos.

Lecturas y edicion contra Airtable (con cache); asistentes desde el espejo.
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from portal.api.v1.dependencies.service_deps import (
    get_event_query_use_cases,
    get_event_use_cases,
)
from portal.application.dto.event_dto import (
    AttendeeResponseDTO,
    EventResponseDTO,
    EventUpdateDTO,
)
from portal.application.use_cases.event_use_cases import EventUseCases
from portal.domain.entities import Event, EventUpdate


router = APIRouter(prefix="/events", tags=["Events"])


def _to_response(event: Event) -> EventResponseDTO:
    return EventResponseDTO(**event.to_dict())


@router.get("", response_model=List[EventResponseDTO], summary="Eventos de un organizador")
async def list_events(
    organizer: str = Query(..., description="Email del organizador"),
    use_cases: EventUseCases = Depends(get_event_use_cases),
) -> List[EventResponseDTO]:
    events = await use_cases.list_events_by_organizer(organizer)
    return [_to_response(e) for e in events]


@router.get("/{event_id}", response_model=EventResponseDTO, summary="Detalle de un evento")
async def get_event(
    event_id: str,
    use_cases: EventUseCases = Depends(get_event_use_cases),
) -> EventResponseDTO:
    return _to_response(await use_cases.get_event(event_id))


@router.patch("/{event_id}", response_model=EventResponseDTO, summary="Editar un evento")
async def update_event(
    event_id: str,
    payload: EventUpdateDTO,
    use_cases: EventUseCases = Depends(get_event_use_cases),
) -> EventResponseDTO:
    update = EventUpdate(**payload.model_dump(exclude_none=True))
    return _to_response(await use_cases.update_event(event_id, update))


@router.get(
    "/{event_id}/attendees",
    response_model=List[AttendeeResponseDTO],
    summary="Asistentes de un evento (espejo)",
)
async def get_event_attendees(
    event_id: str,
    include_deleted: bool = Query(False),
    use_cases: EventUseCases = Depends(get_event_query_use_cases),
) -> List[AttendeeResponseDTO]:
    rows = await use_cases.get_attendees(event_id, include_deleted=include_deleted)
    return [AttendeeResponseDTO(**row) for row in rows]
