"""
Consultas de solo lectura sobre el espejo relacional.

Se construye con una sesión del engine de solo lectura: nunca escribe.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.infrastructure.database.models import (
    AdminModel,
    AttendeeModel,
    EventModel,
    SyncMetadataModel,
    VenueModel,
)

_COUNTED_MODELS = (EventModel, AdminModel, AttendeeModel, VenueModel, SyncMetadataModel)


def _model_to_dict(model: Any) -> Dict[str, Any]:
    return {c.name: getattr(model, c.name) for c in model.__table__.columns}


class MirrorQueryRepository:
    """Repositorio de lectura del espejo (eventos, asistentes, conteos)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_events(self, triage_status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Eventos espejados por nombre; opcionalmente filtrados por triage."""
        query = select(EventModel).order_by(EventModel.event_name)
        if triage_status:
            query = query.where(EventModel.triage_status == triage_status)
        result = await self.session.execute(query)
        return [_model_to_dict(m) for m in result.scalars().all()]

    async def get_event(self, airtable_id: str) -> Optional[Dict[str, Any]]:
        result = await self.session.execute(
            select(EventModel).where(EventModel.airtable_id == airtable_id)
        )
        model = result.scalar_one_or_none()
        return _model_to_dict(model) if model is not None else None

    async def get_attendees_by_event(
        self,
        event_airtable_id: str,
        include_deleted: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Asistentes de un evento, ordenados por nombre.

        Por defecto excluye los marcados deleted_in_cockpit.
        """
        query = select(AttendeeModel).where(AttendeeModel.event_airtable_id == event_airtable_id)
        if not include_deleted:
            query = query.where(AttendeeModel.deleted_in_cockpit.is_(False))
        query = query.order_by(AttendeeModel.first_name, AttendeeModel.last_name, AttendeeModel.id)
        result = await self.session.execute(query)
        return [_model_to_dict(m) for m in result.scalars().all()]

    async def count_rows(self) -> Dict[str, int]:
        """Cantidad de filas por tabla (para health)."""
        counts: Dict[str, int] = {}
        for model in _COUNTED_MODELS:
            result = await self.session.execute(select(func.count()).select_from(model))
            counts[model.__tablename__] = int(result.scalar_one())
        return counts
