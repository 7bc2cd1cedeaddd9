"""
Dependencias para inyección de servicios.

Los servicios se construyen una vez en el lifespan y viven en app.state;
los tests los reemplazan con app.dependency_overrides.
"""
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.application.use_cases.event_use_cases import EventUseCases
from portal.infrastructure.cache.cache_service import CacheService
from portal.infrastructure.database.session import MirrorDatabase
from portal.infrastructure.external.airtable_sync.record_reader import AirtableRecordReader
from portal.infrastructure.external.airtable_sync.sync_service import SyncService
from portal.infrastructure.repositories.mirror_query_repository import MirrorQueryRepository
from portal.shared.exceptions.base import AppException
from portal.shared.exceptions.sync import MirrorUnavailableError


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise AppException(
            message=f"Servicio no disponible: {name}",
            status_code=503,
            error_code="SERVICE_UNAVAILABLE",
        )
    return value


def get_sync_service(request: Request) -> SyncService:
    return _state(request, "sync_service")


def get_cache_service(request: Request) -> CacheService:
    return _state(request, "cache")


def get_record_reader(request: Request) -> AirtableRecordReader:
    """Lector con cache (lecturas del portal)."""
    return _state(request, "reader")


def get_mirror_database(request: Request) -> MirrorDatabase:
    return _state(request, "mirror")


async def get_read_only_db(
    mirror: MirrorDatabase = Depends(get_mirror_database),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Sesión del engine de solo lectura. Nunca hace commit.

    Yields:
        AsyncSession: Sesión de base de datos
    """
    if not mirror.is_initialized():
        raise MirrorUnavailableError()
    async with mirror.readonly_session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


async def get_event_use_cases(
    reader: AirtableRecordReader = Depends(get_record_reader),
) -> EventUseCases:
    return EventUseCases(reader)


async def get_event_query_use_cases(
    reader: AirtableRecordReader = Depends(get_record_reader),
    session: AsyncSession = Depends(get_read_only_db),
) -> EventUseCases:
    """Casos de uso con acceso al espejo (consultas de asistentes)."""
    return EventUseCases(reader, MirrorQueryRepository(session))
