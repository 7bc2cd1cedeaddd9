"""
Endpoints del motor de sincronizacion Airtable -> PostgreSQL.
Estado del ledger, disparo manual, historial y estadisticas del cache.
"""
from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from portal.api.v1.dependencies.service_deps import get_cache_service, get_sync_service
from portal.application.dto.sync_dto import (
    CacheStatsDTO,
    SyncLogsResponseDTO,
    SyncMetadataDTO,
    SyncResultDTO,
    SyncRunLogDTO,
    SyncStatusResponseDTO,
)
from portal.infrastructure.cache.cache_service import CacheService
from portal.infrastructure.external.airtable_sync.sync_service import SyncService


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get(
    "/status",
    response_model=SyncStatusResponseDTO,
    summary="Estado de la ultima sincronizacion por tabla",
)
async def get_sync_status(
    sync_service: SyncService = Depends(get_sync_service),
) -> SyncStatusResponseDTO:
    records = await sync_service.get_sync_status()
    return SyncStatusResponseDTO(
        is_running=sync_service.is_running(),
        tables=[
            SyncMetadataDTO(
                table_name=r.table_name,
                last_sync_at=r.last_sync_at,
                last_sync_status=r.last_sync_status,
                records_synced=r.records_synced,
                errors_count=r.errors_count,
                skipped_count=r.skipped_count,
                error_details=r.error_details,
            )
            for r in records
        ],
    )


@router.post(
    "/trigger",
    response_model=SyncResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Ejecutar una sincronizacion completa",
)
async def trigger_sync(
    sync_service: SyncService = Depends(get_sync_service),
) -> SyncResultDTO:
    """
    Ejecuta la sincronizacion completa y espera su resultado.

    Si ya hay una corrida activa responde inmediatamente con
    success=false y errors=["Sync already in progress"].
    """
    logger.info("Sincronizacion manual solicitada via API")
    result = await sync_service.perform_full_sync()
    return SyncResultDTO(**result.to_dict())


@router.get(
    "/logs",
    response_model=SyncLogsResponseDTO,
    summary="Historial de pasos de sincronizacion",
)
async def get_sync_logs(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    sync_service: SyncService = Depends(get_sync_service),
) -> SyncLogsResponseDTO:
    logs = await sync_service.get_sync_logs(limit=limit, offset=offset)
    return SyncLogsResponseDTO(
        limit=limit,
        offset=offset,
        logs=[SyncRunLogDTO(**row) for row in logs],
    )


@router.get(
    "/cache",
    response_model=CacheStatsDTO,
    summary="Estadisticas del cache en memoria",
)
async def get_cache_stats(
    cache: CacheService = Depends(get_cache_service),
) -> CacheStatsDTO:
    return CacheStatsDTO(**cache.get_stats())
