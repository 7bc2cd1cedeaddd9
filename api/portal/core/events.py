"""
Ciclo de vida de la aplicacion (lifespan de FastAPI).

Startup:
- sink de logs a archivo
- engines del espejo + esquema + filas iniciales del ledger
- cache, lector de Airtable y motor de sincronizacion (en app.state)
- scheduler (app.state.scheduler) con el job periodico si SYNC_ENABLED

Shutdown: quita el job, apaga el scheduler y cierra los engines.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from loguru import logger

from portal.core.config import Settings, settings
from portal.infrastructure.cache.cache_service import CacheService, CacheTTLs
from portal.infrastructure.database.session import MirrorDatabase
from portal.infrastructure.external.airtable_sync.pg_repository import SyncMetadataRepository
from portal.infrastructure.external.airtable_sync.record_reader import AirtableRecordReader
from portal.infrastructure.external.airtable_sync.sync_service import (
    airtable_tables_from_settings,
    build_airtable_client,
    build_sync_service,
)
from portal.shared.exceptions.sync import SyncConfigError


def build_cache(config: Settings) -> CacheService:
    return CacheService(
        CacheTTLs(
            default=config.CACHE_DEFAULT_TTL_SECONDS,
            organizer_emails=config.CACHE_ORGANIZER_EMAILS_TTL_SECONDS,
            event=config.CACHE_EVENT_TTL_SECONDS,
            admin_check=config.CACHE_ADMIN_CHECK_TTL_SECONDS,
            all_events=config.CACHE_ALL_EVENTS_TTL_SECONDS,
        )
    )


def _configure_logging(config: Settings) -> None:
    logger.add(
        config.LOG_FILE,
        rotation="500 MB",
        retention="10 days",
        level=config.LOG_LEVEL
    )


def _validate_config(config: Settings) -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not config.AIRTABLE_API_KEY or not config.AIRTABLE_BASE_ID:
        warnings.append("AIRTABLE_API_KEY / AIRTABLE_BASE_ID no configuradas - sin lecturas ni sincronizacion")
    if config.effective_readonly_database_url == config.effective_database_url:
        warnings.append("El pool de solo lectura comparte credenciales con el de escritura")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Inicializa y libera los recursos de la aplicacion."""
    config = settings
    logger.info(f"Iniciando {config.APP_NAME} v{config.APP_VERSION}")
    logger.info(f"Entorno: {config.ENVIRONMENT}")

    _configure_logging(config)
    _validate_config(config)

    mirror = MirrorDatabase.from_settings(config)
    app.state.mirror = mirror
    app.state.cache = build_cache(config)
    app.state.reader = None
    app.state.sync_service = None
    app.state.scheduler = AsyncIOScheduler()

    try:
        await mirror.init_db()
        await SyncMetadataRepository(mirror.session_factory).ensure_initial_rows()
    except Exception as e:
        # El API sigue levantando: /health reporta la base como no disponible
        logger.error(f"No se pudo inicializar la base espejo: {e}")

    try:
        client = build_airtable_client(config)
    except SyncConfigError as e:
        logger.warning(f"Airtable deshabilitado: {e.message}")
    else:
        app.state.reader = AirtableRecordReader(
            client,
            cache=app.state.cache,
            tables=airtable_tables_from_settings(config),
        )
        sync_service = build_sync_service(
            config, mirror=mirror, client=client, scheduler=app.state.scheduler
        )
        app.state.sync_service = sync_service
        if config.SYNC_ENABLED:
            sync_service.start_periodic_sync()

    logger.success("Aplicacion iniciada correctamente")

    try:
        yield
    finally:
        logger.info("Cerrando aplicacion...")
        if app.state.sync_service is not None:
            await app.state.sync_service.stop_periodic_sync()
        if app.state.scheduler.running:
            app.state.scheduler.shutdown(wait=False)
        await mirror.close()
        logger.success("Aplicacion cerrada correctamente")
