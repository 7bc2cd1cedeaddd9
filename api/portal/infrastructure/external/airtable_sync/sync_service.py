"""
Servicio de sincronización Airtable -> PostgreSQL (espejo).

Diseño (resumen):
- Pre-flight: la base espejo debe estar inicializada y responder al health check.
- Pasos en orden fijo: venues -> events -> admins -> attendees.
- Por paso: trae la colección completa (sin cache), traduce a filas, valida
  (los inválidos se saltean y se cuentan aparte), deduplica por airtable_id,
  y hace UPSERT por batches. Un batch que falla se registra y el paso sigue.
- Al final de cada paso se escribe la fila del ledger (sync_metadata).

Estrategia de concurrencia:
- Una sola corrida activa por proceso. El flag se levanta antes del primer
  await: dos corutinas nunca pueden pasar el chequeo a la vez.
- El timer periódico es un job de APScheduler (IntervalTrigger, max_instances=1,
  coalesce=True): un tick que llega con una corrida activa se descarta, no se encola.
- Cada lectura remota y cada escritura al espejo está acotada por timeout.

perform_full_sync() nunca lanza: todo fallo termina en SyncResult.errors.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from portal.domain.entities import StepResult, SyncMetadataRecord, SyncResult
from portal.shared.constants.portal_constants import (
    SYNC_ALREADY_IN_PROGRESS,
    SYNC_ORDER,
    SyncEntity,
)
from portal.shared.exceptions.sync import MirrorUnavailableError, SyncConfigError

from .airtable_client import AirtableClient, AirtableCredentials
from .pg_repository import MirrorSyncRepository, SyncMetadataRepository
from .record_reader import AirtableRecordReader, AirtableTables
from .sync_config import EntitySyncSpec, Row, build_sync_specs
from .types import utc_now

_ERROR_DETAILS_MAX_CHARS = 2000
SYNC_JOB_ID = "airtable_sync"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _chunks(rows: Sequence[Row], size: int):
    for i in range(0, len(rows), size):
        yield i, rows[i:i + size]


class SyncService:
    """
    Orquestador del pipeline completo.

    Construirlo no hace I/O ni arranca timers: el ciclo de vida lo maneja
    quien lo crea (start_periodic_sync / stop_periodic_sync).
    """

    def __init__(
        self,
        *,
        reader: AirtableRecordReader,
        mirror: Any,
        mirror_repo: MirrorSyncRepository,
        metadata_repo: SyncMetadataRepository,
        specs: Optional[Dict[SyncEntity, EntitySyncSpec]] = None,
        interval_s: float = 30.0,
        fetch_timeout_s: float = 30.0,
        write_timeout_s: float = 30.0,
        run_on_start: bool = False,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        # El motor siempre lee sin cache: su trabajo es refrescar el espejo
        if getattr(reader, "is_cached", False):
            reader = reader.uncached()
        self._reader = reader
        self._mirror = mirror
        self._mirror_repo = mirror_repo
        self._metadata_repo = metadata_repo
        self._specs = specs or build_sync_specs()
        self._interval_s = interval_s
        self._fetch_timeout_s = fetch_timeout_s
        self._write_timeout_s = write_timeout_s
        self._run_on_start = run_on_start

        # Si el scheduler viene de afuera (app.state.scheduler), su dueño lo apaga
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or AsyncIOScheduler()
        self._running = False

        missing = [e.value for e in SYNC_ORDER if e not in self._specs]
        if missing:
            raise SyncConfigError(f"Faltan specs de sincronización para: {', '.join(missing)}")

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------

    def is_running(self) -> bool:
        return self._running

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def is_scheduled(self) -> bool:
        return self._scheduler.running and self._scheduler.get_job(SYNC_JOB_ID) is not None

    async def perform_full_sync(self) -> SyncResult:
        """Ejecuta una corrida completa y retorna su resultado agregado."""
        if self._running:
            logger.info("Sincronización ya en curso, se ignora la solicitud")
            return SyncResult(
                success=False,
                records_synced=0,
                errors=[SYNC_ALREADY_IN_PROGRESS],
                duration_ms=0,
            )

        # Sin await entre el chequeo y esta asignación
        self._running = True
        started = time.monotonic()
        try:
            return await self._run_pipeline(started)
        except Exception as e:
            logger.exception(f"Sincronización abortada por error inesperado: {e}")
            return SyncResult(
                success=False,
                records_synced=0,
                errors=[f"Sync failed: {e}"],
                duration_ms=_elapsed_ms(started),
            )
        finally:
            self._running = False

    async def get_sync_status(self) -> List[SyncMetadataRecord]:
        return await self._metadata_repo.get_sync_status()

    async def get_sync_logs(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        return await self._metadata_repo.get_sync_logs(limit=limit, offset=offset)

    def start_periodic_sync(self) -> None:
        """
        Registra el job periódico y arranca el scheduler si hace falta (idempotente).

        Debe llamarse con el event loop corriendo (lifespan de FastAPI).
        """
        if self.is_scheduled:
            logger.warning("La sincronización periódica ya estaba iniciada")
            return

        job_kwargs: Dict[str, Any] = {}
        if self._run_on_start:
            job_kwargs["next_run_time"] = utc_now()

        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self._interval_s),
            id=SYNC_JOB_ID,
            name="Sincronización Airtable -> PostgreSQL",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_kwargs,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info(f"Sincronización periódica iniciada (cada {self._interval_s}s)")

    async def stop_periodic_sync(self) -> None:
        """
        Quita el job del scheduler. Si el scheduler es propio también lo apaga,
        y una corrida en curso se cancela con él.
        """
        if self._scheduler.get_job(SYNC_JOB_ID) is not None:
            self._scheduler.remove_job(SYNC_JOB_ID)
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("Sincronización periódica detenida")

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def _tick(self) -> None:
        if self._running:
            logger.info("Tick de sincronización descartado: hay una corrida activa")
            return
        result = await self.perform_full_sync()
        if not result.success:
            logger.warning(f"Sincronización periódica con errores: {result.errors}")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_pipeline(self, started: float) -> SyncResult:
        logger.info("Iniciando sincronización completa Airtable -> PostgreSQL")

        preflight_error = await self._preflight()
        if preflight_error:
            logger.error(f"Sincronización cancelada: {preflight_error}")
            return SyncResult(
                success=False,
                records_synced=0,
                errors=[preflight_error],
                duration_ms=_elapsed_ms(started),
            )

        steps: List[StepResult] = []
        # Secuencial: attendees valida contra los eventos ya escritos
        for entity in SYNC_ORDER:
            steps.append(await self._sync_entity(self._specs[entity]))

        errors = [err for step in steps for err in step.errors]
        result = SyncResult(
            success=not errors,
            records_synced=sum(s.records_synced for s in steps),
            errors=errors,
            duration_ms=_elapsed_ms(started),
            skipped=sum(s.skipped for s in steps),
            steps=steps,
        )
        logger.info(
            f"Sincronización completada: {result.records_synced} records, "
            f"{result.skipped} omitidos, {len(errors)} errores, {result.duration_ms}ms"
        )
        return result

    async def _preflight(self) -> Optional[str]:
        if not self._mirror.is_initialized():
            # El arranque pudo fallar con la base caída: se reintenta en cada tick
            logger.info("Base espejo sin inicializar, reintentando conexión")
            try:
                await asyncio.wait_for(
                    self._mirror.init_db(create_schema=False),
                    timeout=self._write_timeout_s,
                )
            except Exception as e:
                logger.error(f"No se pudo inicializar la base espejo: {e!r}")
                return MirrorUnavailableError().message
        if not await self._mirror.health_check():
            return "Database health check failed"
        return None

    async def _sync_entity(self, spec: EntitySyncSpec) -> StepResult:
        """Un paso del pipeline. Nunca lanza: los fallos quedan en step.errors."""
        table = spec.table_name
        step = StepResult(table_name=table)
        started_at = utc_now()
        started = time.monotonic()

        try:
            entities = await asyncio.wait_for(
                getattr(self._reader, spec.fetch_operation)(),
                timeout=self._fetch_timeout_s,
            )
        except asyncio.TimeoutError:
            step.errors.append(f"Failed to fetch {table}: timed out after {self._fetch_timeout_s}s")
        except Exception as e:
            step.errors.append(f"Failed to fetch {table}: {e}")
        else:
            logger.info(f"{len(entities)} records de {table} obtenidos de Airtable")
            try:
                rows, step.skipped = await self._prepare_rows(spec, entities)
                await self._write_batches(spec, rows, step)
            except Exception as e:
                step.errors.append(f"Sync failed for {table}: {e}")

        for err in step.errors:
            logger.error(err)

        step.duration_ms = _elapsed_ms(started)
        await self._record_step(step, started_at)
        return step

    async def _prepare_rows(self, spec: EntitySyncSpec, entities: Sequence[Any]) -> Tuple[List[Row], int]:
        """Valida, traduce y deduplica. Retorna (filas, cantidad omitida)."""
        parent_ids = None
        if spec.parent_reference:
            _, parent_table = spec.parent_reference
            parent_ids = await asyncio.wait_for(
                self._mirror_repo.fetch_existing_ids(parent_table),
                timeout=self._write_timeout_s,
            )

        skipped = 0
        by_key: Dict[str, Row] = {}
        for entity in entities:
            reason = spec.validate(entity)
            row = None
            if reason is None:
                row = spec.to_row(entity)
                if parent_ids is not None:
                    column, parent_table = spec.parent_reference
                    if row[column] not in parent_ids:
                        reason = f"{parent_table} {row[column]} not present in mirror"
            if reason is not None:
                skipped += 1
                logger.warning(f"Omitiendo {spec.entity.value} {getattr(entity, 'id', None)}: {reason}")
                continue
            # Última ocurrencia gana
            by_key[row[spec.conflict_column]] = row

        return list(by_key.values()), skipped

    async def _write_batches(self, spec: EntitySyncSpec, rows: List[Row], step: StepResult) -> None:
        table = spec.table_name
        synced_at = utc_now()
        for i, batch in _chunks(rows, spec.batch_size):
            label = f"{table} {i}-{i + len(batch)}"
            try:
                step.records_synced += await asyncio.wait_for(
                    self._mirror_repo.upsert_rows(spec, batch, synced_at=synced_at),
                    timeout=self._write_timeout_s,
                )
            except asyncio.TimeoutError:
                step.errors.append(f"Batch sync failed for {label}: timed out after {self._write_timeout_s}s")
            except Exception as e:
                step.errors.append(f"Batch sync failed for {label}: {e}")

    async def _record_step(self, step: StepResult, started_at) -> None:
        details = "; ".join(step.errors)[:_ERROR_DETAILS_MAX_CHARS] or None
        try:
            await asyncio.wait_for(
                self._metadata_repo.record_step(
                    step.table_name,
                    records_synced=step.records_synced,
                    errors_count=len(step.errors),
                    skipped_count=step.skipped,
                    error_details=details,
                    duration_ms=step.duration_ms,
                    started_at=started_at,
                ),
                timeout=self._write_timeout_s,
            )
        except Exception as e:
            msg = f"Failed to update sync metadata for {step.table_name}: {e!r}"
            logger.error(msg)
            step.errors.append(msg)


def build_airtable_client(settings: Any) -> AirtableClient:
    """Cliente Airtable desde la configuración; falla si faltan credenciales."""
    if not settings.AIRTABLE_API_KEY:
        raise SyncConfigError("Falta variable de entorno obligatoria: AIRTABLE_API_KEY")
    if not settings.AIRTABLE_BASE_ID:
        raise SyncConfigError("Falta variable de entorno obligatoria: AIRTABLE_BASE_ID")
    return AirtableClient(
        AirtableCredentials(token=settings.AIRTABLE_API_KEY, base_id=settings.AIRTABLE_BASE_ID),
        base_url=settings.AIRTABLE_BASE_URL,
        timeout_s=settings.AIRTABLE_TIMEOUT_SECONDS,
        max_retries=settings.AIRTABLE_MAX_RETRIES,
    )


def airtable_tables_from_settings(settings: Any) -> AirtableTables:
    return AirtableTables(
        events=settings.AIRTABLE_EVENTS_TABLE,
        admins=settings.AIRTABLE_ADMINS_TABLE,
        attendees=settings.AIRTABLE_ATTENDEES_TABLE,
        venues=settings.AIRTABLE_VENUES_TABLE,
    )


def build_sync_service(
    settings: Any,
    *,
    mirror: Any,
    client: Optional[AirtableClient] = None,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> SyncService:
    """
    Constructor “oficial” del motor a partir de Settings y una MirrorDatabase.

    El lector se construye sin cache.
    """
    reader = AirtableRecordReader(
        client or build_airtable_client(settings),
        cache=None,
        tables=airtable_tables_from_settings(settings),
    )
    return SyncService(
        reader=reader,
        mirror=mirror,
        mirror_repo=MirrorSyncRepository(mirror.session_factory),
        metadata_repo=SyncMetadataRepository(mirror.session_factory),
        specs=build_sync_specs(
            batch_size=settings.SYNC_BATCH_SIZE,
            admin_batch_size=settings.SYNC_ADMIN_BATCH_SIZE,
        ),
        interval_s=settings.SYNC_INTERVAL_SECONDS,
        fetch_timeout_s=settings.SYNC_FETCH_TIMEOUT_SECONDS,
        write_timeout_s=settings.SYNC_WRITE_TIMEOUT_SECONDS,
        run_on_start=settings.SYNC_RUN_ON_START,
        scheduler=scheduler,
    )
