"""
Repositorios de escritura del espejo (SQLAlchemy async sobre psycopg):
- tablas espejadas (UPSERT por airtable_id)
- ledger de sincronización (sync_metadata + historial sync_runs)

Los upserts usan el INSERT ... ON CONFLICT del dialecto (PostgreSQL en
producción, SQLite en tests: ambos exponen la misma construcción).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import desc, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.domain.entities import SyncMetadataRecord
from portal.infrastructure.database.models import (
    AdminModel,
    AttendeeModel,
    EventModel,
    SyncMetadataModel,
    SyncRunModel,
    VenueModel,
)
from portal.shared.constants.portal_constants import SYNC_ORDER, SyncStatus
from portal.shared.exceptions.sync import SyncConfigError

from .sync_config import SYNCED_AT_COLUMN, EntitySyncSpec
from .types import ensure_utc, utc_now

_MIRROR_MODELS = {
    model.__tablename__: model
    for model in (EventModel, AdminModel, AttendeeModel, VenueModel)
}


def _dialect_insert(session: AsyncSession):
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise SyncConfigError(f"Dialecto no soportado para upsert: {dialect}")


def status_for(errors_count: int) -> SyncStatus:
    return SyncStatus.SUCCESS if errors_count == 0 else SyncStatus.PARTIAL_FAILURE


class MirrorSyncRepository:
    """Escrituras del motor de sincronización sobre las tablas espejadas."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def upsert_rows(
        self,
        spec: EntitySyncSpec,
        rows: Sequence[Dict[str, Any]],
        synced_at: Optional[datetime] = None,
    ) -> int:
        """
        UPSERT de un batch en una sola sentencia (una transacción).

        Todas las columnas espejadas se sobrescriben con el valor entrante y
        synced_at se estampa con la hora de la escritura.
        """
        if not rows:
            return 0

        stamp = synced_at or utc_now()
        values = [{**row, SYNCED_AT_COLUMN: stamp} for row in rows]

        async with self._session_factory() as session:
            insert = _dialect_insert(session)
            stmt = insert(spec.model.__table__).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[spec.conflict_column],
                set_={c: stmt.excluded[c] for c in spec.update_columns},
            )
            await session.execute(stmt)
            await session.commit()

        return len(values)

    async def fetch_existing_ids(self, table_name: str) -> Set[str]:
        """airtable_id presentes hoy en una tabla espejada."""
        model = _MIRROR_MODELS.get(table_name)
        if model is None:
            raise SyncConfigError(f"Tabla espejo desconocida: {table_name}")
        async with self._session_factory() as session:
            result = await session.execute(select(model.airtable_id))
            return {row[0] for row in result.all()}


class SyncMetadataRepository:
    """
    Ledger de sincronización.

    - sync_metadata: fila actual por tipo de entidad (upsert por table_name)
    - sync_runs: historial append-only, una fila por paso por corrida
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def ensure_initial_rows(self, table_names: Optional[Iterable[str]] = None) -> None:
        """Siembra filas 'pending' para cada entidad; no toca las existentes."""
        names = list(table_names or (e.value for e in SYNC_ORDER))
        if not names:
            return
        async with self._session_factory() as session:
            insert = _dialect_insert(session)
            stmt = insert(SyncMetadataModel.__table__).values(
                [
                    {
                        "table_name": name,
                        "last_sync_status": SyncStatus.PENDING.value,
                        "records_synced": 0,
                        "errors_count": 0,
                        "skipped_count": 0,
                    }
                    for name in names
                ]
            )
            await session.execute(stmt.on_conflict_do_nothing(index_elements=["table_name"]))
            await session.commit()

    async def record_step(
        self,
        table_name: str,
        records_synced: int,
        errors_count: int,
        skipped_count: int = 0,
        error_details: Optional[str] = None,
        duration_ms: Optional[int] = None,
        started_at: Optional[datetime] = None,
    ) -> SyncMetadataRecord:
        """Escribe la fila actual del paso y agrega una entrada al historial."""
        now = utc_now()
        status = status_for(errors_count)
        current = {
            "last_sync_at": now,
            "last_sync_status": status.value,
            "records_synced": records_synced,
            "errors_count": errors_count,
            "skipped_count": skipped_count,
            "error_details": error_details,
        }

        async with self._session_factory() as session:
            insert = _dialect_insert(session)
            stmt = insert(SyncMetadataModel.__table__).values({"table_name": table_name, **current})
            stmt = stmt.on_conflict_do_update(index_elements=["table_name"], set_=current)
            await session.execute(stmt)
            session.add(
                SyncRunModel(
                    table_name=table_name,
                    status=status.value,
                    records_synced=records_synced,
                    errors_count=errors_count,
                    skipped_count=skipped_count,
                    error_details=error_details,
                    duration_ms=duration_ms,
                    started_at=started_at or now,
                )
            )
            await session.commit()

        return SyncMetadataRecord(
            table_name=table_name,
            last_sync_status=status.value,
            records_synced=records_synced,
            errors_count=errors_count,
            skipped_count=skipped_count,
            error_details=error_details,
            last_sync_at=now,
        )

    async def get_sync_status(self) -> List[SyncMetadataRecord]:
        """Fila actual por tipo de entidad, ordenadas por nombre de tabla."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(SyncMetadataModel).order_by(SyncMetadataModel.table_name)
            )
            return [
                SyncMetadataRecord(
                    table_name=m.table_name,
                    last_sync_status=m.last_sync_status,
                    records_synced=m.records_synced,
                    errors_count=m.errors_count,
                    skipped_count=m.skipped_count,
                    error_details=m.error_details,
                    last_sync_at=ensure_utc(m.last_sync_at) if m.last_sync_at else None,
                )
                for m in result.scalars().all()
            ]

    async def get_sync_logs(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """Historial de pasos, del más reciente al más antiguo."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(SyncRunModel)
                .order_by(desc(SyncRunModel.started_at), desc(SyncRunModel.id))
                .limit(limit)
                .offset(offset)
            )
            return [
                {
                    "id": m.id,
                    "table_name": m.table_name,
                    "status": m.status,
                    "records_synced": m.records_synced,
                    "errors_count": m.errors_count,
                    "skipped_count": m.skipped_count,
                    "error_details": m.error_details,
                    "duration_ms": m.duration_ms,
                    "started_at": ensure_utc(m.started_at),
                }
                for m in result.scalars().all()
            ]
