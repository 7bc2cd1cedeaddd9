"""
Configuración de fixtures para pytest.

- mirror: base espejo SQLite en memoria (aiosqlite), esquema creado por test
- fake_reader: lector en memoria con la interfaz de AirtableRecordReader
- build_sync_service: arma un SyncService sobre el espejo de prueba
"""
from typing import Any, AsyncGenerator, Callable, Optional

import pytest

from portal.infrastructure.database.session import MirrorDatabase
from portal.infrastructure.external.airtable_sync.pg_repository import (
    MirrorSyncRepository,
    SyncMetadataRepository,
)
from portal.infrastructure.external.airtable_sync.sync_config import build_sync_specs
from portal.infrastructure.external.airtable_sync.sync_service import SyncService

from fakes import FakeRecordReader


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def mirror() -> AsyncGenerator[MirrorDatabase, None]:
    """
    Base espejo en memoria para cada test, con el ledger sembrado.
    """
    db = MirrorDatabase(TEST_DATABASE_URL)
    await db.init_db()
    await SyncMetadataRepository(db.session_factory).ensure_initial_rows()
    yield db
    await db.close()


@pytest.fixture
def fake_reader() -> FakeRecordReader:
    return FakeRecordReader()


@pytest.fixture
def build_sync_service(mirror: MirrorDatabase) -> Callable[..., SyncService]:
    """Factory de SyncService sobre el espejo de prueba."""

    def _build(
        reader: Any,
        *,
        batch_size: int = 50,
        admin_batch_size: int = 20,
        mirror_repo: Optional[MirrorSyncRepository] = None,
        **kwargs: Any,
    ) -> SyncService:
        return SyncService(
            reader=reader,
            mirror=mirror,
            mirror_repo=mirror_repo or MirrorSyncRepository(mirror.session_factory),
            metadata_repo=SyncMetadataRepository(mirror.session_factory),
            specs=build_sync_specs(batch_size=batch_size, admin_batch_size=admin_batch_size),
            **kwargs,
        )

    return _build
