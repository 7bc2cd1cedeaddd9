"""
CLI: sincronización manual Airtable -> PostgreSQL (espejo).

Ejecuta UNA corrida completa (venues -> events -> admins -> attendees) con la
misma configuración que el API, imprime el resultado y sale.

Variables de entorno requeridas:
  - AIRTABLE_API_KEY
  - AIRTABLE_BASE_ID
  - DATABASE_URL (o los componentes POSTGRES_*)

Ejecución:
  python scripts/manual_sync.py
  python scripts/manual_sync.py --status
  python scripts/manual_sync.py --schema-only
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `portal/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env antes de importar settings.
_REPO_ROOT = _API_ROOT.parent
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_REPO_ROOT / ".env", override=False)

from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from portal.core.config import settings
from portal.infrastructure.database.session import Base, MirrorDatabase
from portal.infrastructure.external.airtable_sync.pg_repository import SyncMetadataRepository
from portal.infrastructure.external.airtable_sync.sync_service import build_sync_service
from portal.shared.exceptions.sync import SyncConfigError


def render_schema_sql() -> str:
    """DDL PostgreSQL del espejo, generado desde los modelos ORM."""
    from portal.infrastructure.database import models  # noqa: F401

    dialect = postgresql.dialect()
    statements = []
    for table in Base.metadata.sorted_tables:
        statements.append(f"{str(CreateTable(table).compile(dialect=dialect)).strip()};")
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            statements.append(f"{str(CreateIndex(index).compile(dialect=dialect)).strip()};")
    return "\n\n".join(statements) + "\n"


async def _print_status(mirror: MirrorDatabase) -> None:
    records = await SyncMetadataRepository(mirror.session_factory).get_sync_status()
    for r in records:
        last = r.last_sync_at.isoformat() if r.last_sync_at else "-"
        print(
            f"{r.table_name:<10} {r.last_sync_status:<16} synced={r.records_synced:<6} "
            f"errors={r.errors_count:<4} skipped={r.skipped_count:<4} last={last}"
        )
        if r.error_details:
            print(f"           {r.error_details}")


async def _run(args: argparse.Namespace) -> int:
    mirror = MirrorDatabase.from_settings(settings)
    try:
        await mirror.init_db(create_schema=not args.no_create)
        metadata = SyncMetadataRepository(mirror.session_factory)
        await metadata.ensure_initial_rows()

        if args.status:
            await _print_status(mirror)
            return 0

        try:
            service = build_sync_service(settings, mirror=mirror)
        except SyncConfigError as e:
            raise SystemExit(e.message)

        logger.info("Iniciando sincronización manual Airtable -> PostgreSQL...")
        result = await service.perform_full_sync()
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.success else 1
    finally:
        await mirror.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Sincronización manual Airtable -> PostgreSQL")
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Solo imprime el DDL PostgreSQL del espejo (no se conecta a nada).",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Imprime el ledger de sincronización (sync_metadata) y sale.",
    )
    parser.add_argument(
        "--no-create",
        action="store_true",
        help="No crea tablas faltantes (usar cuando el esquema lo maneja Alembic).",
    )
    args = parser.parse_args()

    if args.schema_only:
        print(render_schema_sql())
        return 0

    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
