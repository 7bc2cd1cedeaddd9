"""
Gestión de engines y sesiones de la base espejo.

Dos engines separados (frontera de seguridad, no optimización):
- escritura: lo usa el motor de sincronización (credenciales con permisos de upsert)
- solo lectura: lo usan las consultas del portal (usuario restringido,
  statement_timeout más corto)
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool


# Base para modelos de SQLAlchemy
Base = declarative_base()


def _create_engine_args(
    url: str,
    *,
    pool_size: int,
    max_overflow: int,
    statement_timeout_ms: int,
    application_name: str,
    echo: bool = False,
) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones y statement_timeout del lado servidor;
    SQLite (tests) no soporta ninguno de los dos.
    """
    args: Dict[str, Any] = {
        "echo": echo,
        "future": True,
    }

    if url.startswith("postgresql"):
        args.update({
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_pre_ping": True,  # Verifica conexion antes de usar
            "connect_args": {
                "options": f"-c statement_timeout={statement_timeout_ms}",
                "application_name": application_name,
            },
        })
    elif url.startswith("sqlite") and ":memory:" in url:
        # Una sola conexion compartida: si no, cada conexion ve una base vacia
        args.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })

    return args


def _make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class MirrorDatabase:
    """
    Dueño de los engines del espejo.

    Construirlo no abre conexiones; init_db() verifica conectividad (y crea
    el esquema si se pide) y marca la instancia como inicializada.
    Si no se pasa readonly_url, las lecturas comparten el engine de escritura
    (solo para desarrollo/tests).
    """

    def __init__(
        self,
        url: str,
        readonly_url: Optional[str] = None,
        *,
        pool_size: int = 10,
        max_overflow: int = 5,
        statement_timeout_ms: int = 30000,
        readonly_pool_size: int = 5,
        readonly_statement_timeout_ms: int = 15000,
        echo: bool = False,
    ) -> None:
        self.engine: AsyncEngine = create_async_engine(
            url,
            **_create_engine_args(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                statement_timeout_ms=statement_timeout_ms,
                application_name="portal-sync",
                echo=echo,
            ),
        )
        if readonly_url and readonly_url != url:
            self.readonly_engine: AsyncEngine = create_async_engine(
                readonly_url,
                **_create_engine_args(
                    readonly_url,
                    pool_size=readonly_pool_size,
                    max_overflow=0,
                    statement_timeout_ms=readonly_statement_timeout_ms,
                    application_name="portal-readonly",
                    echo=echo,
                ),
            )
        else:
            self.readonly_engine = self.engine

        self.session_factory = _make_session_factory(self.engine)
        self.readonly_session_factory = _make_session_factory(self.readonly_engine)
        self._initialized = False

    @classmethod
    def from_settings(cls, settings: Any) -> "MirrorDatabase":
        return cls(
            settings.effective_database_url,
            settings.effective_readonly_database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            statement_timeout_ms=settings.DB_STATEMENT_TIMEOUT_MS,
            readonly_pool_size=settings.DB_READONLY_POOL_SIZE,
            readonly_statement_timeout_ms=settings.DB_READONLY_STATEMENT_TIMEOUT_MS,
            echo=settings.DEBUG,
        )

    def is_initialized(self) -> bool:
        return self._initialized

    async def init_db(self, create_schema: bool = True) -> None:
        """Verifica conectividad y (opcionalmente) crea todas las tablas."""
        # Registra los modelos en Base.metadata
        from portal.infrastructure.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            if create_schema:
                await conn.run_sync(Base.metadata.create_all)
            else:
                await conn.execute(text("SELECT 1"))
        self._initialized = True
        logger.info("Base espejo inicializada")

    async def health_check(self) -> bool:
        """SELECT 1 contra el engine de escritura. Nunca lanza."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Health check de la base espejo falló: {e}")
            return False

    def pool_info(self) -> Dict[str, str]:
        return {
            "write": self.engine.pool.status(),
            "readonly": self.readonly_engine.pool.status(),
        }

    async def close(self) -> None:
        """Cierra las conexiones de ambos engines."""
        self._initialized = False
        await self.engine.dispose()
        if self.readonly_engine is not self.engine:
            await self.readonly_engine.dispose()
        logger.info("Conexiones de la base espejo cerradas")
