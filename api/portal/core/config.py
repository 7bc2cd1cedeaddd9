"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.

Grupos principales:
- Aplicacion / servidor HTTP
- Airtable (fuente de verdad)
- PostgreSQL espejo: pool de escritura (sync) y pool de solo lectura (consultas)
- Motor de sincronizacion (intervalo, batches, timeouts)
- Cache en memoria (TTLs por tipo de dato)
"""
import json
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    DATABASE_URL / READONLY_DATABASE_URL se pueden especificar completas
    o construirse desde los componentes POSTGRES_*.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignorar campos extra del .env
    )

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Daydream Portal")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Airtable
    AIRTABLE_API_KEY: str = Field(default="")
    AIRTABLE_BASE_ID: str = Field(default="")
    AIRTABLE_BASE_URL: str = Field(default="https://api.airtable.com/v0")
    AIRTABLE_TIMEOUT_SECONDS: int = Field(default=30)
    AIRTABLE_MAX_RETRIES: int = Field(default=6)
    AIRTABLE_EVENTS_TABLE: str = Field(default="events")
    AIRTABLE_ADMINS_TABLE: str = Field(default="admins")
    AIRTABLE_ATTENDEES_TABLE: str = Field(default="attendees")
    AIRTABLE_VENUES_TABLE: str = Field(default="venues")

    # Base de datos - Componentes separados
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    POSTGRES_DB: str = Field(default="daydream_portal")
    POSTGRES_USER: str = Field(default="daydream_user")
    POSTGRES_PASSWORD: str = Field(default="")

    # Base de datos - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=5)
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=30000)

    # Usuario de solo lectura (consultas ad-hoc / consola admin)
    POSTGRES_READONLY_USER: str = Field(default="readonly_user")
    POSTGRES_READONLY_PASSWORD: str = Field(default="")
    READONLY_DATABASE_URL: str = Field(default="")
    DB_READONLY_POOL_SIZE: int = Field(default=5)
    DB_READONLY_STATEMENT_TIMEOUT_MS: int = Field(default=15000)

    # Motor de sincronizacion Airtable -> PostgreSQL
    SYNC_ENABLED: bool = Field(default=True)
    SYNC_INTERVAL_SECONDS: float = Field(default=30.0)
    SYNC_RUN_ON_START: bool = Field(default=True)
    SYNC_BATCH_SIZE: int = Field(default=50)
    SYNC_ADMIN_BATCH_SIZE: int = Field(default=20)
    SYNC_FETCH_TIMEOUT_SECONDS: float = Field(default=30.0)
    SYNC_WRITE_TIMEOUT_SECONDS: float = Field(default=30.0)

    # Cache en memoria (segundos)
    CACHE_DEFAULT_TTL_SECONDS: float = Field(default=300.0)
    CACHE_ORGANIZER_EMAILS_TTL_SECONDS: float = Field(default=900.0)
    CACHE_EVENT_TTL_SECONDS: float = Field(default=120.0)
    CACHE_ADMIN_CHECK_TTL_SECONDS: float = Field(default=600.0)
    CACHE_ALL_EVENTS_TTL_SECONDS: float = Field(default=120.0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva (pool de escritura).
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @computed_field
    @property
    def effective_readonly_database_url(self) -> str:
        """URL del pool de solo lectura (mismo host/db, usuario restringido)."""
        if self.READONLY_DATABASE_URL:
            return self.READONLY_DATABASE_URL
        return (
            f"postgresql+psycopg://{self.POSTGRES_READONLY_USER}:{self.POSTGRES_READONLY_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()
