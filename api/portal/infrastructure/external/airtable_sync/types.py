"""
Tipos y utilidades puras para el pipeline Airtable -> Postgres.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    Airtable suele devolver ISO8601 con zona; aun así, normalizamos para
    comparar/almacenar de forma consistente.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class AirtableRecord:
    """Registro Airtable tal como llega de la API (id + mapa plano de fields)."""

    record_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    created_time: Optional[str] = None


Transform = Callable[[Any], Any]


@dataclass(frozen=True)
class FieldMapping:
    """
    Define el mapeo de un field de Airtable a un atributo del dominio.

    - airtable_field: nombre del field en Airtable
    - attribute: nombre del atributo en la entidad de dominio
    - transform: función opcional para transformar el valor leído
    - default: valor cuando el field no viene en el record
    - writable: si True, el portal puede escribirlo de vuelta en Airtable
    """

    airtable_field: str
    attribute: str
    transform: Optional[Transform] = None
    default: Any = None
    writable: bool = False


# ---------------------------------------------------------------------------
# Saneamiento de valores (lado lectura y lado espejo)
# ---------------------------------------------------------------------------

def sanitize_string(value: Any) -> Optional[str]:
    """Convierte a str recortado; None o vacío -> None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_bool(value: Any) -> bool:
    """Los checkbox de Airtable vienen ausentes cuando están desmarcados."""
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y", "checked"}
    return bool(value)


def parse_date(value: Any) -> Optional[date]:
    """
    Parsea fechas de Airtable ("2025-03-01" o ISO8601 con hora) a date.

    Valores no parseables -> None (el espejo guarda NULL, no rompe el batch).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def first_link(value: Any) -> Optional[str]:
    """
    Los linked records de Airtable llegan como lista de record ids.
    Nos quedamos con el primero (un asistente pertenece a un solo evento).
    """
    if isinstance(value, (list, tuple)):
        return sanitize_string(value[0]) if value else None
    return sanitize_string(value)
