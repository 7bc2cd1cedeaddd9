"""
Constantes del portal: estados de triage, estados de admin y entidades sincronizadas.
"""
from enum import Enum
from typing import Any, Optional


class TriageStatus(str, Enum):
    """Estado de triage de un evento (gobierna su visibilidad)."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    HOLD = "hold"
    ASK = "ask"
    MERGE_CONFIRMED = "merge_confirmed"


class UserStatus(str, Enum):
    """Estado de un admin. Solo ACTIVE y ADMIN otorgan acceso elevado."""
    ACTIVE = "active"
    ADMIN = "admin"
    INACTIVE = "inactive"


class SyncStatus(str, Enum):
    """Resultado de la ultima sincronizacion de una entidad."""
    PENDING = "pending"
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"


class SyncEntity(str, Enum):
    """
    Entidades sincronizadas, en el orden en que DEBEN ejecutarse.

    venues -> events -> admins -> attendees
    """
    VENUES = "venues"
    EVENTS = "events"
    ADMINS = "admins"
    ATTENDEES = "attendees"


# Orden del pipeline (no paralelizable entre pasos)
SYNC_ORDER = (
    SyncEntity.VENUES,
    SyncEntity.EVENTS,
    SyncEntity.ADMINS,
    SyncEntity.ATTENDEES,
)

ELEVATED_USER_STATUSES = frozenset({UserStatus.ACTIVE, UserStatus.ADMIN})

SYNC_ALREADY_IN_PROGRESS = "Sync already in progress"

# Airtable usa distintas grafias para el mismo estado
_TRIAGE_ALIASES = {
    "approved": TriageStatus.APPROVED,
    "denied": TriageStatus.REJECTED,
    "rejected": TriageStatus.REJECTED,
    "hold": TriageStatus.HOLD,
    "ask": TriageStatus.ASK,
    "merge confirmed": TriageStatus.MERGE_CONFIRMED,
    "merge_confirmed": TriageStatus.MERGE_CONFIRMED,
    "pending": TriageStatus.PENDING,
}


def normalize_triage_status(raw: Optional[Any]) -> TriageStatus:
    """
    Normaliza el triage_status de Airtable al enum del espejo.

    Vacio o desconocido -> pending.
    """
    if raw is None:
        return TriageStatus.PENDING
    key = str(raw).strip().lower()
    return _TRIAGE_ALIASES.get(key, TriageStatus.PENDING)


def normalize_user_status(raw: Optional[Any]) -> UserStatus:
    """Normaliza user_status; cualquier valor desconocido es inactive."""
    if raw is None:
        return UserStatus.INACTIVE
    try:
        return UserStatus(str(raw).strip().lower())
    except ValueError:
        return UserStatus.INACTIVE
