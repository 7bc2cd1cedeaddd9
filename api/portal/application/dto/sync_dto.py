"""
DTOs del motor de sincronización (estado, resultado de corrida, historial).
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SyncStepDTO(BaseModel):
    table_name: str
    records_synced: int
    skipped: int
    errors: List[str]
    duration_ms: int


class SyncResultDTO(BaseModel):
    """
    Resultado de una corrida completa.

    Una corrida rechazada por contención se devuelve tal cual:
    success=false y errors=["Sync already in progress"].
    """

    success: bool
    records_synced: int
    errors: List[str]
    duration_ms: int
    skipped: int = 0
    steps: List[SyncStepDTO] = Field(default_factory=list)


class SyncMetadataDTO(BaseModel):
    table_name: str
    last_sync_at: Optional[datetime] = None
    last_sync_status: str
    records_synced: int
    errors_count: int
    skipped_count: int
    error_details: Optional[str] = None


class SyncStatusResponseDTO(BaseModel):
    is_running: bool
    tables: List[SyncMetadataDTO]


class SyncRunLogDTO(BaseModel):
    id: int
    table_name: str
    status: str
    records_synced: int
    errors_count: int
    skipped_count: int
    error_details: Optional[str] = None
    duration_ms: Optional[int] = None
    started_at: datetime


class SyncLogsResponseDTO(BaseModel):
    limit: int
    offset: int
    logs: List[SyncRunLogDTO]


class CacheEntryStatsDTO(BaseModel):
    key: str
    age: float
    ttl: float


class CacheStatsDTO(BaseModel):
    size: int
    entries: List[CacheEntryStatsDTO]
