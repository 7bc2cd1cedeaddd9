"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .event_dto import AttendeeResponseDTO, EventResponseDTO, EventUpdateDTO
from .sync_dto import (
    CacheStatsDTO,
    SyncLogsResponseDTO,
    SyncMetadataDTO,
    SyncResultDTO,
    SyncRunLogDTO,
    SyncStatusResponseDTO,
)

__all__ = [
    "AttendeeResponseDTO",
    "EventResponseDTO",
    "EventUpdateDTO",
    "CacheStatsDTO",
    "SyncLogsResponseDTO",
    "SyncMetadataDTO",
    "SyncResultDTO",
    "SyncRunLogDTO",
    "SyncStatusResponseDTO",
]
