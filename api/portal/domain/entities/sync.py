"""
Resultados del motor de sincronizacion y fila del ledger de metadata.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class StepResult:
    """Resultado de sincronizar un tipo de entidad (un paso del pipeline)."""

    table_name: str
    records_synced: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class SyncResult:
    """
    Resultado publico de una corrida completa.

    success es True solo si no hubo errores en NINGUNO de los pasos.
    """

    success: bool
    records_synced: int
    errors: List[str]
    duration_ms: int
    skipped: int = 0
    steps: List[StepResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "records_synced": self.records_synced,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
            "skipped": self.skipped,
            "steps": [
                {
                    "table_name": s.table_name,
                    "records_synced": s.records_synced,
                    "skipped": s.skipped,
                    "errors": list(s.errors),
                    "duration_ms": s.duration_ms,
                }
                for s in self.steps
            ],
        }


@dataclass
class SyncMetadataRecord:
    """Fila actual del ledger para un tipo de entidad."""

    table_name: str
    last_sync_status: str
    records_synced: int
    errors_count: int
    skipped_count: int = 0
    error_details: Optional[str] = None
    last_sync_at: Optional[datetime] = None
