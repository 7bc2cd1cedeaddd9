"""
Excepciones de integración: Airtable (fuente) y PostgreSQL espejo (destino).

Ninguna de estas excepciones debe escapar de SyncService.perform_full_sync():
el orquestador las captura por batch / por paso y las reporta en el resultado.
"""
from typing import Optional

from portal.shared.exceptions.base import AppException


class AirtableApiError(AppException):
    """Error de transporte hablando con la API REST de Airtable."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(
            message=message,
            status_code=502,
            error_code="AIRTABLE_ERROR",
            details={"upstream_status": status_code},
        )
        self.upstream_status = status_code
        self.retryable = retryable


class SourceReadError(AppException):
    """
    Fallo leyendo una colección de Airtable.

    Se etiqueta con el tipo de entidad y la operación para que el error
    registrado en sync_metadata sea accionable. Siempre es reintentable:
    el siguiente tick del scheduler vuelve a intentarlo.
    """

    def __init__(self, entity: str, operation: str, cause: Exception):
        super().__init__(
            message=f"[{entity}.{operation}] {cause}",
            status_code=502,
            error_code="SOURCE_READ_ERROR",
            details={"entity": entity, "operation": operation},
        )
        self.entity = entity
        self.operation = operation
        self.retryable = True
        self.__cause__ = cause


class MirrorUnavailableError(AppException):
    """La base espejo no está inicializada o no responde al health check."""

    def __init__(self, message: str = "Database service not initialized"):
        super().__init__(
            message=message,
            status_code=503,
            error_code="MIRROR_UNAVAILABLE",
        )


class SyncConfigError(AppException):
    """Error de configuración del pipeline."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=500, error_code="SYNC_CONFIG_ERROR")
