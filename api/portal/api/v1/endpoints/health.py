"""
Health check del servicio: base espejo y motor de sincronizacion.
"""
from typing import Any, Dict

from fastapi import APIRouter, Request

from portal.core.config import settings
from portal.infrastructure.repositories.mirror_query_repository import MirrorQueryRepository


router = APIRouter(tags=["Health"])


@router.get("/health", summary="Estado del servicio")
async def health(request: Request) -> Dict[str, Any]:
    """
    Liveness + estado de dependencias.

    Siempre responde 200: el detalle de cada dependencia va en el cuerpo.
    """
    mirror = getattr(request.app.state, "mirror", None)
    sync_service = getattr(request.app.state, "sync_service", None)

    database: Dict[str, Any] = {"initialized": False, "healthy": False}
    if mirror is not None and mirror.is_initialized():
        database["initialized"] = True
        database["healthy"] = await mirror.health_check()
        database["pools"] = mirror.pool_info()
        if database["healthy"]:
            async with mirror.readonly_session_factory() as session:
                database["row_counts"] = await MirrorQueryRepository(session).count_rows()

    return {
        "status": "healthy" if database["healthy"] else "degraded",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": database,
        "sync": {
            "enabled": sync_service is not None,
            "running": sync_service.is_running() if sync_service is not None else False,
            "scheduled": sync_service.is_scheduled if sync_service is not None else False,
        },
    }
