"""
Router principal de la API v1.
Agrupa todos los endpoints de la version 1.
"""
from fastapi import APIRouter

from portal.api.v1.endpoints import events, health, sync


# Router principal de la API v1
api_router = APIRouter(prefix="/v1")

# Incluir routers de endpoints especificos
api_router.include_router(health.router)
api_router.include_router(sync.router)
api_router.include_router(events.router)
