"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from portal.infrastructure.database.models import (
    AdminModel,
    AttendeeModel,
    EventModel,
    SyncMetadataModel,
    SyncRunModel,
    VenueModel,
)
