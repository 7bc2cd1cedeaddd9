"""
Pipeline de sincronización one-way: Airtable -> PostgreSQL (espejo).

Airtable es la fuente de verdad; el espejo relacional existe para consultas
rápidas y analítica. El pipeline corre dentro del proceso del API, disparado
por un timer periódico o manualmente (endpoint / script).

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin duplicar datos (upsert por airtable_id).
- Orden: venues -> events -> admins -> attendees (los asistentes referencian eventos).
- Aislamiento de fallos: un batch o un paso que falla no aborta el resto.
- Una sola corrida activa por proceso.
"""
