"""
Cache read-through en memoria de proceso, con TTL por entrada.

Caracteristicas:
- Expiracion perezosa: una entrada vencida se elimina al leerla (no hay
  barrido en background). Claves que se escriben y nunca se leen ocupan
  memoria hasta clear().
- Invalidacion explicita tras escrituras: el cache se invalida, nunca se
  actualiza (no write-through). La siguiente lectura repuebla desde Airtable.
- Generacion por clave: delete/clear la incrementan. Una lectura remota que
  empezo antes de la invalidacion no puede repoblar la clave con el valor
  viejo (ver generation() y set_if_generation()).
- Estado por proceso: varias instancias del servidor mantienen caches
  independientes (ventanas de staleness por instancia).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


@dataclass(frozen=True)
class CacheTTLs:
    """TTLs (segundos) por tipo de dato."""

    default: float = 5 * 60
    organizer_emails: float = 15 * 60  # casi nunca cambia
    event: float = 2 * 60  # cambia seguido
    admin_check: float = 10 * 60
    all_events: float = 2 * 60


_MISSING = object()

ALL_EVENTS_CACHE_KEY = "all-events"

# (epoca de clear(), generacion de la clave)
Generation = Tuple[int, int]


class CacheService:
    """
    Cache clave/valor con TTL.

    `clock` es inyectable (segundos monotónicos) para poder testear la
    expiracion sin dormir.
    """

    def __init__(
        self,
        ttls: Optional[CacheTTLs] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttls = ttls or CacheTTLs()
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    @property
    def ttls(self) -> CacheTTLs:
        return self._ttls

    def _entry(self, data: Any, ttl: Optional[float]) -> CacheEntry:
        return CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=ttl if ttl is not None else self._ttls.default,
        )

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        entry = self._entry(data, ttl)
        with self._lock:
            self._entries[key] = entry

    def generation(self, key: str) -> Generation:
        """Marca a capturar antes de una lectura remota cuyo resultado se va a cachear."""
        with self._lock:
            return self._epoch, self._generations.get(key, 0)

    def set_if_generation(
        self,
        key: str,
        generation: Generation,
        data: Any,
        ttl: Optional[float] = None,
    ) -> bool:
        """
        Escribe solo si la clave no fue invalidada desde que se capturo
        `generation`. Retorna False si la escritura se descarto.
        """
        entry = self._entry(data, ttl)
        with self._lock:
            if (self._epoch, self._generations.get(key, 0)) == generation:
                self._entries[key] = entry
                return True
        logger.debug(f"Escritura de cache descartada para {key}: clave invalidada durante la lectura")
        return False

    def lookup(self, key: str, default: Any = _MISSING) -> Any:
        """
        Retorna el valor o `default` si no existe / expiró.

        A diferencia de get(), distingue un valor cacheado falsy (False, [])
        de un miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return default
            return entry.data

    def get(self, key: str) -> Any:
        """Retorna el valor o None en miss."""
        return self.lookup(key, None)

    def contains(self, key: str) -> bool:
        return self.lookup(key) is not _MISSING

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()
            self._epoch += 1

    # ------------------------------------------------------------------
    # Claves
    # ------------------------------------------------------------------

    @staticmethod
    def events_cache_key(organizer_email: str) -> str:
        return f"events:organizer:{organizer_email}"

    @staticmethod
    def event_cache_key(event_id: str) -> str:
        return f"event:{event_id}"

    @staticmethod
    def organizer_emails_cache_key() -> str:
        return "organizer-emails"

    @staticmethod
    def admin_check_cache_key(email: str) -> str:
        return f"admin-check:{email}"

    # ------------------------------------------------------------------
    # Setters con TTL por tipo de dato
    # ------------------------------------------------------------------

    # Con `generation` la escritura es condicional (set_if_generation)
    def _put(self, key: str, data: Any, ttl: float, generation: Optional[Generation]) -> None:
        if generation is None:
            self.set(key, data, ttl)
        else:
            self.set_if_generation(key, generation, data, ttl)

    def cache_organizer_emails(self, emails: List[str], generation: Optional[Generation] = None) -> None:
        self._put(self.organizer_emails_cache_key(), emails, self._ttls.organizer_emails, generation)

    def cache_events_by_organizer(
        self, organizer_email: str, events: List[Any], generation: Optional[Generation] = None
    ) -> None:
        self._put(self.events_cache_key(organizer_email), events, self._ttls.event, generation)

    def cache_event(self, event_id: str, event: Any, generation: Optional[Generation] = None) -> None:
        self._put(self.event_cache_key(event_id), event, self._ttls.event, generation)

    def cache_all_events(self, events: List[Any], generation: Optional[Generation] = None) -> None:
        self._put(ALL_EVENTS_CACHE_KEY, events, self._ttls.all_events, generation)

    def cache_admin_check(self, email: str, is_admin: bool, generation: Optional[Generation] = None) -> None:
        self._put(self.admin_check_cache_key(email), is_admin, self._ttls.admin_check, generation)

    def invalidate_event_caches(self, event_id: str, organizer_email: Optional[str] = None) -> None:
        """Invalida las entradas afectadas por una escritura sobre un evento."""
        self.delete(self.event_cache_key(event_id))
        self.delete(ALL_EVENTS_CACHE_KEY)
        if organizer_email:
            self.delete(self.events_cache_key(organizer_email))
        logger.debug(f"Cache invalidado para evento {event_id} (organizador: {organizer_email})")

    def get_stats(self) -> Dict[str, Any]:
        """Estadisticas para monitoreo (incluye entradas vencidas aun no leidas)."""
        now = self._clock()
        with self._lock:
            entries = [
                {"key": key, "age": now - entry.timestamp, "ttl": entry.ttl}
                for key, entry in self._entries.items()
            ]
        return {"size": len(entries), "entries": entries}
