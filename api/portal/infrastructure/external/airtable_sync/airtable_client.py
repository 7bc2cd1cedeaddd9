"""
Cliente mínimo de Airtable REST API (sin SDKs externos).

Requisitos cubiertos:
- requests
- paginación por offset (se acumula la colección completa: todo-o-nada)
- rate-limit/backoff (429, 5xx, errores de red)
- lookup por id con "no encontrado" distinto de error de transporte
- PATCH de un record (camino de escritura del portal)

El cliente es síncrono; el código async lo usa vía asyncio.to_thread.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Iterable, Optional
from urllib.parse import quote

import requests

from portal.shared.exceptions.sync import AirtableApiError

from .types import AirtableRecord


@dataclass(frozen=True)
class AirtableCredentials:
    token: str
    base_id: str


def _escape_formula_value(value: str) -> str:
    return str(value).replace("\\", "\\\\").replace('"', '\\"')


def build_equals_formula(field_name: str, value: str) -> str:
    """
    Fórmula Airtable de igualdad exacta: {field} = "value".

    Las comillas dobles y backslashes del valor se escapan para no romper
    la fórmula.
    """
    return "{" + field_name + "} = \"" + _escape_formula_value(value) + "\""


def build_link_contains_formula(field_name: str, value: str) -> str:
    """
    Fórmula Airtable que filtra por un campo de links: FIND("value", ARRAYJOIN({field})).

    Es un filtro por substring: el caller debe verificar el match exacto.
    """
    return "FIND(\"" + _escape_formula_value(value) + "\", ARRAYJOIN({" + field_name + "}))"


class AirtableClient:
    """
    Cliente HTTP de Airtable.

    Importante:
    - No hace cast de tipos de campos: eso se decide en los mapeos.
    - list_records acumula todas las páginas antes de retornar.
    """

    def __init__(
        self,
        credentials: AirtableCredentials,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = "https://api.airtable.com/v0",
        timeout_s: int = 30,
        max_retries: int = 6,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
    ) -> None:
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._session = session or requests.Session()

    def _table_url(self, table_name: str) -> str:
        return f"{self._base_url}/{self._creds.base_id}/{quote(table_name, safe='')}"

    def iter_records(
        self,
        table_name: str,
        *,
        filter_formula: Optional[str] = None,
        sort: Optional[list[dict[str, str]]] = None,
        fields: Optional[list[str]] = None,
        max_records: Optional[int] = None,
        page_size: int = 100,
    ) -> Iterable[AirtableRecord]:
        """
        Itera registros de una tabla manejando la paginación por 'offset'.
        """
        url = self._table_url(table_name)
        offset: Optional[str] = None

        while True:
            query: list[tuple[str, Any]] = [("pageSize", page_size)]
            if filter_formula:
                query.append(("filterByFormula", filter_formula))
            if max_records:
                query.append(("maxRecords", max_records))
            if offset:
                query.append(("offset", offset))

            # Serialización manual de 'sort' para evitar "sort=field&sort=direction"
            for i, s in enumerate(sort or []):
                query.append((f"sort[{i}][field]", s["field"]))
                query.append((f"sort[{i}][direction]", s.get("direction", "asc")))

            for f in fields or []:
                query.append(("fields[]", f))

            payload = self._request_json("GET", url, query=query)

            for rec in payload.get("records") or []:
                rec_id = rec.get("id")
                if not rec_id:
                    # Caso raro; preferimos fallar temprano y visible.
                    raise AirtableApiError("Airtable devolvió un record sin 'id'", retryable=False)
                yield AirtableRecord(
                    record_id=rec_id,
                    fields=rec.get("fields") or {},
                    created_time=rec.get("createdTime"),
                )

            offset = payload.get("offset")
            if not offset:
                break

    def list_records(self, table_name: str, **kwargs: Any) -> list[AirtableRecord]:
        """Trae la colección completa (todas las páginas) o falla entera."""
        return list(self.iter_records(table_name, **kwargs))

    def get_record(self, table_name: str, record_id: str) -> Optional[AirtableRecord]:
        """
        Busca un record por id. Retorna None si Airtable responde 404.
        """
        url = f"{self._table_url(table_name)}/{record_id}"
        payload = self._request_json("GET", url, allow_not_found=True)
        if payload is None:
            return None
        return AirtableRecord(
            record_id=payload["id"],
            fields=payload.get("fields") or {},
            created_time=payload.get("createdTime"),
        )

    def update_record(self, table_name: str, record_id: str, fields: dict[str, Any]) -> AirtableRecord:
        """PATCH parcial de un record; retorna el record completo actualizado."""
        url = f"{self._table_url(table_name)}/{record_id}"
        payload = self._request_json("PATCH", url, json_body={"fields": fields, "typecast": True})
        return AirtableRecord(
            record_id=payload["id"],
            fields=payload.get("fields") or {},
            created_time=payload.get("createdTime"),
        )

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        query: Optional[list[tuple[str, Any]]] = None,
        json_body: Optional[dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[dict[str, Any]]:
        """
        Request HTTP con backoff para 429/5xx y errores de red.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial con jitter simple.
        - 5xx / red: exponencial con jitter.
        - 404 con allow_not_found: retorna None.
        - 4xx (no 429): error inmediato (config/auth mal).
        """
        headers = {
            "Authorization": f"Bearer {self._creds.token}",
            "Content-Type": "application/json",
        }

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    params=query,
                    json=json_body,
                    headers=headers,
                    timeout=self._timeout_s,
                )
            except requests.RequestException as e:
                if attempt >= self._max_retries:
                    raise AirtableApiError(
                        f"Airtable inalcanzable tras {attempt} reintentos: {e}"
                    ) from e
                time.sleep(self._backoff_seconds(attempt))
                continue

            if 200 <= resp.status_code < 300:
                return resp.json()

            if resp.status_code == 404 and allow_not_found:
                return None

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise AirtableApiError(
                        f"Airtable error {resp.status_code} tras {attempt} reintentos: {resp.text}",
                        status_code=resp.status_code,
                    )

                retry_after = resp.headers.get("Retry-After")
                if retry_after:
                    try:
                        sleep_s = float(retry_after)
                    except ValueError:
                        sleep_s = self._min_backoff_s
                else:
                    sleep_s = self._backoff_seconds(attempt)

                time.sleep(sleep_s)
                continue

            # Errores no recuperables
            raise AirtableApiError(
                f"Airtable request falló {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
                retryable=False,
            )

        raise AirtableApiError("Airtable: reintentos agotados")

    def _backoff_seconds(self, attempt: int) -> float:
        # Exponencial simple + jitter proporcional
        base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
        return base + (0.15 * base)
