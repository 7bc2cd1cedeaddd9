"""
Tests del lector de Airtable con cache read-through.
"""
from __future__ import annotations

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from portal.domain.entities import EventUpdate
from portal.infrastructure.cache.cache_service import CacheService
from portal.infrastructure.external.airtable_sync.record_reader import (
    AirtableRecordReader,
    AirtableTables,
)
from portal.infrastructure.external.airtable_sync.types import AirtableRecord
from portal.shared.exceptions.sync import AirtableApiError, SourceReadError


def _event(record_id: str, email: str = "a@x.com", name: str = "Hack") -> AirtableRecord:
    return AirtableRecord(record_id=record_id, fields={"email": email, "event_name": name})


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def cache() -> CacheService:
    return CacheService()


class TestCachedReads:

    @pytest.mark.asyncio
    async def test_events_by_organizer_is_served_from_cache(self, client, cache) -> None:
        client.list_records.return_value = [_event("ev1")]
        reader = AirtableRecordReader(client, cache=cache)

        first = await reader.fetch_events_by_organizer("a@x.com")
        second = await reader.fetch_events_by_organizer("a@x.com")

        assert [e.id for e in first] == ["ev1"]
        assert second == first
        assert client.list_records.call_count == 1
        kwargs = client.list_records.call_args.kwargs
        assert kwargs["filter_formula"] == '{email} = "a@x.com"'
        assert kwargs["sort"] == [{"field": "event_name", "direction": "asc"}]

    @pytest.mark.asyncio
    async def test_uncached_reader_always_hits_source(self, client, cache) -> None:
        client.list_records.return_value = [_event("ev1")]
        reader = AirtableRecordReader(client, cache=cache).uncached()

        await reader.fetch_all_events()
        await reader.fetch_all_events()

        assert reader.is_cached is False
        assert client.list_records.call_count == 2

    @pytest.mark.asyncio
    async def test_update_invalidates_and_next_read_repopulates(self, client, cache) -> None:
        client.get_record.side_effect = [
            _event("ev1", name="Antes"),
            _event("ev1", name="Despues"),
        ]
        client.update_record.return_value = AirtableRecord(
            "ev1", {"email": "a@x.com", "event_name": "Despues", "city": "Paris"}
        )
        reader = AirtableRecordReader(client, cache=cache)
        cache.cache_events_by_organizer("a@x.com", [])

        before = await reader.fetch_event_by_id("ev1")
        updated = await reader.update_event("ev1", EventUpdate(city="Paris"))
        after = await reader.fetch_event_by_id("ev1")

        assert before.event_name == "Antes"
        assert updated.city == "Paris"
        assert after.event_name == "Despues"
        assert client.get_record.call_count == 2
        client.update_record.assert_called_once_with("events", "ev1", {"city": "Paris"})
        assert cache.get(CacheService.events_cache_key("a@x.com")) is None

    @pytest.mark.asyncio
    async def test_read_in_flight_during_update_is_not_cached(self, client, cache) -> None:
        started = threading.Event()
        release = threading.Event()

        def slow_get_record(table, record_id):
            started.set()
            release.wait(timeout=5)
            return _event("ev1", name="Antes")

        client.get_record.side_effect = slow_get_record
        client.update_record.return_value = AirtableRecord(
            "ev1", {"email": "a@x.com", "event_name": "Despues"}
        )
        reader = AirtableRecordReader(client, cache=cache)

        slow_read = asyncio.create_task(reader.fetch_event_by_id("ev1"))
        assert await asyncio.to_thread(started.wait, 5) is True
        await reader.update_event("ev1", EventUpdate(city="Paris"))
        release.set()
        returned = await slow_read

        assert returned.event_name == "Antes"
        assert cache.contains(CacheService.event_cache_key("ev1")) is False

    @pytest.mark.asyncio
    async def test_missing_event_is_none_and_not_cached(self, client, cache) -> None:
        client.get_record.return_value = None
        reader = AirtableRecordReader(client, cache=cache)

        assert await reader.fetch_event_by_id("nope") is None
        assert await reader.fetch_event_by_id("nope") is None
        assert client.get_record.call_count == 2

    @pytest.mark.asyncio
    async def test_organizer_emails_are_unique(self, client, cache) -> None:
        client.list_records.return_value = [
            _event("ev1", email="a@x.com"),
            _event("ev2", email="b@x.com"),
            _event("ev3", email="a@x.com"),
            AirtableRecord("ev4", {}),
        ]
        reader = AirtableRecordReader(client, cache=cache)

        assert await reader.fetch_all_organizer_emails() == ["a@x.com", "b@x.com"]
        assert client.list_records.call_args.kwargs["fields"] == ["email"]


class TestAdminCheck:

    @pytest.mark.asyncio
    async def test_elevated_admin(self, client, cache) -> None:
        client.list_records.return_value = [
            AirtableRecord("adm1", {"email": "x@y.com", "user_status": "admin"})
        ]
        reader = AirtableRecordReader(client, cache=cache)

        assert await reader.is_admin("x@y.com") is True
        assert await reader.is_admin("x@y.com") is True
        assert client.list_records.call_count == 1
        assert client.list_records.call_args.kwargs["max_records"] == 1

    @pytest.mark.asyncio
    async def test_negative_result_is_cached(self, client, cache) -> None:
        client.list_records.return_value = []
        reader = AirtableRecordReader(client, cache=cache)

        assert await reader.is_admin("nadie@y.com") is False
        assert await reader.is_admin("nadie@y.com") is False
        assert client.list_records.call_count == 1

    @pytest.mark.asyncio
    async def test_transport_error_denies_access(self, client, cache) -> None:
        client.list_records.side_effect = AirtableApiError("boom")
        reader = AirtableRecordReader(client, cache=cache)

        assert await reader.is_admin("x@y.com") is False
        # El error no se cachea
        assert cache.get_stats()["size"] == 0


class TestErrorsAndTables:

    @pytest.mark.asyncio
    async def test_transport_error_is_tagged(self, client) -> None:
        client.list_records.side_effect = AirtableApiError("Airtable error 503")
        reader = AirtableRecordReader(client)

        with pytest.raises(SourceReadError) as exc_info:
            await reader.fetch_all_attendees()

        assert exc_info.value.entity == "attendees"
        assert exc_info.value.operation == "fetch_all_attendees"
        assert "503" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_custom_table_names(self, client) -> None:
        client.list_records.return_value = []
        reader = AirtableRecordReader(client, tables=AirtableTables(venues="Venues (prod)"))

        await reader.fetch_all_venues()

        client.list_records.assert_called_once_with("Venues (prod)")

    @pytest.mark.asyncio
    async def test_attendees_for_event_filters_in_airtable(self, client) -> None:
        # "ev1" es substring de "ev10": el match exacto se confirma localmente
        client.list_records.return_value = [
            AirtableRecord("at1", {"email": "p@x.com", "event": ["ev1"]}),
            AirtableRecord("at2", {"email": "q@x.com", "event": ["ev10"]}),
        ]
        reader = AirtableRecordReader(client)

        attendees = await reader.fetch_attendees_for_event("ev1")

        assert [a.id for a in attendees] == ["at1"]
        assert client.list_records.call_args.kwargs["filter_formula"] == 'FIND("ev1", ARRAYJOIN({event}))'
