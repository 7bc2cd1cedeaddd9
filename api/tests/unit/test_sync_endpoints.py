"""
Tests de los endpoints HTTP (sync, eventos, health) sin lifespan:
los servicios se inyectan con dependency_overrides o app.state.
"""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from main import create_application
from portal.api.v1.dependencies.service_deps import (
    get_cache_service,
    get_event_use_cases,
    get_sync_service,
)
from portal.application.use_cases.event_use_cases import EventUseCases
from portal.domain.entities import Attendee, Event, SyncMetadataRecord, SyncResult
from portal.infrastructure.cache.cache_service import CacheService
from portal.shared.constants.portal_constants import SYNC_ALREADY_IN_PROGRESS

from fakes import FakeRecordReader


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def sync_service_mock() -> MagicMock:
    service = MagicMock()
    service.is_running.return_value = False
    service.get_sync_status = AsyncMock(return_value=[
        SyncMetadataRecord(
            table_name="events",
            last_sync_status="success",
            records_synced=1,
            errors_count=0,
            last_sync_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        ),
    ])
    service.get_sync_logs = AsyncMock(return_value=[])
    return service


@pytest.fixture
def app(sync_service_mock):
    application = create_application(with_lifespan=False)
    application.dependency_overrides[get_sync_service] = lambda: sync_service_mock
    yield application
    application.dependency_overrides.clear()


class TestSyncEndpoints:

    @pytest.mark.asyncio
    async def test_status(self, app, sync_service_mock) -> None:
        async with _client(app) as client:
            response = await client.get("/api/v1/sync/status")

        assert response.status_code == 200
        body = response.json()
        assert body["is_running"] is False
        assert body["tables"][0]["table_name"] == "events"
        assert body["tables"][0]["last_sync_status"] == "success"

    @pytest.mark.asyncio
    async def test_trigger_returns_result(self, app, sync_service_mock) -> None:
        sync_service_mock.perform_full_sync = AsyncMock(
            return_value=SyncResult(success=True, records_synced=2, errors=[], duration_ms=15)
        )

        async with _client(app) as client:
            response = await client.post("/api/v1/sync/trigger")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["records_synced"] == 2

    @pytest.mark.asyncio
    async def test_trigger_while_running_reports_contention(self, app, sync_service_mock) -> None:
        sync_service_mock.perform_full_sync = AsyncMock(
            return_value=SyncResult(
                success=False, records_synced=0, errors=[SYNC_ALREADY_IN_PROGRESS], duration_ms=0
            )
        )

        async with _client(app) as client:
            response = await client.post("/api/v1/sync/trigger")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["errors"] == ["Sync already in progress"]

    @pytest.mark.asyncio
    async def test_logs_pagination_params(self, app, sync_service_mock) -> None:
        async with _client(app) as client:
            response = await client.get("/api/v1/sync/logs", params={"limit": 5, "offset": 10})
            invalid = await client.get("/api/v1/sync/logs", params={"limit": 0})

        assert response.status_code == 200
        assert response.json() == {"limit": 5, "offset": 10, "logs": []}
        sync_service_mock.get_sync_logs.assert_awaited_once_with(limit=5, offset=10)
        assert invalid.status_code == 422

    @pytest.mark.asyncio
    async def test_cache_stats(self, app) -> None:
        cache = CacheService()
        cache.set("event:ev1", {"id": "ev1"}, ttl=60)
        app.dependency_overrides[get_cache_service] = lambda: cache

        async with _client(app) as client:
            response = await client.get("/api/v1/sync/cache")

        assert response.status_code == 200
        assert response.json()["size"] == 1
        assert response.json()["entries"][0]["key"] == "event:ev1"

    @pytest.mark.asyncio
    async def test_missing_service_is_503(self) -> None:
        application = create_application(with_lifespan=False)

        async with _client(application) as client:
            response = await client.get("/api/v1/sync/status")

        assert response.status_code == 503
        assert response.json()["error"] == "SERVICE_UNAVAILABLE"


class TestEventEndpoints:

    @pytest.mark.asyncio
    async def test_unknown_event_is_404(self, app) -> None:
        reader = MagicMock()
        reader.fetch_event_by_id = AsyncMock(return_value=None)
        app.dependency_overrides[get_event_use_cases] = lambda: EventUseCases(reader)

        async with _client(app) as client:
            response = await client.get("/api/v1/events/recNOPE")

        assert response.status_code == 404
        assert response.json()["error"] == "ENTITY_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_by_organizer(self, app) -> None:
        reader = MagicMock()
        reader.fetch_events_by_organizer = AsyncMock(
            return_value=[Event(id="ev1", email="a@x.com", event_name="Hack A")]
        )
        app.dependency_overrides[get_event_use_cases] = lambda: EventUseCases(reader)

        async with _client(app) as client:
            response = await client.get("/api/v1/events", params={"organizer": " a@x.com "})

        assert response.status_code == 200
        assert response.json()[0]["id"] == "ev1"
        assert response.json()[0]["triage_status"] == "pending"
        reader.fetch_events_by_organizer.assert_awaited_once_with("a@x.com")

    @pytest.mark.asyncio
    async def test_patch_rejects_computed_fields(self, app) -> None:
        app.dependency_overrides[get_event_use_cases] = lambda: EventUseCases(MagicMock())

        async with _client(app) as client:
            response = await client.patch("/api/v1/events/ev1", json={"event_name": "Nuevo"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_patch_updates_event(self, app) -> None:
        reader = MagicMock()
        reader.fetch_event_by_id = AsyncMock(return_value=Event(id="ev1", email="a@x.com"))
        reader.update_event = AsyncMock(return_value=Event(id="ev1", email="a@x.com", city="Paris"))
        app.dependency_overrides[get_event_use_cases] = lambda: EventUseCases(reader)

        async with _client(app) as client:
            response = await client.patch("/api/v1/events/ev1", json={"city": "Paris"})

        assert response.status_code == 200
        assert response.json()["city"] == "Paris"
        update = reader.update_event.await_args.args[1]
        assert update.changed_fields() == {"city": "Paris"}

    @pytest.mark.asyncio
    async def test_attendees_are_read_from_mirror(self, app, mirror, build_sync_service) -> None:
        await build_sync_service(FakeRecordReader(
            events=[Event(id="ev1", email="a@x.com")],
            attendees=[
                Attendee(id="at1", event="ev1", email="p@x.com", first_name="Ana"),
                Attendee(id="at2", event="ev1", email="q@x.com", deleted_in_cockpit=True),
            ],
        )).perform_full_sync()
        app.state.mirror = mirror
        app.state.reader = MagicMock()

        async with _client(app) as client:
            response = await client.get("/api/v1/events/ev1/attendees")
            with_deleted = await client.get(
                "/api/v1/events/ev1/attendees", params={"include_deleted": "true"}
            )
            missing = await client.get("/api/v1/events/evX/attendees")

        assert response.status_code == 200
        assert [a["airtable_id"] for a in response.json()] == ["at1"]
        assert len(with_deleted.json()) == 2
        assert missing.status_code == 404


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_mirror_and_sync(self, app, mirror, sync_service_mock) -> None:
        sync_service_mock.is_scheduled = True
        app.state.mirror = mirror
        app.state.sync_service = sync_service_mock

        async with _client(app) as client:
            response = await client.get("/api/v1/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["database"]["row_counts"]["sync_metadata"] == 4
        assert set(body["database"]["pools"]) == {"write", "readonly"}
        assert body["sync"] == {"enabled": True, "running": False, "scheduled": True}

    @pytest.mark.asyncio
    async def test_health_without_mirror_is_degraded(self) -> None:
        application = create_application(with_lifespan=False)

        async with _client(application) as client:
            response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["sync"]["enabled"] is False
