"""
Tests del motor de sincronización Airtable -> espejo.

Se ejecuta el pipeline real (repositorios SQLAlchemy sobre SQLite en memoria)
contra un lector falso, y se verifica el espejo y el ledger resultantes.
"""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from portal.domain.entities import Admin, Attendee, Event, Venue
from portal.infrastructure.database.models import (
    AdminModel,
    AttendeeModel,
    EventModel,
    VenueModel,
)
from portal.infrastructure.external.airtable_sync.pg_repository import (
    MirrorSyncRepository,
    SyncMetadataRepository,
)
from portal.infrastructure.external.airtable_sync.sync_service import SYNC_JOB_ID, SyncService
from portal.shared.constants.portal_constants import SYNC_ALREADY_IN_PROGRESS, UserStatus
from portal.shared.exceptions.sync import SourceReadError

from fakes import FakeRecordReader


async def _rows(mirror, model) -> List[Dict[str, Any]]:
    async with mirror.session_factory() as session:
        result = await session.execute(select(model).order_by(model.airtable_id))
        return [
            {c.name: getattr(m, c.name) for c in model.__table__.columns}
            for m in result.scalars().all()
        ]


async def _ledger(mirror) -> Dict[str, Any]:
    records = await SyncMetadataRepository(mirror.session_factory).get_sync_status()
    return {r.table_name: r for r in records}


class FailingBatchRepository(MirrorSyncRepository):
    """Hace fallar el batch N (0-based) de una tabla concreta."""

    def __init__(self, session_factory, table_name: str, failing_call: int) -> None:
        super().__init__(session_factory)
        self.table_name = table_name
        self.failing_call = failing_call
        self.calls = 0

    async def upsert_rows(self, spec, rows, synced_at=None) -> int:
        if spec.table_name == self.table_name:
            call = self.calls
            self.calls += 1
            if call == self.failing_call:
                raise RuntimeError("connection reset by peer")
        return await super().upsert_rows(spec, rows, synced_at=synced_at)


# ---------------------------------------------------------------------------
# Escenarios concretos
# ---------------------------------------------------------------------------

class TestConcreteScenarios:
    """Escenarios de extremo a extremo sobre el espejo."""

    @pytest.mark.asyncio
    async def test_event_and_attendee_are_mirrored(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[Event(id="ev1", email="a@x.com", event_name="Hack A")],
            attendees=[Attendee(id="at1", event="ev1", email="p@x.com")],
        )
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        assert result.success is True
        assert result.errors == []
        assert result.records_synced == 2

        events = await _rows(mirror, EventModel)
        assert [e["airtable_id"] for e in events] == ["ev1"]
        assert events[0]["event_name"] == "Hack A"
        assert events[0]["triage_status"] == "pending"

        attendees = await _rows(mirror, AttendeeModel)
        assert len(attendees) == 1
        assert attendees[0]["airtable_id"] == "at1"
        assert attendees[0]["event_airtable_id"] == "ev1"

        ledger = await _ledger(mirror)
        assert ledger["events"].last_sync_status == "success"
        assert ledger["events"].records_synced == 1
        assert ledger["events"].errors_count == 0
        assert ledger["attendees"].last_sync_status == "success"
        assert ledger["attendees"].records_synced == 1
        assert ledger["attendees"].errors_count == 0

    @pytest.mark.asyncio
    async def test_attendee_with_unknown_event_is_skipped_not_errored(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[Event(id="ev1", email="a@x.com", event_name="Hack A")],
            attendees=[Attendee(id="at2", event="ev_missing", email="q@x.com")],
        )
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        assert result.success is True
        assert result.skipped == 1
        assert await _rows(mirror, AttendeeModel) == []

        attendees = (await _ledger(mirror))["attendees"]
        assert attendees.records_synced == 0
        assert attendees.errors_count == 0
        assert attendees.skipped_count == 1
        assert attendees.last_sync_status == "success"

    @pytest.mark.asyncio
    async def test_all_entity_types_are_mirrored(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            venues=[Venue(id="ven1", venue_name="Main Hall", event_name="Hack A", zip_code=" 10001 ")],
            events=[Event(id="ev1", email="a@x.com", event_name="Hack A", start_date="2025-03-01")],
            admins=[Admin(id="adm1", email="boss@x.com", user_status=UserStatus.ADMIN)],
        )
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        assert result.success is True
        venues = await _rows(mirror, VenueModel)
        assert venues[0]["zip_code"] == "10001"
        admins = await _rows(mirror, AdminModel)
        assert admins[0]["user_status"] == "admin"
        events = await _rows(mirror, EventModel)
        assert str(events[0]["start_date"]) == "2025-03-01"


# ---------------------------------------------------------------------------
# Propiedades del pipeline
# ---------------------------------------------------------------------------

class TestIdempotence:

    @pytest.mark.asyncio
    async def test_second_run_produces_same_rows(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[
                Event(id="ev1", email="a@x.com", event_name="Hack A"),
                Event(id="ev2", email="b@x.com", event_name="Hack B", lat=40.7, long=-74.0),
            ],
            attendees=[Attendee(id="at1", event="ev1", email="p@x.com", scanned_in=True)],
        )
        service = build_sync_service(reader)

        await service.perform_full_sync()
        first_events = await _rows(mirror, EventModel)
        first_attendees = await _rows(mirror, AttendeeModel)

        await service.perform_full_sync()
        second_events = await _rows(mirror, EventModel)
        second_attendees = await _rows(mirror, AttendeeModel)

        def strip(rows):
            return [{k: v for k, v in r.items() if k != "synced_at"} for r in rows]

        assert len(second_events) == 2
        assert len(second_attendees) == 1
        assert strip(first_events) == strip(second_events)
        assert strip(first_attendees) == strip(second_attendees)

    @pytest.mark.asyncio
    async def test_upsert_overwrites_changed_source_values(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(events=[Event(id="ev1", email="a@x.com", event_name="Old name")])
        service = build_sync_service(reader)
        await service.perform_full_sync()

        reader.collections["events"] = [Event(id="ev1", email="a@x.com", event_name="New name")]
        await service.perform_full_sync()

        events = await _rows(mirror, EventModel)
        assert len(events) == 1
        assert events[0]["event_name"] == "New name"

    @pytest.mark.asyncio
    async def test_duplicate_ids_in_one_run_last_wins(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[
                Event(id="ev1", email="a@x.com", event_name="First"),
                Event(id="ev1", email="a@x.com", event_name="Second"),
            ],
        )
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        assert result.success is True
        events = await _rows(mirror, EventModel)
        assert [e["event_name"] for e in events] == ["Second"]
        assert (await _ledger(mirror))["events"].records_synced == 1


class TestOrdering:

    @pytest.mark.asyncio
    async def test_steps_run_in_dependency_order(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader()
        service = build_sync_service(reader)

        await service.perform_full_sync()

        assert reader.calls == ["venues", "events", "admins", "attendees"]

    @pytest.mark.asyncio
    async def test_attendee_dropped_when_events_fail_then_inserted(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[Event(id="ev1", email="a@x.com", event_name="Hack A")],
            attendees=[Attendee(id="at1", event="ev1", email="p@x.com")],
        )
        reader.failures["events"] = SourceReadError("events", "fetch_all_events", RuntimeError("503"))
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        assert result.success is False
        assert await _rows(mirror, AttendeeModel) == []
        ledger = await _ledger(mirror)
        assert ledger["events"].errors_count == 1
        assert ledger["events"].last_sync_status == "partial_failure"
        assert ledger["attendees"].skipped_count == 1

        reader.failures.clear()
        result = await service.perform_full_sync()

        assert result.success is True
        attendees = await _rows(mirror, AttendeeModel)
        assert [a["airtable_id"] for a in attendees] == ["at1"]


class TestValidationFiltering:

    @pytest.mark.asyncio
    async def test_events_without_email_are_not_mirrored(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[
                Event(id="ev1", email="a@x.com", event_name="Valid"),
                Event(id="ev2", email=None, event_name="No email"),
                Event(id="ev3", email="   ", event_name="Blank email"),
            ],
        )
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        events = await _rows(mirror, EventModel)
        assert [e["airtable_id"] for e in events] == ["ev1"]
        ledger = await _ledger(mirror)
        assert ledger["events"].skipped_count == 2
        assert ledger["events"].errors_count == 0
        assert result.skipped == 2

    @pytest.mark.asyncio
    async def test_attendees_without_email_or_event_are_skipped(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[Event(id="ev1", email="a@x.com")],
            attendees=[
                Attendee(id="at1", event="ev1", email=None),
                Attendee(id="at2", event=None, email="p@x.com"),
                Attendee(id="at3", event="ev1", email="ok@x.com"),
            ],
        )
        service = build_sync_service(reader)

        await service.perform_full_sync()

        attendees = await _rows(mirror, AttendeeModel)
        assert [a["airtable_id"] for a in attendees] == ["at3"]
        assert (await _ledger(mirror))["attendees"].skipped_count == 2

    @pytest.mark.asyncio
    async def test_admin_without_id_falls_back_to_email(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            admins=[
                Admin(id=None, email="x@y.com", user_status=UserStatus.ACTIVE),
                Admin(id="adm2", email=None),
            ],
        )
        service = build_sync_service(reader)

        await service.perform_full_sync()

        admins = await _rows(mirror, AdminModel)
        assert [a["airtable_id"] for a in admins] == ["x@y.com"]
        assert (await _ledger(mirror))["admins"].skipped_count == 1


class TestPartialFailureIsolation:

    @pytest.mark.asyncio
    async def test_failing_attendee_step_keeps_previous_steps(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            venues=[Venue(id="ven1", venue_name="Hall")],
            events=[Event(id="ev1", email="a@x.com")],
        )
        reader.failures["attendees"] = SourceReadError(
            "attendees", "fetch_all_attendees", RuntimeError("boom")
        )
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        assert result.success is False
        assert len(result.errors) == 1
        assert "attendees" in result.errors[0]
        assert result.records_synced == 2
        assert len(await _rows(mirror, VenueModel)) == 1
        assert len(await _rows(mirror, EventModel)) == 1
        assert (await _ledger(mirror))["attendees"].last_sync_status == "partial_failure"

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_abort_step(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(
            events=[Event(id=f"ev{i}", email=f"o{i}@x.com") for i in range(5)],
        )
        repo = FailingBatchRepository(mirror.session_factory, "events", failing_call=1)
        service = build_sync_service(reader, batch_size=2, mirror_repo=repo)

        result = await service.perform_full_sync()

        assert result.success is False
        assert result.errors == [
            "Batch sync failed for events 2-4: connection reset by peer"
        ]
        events = await _rows(mirror, EventModel)
        assert [e["airtable_id"] for e in events] == ["ev0", "ev1", "ev4"]
        ledger = await _ledger(mirror)
        assert ledger["events"].records_synced == 3
        assert ledger["events"].errors_count == 1
        assert ledger["events"].last_sync_status == "partial_failure"
        assert "connection reset by peer" in ledger["events"].error_details

    @pytest.mark.asyncio
    async def test_fetch_timeout_is_reported_and_pipeline_continues(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(events=[Event(id="ev1", email="a@x.com")])
        reader.delays["admins"] = 0.5
        service = build_sync_service(reader, fetch_timeout_s=0.05)

        result = await service.perform_full_sync()

        assert result.success is False
        assert any("admins" in e and "timed out" in e for e in result.errors)
        assert reader.calls == ["venues", "events", "admins", "attendees"]
        assert len(await _rows(mirror, EventModel)) == 1


class TestPreflight:

    @pytest.mark.asyncio
    async def test_unreachable_uninitialized_mirror_aborts_without_fetching(self) -> None:
        reader = FakeRecordReader(events=[Event(id="ev1", email="a@x.com")])
        mirror = MagicMock()
        mirror.is_initialized.return_value = False
        mirror.init_db = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))
        service = SyncService(
            reader=reader,
            mirror=mirror,
            mirror_repo=AsyncMock(),
            metadata_repo=AsyncMock(),
        )

        result = await service.perform_full_sync()

        assert result.success is False
        assert result.errors == ["Database service not initialized"]
        assert reader.calls == []
        assert service.is_running() is False
        mirror.init_db.assert_awaited_once_with(create_schema=False)

    @pytest.mark.asyncio
    async def test_mirror_down_at_startup_recovers_on_next_run(self, mirror, build_sync_service) -> None:
        # El arranque no pudo inicializar la base, que luego vuelve a estar disponible
        mirror._initialized = False
        reader = FakeRecordReader(events=[Event(id="ev1", email="a@x.com")])
        service = build_sync_service(reader)

        result = await service.perform_full_sync()

        assert result.success is True
        assert mirror.is_initialized() is True
        assert reader.calls == ["venues", "events", "admins", "attendees"]
        async with mirror.session_factory() as session:
            ids = (await session.execute(select(EventModel.airtable_id))).scalars().all()
        assert ids == ["ev1"]

    @pytest.mark.asyncio
    async def test_failed_health_check_aborts(self) -> None:
        reader = FakeRecordReader()
        mirror = MagicMock()
        mirror.is_initialized.return_value = True
        mirror.health_check = AsyncMock(return_value=False)
        service = SyncService(
            reader=reader,
            mirror=mirror,
            mirror_repo=AsyncMock(),
            metadata_repo=AsyncMock(),
        )

        result = await service.perform_full_sync()

        assert result.errors == ["Database health check failed"]
        assert reader.calls == []


# ---------------------------------------------------------------------------
# Concurrencia y ciclo de vida
# ---------------------------------------------------------------------------

class TestReentrancy:

    @pytest.mark.asyncio
    async def test_second_call_while_running_is_rejected(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader(events=[Event(id="ev1", email="a@x.com")])
        reader.delays["venues"] = 0.1
        service = build_sync_service(reader)

        first = asyncio.create_task(service.perform_full_sync())
        await asyncio.sleep(0.02)

        assert service.is_running() is True
        second = await service.perform_full_sync()

        assert second.success is False
        assert second.errors == [SYNC_ALREADY_IN_PROGRESS]
        assert second.records_synced == 0
        assert second.duration_ms == 0

        first_result = await first
        assert first_result.success is True
        assert service.is_running() is False
        assert reader.calls.count("venues") == 1

    @pytest.mark.asyncio
    async def test_concurrent_calls_start_a_single_pipeline(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader()
        service = build_sync_service(reader)

        results = await asyncio.gather(service.perform_full_sync(), service.perform_full_sync())

        rejected = [r for r in results if r.errors == [SYNC_ALREADY_IN_PROGRESS]]
        assert len(rejected) == 1
        assert reader.calls.count("events") == 1

    @pytest.mark.asyncio
    async def test_flag_is_cleared_after_unexpected_error(self) -> None:
        reader = FakeRecordReader()
        mirror = MagicMock()
        mirror.is_initialized.side_effect = RuntimeError("pool exploded")
        service = SyncService(
            reader=reader,
            mirror=mirror,
            mirror_repo=AsyncMock(),
            metadata_repo=AsyncMock(),
        )

        result = await service.perform_full_sync()

        assert result.success is False
        assert "pool exploded" in result.errors[0]
        assert service.is_running() is False


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_constructor_does_no_io(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader()
        service = build_sync_service(reader)

        assert reader.calls == []
        assert service.is_scheduled is False
        assert service.is_running() is False

    @pytest.mark.asyncio
    async def test_periodic_sync_runs_and_stops(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader()
        service = build_sync_service(reader, interval_s=60, run_on_start=True)

        service.start_periodic_sync()
        service.start_periodic_sync()  # idempotente
        for _ in range(200):
            if "attendees" in reader.calls and not service.is_running():
                break
            await asyncio.sleep(0.01)
        await service.stop_periodic_sync()

        assert "venues" in reader.calls
        assert service.is_scheduled is False
        assert service.is_running() is False

    @pytest.mark.asyncio
    async def test_job_is_registered_on_interval_trigger(self, mirror, build_sync_service) -> None:
        service = build_sync_service(FakeRecordReader(), interval_s=45)

        service.start_periodic_sync()
        job = service.scheduler.get_job(SYNC_JOB_ID)
        try:
            assert isinstance(job.trigger, IntervalTrigger)
            assert job.trigger.interval == timedelta(seconds=45)
            assert job.max_instances == 1
            assert job.coalesce is True
            assert service.is_scheduled is True
        finally:
            await service.stop_periodic_sync()

        assert service.scheduler.running is False

    @pytest.mark.asyncio
    async def test_shared_scheduler_keeps_running_after_stop(self, mirror, build_sync_service) -> None:
        scheduler = AsyncIOScheduler()
        service = build_sync_service(FakeRecordReader(), interval_s=60, scheduler=scheduler)

        service.start_periodic_sync()
        await service.stop_periodic_sync()

        try:
            assert scheduler.running is True
            assert scheduler.get_job(SYNC_JOB_ID) is None
            assert service.is_scheduled is False
        finally:
            scheduler.shutdown(wait=False)

    @pytest.mark.asyncio
    async def test_tick_is_dropped_while_a_run_is_active(self, mirror, build_sync_service) -> None:
        reader = FakeRecordReader()
        service = build_sync_service(reader)
        service._running = True

        await service._tick()

        assert reader.calls == []

    @pytest.mark.asyncio
    async def test_cached_reader_is_replaced_by_uncached(self, mirror) -> None:
        uncached = FakeRecordReader()
        cached = MagicMock()
        cached.is_cached = True
        cached.uncached.return_value = uncached

        service = SyncService(
            reader=cached,
            mirror=mirror,
            mirror_repo=MirrorSyncRepository(mirror.session_factory),
            metadata_repo=SyncMetadataRepository(mirror.session_factory),
        )
        await service.perform_full_sync()

        cached.uncached.assert_called_once()
        assert uncached.calls == ["venues", "events", "admins", "attendees"]

    @pytest.mark.asyncio
    async def test_sync_logs_record_one_row_per_step(self, mirror, build_sync_service) -> None:
        service = build_sync_service(FakeRecordReader())

        await service.perform_full_sync()
        logs = await service.get_sync_logs(limit=10)

        assert len(logs) == 4
        assert {log["table_name"] for log in logs} == {"venues", "events", "admins", "attendees"}
        assert all(log["status"] == "success" for log in logs)
