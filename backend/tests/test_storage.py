"""Tests for the LienStorage data-access layer"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from lien_sync.models import Lien, LienStatus, RunStatus


async def _add_lien(storage, county, recording_number, **values):
    data = dict(
        recording_number=recording_number,
        county_id=county.id,
        record_date=datetime(2026, 1, 14),
        debtor_name="JANE DOE",
        amount=Decimal("1500.00"),
        pdf_url=f"http://localhost:8000/api/pdf/{recording_number}",
    )
    data.update(values)
    return await storage.create_lien(**data)


async def _backdate(storage, recording_number, hours):
    async with storage.session() as session:
        await session.execute(
            update(Lien)
            .where(Lien.recording_number == recording_number)
            .values(created_at=datetime.utcnow() - timedelta(hours=hours))
        )


class TestLiens:
    """Tests for lien persistence"""

    @pytest.mark.asyncio
    async def test_create_lien_defaults_to_pending(self, storage, maricopa):
        lien = await _add_lien(storage, maricopa, "20260000001")

        assert lien.id is not None
        assert lien.status == LienStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_duplicate_recording_number_returns_existing(self, storage, maricopa):
        """The unique recording number de-duplicates repeated inserts"""
        first = await _add_lien(storage, maricopa, "20260000001")
        second = await _add_lien(storage, maricopa, "20260000001", debtor_name="SOMEONE ELSE")

        assert second.id == first.id
        assert second.debtor_name == "JANE DOE"

    @pytest.mark.asyncio
    async def test_mark_synced(self, storage, maricopa):
        await _add_lien(storage, maricopa, "20260000001", failure_reason="old failure")
        await storage.mark_lien_synced("20260000001", "recABC")

        lien = await storage.get_lien_by_recording_number("20260000001")
        assert lien.status == LienStatus.SYNCED.value
        assert lien.airtable_record_id == "recABC"
        assert lien.failure_reason is None

    @pytest.mark.asyncio
    async def test_update_status_with_reason(self, storage, maricopa):
        await _add_lien(storage, maricopa, "20260000001")
        await storage.update_lien_status("20260000001", LienStatus.PDF_FAILED, "PDF download failed")

        lien = await storage.get_lien_by_recording_number("20260000001")
        assert lien.status == LienStatus.PDF_FAILED.value
        assert lien.failure_reason == "PDF download failed"

    @pytest.mark.asyncio
    async def test_get_by_status(self, storage, maricopa):
        await _add_lien(storage, maricopa, "20260000001")
        await _add_lien(storage, maricopa, "20260000002")
        await storage.mark_lien_synced("20260000002", "recABC")

        pending = await storage.get_liens_by_status(LienStatus.PENDING)
        assert [lien.recording_number for lien in pending] == ["20260000001"]

    @pytest.mark.asyncio
    async def test_stale_pending(self, storage, maricopa):
        await _add_lien(storage, maricopa, "20260000001")
        await _add_lien(storage, maricopa, "20260000002")
        await _backdate(storage, "20260000001", hours=72)

        stale = await storage.get_stale_pending_liens(48)
        assert [lien.recording_number for lien in stale] == ["20260000001"]

        assert await storage.mark_stale_pending_liens(48) == 1
        counts = await storage.get_status_counts()
        assert counts["stale"] == 1
        assert counts["pending"] == 1

    @pytest.mark.asyncio
    async def test_status_counts_include_every_status(self, storage):
        counts = await storage.get_status_counts()
        assert set(counts) == {status.value for status in LienStatus}
        assert all(count == 0 for count in counts.values())


class TestRuns:
    """Tests for automation and county run bookkeeping"""

    @pytest.mark.asyncio
    async def test_run_lifecycle(self, storage, maricopa):
        run = await storage.create_automation_run("manual", metadata={"startedBy": "manual"})
        assert run.status == RunStatus.RUNNING.value

        county_run = await storage.create_county_run(maricopa.id, run.id)
        await storage.update_county_run(county_run.id, status="completed", liens_found=3, metadata={"county": "Maricopa"})
        await storage.update_automation_run(run.id, status="completed", liens_found=3, metadata={"note": "done"})

        stored = await storage.get_automation_run(run.id)
        assert stored.status == "completed"
        assert stored.run_metadata == {"note": "done"}

        county_runs = await storage.get_county_runs(run.id)
        assert len(county_runs) == 1
        assert county_runs[0].liens_found == 3
        assert county_runs[0].run_metadata == {"county": "Maricopa"}

    @pytest.mark.asyncio
    async def test_latest_and_recent_runs(self, storage):
        first = await storage.create_automation_run("scheduled")
        second = await storage.create_automation_run("manual")

        latest = await storage.get_latest_automation_run()
        recent = await storage.get_recent_automation_runs(limit=5)

        assert latest.id == second.id
        assert [run.id for run in recent] == [second.id, first.id]


class TestReviewQueue:
    """Tests for the persisted needs-review set"""

    @pytest.mark.asyncio
    async def test_set_replaces_queue(self, storage, maricopa):
        await storage.set_failed_liens([{"recording_number": "1", "county_id": maricopa.id}])
        await storage.set_failed_liens([
            {"recording_number": "2", "county_id": maricopa.id, "reason": "PDF download failed"},
            {"recording_number": "3", "county_id": maricopa.id},
        ])

        entries = await storage.get_failed_liens()
        assert [entry.recording_number for entry in entries] == ["2", "3"]

    @pytest.mark.asyncio
    async def test_clear(self, storage, maricopa):
        await storage.set_failed_liens([{"recording_number": "1", "county_id": maricopa.id}])

        assert await storage.clear_failed_liens() == 1
        assert await storage.get_failed_liens() == []


class TestScheduleAndLogs:
    """Tests for the schedule row and system log"""

    @pytest.mark.asyncio
    async def test_save_schedule_upserts_single_row(self, storage):
        assert await storage.get_schedule() is None

        await storage.save_schedule(hour=6, minute=15, timezone="America/Chicago")
        await storage.save_schedule(hour=7)

        schedule = await storage.get_schedule()
        assert schedule.id == "global"
        assert (schedule.hour, schedule.minute, schedule.timezone) == (7, 15, "America/Chicago")

    @pytest.mark.asyncio
    async def test_system_logs_newest_first(self, storage):
        await storage.add_system_log("info", "first", "scheduler")
        await storage.add_system_log("error", "second", "scheduler", {"runId": 1})

        logs = await storage.get_recent_system_logs(limit=10)
        assert [log.message for log in logs] == ["second", "first"]
        assert logs[0].log_metadata == {"runId": 1}
