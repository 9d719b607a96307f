"""
Tests for the daily license reconciliation.
"""

from unittest.mock import MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from database import (
    ActivityLog,
    OptionStore,
    LICENSE_KEY,
    LICENSE_STATUS,
    SYNC_ENABLED,
)
from license_scheduler import LicenseScheduler


def _seed(session_factory, status="active"):
    db = session_factory()
    store = OptionStore(db)
    store.set(LICENSE_KEY, "ABCD-1234-EFGH-5678")
    store.set(LICENSE_STATUS, status)
    db.close()


@pytest.fixture
def scheduler():
    return MagicMock()


@pytest.fixture
def license_scheduler(session_factory, transport, clock, scheduler):
    return LicenseScheduler(session_factory, transport=transport, clock=clock, scheduler=scheduler)


class TestDailyCheck:
    @pytest.mark.asyncio
    async def test_no_key_is_noop(self, license_scheduler, transport, scheduler):
        result = await license_scheduler.daily_check()

        assert result is None
        assert transport.calls == []
        scheduler.remove_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_active_license_keeps_sync(self, license_scheduler, session_factory, transport, scheduler):
        _seed(session_factory)
        transport.respond("/licenses/check", 200, {"data": {"activated": True, "license": {"status": "active"}}})

        result = await license_scheduler.daily_check()

        assert result.success is True
        scheduler.remove_job.assert_not_called()
        db = session_factory()
        assert OptionStore(db).get(SYNC_ENABLED) is None
        db.close()

    @pytest.mark.asyncio
    async def test_lost_entitlement_disables_sync(self, license_scheduler, session_factory, transport, scheduler):
        _seed(session_factory)
        transport.respond("/licenses/check", 401, {"message": "Invalid license key."})

        await license_scheduler.daily_check()

        scheduler.remove_job.assert_called_once_with("stock_sync")
        db = session_factory()
        assert OptionStore(db).get(SYNC_ENABLED) is False
        entry = ActivityLog(db).recent(1)[0]
        assert entry.type == "license"
        assert entry.status == "error"
        assert entry.message == "License status: Invalid Key. Sync has been disabled."
        db.close()

    @pytest.mark.asyncio
    async def test_network_error_inside_grace_keeps_sync(self, license_scheduler, session_factory, transport, scheduler):
        _seed(session_factory)
        transport.fail("/licenses/check")

        result = await license_scheduler.daily_check()

        assert result.is_network_error is True
        scheduler.remove_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_sync_job_is_not_removed(self, license_scheduler, session_factory, transport, scheduler):
        _seed(session_factory, status="paused")
        scheduler.get_job.return_value = None
        transport.fail("/licenses/check")

        await license_scheduler.daily_check()

        scheduler.remove_job.assert_not_called()
        db = session_factory()
        assert OptionStore(db).get(SYNC_ENABLED) is False
        db.close()


class TestScheduling:
    def test_ensure_scheduled_registers_once(self, license_scheduler, scheduler):
        scheduler.get_job.return_value = None
        license_scheduler.ensure_scheduled()

        scheduler.add_job.assert_called_once()
        _, kwargs = scheduler.add_job.call_args
        assert kwargs["id"] == "license_check"
        assert kwargs["hours"] == 24

        scheduler.get_job.return_value = object()
        license_scheduler.ensure_scheduled()

        assert scheduler.add_job.call_count == 1

    def test_ensure_scheduled_with_apscheduler(self, session_factory):
        license_scheduler = LicenseScheduler(session_factory, scheduler=AsyncIOScheduler())

        license_scheduler.ensure_scheduled()
        license_scheduler.ensure_scheduled()

        assert license_scheduler.is_scheduled() is True
        assert len(license_scheduler.scheduler.get_jobs()) == 1
