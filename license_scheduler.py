import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import settings
from database import ActivityLog, OptionStore, SessionLocal, SYNC_ENABLED
from license_client import LicenseClient
from license_types import LicenseResult

log = logging.getLogger(__name__)


class LicenseScheduler:
    """
    Runs the daily license check and turns off sync when the license
    stops entitling this installation.
    """

    def __init__(self, session_factory=SessionLocal, transport=None, clock=None, scheduler=None):
        self.session_factory = session_factory
        self.transport = transport
        self.clock = clock
        self.scheduler = scheduler or AsyncIOScheduler()

    def is_scheduled(self) -> bool:
        return self.scheduler.get_job(settings.LICENSE_CHECK_JOB_ID) is not None

    def ensure_scheduled(self):
        """
        Register the daily check unless it is already registered.
        """
        if self.is_scheduled():
            return

        self.scheduler.add_job(
            self.daily_check,
            'interval',
            hours=settings.CHECK_INTERVAL_HOURS,
            id=settings.LICENSE_CHECK_JOB_ID
        )

    def start(self):
        self.ensure_scheduled()
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def clear_sync_job(self):
        if self.scheduler.get_job(settings.SYNC_JOB_ID) is not None:
            self.scheduler.remove_job(settings.SYNC_JOB_ID)

    async def daily_check(self) -> Optional[LicenseResult]:
        """
        Daily license verification.
        """
        db = self.session_factory()
        try:
            client = LicenseClient(db, transport=self.transport, clock=self.clock)
            license_key = client.get_key()
            if not license_key:
                return None

            result = await client.check(license_key)

            if not client.is_valid():
                self._revoke_entitlement(client)

            return result
        finally:
            db.close()

    def _revoke_entitlement(self, client: LicenseClient):
        OptionStore(client.db).set(SYNC_ENABLED, False)
        self.clear_sync_job()

        message = f"License status: {client.get_status_label()}. Sync has been disabled."
        ActivityLog(client.db).add("license", "error", message)
        log.warning(message)
