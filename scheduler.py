import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from database import session_scope
from identity import StaticIdentity
from services import ReportService
from storage import LocalReportStore, RemoteReportStore


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        self.settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"template_migration: source={source}")
        with session_scope() as session:
            service = ReportService(
                RemoteReportStore(session),
                LocalReportStore(self.settings.local_store_path),
                StaticIdentity(),
            )
            count = service.migrate_all()
        logger.info(f"template_migration: source={source} reports_migrated={count}")

    def start(self) -> None:
        self._run_job("startup")

        self.scheduler.add_job(
            self._run_job,
            CronTrigger(hour=3, minute=15),
            args=["nightly_03:15"],
            id="template_migration_nightly",
            replace_existing=True,
            misfire_grace_time=3600,
        )
        self.scheduler.start()
        logger.info("Scheduler started with nightly 03:15 template migration")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
