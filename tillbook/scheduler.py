"""Background re-sync of in-memory snapshots.

The API process embeds a ``BackgroundScheduler`` that periodically
re-reads the store for every signed-in service, so changes made by other
processes show up without a manual refresh.
"""

from datetime import datetime
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .utils.config import get_config
from .utils.logger import get_store_logger, get_scheduler_logger

RESYNC_JOB_ID = "snapshot_resync"


def _make_resync_job(refresh_all: Callable[[], int]):
    """Wrap ``refresh_all`` with logging; failures never escape the job."""
    logger = get_store_logger()

    def resync_job():
        logger.info(f"Scheduled re-sync started at {datetime.now()}")
        try:
            refreshed = refresh_all()
            logger.info(f"Scheduled re-sync finished: {refreshed} snapshots refreshed")
        except Exception as e:
            logger.error(f"Scheduled re-sync failed: {str(e)}", exc_info=True)

    return resync_job


def create_background_scheduler(refresh_all: Callable[[], int]) -> BackgroundScheduler:
    """Create a ``BackgroundScheduler`` for embedding inside FastAPI.

    The scheduler is returned **not started**; the caller must invoke
    ``scheduler.start()`` when ready.
    """
    config = get_config()
    logger = get_store_logger()
    get_scheduler_logger()
    interval = config.env.resync_interval_minutes

    scheduler = BackgroundScheduler(timezone=config.scheduler.timezone)
    scheduler.add_job(
        func=_make_resync_job(refresh_all),
        trigger=IntervalTrigger(minutes=interval),
        id=RESYNC_JOB_ID,
        name="Snapshot re-sync from store",
        max_instances=config.scheduler.max_instances,
        coalesce=config.scheduler.coalesce,
        misfire_grace_time=config.scheduler.misfire_grace_time,
        replace_existing=True
    )

    logger.info(f"Background scheduler configured: re-sync every {interval} min")
    return scheduler
