from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging

from .config import settings
from .deps import get_index

logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None

INDEX_REFRESH_JOB = "manager-index-refresh"


async def _refresh_manager_index():
    index = get_index()
    if index is not None:
        index.invalidate()
        logger.info("Manager index invalidated; next resolution rebuilds it")


def start_scheduler() -> AsyncIOScheduler:
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler()
        if get_index() is not None:
            schedule_index_refresh(scheduler, settings.MANAGER_INDEX_REFRESH_MINUTES)
        scheduler.start()
    return scheduler


def schedule_index_refresh(s: AsyncIOScheduler, minutes: int):
    s.add_job(
        _refresh_manager_index,
        IntervalTrigger(minutes=max(1, minutes)),
        id=INDEX_REFRESH_JOB,
        replace_existing=True,
    )


def stop_scheduler():
    global scheduler
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
