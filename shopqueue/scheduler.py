"""
APScheduler jobs for background queue housekeeping:

  - Every 30 min: expire waitlist offers that were notified but not booked
    within OFFER_EXPIRY_HOURS
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from shopqueue import shop_store
from shopqueue.config import settings

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


# ---------------------------------------------------------------------------
# Job functions
# ---------------------------------------------------------------------------


async def _expire_stale_waitlist_offers() -> None:
    """Offers are forward-only: a lapsed offer expires, it never goes back to waiting."""
    expired = shop_store.expire_stale_offers()
    if expired:
        logger.info("Expired %d stale waitlist offer(s)", expired)


# ---------------------------------------------------------------------------
# Scheduler lifecycle
# ---------------------------------------------------------------------------


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()

        _scheduler.add_job(
            _expire_stale_waitlist_offers,
            CronTrigger(minute="*/30", timezone=settings.shop_timezone),
            id="expire_waitlist_offers",
            replace_existing=True,
        )

    return _scheduler
