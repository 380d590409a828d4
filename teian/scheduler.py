"""Daily upload quota reset."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from loguru import logger

from .repositories import QuotaLedger


def next_reset_time(now: datetime, hour: int, minute: int, second: int) -> datetime:
    """
    Next instant at hour:minute:second wall-clock time.

    Today if that time is still ahead of `now`, otherwise the same time
    tomorrow. The result carries now's tzinfo (naive in, naive out).
    """
    at = time(hour, minute, second)
    candidate = datetime.combine(now.date(), at, tzinfo=now.tzinfo)
    if candidate <= now:
        candidate = datetime.combine(now.date() + timedelta(days=1), at, tzinfo=now.tzinfo)
    return candidate


class QuotaResetScheduler:
    """
    Fires QuotaLedger.reset_all() once a day at a fixed local time.

    One date job is pending at any time; each fire schedules the next one for
    the same wall-clock time the following day.
    """

    def __init__(
        self,
        ledger: QuotaLedger,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        scheduler: Optional[BackgroundScheduler] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        # Validate early; time() raises ValueError on out-of-range fields.
        time(hour, minute, second)
        self.ledger = ledger
        self.hour = hour
        self.minute = minute
        self.second = second
        self._scheduler = scheduler if scheduler is not None else BackgroundScheduler()
        self._clock = clock
        self._job = None
        self._next_run: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    @property
    def next_run_time(self) -> Optional[datetime]:
        return self._next_run

    def start(self):
        self._schedule_next()
        if not self.running:
            self._scheduler.start()
        logger.info(f"Quota reset scheduled daily at {self.hour:02d}:{self.minute:02d}:{self.second:02d}")

    def shutdown(self, wait: bool = False):
        if self.running:
            self._scheduler.shutdown(wait=wait)
            logger.debug("Quota reset scheduler stopped")

    def _schedule_next(self):
        run_date = next_reset_time(self._clock(), self.hour, self.minute, self.second)
        # No fixed job id: the finished date job is removed by the scheduler
        # after it runs, which would race with a replacement using the same id.
        self._job = self._scheduler.add_job(
            self._fire,
            "date",
            run_date=run_date,
            misfire_grace_time=None,
            coalesce=True,
        )
        self._next_run = run_date
        logger.debug(f"Next quota reset at {run_date.isoformat()}")

    def _fire(self):
        try:
            self.ledger.reset_all()
        except Exception:
            logger.opt(exception=True).error("Scheduled quota reset failed")
        finally:
            self._schedule_next()
