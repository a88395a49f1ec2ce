"""Periodic pruning of link origins.

The ``RetentionScheduler`` owns one asyncio task that sleeps until the
next firing of its cron expression and then deletes the origins of links
older than the retention period. Links themselves are never touched.
A failed run is logged and retried at the next firing.
"""
import asyncio
import logging
from datetime import datetime, timedelta

from croniter import croniter
from sqlalchemy.orm import sessionmaker

from shortlinks import crud
from shortlinks.database import utcnow

logger = logging.getLogger("shortlinks.retention")


def prune_expired_origins(session_factory: sessionmaker, retention_period: timedelta) -> int:
    db = session_factory()
    try:
        return crud.prune_origins(db, retention_period)
    finally:
        db.close()


class RetentionScheduler:
    def __init__(self, session_factory: sessionmaker, retention_period: timedelta, schedule: str = "0 0 * * *"):
        if not croniter.is_valid(schedule):
            raise ValueError(f"Invalid cron expression: {schedule!r}")
        self.session_factory = session_factory
        self.retention_period = retention_period
        self.schedule = schedule
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_run(self, now: datetime | None = None) -> datetime:
        return croniter(self.schedule, now or utcnow()).get_next(datetime)

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "Origin retention scheduled at %r, keeping origins for %s",
            self.schedule,
            self.retention_period,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Origin retention stopped")

    async def run_once(self) -> int | None:
        """Prune once. Returns the number of deleted origins, or None if the run failed."""
        try:
            deleted = await asyncio.to_thread(
                prune_expired_origins, self.session_factory, self.retention_period
            )
        except Exception:
            logger.exception("Origin retention run failed")
            return None
        logger.info("Pruned %d expired origins", deleted)
        return deleted

    def firings(self, start: datetime | None = None):
        """Yield successive firing times after ``start``, each strictly later than the previous one."""
        schedule = croniter(self.schedule, start or utcnow())
        while True:
            yield schedule.get_next(datetime)

    async def _run_loop(self) -> None:
        # Each firing runs at most once, however early the clock reads after a run
        for fire_at in self.firings():
            await asyncio.sleep(max((fire_at - utcnow()).total_seconds(), 0))
            await self.run_once()
