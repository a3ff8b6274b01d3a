"""Background sweeper that releases expired stock reservations.

Runs inside the API process as an asyncio task started from the app lifespan.
Each pass uses its own session and commits once; an exception in one pass is
logged and the loop carries on with the next.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.schemas.inventory import SweepResult
from marketplace.services.inventory import InventoryService

logger = logging.getLogger(__name__)


class ReservationSweeper:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: int = 60,
        retention_days: int = 30,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.retention_days = retention_days
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Reservation sweeper already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Reservation sweeper started (every %ds)", self.interval_seconds)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Reservation sweeper stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception:
                logger.error("Error in reservation sweeper", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self) -> SweepResult:
        """One sweep: release expired holds, purge old settled ones, commit."""
        async with self.session_factory() as session:
            service = InventoryService(session)
            result = await service.release_expired_reservations()
            result.purged_count = await service.purge_stale_reservations(self.retention_days)
            await session.commit()

        if result.released_count or result.failed:
            logger.info(
                "Sweep released %d reservations, %d failed, %d purged",
                result.released_count, len(result.failed), result.purged_count,
            )
        return result
