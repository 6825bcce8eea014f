"""StockSweepWorker — periodic release of expired stock reservations.

The store never schedules itself; this worker is the external scheduler.
Each cycle runs in its own session and commits, so the restored stock is
durable before the next cycle. When the commit fails the swept holds are
reinstated, since their restores were rolled back. A failed cycle is logged
and retried on the next tick.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.jt_stock.domain.models import StockReservation
from src.jt_stock.domain.repository import StockReservationStoreProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    cleaned: int
    active_before: int
    active_after: int
    memory_usage_mb: float


class StockSweepWorker:
    def __init__(
        self,
        store: StockReservationStoreProtocol,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float = settings.STOCK_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task:
            return
        self._task = asyncio.create_task(self._run(), name="stock-sweep")

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run_once(self) -> SweepResult:
        before = await self._store.stats()
        async with self._session_factory() as db:
            swept: list[StockReservation] = []
            try:
                swept = await self._store.sweep_expired(db)
                await db.commit()
            except Exception:
                await self._store.reinstate(swept)
                await db.rollback()
                raise
        cleaned = len(swept)
        after = await self._store.stats()
        logger.info(
            "Stock sweep: cleaned=%d active %d -> %d (%.2fMB)",
            cleaned, before.active_locks, after.active_locks, after.memory_usage_mb,
        )
        return SweepResult(
            cleaned=cleaned,
            active_before=before.active_locks,
            active_after=after.active_locks,
            memory_usage_mb=after.memory_usage_mb,
        )

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as exc:  # pragma: no cover - background guard
                logger.exception("Stock sweep cycle failed: %s", exc)
            await asyncio.sleep(self._interval)
