"""AutoRejectWorker — periodic rejection of orders the seller never validated.

Each cycle opens its own session and hands it to
OrderValidationService.auto_reject_overdue, which commits per order.
"""
import asyncio
import contextlib
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.jt_order.application.schemas import AutoRejectResponse
from src.jt_order.application.service import OrderValidationService

logger = logging.getLogger(__name__)


class AutoRejectWorker:
    def __init__(
        self,
        service: OrderValidationService,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float = settings.AUTO_REJECT_INTERVAL_SECONDS,
    ) -> None:
        self._service = service
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task:
            return
        self._task = asyncio.create_task(self._run(), name="order-auto-reject")

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run_once(self) -> AutoRejectResponse:
        async with self._session_factory() as db:
            return await self._service.auto_reject_overdue(db)

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as exc:  # pragma: no cover - background guard
                logger.exception("Auto-reject cycle failed: %s", exc)
            await asyncio.sleep(self._interval)
