"""NotificationDispatcher — enqueue now, deliver in the background.

State transitions call enqueue() and return immediately; a worker task
drains the queue and calls the notifier. A delivery failure is logged with
its traceback and counted in stats(); it never reaches the request that
caused the notification. A full queue drops the job (logged + counted)
rather than blocking the request path.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass

from config.settings import settings
from src.jt_common.errors import NotificationDeliveryError
from src.jt_notify.domain.models import NotificationJob, NotificationKind, NotifierProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatcherStats:
    sent: int
    failed: int
    dropped: int
    pending: int


class NotificationDispatcher:
    def __init__(
        self,
        notifier: NotifierProtocol,
        max_queue_size: int = settings.NOTIFICATION_QUEUE_SIZE,
    ) -> None:
        self._notifier = notifier
        self._queue: asyncio.Queue[NotificationJob] = asyncio.Queue(maxsize=max_queue_size)
        self._task: asyncio.Task | None = None
        self._sent = 0
        self._failed = 0
        self._dropped = 0

    # -- producer side ------------------------------------------------------

    def enqueue(self, job: NotificationJob) -> bool:
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.error("Notification queue full, dropped %s for order %s", job.kind, job.order_id)
            return False
        return True

    def order_validated(self, order_id: str) -> bool:
        return self.enqueue(NotificationJob(NotificationKind.ORDER_VALIDATED, order_id))

    def order_rejected(self, order_id: str, reason: str) -> bool:
        return self.enqueue(NotificationJob(NotificationKind.ORDER_REJECTED, order_id, reason))

    def final_payment_rejected(self, order_id: str, reason: str) -> bool:
        return self.enqueue(
            NotificationJob(NotificationKind.FINAL_PAYMENT_REJECTED, order_id, reason)
        )

    def order_paid(self, order_id: str) -> bool:
        return self.enqueue(NotificationJob(NotificationKind.ORDER_PAID, order_id))

    # -- consumer side ------------------------------------------------------

    async def _deliver(self, job: NotificationJob) -> None:
        if job.kind is NotificationKind.ORDER_VALIDATED:
            await self._notifier.notify_order_validated(job.order_id)
        elif job.kind is NotificationKind.ORDER_REJECTED:
            await self._notifier.notify_order_rejected(job.order_id, job.reason or "")
        elif job.kind is NotificationKind.FINAL_PAYMENT_REJECTED:
            await self._notifier.notify_final_payment_rejected(job.order_id, job.reason or "")
        else:
            await self._notifier.notify_order_paid(job.order_id)

    async def _process(self, job: NotificationJob) -> None:
        try:
            await self._deliver(job)
        except Exception as exc:
            self._failed += 1
            err = NotificationDeliveryError(f"{job.kind.value} for order {job.order_id}: {exc}")
            logger.exception(err.message)
        else:
            self._sent += 1
        finally:
            self._queue.task_done()

    async def drain(self) -> int:
        """Deliver everything currently queued; returns jobs processed."""
        processed = 0
        while True:
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return processed
            await self._process(job)
            processed += 1

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            await self._process(job)

    async def start(self) -> None:
        if self._task:
            return
        self._task = asyncio.create_task(self._run(), name="notification-dispatcher")

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        # flush what was accepted before shutdown
        await self.drain()

    def stats(self) -> DispatcherStats:
        return DispatcherStats(
            sent=self._sent,
            failed=self._failed,
            dropped=self._dropped,
            pending=self._queue.qsize(),
        )
