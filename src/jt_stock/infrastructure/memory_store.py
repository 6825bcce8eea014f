"""InMemoryStockReservationStore: single-process reservation table.

One instance per process, constructed and injected (never a module-level
dict): tests build isolated instances, the app builds one in its lifespan.
Mutations on the same order id are serialized with a KeyedLock; different
order ids proceed concurrently.

The table is lost on restart and invisible to other processes. For more
than one worker process use RedisStockReservationStore.
"""
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.jt_common.datetime_utils import utc_after, utc_now
from src.jt_common.keyed_lock import KeyedLock
from src.jt_stock.domain.health import compute_stats, evaluate_health
from src.jt_stock.domain.models import (
    ActiveReservation,
    HealthReport,
    HealthThresholds,
    LockResult,
    ReservationStats,
    StockItem,
    StockReservation,
)
from src.jt_stock.domain.repository import ProductStockRepositoryProtocol
from src.jt_stock.domain.reservation import apply_decrements, check_availability, restore_stock

logger = logging.getLogger(__name__)

STOCK_LOCK_PREFIX = "stock_lock:"


class InMemoryStockReservationStore:
    def __init__(
        self,
        repo: ProductStockRepositoryProtocol,
        *,
        ttl_seconds: int = settings.STOCK_LOCK_TTL_SECONDS,
        extend_seconds: int = settings.STOCK_LOCK_EXTEND_SECONDS,
        thresholds: HealthThresholds | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repo
        self._ttl_seconds = ttl_seconds
        self._extend_seconds = extend_seconds
        self._thresholds = thresholds or HealthThresholds()
        self._clock = clock
        self._reservations: dict[str, StockReservation] = {}
        self._locks = KeyedLock()

    async def lock(
        self, order_id: str, items: Sequence[StockItem], db: AsyncSession
    ) -> LockResult:
        async with self._locks.acquire(order_id):
            existing = self._reservations.get(order_id)
            if existing is not None:
                now = self._clock()
                if existing.is_expired(now):
                    # decrements still applied: renew the hold
                    existing.expires_at = utc_after(self._ttl_seconds, now)
                    logger.warning(
                        "Order %s held an expired, unswept reservation; renewed", order_id
                    )
                else:
                    logger.info("Order %s already holds a stock reservation", order_id)
                return LockResult.ok(already_locked=True)

            failure, reserved, products = await check_availability(items, self._repo, db)
            if failure is not None:
                logger.info("Stock lock refused for order %s: %s", order_id, failure.error)
                return failure

            now = self._clock()
            self._reservations[order_id] = StockReservation(
                order_id=order_id,
                items=reserved,
                expires_at=utc_after(self._ttl_seconds, now),
                created_at=now,
            )
            try:
                failure = await apply_decrements(order_id, reserved, products, self._repo, db)
            except Exception:
                del self._reservations[order_id]
                raise
            if failure is not None:
                del self._reservations[order_id]
                return failure

            logger.info("Stock locked for order %s (%d lines)", order_id, len(reserved))
            return LockResult.ok()

    async def release(
        self, order_id: str, db: AsyncSession, restore: bool = False
    ) -> StockReservation | None:
        """Drop the hold and return it; None when nothing was held.

        Restored stock becomes durable only when the caller commits. If that
        commit fails, hand the returned reservation to reinstate().
        """
        async with self._locks.acquire(order_id):
            return await self._release_held(order_id, db, restore)

    async def _release_held(
        self, order_id: str, db: AsyncSession, restore: bool
    ) -> StockReservation | None:
        """Caller must hold the key lock for order_id."""
        reservation = self._reservations.get(order_id)
        if reservation is None:
            return None
        if restore:
            await restore_stock(reservation.items, self._repo, db)
        del self._reservations[order_id]
        logger.info("Stock reservation released for order %s (restore=%s)", order_id, restore)
        return reservation

    async def reinstate(self, reservations: Sequence[StockReservation]) -> None:
        for reservation in reservations:
            async with self._locks.acquire(reservation.order_id):
                if reservation.order_id in self._reservations:
                    continue
                self._reservations[reservation.order_id] = reservation
                logger.warning(
                    "Stock reservation for order %s reinstated after rollback",
                    reservation.order_id,
                )

    async def extend(self, order_id: str, additional_seconds: int | None = None) -> bool:
        seconds = self._extend_seconds if additional_seconds is None else additional_seconds
        async with self._locks.acquire(order_id):
            reservation = self._reservations.get(order_id)
            if reservation is None:
                return False
            reservation.expires_at = utc_after(seconds, reservation.expires_at)
            return True

    async def sweep_expired(self, db: AsyncSession) -> list[StockReservation]:
        """Release every expired hold with restore; returns the swept holds.

        On failure the holds swept so far are reinstated before re-raising,
        since the caller will roll back their restores.
        """
        now = self._clock()
        candidates = [oid for oid, r in self._reservations.items() if r.is_expired(now)]
        swept: list[StockReservation] = []
        try:
            for order_id in candidates:
                async with self._locks.acquire(order_id):
                    # a concurrent release or extend may have won the race
                    reservation = self._reservations.get(order_id)
                    if reservation is None or not reservation.is_expired(self._clock()):
                        continue
                    released = await self._release_held(order_id, db, restore=True)
                    if released is not None:
                        swept.append(released)
        except Exception:
            await self.reinstate(swept)
            raise
        if swept:
            logger.info("Swept %d expired stock reservations", len(swept))
        return swept

    async def is_locked(self, order_id: str) -> bool:
        reservation = self._reservations.get(order_id)
        return reservation is not None and not reservation.is_expired(self._clock())

    async def get(self, order_id: str) -> StockReservation | None:
        return self._reservations.get(order_id)

    async def list_active(self) -> list[ActiveReservation]:
        now = self._clock()
        return [
            ActiveReservation(
                order_id=r.order_id,
                items=list(r.items),
                expires_in_seconds=int((r.expires_at - now).total_seconds()),
            )
            for r in self._reservations.values()
            if not r.is_expired(now)
        ]

    async def stats(self) -> ReservationStats:
        entries = [(STOCK_LOCK_PREFIX + oid, r) for oid, r in self._reservations.items()]
        return compute_stats(entries, self._clock())

    async def health(self) -> HealthReport:
        return evaluate_health(await self.stats(), self._thresholds)

    async def clear(self) -> None:
        """Teardown: forget every reservation without touching durable stock."""
        self._reservations.clear()

    def __len__(self) -> int:
        return len(self._reservations)
