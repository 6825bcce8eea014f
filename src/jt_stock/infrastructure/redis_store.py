"""RedisStockReservationStore: reservations shared across worker processes.

Layout:
    stock_lock:{order_id}        JSON StockReservation (no Redis TTL: the
                                 sweep must see an expired entry to restore
                                 its stock)
    stock_lock:expiry            ZSET order_id -> expires_at epoch seconds
    stock_lock:mutex:{order_id}  redis-py Lock serializing one order's
                                 lock/release/extend/sweep across processes
"""
import json
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.jt_common.datetime_utils import utc_after, utc_now
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

_KEY_PREFIX = "stock_lock:"
_EXPIRY_INDEX = "stock_lock:expiry"
_MUTEX_PREFIX = "stock_lock:mutex:"
_MUTEX_TIMEOUT_SECONDS = 30
_MUTEX_WAIT_SECONDS = 10


def _key(order_id: str) -> str:
    return f"{_KEY_PREFIX}{order_id}"


class RedisStockReservationStore:
    def __init__(
        self,
        redis: aioredis.Redis,
        repo: ProductStockRepositoryProtocol,
        *,
        ttl_seconds: int = settings.STOCK_LOCK_TTL_SECONDS,
        extend_seconds: int = settings.STOCK_LOCK_EXTEND_SECONDS,
        thresholds: HealthThresholds | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._redis = redis
        self._repo = repo
        self._ttl_seconds = ttl_seconds
        self._extend_seconds = extend_seconds
        self._thresholds = thresholds or HealthThresholds()
        self._clock = clock

    def _mutex(self, order_id: str):  # type: ignore[no-untyped-def]
        return self._redis.lock(
            f"{_MUTEX_PREFIX}{order_id}",
            timeout=_MUTEX_TIMEOUT_SECONDS,
            blocking_timeout=_MUTEX_WAIT_SECONDS,
        )

    async def _load(self, order_id: str) -> StockReservation | None:
        raw = await self._redis.get(_key(order_id))
        return StockReservation.from_dict(json.loads(raw)) if raw else None

    async def _save(self, reservation: StockReservation) -> None:
        pipe = self._redis.pipeline(transaction=True)
        pipe.set(_key(reservation.order_id), json.dumps(reservation.to_dict()))
        pipe.zadd(_EXPIRY_INDEX, {reservation.order_id: reservation.expires_at.timestamp()})
        await pipe.execute()

    async def _delete(self, order_id: str) -> None:
        pipe = self._redis.pipeline(transaction=True)
        pipe.delete(_key(order_id))
        pipe.zrem(_EXPIRY_INDEX, order_id)
        await pipe.execute()

    async def lock(
        self, order_id: str, items: Sequence[StockItem], db: AsyncSession
    ) -> LockResult:
        async with self._mutex(order_id):
            existing = await self._load(order_id)
            if existing is not None:
                now = self._clock()
                if existing.is_expired(now):
                    # decrements still applied: renew the hold
                    existing.expires_at = utc_after(self._ttl_seconds, now)
                    await self._save(existing)
                    logger.warning(
                        "Order %s held an expired, unswept reservation; renewed", order_id
                    )
                return LockResult.ok(already_locked=True)

            failure, reserved, products = await check_availability(items, self._repo, db)
            if failure is not None:
                logger.info("Stock lock refused for order %s: %s", order_id, failure.error)
                return failure

            now = self._clock()
            await self._save(
                StockReservation(
                    order_id=order_id,
                    items=reserved,
                    expires_at=utc_after(self._ttl_seconds, now),
                    created_at=now,
                )
            )
            try:
                failure = await apply_decrements(order_id, reserved, products, self._repo, db)
            except Exception:
                await self._delete(order_id)
                raise
            if failure is not None:
                await self._delete(order_id)
                return failure
            logger.info("Stock locked for order %s (%d lines, redis)", order_id, len(reserved))
            return LockResult.ok()

    async def release(
        self, order_id: str, db: AsyncSession, restore: bool = False
    ) -> StockReservation | None:
        async with self._mutex(order_id):
            return await self._release_held(order_id, db, restore)

    async def _release_held(
        self, order_id: str, db: AsyncSession, restore: bool
    ) -> StockReservation | None:
        reservation = await self._load(order_id)
        if reservation is None:
            return None
        if restore:
            await restore_stock(reservation.items, self._repo, db)
        await self._delete(order_id)
        logger.info("Stock reservation released for order %s (restore=%s)", order_id, restore)
        return reservation

    async def reinstate(self, reservations: Sequence[StockReservation]) -> None:
        for reservation in reservations:
            async with self._mutex(reservation.order_id):
                if await self._redis.exists(_key(reservation.order_id)):
                    continue
                await self._save(reservation)
                logger.warning(
                    "Stock reservation for order %s reinstated after rollback (redis)",
                    reservation.order_id,
                )

    async def extend(self, order_id: str, additional_seconds: int | None = None) -> bool:
        seconds = self._extend_seconds if additional_seconds is None else additional_seconds
        async with self._mutex(order_id):
            reservation = await self._load(order_id)
            if reservation is None:
                return False
            reservation.expires_at = utc_after(seconds, reservation.expires_at)
            await self._save(reservation)
            return True

    async def sweep_expired(self, db: AsyncSession) -> list[StockReservation]:
        now_ts = self._clock().timestamp()
        candidates = await self._redis.zrangebyscore(_EXPIRY_INDEX, "-inf", f"({now_ts}")
        swept: list[StockReservation] = []
        try:
            for order_id in candidates:
                async with self._mutex(order_id):
                    reservation = await self._load(order_id)
                    if reservation is None:
                        await self._redis.zrem(_EXPIRY_INDEX, order_id)
                        continue
                    if not reservation.is_expired(self._clock()):
                        continue
                    released = await self._release_held(order_id, db, restore=True)
                    if released is not None:
                        swept.append(released)
        except Exception:
            await self.reinstate(swept)
            raise
        if swept:
            logger.info("Swept %d expired stock reservations (redis)", len(swept))
        return swept

    async def is_locked(self, order_id: str) -> bool:
        score = await self._redis.zscore(_EXPIRY_INDEX, order_id)
        return score is not None and score > self._clock().timestamp()

    async def get(self, order_id: str) -> StockReservation | None:
        return await self._load(order_id)

    async def _all(self) -> list[StockReservation]:
        order_ids = await self._redis.zrange(_EXPIRY_INDEX, 0, -1)
        if not order_ids:
            return []
        raws = await self._redis.mget([_key(oid) for oid in order_ids])
        return [StockReservation.from_dict(json.loads(raw)) for raw in raws if raw]

    async def list_active(self) -> list[ActiveReservation]:
        now = self._clock()
        return [
            ActiveReservation(
                order_id=r.order_id,
                items=list(r.items),
                expires_in_seconds=int((r.expires_at - now).total_seconds()),
            )
            for r in await self._all()
            if not r.is_expired(now)
        ]

    async def stats(self) -> ReservationStats:
        entries = [(_key(r.order_id), r) for r in await self._all()]
        return compute_stats(entries, self._clock())

    async def health(self) -> HealthReport:
        return evaluate_health(await self.stats(), self._thresholds)

    async def clear(self) -> None:
        order_ids = await self._redis.zrange(_EXPIRY_INDEX, 0, -1)
        if order_ids:
            await self._redis.delete(*[_key(oid) for oid in order_ids])
        await self._redis.delete(_EXPIRY_INDEX)
