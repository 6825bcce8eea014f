"""Tests for InMemoryStockReservationStore against a dict-backed stock repo."""

import asyncio
from datetime import timedelta

import pytest

from src.jt_common.datetime_utils import utc_now
from src.jt_stock.domain.models import StockItem
from src.jt_stock.infrastructure.memory_store import InMemoryStockReservationStore


class _Clock:
    def __init__(self) -> None:
        self.now = utc_now()

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def store(product_repo, clock) -> InMemoryStockReservationStore:
    return InMemoryStockReservationStore(
        product_repo, ttl_seconds=1800, extend_seconds=600, clock=clock
    )


class TestLock:
    @pytest.mark.asyncio
    async def test_decrements_goods(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        result = await store.lock("ord-1", [StockItem("bag", 2)], db)
        assert result.success
        assert product_repo.stock_of("bag") == 3
        assert await store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_tasks_never_touch_stock(self, store, product_repo, db) -> None:
        product_repo.add("queue", None, product_type="tasks")
        result = await store.lock("ord-1", [StockItem("queue", 1000)], db)
        assert result.success
        assert product_repo.stock_of("queue") is None
        assert product_repo.decrement_calls == []

    @pytest.mark.asyncio
    async def test_no_partial_commit(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        product_repo.add("shoe", 1, title="Sepatu")
        result = await store.lock("ord-1", [StockItem("bag", 2), StockItem("shoe", 3)], db)
        assert not result.success
        assert result.reason == "insufficient_stock"
        assert result.product_title == "Sepatu"
        assert result.available == 1
        assert result.requested == 3
        assert product_repo.stock_of("bag") == 5
        assert product_repo.stock_of("shoe") == 1
        assert product_repo.decrement_calls == []
        assert not await store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_unknown_product(self, store, db) -> None:
        result = await store.lock("ord-1", [StockItem("ghost", 1)], db)
        assert not result.success
        assert result.reason == "not_found"
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_duplicate_lines_are_aggregated(self, store, product_repo, db) -> None:
        product_repo.add("bag", 3)
        result = await store.lock("ord-1", [StockItem("bag", 2), StockItem("bag", 2)], db)
        assert not result.success
        assert product_repo.stock_of("bag") == 3

    @pytest.mark.asyncio
    async def test_lost_race_is_compensated(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        product_repo.add("shoe", 2)
        original = product_repo.decrement_stock

        async def racing_decrement(product_id, quantity, session):
            if product_id == "shoe":
                # another order drains it between check and decrement
                product_repo._set("shoe", 0)
            return await original(product_id, quantity, session)

        product_repo.decrement_stock = racing_decrement
        result = await store.lock("ord-1", [StockItem("bag", 2), StockItem("shoe", 1)], db)
        assert not result.success
        assert product_repo.stock_of("bag") == 5
        assert not await store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_second_lock_same_order_is_noop(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 2)], db)
        again = await store.lock("ord-1", [StockItem("bag", 2)], db)
        assert again.success and again.already_locked
        assert product_repo.stock_of("bag") == 3

    @pytest.mark.asyncio
    async def test_concurrent_same_order_decrements_once(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        results = await asyncio.gather(
            *(store.lock("ord-1", [StockItem("bag", 2)], db) for _ in range(5))
        )
        assert all(r.success for r in results)
        assert sum(1 for r in results if not r.already_locked) == 1
        assert product_repo.stock_of("bag") == 3
    @pytest.mark.asyncio
    async def test_expired_unswept_hold_is_renewed(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 2)], db)
        clock.advance(1801)
        result = await store.lock("ord-1", [StockItem("bag", 2)], db)
        assert result.success and result.already_locked
        assert await store.is_locked("ord-1")
        assert await store.sweep_expired(db) == []
        assert product_repo.stock_of("bag") == 3
        assert product_repo.increment_calls == []


class TestRelease:
    @pytest.mark.asyncio
    async def test_conservation(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        product_repo.add("queue", None, product_type="tasks")
        await store.lock("ord-1", [StockItem("bag", 4), StockItem("queue", 2)], db)
        assert await store.release("ord-1", db, restore=True)
        assert product_repo.stock_of("bag") == 5
        assert product_repo.stock_of("queue") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_without_restore_keeps_stock_sold(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 4)], db)
        assert await store.release("ord-1", db, restore=False)
        assert product_repo.stock_of("bag") == 1
        assert not await store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_missing_is_noop(self, store, product_repo, db) -> None:
        assert not await store.release("ord-x", db, restore=True)
        assert product_repo.increment_calls == []
    @pytest.mark.asyncio
    async def test_returns_released_hold(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 4)], db)
        released = await store.release("ord-1", db, restore=True)
        assert released.order_id == "ord-1"
        assert [(i.product_id, i.quantity) for i in released.items] == [("bag", 4)]

    @pytest.mark.asyncio
    async def test_reinstate_puts_hold_back(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 4)], db)
        released = await store.release("ord-1", db, restore=False)
        await store.reinstate([released])
        assert await store.is_locked("ord-1")
        assert (await store.get("ord-1")).expires_at == released.expires_at

    @pytest.mark.asyncio
    async def test_reinstate_keeps_newer_hold(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 1)], db)
        stale = await store.release("ord-1", db, restore=True)
        await store.lock("ord-1", [StockItem("bag", 2)], db)
        await store.reinstate([stale])
        assert (await store.get("ord-1")).items[0].quantity == 2


class TestExtend:
    @pytest.mark.asyncio
    async def test_pushes_expiry(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 1)], db)
        before = (await store.get("ord-1")).expires_at
        assert await store.extend("ord-1")
        assert (await store.get("ord-1")).expires_at == before + timedelta(seconds=600)

    @pytest.mark.asyncio
    async def test_custom_seconds(self, store, product_repo, db) -> None:
        product_repo.add("bag", 5)
        await store.lock("ord-1", [StockItem("bag", 1)], db)
        before = (await store.get("ord-1")).expires_at
        await store.extend("ord-1", 60)
        assert (await store.get("ord-1")).expires_at == before + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_missing_is_noop(self, store) -> None:
        assert not await store.extend("ord-x")


class TestSweep:
    @pytest.mark.asyncio
    async def test_restores_expired_only(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-old", [StockItem("bag", 3)], db)
        clock.advance(1200)
        await store.lock("ord-new", [StockItem("bag", 2)], db)
        clock.advance(700)  # ord-old is 1900s old, ord-new 700s

        assert len(await store.sweep_expired(db)) == 1
        assert product_repo.stock_of("bag") == 8
        assert not await store.is_locked("ord-old")
        assert await store.is_locked("ord-new")

    @pytest.mark.asyncio
    async def test_idempotent(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-1", [StockItem("bag", 3)], db)
        await store.lock("ord-2", [StockItem("bag", 3)], db)
        clock.advance(1801)
        assert len(await store.sweep_expired(db)) == 2
        assert len(await store.sweep_expired(db)) == 0
        assert product_repo.stock_of("bag") == 10

    @pytest.mark.asyncio
    async def test_concurrent_sweeps_restore_once(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-1", [StockItem("bag", 4)], db)
        clock.advance(1801)
        counts = await asyncio.gather(store.sweep_expired(db), store.sweep_expired(db))
        assert sorted(len(c) for c in counts) == [0, 1]
        assert product_repo.stock_of("bag") == 10

    @pytest.mark.asyncio
    async def test_sweep_racing_release(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-1", [StockItem("bag", 4)], db)
        clock.advance(1801)
        await asyncio.gather(store.sweep_expired(db), store.release("ord-1", db, restore=True))
        assert product_repo.stock_of("bag") == 10

    @pytest.mark.asyncio
    async def test_extended_lock_survives(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-1", [StockItem("bag", 4)], db)
        clock.advance(1700)
        await store.extend("ord-1")
        clock.advance(200)
        assert len(await store.sweep_expired(db)) == 0
        assert await store.is_locked("ord-1")
    @pytest.mark.asyncio
    async def test_failure_mid_sweep_reinstates_swept(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        product_repo.add("shoe", 10)
        await store.lock("ord-1", [StockItem("bag", 2)], db)
        await store.lock("ord-2", [StockItem("shoe", 2)], db)
        clock.advance(1801)
        original = product_repo.increment_stock

        async def failing_increment(product_id, quantity, session):
            if product_id == "shoe":
                raise ConnectionError("db down")
            await original(product_id, quantity, session)

        product_repo.increment_stock = failing_increment
        with pytest.raises(ConnectionError):
            await store.sweep_expired(db)
        assert await store.get("ord-1") is not None
        assert await store.get("ord-2") is not None


class TestIntrospection:
    @pytest.mark.asyncio
    async def test_list_active(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-1", [StockItem("bag", 1)], db)
        clock.advance(60)
        (active,) = await store.list_active()
        assert active.order_id == "ord-1"
        assert active.expires_in_seconds == 1740

    @pytest.mark.asyncio
    async def test_stats(self, store, product_repo, clock, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-1", [StockItem("bag", 1)], db)
        clock.advance(600)
        await store.lock("ord-2", [StockItem("bag", 1)], db)
        clock.advance(1300)  # ord-1 expired, ord-2 is 1300s old
        stats = await store.stats()
        assert stats.active_locks == 1
        assert stats.expired_locks == 1
        assert stats.total_locks == 2
        assert stats.oldest_lock_age_minutes == 21

    @pytest.mark.asyncio
    async def test_health_healthy(self, store) -> None:
        report = await store.health()
        assert report.status == "healthy"
        assert report.warnings == []

    @pytest.mark.asyncio
    async def test_clear_does_not_touch_stock(self, store, product_repo, db) -> None:
        product_repo.add("bag", 10)
        await store.lock("ord-1", [StockItem("bag", 4)], db)
        await store.clear()
        assert len(store) == 0
        assert product_repo.stock_of("bag") == 6

    @pytest.mark.asyncio
    async def test_instances_are_isolated(self, product_repo, db) -> None:
        product_repo.add("bag", 10)
        a = InMemoryStockReservationStore(product_repo)
        b = InMemoryStockReservationStore(product_repo)
        await a.lock("ord-1", [StockItem("bag", 1)], db)
        assert await a.is_locked("ord-1")
        assert not await b.is_locked("ord-1")
