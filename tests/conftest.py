"""Shared test fixtures."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-do-not-use-in-production")

import copy
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.jt_notify.application.dispatcher import NotificationDispatcher
from src.jt_order.domain.models import CatalogProduct, Order, Trip
from src.jt_stock.domain.models import ProductStock
from src.jt_stock.infrastructure.memory_store import InMemoryStockReservationStore


class FakeProductStockRepository:
    """Durable product stock counters held in a dict."""

    def __init__(self, products: Sequence[ProductStock] = ()) -> None:
        self.products: dict[str, ProductStock] = {p.id: p for p in products}
        self.decrement_calls: list[tuple[str, int]] = []
        self.increment_calls: list[tuple[str, int]] = []

    def add(
        self, product_id: str, stock: int | None, product_type: str = "goods", title: str = ""
    ) -> None:
        self.products[product_id] = ProductStock(
            id=product_id, title=title or product_id, type=product_type, stock=stock
        )

    def stock_of(self, product_id: str) -> int | None:
        return self.products[product_id].stock

    def _set(self, product_id: str, stock: int | None) -> None:
        p = self.products[product_id]
        self.products[product_id] = ProductStock(id=p.id, title=p.title, type=p.type, stock=stock)

    async def get_products(self, product_ids: Sequence[str], db: Any) -> dict[str, ProductStock]:
        return {pid: self.products[pid] for pid in product_ids if pid in self.products}

    async def decrement_stock(self, product_id: str, quantity: int, db: Any) -> bool:
        self.decrement_calls.append((product_id, quantity))
        current = self.products[product_id].stock
        if current is None or current < quantity:
            return False
        self._set(product_id, current - quantity)
        return True

    async def increment_stock(self, product_id: str, quantity: int, db: Any) -> None:
        self.increment_calls.append((product_id, quantity))
        self._set(product_id, (self.products[product_id].stock or 0) + quantity)


class FakeOrderRepository:
    """In-memory order store honouring the optimistic status check."""

    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self.trips: dict[str, Trip] = {}
        self.catalog: dict[str, CatalogProduct] = {}
        self.inserted: list[Order] = []

    def put(self, order: Order) -> Order:
        self.orders[order.id] = copy.deepcopy(order)
        if order.trip:
            self.trips[order.trip.id] = order.trip
        return order

    async def get_with_items(self, order_id: str, db: Any) -> Order | None:
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def get_trip(self, trip_id: str, db: Any) -> Trip | None:
        return self.trips.get(trip_id)

    async def get_catalog_products(
        self, product_ids: Sequence[str], db: Any
    ) -> dict[str, CatalogProduct]:
        return {pid: self.catalog[pid] for pid in product_ids if pid in self.catalog}

    async def list_awaiting_validation(self, seller_id: str, db: Any) -> list[Order]:
        orders = [
            copy.deepcopy(o)
            for o in self.orders.values()
            if o.status == "awaiting_validation" and o.seller_id == seller_id
        ]
        return sorted(orders, key=lambda o: o.dp_paid_at)

    async def list_overdue_validation(self, cutoff: datetime, db: Any) -> list[str]:
        overdue = [
            o
            for o in self.orders.values()
            if o.status == "awaiting_validation" and o.dp_paid_at and o.dp_paid_at < cutoff
        ]
        return [o.id for o in sorted(overdue, key=lambda o: o.dp_paid_at)]

    async def insert(self, order: Order, db: Any) -> None:
        self.inserted.append(order)
        self.orders[order.id] = copy.deepcopy(order)

    async def update_status(
        self,
        order_id: str,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any],
        db: Any,
    ) -> bool:
        order = self.orders.get(order_id)
        if order is None or order.status != expected_status:
            return False
        order.status = new_status
        for name, value in fields.items():
            if name == "final_breakdown" and order.final_breakdown is not None:
                continue
            setattr(order, name, value)
        return True


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, str, str | None]] = []

    async def _record(self, kind: str, order_id: str, reason: str | None = None) -> None:
        if self.fail:
            raise ConnectionError("smtp unreachable")
        self.calls.append((kind, order_id, reason))

    async def notify_order_validated(self, order_id: str) -> None:
        await self._record("validated", order_id)

    async def notify_order_rejected(self, order_id: str, reason: str) -> None:
        await self._record("rejected", order_id, reason)

    async def notify_final_payment_rejected(self, order_id: str, reason: str) -> None:
        await self._record("final_rejected", order_id, reason)

    async def notify_order_paid(self, order_id: str) -> None:
        await self._record("paid", order_id)


@pytest.fixture
def db() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def product_repo() -> FakeProductStockRepository:
    return FakeProductStockRepository()


@pytest.fixture
def order_repo() -> FakeOrderRepository:
    return FakeOrderRepository()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier: RecordingNotifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier, max_queue_size=100)


@pytest.fixture
def stock_store(product_repo: FakeProductStockRepository) -> InMemoryStockReservationStore:
    return InMemoryStockReservationStore(product_repo, ttl_seconds=1800, extend_seconds=600)
