# src/jt_stock/domain/repository.py
"""Protocols for the stock reservation store and its durable stock counters.

Unit tests inject fakes that conform to these Protocols; the orchestrator
only ever depends on StockReservationStoreProtocol, so the in-process
store can be swapped for the Redis-backed one without touching it.
"""
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.jt_stock.domain.models import (
    ActiveReservation,
    HealthReport,
    LockResult,
    ProductStock,
    ReservationStats,
    StockItem,
    StockReservation,
)


class ProductStockRepositoryProtocol(Protocol):
    async def get_products(
        self, product_ids: Sequence[str], db: AsyncSession
    ) -> dict[str, ProductStock]: ...

    async def decrement_stock(self, product_id: str, quantity: int, db: AsyncSession) -> bool:
        """Atomic guarded decrement; False if fewer than `quantity` remain."""
        ...

    async def increment_stock(self, product_id: str, quantity: int, db: AsyncSession) -> None: ...


class StockReservationStoreProtocol(Protocol):
    async def lock(
        self, order_id: str, items: Sequence[StockItem], db: AsyncSession
    ) -> LockResult: ...

    async def release(
        self, order_id: str, db: AsyncSession, restore: bool = False
    ) -> StockReservation | None:
        """Drop the hold and return it, None when nothing was held."""
        ...

    async def reinstate(self, reservations: Sequence[StockReservation]) -> None:
        """Put back holds whose release or sweep was rolled back."""
        ...

    async def extend(self, order_id: str, additional_seconds: int | None = None) -> bool: ...

    async def sweep_expired(self, db: AsyncSession) -> list[StockReservation]: ...

    async def is_locked(self, order_id: str) -> bool: ...

    async def get(self, order_id: str) -> StockReservation | None: ...

    async def list_active(self) -> list[ActiveReservation]: ...

    async def stats(self) -> ReservationStats: ...

    async def health(self) -> HealthReport: ...

    async def clear(self) -> None: ...
