# src/jt_order/domain/repository.py
"""OrderRepository Protocol — interface contract for persistence layer.

Every status write is conditional on the status the caller observed
(`expected_status`) and returns False when another writer got there first,
so two processes can never both move the same order out of a state.
"""
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.jt_order.domain.models import CatalogProduct, Order, Trip


class OrderRepositoryProtocol(Protocol):
    async def get_with_items(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def get_trip(self, trip_id: str, db: AsyncSession) -> Trip | None: ...

    async def get_catalog_products(
        self, product_ids: Sequence[str], db: AsyncSession
    ) -> dict[str, CatalogProduct]: ...

    async def list_awaiting_validation(self, seller_id: str, db: AsyncSession) -> list[Order]: ...

    async def list_overdue_validation(self, cutoff: datetime, db: AsyncSession) -> list[str]:
        """Ids of orders still awaiting validation whose DP was paid before cutoff."""
        ...

    async def insert(self, order: Order, db: AsyncSession) -> None: ...

    async def update_status(
        self,
        order_id: str,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any],
        db: AsyncSession,
    ) -> bool: ...
