# src/jt_stock/infrastructure/persistence.py
"""ProductStockRepository — raw SQL access to durable stock counters."""
from collections.abc import Sequence
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.jt_stock.domain.models import ProductStock

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_GET_PRODUCTS_SQL = text("""
    SELECT id, title, type, stock
    FROM products
    WHERE id IN :ids
""").bindparams(bindparam("ids", expanding=True))

# Guarded decrement: never drives stock negative, even under concurrent orders
_DECREMENT_STOCK_SQL = text("""
    UPDATE products
    SET stock = stock - :qty, updated_at = NOW()
    WHERE id = :id AND type = 'goods' AND stock >= :qty
    RETURNING stock
""")

_INCREMENT_STOCK_SQL = text("""
    UPDATE products
    SET stock = COALESCE(stock, 0) + :qty, updated_at = NOW()
    WHERE id = :id AND type = 'goods'
""")


def _row_to_product(row: Any) -> ProductStock:
    return ProductStock(id=row.id, title=row.title, type=row.type, stock=row.stock)


class ProductStockRepository:
    """Concrete implementation of ProductStockRepositoryProtocol using raw SQL."""

    async def get_products(
        self, product_ids: Sequence[str], db: AsyncSession
    ) -> dict[str, ProductStock]:
        if not product_ids:
            return {}
        result = await db.execute(_GET_PRODUCTS_SQL, {"ids": list(product_ids)})
        return {row.id: _row_to_product(row) for row in result.fetchall()}

    async def decrement_stock(self, product_id: str, quantity: int, db: AsyncSession) -> bool:
        result = await db.execute(_DECREMENT_STOCK_SQL, {"id": product_id, "qty": quantity})
        return result.fetchone() is not None

    async def increment_stock(self, product_id: str, quantity: int, db: AsyncSession) -> None:
        await db.execute(_INCREMENT_STOCK_SQL, {"id": product_id, "qty": quantity})
