"""Stock commit / rollback steps shared by every reservation store backend.

Commit is check-all, then record the reservation, then decrement. A guarded
decrement can still lose a race to another order after the check passed;
in that case every decrement already applied in this call is compensated
before the failure is reported, so a failed lock never leaves durable stock
partially decremented.
"""
import logging
from collections import defaultdict
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.jt_stock.domain.models import LockResult, ProductStock, ReservedItem, StockItem
from src.jt_stock.domain.repository import ProductStockRepositoryProtocol

logger = logging.getLogger(__name__)


def _requested_per_product(items: Sequence[StockItem]) -> dict[str, int]:
    totals: dict[str, int] = defaultdict(int)
    for item in items:
        totals[item.product_id] += item.quantity
    return dict(totals)


async def check_availability(
    items: Sequence[StockItem],
    repo: ProductStockRepositoryProtocol,
    db: AsyncSession,
) -> tuple[LockResult | None, list[ReservedItem], dict[str, ProductStock]]:
    """Validate every line before anything is written.

    Returns (failure or None, reserved items, products by id). Tasks products
    are exempt: unlimited capacity, stock may be None.
    """
    requested = _requested_per_product(items)
    products = await repo.get_products(list(requested), db)

    for product_id, qty in requested.items():
        product = products.get(product_id)
        if product is None:
            return LockResult.not_found(product_id), [], products
        if not product.is_goods:
            continue
        if product.stock is None or product.stock < qty:
            return LockResult.insufficient(product, qty), [], products

    reserved = [
        ReservedItem(
            product_id=item.product_id,
            quantity=item.quantity,
            is_goods=products[item.product_id].is_goods,
        )
        for item in items
    ]
    return None, reserved, products


async def apply_decrements(
    order_id: str,
    reserved: Sequence[ReservedItem],
    products: dict[str, ProductStock],
    repo: ProductStockRepositoryProtocol,
    db: AsyncSession,
) -> LockResult | None:
    """Decrement goods lines; compensate and return a failure on a lost race."""
    applied: list[ReservedItem] = []
    try:
        for item in reserved:
            if not item.is_goods:
                continue
            if not await repo.decrement_stock(item.product_id, item.quantity, db):
                logger.warning(
                    "Stock race on product %s for order %s, compensating %d decrements",
                    item.product_id, order_id, len(applied),
                )
                await restore_stock(applied, repo, db)
                current = await repo.get_products([item.product_id], db)
                product = current.get(item.product_id, products[item.product_id])
                return LockResult.insufficient(product, item.quantity)
            applied.append(item)
    except Exception:
        await restore_stock(applied, repo, db)
        raise
    return None


async def restore_stock(
    items: Sequence[ReservedItem],
    repo: ProductStockRepositoryProtocol,
    db: AsyncSession,
) -> None:
    for item in items:
        if item.is_goods:
            await repo.increment_stock(item.product_id, item.quantity, db)
