# src/jt_order/infrastructure/persistence.py
"""OrderRepository — raw SQL persistence implementation."""
import json
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.jt_order.domain.models import CatalogProduct, Order, OrderItem, Trip

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_ORDER_COLUMNS = """
    o.id, o.order_code, o.trip_id, o.participant_id, o.guest_id, o.status,
    o.total_price, o.dp_amount, o.final_amount, o.shipping_fee, o.service_fee,
    o.platform_commission, o.final_breakdown,
    o.dp_paid_at, o.validated_at, o.validated_by, o.rejection_reason,
    o.dp_proof_url, o.final_proof_url, o.created_at, o.updated_at
"""

_GET_ORDER_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders o WHERE o.id = :id
""")

_LIST_AWAITING_VALIDATION_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders o
    JOIN trips t ON t.id = o.trip_id
    WHERE t.jastiper_id = :seller_id AND o.status = 'awaiting_validation'
    ORDER BY o.dp_paid_at ASC NULLS LAST, o.created_at ASC
""")

_LIST_OVERDUE_VALIDATION_SQL = text("""
    SELECT id FROM orders
    WHERE status = 'awaiting_validation' AND dp_paid_at < :cutoff
    ORDER BY dp_paid_at ASC
""")

_GET_ITEMS_SQL = text("""
    SELECT id, order_id, product_id, product_type, price_at_order, quantity,
           markup_type, markup_value, weight_gram, note
    FROM order_items
    WHERE order_id IN :order_ids
    ORDER BY id
""").bindparams(bindparam("order_ids", expanding=True))

_GET_TRIPS_SQL = text("""
    SELECT id, jastiper_id, title, payment_type, dp_percentage
    FROM trips WHERE id IN :trip_ids
""").bindparams(bindparam("trip_ids", expanding=True))

_GET_CATALOG_SQL = text("""
    SELECT id, trip_id, title, type, price, stock, markup_type, markup_value, weight_gram
    FROM products WHERE id IN :ids
""").bindparams(bindparam("ids", expanding=True))

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, order_code, trip_id, participant_id, guest_id, status,
        total_price, dp_amount, final_amount)
    VALUES (:id, :order_code, :trip_id, :participant_id, :guest_id, :status,
        :total_price, :dp_amount, :final_amount)
""")

_INSERT_ITEM_SQL = text("""
    INSERT INTO order_items (id, order_id, product_id, product_type, price_at_order,
        quantity, item_subtotal, markup_type, markup_value, weight_gram, note)
    VALUES (:id, :order_id, :product_id, :product_type, :price_at_order,
        :quantity, :item_subtotal, :markup_type, :markup_value, :weight_gram, :note)
""")

# Columns a status transition may stamp. final_breakdown is write-once.
_UPDATABLE_COLUMNS: dict[str, str] = {
    "total_price": "total_price = :total_price",
    "final_amount": "final_amount = :final_amount",
    "shipping_fee": "shipping_fee = :shipping_fee",
    "service_fee": "service_fee = :service_fee",
    "platform_commission": "platform_commission = :platform_commission",
    "final_breakdown": (
        "final_breakdown = COALESCE(final_breakdown, CAST(:final_breakdown AS JSONB))"
    ),
    "dp_paid_at": "dp_paid_at = :dp_paid_at",
    "validated_at": "validated_at = :validated_at",
    "validated_by": "validated_by = :validated_by",
    "rejection_reason": "rejection_reason = :rejection_reason",
    "dp_proof_url": "dp_proof_url = :dp_proof_url",
    "final_proof_url": "final_proof_url = :final_proof_url",
}


def _build_update_sql(columns: Sequence[str]) -> Any:
    unknown = set(columns) - _UPDATABLE_COLUMNS.keys()
    if unknown:
        raise ValueError(f"Columns not updatable on status change: {sorted(unknown)}")
    assignments = ",\n        ".join(
        ["status = :new_status"] + [_UPDATABLE_COLUMNS[c] for c in columns] + ["updated_at = NOW()"]
    )
    return text(f"""
    UPDATE orders
    SET {assignments}
    WHERE id = :id AND status = :expected_status
    RETURNING id
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _load_json(value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return json.loads(value)  # type: ignore[no-any-return]
    return dict(value)


def _row_to_item(row: Any) -> OrderItem:
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        product_type=row.product_type,
        price_at_order=row.price_at_order,
        quantity=row.quantity,
        markup_type=row.markup_type,
        markup_value=row.markup_value,
        weight_gram=row.weight_gram,
        note=row.note,
    )


def _row_to_trip(row: Any) -> Trip:
    return Trip(
        id=row.id,
        jastiper_id=row.jastiper_id,
        title=row.title,
        payment_type=row.payment_type,
        dp_percentage=row.dp_percentage,
    )


def _row_to_order(row: Any) -> Order:
    return Order(
        id=row.id,
        order_code=row.order_code,
        trip_id=row.trip_id,
        participant_id=row.participant_id,
        guest_id=row.guest_id,
        status=row.status,
        total_price=row.total_price,
        dp_amount=row.dp_amount,
        final_amount=row.final_amount,
        shipping_fee=row.shipping_fee,
        service_fee=row.service_fee,
        platform_commission=row.platform_commission,
        final_breakdown=_load_json(row.final_breakdown),
        dp_paid_at=row.dp_paid_at,
        validated_at=row.validated_at,
        validated_by=row.validated_by,
        rejection_reason=row.rejection_reason,
        dp_proof_url=row.dp_proof_url,
        final_proof_url=row.final_proof_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_catalog(row: Any) -> CatalogProduct:
    return CatalogProduct(
        id=row.id,
        trip_id=row.trip_id,
        title=row.title,
        type=row.type,
        price=row.price,
        stock=row.stock,
        markup_type=row.markup_type,
        markup_value=row.markup_value,
        weight_gram=row.weight_gram,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def _attach(self, orders: list[Order], db: AsyncSession) -> list[Order]:
        """Load items and trips for a batch of orders (one query each)."""
        if not orders:
            return orders
        items_rows = (
            await db.execute(_GET_ITEMS_SQL, {"order_ids": [o.id for o in orders]})
        ).fetchall()
        trip_rows = (
            await db.execute(_GET_TRIPS_SQL, {"trip_ids": list({o.trip_id for o in orders})})
        ).fetchall()
        trips = {row.id: _row_to_trip(row) for row in trip_rows}
        for order in orders:
            order.items = [_row_to_item(r) for r in items_rows if r.order_id == order.id]
            order.trip = trips.get(order.trip_id)
        return orders

    async def get_with_items(self, order_id: str, db: AsyncSession) -> Order | None:
        row = (await db.execute(_GET_ORDER_SQL, {"id": order_id})).fetchone()
        if row is None:
            return None
        (order,) = await self._attach([_row_to_order(row)], db)
        return order

    async def get_trip(self, trip_id: str, db: AsyncSession) -> Trip | None:
        row = (await db.execute(_GET_TRIPS_SQL, {"trip_ids": [trip_id]})).fetchone()
        return _row_to_trip(row) if row else None

    async def get_catalog_products(
        self, product_ids: Sequence[str], db: AsyncSession
    ) -> dict[str, CatalogProduct]:
        if not product_ids:
            return {}
        rows = (await db.execute(_GET_CATALOG_SQL, {"ids": list(product_ids)})).fetchall()
        return {row.id: _row_to_catalog(row) for row in rows}

    async def list_awaiting_validation(self, seller_id: str, db: AsyncSession) -> list[Order]:
        rows = (
            await db.execute(_LIST_AWAITING_VALIDATION_SQL, {"seller_id": seller_id})
        ).fetchall()
        return await self._attach([_row_to_order(r) for r in rows], db)

    async def list_overdue_validation(self, cutoff: datetime, db: AsyncSession) -> list[str]:
        rows = (await db.execute(_LIST_OVERDUE_VALIDATION_SQL, {"cutoff": cutoff})).fetchall()
        return [row.id for row in rows]

    async def insert(self, order: Order, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "order_code": order.order_code,
                "trip_id": order.trip_id,
                "participant_id": order.participant_id,
                "guest_id": order.guest_id,
                "status": order.status,
                "total_price": order.total_price,
                "dp_amount": order.dp_amount,
                "final_amount": order.final_amount,
            },
        )
        for item in order.items:
            await db.execute(
                _INSERT_ITEM_SQL,
                {
                    "id": item.id,
                    "order_id": order.id,
                    "product_id": item.product_id,
                    "product_type": item.product_type,
                    "price_at_order": item.price_at_order,
                    "quantity": item.quantity,
                    "item_subtotal": item.item_subtotal,
                    "markup_type": item.markup_type,
                    "markup_value": item.markup_value,
                    "weight_gram": item.weight_gram,
                    "note": item.note,
                },
            )

    async def update_status(
        self,
        order_id: str,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any],
        db: AsyncSession,
    ) -> bool:
        params = dict(fields)
        if "final_breakdown" in params and params["final_breakdown"] is not None:
            params["final_breakdown"] = json.dumps(params["final_breakdown"])
        params.update(id=order_id, expected_status=expected_status, new_status=new_status)
        result = await db.execute(_build_update_sql(list(fields)), params)
        return result.fetchone() is not None
