# src/jt_order/infrastructure/db_models.py
"""SQLAlchemy ORM models for trips/products/orders (DDL reference only, queries use raw SQL)."""
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.jt_common.database import Base


class TripORM(Base):
    __tablename__ = "trips"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    jastiper_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    payment_type: Mapped[str] = mapped_column(String(10), nullable=False, default="dp")
    dp_percentage: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ProductORM(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("type IN ('goods', 'tasks')", name="ck_products_type"),
        CheckConstraint("stock IS NULL OR stock >= 0", name="ck_products_stock_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    trip_id: Mapped[str] = mapped_column(ForeignKey("trips.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False, default="goods")
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    stock: Mapped[int | None] = mapped_column(Integer, nullable=True)
    markup_type: Mapped[str] = mapped_column(String(10), nullable=False, default="percent")
    markup_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    weight_gram: Mapped[int | None] = mapped_column(Integer, nullable=True)


class OrderORM(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "(participant_id IS NULL) <> (guest_id IS NULL)", name="ck_orders_single_buyer"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    trip_id: Mapped[str] = mapped_column(ForeignKey("trips.id"), nullable=False, index=True)
    participant_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    guest_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending_dp")
    total_price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    dp_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    final_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    shipping_fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    service_fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    platform_commission: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    final_breakdown: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    dp_paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    dp_proof_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_proof_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class OrderItemORM(Base):
    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    product_type: Mapped[str] = mapped_column(String(10), nullable=False)
    price_at_order: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    item_subtotal: Mapped[int] = mapped_column(BigInteger, nullable=False)
    markup_type: Mapped[str] = mapped_column(String(10), nullable=False, default="percent")
    markup_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    weight_gram: Mapped[int | None] = mapped_column(Integer, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)


class FeesConfigORM(Base):
    __tablename__ = "fees_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
