"""Stock reservation domain models: pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class StockItem:
    """Requested hold: product and quantity."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class ProductStock:
    """Durable product row as the reservation store needs it."""

    id: str
    title: str
    type: str  # goods / tasks
    stock: int | None  # None allowed for tasks (unlimited capacity)

    @property
    def is_goods(self) -> bool:
        return self.type == "goods"


@dataclass(frozen=True)
class ReservedItem:
    product_id: str
    quantity: int
    is_goods: bool  # only goods lines were decremented / get restored

    def to_dict(self) -> dict[str, Any]:
        return {"product_id": self.product_id, "quantity": self.quantity, "is_goods": self.is_goods}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReservedItem":
        return cls(
            product_id=data["product_id"],
            quantity=int(data["quantity"]),
            is_goods=bool(data["is_goods"]),
        )


@dataclass
class StockReservation:
    """Ephemeral hold keyed by order id; exists iff its goods decrements were applied."""

    order_id: str
    items: list[ReservedItem]
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "items": [i.to_dict() for i in self.items],
            "expires_at": self.expires_at.isoformat(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StockReservation":
        return cls(
            order_id=data["order_id"],
            items=[ReservedItem.from_dict(i) for i in data["items"]],
            expires_at=datetime.fromisoformat(data["expires_at"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class LockResult:
    success: bool
    error: str | None = None
    reason: str | None = None  # "not_found" | "insufficient_stock"
    product_id: str | None = None
    product_title: str | None = None
    available: int | None = None
    requested: int | None = None
    already_locked: bool = False

    @classmethod
    def ok(cls, already_locked: bool = False) -> "LockResult":
        return cls(success=True, already_locked=already_locked)

    @classmethod
    def not_found(cls, product_id: str) -> "LockResult":
        return cls(
            success=False,
            reason="not_found",
            product_id=product_id,
            error=f"Product not found: {product_id}",
        )

    @classmethod
    def insufficient(cls, product: ProductStock, requested: int) -> "LockResult":
        return cls(
            success=False,
            reason="insufficient_stock",
            product_id=product.id,
            product_title=product.title,
            available=product.stock,
            requested=requested,
            error=(
                f'Insufficient stock for "{product.title}". '
                f"Available: {product.stock}, Requested: {requested}"
            ),
        )


@dataclass(frozen=True)
class ActiveReservation:
    order_id: str
    items: list[ReservedItem]
    expires_in_seconds: int


@dataclass(frozen=True)
class ReservationStats:
    active_locks: int
    expired_locks: int
    total_locks: int
    total_products_locked: int
    memory_usage_mb: float
    oldest_lock_age_minutes: int
    newest_lock_age_minutes: int
    average_lock_age_minutes: int
    timestamp: datetime


@dataclass(frozen=True)
class HealthThresholds:
    max_active_locks: int = 100
    max_memory_mb: float = 10.0
    max_expired_ratio: float = 0.2
    upgrade_active_locks: int = 500
    upgrade_memory_mb: float = 50.0


@dataclass(frozen=True)
class HealthReport:
    status: str  # healthy / warning / critical
    warnings: list[str]
    recommendation: str
    stats: ReservationStats
    thresholds: HealthThresholds = field(default_factory=HealthThresholds)
