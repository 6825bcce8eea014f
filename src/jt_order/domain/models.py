"""Order domain model — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.jt_common.errors import BuyerIdentityError
from src.jt_pricing.domain.models import PricedItem
from src.jt_stock.domain.models import StockItem


@dataclass
class Trip:
    id: str
    jastiper_id: str  # owning seller
    title: str = ""
    payment_type: str = "dp"  # full / dp
    dp_percentage: int | None = None


@dataclass
class CatalogProduct:
    """Live product row read at checkout, before it is snapshotted into an OrderItem."""

    id: str
    trip_id: str
    title: str
    type: str  # goods / tasks
    price: int
    stock: int | None
    markup_type: str = "percent"
    markup_value: int | Decimal = 0
    weight_gram: int | None = None


@dataclass
class OrderItem:
    id: str
    order_id: str
    product_id: str
    product_type: str  # goods / tasks
    # Snapshots taken at order time; later product edits never apply
    price_at_order: int
    quantity: int
    markup_type: str = "percent"  # percent / flat
    markup_value: int | Decimal = 0
    weight_gram: int | None = None
    note: str | None = None

    @property
    def item_subtotal(self) -> int:
        return self.price_at_order * self.quantity

    def to_priced_item(self) -> PricedItem:
        return PricedItem(
            product_id=self.product_id,
            product_type=self.product_type,
            price_at_order=self.price_at_order,
            quantity=self.quantity,
            markup_type=self.markup_type,
            markup_value=self.markup_value,
            weight_gram=self.weight_gram,
        )

    def to_stock_item(self) -> StockItem:
        return StockItem(product_id=self.product_id, quantity=self.quantity)


@dataclass
class Order:
    id: str
    order_code: str
    trip_id: str
    status: str
    # Exactly one buyer identity
    participant_id: str | None = None
    guest_id: str | None = None
    items: list[OrderItem] = field(default_factory=list)
    trip: Trip | None = None
    # Money, integer rupiah
    total_price: int = 0
    dp_amount: int = 0
    final_amount: int = 0
    shipping_fee: int = 0
    service_fee: int = 0
    platform_commission: int = 0
    final_breakdown: dict[str, Any] | None = None  # immutable once written
    # Lifecycle
    dp_paid_at: datetime | None = None
    validated_at: datetime | None = None
    validated_by: str | None = None
    rejection_reason: str | None = None
    # Proofs (owned by the upload collaborator)
    dp_proof_url: str | None = None
    final_proof_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if (self.participant_id is None) == (self.guest_id is None):
            raise BuyerIdentityError()

    @property
    def has_goods(self) -> bool:
        return any(i.product_type == "goods" for i in self.items)

    @property
    def seller_id(self) -> str | None:
        return self.trip.jastiper_id if self.trip else None
