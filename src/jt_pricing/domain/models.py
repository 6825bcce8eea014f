"""Pricing value objects: pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class PricedItem:
    """One order line as the price engine sees it.

    price_at_order and the markup policy are snapshots taken when the order
    was placed; later product edits never reach an existing order.
    """

    product_id: str
    product_type: str  # goods / tasks
    price_at_order: int  # rupiah per unit
    quantity: int
    markup_type: str = "percent"  # percent / flat
    markup_value: int | Decimal = 0
    weight_gram: int | None = None

    @property
    def item_total(self) -> int:
        return self.price_at_order * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    shipping_fee: int
    jastiper_markup: int
    task_fee: int  # informational: already part of subtotal
    service_fee: int
    platform_commission: int
    total_final: int
    dp_amount: int
    remaining_amount: int

    @property
    def additive_total(self) -> int:
        return (
            self.subtotal
            + self.shipping_fee
            + self.jastiper_markup
            + self.service_fee
            + self.platform_commission
        )

    def to_snapshot(self) -> dict[str, int]:
        """Serializable form written once to orders.final_breakdown."""
        return asdict(self)

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "PriceBreakdown":
        return cls(**{k: int(data[k]) for k in cls.__dataclass_fields__})
