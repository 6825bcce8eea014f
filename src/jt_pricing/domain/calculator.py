"""Price calculation: pure, deterministic, integer rupiah.

Every rounding step rounds up (ceiling): DP, markup and commission are
amounts the platform or jastiper collects, and none of them may be
under-collected because of truncation.

Breakdown:
    subtotal            = sum(price_at_order * qty)
    shipping_fee        = input fee if any goods item, else 0
    task_fee            = subtotal restricted to tasks items (reporting only)
    jastiper_markup     = ceil(sum(percent: item_total*v/100 | flat: v*qty))
    platform_commission = ceil((subtotal + markup) * rate / 100)
    total_final         = subtotal + shipping + markup + service + commission
    dp_amount           = max(ceil(subtotal * dp_pct / 100), MIN_DP)
    remaining_amount    = max(total_final - dp_amount, 0)
"""
from collections.abc import Iterable, Sequence
from decimal import Decimal

from src.jt_common.enums import MarkupType, ProductType
from src.jt_common.rupiah import Percentage, ceil_amount, ceil_percent, percent_of, to_decimal
from src.jt_pricing.domain.models import PriceBreakdown, PricedItem

MIN_DP_AMOUNT: int = 10_000
DEFAULT_DP_PERCENTAGE: int = 20
DEFAULT_COMMISSION_RATE: int = 5
DEFAULT_ITEM_WEIGHT_GRAM: int = 1000
BREAKDOWN_TOLERANCE: int = 1


def calculate_dp_amount(
    subtotal: int,
    percentage: Percentage = DEFAULT_DP_PERCENTAGE,
    *,
    min_dp: int = MIN_DP_AMOUNT,
) -> int:
    """DP = max(ceil(subtotal * percentage / 100), min_dp)."""
    return max(ceil_percent(subtotal, percentage), min_dp)


def _item_markup(item: PricedItem) -> Decimal:
    if item.markup_type == MarkupType.PERCENT.value:
        return percent_of(item.item_total, item.markup_value)
    # flat markup is per unit
    return to_decimal(item.markup_value) * item.quantity


def calculate_markup(items: Iterable[PricedItem]) -> int:
    """Sum of per-item markups, rounded up once as a whole."""
    return ceil_amount(sum((_item_markup(i) for i in items), Decimal(0)))


def calculate_price_breakdown(
    items: Sequence[PricedItem],
    shipping_fee: int | None = 0,
    service_fee: int | None = 0,
    *,
    dp_percentage: Percentage | None = DEFAULT_DP_PERCENTAGE,
    commission_rate: Percentage = DEFAULT_COMMISSION_RATE,
    min_dp: int = MIN_DP_AMOUNT,
) -> PriceBreakdown:
    subtotal = sum(i.item_total for i in items)

    has_goods = any(i.product_type == ProductType.GOODS.value for i in items)
    shipping = (shipping_fee or 0) if has_goods else 0

    task_fee = sum(i.item_total for i in items if i.product_type == ProductType.TASKS.value)
    markup = calculate_markup(items)
    service = service_fee or 0
    commission = ceil_percent(subtotal + markup, commission_rate)

    total_final = subtotal + shipping + markup + service + commission
    dp_amount = calculate_dp_amount(
        subtotal,
        dp_percentage if dp_percentage is not None else DEFAULT_DP_PERCENTAGE,
        min_dp=min_dp,
    )
    return PriceBreakdown(
        subtotal=subtotal,
        shipping_fee=shipping,
        jastiper_markup=markup,
        task_fee=task_fee,
        service_fee=service,
        platform_commission=commission,
        total_final=total_final,
        dp_amount=dp_amount,
        remaining_amount=max(total_final - dp_amount, 0),
    )


def validate_breakdown(breakdown: PriceBreakdown) -> bool:
    """Consistency assertion before persisting: components add up to total_final."""
    return abs(breakdown.additive_total - breakdown.total_final) <= BREAKDOWN_TOLERANCE


def calculate_total_weight(items: Iterable[PricedItem]) -> int:
    """Grams for the courier-rate lookup; unknown weights count as 1 kg."""
    return sum((i.weight_gram or DEFAULT_ITEM_WEIGHT_GRAM) * i.quantity for i in items)
