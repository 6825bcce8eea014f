# src/jt_pricing/application/service.py
"""Price engine composition: commission lookup with fallback + breakdown."""
import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.jt_common.errors import CommissionRateUnavailableError
from src.jt_common.rupiah import Percentage
from src.jt_pricing.domain.calculator import calculate_price_breakdown, validate_breakdown
from src.jt_pricing.domain.models import PriceBreakdown, PricedItem
from src.jt_pricing.domain.repository import CommissionRateLookupProtocol

logger = logging.getLogger(__name__)


async def get_commission_rate(
    lookup: CommissionRateLookupProtocol,
    db: AsyncSession,
    *,
    default: Percentage = settings.DEFAULT_COMMISSION_RATE,
) -> Percentage:
    """Configured commission percentage; never raises.

    A failed or empty lookup must not abort checkout, so it degrades to the
    default rate with a warning. The read runs in a savepoint: a failed
    statement rolls back only the savepoint and the caller's transaction
    stays usable.
    """
    try:
        async with db.begin_nested():
            rate = await lookup.get_commission_rate(db)
    except Exception as exc:
        err = CommissionRateUnavailableError(str(exc))
        logger.warning("%s, using default %s%%", err.message, default)
        return default
    if rate is None or rate < 0:
        logger.warning("No active commission rate configured, using default %s%%", default)
        return default
    return rate


async def price_order(
    items: Sequence[PricedItem],
    shipping_fee: int | None,
    service_fee: int | None,
    *,
    dp_percentage: Percentage | None,
    lookup: CommissionRateLookupProtocol,
    db: AsyncSession,
) -> PriceBreakdown:
    commission_rate = await get_commission_rate(lookup, db)
    breakdown = calculate_price_breakdown(
        items,
        shipping_fee,
        service_fee,
        dp_percentage=dp_percentage or settings.DEFAULT_DP_PERCENTAGE,
        commission_rate=commission_rate,
        min_dp=settings.MIN_DP_AMOUNT,
    )
    assert validate_breakdown(breakdown), (
        f"Breakdown does not add up: components={breakdown.additive_total} "
        f"!= total_final={breakdown.total_final}"
    )
    logger.debug(
        "Priced %d items: subtotal=%d total=%d commission_rate=%s",
        len(items), breakdown.subtotal, breakdown.total_final, commission_rate,
    )
    return breakdown
