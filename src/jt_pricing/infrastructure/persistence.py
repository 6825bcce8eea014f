# src/jt_pricing/infrastructure/persistence.py
"""FeesConfigRepository: raw SQL read of the platform commission setting."""
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

_GET_ACTIVE_FEE_SQL = text("""
    SELECT value FROM fees_config
    WHERE scope = :scope AND is_active = TRUE
    ORDER BY updated_at DESC
    LIMIT 1
""")

PLATFORM_COMMISSION_SCOPE = "platform_commission"


class FeesConfigRepository:
    """Concrete implementation of CommissionRateLookupProtocol."""

    async def get_commission_rate(self, db: AsyncSession) -> Decimal | None:
        result = await db.execute(_GET_ACTIVE_FEE_SQL, {"scope": PLATFORM_COMMISSION_SCOPE})
        value = result.scalar_one_or_none()
        return Decimal(str(value)) if value is not None else None
