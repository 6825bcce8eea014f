# src/jt_pricing/domain/repository.py
"""Commission-rate lookup Protocol: the single I/O edge of the price engine."""
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class CommissionRateLookupProtocol(Protocol):
    async def get_commission_rate(self, db: AsyncSession) -> Decimal | None:
        """Active platform commission percentage, or None if none is configured.

        May raise; callers must fall back to the default rate.
        """
        ...
