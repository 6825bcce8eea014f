"""Notification jobs and the notifier Protocol."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from src.jt_common.datetime_utils import utc_now


class NotificationKind(str, Enum):
    ORDER_VALIDATED = "ORDER_VALIDATED"
    ORDER_REJECTED = "ORDER_REJECTED"
    FINAL_PAYMENT_REJECTED = "FINAL_PAYMENT_REJECTED"
    ORDER_PAID = "ORDER_PAID"


@dataclass(frozen=True)
class NotificationJob:
    kind: NotificationKind
    order_id: str
    reason: str | None = None
    enqueued_at: datetime = field(default_factory=utc_now)


class NotifierProtocol(Protocol):
    """Delivery side (email / WhatsApp). Implementations may raise freely."""

    async def notify_order_validated(self, order_id: str) -> None: ...

    async def notify_order_rejected(self, order_id: str, reason: str) -> None: ...

    async def notify_final_payment_rejected(self, order_id: str, reason: str) -> None: ...

    async def notify_order_paid(self, order_id: str) -> None: ...
