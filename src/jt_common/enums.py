"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING_DP = "pending_dp"
    AWAITING_VALIDATION = "awaiting_validation"
    REJECTED = "rejected"
    AWAITING_FINAL_PAYMENT = "awaiting_final_payment"
    AWAITING_FINAL_VALIDATION = "awaiting_final_validation"
    PAID = "paid"


class ProductType(str, Enum):
    GOODS = "goods"
    TASKS = "tasks"


class MarkupType(str, Enum):
    PERCENT = "percent"
    FLAT = "flat"


class ValidationAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class PaymentType(str, Enum):
    FULL = "full"
    DP = "dp"
