# src/jt_stock/application/schemas.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class StatsResponse(BaseModel):
    active_locks: int
    expired_locks: int
    total_locks: int
    total_products_locked: int
    memory_usage_mb: float
    oldest_lock_age_minutes: int
    newest_lock_age_minutes: int
    average_lock_age_minutes: int
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str
    warnings: list[str]
    recommendation: str
    stats: StatsResponse
    thresholds: dict[str, Any]


class ActiveLockItem(BaseModel):
    order_id: str
    items: list[dict[str, Any]]
    expires_in_seconds: int


class ActiveLocksResponse(BaseModel):
    count: int
    items: list[ActiveLockItem]


class CleanupResponse(BaseModel):
    cleaned: int
    active_before: int
    active_after: int
    memory_usage_mb: float
