"""Health verdict for a reservation store, derived from its stats.

Past the upgrade thresholds the in-process table has outgrown a single
process: the recommendation points at moving reservations to a shared,
durable, lock-capable store (STOCK_STORE_BACKEND=redis).
"""
import json
from collections.abc import Iterable
from datetime import datetime

from src.jt_common.enums import HealthStatus
from src.jt_stock.domain.models import (
    HealthReport,
    HealthThresholds,
    ReservationStats,
    StockReservation,
)

_BYTES_PER_CHAR = 2  # rough UTF-16 estimate
RECOMMEND_OK = "System healthy"
RECOMMEND_MONITOR = "Monitor closely, cleanup expired locks regularly"
RECOMMEND_UPGRADE = (
    "Consider moving stock locks to a shared store (STOCK_STORE_BACKEND=redis): high load detected"
)


def estimate_size_bytes(key: str, reservation: StockReservation) -> int:
    payload = json.dumps(reservation.to_dict(), separators=(",", ":"))
    return (len(key) + len(payload)) * _BYTES_PER_CHAR


def compute_stats(
    entries: Iterable[tuple[str, StockReservation]], now: datetime
) -> ReservationStats:
    active = expired = products = 0
    size_bytes = 0
    ages: list[float] = []
    for key, res in entries:
        size_bytes += estimate_size_bytes(key, res)
        if res.is_expired(now):
            expired += 1
            continue
        active += 1
        products += len(res.items)
        ages.append((now - res.created_at).total_seconds())

    return ReservationStats(
        active_locks=active,
        expired_locks=expired,
        total_locks=active + expired,
        total_products_locked=products,
        memory_usage_mb=round(size_bytes / 1024 / 1024, 2),
        oldest_lock_age_minutes=int(max(ages) // 60) if ages else 0,
        newest_lock_age_minutes=int(min(ages) // 60) if ages else 0,
        average_lock_age_minutes=int(sum(ages) / len(ages) // 60) if ages else 0,
        timestamp=now,
    )


def evaluate_health(
    stats: ReservationStats, thresholds: HealthThresholds | None = None
) -> HealthReport:
    t = thresholds or HealthThresholds()
    warnings: list[str] = []
    status = HealthStatus.HEALTHY

    if stats.active_locks > t.max_active_locks:
        warnings.append(
            f"High active locks: {stats.active_locks} (threshold: {t.max_active_locks})"
        )
        status = HealthStatus.WARNING

    if stats.memory_usage_mb > t.max_memory_mb:
        warnings.append(
            f"High memory usage: {stats.memory_usage_mb:.2f}MB (threshold: {t.max_memory_mb}MB)"
        )
        status = HealthStatus.WARNING

    if stats.total_locks > 0:
        ratio = stats.expired_locks / stats.total_locks
        if ratio > t.max_expired_ratio:
            warnings.append(
                f"High expired ratio: {ratio * 100:.1f}% "
                f"(threshold: {t.max_expired_ratio * 100:.0f}%)"
            )
            # unswept backlog on top of another warning escalates
            status = (
                HealthStatus.CRITICAL if status == HealthStatus.WARNING else HealthStatus.WARNING
            )

    if stats.active_locks > t.upgrade_active_locks or stats.memory_usage_mb > t.upgrade_memory_mb:
        status = HealthStatus.CRITICAL
        recommendation = RECOMMEND_UPGRADE
    elif status != HealthStatus.HEALTHY:
        recommendation = RECOMMEND_MONITOR
    else:
        recommendation = RECOMMEND_OK

    return HealthReport(
        status=status.value,
        warnings=warnings,
        recommendation=recommendation,
        stats=stats,
        thresholds=t,
    )
