# src/jt_stock/application/service.py
"""Store construction and monitoring views.

The store is built once in the app lifespan and kept on app.state; routers
and the order service receive it through get_stock_store().
"""
from dataclasses import asdict

import redis.asyncio as aioredis
from fastapi import Request

from config.settings import settings
from src.jt_stock.application.schemas import (
    ActiveLocksResponse,
    ActiveLockItem,
    HealthResponse,
    StatsResponse,
)
from src.jt_stock.domain.repository import (
    ProductStockRepositoryProtocol,
    StockReservationStoreProtocol,
)
from src.jt_stock.infrastructure.memory_store import InMemoryStockReservationStore
from src.jt_stock.infrastructure.persistence import ProductStockRepository
from src.jt_stock.infrastructure.redis_store import RedisStockReservationStore


def build_stock_store(
    backend: str = settings.STOCK_STORE_BACKEND,
    *,
    redis: aioredis.Redis | None = None,
    repo: ProductStockRepositoryProtocol | None = None,
) -> StockReservationStoreProtocol:
    product_repo = repo or ProductStockRepository()
    if backend == "memory":
        return InMemoryStockReservationStore(product_repo)
    if backend == "redis":
        if redis is None:
            raise ValueError("STOCK_STORE_BACKEND=redis requires a Redis client")
        return RedisStockReservationStore(redis, product_repo)
    raise ValueError(f"Unknown STOCK_STORE_BACKEND: {backend!r}")


def get_stock_store(request: Request) -> StockReservationStoreProtocol:
    """FastAPI dependency: the store built in the app lifespan."""
    return request.app.state.stock_store  # type: ignore[no-any-return]


async def stats_view(store: StockReservationStoreProtocol) -> StatsResponse:
    return StatsResponse(**asdict(await store.stats()))


async def health_view(store: StockReservationStoreProtocol) -> HealthResponse:
    report = await store.health()
    return HealthResponse(
        status=report.status,
        warnings=report.warnings,
        recommendation=report.recommendation,
        stats=StatsResponse(**asdict(report.stats)),
        thresholds=asdict(report.thresholds),
    )


async def active_view(store: StockReservationStoreProtocol) -> ActiveLocksResponse:
    active = await store.list_active()
    return ActiveLocksResponse(
        count=len(active),
        items=[
            ActiveLockItem(
                order_id=a.order_id,
                items=[i.to_dict() for i in a.items],
                expires_in_seconds=a.expires_in_seconds,
            )
            for a in active
        ],
    )
