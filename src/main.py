"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from config.settings import settings
from src.jt_common.database import async_session_factory, engine, ping_database
from src.jt_common.errors import AppError
from src.jt_common.redis_client import close_redis, get_redis
from src.jt_common.response import error_response
from src.jt_gateway.middleware.request_log import RequestLogMiddleware
from src.jt_notify.application.dispatcher import NotificationDispatcher
from src.jt_notify.infrastructure.logging_notifier import LoggingNotifier
from src.jt_order.api.router import router as order_router
from src.jt_order.application.service import OrderValidationService
from src.jt_order.application.worker import AutoRejectWorker
from src.jt_stock.api.router import router as stock_router
from src.jt_stock.application.service import build_stock_store
from src.jt_stock.application.worker import StockSweepWorker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, build the stock store, dispatcher and background workers.
    Shutdown: stop workers, then dispose connections."""
    await ping_database()

    use_redis = settings.STOCK_STORE_BACKEND == "redis"
    redis = await get_redis() if use_redis else None
    stock_store = build_stock_store(settings.STOCK_STORE_BACKEND, redis=redis)
    dispatcher = NotificationDispatcher(LoggingNotifier())
    sweep_worker = StockSweepWorker(stock_store, async_session_factory)

    app.state.stock_store = stock_store
    app.state.dispatcher = dispatcher
    app.state.sweep_worker = sweep_worker
    order_service = OrderValidationService(stock_store, dispatcher)
    auto_reject_worker = AutoRejectWorker(order_service, async_session_factory)
    app.state.order_service = order_service

    await dispatcher.start()
    await sweep_worker.start()
    await auto_reject_worker.start()
    logger.info("Started with %s stock reservation store", settings.STOCK_STORE_BACKEND)
    yield

    await auto_reject_worker.stop()
    await sweep_worker.stop()
    await dispatcher.stop()
    await engine.dispose()
    if use_redis:
        await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc, getattr(request.state, "request_id", None))
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(order_router, prefix="/api/v1")
app.include_router(stock_router, prefix="/api/v1")


@app.get("/health")
async def health(request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "ok", "version": "0.1.0"}
    dispatcher: NotificationDispatcher | None = getattr(request.app.state, "dispatcher", None)
    if dispatcher is not None:
        body["notifications"] = asdict(dispatcher.stats())
    return body
