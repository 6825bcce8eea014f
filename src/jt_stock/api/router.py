# src/jt_stock/api/router.py
"""Operational endpoints for the stock reservation store."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.jt_common.enums import HealthStatus
from src.jt_common.response import ApiResponse, success_response
from src.jt_stock.application import service as svc
from src.jt_stock.application.schemas import CleanupResponse
from src.jt_stock.application.worker import StockSweepWorker
from src.jt_stock.domain.repository import StockReservationStoreProtocol

router = APIRouter(prefix="/monitoring/stock-locks", tags=["monitoring"])

StoreDep = Annotated[StockReservationStoreProtocol, Depends(svc.get_stock_store)]


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.get("", response_model=ApiResponse)
async def get_stats(request: Request, store: StoreDep) -> ApiResponse:
    return success_response(await svc.stats_view(store), _request_id(request))


@router.get("/health")
async def get_health(request: Request, store: StoreDep) -> JSONResponse:
    health = await svc.health_view(store)
    status_code = 503 if health.status == HealthStatus.CRITICAL.value else 200
    body = success_response(health, _request_id(request))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get("/active", response_model=ApiResponse)
async def get_active(request: Request, store: StoreDep) -> ApiResponse:
    return success_response(await svc.active_view(store), _request_id(request))


@router.post("/cleanup", response_model=ApiResponse)
async def cleanup(request: Request) -> ApiResponse:
    worker: StockSweepWorker = request.app.state.sweep_worker
    result = await worker.run_once()
    return success_response(
        CleanupResponse(
            cleaned=result.cleaned,
            active_before=result.active_before,
            active_after=result.active_after,
            memory_usage_mb=result.memory_usage_mb,
        ),
        _request_id(request),
    )
