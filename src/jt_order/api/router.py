# src/jt_order/api/router.py
"""Order lifecycle endpoints.

Seller-only routes take the seller id from the Bearer token. The DP-paid and
final-proof routes are called by the payment/upload webhook.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.jt_common.database import get_db_session
from src.jt_common.response import ApiResponse, success_response
from src.jt_gateway.auth.dependencies import get_current_seller_id
from src.jt_order.application.schemas import (
    CheckoutDPRequest,
    FinalValidateRequest,
    ProofRequest,
    ValidateOrderRequest,
)
from src.jt_order.application.service import OrderValidationService, get_order_service

router = APIRouter(prefix="/orders", tags=["orders"])

ServiceDep = Annotated[OrderValidationService, Depends(get_order_service)]
DbDep = Annotated[AsyncSession, Depends(get_db_session)]
SellerDep = Annotated[str, Depends(get_current_seller_id)]


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.post("/checkout/dp", response_model=ApiResponse, status_code=201)
async def checkout_dp(
    req: CheckoutDPRequest, request: Request, service: ServiceDep, db: DbDep
) -> ApiResponse:
    data = await service.create_dp_order(db, req)
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.get("/awaiting-validation", response_model=ApiResponse)
async def awaiting_validation(
    request: Request, service: ServiceDep, db: DbDep, seller_id: SellerDep
) -> ApiResponse:
    data = await service.list_awaiting_validation(db, seller_id)
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.post("/{order_id}/validate", response_model=ApiResponse)
async def validate_order(
    order_id: str,
    req: ValidateOrderRequest,
    request: Request,
    service: ServiceDep,
    db: DbDep,
    seller_id: SellerDep,
) -> ApiResponse:
    data = await service.validate_order(
        db,
        order_id,
        seller_id,
        req.action,
        shipping_fee=req.shipping_fee,
        service_fee=req.service_fee,
        rejection_reason=req.rejection_reason,
    )
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.post("/{order_id}/final-validate", response_model=ApiResponse)
async def final_validate(
    order_id: str,
    req: FinalValidateRequest,
    request: Request,
    service: ServiceDep,
    db: DbDep,
    seller_id: SellerDep,
) -> ApiResponse:
    data = await service.validate_final_payment(
        db, order_id, seller_id, req.action, rejection_reason=req.rejection_reason
    )
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.post("/{order_id}/dp-paid", response_model=ApiResponse)
async def dp_paid(
    order_id: str, req: ProofRequest, request: Request, service: ServiceDep, db: DbDep
) -> ApiResponse:
    data = await service.confirm_dp_payment(db, order_id, req.proof_url)
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.post("/{order_id}/final-proof", response_model=ApiResponse)
async def final_proof(
    order_id: str, req: ProofRequest, request: Request, service: ServiceDep, db: DbDep
) -> ApiResponse:
    data = await service.submit_final_proof(db, order_id, req.proof_url)
    return success_response(data.model_dump(mode="json"), _request_id(request))


@router.get("/{order_id}", response_model=ApiResponse)
async def get_order(
    order_id: str, request: Request, service: ServiceDep, db: DbDep
) -> ApiResponse:
    data = await service.get_order(db, order_id)
    return success_response(data.model_dump(mode="json"), _request_id(request))
