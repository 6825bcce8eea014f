# src/jt_order/application/service.py
"""Order lifecycle orchestration: checkout, DP confirmation, seller validation,
final proof and final payment validation.

Every transition on one order runs under a per-order KeyedLock and is written
with an optimistic status check, so a double-submitted accept can pass the
status guard at most once and stock is committed at most once.

Stock is re-checked when the seller accepts, not trusted from checkout: other
buyers may have exhausted it in between.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.jt_common.datetime_utils import ensure_aware, utc_now
from src.jt_common.enums import OrderStatus, PaymentType, ProductType, ValidationAction
from src.jt_common.errors import (
    ConcurrentOrderUpdateError,
    InsufficientStockError,
    InvalidOrderInputError,
    InvalidTransitionError,
    NotTripOwnerError,
    OrderNotFoundError,
    OrderNotValidatableError,
    ProductNotFoundError,
    RejectionReasonRequiredError,
    ShippingFeeRequiredError,
    StockUnavailableError,
    TripNotFoundError,
)
from src.jt_common.identifiers import generate_id, generate_order_code
from src.jt_common.keyed_lock import KeyedLock
from src.jt_common.rupiah import rupiah_to_display
from src.jt_notify.application.dispatcher import NotificationDispatcher
from src.jt_order.application.schemas import (
    AwaitingValidationItem,
    AutoRejectResponse,
    AwaitingValidationResponse,
    CheckoutDPRequest,
    CheckoutDPResponse,
    OrderItemResponse,
    OrderResponse,
    ValidateOrderResponse,
)
from src.jt_order.domain.models import Order, OrderItem
from src.jt_order.domain.repository import OrderRepositoryProtocol
from src.jt_order.domain.state_machine import ensure_transition, is_terminal
from src.jt_order.infrastructure.persistence import OrderRepository
from src.jt_pricing.application.service import price_order
from src.jt_pricing.domain.calculator import calculate_dp_amount
from src.jt_pricing.domain.models import PriceBreakdown
from src.jt_pricing.domain.repository import CommissionRateLookupProtocol
from src.jt_pricing.infrastructure.persistence import FeesConfigRepository
from src.jt_stock.domain.models import LockResult
from src.jt_stock.domain.repository import StockReservationStoreProtocol

logger = logging.getLogger(__name__)

AUTO_REJECT_REASON = (
    f"Auto-rejected: seller did not validate within {settings.VALIDATION_DEADLINE_HOURS} hours"
)


def is_validation_overdue(
    order: Order,
    now: datetime | None = None,
    *,
    deadline_hours: int = settings.VALIDATION_DEADLINE_HOURS,
) -> bool:
    """True once the seller has sat on a DP-paid order past the deadline.

    Pure predicate; auto_reject_overdue is what acts on it.
    """
    if order.dp_paid_at is None:
        return False
    now = now or utc_now()
    return ensure_aware(now) > ensure_aware(order.dp_paid_at) + timedelta(hours=deadline_hours)


def _require_reason(reason: str | None) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise RejectionReasonRequiredError()
    return cleaned


def _parse_action(action: str) -> ValidationAction:
    try:
        return ValidationAction(action)
    except ValueError:
        raise InvalidOrderInputError(f"unknown action {action!r}") from None


def _stock_error(result: LockResult) -> StockUnavailableError | ProductNotFoundError:
    if result.reason == "not_found":
        return ProductNotFoundError(result.product_id or "")
    return InsufficientStockError(
        result.product_title or result.product_id or "", result.available, result.requested or 0
    )


def _apply(order: Order, status: OrderStatus, fields: dict[str, Any]) -> None:
    order.status = status.value
    for name, value in fields.items():
        if name == "final_breakdown" and order.final_breakdown is not None:
            continue
        setattr(order, name, value)


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        order_code=order.order_code,
        trip_id=order.trip_id,
        status=order.status,
        participant_id=order.participant_id,
        guest_id=order.guest_id,
        total_price=order.total_price,
        dp_amount=order.dp_amount,
        final_amount=order.final_amount,
        shipping_fee=order.shipping_fee,
        service_fee=order.service_fee,
        platform_commission=order.platform_commission,
        final_breakdown=order.final_breakdown,
        dp_paid_at=order.dp_paid_at,
        validated_at=order.validated_at,
        validated_by=order.validated_by,
        rejection_reason=order.rejection_reason,
        items=[
            OrderItemResponse(
                id=i.id,
                product_id=i.product_id,
                product_type=i.product_type,
                price_at_order=i.price_at_order,
                quantity=i.quantity,
                item_subtotal=i.item_subtotal,
                markup_type=i.markup_type,
                markup_value=float(i.markup_value),
                note=i.note,
            )
            for i in order.items
        ],
    )


class OrderValidationService:
    def __init__(
        self,
        stock_store: StockReservationStoreProtocol,
        dispatcher: NotificationDispatcher,
        repo: OrderRepositoryProtocol | None = None,
        commission_lookup: CommissionRateLookupProtocol | None = None,
    ) -> None:
        self._stock = stock_store
        self._dispatcher = dispatcher
        self._repo = repo or OrderRepository()
        self._commission = commission_lookup or FeesConfigRepository()
        self._order_locks = KeyedLock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, db: AsyncSession, order_id: str) -> Order:
        order = await self._repo.get_with_items(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _load_owned(self, db: AsyncSession, order_id: str, seller_id: str) -> Order:
        order = await self._load(db, order_id)
        if order.seller_id != seller_id:
            logger.warning(
                "Seller %s attempted to act on order %s owned by %s",
                seller_id, order_id, order.seller_id,
            )
            raise NotTripOwnerError()
        return order

    async def _transition(
        self,
        db: AsyncSession,
        order: Order,
        target: OrderStatus,
        fields: dict[str, Any],
    ) -> None:
        """Optimistic status write; the caller commits."""
        ensure_transition(order.status, target.value)
        updated = await self._repo.update_status(order.id, order.status, target.value, fields, db)
        if not updated:
            raise ConcurrentOrderUpdateError(order.id)
        _apply(order, target, fields)

    # ------------------------------------------------------------------
    # Seller validation of a DP-paid order
    # ------------------------------------------------------------------

    async def validate_order(
        self,
        db: AsyncSession,
        order_id: str,
        seller_id: str,
        action: str,
        shipping_fee: int | None = None,
        service_fee: int | None = None,
        rejection_reason: str | None = None,
    ) -> ValidateOrderResponse:
        parsed = _parse_action(action)
        async with self._order_locks.acquire(order_id):
            order = await self._load_owned(db, order_id, seller_id)
            if order.status != OrderStatus.AWAITING_VALIDATION.value:
                raise OrderNotValidatableError(order_id, order.status)

            if parsed is ValidationAction.REJECT:
                reason = _require_reason(rejection_reason)
                await self._reject(
                    db, order, reason, {"validated_at": utc_now(), "validated_by": seller_id}
                )
                logger.info("Order %s rejected by seller %s", order.id, seller_id)
                return ValidateOrderResponse(order=order_to_response(order))

            payment_link = await self._accept(db, order, seller_id, shipping_fee, service_fee)
            return ValidateOrderResponse(order=order_to_response(order), payment_link=payment_link)

    async def _reject(
        self, db: AsyncSession, order: Order, reason: str, fields: dict[str, Any]
    ) -> None:
        released = None
        try:
            await self._transition(
                db, order, OrderStatus.REJECTED, {**fields, "rejection_reason": reason}
            )
            # Usually nothing is held yet; restoration on reject is unconditional
            released = await self._stock.release(order.id, db, restore=True)
            await db.commit()
        except Exception:
            if released is not None:
                await self._stock.reinstate([released])
            await db.rollback()
            raise
        self._dispatcher.order_rejected(order.id, reason)

    async def auto_reject_overdue(
        self, db: AsyncSession, now: datetime | None = None
    ) -> AutoRejectResponse:
        """Reject every order the seller left unvalidated past the deadline.

        Each order is rejected and committed on its own; one failure is
        logged and counted without stopping the batch.
        """
        now = now or utc_now()
        cutoff = now - timedelta(hours=settings.VALIDATION_DEADLINE_HOURS)
        order_ids = await self._repo.list_overdue_validation(cutoff, db)
        rejected: list[str] = []
        failed = 0
        for order_id in order_ids:
            try:
                if await self._auto_reject(db, order_id, now):
                    rejected.append(order_id)
            except Exception:
                await db.rollback()
                failed += 1
                logger.exception("Auto-reject failed for order %s", order_id)
        if order_ids:
            logger.info(
                "Auto-reject: %d overdue, %d rejected, %d failed",
                len(order_ids), len(rejected), failed,
            )
        return AutoRejectResponse(total=len(order_ids), rejected=rejected, failed=failed)

    async def _auto_reject(self, db: AsyncSession, order_id: str, now: datetime) -> bool:
        async with self._order_locks.acquire(order_id):
            order = await self._load(db, order_id)
            # the seller may have acted since the overdue query ran
            if order.status != OrderStatus.AWAITING_VALIDATION.value:
                return False
            if not is_validation_overdue(order, now):
                return False
            await self._reject(db, order, AUTO_REJECT_REASON, {"validated_at": now})
            logger.info(
                "Order %s auto-rejected, DP %s to be refunded",
                order.id, rupiah_to_display(order.dp_amount),
            )
            return True

    async def _accept(
        self,
        db: AsyncSession,
        order: Order,
        seller_id: str,
        shipping_fee: int | None,
        service_fee: int | None,
    ) -> str:
        if order.has_goods and shipping_fee is None:
            raise ShippingFeeRequiredError()

        breakdown = await price_order(
            [i.to_priced_item() for i in order.items],
            shipping_fee,
            service_fee,
            dp_percentage=order.trip.dp_percentage if order.trip else None,
            lookup=self._commission,
            db=db,
        )
        if order.dp_amount and order.dp_amount != breakdown.dp_amount:
            logger.warning(
                "Order %s: DP recomputed at validation (%d) differs from DP at checkout (%d)",
                order.id, breakdown.dp_amount, order.dp_amount,
            )

        result = await self._stock.lock(order.id, [i.to_stock_item() for i in order.items], db)
        if not result.success:
            await db.rollback()
            logger.info("Order %s acceptance aborted: %s", order.id, result.error)
            raise _stock_error(result)

        try:
            await self._transition(
                db,
                order,
                OrderStatus.AWAITING_FINAL_PAYMENT,
                {
                    "total_price": breakdown.total_final,
                    "final_amount": breakdown.remaining_amount,
                    "shipping_fee": breakdown.shipping_fee,
                    "service_fee": breakdown.service_fee,
                    "platform_commission": breakdown.platform_commission,
                    "final_breakdown": breakdown.to_snapshot(),
                    "validated_at": utc_now(),
                    "validated_by": seller_id,
                },
            )
            await db.commit()
        except Exception:
            # A hold that predates this call was committed earlier; leave it alone
            if not result.already_locked:
                await self._stock.release(order.id, db, restore=True)
            await db.rollback()
            raise

        logger.info(
            "Order %s accepted by seller %s: total=%s remaining=%s",
            order.id, seller_id,
            rupiah_to_display(breakdown.total_final),
            rupiah_to_display(breakdown.remaining_amount),
        )
        self._dispatcher.order_validated(order.id)
        return f"{settings.PAYMENT_LINK_BASE_URL}/final/{order.id}"

    # ------------------------------------------------------------------
    # Final payment
    # ------------------------------------------------------------------

    async def submit_final_proof(
        self, db: AsyncSession, order_id: str, proof_url: str
    ) -> OrderResponse:
        async with self._order_locks.acquire(order_id):
            order = await self._load(db, order_id)
            try:
                await self._transition(
                    db, order, OrderStatus.AWAITING_FINAL_VALIDATION, {"final_proof_url": proof_url}
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            if order.has_goods and not await self._stock.extend(order.id):
                logger.warning(
                    "Order %s final proof arrived after its stock reservation expired", order.id
                )
            return order_to_response(order)

    async def validate_final_payment(
        self,
        db: AsyncSession,
        order_id: str,
        seller_id: str,
        action: str,
        rejection_reason: str | None = None,
    ) -> OrderResponse:
        parsed = _parse_action(action)
        async with self._order_locks.acquire(order_id):
            order = await self._load_owned(db, order_id, seller_id)
            if order.status != OrderStatus.AWAITING_FINAL_VALIDATION.value:
                target = (
                    OrderStatus.PAID
                    if parsed is ValidationAction.ACCEPT
                    else OrderStatus.AWAITING_FINAL_PAYMENT
                )
                raise InvalidTransitionError(
                    order.status, target.value, terminal=is_terminal(order.status)
                )

            if parsed is ValidationAction.REJECT:
                reason = _require_reason(rejection_reason)
                try:
                    await self._transition(
                        db,
                        order,
                        OrderStatus.AWAITING_FINAL_PAYMENT,
                        {"rejection_reason": reason, "final_proof_url": None},
                    )
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
                logger.info("Final payment for order %s rejected: %s", order.id, reason)
                self._dispatcher.final_payment_rejected(order.id, reason)
                return order_to_response(order)

            try:
                await self._transition(db, order, OrderStatus.PAID, {})
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            # Stock is sold: drop the hold without restoring
            await self._stock.release(order.id, db, restore=False)
            paid = (
                PriceBreakdown.from_snapshot(order.final_breakdown).total_final
                if order.final_breakdown
                else order.total_price
            )
            logger.info("Order %s paid in full (%s)", order.id, rupiah_to_display(paid))
            self._dispatcher.order_paid(order.id)
            return order_to_response(order)

    # ------------------------------------------------------------------
    # Checkout and DP confirmation
    # ------------------------------------------------------------------

    async def confirm_dp_payment(
        self, db: AsyncSession, order_id: str, proof_url: str
    ) -> OrderResponse:
        async with self._order_locks.acquire(order_id):
            order = await self._load(db, order_id)
            try:
                await self._transition(
                    db,
                    order,
                    OrderStatus.AWAITING_VALIDATION,
                    {"dp_paid_at": utc_now(), "dp_proof_url": proof_url},
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            logger.info("DP confirmed for order %s", order.id)
            return order_to_response(order)

    async def get_order(self, db: AsyncSession, order_id: str) -> OrderResponse:
        return order_to_response(await self._load(db, order_id))

    async def list_awaiting_validation(
        self, db: AsyncSession, seller_id: str
    ) -> AwaitingValidationResponse:
        orders = await self._repo.list_awaiting_validation(seller_id, db)
        now = utc_now()
        return AwaitingValidationResponse(
            count=len(orders),
            orders=[
                AwaitingValidationItem(
                    order=order_to_response(o), is_overdue=is_validation_overdue(o, now)
                )
                for o in orders
            ],
        )

    async def create_dp_order(self, db: AsyncSession, req: CheckoutDPRequest) -> CheckoutDPResponse:
        trip = await self._repo.get_trip(req.trip_id, db)
        if trip is None:
            raise TripNotFoundError(req.trip_id)
        if trip.payment_type != PaymentType.DP.value:
            raise InvalidOrderInputError(f"trip {trip.id} does not take down payments")

        products = await self._repo.get_catalog_products([i.product_id for i in req.items], db)
        requested: dict[str, int] = defaultdict(int)
        for line in req.items:
            product = products.get(line.product_id)
            if product is None or product.trip_id != trip.id:
                raise ProductNotFoundError(line.product_id)
            requested[line.product_id] += line.quantity

        # Cart-time check only; acceptance re-checks and commits
        for product_id, qty in requested.items():
            product = products[product_id]
            if product.type == ProductType.GOODS.value and (
                product.stock is None or product.stock < qty
            ):
                raise InsufficientStockError(product.title, product.stock, qty)

        order_id = generate_id()
        items = [
            OrderItem(
                id=generate_id(),
                order_id=order_id,
                product_id=line.product_id,
                product_type=products[line.product_id].type,
                price_at_order=products[line.product_id].price,
                quantity=line.quantity,
                markup_type=products[line.product_id].markup_type,
                markup_value=products[line.product_id].markup_value,
                weight_gram=products[line.product_id].weight_gram,
                note=line.note,
            )
            for line in req.items
        ]
        subtotal = sum(i.item_subtotal for i in items)
        dp_amount = calculate_dp_amount(
            subtotal,
            trip.dp_percentage or settings.DEFAULT_DP_PERCENTAGE,
            min_dp=settings.MIN_DP_AMOUNT,
        )
        order = Order(
            id=order_id,
            order_code=generate_order_code(),
            trip_id=trip.id,
            status=OrderStatus.PENDING_DP.value,
            participant_id=req.participant_id,
            guest_id=req.guest_id,
            items=items,
            trip=trip,
            total_price=subtotal,
            dp_amount=dp_amount,
        )
        try:
            await self._repo.insert(order, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Order %s (%s) created on trip %s: subtotal=%d dp=%d",
            order.id, order.order_code, trip.id, subtotal, dp_amount,
        )
        return CheckoutDPResponse(
            order=order_to_response(order),
            dp_amount=dp_amount,
            payment_link=f"{settings.PAYMENT_LINK_BASE_URL}/dp/{order.id}",
        )


def get_order_service(request: Request) -> OrderValidationService:
    """FastAPI dependency: the service built in the app lifespan."""
    return request.app.state.order_service  # type: ignore[no-any-return]
