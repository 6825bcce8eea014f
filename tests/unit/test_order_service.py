"""Unit tests for OrderValidationService with in-memory order and stock fakes."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.jt_common.datetime_utils import utc_now
from src.jt_common.errors import (
    ConcurrentOrderUpdateError,
    InputValidationError,
    InsufficientStockError,
    InvalidOrderInputError,
    InvalidStateError,
    InvalidTransitionError,
    NotTripOwnerError,
    OrderNotFoundError,
    ProductNotFoundError,
    RejectionReasonRequiredError,
    ShippingFeeRequiredError,
    TripNotFoundError,
    UnauthorizedError,
)
from src.jt_common.identifiers import validate_order_code
from src.jt_order.application.schemas import CheckoutDPRequest, CheckoutItemRequest
from src.jt_order.application.service import (
    AUTO_REJECT_REASON,
    OrderValidationService,
    is_validation_overdue,
)
from src.jt_order.domain.models import CatalogProduct, Order, OrderItem, Trip

SELLER = "seller-1"


def _trip(**kwargs) -> Trip:
    defaults = dict(id="trip-1", jastiper_id=SELLER, title="Tokyo Oct", payment_type="dp")
    defaults.update(kwargs)
    return Trip(**defaults)


def _item(product_id: str = "bag", product_type: str = "goods", **kwargs) -> OrderItem:
    defaults = dict(
        id=f"it-{product_id}", order_id="ord-1", product_id=product_id,
        product_type=product_type, price_at_order=50_000, quantity=2,
        markup_type="percent", markup_value=10,
    )
    defaults.update(kwargs)
    return OrderItem(**defaults)


def _order(**kwargs) -> Order:
    defaults = dict(
        id="ord-1", order_code="JST-K7X9M2-4F", trip_id="trip-1",
        status="awaiting_validation", participant_id="buyer-1",
        items=[_item()], trip=_trip(), total_price=100_000, dp_amount=20_000,
        dp_paid_at=utc_now() - timedelta(hours=1),
    )
    defaults.update(kwargs)
    return Order(**defaults)


def _commission(rate: int | None = 5) -> MagicMock:
    lookup = MagicMock()
    lookup.get_commission_rate = AsyncMock(return_value=Decimal(rate) if rate is not None else None)
    return lookup


@pytest.fixture
def service(order_repo, stock_store, dispatcher) -> OrderValidationService:
    return OrderValidationService(
        stock_store, dispatcher, repo=order_repo, commission_lookup=_commission()
    )


@pytest.fixture
def stocked(product_repo):
    product_repo.add("bag", 10, title="Tas Kulit")
    product_repo.add("queue", None, product_type="tasks", title="Antri Restoran")
    return product_repo


class TestGuards:
    @pytest.mark.asyncio
    async def test_not_found(self, service, db) -> None:
        with pytest.raises(OrderNotFoundError):
            await service.validate_order(db, "missing", SELLER, "accept", shipping_fee=0)

    @pytest.mark.asyncio
    async def test_other_seller_unauthorized(self, service, order_repo, stocked, db) -> None:
        order_repo.put(_order())
        with pytest.raises(UnauthorizedError):
            await service.validate_order(db, "ord-1", "seller-2", "accept", shipping_fee=5_000)
        assert order_repo.orders["ord-1"].status == "awaiting_validation"
        assert stocked.stock_of("bag") == 10

    @pytest.mark.asyncio
    async def test_wrong_status(self, service, order_repo, db) -> None:
        order_repo.put(_order(status="pending_dp"))
        with pytest.raises(InvalidStateError):
            await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)

    @pytest.mark.asyncio
    async def test_unknown_action(self, service, order_repo, db) -> None:
        order_repo.put(_order())
        with pytest.raises(InvalidOrderInputError):
            await service.validate_order(db, "ord-1", SELLER, "maybe")


class TestReject:
    @pytest.mark.asyncio
    async def test_empty_reason_leaves_status(self, service, order_repo, db) -> None:
        order_repo.put(_order())
        for reason in (None, "", "   "):
            with pytest.raises(RejectionReasonRequiredError) as exc_info:
                await service.validate_order(db, "ord-1", SELLER, "reject", rejection_reason=reason)
            assert isinstance(exc_info.value, InputValidationError)
        assert order_repo.orders["ord-1"].status == "awaiting_validation"
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reject(self, service, order_repo, dispatcher, notifier, db) -> None:
        order_repo.put(_order())
        resp = await service.validate_order(
            db, "ord-1", SELLER, "reject", rejection_reason="Stok di toko habis"
        )
        stored = order_repo.orders["ord-1"]
        assert resp.order.status == "rejected"
        assert resp.payment_link is None
        assert stored.status == "rejected"
        assert stored.rejection_reason == "Stok di toko habis"
        assert stored.validated_by == SELLER
        assert stored.validated_at is not None
        db.commit.assert_awaited_once()

        await dispatcher.drain()
        assert notifier.calls == [("rejected", "ord-1", "Stok di toko habis")]

    @pytest.mark.asyncio
    async def test_reject_restores_stray_reservation(
        self, service, order_repo, stock_store, stocked, db
    ) -> None:
        order_repo.put(_order())
        await stock_store.lock("ord-1", [_item().to_stock_item()], db)
        assert stocked.stock_of("bag") == 8
        await service.validate_order(db, "ord-1", SELLER, "reject", rejection_reason="Batal")
        assert stocked.stock_of("bag") == 10
        assert not await stock_store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_failed_commit_reinstates_reservation(
        self, service, order_repo, stock_store, stocked, db
    ) -> None:
        order_repo.put(_order())
        await stock_store.lock("ord-1", [_item().to_stock_item()], db)
        db.commit.side_effect = ConnectionError("commit failed")
        with pytest.raises(ConnectionError):
            await service.validate_order(db, "ord-1", SELLER, "reject", rejection_reason="Batal")
        db.rollback.assert_awaited_once()
        assert await stock_store.is_locked("ord-1")


class TestAccept:
    @pytest.mark.asyncio
    async def test_accept_reference_scenario(
        self, service, order_repo, stock_store, stocked, dispatcher, notifier, db
    ) -> None:
        order_repo.put(_order())
        resp = await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)

        stored = order_repo.orders["ord-1"]
        assert stored.status == "awaiting_final_payment"
        assert stored.total_price == 120_500
        assert stored.final_amount == 100_500
        assert stored.platform_commission == 5_500
        assert stored.final_breakdown["jastiper_markup"] == 10_000
        assert stored.final_breakdown["dp_amount"] == 20_000
        assert resp.payment_link.endswith("/final/ord-1")
        assert resp.order.final_amount == 100_500

        assert stocked.stock_of("bag") == 8
        assert await stock_store.is_locked("ord-1")

        await dispatcher.drain()
        assert notifier.calls == [("validated", "ord-1", None)]

    @pytest.mark.asyncio
    async def test_shipping_fee_required_for_goods(self, service, order_repo, stocked, db) -> None:
        order_repo.put(_order())
        with pytest.raises(ShippingFeeRequiredError):
            await service.validate_order(db, "ord-1", SELLER, "accept")
        assert stocked.stock_of("bag") == 10

    @pytest.mark.asyncio
    async def test_tasks_only_needs_no_shipping(self, service, order_repo, stocked, db) -> None:
        order_repo.put(_order(items=[_item("queue", "tasks", quantity=500)]))
        resp = await service.validate_order(db, "ord-1", SELLER, "accept")
        assert resp.order.shipping_fee == 0
        assert stocked.stock_of("queue") is None
        assert stocked.decrement_calls == []

    @pytest.mark.asyncio
    async def test_trip_dp_percentage(self, service, order_repo, stocked, db) -> None:
        order_repo.put(_order(trip=_trip(dp_percentage=50), dp_amount=50_000))
        await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        stored = order_repo.orders["ord-1"]
        assert stored.final_breakdown["dp_amount"] == 50_000
        assert stored.final_amount == 70_500

    @pytest.mark.asyncio
    async def test_dp_mismatch_is_logged(self, service, order_repo, stocked, db, caplog) -> None:
        order_repo.put(_order(dp_amount=15_000))
        await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        assert "differs from DP at checkout" in caplog.text

    @pytest.mark.asyncio
    async def test_insufficient_stock_keeps_order_awaiting(
        self, service, order_repo, stock_store, product_repo, dispatcher, db
    ) -> None:
        product_repo.add("bag", 1, title="Tas Kulit")
        order_repo.put(_order())
        with pytest.raises(InsufficientStockError) as exc_info:
            await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        assert exc_info.value.available == 1
        assert exc_info.value.requested == 2
        assert "Tas Kulit" in exc_info.value.message
        assert order_repo.orders["ord-1"].status == "awaiting_validation"
        assert product_repo.stock_of("bag") == 1
        assert not await stock_store.is_locked("ord-1")
        assert dispatcher.stats().pending == 0

    @pytest.mark.asyncio
    async def test_deleted_product(self, service, order_repo, db) -> None:
        order_repo.put(_order())
        with pytest.raises(ProductNotFoundError):
            await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)

    @pytest.mark.asyncio
    async def test_double_accept_commits_stock_once(
        self, service, order_repo, stocked, db
    ) -> None:
        order_repo.put(_order())
        await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        with pytest.raises(InvalidStateError):
            await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        assert stocked.stock_of("bag") == 8
        assert stocked.decrement_calls == [("bag", 2)]

    @pytest.mark.asyncio
    async def test_concurrent_accepts_commit_once(self, service, order_repo, stocked, db) -> None:
        order_repo.put(_order())
        results = await asyncio.gather(
            *(
                service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
                for _ in range(3)
            ),
            return_exceptions=True,
        )
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert all(isinstance(r, InvalidStateError) for r in results if isinstance(r, Exception))
        assert stocked.stock_of("bag") == 8

    @pytest.mark.asyncio
    async def test_lost_status_race_restores_stock(
        self, service, order_repo, stock_store, stocked, db
    ) -> None:
        order_repo.put(_order())
        order_repo.update_status = AsyncMock(return_value=False)
        with pytest.raises(ConcurrentOrderUpdateError):
            await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        assert stocked.stock_of("bag") == 10
        assert not await stock_store.is_locked("ord-1")
        db.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_commit_failure_restores_stock(
        self, service, order_repo, stock_store, stocked, db
    ) -> None:
        order_repo.put(_order())
        db.commit = AsyncMock(side_effect=ConnectionError("db lost"))
        with pytest.raises(ConnectionError):
            await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        assert stocked.stock_of("bag") == 10
        assert not await stock_store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_commission_lookup_failure_falls_back(
        self, order_repo, stock_store, dispatcher, stocked, db
    ) -> None:
        lookup = MagicMock()
        lookup.get_commission_rate = AsyncMock(side_effect=TimeoutError())
        service = OrderValidationService(
            stock_store, dispatcher, repo=order_repo, commission_lookup=lookup
        )
        order_repo.put(_order())
        await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        assert order_repo.orders["ord-1"].platform_commission == 5_500

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_accept(
        self, service, order_repo, stocked, dispatcher, notifier, db
    ) -> None:
        notifier.fail = True
        order_repo.put(_order())
        resp = await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)
        await dispatcher.drain()
        assert resp.order.status == "awaiting_final_payment"
        assert dispatcher.stats().failed == 1


class TestFinalPayment:
    async def _accepted(self, service, order_repo, db) -> None:
        order_repo.put(_order())
        await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=5_000)

    @pytest.mark.asyncio
    async def test_final_proof_extends_reservation(
        self, service, order_repo, stock_store, stocked, db
    ) -> None:
        await self._accepted(service, order_repo, db)
        before = (await stock_store.get("ord-1")).expires_at
        resp = await service.submit_final_proof(db, "ord-1", "https://cdn/final.jpg")
        assert resp.status == "awaiting_final_validation"
        assert order_repo.orders["ord-1"].final_proof_url == "https://cdn/final.jpg"
        assert (await stock_store.get("ord-1")).expires_at == before + timedelta(seconds=600)

    @pytest.mark.asyncio
    async def test_final_proof_wrong_status(self, service, order_repo, db) -> None:
        order_repo.put(_order())
        with pytest.raises(InvalidTransitionError):
            await service.submit_final_proof(db, "ord-1", "https://cdn/final.jpg")

    @pytest.mark.asyncio
    async def test_accept_final_payment_keeps_stock_sold(
        self, service, order_repo, stock_store, stocked, dispatcher, notifier, db
    ) -> None:
        await self._accepted(service, order_repo, db)
        await service.submit_final_proof(db, "ord-1", "https://cdn/final.jpg")
        resp = await service.validate_final_payment(db, "ord-1", SELLER, "accept")
        assert resp.status == "paid"
        assert stocked.stock_of("bag") == 8
        assert not await stock_store.is_locked("ord-1")
        await dispatcher.drain()
        assert ("paid", "ord-1", None) in notifier.calls

    @pytest.mark.asyncio
    async def test_reject_final_payment_requires_reupload(
        self, service, order_repo, stock_store, stocked, db
    ) -> None:
        await self._accepted(service, order_repo, db)
        await service.submit_final_proof(db, "ord-1", "https://cdn/final.jpg")
        with pytest.raises(RejectionReasonRequiredError):
            await service.validate_final_payment(db, "ord-1", SELLER, "reject")
        resp = await service.validate_final_payment(
            db, "ord-1", SELLER, "reject", rejection_reason="Nominal kurang"
        )
        stored = order_repo.orders["ord-1"]
        assert resp.status == "awaiting_final_payment"
        assert stored.final_proof_url is None
        assert stored.rejection_reason == "Nominal kurang"
        assert await stock_store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_final_validation_wrong_status(self, service, order_repo, db) -> None:
        order_repo.put(_order(status="awaiting_final_payment"))
        with pytest.raises(InvalidTransitionError):
            await service.validate_final_payment(db, "ord-1", SELLER, "accept")

    @pytest.mark.asyncio
    async def test_final_validation_other_seller(self, service, order_repo, db) -> None:
        order_repo.put(_order(status="awaiting_final_validation"))
        with pytest.raises(NotTripOwnerError):
            await service.validate_final_payment(db, "ord-1", "seller-2", "accept")

    @pytest.mark.asyncio
    async def test_breakdown_is_not_recomputed(self, service, order_repo, stocked, db) -> None:
        await self._accepted(service, order_repo, db)
        snapshot = dict(order_repo.orders["ord-1"].final_breakdown)
        with pytest.raises(InvalidStateError):
            await service.validate_order(db, "ord-1", SELLER, "accept", shipping_fee=99_000)
        assert order_repo.orders["ord-1"].final_breakdown == snapshot


class TestDpPayment:
    @pytest.mark.asyncio
    async def test_confirm_dp(self, service, order_repo, db) -> None:
        order_repo.put(_order(status="pending_dp", dp_paid_at=None))
        resp = await service.confirm_dp_payment(db, "ord-1", "https://cdn/dp.jpg")
        stored = order_repo.orders["ord-1"]
        assert resp.status == "awaiting_validation"
        assert stored.dp_paid_at is not None
        assert stored.dp_proof_url == "https://cdn/dp.jpg"

    @pytest.mark.asyncio
    async def test_confirm_dp_twice(self, service, order_repo, db) -> None:
        order_repo.put(_order(status="pending_dp", dp_paid_at=None))
        await service.confirm_dp_payment(db, "ord-1", "https://cdn/dp.jpg")
        with pytest.raises(InvalidTransitionError):
            await service.confirm_dp_payment(db, "ord-1", "https://cdn/dp.jpg")


class TestAwaitingValidation:
    @pytest.mark.asyncio
    async def test_oldest_first_with_overdue_flag(self, service, order_repo, db) -> None:
        now = utc_now()
        order_repo.put(_order(id="ord-new", dp_paid_at=now - timedelta(hours=2)))
        order_repo.put(_order(id="ord-old", dp_paid_at=now - timedelta(hours=30)))
        order_repo.put(_order(id="ord-other", trip=_trip(id="trip-2", jastiper_id="seller-2")))
        resp = await service.list_awaiting_validation(db, SELLER)
        assert resp.count == 2
        assert [i.order.id for i in resp.orders] == ["ord-old", "ord-new"]
        assert [i.is_overdue for i in resp.orders] == [True, False]


class TestOverdue:
    def test_unset_dp_paid_at(self) -> None:
        assert not is_validation_overdue(_order(dp_paid_at=None))

    def test_within_deadline(self) -> None:
        now = utc_now()
        assert not is_validation_overdue(_order(dp_paid_at=now - timedelta(hours=23)), now)

    def test_past_deadline(self) -> None:
        now = utc_now()
        assert is_validation_overdue(_order(dp_paid_at=now - timedelta(hours=25)), now)

    def test_custom_deadline(self) -> None:
        now = utc_now()
        order = _order(dp_paid_at=now - timedelta(hours=3))
        assert is_validation_overdue(order, now, deadline_hours=2)

    def test_naive_db_timestamp(self) -> None:
        now = utc_now()
        naive = (now - timedelta(hours=25)).replace(tzinfo=None)
        assert is_validation_overdue(_order(dp_paid_at=naive), now)


class TestCheckout:
    def _catalog(self, order_repo, stock: int | None = 5) -> None:
        order_repo.trips["trip-1"] = _trip(dp_percentage=30)
        order_repo.catalog["bag"] = CatalogProduct(
            id="bag", trip_id="trip-1", title="Tas Kulit", type="goods", price=50_000,
            stock=stock, markup_type="flat", markup_value=2_000, weight_gram=800,
        )
        order_repo.catalog["queue"] = CatalogProduct(
            id="queue", trip_id="trip-1", title="Antri", type="tasks", price=25_000, stock=None,
        )

    def _request(self, **kwargs) -> CheckoutDPRequest:
        defaults = dict(
            trip_id="trip-1",
            items=[CheckoutItemRequest(product_id="bag", quantity=2),
                   CheckoutItemRequest(product_id="queue", quantity=1)],
            guest_id="guest-1",
        )
        defaults.update(kwargs)
        return CheckoutDPRequest(**defaults)

    @pytest.mark.asyncio
    async def test_creates_pending_order_with_snapshots(self, service, order_repo, db) -> None:
        self._catalog(order_repo)
        resp = await service.create_dp_order(db, self._request())

        assert resp.order.status == "pending_dp"
        assert resp.dp_amount == 37_500  # 30% of 125000
        assert validate_order_code(resp.order.order_code)
        assert resp.payment_link.endswith(f"/dp/{resp.order.id}")
        (order,) = order_repo.inserted
        bag = next(i for i in order.items if i.product_id == "bag")
        assert bag.price_at_order == 50_000
        assert bag.markup_type == "flat"
        assert bag.markup_value == 2_000
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_later_price_change_does_not_touch_order(self, service, order_repo, db) -> None:
        self._catalog(order_repo)
        resp = await service.create_dp_order(db, self._request())
        order_repo.catalog["bag"].price = 99_000
        stored = order_repo.orders[resp.order.id]
        assert next(i for i in stored.items if i.product_id == "bag").price_at_order == 50_000

    @pytest.mark.asyncio
    async def test_min_dp(self, service, order_repo, db) -> None:
        self._catalog(order_repo)
        resp = await service.create_dp_order(
            db, self._request(items=[CheckoutItemRequest(product_id="queue", quantity=1)])
        )
        assert resp.dp_amount == 10_000

    @pytest.mark.asyncio
    async def test_unknown_trip(self, service, db) -> None:
        with pytest.raises(TripNotFoundError):
            await service.create_dp_order(db, self._request())

    @pytest.mark.asyncio
    async def test_full_payment_trip(self, service, order_repo, db) -> None:
        self._catalog(order_repo)
        order_repo.trips["trip-1"] = _trip(payment_type="full")
        with pytest.raises(InvalidOrderInputError):
            await service.create_dp_order(db, self._request())

    @pytest.mark.asyncio
    async def test_product_from_other_trip(self, service, order_repo, db) -> None:
        self._catalog(order_repo)
        order_repo.catalog["bag"].trip_id = "trip-9"
        with pytest.raises(ProductNotFoundError):
            await service.create_dp_order(db, self._request())

    @pytest.mark.asyncio
    async def test_cart_time_stock_check(self, service, order_repo, db) -> None:
        self._catalog(order_repo, stock=1)
        with pytest.raises(InsufficientStockError):
            await service.create_dp_order(db, self._request())
        assert order_repo.inserted == []

    def test_buyer_identity_required(self) -> None:
        with pytest.raises(ValueError):
            self._request(guest_id=None)
        with pytest.raises(ValueError):
            self._request(participant_id="p-1")


class TestAutoReject:
    @pytest.mark.asyncio
    async def test_rejects_only_overdue(
        self, service, order_repo, dispatcher, notifier, db
    ) -> None:
        order_repo.put(_order(id="ord-old", dp_paid_at=utc_now() - timedelta(hours=25)))
        order_repo.put(_order(id="ord-new", dp_paid_at=utc_now() - timedelta(hours=2)))
        result = await service.auto_reject_overdue(db)

        assert result.total == 1
        assert result.rejected == ["ord-old"]
        assert result.failed == 0
        stored = order_repo.orders["ord-old"]
        assert stored.status == "rejected"
        assert stored.rejection_reason == AUTO_REJECT_REASON
        assert stored.validated_by is None
        assert order_repo.orders["ord-new"].status == "awaiting_validation"

        await dispatcher.drain()
        assert notifier.calls == [("rejected", "ord-old", AUTO_REJECT_REASON)]

    @pytest.mark.asyncio
    async def test_restores_held_stock(self, service, order_repo, stock_store, stocked, db) -> None:
        order_repo.put(_order(dp_paid_at=utc_now() - timedelta(hours=30)))
        await stock_store.lock("ord-1", [_item().to_stock_item()], db)
        await service.auto_reject_overdue(db)
        assert stocked.stock_of("bag") == 10
        assert not await stock_store.is_locked("ord-1")

    @pytest.mark.asyncio
    async def test_skips_order_validated_meanwhile(self, service, order_repo, db) -> None:
        order_repo.put(_order(dp_paid_at=utc_now() - timedelta(hours=30)))
        order_repo.list_overdue_validation = AsyncMock(return_value=["ord-1"])
        order_repo.orders["ord-1"].status = "awaiting_final_payment"
        result = await service.auto_reject_overdue(db)
        assert result.total == 1
        assert result.rejected == []
        assert order_repo.orders["ord-1"].status == "awaiting_final_payment"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_batch(self, service, order_repo, db) -> None:
        order_repo.put(_order(id="ord-a", dp_paid_at=utc_now() - timedelta(hours=40)))
        order_repo.put(_order(id="ord-b", dp_paid_at=utc_now() - timedelta(hours=30)))
        original = order_repo.update_status

        async def flaky_update(order_id, *args):
            if order_id == "ord-a":
                raise ConnectionError("db down")
            return await original(order_id, *args)

        order_repo.update_status = flaky_update
        result = await service.auto_reject_overdue(db)
        assert result.total == 2
        assert result.rejected == ["ord-b"]
        assert result.failed == 1
        assert order_repo.orders["ord-a"].status == "awaiting_validation"

    @pytest.mark.asyncio
    async def test_nothing_overdue(self, service, order_repo, db) -> None:
        order_repo.put(_order())
        result = await service.auto_reject_overdue(db)
        assert result.total == 0
        db.commit.assert_not_awaited()


class TestGetOrder:
    @pytest.mark.asyncio
    async def test_returns_order(self, service, order_repo, db) -> None:
        order_repo.put(_order())
        resp = await service.get_order(db, "ord-1")
        assert resp.id == "ord-1"
        assert resp.items[0].product_id == "bag"

    @pytest.mark.asyncio
    async def test_missing(self, service, db) -> None:
        with pytest.raises(OrderNotFoundError):
            await service.get_order(db, "missing")
