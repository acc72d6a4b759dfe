"""
Unit Tests for Payment Use Cases

Tests:
- InitiatePaymentUseCase (attempt creation, guards, gateway failure)
- VerifyPaymentUseCase:
  - confirmation commits stock and moves the order to processing
  - duplicate and concurrent callbacks complete exactly once
  - a retry finishes fulfilment interrupted after the payment completed
  - cancelled / rejected / unreachable gateway outcomes
  - payment confirmed for an order that is already paid
  - callback guard interaction
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from storefront.core.domain import (
    IllegalTransitionException,
    IntegrationException,
    InvalidOperationException,
    OrderNotFoundException,
    PaymentVerificationFailedException,
)
from storefront.domains.commerce.application.ports import PaymentVerificationResult
from storefront.domains.commerce.application.use_cases import (
    InitiatePaymentRequest,
    UpdateOrderStatusRequest,
    VerifyPaymentRequest,
    VerifyPaymentUseCase,
)
from storefront.domains.commerce.domain.events import OrderStatusChanged, PaymentCompleted
from storefront.domains.commerce.domain.value_objects import OrderStatus, PaymentStatus, StockState


async def stock(stock_ledger, product_id: str) -> tuple[int, int, int]:
    level = await stock_ledger.get_level(product_id)
    return level.on_hand, level.reserved, level.sold


# ============================================================================
# INITIATE
# ============================================================================


@pytest.mark.use_case
class TestInitiatePaymentUseCase:
    """Starting a gateway payment."""

    @pytest.mark.asyncio
    async def test_initiate_creates_pending_attempt(
        self, place_order, customer, initiate_payment, payment_repository, payment_gateway
    ):
        # Arrange
        order = await place_order(customer)

        # Act
        response = await initiate_payment.execute(InitiatePaymentRequest(order_id=str(order.id), user_id="user-1"))

        # Assert
        assert response.amount == Decimal("1030.00")
        assert response.reference.startswith("PAY-")
        assert response.redirect_url.endswith(response.authority)
        (attempt,) = payment_repository.all()
        assert attempt.status == PaymentStatus.PENDING
        assert attempt.authority == response.authority
        assert attempt.gateway == "fake"
        amount, description, callback_url = payment_gateway.requests[0]
        assert amount == Decimal("1030.00")
        assert description == f"Payment for order {order.order_number}"
        assert callback_url == "https://shop.test/api/v1/payments/verify"

    @pytest.mark.asyncio
    async def test_each_call_creates_new_attempt(self, place_order, customer, initiate_payment, payment_repository):
        order = await place_order(customer)
        request = InitiatePaymentRequest(order_id=str(order.id), user_id="user-1")

        first = await initiate_payment.execute(request)
        second = await initiate_payment.execute(request)

        assert first.authority != second.authority
        assert len(payment_repository.all()) == 2

    @pytest.mark.asyncio
    async def test_foreign_order_not_found(self, place_order, customer, initiate_payment):
        order = await place_order(customer)

        with pytest.raises(OrderNotFoundException):
            await initiate_payment.execute(InitiatePaymentRequest(order_id=str(order.id), user_id="user-2"))

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_be_paid(self, place_order, customer, initiate_payment, update_order_status):
        order = await place_order(customer)
        await update_order_status.cancel(str(order.id), None, actor="user-1")

        with pytest.raises(IllegalTransitionException):
            await initiate_payment.execute(InitiatePaymentRequest(order_id=str(order.id), user_id="user-1"))

    @pytest.mark.asyncio
    async def test_paid_order_rejected(self, place_order, customer, initiate_payment, order_repository):
        order = await place_order(customer)
        stored = await order_repository.get_by_id(str(order.id))
        stored.record_payment("TX-1", "fake")
        await order_repository.save(stored)

        with pytest.raises(InvalidOperationException):
            await initiate_payment.execute(InitiatePaymentRequest(order_id=str(order.id), user_id="user-1"))

    @pytest.mark.asyncio
    async def test_gateway_failure_fails_attempt(
        self, place_order, customer, initiate_payment, payment_repository, payment_gateway
    ):
        order = await place_order(customer)
        payment_gateway.request_error = IntegrationException("fake", "connection refused")

        with pytest.raises(IntegrationException) as exc_info:
            await initiate_payment.execute(InitiatePaymentRequest(order_id=str(order.id), user_id="user-1"))

        assert exc_info.value.details["retryable"] is True
        (attempt,) = payment_repository.all()
        assert attempt.status == PaymentStatus.FAILED
        assert attempt.failure_reason == "gateway_request_failed"


# ============================================================================
# VERIFY - CONFIRMED
# ============================================================================


@pytest.mark.use_case
class TestVerifyPaymentConfirmed:
    """Gateway confirms the payment."""

    @pytest.mark.asyncio
    async def test_confirmation_completes_order(
        self,
        place_order,
        pay_order,
        customer,
        verify_payment,
        order_repository,
        payment_repository,
        stock_ledger,
        published_events,
    ):
        # Arrange
        order = await place_order(customer)
        authority = await pay_order(order)

        # Act
        response = await verify_payment.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        # Assert
        assert response.success is True
        assert response.status == "completed"
        assert response.transaction_id == f"TX-{authority}"
        assert response.order_number == order.order_number

        stored = await order_repository.get_by_id(str(order.id))
        assert stored.status == OrderStatus.PROCESSING
        assert stored.is_paid
        assert stored.payment.transaction_id == f"TX-{authority}"
        assert {line.stock_state for line in stored.lines} == {StockState.COMMITTED}
        assert stored.status_history[-1].actor == "system"

        (attempt,) = payment_repository.all()
        assert attempt.status == PaymentStatus.COMPLETED
        assert await stock(stock_ledger, "p-laptop") == (9, 0, 1)
        assert await stock(stock_ledger, "p-mouse") == (48, 0, 2)

        assert any(isinstance(e, PaymentCompleted) for e in published_events)
        assert any(isinstance(e, OrderStatusChanged) and e.to_status == "processing" for e in published_events)

    @pytest.mark.asyncio
    async def test_duplicate_callback_is_noop(
        self, place_order, pay_order, customer, verify_payment, stock_ledger, payment_gateway
    ):
        order = await place_order(customer)
        authority = await pay_order(order)
        await verify_payment.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        again = await verify_payment.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        assert again.status == "already_processed"
        assert again.success is True
        assert again.transaction_id == f"TX-{authority}"
        assert len(payment_gateway.verifications) == 1
        assert await stock(stock_ledger, "p-laptop") == (9, 0, 1)

    @pytest.mark.asyncio
    async def test_concurrent_callbacks_commit_stock_once(
        self, place_order, pay_order, customer, verify_payment, stock_ledger, order_repository
    ):
        # Arrange
        order = await place_order(customer)
        authority = await pay_order(order)
        request = VerifyPaymentRequest(authority=authority, status="OK")

        # Act
        results = await asyncio.gather(verify_payment.execute(request), verify_payment.execute(request))

        # Assert
        assert sorted(r.status for r in results) == ["already_processed", "completed"]
        assert await stock(stock_ledger, "p-laptop") == (9, 0, 1)
        stored = await order_repository.get_by_id(str(order.id))
        assert stored.status_walk().count(OrderStatus.PROCESSING) == 1

    @pytest.mark.asyncio
    async def test_retry_resumes_partially_fulfilled_order(
        self,
        place_order,
        pay_order,
        customer,
        verify_payment,
        order_repository,
        payment_repository,
        payment_gateway,
        stock_ledger,
        published_events,
    ):
        # Arrange: the ledger drops out on the mice after the laptop sale was committed
        order = await place_order(customer)
        authority = await pay_order(order)
        request = VerifyPaymentRequest(authority=authority, status="OK")
        commit_sale = stock_ledger.commit_sale

        async def commit_laptop_only(product_id, quantity):
            if product_id == "p-mouse":
                raise ConnectionError("ledger unreachable")
            return await commit_sale(product_id, quantity)

        stock_ledger.commit_sale = commit_laptop_only
        with pytest.raises(ConnectionError):
            await verify_payment.execute(request)
        stock_ledger.commit_sale = commit_sale

        halfway = await order_repository.get_by_id(str(order.id))
        assert halfway.status == OrderStatus.PENDING
        assert [line.stock_state for line in halfway.lines] == [StockState.COMMITTED, StockState.RESERVED]

        # Act
        response = await verify_payment.execute(request)

        # Assert
        assert response.status == "completed"
        assert response.transaction_id == f"TX-{authority}"
        stored = await order_repository.get_by_id(str(order.id))
        assert stored.status == OrderStatus.PROCESSING
        assert stored.is_paid
        assert {line.stock_state for line in stored.lines} == {StockState.COMMITTED}
        (attempt,) = payment_repository.all()
        assert attempt.status == PaymentStatus.COMPLETED
        assert await stock(stock_ledger, "p-laptop") == (9, 0, 1)
        assert await stock(stock_ledger, "p-mouse") == (48, 0, 2)
        assert len(payment_gateway.verifications) == 1
        assert sum(isinstance(e, PaymentCompleted) for e in published_events) == 1

    @pytest.mark.asyncio
    async def test_second_attempt_on_paid_order_fails(
        self, place_order, pay_order, customer, verify_payment, payment_repository, stock_ledger
    ):
        # Arrange: two attempts opened before either was confirmed
        order = await place_order(customer)
        first = await pay_order(order)
        second = await pay_order(order)
        await verify_payment.execute(VerifyPaymentRequest(authority=first, status="OK"))

        # Act
        with pytest.raises(PaymentVerificationFailedException) as exc_info:
            await verify_payment.execute(VerifyPaymentRequest(authority=second, status="OK"))

        # Assert
        assert exc_info.value.reason == "order_already_paid"
        late = await payment_repository.get_by_authority(second)
        assert late.status == PaymentStatus.FAILED
        assert await stock(stock_ledger, "p-laptop") == (9, 0, 1)


# ============================================================================
# VERIFY - NOT CONFIRMED
# ============================================================================


@pytest.mark.use_case
class TestVerifyPaymentNotConfirmed:
    """Cancelled, rejected and unreachable outcomes keep the order payable."""

    @pytest.mark.asyncio
    async def test_customer_cancelled(
        self, place_order, pay_order, customer, verify_payment, payment_repository, order_repository, stock_ledger
    ):
        order = await place_order(customer)
        authority = await pay_order(order)

        with pytest.raises(PaymentVerificationFailedException) as exc_info:
            await verify_payment.execute(VerifyPaymentRequest(authority=authority, status="NOK"))

        assert exc_info.value.reason == "cancelled_by_user"
        attempt = await payment_repository.get_by_authority(authority)
        assert attempt.status == PaymentStatus.CANCELLED
        stored = await order_repository.get_by_id(str(order.id))
        assert stored.status == OrderStatus.PENDING
        assert await stock(stock_ledger, "p-laptop") == (10, 1, 0)

    @pytest.mark.asyncio
    async def test_gateway_rejects(
        self, place_order, pay_order, customer, verify_payment, payment_repository, payment_gateway
    ):
        # Arrange
        order = await place_order(customer)
        authority = await pay_order(order)
        payment_gateway.verify_result = PaymentVerificationResult(
            success=False, status_code=-51, message="insufficient_funds"
        )

        # Act
        with pytest.raises(PaymentVerificationFailedException) as exc_info:
            await verify_payment.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        # Assert
        assert exc_info.value.reason == "gateway_rejected"
        attempt = await payment_repository.get_by_authority(authority)
        assert attempt.status == PaymentStatus.FAILED
        assert attempt.failure_reason == "insufficient_funds"

    @pytest.mark.asyncio
    async def test_retry_after_rejection_succeeds(
        self, place_order, pay_order, customer, verify_payment, payment_gateway, order_repository
    ):
        order = await place_order(customer)
        payment_gateway.verify_result = PaymentVerificationResult(success=False, status_code=-51)
        rejected = await pay_order(order)
        with pytest.raises(PaymentVerificationFailedException):
            await verify_payment.execute(VerifyPaymentRequest(authority=rejected, status="OK"))
        payment_gateway.verify_result = None

        retried = await pay_order(order)
        response = await verify_payment.execute(VerifyPaymentRequest(authority=retried, status="OK"))

        assert response.status == "completed"
        stored = await order_repository.get_by_id(str(order.id))
        assert stored.status == OrderStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_gateway_unreachable_leaves_attempt_pending(
        self, place_order, pay_order, customer, verify_payment, payment_repository, payment_gateway, stock_ledger
    ):
        order = await place_order(customer)
        authority = await pay_order(order)
        payment_gateway.verify_error = IntegrationException("fake", "timeout")

        with pytest.raises(IntegrationException):
            await verify_payment.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        attempt = await payment_repository.get_by_authority(authority)
        assert attempt.status == PaymentStatus.PENDING
        assert await stock(stock_ledger, "p-laptop") == (10, 1, 0)

    @pytest.mark.asyncio
    async def test_unknown_authority(self, verify_payment):
        with pytest.raises(PaymentVerificationFailedException) as exc_info:
            await verify_payment.execute(VerifyPaymentRequest(authority="A-NOPE", status="OK"))

        assert exc_info.value.reason == "unknown_authority"

    @pytest.mark.asyncio
    async def test_order_cancelled_while_paying(
        self, place_order, pay_order, customer, verify_payment, update_order_status, payment_repository
    ):
        order = await place_order(customer)
        authority = await pay_order(order)
        await update_order_status.execute(
            UpdateOrderStatusRequest(order_id=str(order.id), status=OrderStatus.CANCELLED, actor="admin")
        )

        with pytest.raises(PaymentVerificationFailedException) as exc_info:
            await verify_payment.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        assert exc_info.value.reason == "order_already_paid"
        attempt = await payment_repository.get_by_authority(authority)
        assert attempt.status == PaymentStatus.FAILED


# ============================================================================
# CALLBACK GUARD
# ============================================================================


@pytest.fixture
def callback_guard():
    guard = AsyncMock()
    guard.check_and_lock.return_value = (False, None)
    return guard


@pytest.fixture
def guarded_verify(
    payment_repository,
    order_repository,
    cart_repository,
    payment_gateway,
    update_order_status,
    event_publisher,
    callback_guard,
) -> VerifyPaymentUseCase:
    return VerifyPaymentUseCase(
        payment_repository=payment_repository,
        order_repository=order_repository,
        cart_repository=cart_repository,
        gateway=payment_gateway,
        status_use_case=update_order_status,
        event_publisher=event_publisher,
        callback_guard=callback_guard,
    )


@pytest.mark.use_case
class TestVerifyPaymentCallbackGuard:
    """Interaction with the callback deduplication guard."""

    @pytest.mark.asyncio
    async def test_success_marks_complete(self, place_order, pay_order, customer, guarded_verify, callback_guard):
        order = await place_order(customer)
        authority = await pay_order(order)

        await guarded_verify.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        callback_guard.check_and_lock.assert_awaited_once_with(authority)
        callback_guard.mark_complete.assert_awaited_once_with(authority, f"TX-{authority}")
        callback_guard.mark_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_releases_lock(self, place_order, pay_order, customer, guarded_verify, callback_guard):
        order = await place_order(customer)
        authority = await pay_order(order)

        with pytest.raises(PaymentVerificationFailedException):
            await guarded_verify.execute(VerifyPaymentRequest(authority=authority, status="NOK"))

        callback_guard.mark_failed.assert_awaited_once_with(authority)
        callback_guard.mark_complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_short_circuits(
        self, place_order, pay_order, customer, guarded_verify, callback_guard, payment_gateway
    ):
        order = await place_order(customer)
        authority = await pay_order(order)
        callback_guard.check_and_lock.return_value = (True, "TX-previous")

        response = await guarded_verify.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        assert response.status == "already_processed"
        assert response.transaction_id == "TX-previous"
        assert payment_gateway.verifications == []

    @pytest.mark.asyncio
    async def test_locked_callback_in_progress(
        self, place_order, pay_order, customer, guarded_verify, callback_guard
    ):
        order = await place_order(customer)
        authority = await pay_order(order)
        callback_guard.check_and_lock.return_value = (True, None)

        response = await guarded_verify.execute(VerifyPaymentRequest(authority=authority, status="OK"))

        assert response.status == "in_progress"
        assert response.success is False
