"""
Verify Payment Use Case

Second phase of the gateway round trip: the customer comes back with the
gateway's authority token and a status flag, and the order, payment and
stock are reconciled.

Outcomes:
- gateway confirms: payment completed, order pending -> processing,
  every line's reservation committed as a sale, cart cleared
- customer cancelled or gateway refused: attempt closed, order stays
  pending with stock still reserved so payment can be retried
- gateway unreachable: nothing changes, the error is retryable
- duplicate callback for a completed attempt: no-op success, unless the
  order is still pending, in which case fulfilment is resumed
"""

import logging
from dataclasses import dataclass

from storefront.core.domain import (
    IntegrationException,
    OrderNotFoundException,
    PaymentVerificationFailedException,
    utc_now,
)
from storefront.domains.commerce.application.ports import (
    ICartRepository,
    IEventPublisher,
    IOrderRepository,
    IPaymentCallbackGuard,
    IPaymentGateway,
    IPaymentRepository,
)
from storefront.domains.commerce.domain.entities import Order, PaymentAttempt
from storefront.domains.commerce.domain.value_objects import OrderStatus, PaymentStatus

from .update_order_status import UpdateOrderStatusUseCase

logger = logging.getLogger(__name__)

GATEWAY_OK_FLAG = "OK"


@dataclass
class VerifyPaymentRequest:
    """Callback parameters as sent back by the gateway."""

    authority: str
    status: str


@dataclass
class VerifyPaymentResponse:
    """
    Result of a verification.

    ``status`` is ``completed`` for the call that completed the payment,
    ``already_processed`` for duplicates and ``in_progress`` when another
    worker holds the callback lock.
    """

    status: str
    payment_id: str | None = None
    order_id: str | None = None
    order_number: str | None = None
    transaction_id: str | None = None

    @property
    def success(self) -> bool:
        return self.status in ("completed", "already_processed")


class VerifyPaymentUseCase:
    """
    Use Case: Verify Payment

    Idempotent: the pending -> completed move is a conditional update, so
    of two concurrent callbacks only one commits stock.
    """

    def __init__(
        self,
        payment_repository: IPaymentRepository,
        order_repository: IOrderRepository,
        cart_repository: ICartRepository,
        gateway: IPaymentGateway,
        status_use_case: UpdateOrderStatusUseCase,
        event_publisher: IEventPublisher,
        callback_guard: IPaymentCallbackGuard | None = None,
    ):
        self.payment_repository = payment_repository
        self.order_repository = order_repository
        self.cart_repository = cart_repository
        self.gateway = gateway
        self.status_use_case = status_use_case
        self.event_publisher = event_publisher
        self.callback_guard = callback_guard

    async def execute(self, request: VerifyPaymentRequest) -> VerifyPaymentResponse:
        if self.callback_guard is not None:
            is_duplicate, previous_transaction = await self.callback_guard.check_and_lock(request.authority)
            if is_duplicate:
                return await self._duplicate_response(request.authority, previous_transaction)

        try:
            response = await self._verify(request)
        except Exception:
            if self.callback_guard is not None:
                await self.callback_guard.mark_failed(request.authority)
            raise

        if self.callback_guard is not None and response.transaction_id:
            await self.callback_guard.mark_complete(request.authority, response.transaction_id)
        return response

    async def _verify(self, request: VerifyPaymentRequest) -> VerifyPaymentResponse:
        payment = await self.payment_repository.get_by_authority(request.authority)
        if payment is None:
            raise PaymentVerificationFailedException(None, "unknown_authority")

        if payment.status == PaymentStatus.COMPLETED:
            return await self._resume_or_skip(payment)
        if payment.status != PaymentStatus.PENDING:
            raise PaymentVerificationFailedException(str(payment.id), f"payment_{payment.status.value}")

        if request.status.upper() != GATEWAY_OK_FLAG:
            payment.cancel("cancelled_by_user")
            await self.payment_repository.save(payment)
            logger.warning(f"Payment {payment.reference} cancelled by user, order stays pending")
            raise PaymentVerificationFailedException(str(payment.id), "cancelled_by_user")

        order = await self.order_repository.get_by_id(payment.order_id)
        if order is None:
            raise OrderNotFoundException(payment.order_id)

        try:
            result = await self.gateway.verify_payment(request.authority, payment.amount)
        except IntegrationException as e:
            logger.error(f"Gateway unreachable verifying {payment.reference}, leaving it pending: {e.message}")
            raise

        if not result.success or not result.transaction_id:
            payment.fail(result.message or f"gateway_status_{result.status_code}")
            await self.payment_repository.save(payment)
            logger.warning(f"Gateway rejected payment {payment.reference}: {payment.failure_reason}")
            raise PaymentVerificationFailedException(str(payment.id), "gateway_rejected", result.message)

        if order.is_paid or order.status != OrderStatus.PENDING:
            payment.fail("order_already_paid")
            await self.payment_repository.save(payment)
            logger.error(
                f"Payment {payment.reference} confirmed for order {order.order_number} "
                f"in status {order.status.value}; needs manual refund"
            )
            raise PaymentVerificationFailedException(str(payment.id), "order_already_paid")

        now = utc_now()
        if not await self.payment_repository.mark_completed(str(payment.id), result.transaction_id, now):
            logger.info(f"Payment {payment.reference} completed concurrently")
            return VerifyPaymentResponse(
                status="already_processed",
                payment_id=str(payment.id),
                order_id=str(order.id),
                order_number=order.order_number,
                transaction_id=result.transaction_id,
            )

        payment.complete(result.transaction_id, now)
        await self._fulfil(order, payment)

        logger.info(f"Payment {payment.reference} completed for order {order.order_number}")
        return VerifyPaymentResponse(
            status="completed",
            payment_id=str(payment.id),
            order_id=str(order.id),
            order_number=order.order_number,
            transaction_id=result.transaction_id,
        )

    async def _resume_or_skip(self, payment: PaymentAttempt) -> VerifyPaymentResponse:
        """
        Handle a callback for a payment already marked completed.

        A previous run may have failed after the conditional update but
        before the order left pending; fulfilment is then finished here.
        Lines whose sale was already committed are skipped.
        """
        order = await self.order_repository.get_by_id(payment.order_id)
        if order is None or order.status != OrderStatus.PENDING:
            logger.info(f"Duplicate callback for completed payment {payment.reference}")
            return self._already_processed(payment)

        logger.warning(f"Resuming fulfilment of order {order.order_number} for completed payment {payment.reference}")
        await self._fulfil(order, payment)
        return VerifyPaymentResponse(
            status="completed",
            payment_id=str(payment.id),
            order_id=str(order.id),
            order_number=order.order_number,
            transaction_id=payment.transaction_id,
        )

    async def _fulfil(self, order: Order, payment: PaymentAttempt) -> None:
        order.record_payment(payment.transaction_id, payment.gateway, payment.paid_at)
        await self.status_use_case.apply_transition(
            order,
            OrderStatus.PROCESSING,
            note="Payment completed",
            actor="system",
            now=payment.paid_at,
        )
        await self.order_repository.save(order)
        await self.cart_repository.delete_by_user(order.user_id)
        # A reloaded payment carries no pending events
        payment_events = payment.pull_domain_events() or [payment.completed_event()]
        await self.event_publisher.publish_all(payment_events + order.pull_domain_events())

    async def _duplicate_response(self, authority: str, previous_transaction: str | None) -> VerifyPaymentResponse:
        payment = await self.payment_repository.get_by_authority(authority)
        if payment is not None and payment.status == PaymentStatus.COMPLETED:
            return self._already_processed(payment)
        if previous_transaction:
            return VerifyPaymentResponse(status="already_processed", transaction_id=previous_transaction)
        logger.warning(f"Callback for authority {authority} is already being processed")
        return VerifyPaymentResponse(status="in_progress", payment_id=str(payment.id) if payment else None)

    def _already_processed(self, payment: PaymentAttempt) -> VerifyPaymentResponse:
        return VerifyPaymentResponse(
            status="already_processed",
            payment_id=str(payment.id),
            order_id=payment.order_id,
            transaction_id=payment.transaction_id,
        )


__all__ = ["VerifyPaymentRequest", "VerifyPaymentResponse", "VerifyPaymentUseCase"]
