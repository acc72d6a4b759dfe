"""
Update Order Status Use Case

Drives the order state machine and the stock/refund side effects each
transition requires. Used by the admin override, customer cancel/return
and payment verification.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from storefront.core.domain import OrderNotFoundException, utc_now
from storefront.domains.commerce.application.ports import (
    IEventPublisher,
    IOrderRepository,
    IPaymentRepository,
    IStockLedger,
)
from storefront.domains.commerce.domain.entities import DEFAULT_RETURN_WINDOW_DAYS, Order, StockAction
from storefront.domains.commerce.domain.value_objects import OrderStatus

logger = logging.getLogger(__name__)


@dataclass
class UpdateOrderStatusRequest:
    """
    Request to move an order to a new status.

    ``user_id`` restricts the operation to the order's owner; admin
    overrides leave it unset.
    """

    order_id: str
    status: OrderStatus
    note: str | None = None
    actor: str | None = None
    user_id: str | None = None
    tracking_code: str | None = None


class UpdateOrderStatusUseCase:
    """
    Use Case: Update Order Status

    Side effects per target status:
    - processing: commit the sale of every line still reserved
    - cancelled: release reserved lines, restock committed lines, refund payment
    - returned: restock committed lines, refund payment
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        stock_ledger: IStockLedger,
        payment_repository: IPaymentRepository,
        event_publisher: IEventPublisher,
        return_window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
    ):
        self.order_repository = order_repository
        self.stock_ledger = stock_ledger
        self.payment_repository = payment_repository
        self.event_publisher = event_publisher
        self.return_window_days = return_window_days

    async def execute(self, request: UpdateOrderStatusRequest) -> Order:
        order = await self.order_repository.get_by_id(request.order_id)
        if order is None or (request.user_id is not None and order.user_id != request.user_id):
            raise OrderNotFoundException(request.order_id)
        order.return_window_days = self.return_window_days

        if request.tracking_code and request.status == OrderStatus.SHIPPED:
            order.tracking_code = request.tracking_code

        await self.apply_transition(order, request.status, note=request.note, actor=request.actor)
        await self.order_repository.save(order)
        await self.event_publisher.publish_all(order.pull_domain_events())
        return order

    async def cancel(self, order_id: str, reason: str | None, actor: str | None, user_id: str | None = None) -> Order:
        return await self.execute(
            UpdateOrderStatusRequest(
                order_id=order_id,
                status=OrderStatus.CANCELLED,
                note=reason,
                actor=actor,
                user_id=user_id,
            )
        )

    async def return_order(
        self, order_id: str, reason: str | None, actor: str | None, user_id: str | None = None
    ) -> Order:
        return await self.execute(
            UpdateOrderStatusRequest(
                order_id=order_id,
                status=OrderStatus.RETURNED,
                note=reason,
                actor=actor,
                user_id=user_id,
            )
        )

    async def apply_transition(
        self,
        order: Order,
        target: OrderStatus,
        note: str | None = None,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """
        Validate, run ledger side effects, then record the transition.

        Each line's stock state is saved as soon as its ledger call
        succeeds; the caller persists the final order and publishes its
        events.
        """
        now = now or utc_now()
        order.ensure_can_transition(target, now)

        for line, action in order.stock_actions_for(target):
            if action == StockAction.COMMIT_SALE:
                await self.stock_ledger.commit_sale(line.product_id, line.quantity)
            elif action == StockAction.RELEASE:
                await self.stock_ledger.release(line.product_id, line.quantity)
            else:
                await self.stock_ledger.restock(line.product_id, line.quantity)
            line.stock_state = action.resulting_state
            # Saved per line so a retried transition skips lines already moved
            await self.order_repository.save(order)

        if target in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
            await self._refund(order, note, now)

        previous = order.status
        order.transition_to(target, note=note, actor=actor, now=now)
        logger.info(f"Order {order.order_number}: {previous.value} -> {target.value} (actor={actor})")

    async def _refund(self, order: Order, reason: str | None, now: datetime) -> None:
        if not order.refund_payment(reason, now):
            return
        attempt = await self.payment_repository.get_completed_for_order(str(order.id))
        if attempt is not None:
            attempt.refund(now)
            await self.payment_repository.save(attempt)
        logger.info(f"Order {order.order_number}: payment of {order.payment.refund_amount} marked refunded")


__all__ = ["UpdateOrderStatusRequest", "UpdateOrderStatusUseCase"]
