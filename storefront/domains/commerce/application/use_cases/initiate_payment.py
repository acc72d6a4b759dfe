"""
Initiate Payment Use Case

First phase of the gateway round trip: create a pending payment attempt
and obtain the redirect target from the gateway.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from storefront.core.domain import (
    IllegalTransitionException,
    IntegrationException,
    InvalidOperationException,
    OrderNotFoundException,
    generate_uuid_str,
)
from storefront.domains.commerce.application.ports import (
    IOrderRepository,
    IPaymentGateway,
    IPaymentRepository,
)
from storefront.domains.commerce.domain.entities import PaymentAttempt
from storefront.domains.commerce.domain.value_objects import OrderStatus

logger = logging.getLogger(__name__)


@dataclass
class InitiatePaymentRequest:
    order_id: str
    user_id: str


@dataclass
class InitiatePaymentResponse:
    payment_id: str
    reference: str
    authority: str
    redirect_url: str
    amount: Decimal


class InitiatePaymentUseCase:
    """
    Use Case: Initiate Payment

    An order can be retried any number of times while pending; every call
    creates a new attempt.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        payment_repository: IPaymentRepository,
        gateway: IPaymentGateway,
        callback_url: str,
        description_template: str = "Payment for order {order_number}",
    ):
        self.order_repository = order_repository
        self.payment_repository = payment_repository
        self.gateway = gateway
        self.callback_url = callback_url
        self.description_template = description_template

    async def execute(self, request: InitiatePaymentRequest) -> InitiatePaymentResponse:
        order = await self.order_repository.get_by_id(request.order_id)
        if order is None or order.user_id != request.user_id:
            raise OrderNotFoundException(request.order_id)
        if order.is_paid:
            raise InvalidOperationException("initiate_payment", order.status.value, "Order is already paid")
        if order.status != OrderStatus.PENDING:
            raise IllegalTransitionException("Order", order.status.value, OrderStatus.PROCESSING.value, order.id)

        description = self.description_template.format(order_number=order.order_number)
        attempt = PaymentAttempt(
            id=generate_uuid_str(),
            order_id=str(order.id),
            user_id=order.user_id,
            amount=order.total_amount,
            gateway=self.gateway.name,
            description=description,
        )
        await self.payment_repository.create(attempt)

        try:
            result = await self.gateway.request_payment(attempt.amount, description, self.callback_url)
        except IntegrationException as e:
            logger.error(f"Payment request failed for order {order.order_number}: {e.message}")
            attempt.fail("gateway_request_failed")
            await self.payment_repository.save(attempt)
            raise

        attempt.attach_authority(result.authority)
        await self.payment_repository.save(attempt)

        logger.info(f"Payment {attempt.reference} initiated for order {order.order_number} amount={attempt.amount}")
        return InitiatePaymentResponse(
            payment_id=str(attempt.id),
            reference=attempt.reference,
            authority=result.authority,
            redirect_url=result.redirect_url,
            amount=attempt.amount,
        )


__all__ = ["InitiatePaymentRequest", "InitiatePaymentResponse", "InitiatePaymentUseCase"]
