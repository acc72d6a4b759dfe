"""
Order Repository Implementation

SQLAlchemy implementation of IOrderRepository.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.domain import Address
from storefront.domains.commerce.application.ports import IOrderRepository
from storefront.domains.commerce.domain.entities import AppliedDiscount, Order, OrderLine, OrderPayment
from storefront.domains.commerce.domain.value_objects import (
    CustomerHistory,
    OrderStatus,
    ShippingMethod,
    StatusHistoryEntry,
)
from storefront.models.db import Order as OrderModel
from storefront.models.db import OrderSequence

logger = logging.getLogger(__name__)


class SQLAlchemyOrderRepository(IOrderRepository):
    """
    SQLAlchemy implementation of order repository.

    Line snapshots, status history, payment sub-record and applied
    discounts live in JSONB columns of ``orders``.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def create(self, order: Order) -> Order:
        """Create a new order."""
        model = OrderModel(id=uuid.UUID(str(order.id)))
        self._apply(order, model)
        self.session.add(model)
        try:
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error creating order {order.order_number}: {e}")
            await self.session.rollback()
            raise
        return order

    async def save(self, order: Order) -> Order:
        """Persist changes to an existing order."""
        try:
            model = await self.session.get(OrderModel, uuid.UUID(str(order.id)))
            if model is None:
                raise ValueError(f"Order {order.id} does not exist")
            order.increment_version()
            self._apply(order, model)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error saving order {order.order_number}: {e}")
            await self.session.rollback()
            raise
        return order

    async def get_by_id(self, order_id: str) -> Order | None:
        """Get order by ID."""
        try:
            order_uuid = uuid.UUID(order_id)
        except ValueError:
            logger.warning(f"Invalid order_id format: {order_id}")
            return None
        model = await self.session.get(OrderModel, order_uuid)
        return self._to_entity(model) if model else None

    async def get_by_number(self, order_number: str) -> Order | None:
        """Get order by order number."""
        result = await self.session.execute(select(OrderModel).where(OrderModel.order_number == order_number))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_by_user(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Order]:
        """Orders of a user, newest first."""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.user_id == user_id)
            .order_by(OrderModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def next_daily_sequence(self, day: date) -> int:
        """Atomically bump the per-day counter."""
        stmt = (
            insert(OrderSequence)
            .values(day=day, last_value=1)
            .on_conflict_do_update(
                index_elements=[OrderSequence.day],
                set_={"last_value": OrderSequence.last_value + 1},
            )
            .returning(OrderSequence.last_value)
        )
        result = await self.session.execute(stmt)
        value = result.scalar_one()
        await self.session.commit()
        return value

    async def get_customer_history(self, user_id: str) -> CustomerHistory:
        """Delivered-order count, spend and last delivery of a customer."""
        result = await self.session.execute(
            select(
                func.count(OrderModel.id),
                func.coalesce(func.sum(OrderModel.total_amount), 0),
                func.max(OrderModel.delivered_at),
            ).where(
                OrderModel.user_id == user_id,
                OrderModel.status == OrderStatus.DELIVERED.value,
            )
        )
        count, total, last_delivered = result.one()
        return CustomerHistory(
            delivered_count=count or 0,
            total_spent=Decimal(str(total or 0)),
            last_delivered_at=last_delivered,
        )

    # Mapping methods

    def _to_entity(self, model: OrderModel) -> Order:
        """Convert model to entity."""
        return Order(
            id=str(model.id),
            created_at=model.created_at,
            updated_at=model.updated_at,
            version=model.version or 0,
            order_number=model.order_number,
            user_id=model.user_id,
            lines=[OrderLine.from_dict(line) for line in model.lines or []],
            status=OrderStatus(model.status),
            status_history=[StatusHistoryEntry.from_dict(entry) for entry in model.status_history or []],
            payment=OrderPayment.from_dict(model.payment),
            shipping_address=Address.from_dict(model.shipping_address) if model.shipping_address else None,
            shipping_method=ShippingMethod(model.shipping_method),
            shipping_cost=model.shipping_cost,
            tracking_code=model.tracking_code,
            customer_notes=model.customer_notes,
            subtotal=model.subtotal,
            product_discount_total=model.product_discount_total,
            coupon_discount=model.coupon_discount,
            campaign_discount=model.campaign_discount,
            total_discount=model.total_discount,
            total_amount=model.total_amount,
            coupon_code=model.coupon_code,
            applied_discounts=[AppliedDiscount.from_dict(d) for d in model.applied_discounts or []],
            delivered_at=model.delivered_at,
            cancelled_at=model.cancelled_at,
            cancel_reason=model.cancel_reason,
            returned_at=model.returned_at,
            return_reason=model.return_reason,
        )

    def _apply(self, order: Order, model: OrderModel) -> None:
        """Copy entity state onto the model."""
        model.order_number = order.order_number
        model.user_id = order.user_id
        model.status = order.status.value
        model.lines = [line.to_dict() for line in order.lines]
        model.status_history = [entry.to_dict() for entry in order.status_history]
        model.payment = order.payment.to_dict()
        model.shipping_address = order.shipping_address.to_dict() if order.shipping_address else None
        model.shipping_method = order.shipping_method.value
        model.shipping_cost = order.shipping_cost
        model.tracking_code = order.tracking_code
        model.customer_notes = order.customer_notes
        model.subtotal = order.subtotal
        model.product_discount_total = order.product_discount_total
        model.coupon_discount = order.coupon_discount
        model.campaign_discount = order.campaign_discount
        model.total_discount = order.total_discount
        model.total_amount = order.total_amount
        model.coupon_code = order.coupon_code
        model.applied_discounts = [d.to_dict() for d in order.applied_discounts]
        model.delivered_at = order.delivered_at
        model.cancelled_at = order.cancelled_at
        model.cancel_reason = order.cancel_reason
        model.returned_at = order.returned_at
        model.return_reason = order.return_reason
        model.version = order.version
        model.created_at = order.created_at
        model.updated_at = order.updated_at
