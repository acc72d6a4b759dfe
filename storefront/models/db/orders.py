"""
Order and payment models

Order lines are an immutable snapshot taken at checkout and are kept as
JSONB alongside the status history.
"""

import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from .base import Base, TimestampMixin


class Order(Base, TimestampMixin):
    """Customer orders"""

    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=False)

    status = Column(String(20), nullable=False, default="pending")
    lines = Column(JSONB, nullable=False, default=list)
    status_history = Column(JSONB, nullable=False, default=list)
    payment = Column(JSONB, nullable=False, default=dict)

    # Shipping
    shipping_address = Column(JSONB)
    shipping_method = Column(String(20), nullable=False, default="normal")
    shipping_cost = Column(Numeric(14, 2), nullable=False, default=0)
    tracking_code = Column(String(100))
    customer_notes = Column(Text)

    # Pricing
    subtotal = Column(Numeric(14, 2), nullable=False)
    product_discount_total = Column(Numeric(14, 2), nullable=False, default=0)
    coupon_discount = Column(Numeric(14, 2), nullable=False, default=0)
    campaign_discount = Column(Numeric(14, 2), nullable=False, default=0)
    total_discount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False)
    coupon_code = Column(String(20))
    applied_discounts = Column(JSONB, nullable=False, default=list)

    # Lifecycle timestamps
    delivered_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    cancel_reason = Column(Text)
    returned_at = Column(DateTime(timezone=True))
    return_reason = Column(Text)

    version = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_orders_user_created", user_id, "created_at"),
        Index("idx_orders_user_status", user_id, status),
    )

    def __repr__(self):
        return f"<Order(number='{self.order_number}', status='{self.status}', total={self.total_amount})>"


class OrderSequence(Base):
    """Per-day order counter backing ORD-YYMMDD-NNNN numbers"""

    __tablename__ = "order_sequences"

    day = Column(Date, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)


class Payment(Base, TimestampMixin):
    """Gateway payment attempts"""

    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    reference = Column(String(50), unique=True, nullable=False)
    gateway = Column(String(50), nullable=False)
    method = Column(String(20), nullable=False, default="online")
    description = Column(Text)
    authority = Column(String(100), unique=True, index=True)
    transaction_id = Column(String(100))
    failure_reason = Column(String(255))
    paid_at = Column(DateTime(timezone=True))
    refunded_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<Payment(reference='{self.reference}', status='{self.status}', amount={self.amount})>"
