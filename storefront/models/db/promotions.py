"""
Coupon and campaign models
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from .base import Base, TimestampMixin


class Coupon(Base, TimestampMixin):
    """Discount coupons"""

    __tablename__ = "coupons"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String(20), unique=True, nullable=False, index=True)
    description = Column(Text)
    discount_type = Column(String(20), nullable=False)  # percentage, fixed
    discount_value = Column(Numeric(14, 2), nullable=False)
    minimum_amount = Column(Numeric(14, 2), nullable=False, default=0)
    maximum_discount = Column(Numeric(14, 2))

    # Validity
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    usage_limit = Column(Integer)
    used_count = Column(Integer, nullable=False, default=0)
    per_user_limit = Column(Integer, nullable=False, default=1)

    # Targeting
    scope = Column(JSONB, default=dict)  # {"product_ids": [], "category_ids": [], "brands": [], ...}
    user_ids = Column(JSONB, default=list)
    free_shipping = Column(Boolean, nullable=False, default=False)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self):
        return f"<Coupon(code='{self.code}', used={self.used_count}/{self.usage_limit})>"


class CouponUsage(Base):
    """One row per order that redeemed a coupon"""

    __tablename__ = "coupon_usages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    coupon_id = Column(UUID(as_uuid=True), ForeignKey("coupons.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    order_id = Column(UUID(as_uuid=True), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usages_coupon_order"),
        Index("idx_coupon_usages_coupon_user", coupon_id, user_id),
    )


class Campaign(Base, TimestampMixin):
    """Promotional campaigns"""

    __tablename__ = "campaigns"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    campaign_type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    rules = Column(JSONB, nullable=False, default=dict)
    audience = Column(JSONB, nullable=False, default=dict)
    scope = Column(JSONB, nullable=False, default=dict)

    priority = Column(Integer, nullable=False, default=0)
    is_stackable = Column(Boolean, nullable=False, default=False)
    requires_coupon = Column(Boolean, nullable=False, default=False)
    coupon_code = Column(String(20))

    __table_args__ = (
        Index("idx_campaigns_status_dates", status, start_date, end_date),
    )

    def __repr__(self):
        return f"<Campaign(name='{self.name}', status='{self.status}', priority={self.priority})>"


class CampaignUsage(Base):
    """One row per order that received a campaign discount"""

    __tablename__ = "campaign_usages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id = Column(UUID(as_uuid=True), ForeignKey("campaigns.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    order_id = Column(UUID(as_uuid=True), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("campaign_id", "order_id", name="uq_campaign_usages_campaign_order"),
        Index("idx_campaign_usages_campaign_user", campaign_id, user_id),
    )
