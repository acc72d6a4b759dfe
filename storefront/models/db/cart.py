"""
Shopping cart models
"""

from typing import List

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, relationship

from .base import Base, TimestampMixin


class Cart(Base, TimestampMixin):
    """One cart per user"""

    __tablename__ = "carts"

    user_id = Column(String(64), primary_key=True)
    coupon = Column(JSONB)  # {"code": "...", "discount_type": "...", "discount_value": "..."}
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    items: Mapped[List["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.position",
    )

    def __repr__(self):
        return f"<Cart(user_id='{self.user_id}', expires_at={self.expires_at})>"


class CartItem(Base):
    """Cart line"""

    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cart_user_id = Column(String(64), ForeignKey("carts.user_id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    unit_discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    category_id = Column(String(64))
    brand = Column(String(100))
    added_at = Column(DateTime(timezone=True), nullable=False)

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")
