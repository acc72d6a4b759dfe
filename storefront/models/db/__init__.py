"""
Database models package - Organized by responsibility
"""

from .base import Base, TimestampMixin
from .cart import Cart, CartItem
from .catalog import Product, ProductStock
from .orders import Order, OrderSequence, Payment
from .promotions import Campaign, CampaignUsage, Coupon, CouponUsage

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Catalog
    "Product",
    "ProductStock",
    # Cart
    "Cart",
    "CartItem",
    # Promotions
    "Coupon",
    "CouponUsage",
    "Campaign",
    "CampaignUsage",
    # Orders
    "Order",
    "OrderSequence",
    "Payment",
]
