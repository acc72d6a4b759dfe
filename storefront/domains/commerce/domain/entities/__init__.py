"""
Commerce Domain Entities

Business entities with identity and lifecycle for the commerce domain.
"""

from storefront.domains.commerce.domain.entities.campaign import (
    Campaign,
    CampaignRules,
    TargetAudience,
)
from storefront.domains.commerce.domain.entities.cart import DEFAULT_CART_TTL, Cart, CartItem
from storefront.domains.commerce.domain.entities.coupon import Coupon, normalize_coupon_code
from storefront.domains.commerce.domain.entities.order import (
    DEFAULT_RETURN_WINDOW_DAYS,
    AppliedDiscount,
    Order,
    OrderLine,
    OrderPayment,
    StockAction,
    format_order_number,
)
from storefront.domains.commerce.domain.entities.payment import PaymentAttempt, generate_payment_reference

__all__ = [
    "Cart",
    "CartItem",
    "DEFAULT_CART_TTL",
    "Coupon",
    "normalize_coupon_code",
    "Campaign",
    "CampaignRules",
    "TargetAudience",
    "Order",
    "OrderLine",
    "OrderPayment",
    "AppliedDiscount",
    "StockAction",
    "DEFAULT_RETURN_WINDOW_DAYS",
    "format_order_number",
    "PaymentAttempt",
    "generate_payment_reference",
]
