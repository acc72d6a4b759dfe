"""
Commerce Domain Value Objects

Immutable value objects for the commerce domain.
"""

from storefront.domains.commerce.domain.value_objects.catalog import ProductSnapshot
from storefront.domains.commerce.domain.value_objects.customer import CustomerHistory, CustomerProfile
from storefront.domains.commerce.domain.value_objects.order_status import (
    ORDER_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
    ProductStatus,
    ShippingMethod,
    StatusHistoryEntry,
    StockState,
)
from storefront.domains.commerce.domain.value_objects.pricing import CouponSnapshot, PricingLine
from storefront.domains.commerce.domain.value_objects.promotion import (
    CAMPAIGN_TRANSITIONS,
    CampaignStatus,
    CampaignType,
    CustomerCohort,
    DiscountTier,
    DiscountType,
    ProductScope,
)
from storefront.domains.commerce.domain.value_objects.stock_level import StockLevel

__all__ = [
    "ProductSnapshot",
    "CustomerHistory",
    "CustomerProfile",
    "OrderStatus",
    "ORDER_TRANSITIONS",
    "PaymentStatus",
    "ProductStatus",
    "ShippingMethod",
    "StatusHistoryEntry",
    "StockState",
    "CampaignStatus",
    "CAMPAIGN_TRANSITIONS",
    "CampaignType",
    "CustomerCohort",
    "DiscountTier",
    "DiscountType",
    "ProductScope",
    "StockLevel",
    "PricingLine",
    "CouponSnapshot",
]
