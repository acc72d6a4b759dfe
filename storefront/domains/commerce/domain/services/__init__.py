"""
Commerce Domain Services

Business logic that doesn't belong to a single entity.
"""

from storefront.domains.commerce.domain.services.cohort_service import CohortService
from storefront.domains.commerce.domain.services.discount_resolver import (
    CampaignCandidate,
    CampaignDiscount,
    CouponDiscount,
    DiscountResolution,
    DiscountStackingResolver,
)
from storefront.domains.commerce.domain.services.pricing_service import PricingResult, PricingService

__all__ = [
    "PricingService",
    "PricingResult",
    "CohortService",
    "DiscountStackingResolver",
    "DiscountResolution",
    "CampaignCandidate",
    "CampaignDiscount",
    "CouponDiscount",
]
