"""
Discount Stacking Resolver

Domain service that decides which coupon and campaign discounts an order
receives and how they compose. The ordering implemented here is
customer-visible pricing policy:

1. The coupon is resolved against its own eligible subtotal.
2. Campaigns are filtered by live state, usage caps and audience.
3. Exclusive (non-stackable) campaigns are tried first, by descending
   priority; the first one that yields a discount is applied alone.
   Otherwise stackable campaigns accumulate by descending priority, each
   computed against what is still payable after the coupon and the
   campaigns before it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from storefront.core.domain import (
    ZERO,
    CouponBelowMinimumException,
    CouponInvalidException,
    utc_now,
)

from ..entities.campaign import Campaign
from ..entities.coupon import Coupon, normalize_coupon_code
from ..value_objects.customer import CustomerProfile
from ..value_objects.pricing import PricingLine
from ..value_objects.promotion import CustomerCohort
from .cohort_service import CohortService
from .pricing_service import PricingResult, PricingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CampaignCandidate:
    """A live campaign together with its usage counts for the current customer."""

    campaign: Campaign
    user_usage_count: int = 0
    total_usage_count: int = 0


@dataclass(frozen=True)
class CouponDiscount:
    coupon_id: str
    code: str
    eligible_subtotal: Decimal
    amount: Decimal
    free_shipping: bool = False


@dataclass(frozen=True)
class CampaignDiscount:
    campaign_id: str
    name: str
    priority: int
    is_stackable: bool
    amount: Decimal


@dataclass(frozen=True)
class DiscountResolution:
    """Everything checkout needs to know about discounts for one cart."""

    pricing: PricingResult
    cohort: CustomerCohort
    coupon: CouponDiscount | None = None
    campaigns: tuple[CampaignDiscount, ...] = field(default_factory=tuple)

    @property
    def coupon_discount(self) -> Decimal:
        return self.coupon.amount if self.coupon else ZERO

    @property
    def campaign_discount(self) -> Decimal:
        return sum((c.amount for c in self.campaigns), ZERO)

    @property
    def order_discount(self) -> Decimal:
        """Coupon plus campaign discounts, on top of item-level discounts."""
        return self.coupon_discount + self.campaign_discount

    @property
    def payable(self) -> Decimal:
        return self.pricing.payable_before_coupon - self.order_discount

    @property
    def free_shipping(self) -> bool:
        return bool(self.coupon and self.coupon.free_shipping)


class DiscountStackingResolver:
    """
    Resolves coupon and campaign discounts for a cart and a customer.

    Example:
        ```python
        resolver = DiscountStackingResolver()
        resolution = resolver.resolve(
            lines=cart.to_pricing_lines(),
            customer=profile,
            coupon_code="SAVE10",
            coupon=coupon,
            coupon_user_usage=0,
            campaigns=[CampaignCandidate(campaign) for campaign in live_campaigns],
        )
        print(resolution.order_discount)
        ```
    """

    def __init__(
        self,
        pricing_service: PricingService | None = None,
        cohort_service: CohortService | None = None,
    ):
        self.pricing_service = pricing_service or PricingService()
        self.cohort_service = cohort_service or CohortService()

    def resolve(
        self,
        lines: list[PricingLine],
        customer: CustomerProfile,
        coupon_code: str | None = None,
        coupon: Coupon | None = None,
        coupon_user_usage: int = 0,
        campaigns: list[CampaignCandidate] | None = None,
        now: datetime | None = None,
    ) -> DiscountResolution:
        """
        Produce the discounts to apply to an order.

        Args:
            lines: Priced cart lines (current catalog values)
            customer: Customer identity and order history
            coupon_code: Code the customer entered, if any
            coupon: Coupon looked up by that code (None if unknown)
            coupon_user_usage: Times this customer already redeemed the coupon
            campaigns: Live campaigns with usage counts
            now: Evaluation time

        Raises:
            CouponInvalidException: Unknown, inactive, expired or exhausted coupon
            CouponBelowMinimumException: Eligible subtotal below the coupon minimum
        """
        now = now or utc_now()
        pricing = self.pricing_service.calculate(lines)
        cohort = self.cohort_service.classify(customer.history, now)

        coupon_discount = None
        if coupon_code:
            coupon_discount = self.resolve_coupon(coupon_code, coupon, lines, customer.user_id, coupon_user_usage, now)

        remaining = pricing.payable_before_coupon - (coupon_discount.amount if coupon_discount else ZERO)
        applicable = self.applicable_campaigns(campaigns or [], lines, customer, cohort, coupon_code, now)
        campaign_discounts = self.compose_campaigns(applicable, lines, remaining)

        resolution = DiscountResolution(
            pricing=pricing,
            cohort=cohort,
            coupon=coupon_discount,
            campaigns=tuple(campaign_discounts),
        )
        logger.debug(
            f"Resolved discounts for user {customer.user_id}: coupon={resolution.coupon_discount} "
            f"campaigns={[c.campaign_id for c in campaign_discounts]} total={resolution.order_discount}"
        )
        return resolution

    # ============================================================
    # COUPON
    # ============================================================

    def resolve_coupon(
        self,
        code: str,
        coupon: Coupon | None,
        lines: list[PricingLine],
        user_id: str,
        user_usage_count: int,
        now: datetime | None = None,
    ) -> CouponDiscount:
        normalized = normalize_coupon_code(code)
        if coupon is None:
            raise CouponInvalidException(normalized, "not_found")

        coupon.ensure_usable(user_id, user_usage_count, now)

        eligible_subtotal = coupon.eligible_subtotal(lines)
        if eligible_subtotal <= 0:
            raise CouponInvalidException(coupon.code, "no_eligible_products")
        if eligible_subtotal < coupon.minimum_amount:
            raise CouponBelowMinimumException(coupon.code, eligible_subtotal, coupon.minimum_amount)

        return CouponDiscount(
            coupon_id=str(coupon.id),
            code=coupon.code,
            eligible_subtotal=eligible_subtotal,
            amount=coupon.calculate_discount(eligible_subtotal),
            free_shipping=coupon.free_shipping,
        )

    # ============================================================
    # CAMPAIGNS
    # ============================================================

    def applicable_campaigns(
        self,
        candidates: list[CampaignCandidate],
        lines: list[PricingLine],
        customer: CustomerProfile,
        cohort: CustomerCohort,
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> list[CampaignCandidate]:
        """Candidates that are live and whose audience, caps and cart rules are met."""
        applicable = []
        for candidate in candidates:
            reason = candidate.campaign.eligibility_failure(
                customer,
                cohort,
                lines,
                user_usage_count=candidate.user_usage_count,
                total_usage_count=candidate.total_usage_count,
                coupon_code=coupon_code,
                now=now,
            )
            if reason:
                logger.debug(f"Campaign {candidate.campaign.id} skipped: {reason}")
                continue
            applicable.append(candidate)
        return applicable

    def compose_campaigns(
        self,
        candidates: list[CampaignCandidate],
        lines: list[PricingLine],
        remaining: Decimal,
    ) -> list[CampaignDiscount]:
        """
        Walk campaigns exclusive first, then by priority, and stack their discounts.

        Each discount is computed against the amount still payable after
        the previous ones. The walk stops at the first exclusive campaign
        that grants anything.
        """
        ordered = sorted(
            (candidate.campaign for candidate in candidates),
            key=lambda campaign: (campaign.is_stackable, -campaign.priority, str(campaign.id)),
        )

        applied: list[CampaignDiscount] = []
        for campaign in ordered:
            if remaining <= 0:
                break
            amount = campaign.calculate_discount(lines, remaining)
            if amount <= 0:
                continue

            discount = CampaignDiscount(
                campaign_id=str(campaign.id),
                name=campaign.name,
                priority=campaign.priority,
                is_stackable=campaign.is_stackable,
                amount=amount,
            )
            applied.append(discount)
            if not campaign.is_stackable:
                break
            remaining -= amount

        return applied
