"""
Promotion Admin Use Cases

Create and deactivate coupons, create campaigns, move campaigns through
their lifecycle and check a customer's eligibility for a campaign.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from storefront.core.domain import (
    EntityNotFoundException,
    ValidationException,
    generate_uuid_str,
    utc_now,
)
from storefront.domains.commerce.application.ports import (
    ICampaignRepository,
    ICartRepository,
    ICatalogService,
    ICouponRepository,
    IOrderRepository,
)
from storefront.domains.commerce.domain.entities import Campaign, Coupon, normalize_coupon_code
from storefront.domains.commerce.domain.services import CohortService, PricingService
from storefront.domains.commerce.domain.value_objects import (
    CampaignStatus,
    CustomerCohort,
    CustomerProfile,
)

from .get_cart_preview import price_cart

logger = logging.getLogger(__name__)


# ============================================================
# COUPONS
# ============================================================


class CreateCouponUseCase:
    """Use Case: Create Coupon"""

    def __init__(self, coupon_repository: ICouponRepository):
        self.coupon_repository = coupon_repository

    async def execute(self, coupon: Coupon) -> Coupon:
        existing = await self.coupon_repository.get_by_code(coupon.code)
        if existing is not None:
            raise ValidationException(f"Coupon code {coupon.code} already exists", field="code")
        if coupon.id is None:
            coupon.id = generate_uuid_str()
        saved = await self.coupon_repository.save(coupon)
        logger.info(f"Coupon created: {saved.code}")
        return saved


class DeactivateCouponUseCase:
    """
    Use Case: Deactivate Coupon

    Coupons referenced by orders are never deleted, only deactivated.
    """

    def __init__(self, coupon_repository: ICouponRepository):
        self.coupon_repository = coupon_repository

    async def execute(self, code: str) -> Coupon:
        normalized = normalize_coupon_code(code)
        coupon = await self.coupon_repository.get_by_code(normalized)
        if coupon is None:
            raise EntityNotFoundException("Coupon", normalized)
        coupon.deactivate()
        await self.coupon_repository.save(coupon)
        logger.info(f"Coupon deactivated: {coupon.code}")
        return coupon


# ============================================================
# CAMPAIGNS
# ============================================================


class CreateCampaignUseCase:
    """Use Case: Create Campaign (starts as draft unless told otherwise)"""

    def __init__(self, campaign_repository: ICampaignRepository):
        self.campaign_repository = campaign_repository

    async def execute(self, campaign: Campaign) -> Campaign:
        if campaign.id is None:
            campaign.id = generate_uuid_str()
        saved = await self.campaign_repository.save(campaign)
        logger.info(f"Campaign created: {saved.name} ({saved.id}) status={saved.status.value}")
        return saved


@dataclass
class ChangeCampaignStatusRequest:
    campaign_id: str
    status: CampaignStatus
    actor: str | None = None


class ChangeCampaignStatusUseCase:
    """
    Use Case: Change Campaign Status

    Raises:
        IllegalTransitionException: Move not allowed by the campaign lifecycle
    """

    def __init__(self, campaign_repository: ICampaignRepository):
        self.campaign_repository = campaign_repository

    async def execute(self, request: ChangeCampaignStatusRequest) -> Campaign:
        campaign = await self.campaign_repository.get_by_id(request.campaign_id)
        if campaign is None:
            raise EntityNotFoundException("Campaign", request.campaign_id)

        previous = campaign.status
        campaign.transition_to(request.status)
        await self.campaign_repository.save(campaign)
        logger.info(
            f"Campaign {campaign.id}: {previous.value} -> {campaign.status.value} (actor={request.actor})"
        )
        return campaign


@dataclass
class CampaignEligibilityResult:
    campaign_id: str
    cohort: CustomerCohort
    discount: Decimal
    remaining_time_seconds: int | None = None


class CheckCampaignEligibilityUseCase:
    """
    Use Case: Check Campaign Eligibility

    Evaluates one campaign against a customer's current cart.

    Raises:
        CampaignNotEligibleException: With the first failed rule as reason
    """

    def __init__(
        self,
        campaign_repository: ICampaignRepository,
        cart_repository: ICartRepository,
        catalog_service: ICatalogService,
        order_repository: IOrderRepository,
        cohort_service: CohortService | None = None,
        pricing_service: PricingService | None = None,
    ):
        self.campaign_repository = campaign_repository
        self.cart_repository = cart_repository
        self.catalog_service = catalog_service
        self.order_repository = order_repository
        self.cohort_service = cohort_service or CohortService()
        self.pricing_service = pricing_service or PricingService()

    async def execute(
        self,
        campaign_id: str,
        customer: CustomerProfile,
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> CampaignEligibilityResult:
        now = now or utc_now()
        campaign = await self.campaign_repository.get_by_id(campaign_id)
        if campaign is None:
            raise EntityNotFoundException("Campaign", campaign_id)

        history = await self.order_repository.get_customer_history(customer.user_id)
        customer = replace(customer, history=history)
        cohort = self.cohort_service.classify(history, now)

        cart = await self.cart_repository.get_by_user(customer.user_id)
        lines = []
        if cart is not None:
            view = await price_cart(cart, self.catalog_service, self.pricing_service)
            lines = view.cart.to_pricing_lines()
            if coupon_code is None and cart.coupon is not None:
                coupon_code = cart.coupon.code

        usage = await self.campaign_repository.get_usage([campaign_id], customer.user_id)
        campaign_usage = usage.get(campaign_id)
        campaign.ensure_eligible(
            customer,
            cohort,
            lines,
            user_usage_count=campaign_usage.user_count if campaign_usage else 0,
            total_usage_count=campaign_usage.total_count if campaign_usage else 0,
            coupon_code=coupon_code,
            now=now,
        )

        remaining = sum((line.net_total for line in lines), Decimal("0"))
        remaining_time = campaign.remaining_time(now)
        return CampaignEligibilityResult(
            campaign_id=campaign_id,
            cohort=cohort,
            discount=campaign.calculate_discount(lines, remaining),
            remaining_time_seconds=int(remaining_time.total_seconds()) if remaining_time else None,
        )


__all__ = [
    "CreateCouponUseCase",
    "DeactivateCouponUseCase",
    "CreateCampaignUseCase",
    "ChangeCampaignStatusRequest",
    "ChangeCampaignStatusUseCase",
    "CampaignEligibilityResult",
    "CheckCampaignEligibilityUseCase",
]
