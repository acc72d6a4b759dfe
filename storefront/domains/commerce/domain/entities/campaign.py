"""
Campaign Entity for the Commerce Domain

Time-boxed promotional rules distinct from coupons. Whether a campaign
is live is always computed from its persisted status and dates, never
stored.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from storefront.core.domain import (
    HUNDRED,
    ZERO,
    CampaignNotEligibleException,
    Entity,
    IllegalTransitionException,
    ValidationException,
    round_money,
    utc_now,
)

from ..value_objects.customer import CustomerProfile
from ..value_objects.pricing import PricingLine
from ..value_objects.promotion import (
    CampaignStatus,
    CampaignType,
    CustomerCohort,
    DiscountTier,
    DiscountType,
    ProductScope,
)


@dataclass(frozen=True)
class CampaignRules:
    """Discount rule set of a campaign."""

    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Decimal("0")
    min_purchase_amount: Decimal = Decimal("0")
    max_discount_amount: Decimal | None = None
    tiers: tuple[DiscountTier, ...] = ()
    buy_quantity: int = 0
    get_quantity: int = 0
    bundle_product_ids: tuple[str, ...] = ()
    limit_per_user: int = 1
    total_usage_limit: int | None = None

    def tier_for(self, amount: Decimal) -> DiscountTier | None:
        """Tier with the greatest minimum not above ``amount``."""
        matching = [tier for tier in self.tiers if tier.min_amount <= amount]
        return max(matching, key=lambda tier: tier.min_amount) if matching else None


@dataclass(frozen=True)
class TargetAudience:
    """
    Who a campaign is for.

    With ``all_users`` set every customer qualifies and the other
    filters are ignored.
    """

    all_users: bool = True
    cohorts: frozenset[CustomerCohort] = frozenset()
    user_ids: frozenset[str] = frozenset()
    min_order_count: int = 0
    min_total_spent: Decimal = Decimal("0")
    registered_from: datetime | None = None
    registered_to: datetime | None = None


@dataclass
class Campaign(Entity[str]):
    """
    Promotional campaign.

    Invariant: end_date > start_date.

    Example:
        ```python
        campaign = Campaign(
            name="Summer sale",
            start_date=start,
            end_date=end,
            rules=CampaignRules(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("20")),
            priority=10,
        )
        campaign.transition_to(CampaignStatus.ACTIVE)
        campaign.is_active(now)
        ```
    """

    name: str = ""
    description: str | None = None
    campaign_type: CampaignType = CampaignType.SPECIAL_OFFER
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: datetime = field(default_factory=utc_now)
    end_date: datetime = field(default_factory=utc_now)
    rules: CampaignRules = field(default_factory=CampaignRules)
    audience: TargetAudience = field(default_factory=TargetAudience)
    scope: ProductScope = field(default_factory=ProductScope)
    priority: int = 0
    is_stackable: bool = False
    requires_coupon: bool = False
    coupon_code: str | None = None

    def __post_init__(self) -> None:
        if self.coupon_code:
            self.coupon_code = self.coupon_code.strip().upper()
        self.validate()

    def validate(self) -> None:
        if not self.name:
            raise ValidationException("Campaign name is required", field="name")
        if self.end_date <= self.start_date:
            raise ValidationException("Campaign end date must be after its start date", field="end_date")
        rules = self.rules
        if rules.discount_value < 0:
            raise ValidationException("Discount value cannot be negative", field="discount_value")
        if rules.discount_type == DiscountType.PERCENTAGE and rules.discount_value > HUNDRED:
            raise ValidationException("Percentage discount cannot exceed 100", field="discount_value")
        if rules.discount_type == DiscountType.TIERED and not rules.tiers:
            raise ValidationException("Tiered discount requires at least one tier", field="tiers")
        if self.campaign_type == CampaignType.BUY_GET and (rules.buy_quantity < 1 or rules.get_quantity < 1):
            raise ValidationException("Buy-get campaigns need buy and get quantities", field="buy_quantity")
        if self.campaign_type == CampaignType.BUNDLE and len(rules.bundle_product_ids) < 2:
            raise ValidationException("Bundle campaigns need at least two products", field="bundle_product_ids")
        if self.requires_coupon and not self.coupon_code:
            raise ValidationException("Campaign requires a coupon code", field="coupon_code")

    # ============================================================
    # DERIVED STATE
    # ============================================================

    def is_active(self, now: datetime | None = None) -> bool:
        """status == active and now within [start_date, end_date]"""
        now = now or utc_now()
        return self.status == CampaignStatus.ACTIVE and self.start_date <= now <= self.end_date

    def remaining_time(self, now: datetime | None = None) -> timedelta | None:
        """Time left while active, otherwise None."""
        now = now or utc_now()
        if not self.is_active(now):
            return None
        return self.end_date - now

    def is_due_for_activation(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return self.status == CampaignStatus.SCHEDULED and self.start_date <= now <= self.end_date

    def has_run_out(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return (
            self.status in (CampaignStatus.SCHEDULED, CampaignStatus.ACTIVE, CampaignStatus.PAUSED)
            and now > self.end_date
        )

    # ============================================================
    # LIFECYCLE
    # ============================================================

    def transition_to(self, new_status: CampaignStatus, now: datetime | None = None) -> None:
        if not self.status.can_transition_to(new_status):
            raise IllegalTransitionException("Campaign", self.status.value, new_status.value, self.id)
        self.status = new_status
        self.touch(now)

    # ============================================================
    # ELIGIBILITY
    # ============================================================

    def eligibility_failure(
        self,
        customer: CustomerProfile,
        cohort: CustomerCohort,
        lines: list[PricingLine],
        user_usage_count: int = 0,
        total_usage_count: int = 0,
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> str | None:
        """
        Reason this campaign does not apply, or None when it does.

        Checks run cheapest first: live state, usage caps, coupon gate,
        audience, then the cart itself.
        """
        if not self.is_active(now):
            return "not_active"
        if user_usage_count >= self.rules.limit_per_user:
            return "per_user_limit_reached"
        if self.rules.total_usage_limit is not None and total_usage_count >= self.rules.total_usage_limit:
            return "usage_limit_reached"
        if self.requires_coupon and (coupon_code or "").strip().upper() != self.coupon_code:
            return "coupon_required"

        audience_failure = self._audience_failure(customer, cohort)
        if audience_failure:
            return audience_failure

        merchandise_total = sum((line.net_total for line in lines), ZERO)
        if merchandise_total < self.rules.min_purchase_amount:
            return "below_minimum_purchase"
        if not self.eligible_lines(lines):
            return "no_eligible_products"
        if self.campaign_type == CampaignType.BUNDLE and not self._has_complete_bundle(lines):
            return "bundle_incomplete"
        return None

    def ensure_eligible(
        self,
        customer: CustomerProfile,
        cohort: CustomerCohort,
        lines: list[PricingLine],
        user_usage_count: int = 0,
        total_usage_count: int = 0,
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> None:
        reason = self.eligibility_failure(
            customer, cohort, lines, user_usage_count, total_usage_count, coupon_code, now
        )
        if reason:
            raise CampaignNotEligibleException(str(self.id), reason)

    def _audience_failure(self, customer: CustomerProfile, cohort: CustomerCohort) -> str | None:
        audience = self.audience
        if audience.all_users:
            return None
        if audience.user_ids and customer.user_id not in audience.user_ids:
            return "user_not_targeted"
        if audience.cohorts and cohort not in audience.cohorts:
            return "cohort_not_targeted"
        if customer.history.delivered_count < audience.min_order_count:
            return "order_count_below_threshold"
        if customer.history.total_spent < audience.min_total_spent:
            return "total_spent_below_threshold"
        registered_at = customer.registered_at
        if audience.registered_from and (registered_at is None or registered_at < audience.registered_from):
            return "registration_outside_range"
        if audience.registered_to and (registered_at is None or registered_at > audience.registered_to):
            return "registration_outside_range"
        return None

    # ============================================================
    # DISCOUNT CALCULATION
    # ============================================================

    def eligible_lines(self, lines: list[PricingLine]) -> list[PricingLine]:
        return [line for line in lines if self.scope.matches(line.product_id, line.category_id, line.brand)]

    def calculate_discount(self, lines: list[PricingLine], remaining: Decimal) -> Decimal:
        """
        Discount this campaign grants against the remaining payable amount.

        Never exceeds ``remaining`` nor ``max_discount_amount``.
        """
        if remaining <= 0:
            return ZERO

        eligible = self.eligible_lines(lines)
        if self.campaign_type == CampaignType.BUY_GET:
            discount = self._buy_get_discount(eligible)
        elif self.campaign_type == CampaignType.BUNDLE:
            bundle_lines = [line for line in eligible if line.product_id in self.rules.bundle_product_ids]
            if not self._has_complete_bundle(bundle_lines):
                return ZERO
            discount = self._rule_discount(sum((line.net_total for line in bundle_lines), ZERO))
        else:
            eligible_total = sum((line.net_total for line in eligible), ZERO)
            discount = self._rule_discount(min(eligible_total, remaining))

        if self.rules.max_discount_amount is not None:
            discount = min(discount, self.rules.max_discount_amount)
        return max(ZERO, min(round_money(discount), remaining))

    def _rule_discount(self, base: Decimal) -> Decimal:
        rules = self.rules
        if base <= 0:
            return ZERO
        if rules.discount_type == DiscountType.PERCENTAGE:
            return round_money(base * rules.discount_value / HUNDRED)
        if rules.discount_type == DiscountType.FIXED:
            return min(round_money(rules.discount_value), base)
        tier = rules.tier_for(base)
        if tier is None:
            return ZERO
        return round_money(base * tier.discount_value / HUNDRED)

    def _buy_get_discount(self, lines: list[PricingLine]) -> Decimal:
        """
        Buy X get Y: within each group of X+Y units, the cheapest Y are free.

        Units are ordered by price descending so every group pays for its
        most expensive items.
        """
        buy, get = self.rules.buy_quantity, self.rules.get_quantity
        group_size = buy + get
        unit_prices = sorted(
            (line.final_unit_price for line in lines for _ in range(line.quantity)),
            reverse=True,
        )
        discount = ZERO
        for start in range(0, len(unit_prices) - group_size + 1, group_size):
            group = unit_prices[start : start + group_size]
            discount += sum(group[buy:], ZERO)
        return discount

    def _has_complete_bundle(self, lines: list[PricingLine]) -> bool:
        present = {line.product_id for line in lines}
        return bool(self.rules.bundle_product_ids) and set(self.rules.bundle_product_ids) <= present
