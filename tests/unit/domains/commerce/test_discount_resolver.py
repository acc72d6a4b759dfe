"""
Unit Tests for Coupons, Campaigns and the Discount Stacking Resolver

Tests:
- Coupon definition validation and redemption failure reasons
- Coupon scope, minimum amount and discount caps
- Campaign eligibility (audience, caps, coupon gate, cart rules)
- Campaign discount shapes: percentage, tiered, buy-get, bundle
- Stacking order: coupon first, then campaigns by priority
- Cohort classification
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.core.domain import (
    CampaignNotEligibleException,
    CouponBelowMinimumException,
    CouponInvalidException,
    IllegalTransitionException,
    ValidationException,
    utc_now,
)
from storefront.domains.commerce.domain.entities import CampaignRules, TargetAudience
from storefront.domains.commerce.domain.services import (
    CampaignCandidate,
    CohortService,
    DiscountStackingResolver,
)
from storefront.domains.commerce.domain.value_objects import (
    CampaignStatus,
    CampaignType,
    CustomerCohort,
    CustomerHistory,
    CustomerProfile,
    DiscountTier,
    DiscountType,
    PricingLine,
    ProductScope,
)


@pytest.fixture
def lines() -> list[PricingLine]:
    """One laptop at 10% off plus two mice: subtotal 1100, payable 1000."""
    return [
        PricingLine(
            product_id="p-laptop",
            name="Laptop",
            unit_price=Decimal("1000.00"),
            quantity=1,
            discount_percent=Decimal("10"),
            category_id="c-computers",
            brand="Acme",
        ),
        PricingLine(
            product_id="p-mouse",
            name="Mouse",
            unit_price=Decimal("50.00"),
            quantity=2,
            category_id="c-accessories",
            brand="Logi",
        ),
    ]


# ============================================================================
# COUPON
# ============================================================================


@pytest.mark.unit
class TestCouponDefinition:
    """Coupon invariants checked on construction."""

    def test_code_is_normalized(self, coupon_factory):
        coupon = coupon_factory(code="  save10 ")

        assert coupon.code == "SAVE10"

    @pytest.mark.parametrize("code", ["AB", "WAY-TOO-LONG-COUPON-CODE", "HAS SPACE"])
    def test_malformed_code_rejected(self, coupon_factory, code):
        with pytest.raises(ValidationException) as exc_info:
            coupon_factory(code=code)

        assert exc_info.value.details["field"] == "code"

    def test_percentage_above_hundred_rejected(self, coupon_factory):
        with pytest.raises(ValidationException):
            coupon_factory(discount_value=Decimal("120"))

    def test_validity_window_must_be_ordered(self, coupon_factory):
        now = utc_now()

        with pytest.raises(ValidationException):
            coupon_factory(valid_from=now, valid_until=now - timedelta(hours=1))

    def test_tiered_coupon_rejected(self, coupon_factory):
        with pytest.raises(ValidationException):
            coupon_factory(discount_type=DiscountType.TIERED)


@pytest.mark.unit
class TestCouponRedemption:
    """Reasons a coupon refuses a customer."""

    @pytest.mark.parametrize(
        "overrides,usage,reason",
        [
            ({"is_active": False}, 0, "inactive"),
            ({"usage_limit": 5, "used_count": 5}, 0, "usage_limit_reached"),
            ({"user_ids": frozenset({"someone-else"})}, 0, "not_available_for_user"),
            ({}, 1, "per_user_limit_reached"),
        ],
    )
    def test_ensure_usable_reasons(self, coupon_factory, overrides, usage, reason):
        coupon = coupon_factory(**overrides)

        with pytest.raises(CouponInvalidException) as exc_info:
            coupon.ensure_usable("user-1", usage)

        assert exc_info.value.reason == reason
        assert exc_info.value.to_dict()["details"]["reason"] == reason

    def test_expired_coupon_rejected(self, coupon_factory):
        now = utc_now()
        coupon = coupon_factory(valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1))

        with pytest.raises(CouponInvalidException) as exc_info:
            coupon.ensure_usable("user-1", 0, now)

        assert exc_info.value.reason == "outside_validity_window"

    def test_targeted_user_may_redeem(self, coupon_factory):
        coupon = coupon_factory(user_ids=frozenset({"user-1"}), per_user_limit=2)

        coupon.ensure_usable("user-1", 1)

    def test_percentage_discount_capped_by_maximum(self, coupon_factory):
        coupon = coupon_factory(maximum_discount=Decimal("50"))

        assert coupon.calculate_discount(Decimal("1000.00")) == Decimal("50")

    def test_fixed_discount_capped_by_eligible_subtotal(self, coupon_factory):
        coupon = coupon_factory(discount_type=DiscountType.FIXED, discount_value=Decimal("2000"))

        assert coupon.calculate_discount(Decimal("1000.00")) == Decimal("1000.00")

    def test_eligible_subtotal_follows_scope(self, coupon_factory, lines):
        coupon = coupon_factory(scope=ProductScope(category_ids=frozenset({"c-accessories"})))

        assert coupon.eligible_subtotal(lines) == Decimal("100.00")

    def test_exclusion_wins_over_inclusion(self, coupon_factory, lines):
        coupon = coupon_factory(
            scope=ProductScope(brands=frozenset({"Acme", "Logi"}), excluded_product_ids=frozenset({"p-laptop"}))
        )

        assert coupon.eligible_subtotal(lines) == Decimal("100.00")

    def test_deactivate(self, coupon_factory):
        coupon = coupon_factory()

        coupon.deactivate()

        assert coupon.is_active is False


# ============================================================================
# RESOLVER - COUPON
# ============================================================================


@pytest.mark.unit
class TestResolverCoupon:
    """Coupon resolution through the stacking resolver."""

    def test_unknown_code_is_not_found(self, resolver, lines, customer):
        with pytest.raises(CouponInvalidException) as exc_info:
            resolver.resolve(lines, customer, coupon_code=" nope ", coupon=None)

        assert exc_info.value.reason == "not_found"
        assert exc_info.value.coupon_code == "NOPE"

    def test_coupon_applies_to_net_amount(self, resolver, lines, customer, coupon_factory):
        # Arrange
        coupon = coupon_factory()

        # Act
        resolution = resolver.resolve(lines, customer, coupon_code="save10", coupon=coupon)

        # Assert
        assert resolution.coupon.code == "SAVE10"
        assert resolution.coupon.eligible_subtotal == Decimal("1000.00")
        assert resolution.coupon_discount == Decimal("100.00")
        assert resolution.payable == Decimal("900.00")

    def test_out_of_scope_cart_has_no_eligible_products(self, resolver, lines, customer, coupon_factory):
        coupon = coupon_factory(scope=ProductScope(category_ids=frozenset({"c-garden"})))

        with pytest.raises(CouponInvalidException) as exc_info:
            resolver.resolve(lines, customer, coupon_code="SAVE10", coupon=coupon)

        assert exc_info.value.reason == "no_eligible_products"

    def test_minimum_checked_against_eligible_subtotal(self, resolver, lines, customer, coupon_factory):
        coupon = coupon_factory(
            minimum_amount=Decimal("500"),
            scope=ProductScope(category_ids=frozenset({"c-accessories"})),
        )

        with pytest.raises(CouponBelowMinimumException) as exc_info:
            resolver.resolve(lines, customer, coupon_code="SAVE10", coupon=coupon)

        assert exc_info.value.eligible_subtotal == Decimal("100.00")
        assert exc_info.value.code == "COUPON_BELOW_MINIMUM"

    def test_free_shipping_flag_carried(self, resolver, lines, customer, coupon_factory):
        coupon = coupon_factory(free_shipping=True)

        resolution = resolver.resolve(lines, customer, coupon_code="SAVE10", coupon=coupon)

        assert resolution.free_shipping is True


# ============================================================================
# RESOLVER - CAMPAIGN STACKING
# ============================================================================


@pytest.mark.unit
class TestResolverStacking:
    """Composition of coupon and campaign discounts."""

    def test_campaign_applies_after_coupon(self, resolver, lines, customer, coupon_factory, campaign_factory):
        """Coupon takes 100 of 1000; a 20% campaign then takes 20% of the remaining 900."""
        # Arrange
        coupon = coupon_factory()
        campaign = campaign_factory(
            rules=CampaignRules(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("20"))
        )

        # Act
        resolution = resolver.resolve(
            lines,
            customer,
            coupon_code="SAVE10",
            coupon=coupon,
            campaigns=[CampaignCandidate(campaign)],
        )

        # Assert
        assert resolution.coupon_discount == Decimal("100.00")
        assert resolution.campaign_discount == Decimal("180.00")
        assert resolution.order_discount == Decimal("280.00")
        assert resolution.payable == Decimal("720.00")

    def test_stackable_campaigns_compose_by_priority(self, resolver, lines, customer, campaign_factory):
        high = campaign_factory(name="High", priority=10)
        low = campaign_factory(
            name="Low",
            priority=1,
            rules=CampaignRules(discount_type=DiscountType.FIXED, discount_value=Decimal("50")),
        )

        resolution = resolver.resolve(lines, customer, campaigns=[CampaignCandidate(low), CampaignCandidate(high)])

        assert [c.name for c in resolution.campaigns] == ["High", "Low"]
        assert resolution.campaign_discount == Decimal("150.00")

    def test_exclusive_campaign_at_head_applies_alone(self, resolver, lines, customer, campaign_factory):
        exclusive = campaign_factory(
            name="Exclusive",
            priority=10,
            is_stackable=False,
            rules=CampaignRules(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("20")),
        )
        stackable = campaign_factory(name="Stackable", priority=5)

        resolution = resolver.resolve(
            lines, customer, campaigns=[CampaignCandidate(stackable), CampaignCandidate(exclusive)]
        )

        assert [c.name for c in resolution.campaigns] == ["Exclusive"]
        assert resolution.campaign_discount == Decimal("200.00")

    def test_exclusive_campaign_beats_higher_priority_stackable(self, resolver, lines, customer, campaign_factory):
        """Exclusive campaigns are tried before stackable ones whatever their priority."""
        # Arrange
        stackable = campaign_factory(
            name="Stackable",
            priority=10,
            rules=CampaignRules(discount_type=DiscountType.FIXED, discount_value=Decimal("50")),
        )
        exclusive = campaign_factory(name="Exclusive", priority=5, is_stackable=False)
        other = campaign_factory(name="Other", priority=1)

        # Act
        resolution = resolver.resolve(
            lines,
            customer,
            campaigns=[CampaignCandidate(stackable), CampaignCandidate(other), CampaignCandidate(exclusive)],
        )

        # Assert
        assert [c.name for c in resolution.campaigns] == ["Exclusive"]
        assert resolution.campaign_discount == Decimal("100.00")

    def test_highest_priority_exclusive_kept(self, resolver, lines, customer, campaign_factory):
        low = campaign_factory(name="Low", priority=1, is_stackable=False)
        high = campaign_factory(
            name="High",
            priority=9,
            is_stackable=False,
            rules=CampaignRules(discount_type=DiscountType.FIXED, discount_value=Decimal("30")),
        )

        resolution = resolver.resolve(lines, customer, campaigns=[CampaignCandidate(low), CampaignCandidate(high)])

        assert [c.name for c in resolution.campaigns] == ["High"]
        assert resolution.campaign_discount == Decimal("30.00")

    def test_exclusive_without_discount_falls_through(self, resolver, lines, customer, campaign_factory):
        """Buy 5 get 1 on a three-unit cart grants nothing, so the stackable campaigns still apply."""
        exclusive = campaign_factory(
            name="Exclusive",
            priority=10,
            is_stackable=False,
            campaign_type=CampaignType.BUY_GET,
            rules=CampaignRules(buy_quantity=5, get_quantity=1),
        )
        stackable = campaign_factory(name="Stackable", priority=1)

        resolution = resolver.resolve(
            lines, customer, campaigns=[CampaignCandidate(exclusive), CampaignCandidate(stackable)]
        )

        assert [c.name for c in resolution.campaigns] == ["Stackable"]
        assert resolution.campaign_discount == Decimal("100.00")

    def test_exclusive_wins_priority_tie(self, resolver, lines, customer, campaign_factory):
        exclusive = campaign_factory(name="Exclusive", priority=5, is_stackable=False)
        stackable = campaign_factory(name="Stackable", priority=5)

        resolution = resolver.resolve(
            lines, customer, campaigns=[CampaignCandidate(stackable), CampaignCandidate(exclusive)]
        )

        assert [c.name for c in resolution.campaigns] == ["Exclusive"]

    def test_ineligible_campaign_skipped(self, resolver, lines, customer, campaign_factory):
        used_up = campaign_factory(name="Used up")
        fresh = campaign_factory(name="Fresh")

        resolution = resolver.resolve(
            lines,
            customer,
            campaigns=[CampaignCandidate(used_up, user_usage_count=1), CampaignCandidate(fresh)],
        )

        assert [c.name for c in resolution.campaigns] == ["Fresh"]

    def test_campaign_discount_capped(self, resolver, lines, customer, campaign_factory):
        campaign = campaign_factory(
            rules=CampaignRules(
                discount_type=DiscountType.PERCENTAGE,
                discount_value=Decimal("50"),
                max_discount_amount=Decimal("75"),
            )
        )

        resolution = resolver.resolve(lines, customer, campaigns=[CampaignCandidate(campaign)])

        assert resolution.campaign_discount == Decimal("75")

    def test_discounts_never_exceed_payable(self, resolver, lines, customer, coupon_factory, campaign_factory):
        coupon = coupon_factory(discount_type=DiscountType.FIXED, discount_value=Decimal("950"))
        campaign = campaign_factory(
            rules=CampaignRules(discount_type=DiscountType.FIXED, discount_value=Decimal("500"))
        )

        resolution = resolver.resolve(
            lines, customer, coupon_code="SAVE10", coupon=coupon, campaigns=[CampaignCandidate(campaign)]
        )

        assert resolution.coupon_discount == Decimal("950.00")
        assert resolution.campaign_discount == Decimal("50.00")
        assert resolution.payable == Decimal("0.00")


# ============================================================================
# CAMPAIGN SHAPES
# ============================================================================


@pytest.mark.unit
class TestCampaignDiscounts:
    """Tiered, buy-get and bundle campaign math."""

    def test_tiered_uses_highest_reached_tier(self, lines, campaign_factory):
        campaign = campaign_factory(
            rules=CampaignRules(
                discount_type=DiscountType.TIERED,
                tiers=(
                    DiscountTier(min_amount=Decimal("500"), discount_value=Decimal("5")),
                    DiscountTier(min_amount=Decimal("900"), discount_value=Decimal("10")),
                ),
            )
        )

        assert campaign.calculate_discount(lines, Decimal("1000.00")) == Decimal("100.00")
        assert campaign.calculate_discount(lines, Decimal("600.00")) == Decimal("30.00")

    def test_buy_two_get_one_free(self, campaign_factory):
        # Arrange
        campaign = campaign_factory(
            campaign_type=CampaignType.BUY_GET,
            rules=CampaignRules(buy_quantity=2, get_quantity=1),
        )
        mice = [PricingLine(product_id="p-mouse", name="Mouse", unit_price=Decimal("50.00"), quantity=3)]

        # Act
        discount = campaign.calculate_discount(mice, Decimal("150.00"))

        # Assert
        assert discount == Decimal("50.00")

    def test_buy_get_frees_cheapest_units(self, campaign_factory):
        campaign = campaign_factory(
            campaign_type=CampaignType.BUY_GET,
            rules=CampaignRules(buy_quantity=1, get_quantity=1),
        )
        mixed = [
            PricingLine(product_id="p-mouse", name="Mouse", unit_price=Decimal("50.00"), quantity=1),
            PricingLine(product_id="p-cable", name="Cable", unit_price=Decimal("10.00"), quantity=1),
        ]

        assert campaign.calculate_discount(mixed, Decimal("60.00")) == Decimal("10.00")

    def test_bundle_discount_on_bundle_lines(self, lines, campaign_factory):
        campaign = campaign_factory(
            campaign_type=CampaignType.BUNDLE,
            rules=CampaignRules(
                discount_type=DiscountType.PERCENTAGE,
                discount_value=Decimal("10"),
                bundle_product_ids=("p-laptop", "p-mouse"),
            ),
        )

        assert campaign.calculate_discount(lines, Decimal("1000.00")) == Decimal("100.00")

    def test_incomplete_bundle_not_eligible(self, lines, customer, campaign_factory):
        campaign = campaign_factory(
            campaign_type=CampaignType.BUNDLE,
            rules=CampaignRules(discount_value=Decimal("10"), bundle_product_ids=("p-laptop", "p-monitor")),
        )

        reason = campaign.eligibility_failure(customer, CustomerCohort.NEW, lines)

        assert reason == "bundle_incomplete"
        assert campaign.calculate_discount(lines, Decimal("1000.00")) == Decimal("0")

    def test_bundle_needs_two_products(self, campaign_factory):
        with pytest.raises(ValidationException):
            campaign_factory(
                campaign_type=CampaignType.BUNDLE,
                rules=CampaignRules(bundle_product_ids=("p-laptop",)),
            )


# ============================================================================
# CAMPAIGN ELIGIBILITY & LIFECYCLE
# ============================================================================


@pytest.mark.unit
class TestCampaignEligibility:
    """Eligibility failure reasons."""

    def test_paused_campaign_not_active(self, lines, customer, campaign_factory):
        campaign = campaign_factory(status=CampaignStatus.PAUSED)

        assert campaign.eligibility_failure(customer, CustomerCohort.NEW, lines) == "not_active"

    def test_total_usage_limit(self, lines, customer, campaign_factory):
        campaign = campaign_factory(rules=CampaignRules(discount_value=Decimal("10"), total_usage_limit=100))

        reason = campaign.eligibility_failure(customer, CustomerCohort.NEW, lines, total_usage_count=100)

        assert reason == "usage_limit_reached"

    def test_coupon_gate(self, lines, customer, campaign_factory):
        campaign = campaign_factory(requires_coupon=True, coupon_code="vip-only")

        assert campaign.eligibility_failure(customer, CustomerCohort.NEW, lines) == "coupon_required"
        assert campaign.eligibility_failure(customer, CustomerCohort.NEW, lines, coupon_code="VIP-ONLY") is None

    def test_cohort_targeting(self, lines, customer, campaign_factory):
        campaign = campaign_factory(
            audience=TargetAudience(all_users=False, cohorts=frozenset({CustomerCohort.VIP}))
        )

        assert campaign.eligibility_failure(customer, CustomerCohort.NEW, lines) == "cohort_not_targeted"
        assert campaign.eligibility_failure(customer, CustomerCohort.VIP, lines) is None

    def test_user_targeting(self, lines, customer, campaign_factory):
        campaign = campaign_factory(audience=TargetAudience(all_users=False, user_ids=frozenset({"user-2"})))

        assert campaign.eligibility_failure(customer, CustomerCohort.NEW, lines) == "user_not_targeted"

    def test_history_thresholds(self, lines, campaign_factory):
        campaign = campaign_factory(
            audience=TargetAudience(all_users=False, min_order_count=2, min_total_spent=Decimal("500"))
        )
        newcomer = CustomerProfile(user_id="u", history=CustomerHistory(delivered_count=1))
        light_spender = CustomerProfile(
            user_id="u", history=CustomerHistory(delivered_count=3, total_spent=Decimal("100"))
        )

        assert campaign.eligibility_failure(newcomer, CustomerCohort.REGULAR, lines) == "order_count_below_threshold"
        assert (
            campaign.eligibility_failure(light_spender, CustomerCohort.REGULAR, lines)
            == "total_spent_below_threshold"
        )

    def test_registration_range(self, lines, campaign_factory):
        now = utc_now()
        campaign = campaign_factory(
            audience=TargetAudience(all_users=False, registered_from=now - timedelta(days=30))
        )
        veteran = CustomerProfile(user_id="u", registered_at=now - timedelta(days=400))

        assert campaign.eligibility_failure(veteran, CustomerCohort.REGULAR, lines) == "registration_outside_range"

    def test_minimum_purchase_uses_net_total(self, lines, customer, campaign_factory):
        campaign = campaign_factory(rules=CampaignRules(discount_value=Decimal("10"), min_purchase_amount=Decimal("1050")))

        assert campaign.eligibility_failure(customer, CustomerCohort.NEW, lines) == "below_minimum_purchase"

    def test_scope_without_matching_lines(self, lines, customer, campaign_factory):
        campaign = campaign_factory(scope=ProductScope(product_ids=frozenset({"p-monitor"})))

        assert campaign.eligibility_failure(customer, CustomerCohort.NEW, lines) == "no_eligible_products"

    def test_ensure_eligible_raises(self, lines, customer, campaign_factory):
        campaign = campaign_factory(status=CampaignStatus.ENDED)

        with pytest.raises(CampaignNotEligibleException) as exc_info:
            campaign.ensure_eligible(customer, CustomerCohort.NEW, lines)

        assert exc_info.value.reason == "not_active"


@pytest.mark.unit
class TestCampaignLifecycle:
    """Status transitions and derived state."""

    def test_draft_to_active(self, campaign_factory):
        campaign = campaign_factory(status=CampaignStatus.DRAFT)

        campaign.transition_to(CampaignStatus.ACTIVE)

        assert campaign.is_active() is True
        assert campaign.remaining_time() > timedelta(days=6)

    def test_ended_is_terminal(self, campaign_factory):
        campaign = campaign_factory(status=CampaignStatus.ENDED)

        with pytest.raises(IllegalTransitionException):
            campaign.transition_to(CampaignStatus.ACTIVE)

    def test_active_outside_window_is_not_live(self, campaign_factory):
        now = utc_now()
        campaign = campaign_factory(start_date=now + timedelta(days=1), end_date=now + timedelta(days=2))

        assert campaign.is_active(now) is False
        assert campaign.remaining_time(now) is None

    def test_due_for_activation_and_run_out(self, campaign_factory):
        now = utc_now()
        scheduled = campaign_factory(status=CampaignStatus.SCHEDULED)
        stale = campaign_factory(start_date=now - timedelta(days=5), end_date=now - timedelta(days=1))

        assert scheduled.is_due_for_activation(now) is True
        assert stale.has_run_out(now) is True

    def test_end_before_start_rejected(self, campaign_factory):
        now = utc_now()

        with pytest.raises(ValidationException):
            campaign_factory(start_date=now, end_date=now - timedelta(minutes=1))


# ============================================================================
# COHORT
# ============================================================================


@pytest.mark.unit
class TestCohortService:
    """Customer cohort derivation."""

    @pytest.fixture
    def service(self) -> CohortService:
        return CohortService(vip_spend_threshold=Decimal("1000"), inactive_after_days=90)

    def test_no_delivered_orders_is_new(self, service):
        assert service.classify(CustomerHistory()) == CustomerCohort.NEW

    def test_big_spender_is_vip(self, service):
        history = CustomerHistory(delivered_count=3, total_spent=Decimal("1500"), last_delivered_at=utc_now())

        assert service.classify(history) == CustomerCohort.VIP

    def test_long_silence_is_inactive(self, service):
        now = utc_now()
        history = CustomerHistory(
            delivered_count=1, total_spent=Decimal("100"), last_delivered_at=now - timedelta(days=120)
        )

        assert service.classify(history, now) == CustomerCohort.INACTIVE

    def test_recent_buyer_is_regular(self, service):
        now = utc_now()
        history = CustomerHistory(
            delivered_count=2, total_spent=Decimal("300"), last_delivered_at=now - timedelta(days=10)
        )

        assert service.classify(history, now) == CustomerCohort.REGULAR

    def test_resolver_reports_cohort(self):
        resolver = DiscountStackingResolver(cohort_service=CohortService(vip_spend_threshold=Decimal("10")))
        vip = CustomerProfile(
            user_id="u", history=CustomerHistory(delivered_count=1, total_spent=Decimal("20"), last_delivered_at=utc_now())
        )
        line = PricingLine(product_id="p", name="P", unit_price=Decimal("5"), quantity=1)

        assert resolver.resolve([line], vip).cohort == CustomerCohort.VIP
