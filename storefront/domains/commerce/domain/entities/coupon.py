"""
Coupon Entity for the Commerce Domain

Global, reusable discount codes. Usage is tracked in a separate
append-only ledger; the coupon only keeps the running ``used_count``.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from storefront.core.domain import (
    HUNDRED,
    ZERO,
    CouponInvalidException,
    Entity,
    ValidationException,
    round_money,
    utc_now,
)

from ..value_objects.pricing import CouponSnapshot, PricingLine
from ..value_objects.promotion import DiscountType, ProductScope

COUPON_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{4,20}$")


def normalize_coupon_code(code: str) -> str:
    return code.strip().upper()


@dataclass
class Coupon(Entity[str]):
    """
    Coupon definition.

    Invariants: percentage value <= 100 and valid_until > valid_from.
    Coupons are never deleted while referenced by an order; use
    ``deactivate`` instead.
    """

    code: str = ""
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Decimal("0")
    minimum_amount: Decimal = Decimal("0")
    maximum_discount: Decimal | None = None
    valid_from: datetime = field(default_factory=utc_now)
    valid_until: datetime = field(default_factory=utc_now)
    usage_limit: int | None = None
    used_count: int = 0
    per_user_limit: int = 1
    scope: ProductScope = field(default_factory=ProductScope)
    user_ids: frozenset[str] = field(default_factory=frozenset)
    free_shipping: bool = False
    is_active: bool = True
    description: str | None = None

    def __post_init__(self) -> None:
        self.code = normalize_coupon_code(self.code)
        self.user_ids = frozenset(self.user_ids)
        self.validate()

    def validate(self) -> None:
        """Check the coupon definition itself."""
        if not COUPON_CODE_PATTERN.match(self.code):
            raise ValidationException(
                "Coupon code must be 4-20 characters of letters, digits, '-' or '_'",
                field="code",
            )
        if self.discount_type == DiscountType.TIERED:
            raise ValidationException("Coupons support percentage or fixed discounts only", field="discount_type")
        if self.discount_value < 0:
            raise ValidationException("Discount value cannot be negative", field="discount_value")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > HUNDRED:
            raise ValidationException("Percentage discount cannot exceed 100", field="discount_value")
        if self.valid_until <= self.valid_from:
            raise ValidationException("Coupon validity end must be after its start", field="valid_until")
        if self.per_user_limit < 1:
            raise ValidationException("Per-user limit must be at least 1", field="per_user_limit")
        if self.usage_limit is not None and self.usage_limit < 1:
            raise ValidationException("Usage limit must be at least 1", field="usage_limit")

    # ============================================================
    # ELIGIBILITY
    # ============================================================

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def is_within_validity(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return self.valid_from <= now <= self.valid_until

    def ensure_usable(self, user_id: str, user_usage_count: int, now: datetime | None = None) -> None:
        """
        Raise CouponInvalidException unless this user may redeem the coupon now.

        Args:
            user_id: Redeeming customer
            user_usage_count: Times the customer already used this coupon
            now: Evaluation time
        """
        if not self.is_active:
            raise CouponInvalidException(self.code, "inactive")
        if not self.is_within_validity(now):
            raise CouponInvalidException(self.code, "outside_validity_window")
        if self.is_exhausted():
            raise CouponInvalidException(self.code, "usage_limit_reached")
        if self.user_ids and user_id not in self.user_ids:
            raise CouponInvalidException(self.code, "not_available_for_user")
        if user_usage_count >= self.per_user_limit:
            raise CouponInvalidException(self.code, "per_user_limit_reached")

    def eligible_subtotal(self, lines: list[PricingLine]) -> Decimal:
        """Sum of net line amounts inside the coupon's product/category scope."""
        return sum(
            (line.net_total for line in lines if self.scope.matches(line.product_id, line.category_id, line.brand)),
            ZERO,
        )

    def calculate_discount(self, eligible_subtotal: Decimal) -> Decimal:
        """min(computed discount, maximum_discount if set, eligible subtotal)"""
        if self.discount_type == DiscountType.PERCENTAGE:
            computed = round_money(eligible_subtotal * self.discount_value / HUNDRED)
        else:
            computed = round_money(self.discount_value)

        if self.maximum_discount is not None:
            computed = min(computed, self.maximum_discount)
        return max(ZERO, min(computed, eligible_subtotal))

    # ============================================================
    # LIFECYCLE
    # ============================================================

    def deactivate(self) -> None:
        self.is_active = False
        self.touch()

    def to_snapshot(self) -> CouponSnapshot:
        return CouponSnapshot(
            code=self.code,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
        )
