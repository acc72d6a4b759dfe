"""
Pricing Service for the Commerce Domain

Stateless calculator shared by the cart preview and the order commit
path. Both paths must produce identical numbers for identical input.
"""

from dataclasses import dataclass
from decimal import Decimal

from storefront.core.domain import HUNDRED, ZERO, round_money

from ..value_objects.pricing import CouponSnapshot, PricingLine
from ..value_objects.promotion import DiscountType


@dataclass(frozen=True)
class PricingResult:
    """Result of pricing a list of lines."""

    lines: tuple[PricingLine, ...]
    subtotal: Decimal
    product_discount_total: Decimal
    coupon_discount: Decimal
    total: Decimal

    @property
    def total_discount(self) -> Decimal:
        return self.product_discount_total + self.coupon_discount

    @property
    def payable_before_coupon(self) -> Decimal:
        return self.subtotal - self.product_discount_total


class PricingService:
    """
    Domain service for cart and order pricing.

    - itemTotal = price x qty
    - itemDiscount = price x (discountPercent / 100) x qty
    - subtotal = sum of itemTotal, productDiscountTotal = sum of itemDiscount
    - an optional coupon snapshot is layered on top for display
    - total = subtotal - productDiscountTotal - couponDiscount, floored at 0

    Example:
        ```python
        service = PricingService()
        result = service.calculate(cart.to_pricing_lines(), cart.coupon)
        print(f"Total: {result.total}")
        ```
    """

    def calculate(self, lines: list[PricingLine], coupon: CouponSnapshot | None = None) -> PricingResult:
        """
        Price a list of lines.

        Args:
            lines: Line items with catalog prices
            coupon: Optional coupon snapshot for the display adjustment

        Returns:
            PricingResult with subtotal, discounts and total
        """
        subtotal = sum((line.item_total for line in lines), ZERO)
        product_discount_total = sum((line.item_discount for line in lines), ZERO)
        payable = subtotal - product_discount_total
        coupon_discount = self.coupon_adjustment(payable, coupon)

        return PricingResult(
            lines=tuple(lines),
            subtotal=subtotal,
            product_discount_total=product_discount_total,
            coupon_discount=coupon_discount,
            total=max(ZERO, payable - coupon_discount),
        )

    def coupon_adjustment(self, payable: Decimal, coupon: CouponSnapshot | None) -> Decimal:
        """Display-only coupon discount against the amount left after item discounts."""
        if coupon is None or payable <= 0:
            return ZERO
        if coupon.discount_type == DiscountType.PERCENTAGE:
            return round_money(payable * coupon.discount_value / HUNDRED)
        return min(round_money(coupon.discount_value), payable)
