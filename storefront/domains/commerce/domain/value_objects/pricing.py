"""
Pricing Value Objects

Line items as seen by the pricing calculator and the discount resolver,
and the coupon snapshot a cart carries for display.
"""

from dataclasses import dataclass
from decimal import Decimal

from storefront.core.domain import HUNDRED, ValueObject, round_money, to_decimal
from storefront.domains.commerce.domain.value_objects.promotion import DiscountType


@dataclass(frozen=True)
class PricingLine(ValueObject):
    """
    One priced line: catalog unit price, item-level discount and quantity.

    Category and brand travel along so promotion scopes can be evaluated
    without another catalog lookup.
    """

    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    discount_percent: Decimal = Decimal("0")
    category_id: str | None = None
    brand: str | None = None

    def _validate(self) -> None:
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        object.__setattr__(self, "discount_percent", to_decimal(self.discount_percent))
        if self.quantity < 1:
            raise ValueError("Quantity must be at least 1")
        if self.unit_price < 0:
            raise ValueError("Unit price cannot be negative")
        if not Decimal("0") <= self.discount_percent <= HUNDRED:
            raise ValueError("Discount percent must be between 0 and 100")

    @property
    def item_total(self) -> Decimal:
        """price x qty"""
        return round_money(self.unit_price * self.quantity)

    @property
    def item_discount(self) -> Decimal:
        """price x (discountPercent / 100) x qty"""
        return round_money(self.unit_price * self.discount_percent / HUNDRED * self.quantity)

    @property
    def net_total(self) -> Decimal:
        """Line amount after the item-level discount."""
        return self.item_total - self.item_discount

    @property
    def final_unit_price(self) -> Decimal:
        return round_money(self.unit_price - self.unit_price * self.discount_percent / HUNDRED)


@dataclass(frozen=True)
class CouponSnapshot(ValueObject):
    """Coupon terms copied onto a cart when the customer applies a code."""

    code: str
    discount_type: DiscountType
    discount_value: Decimal

    def _validate(self) -> None:
        object.__setattr__(self, "code", self.code.strip().upper())
        object.__setattr__(self, "discount_value", to_decimal(self.discount_value))
        if self.discount_type == DiscountType.TIERED:
            raise ValueError("Coupons support percentage or fixed discounts only")
        if self.discount_value < 0:
            raise ValueError("Coupon discount cannot be negative")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > HUNDRED:
            raise ValueError("Percentage coupon cannot exceed 100")

    def to_dict(self) -> dict[str, str]:
        return {
            "code": self.code,
            "discount_type": self.discount_type.value,
            "discount_value": str(self.discount_value),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CouponSnapshot":
        return cls(
            code=data["code"],
            discount_type=DiscountType(data["discount_type"]),
            discount_value=Decimal(str(data["discount_value"])),
        )
