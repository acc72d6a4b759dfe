"""
Promotion Value Objects

Enumerations and rule shapes shared by coupons and campaigns.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from storefront.core.domain import StatusEnum, ValueObject, to_decimal


class DiscountType(StatusEnum):
    """How a discount value is interpreted."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"
    TIERED = "tiered"


class CampaignType(StatusEnum):
    """Marketing classification of a campaign."""

    FLASH_SALE = "flash_sale"
    SEASONAL = "seasonal"
    CLEARANCE = "clearance"
    SPECIAL_OFFER = "special_offer"
    BUNDLE = "bundle"
    BUY_GET = "buy_get"


class CampaignStatus(StatusEnum):
    """
    Campaign lifecycle states.

    draft -> scheduled -> active -> paused -> ended | cancelled
    """

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"
    CANCELLED = "cancelled"

    def can_transition_to(self, new_status: "CampaignStatus") -> bool:
        return new_status in CAMPAIGN_TRANSITIONS[self]

    def is_terminal(self) -> bool:
        return not CAMPAIGN_TRANSITIONS[self]


CAMPAIGN_TRANSITIONS: dict[CampaignStatus, tuple[CampaignStatus, ...]] = {
    CampaignStatus.DRAFT: (CampaignStatus.SCHEDULED, CampaignStatus.ACTIVE, CampaignStatus.CANCELLED),
    CampaignStatus.SCHEDULED: (
        CampaignStatus.ACTIVE,
        CampaignStatus.DRAFT,
        CampaignStatus.ENDED,
        CampaignStatus.CANCELLED,
    ),
    CampaignStatus.ACTIVE: (CampaignStatus.PAUSED, CampaignStatus.ENDED, CampaignStatus.CANCELLED),
    CampaignStatus.PAUSED: (CampaignStatus.ACTIVE, CampaignStatus.ENDED, CampaignStatus.CANCELLED),
    CampaignStatus.ENDED: (),
    CampaignStatus.CANCELLED: (),
}


class CustomerCohort(StatusEnum):
    """Derived customer classification used for campaign targeting."""

    NEW = "new"
    REGULAR = "regular"
    VIP = "vip"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class DiscountTier(ValueObject):
    """A tiered-discount step: orders of at least ``min_amount`` get ``discount_value`` percent."""

    min_amount: Decimal
    discount_value: Decimal

    def _validate(self) -> None:
        object.__setattr__(self, "min_amount", to_decimal(self.min_amount))
        object.__setattr__(self, "discount_value", to_decimal(self.discount_value))
        if self.min_amount < 0:
            raise ValueError("Tier minimum amount cannot be negative")
        if not Decimal("0") <= self.discount_value <= Decimal("100"):
            raise ValueError("Tier discount must be between 0 and 100")


@dataclass(frozen=True)
class ProductScope(ValueObject):
    """
    Product/category scoping shared by coupons and campaigns.

    An empty scope matches every line. When any inclusion list is set a
    line matches if its product, category or brand is included.
    Exclusions always win over inclusions.
    """

    product_ids: frozenset[str] = field(default_factory=frozenset)
    category_ids: frozenset[str] = field(default_factory=frozenset)
    brands: frozenset[str] = field(default_factory=frozenset)
    excluded_product_ids: frozenset[str] = field(default_factory=frozenset)

    def _validate(self) -> None:
        for name in ("product_ids", "category_ids", "brands", "excluded_product_ids"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value))

    @property
    def is_unrestricted(self) -> bool:
        return not (self.product_ids or self.category_ids or self.brands)

    def matches(self, product_id: str, category_id: str | None = None, brand: str | None = None) -> bool:
        if product_id in self.excluded_product_ids:
            return False
        if self.is_unrestricted:
            return True
        return (
            product_id in self.product_ids
            or (category_id is not None and category_id in self.category_ids)
            or (brand is not None and brand in self.brands)
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "product_ids": sorted(self.product_ids),
            "category_ids": sorted(self.category_ids),
            "brands": sorted(self.brands),
            "excluded_product_ids": sorted(self.excluded_product_ids),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ProductScope":
        data = data or {}
        return cls(
            product_ids=frozenset(data.get("product_ids", [])),
            category_ids=frozenset(data.get("category_ids", [])),
            brands=frozenset(data.get("brands", [])),
            excluded_product_ids=frozenset(data.get("excluded_product_ids", [])),
        )
