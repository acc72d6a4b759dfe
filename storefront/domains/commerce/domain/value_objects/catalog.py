"""
Catalog Snapshot Value Object

Read-only view of a product as supplied by the catalog service.
The commerce core never mutates product content.
"""

from dataclasses import dataclass
from decimal import Decimal

from storefront.core.domain import ValueObject, to_decimal
from storefront.domains.commerce.domain.value_objects.order_status import ProductStatus


@dataclass(frozen=True)
class ProductSnapshot(ValueObject):
    """Catalog data needed to price and reserve a product."""

    product_id: str
    name: str
    price: Decimal
    discount_percent: Decimal = Decimal("0")
    available_stock: int = 0
    category_id: str | None = None
    brand: str | None = None
    status: ProductStatus = ProductStatus.ACTIVE

    def _validate(self) -> None:
        object.__setattr__(self, "price", to_decimal(self.price))
        object.__setattr__(self, "discount_percent", to_decimal(self.discount_percent))
        if self.price < 0:
            raise ValueError("Product price cannot be negative")
        if not Decimal("0") <= self.discount_percent <= Decimal("100"):
            raise ValueError("Product discount must be between 0 and 100")

    def is_available_for_sale(self) -> bool:
        return self.status.is_available_for_sale() and self.available_stock > 0
