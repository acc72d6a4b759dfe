"""
Cart Entity for the Commerce Domain

A customer's mutable shopping cart. Lines keep live references to the
catalog (product id plus last seen price); the order snapshot is taken
only at checkout.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from storefront.core.domain import (
    AggregateRoot,
    InsufficientStockException,
    ValidationException,
    utc_now,
)

from ..value_objects.catalog import ProductSnapshot
from ..value_objects.pricing import CouponSnapshot, PricingLine

DEFAULT_CART_TTL = timedelta(days=30)


@dataclass
class CartItem:
    """
    Line entry in a cart.

    ``unit_price`` and ``unit_discount_percent`` are the catalog values
    seen at the last mutation or price refresh.
    """

    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    unit_discount_percent: Decimal = Decimal("0")
    category_id: str | None = None
    brand: str | None = None
    added_at: datetime = field(default_factory=utc_now)

    def to_pricing_line(self) -> PricingLine:
        return PricingLine(
            product_id=self.product_id,
            name=self.name,
            unit_price=self.unit_price,
            quantity=self.quantity,
            discount_percent=self.unit_discount_percent,
            category_id=self.category_id,
            brand=self.brand,
        )

    def sync_with(self, product: ProductSnapshot) -> None:
        """Copy current catalog values onto the line."""
        self.name = product.name
        self.unit_price = product.price
        self.unit_discount_percent = product.discount_percent
        self.category_id = product.category_id
        self.brand = product.brand


@dataclass
class Cart(AggregateRoot[str]):
    """
    Cart aggregate root. One cart per user.

    Invariant: a line's quantity never exceeds the product's available
    stock at the moment of the mutation.

    Example:
        ```python
        cart = Cart.for_user("user-1")
        cart.add_item(product, quantity=2)
        cart.apply_coupon(CouponSnapshot("SAVE10", DiscountType.PERCENTAGE, Decimal("10")))
        lines = cart.to_pricing_lines()
        ```
    """

    user_id: str = ""
    items: list[CartItem] = field(default_factory=list)
    coupon: CouponSnapshot | None = None
    expires_at: datetime = field(default_factory=lambda: utc_now() + DEFAULT_CART_TTL)
    ttl: timedelta = field(default=DEFAULT_CART_TTL, repr=False, compare=False)

    @classmethod
    def for_user(cls, user_id: str, ttl: timedelta = DEFAULT_CART_TTL, now: datetime | None = None) -> "Cart":
        now = now or utc_now()
        return cls(user_id=user_id, created_at=now, updated_at=now, expires_at=now + ttl, ttl=ttl)

    # ============================================================
    # QUERIES
    # ============================================================

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def find_item(self, product_id: str) -> CartItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def to_pricing_lines(self) -> list[PricingLine]:
        return [item.to_pricing_line() for item in self.items]

    # ============================================================
    # MUTATIONS
    # ============================================================

    def add_item(self, product: ProductSnapshot, quantity: int = 1, now: datetime | None = None) -> CartItem:
        """
        Add a product, merging with an existing line for the same product.

        Raises:
            ValidationException: If quantity < 1 or the product is not for sale
            InsufficientStockException: If the resulting quantity exceeds available stock
        """
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1", field="quantity")
        self._ensure_sellable(product)

        existing = self.find_item(product.product_id)
        new_quantity = quantity + (existing.quantity if existing else 0)
        self._ensure_stock(product, new_quantity)

        if existing:
            existing.quantity = new_quantity
            existing.sync_with(product)
            item = existing
        else:
            item = CartItem(
                product_id=product.product_id,
                name=product.name,
                quantity=new_quantity,
                unit_price=product.price,
                unit_discount_percent=product.discount_percent,
                category_id=product.category_id,
                brand=product.brand,
                added_at=now or utc_now(),
            )
            self.items.append(item)

        self._extend(now)
        return item

    def update_item_quantity(self, product: ProductSnapshot, quantity: int, now: datetime | None = None) -> CartItem:
        """Set the quantity of an existing line."""
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1", field="quantity")

        item = self.find_item(product.product_id)
        if item is None:
            raise ValidationException(
                f"Product {product.product_id} is not in the cart",
                field="product_id",
                details={"product_id": product.product_id},
            )
        self._ensure_sellable(product)
        self._ensure_stock(product, quantity)

        item.quantity = quantity
        item.sync_with(product)
        self._extend(now)
        return item

    def remove_item(self, product_id: str, now: datetime | None = None) -> bool:
        """Remove a line. Returns False if the product was not in the cart."""
        before = len(self.items)
        self.items = [item for item in self.items if item.product_id != product_id]
        removed = len(self.items) != before
        if removed:
            self._extend(now)
        return removed

    def clear(self, now: datetime | None = None) -> None:
        """Drop every line and the applied coupon."""
        self.items = []
        self.coupon = None
        self._extend(now)

    def apply_coupon(self, coupon: CouponSnapshot, now: datetime | None = None) -> None:
        self.coupon = coupon
        self._extend(now)

    def remove_coupon(self, now: datetime | None = None) -> None:
        self.coupon = None
        self._extend(now)

    def refresh_prices(self, products: dict[str, ProductSnapshot]) -> list[str]:
        """
        Re-read catalog values for every line.

        Lines whose product disappeared or is no longer sellable are dropped,
        and quantities are clamped to available stock.

        Returns:
            Product ids of the dropped lines
        """
        kept: list[CartItem] = []
        dropped: list[str] = []
        for item in self.items:
            product = products.get(item.product_id)
            if product is None or not product.is_available_for_sale():
                dropped.append(item.product_id)
                continue
            item.sync_with(product)
            item.quantity = min(item.quantity, product.available_stock)
            kept.append(item)
        self.items = kept
        return dropped

    # ============================================================
    # HELPERS
    # ============================================================

    def _ensure_sellable(self, product: ProductSnapshot) -> None:
        if not product.is_available_for_sale():
            raise ValidationException(
                f"Product {product.product_id} is not available for sale",
                field="product_id",
                details={"product_id": product.product_id, "status": product.status.value},
            )

    def _ensure_stock(self, product: ProductSnapshot, quantity: int) -> None:
        if quantity > product.available_stock:
            raise InsufficientStockException(product.product_id, quantity, product.available_stock)

    def _extend(self, now: datetime | None) -> None:
        now = now or utc_now()
        self.expires_at = now + self.ttl
        self.touch(now)
