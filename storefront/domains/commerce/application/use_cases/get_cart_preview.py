"""
Get Cart Preview Use Case

Prices the customer's cart against the current catalog for display.
"""

import logging
from dataclasses import dataclass, field

from storefront.domains.commerce.application.ports import ICartRepository, ICatalogService
from storefront.domains.commerce.domain.entities import Cart
from storefront.domains.commerce.domain.services import PricingResult, PricingService

logger = logging.getLogger(__name__)


@dataclass
class CartView:
    """A cart together with its pricing breakdown."""

    cart: Cart
    pricing: PricingResult
    dropped_product_ids: list[str] = field(default_factory=list)


async def price_cart(cart: Cart, catalog_service: ICatalogService, pricing_service: PricingService) -> CartView:
    """Refresh line prices from the catalog and price the cart."""
    products = await catalog_service.get_products([item.product_id for item in cart.items])
    dropped = cart.refresh_prices(products)
    if dropped:
        logger.info(f"Cart of user {cart.user_id}: dropped unavailable products {dropped}")
    pricing = pricing_service.calculate(cart.to_pricing_lines(), cart.coupon)
    return CartView(cart=cart, pricing=pricing, dropped_product_ids=dropped)


class GetCartPreviewUseCase:
    """
    Use Case: Cart Preview

    Read-only: prices are refreshed in memory and the stored cart is not
    rewritten.
    """

    def __init__(
        self,
        cart_repository: ICartRepository,
        catalog_service: ICatalogService,
        pricing_service: PricingService | None = None,
    ):
        self.cart_repository = cart_repository
        self.catalog_service = catalog_service
        self.pricing_service = pricing_service or PricingService()

    async def execute(self, user_id: str) -> CartView:
        cart = await self.cart_repository.get_by_user(user_id)
        if cart is None:
            cart = Cart.for_user(user_id)
        return await price_cart(cart, self.catalog_service, self.pricing_service)


__all__ = ["GetCartPreviewUseCase", "CartView", "price_cart"]
