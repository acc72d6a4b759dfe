"""
Cart Mutation Use Cases

Add, update, remove and clear cart lines. Carts are created lazily on
the first mutation.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from storefront.core.domain import EntityNotFoundException, generate_uuid_str
from storefront.domains.commerce.application.ports import ICartRepository, ICatalogService
from storefront.domains.commerce.domain.entities import DEFAULT_CART_TTL, Cart
from storefront.domains.commerce.domain.services import PricingService
from storefront.domains.commerce.domain.value_objects import ProductSnapshot

from .get_cart_preview import CartView, price_cart

logger = logging.getLogger(__name__)


@dataclass
class AddToCartRequest:
    user_id: str
    product_id: str
    quantity: int = 1


@dataclass
class UpdateCartItemRequest:
    user_id: str
    product_id: str
    quantity: int


class _CartUseCase:
    """Shared wiring for cart mutations."""

    def __init__(
        self,
        cart_repository: ICartRepository,
        catalog_service: ICatalogService,
        pricing_service: PricingService | None = None,
        cart_ttl: timedelta = DEFAULT_CART_TTL,
    ):
        self.cart_repository = cart_repository
        self.catalog_service = catalog_service
        self.pricing_service = pricing_service or PricingService()
        self.cart_ttl = cart_ttl

    async def _load_or_create(self, user_id: str) -> Cart:
        cart = await self.cart_repository.get_by_user(user_id)
        if cart is None:
            cart = Cart.for_user(user_id, ttl=self.cart_ttl)
            cart.id = generate_uuid_str()
        else:
            cart.ttl = self.cart_ttl
        return cart

    async def _get_product(self, product_id: str) -> ProductSnapshot:
        product = await self.catalog_service.get_product(product_id)
        if product is None:
            raise EntityNotFoundException("Product", product_id)
        return product

    async def _save_and_price(self, cart: Cart) -> CartView:
        await self.cart_repository.save(cart)
        return await price_cart(cart, self.catalog_service, self.pricing_service)


class AddToCartUseCase(_CartUseCase):
    """
    Use Case: Add To Cart

    Merges with an existing line for the same product. The resulting
    quantity may not exceed the product's available stock.
    """

    async def execute(self, request: AddToCartRequest) -> CartView:
        product = await self._get_product(request.product_id)
        cart = await self._load_or_create(request.user_id)
        cart.add_item(product, request.quantity)
        logger.info(f"User {request.user_id} added {request.quantity} x {request.product_id} to cart")
        return await self._save_and_price(cart)


class UpdateCartItemUseCase(_CartUseCase):
    """Use Case: Update Cart Item Quantity"""

    async def execute(self, request: UpdateCartItemRequest) -> CartView:
        product = await self._get_product(request.product_id)
        cart = await self._load_or_create(request.user_id)
        cart.update_item_quantity(product, request.quantity)
        return await self._save_and_price(cart)


class RemoveFromCartUseCase(_CartUseCase):
    """Use Case: Remove Cart Item"""

    async def execute(self, user_id: str, product_id: str) -> CartView:
        cart = await self._load_or_create(user_id)
        if not cart.remove_item(product_id):
            raise EntityNotFoundException("CartItem", product_id, f"Product {product_id} is not in the cart")
        return await self._save_and_price(cart)


class ClearCartUseCase(_CartUseCase):
    """Use Case: Clear Cart"""

    async def execute(self, user_id: str) -> CartView:
        cart = await self._load_or_create(user_id)
        cart.clear()
        return await self._save_and_price(cart)


__all__ = [
    "AddToCartRequest",
    "UpdateCartItemRequest",
    "AddToCartUseCase",
    "UpdateCartItemUseCase",
    "RemoveFromCartUseCase",
    "ClearCartUseCase",
]
