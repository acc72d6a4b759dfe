"""
Apply Coupon Use Cases

Validates a coupon code against the customer's cart and stores a coupon
snapshot on the cart for display. The coupon is resolved again at
checkout.
"""

import logging
from dataclasses import dataclass

from storefront.core.domain import DomainException, ValidationException
from storefront.domains.commerce.application.ports import ICartRepository, ICatalogService, ICouponRepository
from storefront.domains.commerce.domain.entities import normalize_coupon_code
from storefront.domains.commerce.domain.services import DiscountStackingResolver, PricingService

from .get_cart_preview import CartView, price_cart

logger = logging.getLogger(__name__)


@dataclass
class ApplyCouponRequest:
    user_id: str
    code: str


class ApplyCouponUseCase:
    """
    Use Case: Apply Coupon

    Raises:
        CouponInvalidException: Unknown, inactive, expired, exhausted or used up by the user
        CouponBelowMinimumException: Eligible subtotal below the coupon minimum
    """

    def __init__(
        self,
        cart_repository: ICartRepository,
        coupon_repository: ICouponRepository,
        catalog_service: ICatalogService,
        resolver: DiscountStackingResolver | None = None,
        pricing_service: PricingService | None = None,
    ):
        self.cart_repository = cart_repository
        self.coupon_repository = coupon_repository
        self.catalog_service = catalog_service
        self.resolver = resolver or DiscountStackingResolver()
        self.pricing_service = pricing_service or PricingService()

    async def execute(self, request: ApplyCouponRequest) -> CartView:
        code = normalize_coupon_code(request.code)
        cart = await self.cart_repository.get_by_user(request.user_id)
        if cart is None or cart.is_empty:
            raise ValidationException("Cannot apply a coupon to an empty cart", field="code")

        view = await price_cart(cart, self.catalog_service, self.pricing_service)

        coupon = await self.coupon_repository.get_by_code(code)
        usage = await self.coupon_repository.count_user_usage(str(coupon.id), request.user_id) if coupon else 0
        try:
            self.resolver.resolve_coupon(code, coupon, view.cart.to_pricing_lines(), request.user_id, usage)
        except DomainException as e:
            logger.warning(f"Coupon {code} rejected for user {request.user_id}: {e}")
            raise

        cart.apply_coupon(coupon.to_snapshot())
        await self.cart_repository.save(cart)
        logger.info(f"Coupon {code} applied to cart of user {request.user_id}")
        return await price_cart(cart, self.catalog_service, self.pricing_service)


class RemoveCouponUseCase:
    """Use Case: Remove Coupon"""

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
        if cart is None or cart.coupon is None:
            raise ValidationException("No coupon applied to the cart", field="code")
        cart.remove_coupon()
        await self.cart_repository.save(cart)
        return await price_cart(cart, self.catalog_service, self.pricing_service)


__all__ = ["ApplyCouponRequest", "ApplyCouponUseCase", "RemoveCouponUseCase"]
