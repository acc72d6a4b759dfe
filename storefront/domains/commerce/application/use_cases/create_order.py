"""
Create Order Use Case

Checkout: turns the customer's cart into a priced, stock-reserved,
pending order.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from storefront.core.domain import (
    Address,
    ValidationException,
    generate_uuid_str,
    utc_now,
)
from storefront.domains.commerce.application.ports import (
    ICampaignRepository,
    ICartRepository,
    ICatalogService,
    ICouponRepository,
    IEventPublisher,
    IOrderRepository,
    IStockLedger,
)
from storefront.domains.commerce.domain.entities import (
    DEFAULT_RETURN_WINDOW_DAYS,
    AppliedDiscount,
    Cart,
    Order,
    format_order_number,
)
from storefront.domains.commerce.domain.services import (
    CampaignCandidate,
    DiscountResolution,
    DiscountStackingResolver,
)
from storefront.domains.commerce.domain.value_objects import CustomerProfile, PricingLine, ShippingMethod

logger = logging.getLogger(__name__)


@dataclass
class CreateOrderRequest:
    """Request for checking out the customer's cart."""

    customer: CustomerProfile
    shipping_address: Address
    shipping_method: ShippingMethod = ShippingMethod.NORMAL
    coupon_code: str | None = None
    customer_notes: str | None = None


@dataclass
class CreateOrderResponse:
    """Response from checkout."""

    order: Order
    resolution: DiscountResolution


class CreateOrderUseCase:
    """
    Use Case: Create Order

    Sequence:
    1. Re-price the cart from current catalog data and resolve discounts
    2. Reserve stock line by line, releasing earlier reservations if one fails
    3. Snapshot lines, compute totals and number the order
    4. Record coupon/campaign usage keyed by the order id, persist the order;
       any failure releases that usage and the reservations before re-raising
    5. Clear the cart and publish ``order.created``
    """

    def __init__(
        self,
        cart_repository: ICartRepository,
        catalog_service: ICatalogService,
        stock_ledger: IStockLedger,
        coupon_repository: ICouponRepository,
        campaign_repository: ICampaignRepository,
        order_repository: IOrderRepository,
        event_publisher: IEventPublisher,
        resolver: DiscountStackingResolver | None = None,
        shipping_costs: dict[ShippingMethod, Decimal] | None = None,
        order_number_prefix: str = "ORD",
        return_window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
    ):
        """
        Initialize use case with dependencies.

        Args:
            shipping_costs: Cost per shipping method (missing methods are free)
            order_number_prefix: Prefix of generated order numbers
            return_window_days: Days after delivery during which returns are accepted
        """
        self.cart_repository = cart_repository
        self.catalog_service = catalog_service
        self.stock_ledger = stock_ledger
        self.coupon_repository = coupon_repository
        self.campaign_repository = campaign_repository
        self.order_repository = order_repository
        self.event_publisher = event_publisher
        self.resolver = resolver or DiscountStackingResolver()
        self.shipping_costs = shipping_costs or {}
        self.order_number_prefix = order_number_prefix
        self.return_window_days = return_window_days

    async def execute(self, request: CreateOrderRequest) -> CreateOrderResponse:
        user_id = request.customer.user_id
        now = utc_now()

        cart = await self.cart_repository.get_by_user(user_id)
        if cart is None or cart.is_empty:
            raise ValidationException("Cannot check out an empty cart", field="cart")

        lines = await self._current_lines(cart)
        coupon_code = request.coupon_code or (cart.coupon.code if cart.coupon else None)
        resolution = await self._resolve_discounts(lines, request.customer, coupon_code, now)

        shipping_cost = Decimal("0") if resolution.free_shipping else self.shipping_costs.get(
            request.shipping_method, Decimal("0")
        )

        reserved = await self._reserve_all(lines)
        order_id = generate_uuid_str()
        try:
            sequence = await self.order_repository.next_daily_sequence(now.date())
            order = Order.place(
                order_id=order_id,
                order_number=format_order_number(now.date(), sequence, self.order_number_prefix),
                user_id=user_id,
                lines=lines,
                shipping_address=request.shipping_address,
                shipping_method=request.shipping_method,
                shipping_cost=shipping_cost,
                coupon_code=resolution.coupon.code if resolution.coupon else None,
                coupon_discount=resolution.coupon_discount,
                campaign_discount=resolution.campaign_discount,
                applied_discounts=self._applied_discounts(resolution),
                customer_notes=request.customer_notes,
                actor=user_id,
                return_window_days=self.return_window_days,
                now=now,
            )
            await self._record_promotion_usage(order, resolution)
            await self.order_repository.create(order)
        except Exception as e:
            logger.warning(f"Checkout of order {order_id} failed ({type(e).__name__}), compensating")
            await self._release_promotion_usage(order_id, resolution)
            await self._release_all(reserved)
            raise

        await self.cart_repository.delete_by_user(user_id)
        await self.event_publisher.publish_all(order.pull_domain_events())

        logger.info(
            f"Order created: {order.order_number} for user {user_id} "
            f"total={order.total_amount} discount={order.total_discount}"
        )
        return CreateOrderResponse(order=order, resolution=resolution)

    async def _current_lines(self, cart: Cart) -> list[PricingLine]:
        """Cart lines with current catalog values; client prices are never used."""
        products = await self.catalog_service.get_products([item.product_id for item in cart.items])
        for item in cart.items:
            product = products.get(item.product_id)
            if product is None or not product.status.is_available_for_sale():
                raise ValidationException(
                    f"Product {item.product_id} is no longer available",
                    field="product_id",
                    details={"product_id": item.product_id},
                )
            item.sync_with(product)
        return cart.to_pricing_lines()

    async def _resolve_discounts(
        self,
        lines: list[PricingLine],
        customer: CustomerProfile,
        coupon_code: str | None,
        now: datetime,
    ) -> DiscountResolution:
        history = await self.order_repository.get_customer_history(customer.user_id)
        customer = replace(customer, history=history)

        coupon = None
        coupon_usage = 0
        if coupon_code:
            coupon = await self.coupon_repository.get_by_code(coupon_code)
            if coupon is not None:
                coupon_usage = await self.coupon_repository.count_user_usage(str(coupon.id), customer.user_id)

        live = await self.campaign_repository.list_live(now)
        usage = await self.campaign_repository.get_usage([str(c.id) for c in live], customer.user_id)
        candidates = [
            CampaignCandidate(
                campaign=campaign,
                user_usage_count=usage[str(campaign.id)].user_count if str(campaign.id) in usage else 0,
                total_usage_count=usage[str(campaign.id)].total_count if str(campaign.id) in usage else 0,
            )
            for campaign in live
        ]

        return self.resolver.resolve(
            lines=lines,
            customer=customer,
            coupon_code=coupon_code,
            coupon=coupon,
            coupon_user_usage=coupon_usage,
            campaigns=candidates,
            now=now,
        )

    async def _reserve_all(self, lines: list[PricingLine]) -> list[PricingLine]:
        reserved: list[PricingLine] = []
        try:
            for line in lines:
                await self.stock_ledger.reserve(line.product_id, line.quantity)
                reserved.append(line)
        except Exception as e:
            logger.warning(f"Reservation failed ({type(e).__name__}), releasing {len(reserved)} earlier reservation(s)")
            await self._release_all(reserved)
            raise
        return reserved

    async def _release_all(self, lines: list[PricingLine]) -> None:
        """Undo reservations; a failing release is logged so the rest still run."""
        for line in lines:
            try:
                await self.stock_ledger.release(line.product_id, line.quantity)
            except Exception as e:
                logger.error(f"Could not release {line.quantity} x {line.product_id}: {e}")

    async def _record_promotion_usage(self, order: Order, resolution: DiscountResolution) -> None:
        if resolution.coupon is not None:
            await self.coupon_repository.record_usage(
                resolution.coupon.coupon_id, order.user_id, str(order.id), resolution.coupon.amount
            )
        for campaign in resolution.campaigns:
            await self.campaign_repository.record_usage(
                campaign.campaign_id, order.user_id, str(order.id), campaign.amount
            )

    async def _release_promotion_usage(self, order_id: str, resolution: DiscountResolution) -> None:
        if resolution.coupon is not None:
            try:
                await self.coupon_repository.release_usage(resolution.coupon.coupon_id, order_id)
            except Exception as e:
                logger.error(f"Could not release coupon {resolution.coupon.code} for order {order_id}: {e}")
        for campaign in resolution.campaigns:
            try:
                await self.campaign_repository.release_usage(campaign.campaign_id, order_id)
            except Exception as e:
                logger.error(f"Could not release campaign {campaign.campaign_id} for order {order_id}: {e}")

    def _applied_discounts(self, resolution: DiscountResolution) -> list[AppliedDiscount]:
        applied = []
        if resolution.coupon is not None:
            applied.append(
                AppliedDiscount("coupon", resolution.coupon.coupon_id, resolution.coupon.code, resolution.coupon.amount)
            )
        for campaign in resolution.campaigns:
            applied.append(AppliedDiscount("campaign", campaign.campaign_id, campaign.name, campaign.amount))
        return applied


__all__ = ["CreateOrderRequest", "CreateOrderResponse", "CreateOrderUseCase"]
