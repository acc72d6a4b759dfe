"""
Dependency Injection Container

Centralized container for creating and managing all application dependencies.
Wires concrete implementations to the commerce ports.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.clients import PaymentGatewayClient
from storefront.config.settings import Settings, get_settings
from storefront.core.domain import DomainEventPublisher
from storefront.domains.commerce.application.ports import IPaymentCallbackGuard, IPaymentGateway
from storefront.domains.commerce.application.use_cases import (
    AddToCartUseCase,
    ApplyCouponUseCase,
    ChangeCampaignStatusUseCase,
    CheckCampaignEligibilityUseCase,
    ClearCartUseCase,
    CreateCampaignUseCase,
    CreateCouponUseCase,
    CreateOrderUseCase,
    DeactivateCouponUseCase,
    GetCartPreviewUseCase,
    GetOrderUseCase,
    InitiatePaymentUseCase,
    ListCustomerOrdersUseCase,
    RemoveCouponUseCase,
    RemoveFromCartUseCase,
    RunMaintenanceSweepUseCase,
    UpdateCartItemUseCase,
    UpdateOrderStatusUseCase,
    VerifyPaymentUseCase,
)
from storefront.domains.commerce.domain.services import (
    CohortService,
    DiscountStackingResolver,
    PricingService,
)
from storefront.domains.commerce.domain.value_objects import ShippingMethod
from storefront.domains.commerce.infrastructure.repositories import (
    SQLAlchemyCampaignRepository,
    SQLAlchemyCartRepository,
    SQLAlchemyCatalogService,
    SQLAlchemyCouponRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyPaymentRepository,
    SQLAlchemyStockLedger,
)
from storefront.domains.commerce.infrastructure.services import RedisPaymentCallbackGuard
from storefront.integrations.redis import get_async_redis_client

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Dependency Injection Container.

    Stateless services and the gateway client are singletons; repositories
    and use cases are created per request around the request's session.
    """

    def __init__(self, settings: Settings | None = None, gateway: IPaymentGateway | None = None):
        self.settings = settings or get_settings()

        # Singletons
        self._pricing_service = PricingService()
        self._cohort_service = CohortService(
            vip_spend_threshold=self.settings.VIP_SPEND_THRESHOLD,
            inactive_after_days=self.settings.INACTIVE_AFTER_DAYS,
        )
        self._resolver = DiscountStackingResolver(self._pricing_service, self._cohort_service)
        self._event_publisher = DomainEventPublisher()
        self._gateway = gateway

        logger.info("DependencyContainer initialized")

    # ============================================================
    # SINGLETONS (Shared Resources)
    # ============================================================

    def get_event_publisher(self) -> DomainEventPublisher:
        return self._event_publisher

    def get_payment_gateway(self) -> IPaymentGateway:
        if self._gateway is None:
            logger.info(f"Creating payment gateway client: {self.settings.payment_gateway_url}")
            self._gateway = PaymentGatewayClient()
        return self._gateway

    async def get_payment_callback_guard(self) -> IPaymentCallbackGuard | None:
        """
        Redis callback guard, or None when disabled or Redis is unreachable.

        Without the guard duplicate callbacks still cannot complete a
        payment twice; they only reach the gateway again.
        """
        if not self.settings.PAYMENT_CALLBACK_LOCK_ENABLED:
            return None
        try:
            redis_client = await get_async_redis_client()
        except Exception as e:
            logger.warning(f"Payment callback guard unavailable, continuing without it: {e}")
            return None
        return RedisPaymentCallbackGuard(redis_client)

    def get_shipping_costs(self) -> dict[ShippingMethod, Decimal]:
        return {
            ShippingMethod.NORMAL: self.settings.SHIPPING_COST_NORMAL,
            ShippingMethod.EXPRESS: self.settings.SHIPPING_COST_EXPRESS,
            ShippingMethod.SCHEDULED: self.settings.SHIPPING_COST_SCHEDULED,
        }

    @property
    def cart_ttl(self) -> timedelta:
        return timedelta(days=self.settings.CART_TTL_DAYS)

    # ============================================================
    # REPOSITORIES
    # ============================================================

    def create_stock_ledger(self, db: AsyncSession) -> SQLAlchemyStockLedger:
        return SQLAlchemyStockLedger(session=db)

    def create_catalog_service(self, db: AsyncSession) -> SQLAlchemyCatalogService:
        return SQLAlchemyCatalogService(session=db)

    def create_cart_repository(self, db: AsyncSession) -> SQLAlchemyCartRepository:
        return SQLAlchemyCartRepository(session=db)

    def create_coupon_repository(self, db: AsyncSession) -> SQLAlchemyCouponRepository:
        return SQLAlchemyCouponRepository(session=db)

    def create_campaign_repository(self, db: AsyncSession) -> SQLAlchemyCampaignRepository:
        return SQLAlchemyCampaignRepository(session=db)

    def create_order_repository(self, db: AsyncSession) -> SQLAlchemyOrderRepository:
        return SQLAlchemyOrderRepository(session=db)

    def create_payment_repository(self, db: AsyncSession) -> SQLAlchemyPaymentRepository:
        return SQLAlchemyPaymentRepository(session=db)

    # ============================================================
    # CART USE CASES
    # ============================================================

    def create_get_cart_preview_use_case(self, db: AsyncSession) -> GetCartPreviewUseCase:
        return GetCartPreviewUseCase(
            cart_repository=self.create_cart_repository(db),
            catalog_service=self.create_catalog_service(db),
            pricing_service=self._pricing_service,
        )

    def _cart_use_case_kwargs(self, db: AsyncSession) -> dict:
        return {
            "cart_repository": self.create_cart_repository(db),
            "catalog_service": self.create_catalog_service(db),
            "pricing_service": self._pricing_service,
            "cart_ttl": self.cart_ttl,
        }

    def create_add_to_cart_use_case(self, db: AsyncSession) -> AddToCartUseCase:
        return AddToCartUseCase(**self._cart_use_case_kwargs(db))

    def create_update_cart_item_use_case(self, db: AsyncSession) -> UpdateCartItemUseCase:
        return UpdateCartItemUseCase(**self._cart_use_case_kwargs(db))

    def create_remove_from_cart_use_case(self, db: AsyncSession) -> RemoveFromCartUseCase:
        return RemoveFromCartUseCase(**self._cart_use_case_kwargs(db))

    def create_clear_cart_use_case(self, db: AsyncSession) -> ClearCartUseCase:
        return ClearCartUseCase(**self._cart_use_case_kwargs(db))

    def create_apply_coupon_use_case(self, db: AsyncSession) -> ApplyCouponUseCase:
        return ApplyCouponUseCase(
            cart_repository=self.create_cart_repository(db),
            coupon_repository=self.create_coupon_repository(db),
            catalog_service=self.create_catalog_service(db),
            resolver=self._resolver,
            pricing_service=self._pricing_service,
        )

    def create_remove_coupon_use_case(self, db: AsyncSession) -> RemoveCouponUseCase:
        return RemoveCouponUseCase(
            cart_repository=self.create_cart_repository(db),
            catalog_service=self.create_catalog_service(db),
            pricing_service=self._pricing_service,
        )

    # ============================================================
    # ORDER USE CASES
    # ============================================================

    def create_create_order_use_case(self, db: AsyncSession) -> CreateOrderUseCase:
        return CreateOrderUseCase(
            cart_repository=self.create_cart_repository(db),
            catalog_service=self.create_catalog_service(db),
            stock_ledger=self.create_stock_ledger(db),
            coupon_repository=self.create_coupon_repository(db),
            campaign_repository=self.create_campaign_repository(db),
            order_repository=self.create_order_repository(db),
            event_publisher=self._event_publisher,
            resolver=self._resolver,
            shipping_costs=self.get_shipping_costs(),
            order_number_prefix=self.settings.ORDER_NUMBER_PREFIX,
            return_window_days=self.settings.RETURN_WINDOW_DAYS,
        )

    def create_get_order_use_case(self, db: AsyncSession) -> GetOrderUseCase:
        return GetOrderUseCase(order_repository=self.create_order_repository(db))

    def create_list_customer_orders_use_case(self, db: AsyncSession) -> ListCustomerOrdersUseCase:
        return ListCustomerOrdersUseCase(order_repository=self.create_order_repository(db))

    def create_update_order_status_use_case(self, db: AsyncSession) -> UpdateOrderStatusUseCase:
        return UpdateOrderStatusUseCase(
            order_repository=self.create_order_repository(db),
            stock_ledger=self.create_stock_ledger(db),
            payment_repository=self.create_payment_repository(db),
            event_publisher=self._event_publisher,
            return_window_days=self.settings.RETURN_WINDOW_DAYS,
        )

    # ============================================================
    # PAYMENT USE CASES
    # ============================================================

    def create_initiate_payment_use_case(self, db: AsyncSession) -> InitiatePaymentUseCase:
        return InitiatePaymentUseCase(
            order_repository=self.create_order_repository(db),
            payment_repository=self.create_payment_repository(db),
            gateway=self.get_payment_gateway(),
            callback_url=self.settings.PAYMENT_CALLBACK_URL,
            description_template=self.settings.PAYMENT_DESCRIPTION,
        )

    def create_verify_payment_use_case(
        self, db: AsyncSession, callback_guard: IPaymentCallbackGuard | None = None
    ) -> VerifyPaymentUseCase:
        return VerifyPaymentUseCase(
            payment_repository=self.create_payment_repository(db),
            order_repository=self.create_order_repository(db),
            cart_repository=self.create_cart_repository(db),
            gateway=self.get_payment_gateway(),
            status_use_case=self.create_update_order_status_use_case(db),
            event_publisher=self._event_publisher,
            callback_guard=callback_guard,
        )

    # ============================================================
    # PROMOTION ADMIN USE CASES
    # ============================================================

    def create_create_coupon_use_case(self, db: AsyncSession) -> CreateCouponUseCase:
        return CreateCouponUseCase(coupon_repository=self.create_coupon_repository(db))

    def create_deactivate_coupon_use_case(self, db: AsyncSession) -> DeactivateCouponUseCase:
        return DeactivateCouponUseCase(coupon_repository=self.create_coupon_repository(db))

    def create_create_campaign_use_case(self, db: AsyncSession) -> CreateCampaignUseCase:
        return CreateCampaignUseCase(campaign_repository=self.create_campaign_repository(db))

    def create_change_campaign_status_use_case(self, db: AsyncSession) -> ChangeCampaignStatusUseCase:
        return ChangeCampaignStatusUseCase(campaign_repository=self.create_campaign_repository(db))

    def create_check_campaign_eligibility_use_case(self, db: AsyncSession) -> CheckCampaignEligibilityUseCase:
        return CheckCampaignEligibilityUseCase(
            campaign_repository=self.create_campaign_repository(db),
            cart_repository=self.create_cart_repository(db),
            catalog_service=self.create_catalog_service(db),
            order_repository=self.create_order_repository(db),
            cohort_service=self._cohort_service,
            pricing_service=self._pricing_service,
        )

    # ============================================================
    # HOUSEKEEPING
    # ============================================================

    def create_maintenance_sweep_use_case(self, db: AsyncSession) -> RunMaintenanceSweepUseCase:
        return RunMaintenanceSweepUseCase(
            cart_repository=self.create_cart_repository(db),
            campaign_repository=self.create_campaign_repository(db),
        )

    async def close(self) -> None:
        """Release singletons holding network resources."""
        if isinstance(self._gateway, PaymentGatewayClient):
            await self._gateway.aclose()


# Global container instance
_container: DependencyContainer | None = None


def get_container() -> DependencyContainer:
    """Get or create the global container instance."""
    global _container
    if _container is None:
        _container = DependencyContainer()
    return _container


__all__ = ["DependencyContainer", "get_container"]
