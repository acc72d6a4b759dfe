"""
Commerce API Dependencies

FastAPI dependencies for the commerce domain. Identity is resolved
upstream; the caller's user id arrives in ``X-User-Id`` and the admin
actor in ``X-Actor-Id``.
"""

from datetime import datetime

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.container import DependencyContainer, get_container
from storefront.database import get_async_db
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
    UpdateCartItemUseCase,
    UpdateOrderStatusUseCase,
    VerifyPaymentUseCase,
)
from storefront.domains.commerce.domain.value_objects import CustomerProfile

# ============================================================
# IDENTITY
# ============================================================


def get_current_user_id(x_user_id: str = Header(..., min_length=1, max_length=64)) -> str:
    """Caller's user id as forwarded by the identity layer."""
    return x_user_id


def get_current_customer(
    user_id: str = Depends(get_current_user_id),
    x_user_registered_at: datetime | None = Header(default=None),
) -> CustomerProfile:
    """Customer profile; order history is filled in by the use cases."""
    return CustomerProfile(user_id=user_id, registered_at=x_user_registered_at)


def get_actor_id(x_actor_id: str = Header(..., min_length=1, max_length=64)) -> str:
    """Admin actor performing an override."""
    return x_actor_id


# ============================================================
# CART
# ============================================================


def get_cart_preview_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> GetCartPreviewUseCase:
    return container.create_get_cart_preview_use_case(db)


def get_add_to_cart_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> AddToCartUseCase:
    return container.create_add_to_cart_use_case(db)


def get_update_cart_item_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> UpdateCartItemUseCase:
    return container.create_update_cart_item_use_case(db)


def get_remove_from_cart_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> RemoveFromCartUseCase:
    return container.create_remove_from_cart_use_case(db)


def get_clear_cart_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> ClearCartUseCase:
    return container.create_clear_cart_use_case(db)


def get_apply_coupon_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> ApplyCouponUseCase:
    return container.create_apply_coupon_use_case(db)


def get_remove_coupon_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> RemoveCouponUseCase:
    return container.create_remove_coupon_use_case(db)


# ============================================================
# ORDERS
# ============================================================


def get_create_order_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> CreateOrderUseCase:
    return container.create_create_order_use_case(db)


def get_order_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> GetOrderUseCase:
    return container.create_get_order_use_case(db)


def get_list_orders_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> ListCustomerOrdersUseCase:
    return container.create_list_customer_orders_use_case(db)


def get_update_order_status_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> UpdateOrderStatusUseCase:
    return container.create_update_order_status_use_case(db)


# ============================================================
# PAYMENTS
# ============================================================


def get_initiate_payment_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> InitiatePaymentUseCase:
    return container.create_initiate_payment_use_case(db)


async def get_verify_payment_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> VerifyPaymentUseCase:
    callback_guard = await container.get_payment_callback_guard()
    return container.create_verify_payment_use_case(db, callback_guard=callback_guard)


# ============================================================
# PROMOTIONS ADMIN
# ============================================================


def get_create_coupon_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> CreateCouponUseCase:
    return container.create_create_coupon_use_case(db)


def get_deactivate_coupon_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> DeactivateCouponUseCase:
    return container.create_deactivate_coupon_use_case(db)


def get_create_campaign_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> CreateCampaignUseCase:
    return container.create_create_campaign_use_case(db)


def get_change_campaign_status_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> ChangeCampaignStatusUseCase:
    return container.create_change_campaign_status_use_case(db)


def get_campaign_eligibility_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> CheckCampaignEligibilityUseCase:
    return container.create_check_campaign_eligibility_use_case(db)
