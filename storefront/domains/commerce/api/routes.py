"""
Commerce API Routes

FastAPI routers for cart, checkout, orders, payments and the admin
surface. Business errors propagate as DomainException and are rendered
by the application's exception handlers.
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from storefront.domains.commerce.api.dependencies import (
    get_actor_id,
    get_add_to_cart_use_case,
    get_apply_coupon_use_case,
    get_campaign_eligibility_use_case,
    get_cart_preview_use_case,
    get_change_campaign_status_use_case,
    get_clear_cart_use_case,
    get_create_campaign_use_case,
    get_create_coupon_use_case,
    get_create_order_use_case,
    get_current_customer,
    get_current_user_id,
    get_deactivate_coupon_use_case,
    get_initiate_payment_use_case,
    get_list_orders_use_case,
    get_order_use_case,
    get_remove_coupon_use_case,
    get_remove_from_cart_use_case,
    get_update_cart_item_use_case,
    get_update_order_status_use_case,
    get_verify_payment_use_case,
)
from storefront.domains.commerce.api.schemas import (
    AddCartItemRequest,
    AdminOrderStatusRequest,
    ApplyCouponRequest,
    CampaignCreateRequest,
    CampaignEligibilityResponse,
    CampaignResponse,
    CampaignStatusRequest,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    CouponCreateRequest,
    CouponResponse,
    InitiatePaymentResponseSchema,
    OrderListResponse,
    OrderReasonRequest,
    OrderResponse,
    UpdateCartItemRequest,
    VerifyPaymentResponseSchema,
)
from storefront.domains.commerce.application import use_cases as uc
from storefront.domains.commerce.domain.value_objects import CustomerProfile

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Commerce"])
admin_router = APIRouter(prefix="/admin", tags=["Commerce Admin"])


# ============================================================
# CART
# ============================================================


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    user_id: str = Depends(get_current_user_id),
    use_case: uc.GetCartPreviewUseCase = Depends(get_cart_preview_use_case),
):
    """Cart preview with prices refreshed from the catalog."""
    view = await use_case.execute(user_id)
    return CartResponse.from_view(view)


@router.post("/cart/items", response_model=CartResponse)
async def add_cart_item(
    request: AddCartItemRequest,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.AddToCartUseCase = Depends(get_add_to_cart_use_case),
):
    view = await use_case.execute(
        uc.AddToCartRequest(user_id=user_id, product_id=request.product_id, quantity=request.quantity)
    )
    return CartResponse.from_view(view)


@router.patch("/cart/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str,
    request: UpdateCartItemRequest,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.UpdateCartItemUseCase = Depends(get_update_cart_item_use_case),
):
    view = await use_case.execute(
        uc.UpdateCartItemRequest(user_id=user_id, product_id=product_id, quantity=request.quantity)
    )
    return CartResponse.from_view(view)


@router.delete("/cart/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(
    product_id: str,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.RemoveFromCartUseCase = Depends(get_remove_from_cart_use_case),
):
    view = await use_case.execute(user_id, product_id)
    return CartResponse.from_view(view)


@router.delete("/cart", response_model=CartResponse)
async def clear_cart(
    user_id: str = Depends(get_current_user_id),
    use_case: uc.ClearCartUseCase = Depends(get_clear_cart_use_case),
):
    view = await use_case.execute(user_id)
    return CartResponse.from_view(view)


@router.post("/cart/coupon", response_model=CartResponse)
async def apply_coupon(
    request: ApplyCouponRequest,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.ApplyCouponUseCase = Depends(get_apply_coupon_use_case),
):
    view = await use_case.execute(uc.ApplyCouponRequest(user_id=user_id, code=request.code))
    return CartResponse.from_view(view)


@router.delete("/cart/coupon", response_model=CartResponse)
async def remove_coupon(
    user_id: str = Depends(get_current_user_id),
    use_case: uc.RemoveCouponUseCase = Depends(get_remove_coupon_use_case),
):
    view = await use_case.execute(user_id)
    return CartResponse.from_view(view)


# ============================================================
# ORDERS
# ============================================================


@router.post("/orders", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    request: CheckoutRequest,
    customer: CustomerProfile = Depends(get_current_customer),
    use_case: uc.CreateOrderUseCase = Depends(get_create_order_use_case),
):
    """Turn the caller's cart into a pending order with stock reserved."""
    result = await use_case.execute(
        uc.CreateOrderRequest(
            customer=customer,
            shipping_address=request.shipping_address.to_address(),
            shipping_method=request.shipping_method,
            coupon_code=request.coupon_code,
            customer_notes=request.customer_notes,
        )
    )
    return CheckoutResponse(order=OrderResponse.from_entity(result.order), cohort=result.resolution.cohort)


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    use_case: uc.ListCustomerOrdersUseCase = Depends(get_list_orders_use_case),
):
    orders = await use_case.execute(user_id, limit=limit, offset=offset)
    return OrderListResponse(
        orders=[OrderResponse.from_entity(order) for order in orders],
        limit=limit,
        offset=offset,
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.GetOrderUseCase = Depends(get_order_use_case),
):
    order = await use_case.execute(order_id, user_id=user_id)
    return OrderResponse.from_entity(order)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    request: OrderReasonRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.UpdateOrderStatusUseCase = Depends(get_update_order_status_use_case),
):
    """Cancel an order before it ships; reserved stock is released, sold stock restocked."""
    reason = request.reason if request else None
    order = await use_case.cancel(order_id, reason, actor=user_id, user_id=user_id)
    return OrderResponse.from_entity(order)


@router.post("/orders/{order_id}/return", response_model=OrderResponse)
async def return_order(
    order_id: str,
    request: OrderReasonRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.UpdateOrderStatusUseCase = Depends(get_update_order_status_use_case),
):
    """Return a delivered order within the return window."""
    reason = request.reason if request else None
    order = await use_case.return_order(order_id, reason, actor=user_id, user_id=user_id)
    return OrderResponse.from_entity(order)


# ============================================================
# PAYMENTS
# ============================================================


@router.post("/payments/orders/{order_id}", response_model=InitiatePaymentResponseSchema)
async def initiate_payment(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    use_case: uc.InitiatePaymentUseCase = Depends(get_initiate_payment_use_case),
):
    result = await use_case.execute(uc.InitiatePaymentRequest(order_id=order_id, user_id=user_id))
    return InitiatePaymentResponseSchema.from_result(result)


@router.get("/payments/verify", response_model=VerifyPaymentResponseSchema)
async def verify_payment(
    authority: str = Query(..., alias="Authority", min_length=1),
    gateway_status: str = Query(..., alias="Status"),
    use_case: uc.VerifyPaymentUseCase = Depends(get_verify_payment_use_case),
):
    """Gateway callback after the customer pays or cancels."""
    result = await use_case.execute(uc.VerifyPaymentRequest(authority=authority, status=gateway_status))
    return VerifyPaymentResponseSchema.from_result(result)


# ============================================================
# ADMIN
# ============================================================


@admin_router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def admin_update_order_status(
    order_id: str,
    request: AdminOrderStatusRequest,
    actor_id: str = Depends(get_actor_id),
    use_case: uc.UpdateOrderStatusUseCase = Depends(get_update_order_status_use_case),
):
    """Manual status override, still bound by the order state machine."""
    order = await use_case.execute(
        uc.UpdateOrderStatusRequest(
            order_id=order_id,
            status=request.status,
            note=request.note,
            actor=actor_id,
            tracking_code=request.tracking_code,
        )
    )
    return OrderResponse.from_entity(order)


@admin_router.post("/coupons", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    request: CouponCreateRequest,
    actor_id: str = Depends(get_actor_id),
    use_case: uc.CreateCouponUseCase = Depends(get_create_coupon_use_case),
):
    coupon = await use_case.execute(request.to_entity())
    logger.info(f"Coupon {coupon.code} created by {actor_id}")
    return CouponResponse.from_entity(coupon)


@admin_router.post("/coupons/{code}/deactivate", response_model=CouponResponse)
async def deactivate_coupon(
    code: str,
    actor_id: str = Depends(get_actor_id),
    use_case: uc.DeactivateCouponUseCase = Depends(get_deactivate_coupon_use_case),
):
    coupon = await use_case.execute(code)
    logger.info(f"Coupon {coupon.code} deactivated by {actor_id}")
    return CouponResponse.from_entity(coupon)


@admin_router.post("/campaigns", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CampaignCreateRequest,
    actor_id: str = Depends(get_actor_id),
    use_case: uc.CreateCampaignUseCase = Depends(get_create_campaign_use_case),
):
    campaign = await use_case.execute(request.to_entity())
    logger.info(f"Campaign {campaign.id} created by {actor_id}")
    return CampaignResponse.from_entity(campaign)


@admin_router.patch("/campaigns/{campaign_id}/status", response_model=CampaignResponse)
async def change_campaign_status(
    campaign_id: str,
    request: CampaignStatusRequest,
    actor_id: str = Depends(get_actor_id),
    use_case: uc.ChangeCampaignStatusUseCase = Depends(get_change_campaign_status_use_case),
):
    campaign = await use_case.execute(
        uc.ChangeCampaignStatusRequest(campaign_id=campaign_id, status=request.status, actor=actor_id)
    )
    return CampaignResponse.from_entity(campaign)


@admin_router.get("/campaigns/{campaign_id}/eligibility", response_model=CampaignEligibilityResponse)
async def check_campaign_eligibility(
    campaign_id: str,
    customer: CustomerProfile = Depends(get_current_customer),
    coupon_code: str | None = Query(default=None, max_length=50),
    actor_id: str = Depends(get_actor_id),
    use_case: uc.CheckCampaignEligibilityUseCase = Depends(get_campaign_eligibility_use_case),
):
    """Evaluate one campaign against the customer named in X-User-Id."""
    result = await use_case.execute(campaign_id, customer, coupon_code=coupon_code)
    return CampaignEligibilityResponse.from_result(result, customer.user_id)


__all__ = ["router", "admin_router"]
