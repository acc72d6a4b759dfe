"""
Commerce Use Cases

Business use cases for the commerce domain.
Each use case represents a single business operation.
"""

from .apply_coupon import ApplyCouponRequest, ApplyCouponUseCase, RemoveCouponUseCase
from .create_order import CreateOrderRequest, CreateOrderResponse, CreateOrderUseCase
from .get_cart_preview import CartView, GetCartPreviewUseCase, price_cart
from .get_orders import GetOrderUseCase, ListCustomerOrdersUseCase
from .initiate_payment import InitiatePaymentRequest, InitiatePaymentResponse, InitiatePaymentUseCase
from .maintenance_sweep import RunMaintenanceSweepUseCase, SweepResult
from .manage_promotions import (
    CampaignEligibilityResult,
    ChangeCampaignStatusRequest,
    ChangeCampaignStatusUseCase,
    CheckCampaignEligibilityUseCase,
    CreateCampaignUseCase,
    CreateCouponUseCase,
    DeactivateCouponUseCase,
)
from .modify_cart import (
    AddToCartRequest,
    AddToCartUseCase,
    ClearCartUseCase,
    RemoveFromCartUseCase,
    UpdateCartItemRequest,
    UpdateCartItemUseCase,
)
from .update_order_status import UpdateOrderStatusRequest, UpdateOrderStatusUseCase
from .verify_payment import VerifyPaymentRequest, VerifyPaymentResponse, VerifyPaymentUseCase

__all__ = [
    # Cart
    "CartView",
    "price_cart",
    "GetCartPreviewUseCase",
    "AddToCartRequest",
    "AddToCartUseCase",
    "UpdateCartItemRequest",
    "UpdateCartItemUseCase",
    "RemoveFromCartUseCase",
    "ClearCartUseCase",
    "ApplyCouponRequest",
    "ApplyCouponUseCase",
    "RemoveCouponUseCase",
    # Orders
    "CreateOrderRequest",
    "CreateOrderResponse",
    "CreateOrderUseCase",
    "GetOrderUseCase",
    "ListCustomerOrdersUseCase",
    "UpdateOrderStatusRequest",
    "UpdateOrderStatusUseCase",
    # Payments
    "InitiatePaymentRequest",
    "InitiatePaymentResponse",
    "InitiatePaymentUseCase",
    "VerifyPaymentRequest",
    "VerifyPaymentResponse",
    "VerifyPaymentUseCase",
    # Promotions admin
    "CreateCouponUseCase",
    "DeactivateCouponUseCase",
    "CreateCampaignUseCase",
    "ChangeCampaignStatusRequest",
    "ChangeCampaignStatusUseCase",
    "CampaignEligibilityResult",
    "CheckCampaignEligibilityUseCase",
    # Housekeeping
    "RunMaintenanceSweepUseCase",
    "SweepResult",
]
