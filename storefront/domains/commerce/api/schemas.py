"""
Commerce API Schemas

Pydantic schemas for API request/response validation.
Money fields are Decimals and serialize as decimal strings.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from storefront.core.domain import Address, ValidationException
from storefront.domains.commerce.application.use_cases import (
    CampaignEligibilityResult,
    CartView,
    InitiatePaymentResponse,
    VerifyPaymentResponse,
)
from storefront.domains.commerce.domain.entities import (
    Campaign,
    CampaignRules,
    Coupon,
    Order,
    TargetAudience,
)
from storefront.domains.commerce.domain.value_objects import (
    CampaignStatus,
    CampaignType,
    CustomerCohort,
    DiscountTier,
    DiscountType,
    OrderStatus,
    ProductScope,
    ShippingMethod,
)

# ============================================================
# CART
# ============================================================


class CartItemResponse(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    unit_discount_percent: Decimal
    final_unit_price: Decimal
    line_total: Decimal
    category_id: str | None = None
    brand: str | None = None


class CouponSnapshotResponse(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal


class PricingResponse(BaseModel):
    """Pricing breakdown of a cart."""

    subtotal: Decimal
    product_discount_total: Decimal
    coupon_discount: Decimal
    total_discount: Decimal
    total: Decimal


class CartResponse(BaseModel):
    """Cart with prices refreshed from the catalog."""

    user_id: str
    items: list[CartItemResponse]
    coupon: CouponSnapshotResponse | None = None
    pricing: PricingResponse
    total_items: int
    expires_at: datetime | None = None
    dropped_product_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_view(cls, view: CartView) -> "CartResponse":
        cart = view.cart
        items = []
        for item in cart.items:
            line = item.to_pricing_line()
            items.append(
                CartItemResponse(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    unit_discount_percent=item.unit_discount_percent,
                    final_unit_price=line.final_unit_price,
                    line_total=line.net_total,
                    category_id=item.category_id,
                    brand=item.brand,
                )
            )
        coupon = None
        if cart.coupon is not None:
            coupon = CouponSnapshotResponse(
                code=cart.coupon.code,
                discount_type=cart.coupon.discount_type,
                discount_value=cart.coupon.discount_value,
            )
        pricing = view.pricing
        return cls(
            user_id=cart.user_id,
            items=items,
            coupon=coupon,
            pricing=PricingResponse(
                subtotal=pricing.subtotal,
                product_discount_total=pricing.product_discount_total,
                coupon_discount=pricing.coupon_discount,
                total_discount=pricing.total_discount,
                total=pricing.total,
            ),
            total_items=cart.total_items,
            expires_at=cart.expires_at if not cart.is_empty else None,
            dropped_product_ids=view.dropped_product_ids,
        )


class AddCartItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(default=1, ge=1)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., ge=1)


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


# ============================================================
# ORDERS
# ============================================================


class ShippingAddressSchema(BaseModel):
    receiver_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=8, max_length=20)
    province: str = Field(default="", max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=500)
    postal_code: str = Field(default="", max_length=20)

    def to_address(self) -> Address:
        try:
            return Address(**self.model_dump())
        except ValueError as e:
            raise ValidationException(str(e), field="shipping_address") from e


class CheckoutRequest(BaseModel):
    """Checkout the caller's cart."""

    shipping_address: ShippingAddressSchema
    shipping_method: ShippingMethod = ShippingMethod.NORMAL
    coupon_code: str | None = Field(default=None, max_length=50)
    customer_notes: str | None = Field(default=None, max_length=1000)


class OrderLineResponse(BaseModel):
    product_id: str
    name: str
    price: Decimal
    discount_percent: Decimal
    final_price: Decimal
    quantity: int
    line_total: Decimal
    stock_state: str


class StatusHistoryResponse(BaseModel):
    status: OrderStatus
    timestamp: datetime
    note: str | None = None
    actor: str | None = None


class OrderPaymentResponse(BaseModel):
    method: str
    status: str
    transaction_id: str | None = None
    gateway: str | None = None
    amount: Decimal
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    refund_amount: Decimal | None = None
    refund_reason: str | None = None


class AppliedDiscountResponse(BaseModel):
    source: str
    reference_id: str
    label: str
    amount: Decimal


class OrderResponse(BaseModel):
    """Order response schema."""

    id: str
    order_number: str
    user_id: str
    status: OrderStatus
    lines: list[OrderLineResponse]
    status_history: list[StatusHistoryResponse]
    payment: OrderPaymentResponse
    shipping_address: ShippingAddressSchema | None = None
    shipping_method: ShippingMethod
    shipping_cost: Decimal
    tracking_code: str | None = None
    customer_notes: str | None = None
    subtotal: Decimal
    product_discount_total: Decimal
    coupon_code: str | None = None
    coupon_discount: Decimal
    campaign_discount: Decimal
    total_discount: Decimal
    total_amount: Decimal
    applied_discounts: list[AppliedDiscountResponse]
    created_at: datetime
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    returned_at: datetime | None = None
    return_reason: str | None = None

    @classmethod
    def from_entity(cls, order: Order) -> "OrderResponse":
        payment = order.payment
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status,
            lines=[
                OrderLineResponse(
                    product_id=line.product_id,
                    name=line.name,
                    price=line.price,
                    discount_percent=line.discount_percent,
                    final_price=line.final_price,
                    quantity=line.quantity,
                    line_total=line.line_subtotal - line.line_discount,
                    stock_state=line.stock_state.value,
                )
                for line in order.lines
            ],
            status_history=[
                StatusHistoryResponse(status=e.status, timestamp=e.timestamp, note=e.note, actor=e.actor)
                for e in order.status_history
            ],
            payment=OrderPaymentResponse(
                method=payment.method,
                status=payment.status.value,
                transaction_id=payment.transaction_id,
                gateway=payment.gateway,
                amount=payment.amount,
                paid_at=payment.paid_at,
                refunded_at=payment.refunded_at,
                refund_amount=payment.refund_amount,
                refund_reason=payment.refund_reason,
            ),
            shipping_address=(
                ShippingAddressSchema(**order.shipping_address.to_dict()) if order.shipping_address else None
            ),
            shipping_method=order.shipping_method,
            shipping_cost=order.shipping_cost,
            tracking_code=order.tracking_code,
            customer_notes=order.customer_notes,
            subtotal=order.subtotal,
            product_discount_total=order.product_discount_total,
            coupon_code=order.coupon_code,
            coupon_discount=order.coupon_discount,
            campaign_discount=order.campaign_discount,
            total_discount=order.total_discount,
            total_amount=order.total_amount,
            applied_discounts=[
                AppliedDiscountResponse(
                    source=d.source, reference_id=d.reference_id, label=d.label, amount=d.amount
                )
                for d in order.applied_discounts
            ],
            created_at=order.created_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            cancel_reason=order.cancel_reason,
            returned_at=order.returned_at,
            return_reason=order.return_reason,
        )


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    limit: int
    offset: int


class CheckoutResponse(BaseModel):
    order: OrderResponse
    cohort: CustomerCohort


class OrderReasonRequest(BaseModel):
    """Body of cancel and return requests."""

    reason: str | None = Field(default=None, max_length=500)


class AdminOrderStatusRequest(BaseModel):
    status: OrderStatus
    note: str | None = Field(default=None, max_length=500)
    tracking_code: str | None = Field(default=None, max_length=100)


# ============================================================
# PAYMENTS
# ============================================================


class InitiatePaymentResponseSchema(BaseModel):
    payment_id: str
    reference: str
    authority: str
    redirect_url: str
    amount: Decimal

    @classmethod
    def from_result(cls, result: InitiatePaymentResponse) -> "InitiatePaymentResponseSchema":
        return cls(
            payment_id=result.payment_id,
            reference=result.reference,
            authority=result.authority,
            redirect_url=result.redirect_url,
            amount=result.amount,
        )


class VerifyPaymentResponseSchema(BaseModel):
    success: bool
    status: str
    payment_id: str | None = None
    order_id: str | None = None
    order_number: str | None = None
    transaction_id: str | None = None

    @classmethod
    def from_result(cls, result: VerifyPaymentResponse) -> "VerifyPaymentResponseSchema":
        return cls(
            success=result.success,
            status=result.status,
            payment_id=result.payment_id,
            order_id=result.order_id,
            order_number=result.order_number,
            transaction_id=result.transaction_id,
        )


# ============================================================
# PROMOTIONS ADMIN
# ============================================================


class ProductScopeSchema(BaseModel):
    product_ids: list[str] = Field(default_factory=list)
    category_ids: list[str] = Field(default_factory=list)
    brands: list[str] = Field(default_factory=list)
    excluded_product_ids: list[str] = Field(default_factory=list)

    def to_value(self) -> ProductScope:
        return ProductScope.from_dict(self.model_dump())

    @classmethod
    def from_value(cls, scope: ProductScope) -> "ProductScopeSchema":
        return cls(**scope.to_dict())


class CouponCreateRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=20)
    description: str | None = Field(default=None, max_length=500)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(..., ge=0)
    minimum_amount: Decimal = Field(default=Decimal("0"), ge=0)
    maximum_discount: Decimal | None = Field(default=None, ge=0)
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int = Field(default=1, ge=1)
    scope: ProductScopeSchema = Field(default_factory=ProductScopeSchema)
    user_ids: list[str] = Field(default_factory=list)
    free_shipping: bool = False

    def to_entity(self) -> Coupon:
        return Coupon(
            code=self.code,
            description=self.description,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
            minimum_amount=self.minimum_amount,
            maximum_discount=self.maximum_discount,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
            usage_limit=self.usage_limit,
            per_user_limit=self.per_user_limit,
            scope=self.scope.to_value(),
            user_ids=frozenset(self.user_ids),
            free_shipping=self.free_shipping,
        )


class CouponResponse(BaseModel):
    id: str
    code: str
    description: str | None = None
    discount_type: DiscountType
    discount_value: Decimal
    minimum_amount: Decimal
    maximum_discount: Decimal | None = None
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = None
    used_count: int
    per_user_limit: int
    scope: ProductScopeSchema
    user_ids: list[str]
    free_shipping: bool
    is_active: bool

    @classmethod
    def from_entity(cls, coupon: Coupon) -> "CouponResponse":
        return cls(
            id=str(coupon.id),
            code=coupon.code,
            description=coupon.description,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            minimum_amount=coupon.minimum_amount,
            maximum_discount=coupon.maximum_discount,
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
            usage_limit=coupon.usage_limit,
            used_count=coupon.used_count,
            per_user_limit=coupon.per_user_limit,
            scope=ProductScopeSchema.from_value(coupon.scope),
            user_ids=sorted(coupon.user_ids),
            free_shipping=coupon.free_shipping,
            is_active=coupon.is_active,
        )


class DiscountTierSchema(BaseModel):
    min_amount: Decimal = Field(..., ge=0)
    discount_value: Decimal = Field(..., ge=0, le=100)


class CampaignRulesSchema(BaseModel):
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(default=Decimal("0"), ge=0)
    min_purchase_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    tiers: list[DiscountTierSchema] = Field(default_factory=list)
    buy_quantity: int = Field(default=0, ge=0)
    get_quantity: int = Field(default=0, ge=0)
    bundle_product_ids: list[str] = Field(default_factory=list)
    limit_per_user: int = Field(default=1, ge=1)
    total_usage_limit: int | None = Field(default=None, ge=1)

    def to_value(self) -> CampaignRules:
        return CampaignRules(
            discount_type=self.discount_type,
            discount_value=self.discount_value,
            min_purchase_amount=self.min_purchase_amount,
            max_discount_amount=self.max_discount_amount,
            tiers=tuple(DiscountTier(t.min_amount, t.discount_value) for t in self.tiers),
            buy_quantity=self.buy_quantity,
            get_quantity=self.get_quantity,
            bundle_product_ids=tuple(self.bundle_product_ids),
            limit_per_user=self.limit_per_user,
            total_usage_limit=self.total_usage_limit,
        )

    @classmethod
    def from_value(cls, rules: CampaignRules) -> "CampaignRulesSchema":
        return cls(
            discount_type=rules.discount_type,
            discount_value=rules.discount_value,
            min_purchase_amount=rules.min_purchase_amount,
            max_discount_amount=rules.max_discount_amount,
            tiers=[DiscountTierSchema(min_amount=t.min_amount, discount_value=t.discount_value) for t in rules.tiers],
            buy_quantity=rules.buy_quantity,
            get_quantity=rules.get_quantity,
            bundle_product_ids=list(rules.bundle_product_ids),
            limit_per_user=rules.limit_per_user,
            total_usage_limit=rules.total_usage_limit,
        )


class TargetAudienceSchema(BaseModel):
    all_users: bool = True
    cohorts: list[CustomerCohort] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    min_order_count: int = Field(default=0, ge=0)
    min_total_spent: Decimal = Field(default=Decimal("0"), ge=0)
    registered_from: datetime | None = None
    registered_to: datetime | None = None

    def to_value(self) -> TargetAudience:
        return TargetAudience(
            all_users=self.all_users,
            cohorts=frozenset(self.cohorts),
            user_ids=frozenset(self.user_ids),
            min_order_count=self.min_order_count,
            min_total_spent=self.min_total_spent,
            registered_from=self.registered_from,
            registered_to=self.registered_to,
        )

    @classmethod
    def from_value(cls, audience: TargetAudience) -> "TargetAudienceSchema":
        return cls(
            all_users=audience.all_users,
            cohorts=sorted(audience.cohorts, key=lambda c: c.value),
            user_ids=sorted(audience.user_ids),
            min_order_count=audience.min_order_count,
            min_total_spent=audience.min_total_spent,
            registered_from=audience.registered_from,
            registered_to=audience.registered_to,
        )


class CampaignCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    campaign_type: CampaignType = CampaignType.SPECIAL_OFFER
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: datetime
    end_date: datetime
    rules: CampaignRulesSchema = Field(default_factory=CampaignRulesSchema)
    audience: TargetAudienceSchema = Field(default_factory=TargetAudienceSchema)
    scope: ProductScopeSchema = Field(default_factory=ProductScopeSchema)
    priority: int = 0
    is_stackable: bool = False
    requires_coupon: bool = False
    coupon_code: str | None = Field(default=None, max_length=20)

    def to_entity(self) -> Campaign:
        try:
            rules = self.rules.to_value()
        except ValueError as e:
            raise ValidationException(str(e), field="rules") from e
        return Campaign(
            name=self.name,
            description=self.description,
            campaign_type=self.campaign_type,
            status=self.status,
            start_date=self.start_date,
            end_date=self.end_date,
            rules=rules,
            audience=self.audience.to_value(),
            scope=self.scope.to_value(),
            priority=self.priority,
            is_stackable=self.is_stackable,
            requires_coupon=self.requires_coupon,
            coupon_code=self.coupon_code,
        )


class CampaignResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    campaign_type: CampaignType
    status: CampaignStatus
    is_active: bool
    start_date: datetime
    end_date: datetime
    remaining_time_seconds: int | None = None
    rules: CampaignRulesSchema
    audience: TargetAudienceSchema
    scope: ProductScopeSchema
    priority: int
    is_stackable: bool
    requires_coupon: bool
    coupon_code: str | None = None

    @classmethod
    def from_entity(cls, campaign: Campaign) -> "CampaignResponse":
        remaining = campaign.remaining_time()
        return cls(
            id=str(campaign.id),
            name=campaign.name,
            description=campaign.description,
            campaign_type=campaign.campaign_type,
            status=campaign.status,
            is_active=campaign.is_active(),
            start_date=campaign.start_date,
            end_date=campaign.end_date,
            remaining_time_seconds=int(remaining.total_seconds()) if remaining else None,
            rules=CampaignRulesSchema.from_value(campaign.rules),
            audience=TargetAudienceSchema.from_value(campaign.audience),
            scope=ProductScopeSchema.from_value(campaign.scope),
            priority=campaign.priority,
            is_stackable=campaign.is_stackable,
            requires_coupon=campaign.requires_coupon,
            coupon_code=campaign.coupon_code,
        )


class CampaignStatusRequest(BaseModel):
    status: CampaignStatus


class CampaignEligibilityResponse(BaseModel):
    campaign_id: str
    user_id: str
    eligible: bool = True
    cohort: CustomerCohort
    discount: Decimal
    remaining_time_seconds: int | None = None

    @classmethod
    def from_result(cls, result: CampaignEligibilityResult, user_id: str) -> "CampaignEligibilityResponse":
        return cls(
            campaign_id=result.campaign_id,
            user_id=user_id,
            cohort=result.cohort,
            discount=result.discount,
            remaining_time_seconds=result.remaining_time_seconds,
        )


__all__ = [
    "CartItemResponse",
    "CouponSnapshotResponse",
    "PricingResponse",
    "CartResponse",
    "AddCartItemRequest",
    "UpdateCartItemRequest",
    "ApplyCouponRequest",
    "ShippingAddressSchema",
    "CheckoutRequest",
    "CheckoutResponse",
    "OrderResponse",
    "OrderListResponse",
    "OrderReasonRequest",
    "AdminOrderStatusRequest",
    "InitiatePaymentResponseSchema",
    "VerifyPaymentResponseSchema",
    "ProductScopeSchema",
    "CouponCreateRequest",
    "CouponResponse",
    "CampaignRulesSchema",
    "TargetAudienceSchema",
    "CampaignCreateRequest",
    "CampaignResponse",
    "CampaignStatusRequest",
    "CampaignEligibilityResponse",
]
