"""
Shared pytest fixtures for all tests.

This module provides the in-memory commerce adapters, catalog data,
promotion factories, a fake payment gateway and the use cases wired
on top of them.
"""

import os
from datetime import timedelta
from decimal import Decimal

import pytest

# Ensure test environment before settings are first read
os.environ["ENVIRONMENT"] = "test"
os.environ["TESTING"] = "true"
os.environ["PAYMENT_GATEWAY_MERCHANT_ID"] = "test-merchant"
os.environ["PAYMENT_CALLBACK_LOCK_ENABLED"] = "false"
os.environ["MAINTENANCE_SWEEP_ENABLED"] = "false"

from storefront.core.domain import (  # noqa: E402
    Address,
    DomainEventPublisher,
    generate_uuid_str,
    utc_now,
)
from storefront.domains.commerce.application.ports import (  # noqa: E402
    PaymentRequestResult,
    PaymentVerificationResult,
)
from storefront.domains.commerce.application.use_cases import (  # noqa: E402
    AddToCartRequest,
    AddToCartUseCase,
    CreateOrderRequest,
    CreateOrderUseCase,
    InitiatePaymentRequest,
    InitiatePaymentUseCase,
    UpdateOrderStatusUseCase,
    VerifyPaymentUseCase,
)
from storefront.domains.commerce.domain.entities import Campaign, CampaignRules, Coupon  # noqa: E402
from storefront.domains.commerce.domain.services import DiscountStackingResolver  # noqa: E402
from storefront.domains.commerce.domain.value_objects import (  # noqa: E402
    CampaignStatus,
    CustomerProfile,
    DiscountType,
    ProductSnapshot,
    ShippingMethod,
)
from storefront.domains.commerce.infrastructure.repositories import (  # noqa: E402
    InMemoryCampaignRepository,
    InMemoryCartRepository,
    InMemoryCatalogService,
    InMemoryCouponRepository,
    InMemoryOrderRepository,
    InMemoryPaymentRepository,
    InMemoryStockLedger,
)

# ============================================================================
# FAKE PAYMENT GATEWAY
# ============================================================================


class FakePaymentGateway:
    """
    Scriptable stand-in for the payment gateway.

    Hands out sequential authorities and confirms every verification
    unless ``verify_result`` or ``verify_error`` say otherwise.
    """

    name = "fake"

    def __init__(self):
        self.request_error: Exception | None = None
        self.verify_error: Exception | None = None
        self.verify_result: PaymentVerificationResult | None = None
        self.requests: list[tuple[Decimal, str, str]] = []
        self.verifications: list[tuple[str, Decimal]] = []
        self._counter = 0

    async def request_payment(self, amount: Decimal, description: str, callback_url: str) -> PaymentRequestResult:
        if self.request_error is not None:
            raise self.request_error
        self._counter += 1
        self.requests.append((amount, description, callback_url))
        authority = f"A{self._counter:010d}"
        return PaymentRequestResult(authority=authority, redirect_url=f"https://pay.test/StartPay/{authority}")

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerificationResult:
        self.verifications.append((authority, amount))
        if self.verify_error is not None:
            raise self.verify_error
        if self.verify_result is not None:
            return self.verify_result
        return PaymentVerificationResult(success=True, transaction_id=f"TX-{authority}", status_code=100)


# ============================================================================
# CATALOG & STOCK FIXTURES
# ============================================================================


@pytest.fixture
def products() -> list[ProductSnapshot]:
    """Three sellable products; the laptop carries a 10% item discount."""
    return [
        ProductSnapshot(
            product_id="p-laptop",
            name="Laptop",
            price=Decimal("1000.00"),
            discount_percent=Decimal("10"),
            category_id="c-computers",
            brand="Acme",
        ),
        ProductSnapshot(
            product_id="p-mouse",
            name="Mouse",
            price=Decimal("50.00"),
            category_id="c-accessories",
            brand="Logi",
        ),
        ProductSnapshot(
            product_id="p-cable",
            name="Cable",
            price=Decimal("10.00"),
            category_id="c-accessories",
            brand="Acme",
        ),
    ]


@pytest.fixture
def stock_ledger() -> InMemoryStockLedger:
    return InMemoryStockLedger({"p-laptop": 10, "p-mouse": 50, "p-cable": 100})


@pytest.fixture
def catalog_service(products, stock_ledger) -> InMemoryCatalogService:
    return InMemoryCatalogService(products, stock_ledger=stock_ledger)


# ============================================================================
# REPOSITORY FIXTURES
# ============================================================================


@pytest.fixture
def cart_repository() -> InMemoryCartRepository:
    return InMemoryCartRepository()


@pytest.fixture
def coupon_repository() -> InMemoryCouponRepository:
    return InMemoryCouponRepository()


@pytest.fixture
def campaign_repository() -> InMemoryCampaignRepository:
    return InMemoryCampaignRepository()


@pytest.fixture
def order_repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def payment_repository() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def event_publisher() -> DomainEventPublisher:
    return DomainEventPublisher()


@pytest.fixture
def published_events(event_publisher) -> list:
    """Every event published through ``event_publisher``."""
    events = []

    async def record(event):
        events.append(event)

    event_publisher.subscribe(DomainEventPublisher.WILDCARD, record)
    return events


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


# ============================================================================
# TEST DATA FIXTURES
# ============================================================================


@pytest.fixture
def customer() -> CustomerProfile:
    return CustomerProfile(user_id="user-1")


@pytest.fixture
def shipping_address() -> Address:
    return Address(
        receiver_name="Sara Ahmadi",
        phone="09121234567",
        province="Tehran",
        city="Tehran",
        address="No. 12, Example Street",
        postal_code="1234567890",
    )


@pytest.fixture
def coupon_factory():
    """Build a valid coupon; keyword arguments override the defaults."""

    def make(**overrides) -> Coupon:
        now = utc_now()
        values = {
            "id": generate_uuid_str(),
            "code": "SAVE10",
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
        }
        values.update(overrides)
        return Coupon(**values)

    return make


@pytest.fixture
def campaign_factory():
    """Build a live stackable 10% campaign; keyword arguments override the defaults."""

    def make(**overrides) -> Campaign:
        now = utc_now()
        values = {
            "id": generate_uuid_str(),
            "name": "Autumn sale",
            "status": CampaignStatus.ACTIVE,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=7),
            "rules": CampaignRules(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("10")),
            "is_stackable": True,
        }
        values.update(overrides)
        return Campaign(**values)

    return make


# ============================================================================
# USE CASE FIXTURES
# ============================================================================


@pytest.fixture
def resolver() -> DiscountStackingResolver:
    return DiscountStackingResolver()


@pytest.fixture
def add_to_cart(cart_repository, catalog_service) -> AddToCartUseCase:
    return AddToCartUseCase(cart_repository=cart_repository, catalog_service=catalog_service)


@pytest.fixture
def create_order(
    cart_repository,
    catalog_service,
    stock_ledger,
    coupon_repository,
    campaign_repository,
    order_repository,
    event_publisher,
    resolver,
) -> CreateOrderUseCase:
    return CreateOrderUseCase(
        cart_repository=cart_repository,
        catalog_service=catalog_service,
        stock_ledger=stock_ledger,
        coupon_repository=coupon_repository,
        campaign_repository=campaign_repository,
        order_repository=order_repository,
        event_publisher=event_publisher,
        resolver=resolver,
        shipping_costs={ShippingMethod.NORMAL: Decimal("30.00"), ShippingMethod.EXPRESS: Decimal("80.00")},
    )


@pytest.fixture
def update_order_status(order_repository, stock_ledger, payment_repository, event_publisher) -> UpdateOrderStatusUseCase:
    return UpdateOrderStatusUseCase(
        order_repository=order_repository,
        stock_ledger=stock_ledger,
        payment_repository=payment_repository,
        event_publisher=event_publisher,
    )


@pytest.fixture
def initiate_payment(order_repository, payment_repository, payment_gateway) -> InitiatePaymentUseCase:
    return InitiatePaymentUseCase(
        order_repository=order_repository,
        payment_repository=payment_repository,
        gateway=payment_gateway,
        callback_url="https://shop.test/api/v1/payments/verify",
    )


@pytest.fixture
def verify_payment(
    payment_repository,
    order_repository,
    cart_repository,
    payment_gateway,
    update_order_status,
    event_publisher,
) -> VerifyPaymentUseCase:
    return VerifyPaymentUseCase(
        payment_repository=payment_repository,
        order_repository=order_repository,
        cart_repository=cart_repository,
        gateway=payment_gateway,
        status_use_case=update_order_status,
        event_publisher=event_publisher,
    )


@pytest.fixture
def place_order(add_to_cart, create_order, shipping_address):
    """
    Fill a customer's cart and check it out.

    ``items`` maps product id to quantity; defaults to one laptop and
    two mice.
    """

    async def place(customer: CustomerProfile, items: dict[str, int] | None = None, coupon_code: str | None = None):
        for product_id, quantity in (items or {"p-laptop": 1, "p-mouse": 2}).items():
            await add_to_cart.execute(
                AddToCartRequest(user_id=customer.user_id, product_id=product_id, quantity=quantity)
            )
        response = await create_order.execute(
            CreateOrderRequest(customer=customer, shipping_address=shipping_address, coupon_code=coupon_code)
        )
        return response.order

    return place


@pytest.fixture
def pay_order(initiate_payment):
    """Start a payment for an order and return the gateway authority."""

    async def pay(order) -> str:
        response = await initiate_payment.execute(InitiatePaymentRequest(order_id=str(order.id), user_id=order.user_id))
        return response.authority

    return pay
