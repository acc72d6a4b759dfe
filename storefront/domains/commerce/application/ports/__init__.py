"""
Commerce Application Ports

Interface definitions (ports) for the commerce domain.
Uses Protocol for structural typing.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

from storefront.core.domain import DomainEvent
from storefront.domains.commerce.domain.entities import Campaign, Cart, Coupon, Order, PaymentAttempt
from storefront.domains.commerce.domain.value_objects import CustomerHistory, ProductSnapshot, StockLevel

# ============================================================
# CATALOG & STOCK
# ============================================================


@runtime_checkable
class ICatalogService(Protocol):
    """
    Read-only catalog collaborator.

    The commerce core never mutates product content.
    """

    async def get_product(self, product_id: str) -> ProductSnapshot | None:
        """Get a product snapshot by ID"""
        ...

    async def get_products(self, product_ids: list[str]) -> dict[str, ProductSnapshot]:
        """Get snapshots keyed by product ID (missing products are absent)"""
        ...


@runtime_checkable
class IStockLedger(Protocol):
    """
    Per-product stock counters.

    Every operation is a single atomic read-modify-write on one product.
    """

    async def reserve(self, product_id: str, quantity: int) -> StockLevel:
        """Hold stock; raises InsufficientStockException when available < quantity"""
        ...

    async def release(self, product_id: str, quantity: int) -> StockLevel:
        """Drop a hold, never below zero"""
        ...

    async def commit_sale(self, product_id: str, quantity: int) -> StockLevel:
        """Turn a hold into a sale; raises InsufficientStockException when on_hand < quantity"""
        ...

    async def restock(self, product_id: str, quantity: int) -> StockLevel:
        """Return sold units to stock"""
        ...

    async def get_level(self, product_id: str) -> StockLevel | None:
        """Current counters for a product"""
        ...


# ============================================================
# CART
# ============================================================


@runtime_checkable
class ICartRepository(Protocol):
    async def get_by_user(self, user_id: str) -> Cart | None:
        """Get the user's cart"""
        ...

    async def save(self, cart: Cart) -> Cart:
        """Create or replace a cart"""
        ...

    async def delete_by_user(self, user_id: str) -> bool:
        """Remove the user's cart (no-op if none)"""
        ...

    async def delete_expired(self, now: datetime) -> int:
        """Purge carts whose expiry has passed; returns the number removed"""
        ...


# ============================================================
# PROMOTIONS
# ============================================================


@runtime_checkable
class ICouponRepository(Protocol):
    async def get_by_code(self, code: str) -> Coupon | None:
        """Get coupon by (normalized) code"""
        ...

    async def save(self, coupon: Coupon) -> Coupon:
        """Create or update a coupon"""
        ...

    async def count_user_usage(self, coupon_id: str, user_id: str) -> int:
        """Redemptions of a coupon by one user, from the usage ledger"""
        ...

    async def record_usage(self, coupon_id: str, user_id: str, order_id: str, amount: Decimal) -> bool:
        """
        Append a usage record keyed by order and bump used_count.

        Idempotent per (coupon_id, order_id): returns False when the record
        already exists. Raises CouponInvalidException when the coupon got
        exhausted concurrently.
        """
        ...

    async def release_usage(self, coupon_id: str, order_id: str) -> bool:
        """Drop the usage record of an order and give the redemption back"""
        ...


@dataclass(frozen=True)
class CampaignUsage:
    """Usage counts for one campaign."""

    user_count: int = 0
    total_count: int = 0


@runtime_checkable
class ICampaignRepository(Protocol):
    async def get_by_id(self, campaign_id: str) -> Campaign | None:
        """Get campaign by ID"""
        ...

    async def save(self, campaign: Campaign) -> Campaign:
        """Create or update a campaign"""
        ...

    async def list_live(self, now: datetime) -> list[Campaign]:
        """Campaigns with status active and now within their dates"""
        ...

    async def list_due_for_activation(self, now: datetime) -> list[Campaign]:
        """Scheduled campaigns whose start date has arrived"""
        ...

    async def list_run_out(self, now: datetime) -> list[Campaign]:
        """Scheduled, active or paused campaigns past their end date"""
        ...

    async def get_usage(self, campaign_ids: list[str], user_id: str) -> dict[str, CampaignUsage]:
        """Per-user and global usage counts keyed by campaign ID"""
        ...

    async def record_usage(self, campaign_id: str, user_id: str, order_id: str, amount: Decimal) -> bool:
        """
        Append a usage record; idempotent per (campaign_id, order_id).

        Raises CampaignNotEligibleException when total_usage_limit is reached.
        """
        ...

    async def release_usage(self, campaign_id: str, order_id: str) -> bool:
        ...


# ============================================================
# ORDERS & PAYMENTS
# ============================================================


@runtime_checkable
class IOrderRepository(Protocol):
    async def create(self, order: Order) -> Order:
        """Persist a new order"""
        ...

    async def save(self, order: Order) -> Order:
        """Persist changes to an existing order"""
        ...

    async def get_by_id(self, order_id: str) -> Order | None:
        """Get order by ID"""
        ...

    async def get_by_number(self, order_number: str) -> Order | None:
        """Get order by order number"""
        ...

    async def list_by_user(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Order]:
        """Orders of a user, newest first"""
        ...

    async def next_daily_sequence(self, day: date) -> int:
        """Next order counter value for a calendar day (starts at 1)"""
        ...

    async def get_customer_history(self, user_id: str) -> CustomerHistory:
        """Delivered-order summary for cohort derivation"""
        ...


@runtime_checkable
class IPaymentRepository(Protocol):
    async def create(self, payment: PaymentAttempt) -> PaymentAttempt:
        """Persist a new attempt"""
        ...

    async def save(self, payment: PaymentAttempt) -> PaymentAttempt:
        """Persist changes to an attempt"""
        ...

    async def get_by_id(self, payment_id: str) -> PaymentAttempt | None:
        """Get attempt by ID"""
        ...

    async def get_by_authority(self, authority: str) -> PaymentAttempt | None:
        """Get attempt by gateway authority token"""
        ...

    async def get_completed_for_order(self, order_id: str) -> PaymentAttempt | None:
        """The completed attempt of an order, if any"""
        ...

    async def mark_completed(self, payment_id: str, transaction_id: str, paid_at: datetime) -> bool:
        """
        Conditionally move a pending attempt to completed.

        Returns False if the attempt was no longer pending, so only one
        concurrent verification can win.
        """
        ...


@dataclass(frozen=True)
class PaymentRequestResult:
    """Gateway answer to a payment request."""

    authority: str
    redirect_url: str


@dataclass(frozen=True)
class PaymentVerificationResult:
    """Gateway answer to a verification call."""

    success: bool
    transaction_id: str | None = None
    status_code: int | None = None
    message: str | None = None


@runtime_checkable
class IPaymentGateway(Protocol):
    """
    External payment gateway.

    Network failures raise IntegrationException; a gateway that answers
    but refuses returns an unsuccessful result.
    """

    name: str

    async def request_payment(self, amount: Decimal, description: str, callback_url: str) -> PaymentRequestResult:
        """Register a payment and get the redirect target"""
        ...

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerificationResult:
        """Confirm a payment after the customer returns"""
        ...


class IPaymentCallbackGuard(Protocol):
    """
    Deduplicates gateway callbacks before they reach the database.

    The conditional pending -> completed update stays the source of truth;
    the guard only keeps duplicate callbacks from calling the gateway again.
    """

    async def check_and_lock(self, authority: str) -> tuple[bool, str | None]:
        """(is_duplicate, previous_transaction_id_or_none)"""
        ...

    async def mark_complete(self, authority: str, transaction_id: str) -> None:
        """Remember a processed callback"""
        ...

    async def mark_failed(self, authority: str) -> None:
        """Drop the lock so the callback can be retried"""
        ...


# ============================================================
# EVENTS
# ============================================================


@runtime_checkable
class IEventPublisher(Protocol):
    async def publish_all(self, events: list[DomainEvent]) -> None:
        """Publish events to subscribers"""
        ...


__all__ = [
    "ICatalogService",
    "IStockLedger",
    "ICartRepository",
    "ICouponRepository",
    "ICampaignRepository",
    "CampaignUsage",
    "IOrderRepository",
    "IPaymentRepository",
    "IPaymentGateway",
    "PaymentRequestResult",
    "PaymentVerificationResult",
    "IPaymentCallbackGuard",
    "IEventPublisher",
]
