"""
In-Memory Adapters

Process-local implementations of every commerce port, used by the test
suite and for running the API without PostgreSQL.

Entities are deep-copied on the way in and out, so callers never share
state with the store, the same as with a database.
"""

import asyncio
import logging
from collections import defaultdict
from copy import deepcopy
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal

from storefront.core.domain import (
    CampaignNotEligibleException,
    CouponInvalidException,
    EntityNotFoundException,
    InsufficientStockException,
    ValidationException,
    generate_uuid_str,
)
from storefront.domains.commerce.application.ports import (
    CampaignUsage,
    ICampaignRepository,
    ICartRepository,
    ICatalogService,
    ICouponRepository,
    IOrderRepository,
    IPaymentRepository,
    IStockLedger,
)
from storefront.domains.commerce.domain.entities import (
    Campaign,
    Cart,
    Coupon,
    Order,
    PaymentAttempt,
    normalize_coupon_code,
)
from storefront.domains.commerce.domain.value_objects import (
    CustomerHistory,
    OrderStatus,
    PaymentStatus,
    ProductSnapshot,
    StockLevel,
)

logger = logging.getLogger(__name__)


# ============================================================
# CATALOG & STOCK
# ============================================================


class InMemoryStockLedger(IStockLedger):
    """
    Stock counters guarded by one asyncio.Lock per product.

    Each operation reads, checks and writes a product's level while
    holding its lock, so concurrent coroutines serialize per product.
    """

    def __init__(self, levels: dict[str, int] | None = None):
        self._levels: dict[str, StockLevel] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        for product_id, on_hand in (levels or {}).items():
            self.set_level(product_id, on_hand)

    def set_level(self, product_id: str, on_hand: int, reserved: int = 0, sold: int = 0) -> StockLevel:
        level = StockLevel(product_id=product_id, on_hand=on_hand, reserved=reserved, sold=sold)
        self._levels[product_id] = level
        return level

    async def reserve(self, product_id: str, quantity: int) -> StockLevel:
        async with self._locks[product_id]:
            level = self._require(product_id, quantity)
            await asyncio.sleep(0)
            if not level.can_reserve(quantity):
                raise InsufficientStockException(product_id, quantity, level.available)
            return self._store(level.reserve(quantity))

    async def release(self, product_id: str, quantity: int) -> StockLevel:
        async with self._locks[product_id]:
            level = self._require(product_id, quantity)
            return self._store(level.release(quantity))

    async def commit_sale(self, product_id: str, quantity: int) -> StockLevel:
        async with self._locks[product_id]:
            level = self._require(product_id, quantity)
            if level.on_hand < quantity:
                raise InsufficientStockException(product_id, quantity, level.on_hand)
            return self._store(level.commit_sale(quantity))

    async def restock(self, product_id: str, quantity: int) -> StockLevel:
        async with self._locks[product_id]:
            level = self._require(product_id, quantity)
            return self._store(level.restock(quantity))

    async def get_level(self, product_id: str) -> StockLevel | None:
        return self._levels.get(product_id)

    def _require(self, product_id: str, quantity: int) -> StockLevel:
        if quantity <= 0:
            raise ValidationException("Quantity must be positive", field="quantity")
        level = self._levels.get(product_id)
        if level is None:
            raise EntityNotFoundException("ProductStock", product_id)
        return level

    def _store(self, level: StockLevel) -> StockLevel:
        self._levels[level.product_id] = level
        return level


class InMemoryCatalogService(ICatalogService):
    """
    Product snapshots held in a dict.

    With a stock ledger attached, ``available_stock`` reflects the
    ledger's current level instead of the seeded value.
    """

    def __init__(
        self,
        products: list[ProductSnapshot] | None = None,
        stock_ledger: InMemoryStockLedger | None = None,
    ):
        self._products = {p.product_id: p for p in products or []}
        self.stock_ledger = stock_ledger

    def add_product(self, product: ProductSnapshot) -> None:
        self._products[product.product_id] = product

    async def get_product(self, product_id: str) -> ProductSnapshot | None:
        product = self._products.get(product_id)
        if product is None:
            return None
        if self.stock_ledger is not None:
            level = await self.stock_ledger.get_level(product_id)
            if level is not None:
                return replace(product, available_stock=level.available)
        return product

    async def get_products(self, product_ids: list[str]) -> dict[str, ProductSnapshot]:
        products = {}
        for product_id in product_ids:
            product = await self.get_product(product_id)
            if product is not None:
                products[product_id] = product
        return products


# ============================================================
# CART
# ============================================================


class InMemoryCartRepository(ICartRepository):
    def __init__(self) -> None:
        self._carts: dict[str, Cart] = {}

    async def get_by_user(self, user_id: str) -> Cart | None:
        cart = self._carts.get(user_id)
        return deepcopy(cart) if cart else None

    async def save(self, cart: Cart) -> Cart:
        cart.id = cart.user_id
        self._carts[cart.user_id] = deepcopy(cart)
        return cart

    async def delete_by_user(self, user_id: str) -> bool:
        return self._carts.pop(user_id, None) is not None

    async def delete_expired(self, now: datetime) -> int:
        expired = [user_id for user_id, cart in self._carts.items() if cart.is_expired(now)]
        for user_id in expired:
            del self._carts[user_id]
        return len(expired)


# ============================================================
# PROMOTIONS
# ============================================================


@dataclass(frozen=True)
class UsageRecord:
    promotion_id: str
    user_id: str
    order_id: str
    amount: Decimal


class InMemoryCouponRepository(ICouponRepository):
    def __init__(self) -> None:
        self._coupons: dict[str, Coupon] = {}
        self._usages: dict[tuple[str, str], UsageRecord] = {}
        self._lock = asyncio.Lock()

    async def get_by_code(self, code: str) -> Coupon | None:
        coupon = self._coupons.get(normalize_coupon_code(code))
        return deepcopy(coupon) if coupon else None

    async def save(self, coupon: Coupon) -> Coupon:
        if coupon.id is None:
            coupon.id = generate_uuid_str()
        self._coupons[coupon.code] = deepcopy(coupon)
        return coupon

    async def count_user_usage(self, coupon_id: str, user_id: str) -> int:
        return sum(1 for u in self._usages.values() if u.promotion_id == coupon_id and u.user_id == user_id)

    async def record_usage(self, coupon_id: str, user_id: str, order_id: str, amount: Decimal) -> bool:
        async with self._lock:
            if (coupon_id, order_id) in self._usages:
                return False
            coupon = next((c for c in self._coupons.values() if c.id == coupon_id), None)
            if coupon is None:
                raise EntityNotFoundException("Coupon", coupon_id)
            if coupon.is_exhausted():
                raise CouponInvalidException(coupon.code, "usage_limit_reached")
            coupon.used_count += 1
            self._usages[(coupon_id, order_id)] = UsageRecord(coupon_id, user_id, order_id, amount)
            return True

    async def release_usage(self, coupon_id: str, order_id: str) -> bool:
        async with self._lock:
            if self._usages.pop((coupon_id, order_id), None) is None:
                return False
            coupon = next((c for c in self._coupons.values() if c.id == coupon_id), None)
            if coupon is not None:
                coupon.used_count = max(coupon.used_count - 1, 0)
            return True

    def usages(self) -> list[UsageRecord]:
        return list(self._usages.values())


class InMemoryCampaignRepository(ICampaignRepository):
    def __init__(self) -> None:
        self._campaigns: dict[str, Campaign] = {}
        self._usages: dict[tuple[str, str], UsageRecord] = {}
        self._lock = asyncio.Lock()

    async def get_by_id(self, campaign_id: str) -> Campaign | None:
        campaign = self._campaigns.get(campaign_id)
        return deepcopy(campaign) if campaign else None

    async def save(self, campaign: Campaign) -> Campaign:
        if campaign.id is None:
            campaign.id = generate_uuid_str()
        self._campaigns[str(campaign.id)] = deepcopy(campaign)
        return campaign

    async def list_live(self, now: datetime) -> list[Campaign]:
        return self._select(lambda c: c.is_active(now))

    async def list_due_for_activation(self, now: datetime) -> list[Campaign]:
        return self._select(lambda c: c.is_due_for_activation(now))

    async def list_run_out(self, now: datetime) -> list[Campaign]:
        return self._select(lambda c: c.has_run_out(now))

    async def get_usage(self, campaign_ids: list[str], user_id: str) -> dict[str, CampaignUsage]:
        usage = {}
        for campaign_id in campaign_ids:
            records = [u for u in self._usages.values() if u.promotion_id == campaign_id]
            if records:
                usage[campaign_id] = CampaignUsage(
                    user_count=sum(1 for u in records if u.user_id == user_id),
                    total_count=len(records),
                )
        return usage

    async def record_usage(self, campaign_id: str, user_id: str, order_id: str, amount: Decimal) -> bool:
        async with self._lock:
            if (campaign_id, order_id) in self._usages:
                return False
            campaign = self._campaigns.get(campaign_id)
            limit = campaign.rules.total_usage_limit if campaign else None
            if limit is not None:
                used = sum(1 for u in self._usages.values() if u.promotion_id == campaign_id)
                if used >= limit:
                    raise CampaignNotEligibleException(campaign_id, "usage_limit_reached")
            self._usages[(campaign_id, order_id)] = UsageRecord(campaign_id, user_id, order_id, amount)
            return True

    async def release_usage(self, campaign_id: str, order_id: str) -> bool:
        async with self._lock:
            return self._usages.pop((campaign_id, order_id), None) is not None

    def usages(self) -> list[UsageRecord]:
        return list(self._usages.values())

    def _select(self, predicate) -> list[Campaign]:
        selected = [deepcopy(c) for c in self._campaigns.values() if predicate(c)]
        return sorted(selected, key=lambda c: -c.priority)


# ============================================================
# ORDERS & PAYMENTS
# ============================================================


class InMemoryOrderRepository(IOrderRepository):
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._sequences: dict[date, int] = {}

    async def create(self, order: Order) -> Order:
        if str(order.id) in self._orders:
            raise ValidationException(f"Order {order.id} already exists", field="id")
        self._orders[str(order.id)] = self._copy(order)
        return order

    async def save(self, order: Order) -> Order:
        if str(order.id) not in self._orders:
            raise EntityNotFoundException("Order", order.id)
        order.increment_version()
        self._orders[str(order.id)] = self._copy(order)
        return order

    async def get_by_id(self, order_id: str) -> Order | None:
        order = self._orders.get(order_id)
        return self._copy(order) if order else None

    async def get_by_number(self, order_number: str) -> Order | None:
        order = next((o for o in self._orders.values() if o.order_number == order_number), None)
        return self._copy(order) if order else None

    async def list_by_user(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Order]:
        orders = sorted(
            (o for o in self._orders.values() if o.user_id == user_id),
            key=lambda o: o.created_at,
            reverse=True,
        )
        return [self._copy(o) for o in orders[offset : offset + limit]]

    async def next_daily_sequence(self, day: date) -> int:
        self._sequences[day] = self._sequences.get(day, 0) + 1
        return self._sequences[day]

    async def get_customer_history(self, user_id: str) -> CustomerHistory:
        delivered = [o for o in self._orders.values() if o.user_id == user_id and o.status == OrderStatus.DELIVERED]
        return CustomerHistory(
            delivered_count=len(delivered),
            total_spent=sum((o.total_amount for o in delivered), Decimal("0")),
            last_delivered_at=max((o.delivered_at for o in delivered if o.delivered_at), default=None),
        )

    @staticmethod
    def _copy(order: Order) -> Order:
        copied = deepcopy(order)
        copied.clear_domain_events()
        return copied


class InMemoryPaymentRepository(IPaymentRepository):
    def __init__(self) -> None:
        self._payments: dict[str, PaymentAttempt] = {}
        self._lock = asyncio.Lock()

    async def create(self, payment: PaymentAttempt) -> PaymentAttempt:
        if payment.id is None:
            payment.id = generate_uuid_str()
        self._payments[str(payment.id)] = self._copy(payment)
        return payment

    async def save(self, payment: PaymentAttempt) -> PaymentAttempt:
        if str(payment.id) not in self._payments:
            raise EntityNotFoundException("Payment", payment.id)
        self._payments[str(payment.id)] = self._copy(payment)
        return payment

    async def get_by_id(self, payment_id: str) -> PaymentAttempt | None:
        payment = self._payments.get(payment_id)
        return self._copy(payment) if payment else None

    async def get_by_authority(self, authority: str) -> PaymentAttempt | None:
        payment = next((p for p in self._payments.values() if p.authority == authority), None)
        return self._copy(payment) if payment else None

    async def get_completed_for_order(self, order_id: str) -> PaymentAttempt | None:
        payment = next(
            (p for p in self._payments.values() if p.order_id == order_id and p.status == PaymentStatus.COMPLETED),
            None,
        )
        return self._copy(payment) if payment else None

    async def mark_completed(self, payment_id: str, transaction_id: str, paid_at: datetime) -> bool:
        async with self._lock:
            payment = self._payments.get(payment_id)
            if payment is None or payment.status != PaymentStatus.PENDING:
                return False
            payment.status = PaymentStatus.COMPLETED
            payment.transaction_id = transaction_id
            payment.paid_at = paid_at
            payment.touch(paid_at)
            return True

    def all(self) -> list[PaymentAttempt]:
        return [self._copy(p) for p in self._payments.values()]

    @staticmethod
    def _copy(payment: PaymentAttempt) -> PaymentAttempt:
        copied = deepcopy(payment)
        copied.clear_domain_events()
        return copied


__all__ = [
    "InMemoryStockLedger",
    "InMemoryCatalogService",
    "InMemoryCartRepository",
    "InMemoryCouponRepository",
    "InMemoryCampaignRepository",
    "InMemoryOrderRepository",
    "InMemoryPaymentRepository",
    "UsageRecord",
]
