"""
Order Entity for the Commerce Domain

Represents a placed order: an immutable line-item snapshot, the status
lifecycle with its audit trail, and the embedded payment sub-record.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from storefront.core.domain import (
    ZERO,
    Address,
    AggregateRoot,
    BusinessRuleViolationException,
    IllegalTransitionException,
    ReturnWindowExpiredException,
    StatusEnum,
    ValidationException,
    round_money,
    utc_now,
)

from ..events import OrderCreated, OrderStatusChanged
from ..value_objects.order_status import (
    OrderStatus,
    PaymentStatus,
    ShippingMethod,
    StatusHistoryEntry,
    StockState,
)
from ..value_objects.pricing import PricingLine

DEFAULT_RETURN_WINDOW_DAYS = 7


def format_order_number(day: date, sequence: int, prefix: str = "ORD") -> str:
    """``ORD-YYMMDD-NNNN`` with the per-day sequence zero padded to four digits."""
    return f"{prefix}-{day:%y%m%d}-{sequence:04d}"


class StockAction(StatusEnum):
    """Stock-ledger call an order status change requires for a line."""

    COMMIT_SALE = "commit_sale"
    RELEASE = "release"
    RESTOCK = "restock"

    @property
    def resulting_state(self) -> StockState:
        return {
            StockAction.COMMIT_SALE: StockState.COMMITTED,
            StockAction.RELEASE: StockState.RELEASED,
            StockAction.RESTOCK: StockState.RESTOCKED,
        }[self]


@dataclass
class OrderLine:
    """
    Snapshot of a cart line at commit time.

    Catalog changes after the order is placed never touch these values;
    only ``stock_state`` moves as the ledger is called.
    """

    product_id: str
    name: str
    price: Decimal
    discount_percent: Decimal
    final_price: Decimal
    quantity: int
    category_id: str | None = None
    brand: str | None = None
    stock_state: StockState = StockState.RESERVED

    @classmethod
    def from_pricing_line(cls, line: PricingLine) -> "OrderLine":
        return cls(
            product_id=line.product_id,
            name=line.name,
            price=line.unit_price,
            discount_percent=line.discount_percent,
            final_price=line.final_unit_price,
            quantity=line.quantity,
            category_id=line.category_id,
            brand=line.brand,
        )

    @property
    def line_subtotal(self) -> Decimal:
        return self.to_pricing_line().item_total

    @property
    def line_discount(self) -> Decimal:
        return self.to_pricing_line().item_discount

    def to_pricing_line(self) -> PricingLine:
        return PricingLine(
            product_id=self.product_id,
            name=self.name,
            unit_price=self.price,
            quantity=self.quantity,
            discount_percent=self.discount_percent,
            category_id=self.category_id,
            brand=self.brand,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price": str(self.price),
            "discount_percent": str(self.discount_percent),
            "final_price": str(self.final_price),
            "quantity": self.quantity,
            "category_id": self.category_id,
            "brand": self.brand,
            "stock_state": self.stock_state.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderLine":
        return cls(
            product_id=data["product_id"],
            name=data["name"],
            price=Decimal(data["price"]),
            discount_percent=Decimal(data["discount_percent"]),
            final_price=Decimal(data["final_price"]),
            quantity=int(data["quantity"]),
            category_id=data.get("category_id"),
            brand=data.get("brand"),
            stock_state=StockState(data.get("stock_state", StockState.RESERVED.value)),
        )


@dataclass(frozen=True)
class AppliedDiscount:
    """An order-level discount granted at checkout (coupon or campaign)."""

    source: str
    reference_id: str
    label: str
    amount: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "source": self.source,
            "reference_id": self.reference_id,
            "label": self.label,
            "amount": str(self.amount),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "AppliedDiscount":
        return cls(
            source=data["source"],
            reference_id=data["reference_id"],
            label=data["label"],
            amount=Decimal(data["amount"]),
        )


@dataclass
class OrderPayment:
    """Payment sub-record embedded in the order."""

    method: str = "online"
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str | None = None
    gateway: str | None = None
    amount: Decimal = Decimal("0")
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    refund_amount: Decimal | None = None
    refund_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "status": self.status.value,
            "transaction_id": self.transaction_id,
            "gateway": self.gateway,
            "amount": str(self.amount),
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "refunded_at": self.refunded_at.isoformat() if self.refunded_at else None,
            "refund_amount": str(self.refund_amount) if self.refund_amount is not None else None,
            "refund_reason": self.refund_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "OrderPayment":
        if not data:
            return cls()
        return cls(
            method=data.get("method", "online"),
            status=PaymentStatus(data.get("status", PaymentStatus.PENDING.value)),
            transaction_id=data.get("transaction_id"),
            gateway=data.get("gateway"),
            amount=Decimal(data.get("amount", "0")),
            paid_at=datetime.fromisoformat(data["paid_at"]) if data.get("paid_at") else None,
            refunded_at=datetime.fromisoformat(data["refunded_at"]) if data.get("refunded_at") else None,
            refund_amount=Decimal(data["refund_amount"]) if data.get("refund_amount") is not None else None,
            refund_reason=data.get("refund_reason"),
        )


@dataclass
class Order(AggregateRoot[str]):
    """
    Order aggregate root.

    Totals are always recomputed from the line snapshot:
    total_amount = subtotal - total_discount + shipping_cost.

    Example:
        ```python
        order = Order.place(
            order_id=order_id,
            order_number="ORD-250101-0001",
            user_id="user-1",
            lines=pricing_lines,
            shipping_cost=Decimal("0"),
        )
        order.transition_to(OrderStatus.PROCESSING, note="Payment completed", actor="system")
        ```
    """

    order_number: str = ""
    user_id: str = ""
    lines: list[OrderLine] = field(default_factory=list)

    # Status tracking
    status: OrderStatus = OrderStatus.PENDING
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    payment: OrderPayment = field(default_factory=OrderPayment)

    # Shipping
    shipping_address: Address | None = None
    shipping_method: ShippingMethod = ShippingMethod.NORMAL
    shipping_cost: Decimal = Decimal("0")
    tracking_code: str | None = None
    customer_notes: str | None = None

    # Pricing
    subtotal: Decimal = Decimal("0")
    product_discount_total: Decimal = Decimal("0")
    coupon_discount: Decimal = Decimal("0")
    campaign_discount: Decimal = Decimal("0")
    total_discount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    coupon_code: str | None = None
    applied_discounts: list[AppliedDiscount] = field(default_factory=list)

    # Timestamps
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    returned_at: datetime | None = None
    return_reason: str | None = None

    return_window_days: int = field(default=DEFAULT_RETURN_WINDOW_DAYS, repr=False, compare=False)

    @classmethod
    def place(
        cls,
        order_id: str,
        order_number: str,
        user_id: str,
        lines: list[PricingLine],
        shipping_address: Address | None = None,
        shipping_method: ShippingMethod = ShippingMethod.NORMAL,
        shipping_cost: Decimal = Decimal("0"),
        coupon_code: str | None = None,
        coupon_discount: Decimal = Decimal("0"),
        campaign_discount: Decimal = Decimal("0"),
        applied_discounts: list[AppliedDiscount] | None = None,
        customer_notes: str | None = None,
        actor: str | None = None,
        return_window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
        now: datetime | None = None,
    ) -> "Order":
        """
        Materialize priced cart lines into a new pending order.

        Lines are copied; the returned order holds no reference to the
        pricing lines it was built from.
        """
        if not lines:
            raise ValidationException("Cannot place an order without items", field="lines")

        now = now or utc_now()
        order = cls(
            id=order_id,
            created_at=now,
            updated_at=now,
            order_number=order_number,
            user_id=user_id,
            lines=[OrderLine.from_pricing_line(line) for line in lines],
            shipping_address=shipping_address,
            shipping_method=shipping_method,
            shipping_cost=round_money(shipping_cost),
            coupon_code=coupon_code,
            coupon_discount=round_money(coupon_discount),
            campaign_discount=round_money(campaign_discount),
            applied_discounts=list(applied_discounts or []),
            customer_notes=customer_notes,
            return_window_days=return_window_days,
        )
        order.recalculate_totals()
        order.payment.amount = order.total_amount
        order.status_history.append(
            StatusHistoryEntry(status=OrderStatus.PENDING, timestamp=now, note="Order created", actor=actor)
        )
        order._record_event(
            OrderCreated(
                order_id=order_id,
                order_number=order_number,
                user_id=user_id,
                total_amount=order.total_amount,
            )
        )
        return order

    # ============================================================
    # TOTALS
    # ============================================================

    def recalculate_totals(self) -> None:
        """Recompute every derived amount from the line snapshot."""
        self.subtotal = sum((line.line_subtotal for line in self.lines), ZERO)
        self.product_discount_total = sum((line.line_discount for line in self.lines), ZERO)
        self.total_discount = self.product_discount_total + self.coupon_discount + self.campaign_discount

        if self.total_discount > self.subtotal:
            raise BusinessRuleViolationException(
                "discount_exceeds_subtotal",
                f"Total discount {self.total_discount} exceeds subtotal {self.subtotal}",
                {"order_number": self.order_number},
            )
        self.total_amount = self.subtotal - self.total_discount + self.shipping_cost

    # ============================================================
    # STATE MACHINE
    # ============================================================

    def ensure_can_transition(self, target: OrderStatus, now: datetime | None = None) -> None:
        """
        Raise unless ``target`` is reachable from the current status.

        Raises:
            IllegalTransitionException: Transition not in the lifecycle table
            ReturnWindowExpiredException: Return requested after the window closed
        """
        if not self.status.can_transition_to(target):
            raise IllegalTransitionException("Order", self.status.value, target.value, self.id)
        if target == OrderStatus.RETURNED and self.status == OrderStatus.DELIVERED:
            if not self.is_return_window_open(now):
                raise ReturnWindowExpiredException(self.id, self.delivered_at, self.return_window_days)

    def is_return_window_open(self, now: datetime | None = None) -> bool:
        """Window counts whole days since delivery; day ``return_window_days`` is still open."""
        if self.delivered_at is None:
            return self.status == OrderStatus.SHIPPED
        now = now or utc_now()
        return (now - self.delivered_at).days <= self.return_window_days

    def stock_actions_for(self, target: OrderStatus) -> list[tuple[OrderLine, StockAction]]:
        """
        Ledger calls a move to ``target`` requires, line by line.

        Lines still holding a reservation are committed on entering
        processing and released on cancellation; committed lines are
        restocked on cancellation or return.
        """
        actions: list[tuple[OrderLine, StockAction]] = []
        for line in self.lines:
            if target == OrderStatus.PROCESSING and line.stock_state == StockState.RESERVED:
                actions.append((line, StockAction.COMMIT_SALE))
            elif target in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
                if line.stock_state == StockState.RESERVED:
                    actions.append((line, StockAction.RELEASE))
                elif line.stock_state == StockState.COMMITTED:
                    actions.append((line, StockAction.RESTOCK))
        return actions

    def transition_to(
        self,
        target: OrderStatus,
        note: str | None = None,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Move to ``target`` and append the change to the status history."""
        now = now or utc_now()
        self.ensure_can_transition(target, now)

        previous = self.status
        self.status = target
        if target == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif target == OrderStatus.CANCELLED:
            self.cancelled_at = now
            self.cancel_reason = note
        elif target == OrderStatus.RETURNED:
            self.returned_at = now
            self.return_reason = note

        self.status_history.append(StatusHistoryEntry(status=target, timestamp=now, note=note, actor=actor))
        self.touch(now)
        self._record_event(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                user_id=self.user_id,
                from_status=previous.value,
                to_status=target.value,
                actor=actor,
                note=note,
            )
        )

    def status_walk(self) -> list[OrderStatus]:
        return [entry.status for entry in self.status_history]

    # ============================================================
    # PAYMENT
    # ============================================================

    @property
    def is_paid(self) -> bool:
        return self.payment.status == PaymentStatus.COMPLETED

    def record_payment(self, transaction_id: str, gateway: str, paid_at: datetime | None = None) -> None:
        self.payment.status = PaymentStatus.COMPLETED
        self.payment.transaction_id = transaction_id
        self.payment.gateway = gateway
        self.payment.amount = self.total_amount
        self.payment.paid_at = paid_at or utc_now()
        self.touch()

    def refund_payment(self, reason: str | None = None, now: datetime | None = None) -> bool:
        """Flip a completed payment to refunded. Returns False when nothing was paid."""
        if not self.is_paid:
            return False
        now = now or utc_now()
        self.payment.status = PaymentStatus.REFUNDED
        self.payment.refunded_at = now
        self.payment.refund_amount = self.payment.amount
        self.payment.refund_reason = reason
        self.touch(now)
        return True
