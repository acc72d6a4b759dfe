"""
Order Status Value Objects for the Commerce Domain

Represents the lifecycle states of an order with transition rules,
plus the payment, shipping and per-line stock states an order carries.
"""

from dataclasses import dataclass
from datetime import datetime

from storefront.core.domain import StatusEnum


class OrderStatus(StatusEnum):
    """
    Order lifecycle states.

    Valid transitions:
    - PENDING -> PROCESSING, CANCELLED
    - PROCESSING -> PACKAGED, CANCELLED
    - PACKAGED -> SHIPPED, CANCELLED
    - SHIPPED -> DELIVERED, RETURNED
    - DELIVERED -> RETURNED (inside the return window)
    - CANCELLED, RETURNED -> (terminal states)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    PACKAGED = "packaged"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"

    def can_transition_to(self, new_status: "OrderStatus") -> bool:
        """
        Check if transition to new status is valid.

        Args:
            new_status: Target status

        Returns:
            True if transition is allowed
        """
        return new_status in ORDER_TRANSITIONS[self]

    def get_valid_transitions(self) -> list["OrderStatus"]:
        """Get list of valid next statuses."""
        return list(ORDER_TRANSITIONS[self])

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return not ORDER_TRANSITIONS[self]

    def can_be_cancelled(self) -> bool:
        """Check if order can be cancelled in this state."""
        return OrderStatus.CANCELLED in ORDER_TRANSITIONS[self]

    def can_be_returned(self) -> bool:
        """Check if order can be returned in this state."""
        return OrderStatus.RETURNED in ORDER_TRANSITIONS[self]


ORDER_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (OrderStatus.PACKAGED, OrderStatus.CANCELLED),
    OrderStatus.PACKAGED: (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED, OrderStatus.RETURNED),
    OrderStatus.DELIVERED: (OrderStatus.RETURNED,),
    OrderStatus.CANCELLED: (),
    OrderStatus.RETURNED: (),
}


class PaymentStatus(StatusEnum):
    """
    Payment attempt states.

    pending -> completed | failed | cancelled, and completed -> refunded.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    def is_successful(self) -> bool:
        """Check if payment was successful."""
        return self == PaymentStatus.COMPLETED

    def is_refundable(self) -> bool:
        """Check if payment can be refunded."""
        return self == PaymentStatus.COMPLETED

    def is_final(self) -> bool:
        return self != PaymentStatus.PENDING


class ProductStatus(StatusEnum):
    """Product availability status as reported by the catalog."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"
    DRAFT = "draft"

    def is_available_for_sale(self) -> bool:
        """Check if product can be purchased."""
        return self == ProductStatus.ACTIVE


class ShippingMethod(StatusEnum):
    """Delivery options offered at checkout."""

    NORMAL = "normal"
    EXPRESS = "express"
    SCHEDULED = "scheduled"


class StockState(StatusEnum):
    """
    Which stock-ledger call last touched an order line.

    Tracked per line so cancellation and returns know whether to
    release a reservation or restock a committed sale.
    """

    RESERVED = "reserved"
    COMMITTED = "committed"
    RELEASED = "released"
    RESTOCKED = "restocked"


@dataclass(frozen=True)
class StatusHistoryEntry:
    """
    One append-only record of an order status change.
    """

    status: OrderStatus
    timestamp: datetime
    note: str | None = None
    actor: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "note": self.note,
            "actor": self.actor,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StatusHistoryEntry":
        return cls(
            status=OrderStatus(data["status"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            note=data.get("note"),
            actor=data.get("actor"),
        )

    def __str__(self) -> str:
        return f"{self.status.value} @ {self.timestamp.isoformat()}"
