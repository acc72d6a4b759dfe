"""
Commerce Domain Events

Emitted for the notification collaborator, which subscribes by event name.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar

from storefront.core.domain import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    event_name: ClassVar[str] = "order.created"

    order_id: str = ""
    order_number: str = ""
    user_id: str = ""
    total_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    event_name: ClassVar[str] = "order.status_changed"

    order_id: str = ""
    order_number: str = ""
    user_id: str = ""
    from_status: str = ""
    to_status: str = ""
    actor: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class PaymentCompleted(DomainEvent):
    event_name: ClassVar[str] = "payment.completed"

    payment_id: str = ""
    order_id: str = ""
    user_id: str = ""
    transaction_id: str = ""
    amount: Decimal = Decimal("0")
