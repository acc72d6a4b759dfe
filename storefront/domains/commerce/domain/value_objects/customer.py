"""
Customer Value Objects

Facts about a customer used for campaign targeting.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from storefront.core.domain import ValueObject


@dataclass(frozen=True)
class CustomerHistory(ValueObject):
    """Summary of a customer's delivered orders."""

    delivered_count: int = 0
    total_spent: Decimal = Decimal("0")
    last_delivered_at: datetime | None = None

    def _validate(self) -> None:
        if self.delivered_count < 0:
            raise ValueError("Delivered order count cannot be negative")


@dataclass(frozen=True)
class CustomerProfile(ValueObject):
    """
    Identity facts plus order history for one customer.

    ``registered_at`` comes from the identity collaborator; ``history``
    is queried from stored orders.
    """

    user_id: str
    registered_at: datetime | None = None
    history: CustomerHistory = field(default_factory=CustomerHistory)
