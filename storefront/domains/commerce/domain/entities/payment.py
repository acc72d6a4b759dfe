"""
Payment Attempt Entity for the Commerce Domain

One record per attempt to pay an order through the gateway. An order may
have several attempts but at most one of them ends up completed.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from storefront.core.domain import AggregateRoot, IllegalTransitionException, utc_now

from ..events import PaymentCompleted
from ..value_objects.order_status import PaymentStatus

_PAYMENT_TRANSITIONS: dict[PaymentStatus, tuple[PaymentStatus, ...]] = {
    PaymentStatus.PENDING: (PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED),
    PaymentStatus.COMPLETED: (PaymentStatus.REFUNDED,),
    PaymentStatus.FAILED: (),
    PaymentStatus.CANCELLED: (),
    PaymentStatus.REFUNDED: (),
}


def generate_payment_reference(now: datetime | None = None) -> str:
    """Human readable reference, e.g. ``PAY-1718000000000-4F2A9C``."""
    now = now or utc_now()
    return f"PAY-{int(now.timestamp() * 1000)}-{secrets.token_hex(3).upper()}"


@dataclass
class PaymentAttempt(AggregateRoot[str]):
    """
    Gateway payment attempt.

    Status flow: pending -> completed | failed | cancelled, and
    completed -> refunded.
    """

    order_id: str = ""
    user_id: str = ""
    amount: Decimal = Decimal("0")
    status: PaymentStatus = PaymentStatus.PENDING
    reference: str = field(default_factory=generate_payment_reference)
    gateway: str = "gateway"
    method: str = "online"
    description: str | None = None
    authority: str | None = None
    transaction_id: str | None = None
    failure_reason: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    def attach_authority(self, authority: str) -> None:
        self.authority = authority
        self.touch()

    def complete(self, transaction_id: str, now: datetime | None = None) -> None:
        now = now or utc_now()
        self._move_to(PaymentStatus.COMPLETED)
        self.transaction_id = transaction_id
        self.paid_at = now
        self.touch(now)
        self._record_event(self.completed_event())

    def completed_event(self) -> PaymentCompleted:
        return PaymentCompleted(
            payment_id=str(self.id),
            order_id=self.order_id,
            user_id=self.user_id,
            transaction_id=self.transaction_id,
            amount=self.amount,
        )

    def fail(self, reason: str) -> None:
        self._move_to(PaymentStatus.FAILED)
        self.failure_reason = reason
        self.touch()

    def cancel(self, reason: str = "cancelled_by_user") -> None:
        self._move_to(PaymentStatus.CANCELLED)
        self.failure_reason = reason
        self.touch()

    def refund(self, now: datetime | None = None) -> None:
        now = now or utc_now()
        self._move_to(PaymentStatus.REFUNDED)
        self.refunded_at = now
        self.touch(now)

    def _move_to(self, new_status: PaymentStatus) -> None:
        if new_status not in _PAYMENT_TRANSITIONS[self.status]:
            raise IllegalTransitionException("Payment", self.status.value, new_status.value, self.id)
        self.status = new_status
