"""
Domain Exceptions for Domain-Driven Design

These exceptions represent business rule violations and domain-specific errors.
They should be caught and translated to appropriate HTTP responses in the API layer.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any


class DomainException(Exception):
    """
    Base exception for all domain-related errors.

    Provides a standardized way to communicate business rule violations.
    """

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "INSUFFICIENT_STOCK")
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(DomainException):
    """
    Raised when domain validation fails.

    Use for invalid entity states, value object creation failures, etc.
    """

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class EntityNotFoundException(DomainException):
    """
    Raised when an entity is not found.
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        message: str | None = None,
        code: str = "ENTITY_NOT_FOUND",
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        msg = message or f"{entity_type} with ID {entity_id} not found"
        super().__init__(
            msg,
            code,
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class BusinessRuleViolationException(DomainException):
    """
    Raised when a business rule is violated.

    Use for invariant violations, precondition failures, etc.
    """

    def __init__(self, rule: str, message: str | None = None, details: dict[str, Any] | None = None):
        self.rule = rule
        msg = message or f"Business rule violated: {rule}"
        details = details or {}
        details["rule"] = rule
        super().__init__(msg, "BUSINESS_RULE_VIOLATION", details)


class InvalidOperationException(DomainException):
    """Raised when an operation is not valid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None):
        self.operation = operation
        self.current_state = current_state
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(
            msg,
            "INVALID_OPERATION",
            {"operation": operation, "current_state": current_state},
        )


class IntegrationException(DomainException):
    """
    Raised when an external integration fails.

    Integration failures are transient from the caller's point of view:
    the operation left state untouched and may be retried.
    """

    def __init__(self, service: str, message: str, original_error: Exception | None = None):
        self.service = service
        self.original_error = original_error
        details: dict[str, Any] = {"service": service, "retryable": True}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, "INTEGRATION_ERROR", details)


# ============================================================
# STOCK
# ============================================================


class InsufficientStockException(DomainException):
    """Raised when there's not enough stock for an operation."""

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}. Requested: {requested}, Available: {available}",
            "INSUFFICIENT_STOCK",
            {
                "product_id": product_id,
                "requested": requested,
                "available": available,
            },
        )


class StockLedgerInvariantError(RuntimeError):
    """
    Raised when stock counters are found in an impossible state.

    This is a ledger defect, not a user error. It is never translated into
    a business response and must page whoever operates the service.
    """

    def __init__(self, product_id: str, on_hand: int, reserved: int, sold: int):
        self.product_id = product_id
        self.on_hand = on_hand
        self.reserved = reserved
        self.sold = sold
        super().__init__(
            f"Stock ledger invariant broken for product {product_id}: "
            f"on_hand={on_hand}, reserved={reserved}, sold={sold}"
        )


# ============================================================
# PROMOTIONS
# ============================================================


class CouponInvalidException(DomainException):
    """Raised when a coupon cannot be used (unknown, inactive, expired or exhausted)."""

    def __init__(self, code: str, reason: str, message: str | None = None):
        self.coupon_code = code
        self.reason = reason
        super().__init__(
            message or f"Coupon '{code}' is not valid: {reason}",
            "COUPON_INVALID",
            {"coupon_code": code, "reason": reason},
        )


class CouponBelowMinimumException(DomainException):
    """Raised when the coupon-eligible subtotal is below the coupon's minimum amount."""

    def __init__(self, code: str, eligible_subtotal: Decimal, minimum_amount: Decimal):
        self.coupon_code = code
        self.eligible_subtotal = eligible_subtotal
        self.minimum_amount = minimum_amount
        super().__init__(
            f"Coupon '{code}' requires a minimum purchase of {minimum_amount}, eligible subtotal is {eligible_subtotal}",
            "COUPON_BELOW_MINIMUM",
            {
                "coupon_code": code,
                "eligible_subtotal": str(eligible_subtotal),
                "minimum_amount": str(minimum_amount),
            },
        )


class CampaignNotEligibleException(DomainException):
    """Raised when a user or cart does not qualify for a campaign."""

    def __init__(self, campaign_id: str, reason: str):
        self.campaign_id = campaign_id
        self.reason = reason
        super().__init__(
            f"Campaign {campaign_id} is not applicable: {reason}",
            "CAMPAIGN_NOT_ELIGIBLE",
            {"campaign_id": campaign_id, "reason": reason},
        )


# ============================================================
# ORDERS
# ============================================================


class IllegalTransitionException(DomainException):
    """Raised when a status change is not allowed by the lifecycle table."""

    def __init__(self, entity_type: str, from_status: str, to_status: str, entity_id: Any = None):
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} cannot move from '{from_status}' to '{to_status}'",
            "ILLEGAL_TRANSITION",
            {
                "entity_type": entity_type,
                "entity_id": str(entity_id) if entity_id is not None else None,
                "from_status": from_status,
                "to_status": to_status,
            },
        )


class ReturnWindowExpiredException(DomainException):
    """Raised when a return is requested after the return window closed."""

    def __init__(self, order_id: Any, delivered_at: datetime, window_days: int):
        self.order_id = order_id
        self.delivered_at = delivered_at
        self.window_days = window_days
        super().__init__(
            f"Return window of {window_days} days expired for order {order_id}",
            "RETURN_WINDOW_EXPIRED",
            {
                "order_id": str(order_id),
                "delivered_at": delivered_at.isoformat(),
                "window_days": window_days,
            },
        )


class OrderNotFoundException(EntityNotFoundException):
    """Raised when an order does not exist or is not visible to the caller."""

    def __init__(self, order_id: Any):
        super().__init__("Order", order_id, code="ORDER_NOT_FOUND")


# ============================================================
# PAYMENTS
# ============================================================


class PaymentException(DomainException):
    """Raised when a payment operation fails."""

    def __init__(
        self,
        message: str,
        payment_id: str | None = None,
        reason: str | None = None,
        code: str = "PAYMENT_ERROR",
    ):
        self.payment_id = payment_id
        self.reason = reason
        details: dict[str, Any] = {}
        if payment_id:
            details["payment_id"] = payment_id
        if reason:
            details["reason"] = reason
        super().__init__(message, code, details)


class PaymentVerificationFailedException(PaymentException):
    """Raised when the gateway callback does not confirm a payment."""

    def __init__(self, payment_id: str | None, reason: str, message: str | None = None):
        super().__init__(
            message or f"Payment verification failed: {reason}",
            payment_id=payment_id,
            reason=reason,
            code="PAYMENT_VERIFICATION_FAILED",
        )
