"""
Domain Layer - Core DDD building blocks

This module provides base classes for Domain-Driven Design:
- Entities: Objects with identity and lifecycle
- Value Objects: Immutable objects compared by value
- Events: Domain events for communication
- Exceptions: Domain-specific error handling
"""

from storefront.core.domain.entities import (
    AggregateRoot,
    Entity,
    generate_uuid_str,
    utc_now,
)
from storefront.core.domain.events import (
    DomainEvent,
    DomainEventPublisher,
    EventHandler,
)
from storefront.core.domain.exceptions import (
    BusinessRuleViolationException,
    CampaignNotEligibleException,
    CouponBelowMinimumException,
    CouponInvalidException,
    DomainException,
    EntityNotFoundException,
    IllegalTransitionException,
    InsufficientStockException,
    IntegrationException,
    InvalidOperationException,
    OrderNotFoundException,
    PaymentException,
    PaymentVerificationFailedException,
    ReturnWindowExpiredException,
    StockLedgerInvariantError,
    ValidationException,
)
from storefront.core.domain.value_objects import (
    HUNDRED,
    MONEY_QUANTUM,
    ZERO,
    Address,
    Percentage,
    StatusEnum,
    ValueObject,
    round_money,
    to_decimal,
)

__all__ = [
    # Entities
    "Entity",
    "AggregateRoot",
    "generate_uuid_str",
    "utc_now",
    # Value Objects
    "ValueObject",
    "Percentage",
    "Address",
    "StatusEnum",
    "MONEY_QUANTUM",
    "ZERO",
    "HUNDRED",
    "round_money",
    "to_decimal",
    # Events
    "DomainEvent",
    "DomainEventPublisher",
    "EventHandler",
    # Exceptions
    "DomainException",
    "ValidationException",
    "EntityNotFoundException",
    "BusinessRuleViolationException",
    "InvalidOperationException",
    "IntegrationException",
    "InsufficientStockException",
    "StockLedgerInvariantError",
    "CouponInvalidException",
    "CouponBelowMinimumException",
    "CampaignNotEligibleException",
    "IllegalTransitionException",
    "ReturnWindowExpiredException",
    "OrderNotFoundException",
    "PaymentException",
    "PaymentVerificationFailedException",
]
