"""
Commerce Domain Layer

Domain-Driven Design implementation for the storefront commerce context.

This module contains:
- Entities: Business objects with identity (Cart, Coupon, Campaign, Order, PaymentAttempt)
- Value Objects: Immutable domain primitives (StockLevel, PricingLine, OrderStatus)
- Domain Services: Pricing, cohort derivation and discount stacking
- Events: order.created, order.status_changed, payment.completed
"""
