"""
Commerce Infrastructure Repositories

Repository implementations for data access.
SQLAlchemy adapters for PostgreSQL plus in-memory adapters for tests
and database-less runs.
"""

from .campaign_repository import SQLAlchemyCampaignRepository
from .cart_repository import SQLAlchemyCartRepository
from .catalog_repository import SQLAlchemyCatalogService
from .coupon_repository import SQLAlchemyCouponRepository
from .in_memory import (
    InMemoryCampaignRepository,
    InMemoryCartRepository,
    InMemoryCatalogService,
    InMemoryCouponRepository,
    InMemoryOrderRepository,
    InMemoryPaymentRepository,
    InMemoryStockLedger,
)
from .order_repository import SQLAlchemyOrderRepository
from .payment_repository import SQLAlchemyPaymentRepository
from .stock_ledger import SQLAlchemyStockLedger

__all__ = [
    "SQLAlchemyStockLedger",
    "SQLAlchemyCatalogService",
    "SQLAlchemyCartRepository",
    "SQLAlchemyCouponRepository",
    "SQLAlchemyCampaignRepository",
    "SQLAlchemyOrderRepository",
    "SQLAlchemyPaymentRepository",
    "InMemoryStockLedger",
    "InMemoryCatalogService",
    "InMemoryCartRepository",
    "InMemoryCouponRepository",
    "InMemoryCampaignRepository",
    "InMemoryOrderRepository",
    "InMemoryPaymentRepository",
]
