"""
Commerce Infrastructure Services
"""

from .maintenance_scheduler import MaintenanceScheduler
from .payment_callback_guard import RedisPaymentCallbackGuard

__all__ = ["MaintenanceScheduler", "RedisPaymentCallbackGuard"]
