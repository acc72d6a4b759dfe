"""
Customer cohort derivation.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from storefront.core.domain import utc_now

from ..value_objects.customer import CustomerHistory
from ..value_objects.promotion import CustomerCohort

DEFAULT_VIP_SPEND_THRESHOLD = Decimal("50000000")
DEFAULT_INACTIVE_AFTER_DAYS = 90


class CohortService:
    """
    Classifies a customer from delivered-order history.

    Rules are evaluated in order: no delivered orders is NEW, lifetime
    spend above the threshold is VIP, no delivery within the inactivity
    window is INACTIVE, anything else is REGULAR.
    """

    def __init__(
        self,
        vip_spend_threshold: Decimal = DEFAULT_VIP_SPEND_THRESHOLD,
        inactive_after_days: int = DEFAULT_INACTIVE_AFTER_DAYS,
    ):
        self.vip_spend_threshold = vip_spend_threshold
        self.inactive_after = timedelta(days=inactive_after_days)

    def classify(self, history: CustomerHistory, now: datetime | None = None) -> CustomerCohort:
        now = now or utc_now()
        if history.delivered_count == 0:
            return CustomerCohort.NEW
        if history.total_spent > self.vip_spend_threshold:
            return CustomerCohort.VIP
        if history.last_delivered_at is None or now - history.last_delivered_at > self.inactive_after:
            return CustomerCohort.INACTIVE
        return CustomerCohort.REGULAR
