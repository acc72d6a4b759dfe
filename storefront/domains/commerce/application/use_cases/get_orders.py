"""
Order Query Use Cases
"""

import logging

from storefront.core.domain import OrderNotFoundException
from storefront.domains.commerce.application.ports import IOrderRepository
from storefront.domains.commerce.domain.entities import Order

logger = logging.getLogger(__name__)


class GetOrderUseCase:
    """
    Use Case: Get Order

    Customers only see their own orders; a foreign order reads as missing.
    """

    def __init__(self, order_repository: IOrderRepository):
        self.order_repository = order_repository

    async def execute(self, order_id: str, user_id: str | None = None) -> Order:
        order = await self.order_repository.get_by_id(order_id)
        if order is None or (user_id is not None and order.user_id != user_id):
            raise OrderNotFoundException(order_id)
        return order


class ListCustomerOrdersUseCase:
    """Use Case: List a customer's orders, newest first"""

    def __init__(self, order_repository: IOrderRepository):
        self.order_repository = order_repository

    async def execute(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Order]:
        limit = max(1, min(limit, 100))
        offset = max(0, offset)
        return await self.order_repository.list_by_user(user_id, limit=limit, offset=offset)


__all__ = ["GetOrderUseCase", "ListCustomerOrdersUseCase"]
