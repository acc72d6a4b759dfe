"""
Catalog Adapter

Read-only ICatalogService over the ``products`` table; available stock
comes from the ledger counters.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domains.commerce.application.ports import ICatalogService
from storefront.domains.commerce.domain.value_objects import ProductSnapshot, ProductStatus
from storefront.models.db import Product, ProductStock

logger = logging.getLogger(__name__)


class SQLAlchemyCatalogService(ICatalogService):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_product(self, product_id: str) -> ProductSnapshot | None:
        products = await self.get_products([product_id])
        return products.get(product_id)

    async def get_products(self, product_ids: list[str]) -> dict[str, ProductSnapshot]:
        if not product_ids:
            return {}
        result = await self.session.execute(
            select(Product, ProductStock.on_hand, ProductStock.reserved)
            .outerjoin(ProductStock, ProductStock.product_id == Product.id)
            .where(Product.id.in_(set(product_ids)))
        )
        snapshots = {}
        for product, on_hand, reserved in result.all():
            snapshots[product.id] = self._to_snapshot(product, on_hand or 0, reserved or 0)
        return snapshots

    def _to_snapshot(self, model: Product, on_hand: int, reserved: int) -> ProductSnapshot:
        try:
            status = ProductStatus(model.status)
        except ValueError:
            logger.warning(f"Unknown status '{model.status}' for product {model.id}, treating as inactive")
            status = ProductStatus.INACTIVE
        return ProductSnapshot(
            product_id=model.id,
            name=model.name,
            price=model.price,
            discount_percent=model.discount_percent or 0,
            available_stock=max(0, on_hand - reserved),
            category_id=model.category_id,
            brand=model.brand,
            status=status,
        )
