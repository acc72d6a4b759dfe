"""
Stock Ledger Implementation

SQLAlchemy implementation of IStockLedger. Every operation is one
conditional ``UPDATE ... WHERE ... RETURNING`` on ``product_stock``, so
concurrent reservations can never oversell: of two requests for the last
unit exactly one matches the WHERE clause.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.domain import (
    EntityNotFoundException,
    InsufficientStockException,
    StockLedgerInvariantError,
    ValidationException,
)
from storefront.core.shared import get_repository_logger
from storefront.domains.commerce.application.ports import IStockLedger
from storefront.domains.commerce.domain.value_objects import StockLevel
from storefront.models.db import ProductStock

logger = get_repository_logger("stock_ledger")


class SQLAlchemyStockLedger(IStockLedger):
    """
    Stock counters backed by ``product_stock``.

    Writes are committed immediately; a checkout that fails later
    compensates with ``release``.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reserve(self, product_id: str, quantity: int) -> StockLevel:
        self._check_quantity(quantity)
        stmt = (
            update(ProductStock)
            .where(
                ProductStock.product_id == product_id,
                ProductStock.on_hand - ProductStock.reserved >= quantity,
            )
            .values(reserved=ProductStock.reserved + quantity)
        )
        level = await self._apply(stmt, product_id)
        if level is None:
            current = await self._require_level(product_id)
            logger.warning(
                f"Reservation refused for {product_id}",
                requested=quantity,
                available=current.available,
            )
            raise InsufficientStockException(product_id, quantity, current.available)
        return level

    async def release(self, product_id: str, quantity: int) -> StockLevel:
        self._check_quantity(quantity)
        stmt = (
            update(ProductStock)
            .where(ProductStock.product_id == product_id)
            .values(reserved=func.greatest(ProductStock.reserved - quantity, 0))
        )
        level = await self._apply(stmt, product_id)
        if level is None:
            raise EntityNotFoundException("ProductStock", product_id)
        return level

    async def commit_sale(self, product_id: str, quantity: int) -> StockLevel:
        self._check_quantity(quantity)
        stmt = (
            update(ProductStock)
            .where(
                ProductStock.product_id == product_id,
                ProductStock.on_hand >= quantity,
            )
            .values(
                on_hand=ProductStock.on_hand - quantity,
                reserved=func.greatest(ProductStock.reserved - quantity, 0),
                sold=ProductStock.sold + quantity,
            )
        )
        level = await self._apply(stmt, product_id)
        if level is None:
            current = await self._require_level(product_id)
            raise InsufficientStockException(product_id, quantity, current.on_hand)
        return level

    async def restock(self, product_id: str, quantity: int) -> StockLevel:
        self._check_quantity(quantity)
        stmt = (
            update(ProductStock)
            .where(ProductStock.product_id == product_id)
            .values(
                on_hand=ProductStock.on_hand + quantity,
                sold=func.greatest(ProductStock.sold - quantity, 0),
            )
        )
        level = await self._apply(stmt, product_id)
        if level is None:
            raise EntityNotFoundException("ProductStock", product_id)
        return level

    async def get_level(self, product_id: str) -> StockLevel | None:
        result = await self.session.execute(
            select(ProductStock.on_hand, ProductStock.reserved, ProductStock.sold).where(
                ProductStock.product_id == product_id
            )
        )
        row = result.one_or_none()
        return self._to_level(product_id, row) if row else None

    # Helpers

    async def _apply(self, stmt, product_id: str) -> StockLevel | None:
        try:
            result = await self.session.execute(
                stmt.returning(ProductStock.on_hand, ProductStock.reserved, ProductStock.sold).execution_options(
                    synchronize_session=False
                )
            )
            row = result.one_or_none()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return self._to_level(product_id, row) if row else None

    async def _require_level(self, product_id: str) -> StockLevel:
        level = await self.get_level(product_id)
        if level is None:
            raise EntityNotFoundException("ProductStock", product_id)
        return level

    def _to_level(self, product_id: str, row) -> StockLevel:
        on_hand, reserved, sold = row
        try:
            return StockLevel(product_id=product_id, on_hand=on_hand, reserved=reserved, sold=sold)
        except StockLedgerInvariantError:
            logger.critical(
                f"Stock ledger invariant broken for {product_id}",
                on_hand=on_hand,
                reserved=reserved,
                sold=sold,
            )
            raise

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity <= 0:
            raise ValidationException("Quantity must be positive", field="quantity")
