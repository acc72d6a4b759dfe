"""
Cart Repository Implementation

SQLAlchemy implementation of ICartRepository.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domains.commerce.application.ports import ICartRepository
from storefront.domains.commerce.domain.entities import Cart, CartItem
from storefront.domains.commerce.domain.value_objects import CouponSnapshot
from storefront.models.db import Cart as CartModel
from storefront.models.db import CartItem as CartItemModel

logger = logging.getLogger(__name__)


class SQLAlchemyCartRepository(ICartRepository):
    """One row per user in ``carts`` with its lines in ``cart_items``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user(self, user_id: str) -> Cart | None:
        result = await self.session.execute(select(CartModel).where(CartModel.user_id == user_id))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def save(self, cart: Cart) -> Cart:
        try:
            result = await self.session.execute(select(CartModel).where(CartModel.user_id == cart.user_id))
            model = result.scalar_one_or_none()
            if model is None:
                model = CartModel(user_id=cart.user_id, created_at=cart.created_at)
                self.session.add(model)

            model.coupon = cart.coupon.to_dict() if cart.coupon else None
            model.expires_at = cart.expires_at
            model.updated_at = cart.updated_at
            model.items = [self._item_to_model(item, position) for position, item in enumerate(cart.items)]

            await self.session.commit()
        except Exception as e:
            logger.error(f"Error saving cart for user {cart.user_id}: {e}")
            await self.session.rollback()
            raise
        cart.id = cart.user_id
        return cart

    async def delete_by_user(self, user_id: str) -> bool:
        result = await self.session.execute(delete(CartModel).where(CartModel.user_id == user_id))
        await self.session.commit()
        return (result.rowcount or 0) > 0

    async def delete_expired(self, now: datetime) -> int:
        result = await self.session.execute(delete(CartModel).where(CartModel.expires_at < now))
        await self.session.commit()
        return result.rowcount or 0

    # Mapping methods

    def _to_entity(self, model: CartModel) -> Cart:
        return Cart(
            id=model.user_id,
            user_id=model.user_id,
            items=[
                CartItem(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    unit_discount_percent=item.unit_discount_percent,
                    category_id=item.category_id,
                    brand=item.brand,
                    added_at=item.added_at,
                )
                for item in model.items
            ],
            coupon=CouponSnapshot.from_dict(model.coupon) if model.coupon else None,
            expires_at=model.expires_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _item_to_model(self, item: CartItem, position: int) -> CartItemModel:
        return CartItemModel(
            position=position,
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            unit_discount_percent=item.unit_discount_percent,
            category_id=item.category_id,
            brand=item.brand,
            added_at=item.added_at,
        )
