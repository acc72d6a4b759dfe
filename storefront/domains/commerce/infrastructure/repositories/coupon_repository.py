"""
Coupon Repository Implementation

SQLAlchemy implementation of ICouponRepository. ``used_count`` only
moves through a conditional increment so a coupon with a usage limit
cannot be redeemed past it.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.domain import CouponInvalidException, utc_now
from storefront.domains.commerce.application.ports import ICouponRepository
from storefront.domains.commerce.domain.entities import Coupon, normalize_coupon_code
from storefront.domains.commerce.domain.value_objects import DiscountType, ProductScope
from storefront.models.db import Coupon as CouponModel
from storefront.models.db import CouponUsage as CouponUsageModel

logger = logging.getLogger(__name__)


class SQLAlchemyCouponRepository(ICouponRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_code(self, code: str) -> Coupon | None:
        result = await self.session.execute(
            select(CouponModel).where(CouponModel.code == normalize_coupon_code(code))
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def save(self, coupon: Coupon) -> Coupon:
        try:
            model = None
            if coupon.id is not None:
                model = await self.session.get(CouponModel, uuid.UUID(str(coupon.id)))
            if model is None:
                model = CouponModel(id=uuid.UUID(str(coupon.id)) if coupon.id else uuid.uuid4())
                self.session.add(model)
            self._apply(coupon, model)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error saving coupon {coupon.code}: {e}")
            await self.session.rollback()
            raise
        coupon.id = str(model.id)
        return coupon

    async def count_user_usage(self, coupon_id: str, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(CouponUsageModel)
            .where(
                CouponUsageModel.coupon_id == uuid.UUID(coupon_id),
                CouponUsageModel.user_id == user_id,
            )
        )
        return result.scalar_one()

    async def record_usage(self, coupon_id: str, user_id: str, order_id: str, amount: Decimal) -> bool:
        coupon_uuid = uuid.UUID(coupon_id)
        try:
            inserted = await self.session.execute(
                insert(CouponUsageModel)
                .values(
                    id=uuid.uuid4(),
                    coupon_id=coupon_uuid,
                    user_id=user_id,
                    order_id=uuid.UUID(order_id),
                    discount_amount=amount,
                    used_at=utc_now(),
                )
                .on_conflict_do_nothing(constraint="uq_coupon_usages_coupon_order")
                .returning(CouponUsageModel.id)
            )
            if inserted.scalar_one_or_none() is None:
                await self.session.rollback()
                return False

            bumped = await self.session.execute(
                update(CouponModel)
                .where(
                    CouponModel.id == coupon_uuid,
                    or_(CouponModel.usage_limit.is_(None), CouponModel.used_count < CouponModel.usage_limit),
                )
                .values(used_count=CouponModel.used_count + 1)
                .returning(CouponModel.code)
                .execution_options(synchronize_session=False)
            )
            code = bumped.scalar_one_or_none()
            if code is None:
                await self.session.rollback()
                logger.warning(f"Coupon {coupon_id} exhausted while recording usage for order {order_id}")
                raise CouponInvalidException(coupon_id, "usage_limit_reached")

            await self.session.commit()
        except CouponInvalidException:
            raise
        except Exception as e:
            logger.error(f"Error recording usage of coupon {coupon_id}: {e}")
            await self.session.rollback()
            raise
        return True

    async def release_usage(self, coupon_id: str, order_id: str) -> bool:
        coupon_uuid = uuid.UUID(coupon_id)
        try:
            deleted = await self.session.execute(
                delete(CouponUsageModel)
                .where(
                    CouponUsageModel.coupon_id == coupon_uuid,
                    CouponUsageModel.order_id == uuid.UUID(order_id),
                )
                .returning(CouponUsageModel.id)
            )
            if deleted.scalar_one_or_none() is None:
                await self.session.rollback()
                return False

            await self.session.execute(
                update(CouponModel)
                .where(CouponModel.id == coupon_uuid)
                .values(used_count=func.greatest(CouponModel.used_count - 1, 0))
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error releasing usage of coupon {coupon_id} for order {order_id}: {e}")
            await self.session.rollback()
            raise
        return True

    # Mapping methods

    def _to_entity(self, model: CouponModel) -> Coupon:
        return Coupon(
            id=str(model.id),
            code=model.code,
            description=model.description,
            discount_type=DiscountType(model.discount_type),
            discount_value=model.discount_value,
            minimum_amount=model.minimum_amount or Decimal("0"),
            maximum_discount=model.maximum_discount,
            valid_from=model.valid_from,
            valid_until=model.valid_until,
            usage_limit=model.usage_limit,
            used_count=model.used_count or 0,
            per_user_limit=model.per_user_limit,
            scope=ProductScope.from_dict(model.scope),
            user_ids=frozenset(model.user_ids or []),
            free_shipping=bool(model.free_shipping),
            is_active=bool(model.is_active),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _apply(self, coupon: Coupon, model: CouponModel) -> None:
        model.code = coupon.code
        model.description = coupon.description
        model.discount_type = coupon.discount_type.value
        model.discount_value = coupon.discount_value
        model.minimum_amount = coupon.minimum_amount
        model.maximum_discount = coupon.maximum_discount
        model.valid_from = coupon.valid_from
        model.valid_until = coupon.valid_until
        model.usage_limit = coupon.usage_limit
        model.used_count = coupon.used_count
        model.per_user_limit = coupon.per_user_limit
        model.scope = coupon.scope.to_dict()
        model.user_ids = sorted(coupon.user_ids)
        model.free_shipping = coupon.free_shipping
        model.is_active = coupon.is_active
        model.created_at = coupon.created_at
        model.updated_at = coupon.updated_at
