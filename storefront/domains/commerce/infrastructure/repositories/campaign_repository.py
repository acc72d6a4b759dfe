"""
Campaign Repository Implementation

SQLAlchemy implementation of ICampaignRepository. Rules, audience and
scope are stored as JSONB documents.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.domain import CampaignNotEligibleException, utc_now
from storefront.domains.commerce.application.ports import CampaignUsage, ICampaignRepository
from storefront.domains.commerce.domain.entities import Campaign, CampaignRules, TargetAudience
from storefront.domains.commerce.domain.value_objects import (
    CampaignStatus,
    CampaignType,
    CustomerCohort,
    DiscountTier,
    DiscountType,
    ProductScope,
)
from storefront.models.db import Campaign as CampaignModel
from storefront.models.db import CampaignUsage as CampaignUsageModel

logger = logging.getLogger(__name__)


def rules_to_dict(rules: CampaignRules) -> dict[str, Any]:
    return {
        "discount_type": rules.discount_type.value,
        "discount_value": str(rules.discount_value),
        "min_purchase_amount": str(rules.min_purchase_amount),
        "max_discount_amount": str(rules.max_discount_amount) if rules.max_discount_amount is not None else None,
        "tiers": [{"min_amount": str(t.min_amount), "discount_value": str(t.discount_value)} for t in rules.tiers],
        "buy_quantity": rules.buy_quantity,
        "get_quantity": rules.get_quantity,
        "bundle_product_ids": list(rules.bundle_product_ids),
        "limit_per_user": rules.limit_per_user,
        "total_usage_limit": rules.total_usage_limit,
    }


def rules_from_dict(data: dict[str, Any] | None) -> CampaignRules:
    data = data or {}
    max_discount = data.get("max_discount_amount")
    return CampaignRules(
        discount_type=DiscountType(data.get("discount_type", DiscountType.PERCENTAGE.value)),
        discount_value=Decimal(str(data.get("discount_value", "0"))),
        min_purchase_amount=Decimal(str(data.get("min_purchase_amount", "0"))),
        max_discount_amount=Decimal(str(max_discount)) if max_discount is not None else None,
        tiers=tuple(DiscountTier(t["min_amount"], t["discount_value"]) for t in data.get("tiers", [])),
        buy_quantity=data.get("buy_quantity", 0),
        get_quantity=data.get("get_quantity", 0),
        bundle_product_ids=tuple(data.get("bundle_product_ids", [])),
        limit_per_user=data.get("limit_per_user", 1),
        total_usage_limit=data.get("total_usage_limit"),
    )


def audience_to_dict(audience: TargetAudience) -> dict[str, Any]:
    return {
        "all_users": audience.all_users,
        "cohorts": sorted(c.value for c in audience.cohorts),
        "user_ids": sorted(audience.user_ids),
        "min_order_count": audience.min_order_count,
        "min_total_spent": str(audience.min_total_spent),
        "registered_from": audience.registered_from.isoformat() if audience.registered_from else None,
        "registered_to": audience.registered_to.isoformat() if audience.registered_to else None,
    }


def audience_from_dict(data: dict[str, Any] | None) -> TargetAudience:
    data = data or {}
    return TargetAudience(
        all_users=data.get("all_users", True),
        cohorts=frozenset(CustomerCohort(c) for c in data.get("cohorts", [])),
        user_ids=frozenset(data.get("user_ids", [])),
        min_order_count=data.get("min_order_count", 0),
        min_total_spent=Decimal(str(data.get("min_total_spent", "0"))),
        registered_from=datetime.fromisoformat(data["registered_from"]) if data.get("registered_from") else None,
        registered_to=datetime.fromisoformat(data["registered_to"]) if data.get("registered_to") else None,
    )


class SQLAlchemyCampaignRepository(ICampaignRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, campaign_id: str) -> Campaign | None:
        try:
            campaign_uuid = uuid.UUID(campaign_id)
        except ValueError:
            logger.warning(f"Invalid campaign_id format: {campaign_id}")
            return None
        model = await self.session.get(CampaignModel, campaign_uuid)
        return self._to_entity(model) if model else None

    async def save(self, campaign: Campaign) -> Campaign:
        try:
            model = None
            if campaign.id is not None:
                model = await self.session.get(CampaignModel, uuid.UUID(str(campaign.id)))
            if model is None:
                model = CampaignModel(id=uuid.UUID(str(campaign.id)) if campaign.id else uuid.uuid4())
                self.session.add(model)
            self._apply(campaign, model)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error saving campaign {campaign.name}: {e}")
            await self.session.rollback()
            raise
        campaign.id = str(model.id)
        return campaign

    async def list_live(self, now: datetime) -> list[Campaign]:
        return await self._list(
            CampaignModel.status == CampaignStatus.ACTIVE.value,
            CampaignModel.start_date <= now,
            CampaignModel.end_date >= now,
        )

    async def list_due_for_activation(self, now: datetime) -> list[Campaign]:
        return await self._list(
            CampaignModel.status == CampaignStatus.SCHEDULED.value,
            CampaignModel.start_date <= now,
            CampaignModel.end_date >= now,
        )

    async def list_run_out(self, now: datetime) -> list[Campaign]:
        return await self._list(
            CampaignModel.status.in_(
                [CampaignStatus.SCHEDULED.value, CampaignStatus.ACTIVE.value, CampaignStatus.PAUSED.value]
            ),
            CampaignModel.end_date < now,
        )

    async def get_usage(self, campaign_ids: list[str], user_id: str) -> dict[str, CampaignUsage]:
        if not campaign_ids:
            return {}
        result = await self.session.execute(
            select(
                CampaignUsageModel.campaign_id,
                func.count().label("total_count"),
                func.sum(case((CampaignUsageModel.user_id == user_id, 1), else_=0)).label("user_count"),
            )
            .where(CampaignUsageModel.campaign_id.in_([uuid.UUID(cid) for cid in campaign_ids]))
            .group_by(CampaignUsageModel.campaign_id)
        )
        return {
            str(row.campaign_id): CampaignUsage(user_count=int(row.user_count or 0), total_count=int(row.total_count))
            for row in result.all()
        }

    async def record_usage(self, campaign_id: str, user_id: str, order_id: str, amount: Decimal) -> bool:
        campaign_uuid = uuid.UUID(campaign_id)
        order_uuid = uuid.UUID(order_id)
        try:
            # Row lock serializes concurrent redemptions of the same campaign
            locked = await self.session.execute(
                select(CampaignModel.rules).where(CampaignModel.id == campaign_uuid).with_for_update()
            )
            rules = locked.scalar_one_or_none()
            limit = rules_from_dict(rules).total_usage_limit
            if limit is not None:
                counted = await self.session.execute(
                    select(func.count())
                    .select_from(CampaignUsageModel)
                    .where(
                        CampaignUsageModel.campaign_id == campaign_uuid,
                        CampaignUsageModel.order_id != order_uuid,
                    )
                )
                if counted.scalar_one() >= limit:
                    await self.session.rollback()
                    logger.warning(f"Campaign {campaign_id} exhausted while recording usage for order {order_id}")
                    raise CampaignNotEligibleException(campaign_id, "usage_limit_reached")

            result = await self.session.execute(
                insert(CampaignUsageModel)
                .values(
                    id=uuid.uuid4(),
                    campaign_id=campaign_uuid,
                    user_id=user_id,
                    order_id=order_uuid,
                    discount_amount=amount,
                    used_at=utc_now(),
                )
                .on_conflict_do_nothing(constraint="uq_campaign_usages_campaign_order")
                .returning(CampaignUsageModel.id)
            )
            recorded = result.scalar_one_or_none() is not None
            await self.session.commit()
        except CampaignNotEligibleException:
            raise
        except Exception as e:
            logger.error(f"Error recording usage of campaign {campaign_id}: {e}")
            await self.session.rollback()
            raise
        return recorded

    async def release_usage(self, campaign_id: str, order_id: str) -> bool:
        try:
            result = await self.session.execute(
                delete(CampaignUsageModel)
                .where(
                    CampaignUsageModel.campaign_id == uuid.UUID(campaign_id),
                    CampaignUsageModel.order_id == uuid.UUID(order_id),
                )
                .returning(CampaignUsageModel.id)
            )
            released = result.scalar_one_or_none() is not None
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error releasing usage of campaign {campaign_id} for order {order_id}: {e}")
            await self.session.rollback()
            raise
        return released

    # Helpers

    async def _list(self, *conditions) -> list[Campaign]:
        result = await self.session.execute(
            select(CampaignModel).where(and_(*conditions)).order_by(CampaignModel.priority.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    # Mapping methods

    def _to_entity(self, model: CampaignModel) -> Campaign:
        return Campaign(
            id=str(model.id),
            name=model.name,
            description=model.description,
            campaign_type=CampaignType(model.campaign_type),
            status=CampaignStatus(model.status),
            start_date=model.start_date,
            end_date=model.end_date,
            rules=rules_from_dict(model.rules),
            audience=audience_from_dict(model.audience),
            scope=ProductScope.from_dict(model.scope),
            priority=model.priority,
            is_stackable=bool(model.is_stackable),
            requires_coupon=bool(model.requires_coupon),
            coupon_code=model.coupon_code,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _apply(self, campaign: Campaign, model: CampaignModel) -> None:
        model.name = campaign.name
        model.description = campaign.description
        model.campaign_type = campaign.campaign_type.value
        model.status = campaign.status.value
        model.start_date = campaign.start_date
        model.end_date = campaign.end_date
        model.rules = rules_to_dict(campaign.rules)
        model.audience = audience_to_dict(campaign.audience)
        model.scope = campaign.scope.to_dict()
        model.priority = campaign.priority
        model.is_stackable = campaign.is_stackable
        model.requires_coupon = campaign.requires_coupon
        model.coupon_code = campaign.coupon_code
        model.created_at = campaign.created_at
        model.updated_at = campaign.updated_at
