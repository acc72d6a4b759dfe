"""
Maintenance Sweep Use Case

Periodic housekeeping run by the scheduler:
- purge carts past their expiry
- activate scheduled campaigns whose start date has arrived
- end campaigns past their end date
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from storefront.core.domain import DomainException, utc_now
from storefront.domains.commerce.application.ports import ICampaignRepository, ICartRepository
from storefront.domains.commerce.domain.value_objects import CampaignStatus

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    purged_carts: int = 0
    activated_campaigns: list[str] = field(default_factory=list)
    ended_campaigns: list[str] = field(default_factory=list)


class RunMaintenanceSweepUseCase:
    """Use Case: Maintenance Sweep"""

    def __init__(self, cart_repository: ICartRepository, campaign_repository: ICampaignRepository):
        self.cart_repository = cart_repository
        self.campaign_repository = campaign_repository

    async def execute(self, now: datetime | None = None) -> SweepResult:
        now = now or utc_now()
        result = SweepResult()

        result.purged_carts = await self.cart_repository.delete_expired(now)

        for campaign in await self.campaign_repository.list_due_for_activation(now):
            try:
                campaign.transition_to(CampaignStatus.ACTIVE, now)
            except DomainException as e:
                logger.warning(f"Skipping activation of campaign {campaign.id}: {e.message}")
                continue
            await self.campaign_repository.save(campaign)
            result.activated_campaigns.append(str(campaign.id))

        for campaign in await self.campaign_repository.list_run_out(now):
            try:
                campaign.transition_to(CampaignStatus.ENDED, now)
            except DomainException as e:
                logger.warning(f"Skipping end of campaign {campaign.id}: {e.message}")
                continue
            await self.campaign_repository.save(campaign)
            result.ended_campaigns.append(str(campaign.id))

        logger.info(
            f"Maintenance sweep: purged {result.purged_carts} cart(s), "
            f"activated {len(result.activated_campaigns)}, ended {len(result.ended_campaigns)} campaign(s)"
        )
        return result


__all__ = ["RunMaintenanceSweepUseCase", "SweepResult"]
