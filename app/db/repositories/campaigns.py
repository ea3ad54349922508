"""
Campaign repository for database operations.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import ModelCrud, timed_operation
from app.models.campaign import Campaign

logger = logging.getLogger("prospectr.db")


class CampaignRepository:
    """Campaign repository for database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.crud = ModelCrud(session, Campaign)

    async def get_by_id(self, id: str) -> Optional[Campaign]:
        return await self.crud.get_by_id(id)

    async def create(self, *, obj_in: Union[BaseModel, Dict[str, Any]]) -> Campaign:
        return await self.crud.create(obj_in=obj_in)

    async def list(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Campaign]:
        return await self.crud.list(filters=filters, skip=skip, limit=limit)

    async def find_by_id_and_org(self, campaign_id: str, organisation_id: str) -> Optional[Campaign]:
        """
        Get a campaign only if it belongs to the organisation.

        Args:
            campaign_id: Campaign ID
            organisation_id: Tenant the caller acts for

        Returns:
            Campaign: Found campaign or None when missing or owned by another tenant
        """
        query = select(Campaign).where(
            Campaign.id == campaign_id,
            Campaign.organisation_id == organisation_id,
        )
        async with timed_operation("Campaign.find_by_id_and_org", "Failed to load campaign"):
            result = await self.session.execute(query)
            campaign = result.scalar_one_or_none()

        if campaign is None:
            logger.debug(f"Campaign {campaign_id} not found for organisation {organisation_id}")
        return campaign
