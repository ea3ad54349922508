"""
Prospect repository for database operations.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import ModelCrud, timed_operation
from app.models.campaign import Campaign
from app.models.prospect import Prospect
from app.schemas.prospect import PersistedProspectMatch
from app.utils.email import normalize_email

logger = logging.getLogger("prospectr.db")


class ProspectRepository:
    """Prospect repository for database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.crud = ModelCrud(session, Prospect)

    async def get_by_id(self, id: str) -> Optional[Prospect]:
        return await self.crud.get_by_id(id)

    async def create(self, *, obj_in: Union[BaseModel, Dict[str, Any]]) -> Prospect:
        return await self.crud.create(obj_in=obj_in)

    async def list(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Prospect]:
        return await self.crud.list(filters=filters, skip=skip, limit=limit)

    async def count_by_org(self, organisation_id: str, campaign_id: Optional[str] = None) -> int:
        """Count an organisation's prospects, optionally within one campaign."""
        return await self.crud.count(filters={"organisation_id": organisation_id, "campaign_id": campaign_id})

    async def find_existing_by_emails(
        self,
        emails: Sequence[str],
        organisation_id: str,
        campaign_id: Optional[str] = None,
    ) -> List[PersistedProspectMatch]:
        """
        Find existing prospects whose normalized email matches any given email.

        Args:
            emails: Emails to look up; normalized before comparison
            organisation_id: Tenant scope
            campaign_id: Optional campaign to narrow the search to

        Returns:
            List[PersistedProspectMatch]: Matches with their campaign details

        Raises:
            DatabaseError: If the query fails
        """
        normalized = sorted({normalize_email(email) for email in emails if normalize_email(email)})
        if not normalized:
            return []

        stored_email = Prospect.contact_email_normalized
        query = (
            select(
                Prospect.id,
                stored_email.label("email"),
                Prospect.campaign_id,
                Campaign.name.label("campaign_name"),
                Prospect.status,
                Prospect.created_at,
            )
            .join(
                Campaign,
                (Prospect.campaign_id == Campaign.id)
                & (Prospect.organisation_id == Campaign.organisation_id),
            )
            .where(Prospect.organisation_id == organisation_id)
            .where(stored_email.in_(normalized))
            .order_by(Prospect.created_at)
        )
        if campaign_id:
            query = query.where(Prospect.campaign_id == campaign_id)

        logger.debug(
            f"Searching for existing prospects: {len(normalized)} emails, "
            f"organisation {organisation_id}, campaign {campaign_id or 'any'}"
        )

        async with timed_operation("Prospect.find_existing_by_emails", "Failed to find existing prospects"):
            result = await self.session.execute(query)
            rows = result.all()

        matches = [
            PersistedProspectMatch(
                id=row.id,
                email=row.email,
                campaign_id=row.campaign_id,
                campaign_name=row.campaign_name,
                status=row.status,
                created_at=row.created_at,
            )
            for row in rows
        ]
        logger.debug(f"Found {len(matches)} existing prospects")
        return matches
