"""
Import executor for validated prospect uploads.

Persists the clean rows of a validation result as one all-or-nothing batch.
"""
import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import DuplicateProspectError, ProspectImportError
from app.models.base import utc_now
from app.models.prospect import Prospect
from app.schemas.prospect import ImportSummary, ProspectRow, ValidationResult
from app.utils.email import normalize_email
from app.utils.ids import IDPrefix, generate_prefixed_id

logger = logging.getLogger("prospectr.imports.executor")

DEFAULT_PROSPECT_STATUS = "New"


class ImportExecutor:
    """
    Atomic batch insert of validated prospects.

    Every insert for one import runs inside a single transaction. Any failure
    rolls the whole batch back; nothing is retried.
    """

    def __init__(self, session_factory: async_sessionmaker, chunk_size: Optional[int] = None):
        """
        Initialize the executor.

        Args:
            session_factory: Factory for the session that owns the transaction
            chunk_size: Rows per INSERT statement (defaults to settings)
        """
        self.session_factory = session_factory
        self.chunk_size = chunk_size or settings.IMPORT_INSERT_CHUNK_SIZE

    @staticmethod
    def select_importable(result: ValidationResult) -> List[ProspectRow]:
        """Valid rows whose row number is not referenced by any error."""
        error_rows = {error.row_number for error in result.errors}
        return [row for row in result.valid_rows if row.row_number not in error_rows]

    async def import_valid_prospects(
        self,
        result: ValidationResult,
        campaign_id: str,
        organisation_id: str,
    ) -> ImportSummary:
        """
        Insert the importable rows of a validation result.

        Args:
            result: Validation result to import from
            campaign_id: Campaign the prospects join
            organisation_id: Tenant that owns the prospects

        Returns:
            ImportSummary: Number imported and the generated prospect IDs

        Raises:
            DuplicateProspectError: If the batch violates the per-campaign
                unique email constraint
            ProspectImportError: For any other storage failure
        """
        prospects = self.select_importable(result)
        if not prospects:
            logger.warning(f"No valid prospects to import (campaign {campaign_id}, organisation {organisation_id})")
            return ImportSummary(imported=0, failed=0, prospect_ids=[])

        records = self._build_records(prospects, campaign_id, organisation_id)
        logger.info(
            f"Importing {len(records)} prospects into campaign {campaign_id} "
            f"for organisation {organisation_id}"
        )

        start_time = time.monotonic()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    for offset in range(0, len(records), self.chunk_size):
                        chunk = records[offset:offset + self.chunk_size]
                        await session.execute(insert(Prospect).values(chunk))
                        logger.debug(f"Inserted chunk of {len(chunk)} prospects at offset {offset}")
        except IntegrityError as e:
            logger.error(
                f"Prospect import rolled back for campaign {campaign_id}: unique constraint violated: {e.orig}"
            )
            raise DuplicateProspectError(
                "One or more prospects already exist in this campaign",
                details={"campaign_id": campaign_id, "count": len(records)},
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Prospect import rolled back for campaign {campaign_id}: {e}")
            raise ProspectImportError(
                "Failed to insert prospects",
                details={"campaign_id": campaign_id, "count": len(records)},
            ) from e

        duration = time.monotonic() - start_time
        logger.info(f"Imported {len(records)} prospects into campaign {campaign_id} in {duration:.3f}s")

        return ImportSummary(
            imported=len(records),
            failed=0,
            prospect_ids=[record["id"] for record in records],
        )

    @staticmethod
    def _build_records(
        prospects: List[ProspectRow],
        campaign_id: str,
        organisation_id: str,
    ) -> List[Dict[str, Any]]:
        now = utc_now()
        return [
            {
                "id": generate_prefixed_id(IDPrefix.PROSPECT),
                "organisation_id": organisation_id,
                "campaign_id": campaign_id,
                "company_name": prospect.company_name,
                "contact_email": prospect.contact_email,
                "contact_email_normalized": normalize_email(prospect.contact_email),
                "contact_name": prospect.contact_name,
                "website_url": prospect.website_url,
                "status": DEFAULT_PROSPECT_STATUS,
                "created_at": now,
                "updated_at": now,
            }
            for prospect in prospects
        ]
