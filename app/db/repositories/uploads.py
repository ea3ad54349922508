"""
Prospect upload repository for database operations.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import ModelCrud, timed_operation
from app.models.prospect_upload import ProspectUpload

logger = logging.getLogger("prospectr.db")


class ProspectUploadRepository:
    """Prospect upload repository for database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.crud = ModelCrud(session, ProspectUpload)

    async def get_by_id(self, id: str) -> Optional[ProspectUpload]:
        return await self.crud.get_by_id(id)

    async def create(self, *, obj_in: Union[BaseModel, Dict[str, Any]]) -> ProspectUpload:
        return await self.crud.create(obj_in=obj_in)

    async def list(
        self,
        *,
        filters: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ProspectUpload]:
        return await self.crud.list(filters=filters, skip=skip, limit=limit)

    async def find_by_id_and_org(self, upload_id: str, organisation_id: str) -> Optional[ProspectUpload]:
        """Get an upload only if it belongs to the organisation."""
        query = select(ProspectUpload).where(
            ProspectUpload.id == upload_id,
            ProspectUpload.organisation_id == organisation_id,
        )
        async with timed_operation("ProspectUpload.find_by_id_and_org", "Failed to load upload"):
            result = await self.session.execute(query)
            return result.scalar_one_or_none()

    async def save_detected_columns(self, upload: ProspectUpload, headers: List[str]) -> ProspectUpload:
        return await self.crud.update(upload, {"detected_columns": headers})

    async def save_column_mappings(
        self,
        upload: ProspectUpload,
        column_map: Dict[str, str],
        row_count: int,
    ) -> ProspectUpload:
        return await self.crud.update(upload, {"column_mappings": column_map, "row_count": row_count})

    async def delete(self, upload: ProspectUpload) -> None:
        await self.crud.delete(upload)
        logger.info(f"Deleted upload {upload.id}")
