"""
Dependencies for API endpoints.
"""
import logging

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.db.session import get_session_factory
from app.services.imports.column_mapper import ColumnMapper
from app.services.imports.error_export import ErrorExporter
from app.services.imports.executor import ImportExecutor
from app.services.imports.parser import CsvParser
from app.services.imports.service import ProspectImportService

logger = logging.getLogger("prospectr.api")


async def get_organisation_id(
    organisation_id: str = Header(None, alias=settings.ORGANISATION_HEADER),
) -> str:
    """
    Get the organisation the request acts for.

    Authentication happens upstream; the gateway forwards the caller's
    organisation in a header.

    Raises:
        AuthenticationError: If the header is missing or blank
    """
    if not organisation_id or not organisation_id.strip():
        raise AuthenticationError(
            f"Missing {settings.ORGANISATION_HEADER} header",
            code="ORGANISATION_REQUIRED",
        )
    return organisation_id.strip()


async def get_import_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ProspectImportService:
    """Build the prospect import workflow for one request."""
    return ProspectImportService(
        session_factory=session_factory,
        parser=CsvParser(),
        mapper=ColumnMapper(),
        executor=ImportExecutor(session_factory),
        exporter=ErrorExporter(),
    )
