# app/api/v1/endpoints/imports.py
"""
Prospect upload workflow endpoints.

Each step works on a stored upload: detect columns, confirm a mapping,
validate, then import or download the error report.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response

from app.api.v1.dependencies import get_import_service, get_organisation_id
from app.core.config import settings
from app.schemas.prospect import ValidationResponse
from app.schemas.upload import (
    ColumnDetectionResponse,
    ColumnMappingRequest,
    ImportResponse,
    ParsePreviewResponse,
    ValidateDataRequest,
)
from app.services.imports.service import ProspectImportService

router = APIRouter()
logger = logging.getLogger("prospectr.api.imports")


@router.get("/{upload_id}/columns", response_model=ColumnDetectionResponse)
async def get_column_mappings(
    upload_id: str,
    organisation_id: str = Depends(get_organisation_id),
    service: ProspectImportService = Depends(get_import_service),
):
    """Detected columns with suggested canonical fields."""
    return await service.get_column_mappings(upload_id, organisation_id)


@router.post("/{upload_id}/parse", response_model=ParsePreviewResponse)
async def parse_with_mappings(
    upload_id: str,
    request: ColumnMappingRequest,
    organisation_id: str = Depends(get_organisation_id),
    service: ProspectImportService = Depends(get_import_service),
):
    """Confirm a column mapping and preview the mapped rows."""
    return await service.parse_with_mappings(upload_id, organisation_id, request.column_mappings)


@router.post("/{upload_id}/validate-data", response_model=ValidationResponse)
async def validate_data(
    upload_id: str,
    request: Optional[ValidateDataRequest] = None,
    organisation_id: str = Depends(get_organisation_id),
    service: ProspectImportService = Depends(get_import_service),
):
    """
    Validate the mapped rows.

    Counts are exact; the error list is capped and flagged as truncated.
    """
    result = await service.validate_upload(
        upload_id,
        organisation_id,
        override_duplicates=_override(request),
    )
    return ValidationResponse.from_result(result, settings.IMPORT_MAX_ERRORS_IN_RESPONSE)


@router.post("/{upload_id}/import", response_model=ImportResponse)
async def import_prospects(
    upload_id: str,
    request: Optional[ValidateDataRequest] = None,
    organisation_id: str = Depends(get_organisation_id),
    service: ProspectImportService = Depends(get_import_service),
):
    """Import every row without errors as one atomic batch."""
    return await service.import_upload(
        upload_id,
        organisation_id,
        override_duplicates=_override(request),
    )


@router.post("/{upload_id}/export-errors")
async def export_errors(
    upload_id: str,
    request: Optional[ValidateDataRequest] = None,
    organisation_id: str = Depends(get_organisation_id),
    service: ProspectImportService = Depends(get_import_service),
) -> Response:
    """Download the invalid rows with their first error as CSV."""
    csv_text = await service.export_errors(
        upload_id,
        organisation_id,
        override_duplicates=_override(request),
    )
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="errors_{upload_id}.csv"'},
    )


@router.delete("/{upload_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_upload(
    upload_id: str,
    organisation_id: str = Depends(get_organisation_id),
    service: ProspectImportService = Depends(get_import_service),
):
    """Delete a stored upload."""
    await service.delete_upload(upload_id, organisation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _override(request: Optional[ValidateDataRequest]) -> bool:
    return bool(request and request.override_duplicates)
