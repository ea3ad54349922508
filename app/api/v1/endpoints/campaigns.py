"""
Campaign prospect upload endpoints.
"""
import logging

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import Response

from app.api.v1.dependencies import get_import_service, get_organisation_id
from app.core.exceptions import ValidationError
from app.schemas.upload import UploadResponse
from app.services.imports.service import ProspectImportService

router = APIRouter()
logger = logging.getLogger("prospectr.api.campaigns")


@router.get("/prospects/template")
async def download_prospect_template(
    service: ProspectImportService = Depends(get_import_service),
) -> Response:
    """Download the CSV template for prospect uploads."""
    return Response(
        content=service.generate_template(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="prospects_template.csv"'},
    )


@router.post(
    "/{campaign_id}/prospects/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_prospects(
    campaign_id: str,
    file: UploadFile = File(..., description="CSV file containing prospect data"),
    organisation_id: str = Depends(get_organisation_id),
    service: ProspectImportService = Depends(get_import_service),
):
    """
    Upload a prospect CSV for a campaign.

    The file is stored as-is; column mapping, validation and import are
    separate steps on the returned upload ID.
    """
    if not file.filename:
        raise ValidationError("No file provided", code="NO_FILE")

    content = await file.read()
    logger.info(f"Received {file.filename!r} ({len(content)} bytes) for campaign {campaign_id}")

    return await service.handle_upload(
        campaign_id=campaign_id,
        organisation_id=organisation_id,
        filename=file.filename,
        content=content,
    )
