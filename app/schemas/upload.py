"""
Request and response schemas for the prospect upload workflow.
"""
from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from app.schemas.prospect import ColumnMapping, ColumnValidationResult, ImportSummary, RawProspectRow


class UploadResponse(BaseModel):
    """Stored upload metadata."""
    upload_id: str = Field(..., description="Upload ID used by the following workflow steps")
    campaign_id: str
    filename: str
    file_size: int = Field(..., description="File size in bytes")
    row_count: int = Field(..., description="Data rows, header excluded")
    uploaded_at: datetime


class ColumnDetectionResponse(BaseModel):
    """Detected headers with suggested canonical fields."""
    upload_id: str
    detected_columns: List[str]
    suggested_mappings: List[ColumnMapping]
    validation: ColumnValidationResult


class ColumnMappingRequest(BaseModel):
    """User-confirmed column mapping."""
    column_mappings: Dict[str, str] = Field(
        ...,
        description="Detected header to canonical field; an empty value ignores the column",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "column_mappings": {
                    "company": "company_name",
                    "e-mail": "contact_email",
                    "notes": "",
                }
            }
        }


class ParsePreviewResponse(BaseModel):
    """Row count and a short preview of the upload under a column mapping."""
    upload_id: str
    row_count: int
    columns_mapped: List[str]
    preview: List[RawProspectRow]
    parse_errors: List[Dict[str, Any]] = Field(default_factory=list)


class ValidateDataRequest(BaseModel):
    """Options for validating or importing an upload."""
    override_duplicates: bool = Field(
        False,
        description="Skip the check against prospects already on file",
    )


class ImportResponse(BaseModel):
    """Outcome of importing an upload."""
    upload_id: str
    campaign_id: str
    summary: ImportSummary
    skipped_count: int = Field(..., description="Rows left out because they had errors")
