"""
Schemas for the prospect import pipeline.

ParsedCsv and ParseIssue are plain frozen dataclasses produced by the parser;
everything that crosses the API boundary is a pydantic model.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, Field


class CanonicalField(str, Enum):
    """Target prospect attributes uploaded columns are mapped onto."""
    COMPANY_NAME = "company_name"
    CONTACT_EMAIL = "contact_email"
    CONTACT_NAME = "contact_name"
    WEBSITE_URL = "website_url"


REQUIRED_FIELDS: Tuple[str, ...] = (
    CanonicalField.COMPANY_NAME.value,
    CanonicalField.CONTACT_EMAIL.value,
)
OPTIONAL_FIELDS: Tuple[str, ...] = (
    CanonicalField.CONTACT_NAME.value,
    CanonicalField.WEBSITE_URL.value,
)


class ParseIssueCode(str, Enum):
    """Row-level parse problems that do not abort the parse."""
    MALFORMED_ROW = "MALFORMED_ROW"
    TOO_FEW_FIELDS = "TOO_FEW_FIELDS"
    TOO_MANY_FIELDS = "TOO_MANY_FIELDS"


@dataclass(frozen=True)
class ParseIssue:
    """A malformed row collected during parsing."""
    code: ParseIssueCode
    message: str
    row: Optional[int] = None
    line: Optional[int] = None

    def dict(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "line": self.line,
            "code": self.code.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class ParsedCsv:
    """Decoded upload: normalized headers and string-only rows in file order."""
    headers: Tuple[str, ...]
    rows: Tuple[Dict[str, str], ...]
    parse_errors: Tuple[ParseIssue, ...] = ()
    delimiter: str = ","
    encoding: str = "utf-8"
    row_count: int = field(init=False, default=0)

    def __post_init__(self):
        object.__setattr__(self, "row_count", len(self.rows))

    @property
    def has_errors(self) -> bool:
        return len(self.parse_errors) > 0


class ColumnMapping(BaseModel):
    """Suggested mapping for one detected header."""
    detected: str = Field(..., description="Header as found in the upload")
    suggested: str = Field("", description="Canonical field, or empty when unmapped")
    confidence: Literal["high", "medium", "low"] = Field(..., description="Mapping confidence tier")
    required: bool = Field(False, description="Whether the suggested field is required")


class ColumnValidationResult(BaseModel):
    """Whether all required canonical fields are covered by a mapping."""
    valid: bool
    missing: List[str] = Field(default_factory=list)


class RawProspectRow(BaseModel):
    """One uploaded row in canonical shape, values exactly as uploaded."""
    row_number: int = Field(..., ge=1, description="1-based row number, header excluded")
    company_name: str = ""
    contact_email: str = ""
    contact_name: str = ""
    website_url: str = ""

    class Config:
        """Pydantic config."""
        frozen = True

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any], row_number: int) -> "RawProspectRow":
        """Build a raw row from a canonical-keyed mapping; missing or null values become empty."""
        values = {}
        for name in REQUIRED_FIELDS + OPTIONAL_FIELDS:
            value = row.get(name)
            values[name] = "" if value is None else str(value)
        return cls(row_number=row_number, **values)


class ProspectRow(BaseModel):
    """A validated prospect, trimmed and normalized, ready to persist."""
    row_number: int = Field(..., ge=1)
    company_name: str
    contact_email: str
    contact_name: Optional[str] = None
    website_url: Optional[str] = None

    class Config:
        """Pydantic config."""
        frozen = True


class ErrorType(str, Enum):
    """Row validation error types."""
    COMPANY_NAME_REQUIRED = "COMPANY_NAME_REQUIRED"
    COMPANY_NAME_TOO_LONG = "COMPANY_NAME_TOO_LONG"
    COMPANY_NAME_INVALID = "COMPANY_NAME_INVALID"
    INVALID_EMAIL_FORMAT = "INVALID_EMAIL_FORMAT"
    INVALID_URL_FORMAT = "INVALID_URL_FORMAT"
    CONTACT_NAME_TOO_LONG = "CONTACT_NAME_TOO_LONG"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"


class ErrorMetadata(BaseModel):
    """Duplicate details attached to DUPLICATE_EMAIL errors."""
    first_occurrence_row: Optional[int] = Field(None, description="Earlier row with the same email")
    duplicate_of: Optional[str] = Field(None, description="Normalized email that collided")
    existing_prospect_id: Optional[str] = Field(None, description="Persisted prospect with the same email")
    existing_campaign_id: Optional[str] = None
    existing_campaign_name: Optional[str] = None


class RowValidationError(BaseModel):
    """A single validation finding for one row and field."""
    row_number: int = Field(..., description="1-based row number, header excluded")
    field: str = Field(..., description="Canonical field the error refers to")
    error_type: ErrorType
    message: str
    original_value: Optional[str] = None
    metadata: Optional[ErrorMetadata] = None

    class Config:
        """Pydantic config."""
        frozen = True
        json_schema_extra = {
            "example": {
                "row_number": 2,
                "field": "contact_email",
                "error_type": "DUPLICATE_EMAIL",
                "message": "Duplicate email (SARAH@ACME.COM). First occurrence at row 1.",
                "original_value": "SARAH@ACME.COM",
                "metadata": {"first_occurrence_row": 1, "duplicate_of": "sarah@acme.com"},
            }
        }

    @property
    def is_duplicate(self) -> bool:
        return self.error_type == ErrorType.DUPLICATE_EMAIL


class ValidationResult(BaseModel):
    """Outcome of validating one upload. Produced once, never mutated."""
    valid_count: int
    invalid_count: int
    total_error_count: int
    duplicate_count: int
    errors: List[RowValidationError] = Field(default_factory=list)
    valid_rows: List[ProspectRow] = Field(default_factory=list)
    invalid_rows: List[RawProspectRow] = Field(default_factory=list)

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def total_rows(self) -> int:
        return self.valid_count + self.invalid_count


class ValidationResponse(BaseModel):
    """API view of a validation result with the error list capped."""
    valid_count: int
    invalid_count: int
    total_error_count: int
    duplicate_count: int
    errors: List[RowValidationError]
    errors_truncated: bool = False
    valid_rows: List[ProspectRow]
    invalid_rows: List[RawProspectRow]

    @classmethod
    def from_result(cls, result: ValidationResult, max_errors: int) -> "ValidationResponse":
        return cls(
            valid_count=result.valid_count,
            invalid_count=result.invalid_count,
            total_error_count=result.total_error_count,
            duplicate_count=result.duplicate_count,
            errors=result.errors[:max_errors],
            errors_truncated=len(result.errors) > max_errors,
            valid_rows=result.valid_rows,
            invalid_rows=result.invalid_rows,
        )


class ImportSummary(BaseModel):
    """Outcome of an atomic batch insert."""
    imported: int = 0
    failed: int = 0
    prospect_ids: List[str] = Field(default_factory=list)


@dataclass(frozen=True)
class PersistedProspectMatch:
    """An existing tenant prospect whose normalized email matches an uploaded one."""
    id: str
    email: str
    campaign_id: str
    campaign_name: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
