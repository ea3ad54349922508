"""
Row validation service for prospect uploads.

Applies per-field rules to canonical rows, then flags duplicate emails within
the upload and against prospects the organisation already has on file.
"""
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from app.core.config import settings
from app.schemas.prospect import (
    ErrorMetadata,
    ErrorType,
    PersistedProspectMatch,
    ProspectRow,
    RawProspectRow,
    RowValidationError,
    ValidationResult,
)
from app.utils.email import normalize_email, validate_email
from app.utils.url import validate_url

logger = logging.getLogger("prospectr.imports.validator")

RowInput = Union[RawProspectRow, Mapping[str, Any]]


class ProspectLookup(Protocol):
    """Storage lookup used for persisted duplicate detection."""

    async def find_existing_by_emails(
        self,
        emails: Sequence[str],
        organisation_id: str,
        campaign_id: Optional[str] = None,
    ) -> List[PersistedProspectMatch]:
        ...


class ProspectValidator:
    """
    Validates canonical prospect rows.

    Data-quality problems never raise; they become RowValidationError entries
    on the result. Only a failing persisted-duplicate lookup propagates.
    """

    def __init__(
        self,
        prospect_lookup: Optional[ProspectLookup] = None,
        company_name_max_length: Optional[int] = None,
        contact_name_max_length: Optional[int] = None,
        lookup_chunk_size: Optional[int] = None,
    ):
        """
        Initialize the validator.

        Args:
            prospect_lookup: Repository used for persisted duplicate
                detection; without one that check is skipped
            company_name_max_length: Company name limit (defaults to settings)
            contact_name_max_length: Contact name limit (defaults to settings)
            lookup_chunk_size: Emails per persisted lookup query
        """
        self.prospect_lookup = prospect_lookup
        self.company_name_max_length = company_name_max_length or settings.PROSPECT_COMPANY_NAME_MAX_LENGTH
        self.contact_name_max_length = contact_name_max_length or settings.PROSPECT_CONTACT_NAME_MAX_LENGTH
        self.lookup_chunk_size = lookup_chunk_size or settings.IMPORT_DUPLICATE_LOOKUP_CHUNK_SIZE

    async def validate_rows(
        self,
        rows: Sequence[RowInput],
        organisation_id: str,
        campaign_id: Optional[str] = None,
        *,
        check_persisted: bool = True,
    ) -> ValidationResult:
        """
        Validate rows and detect duplicate emails.

        Args:
            rows: Canonical rows; plain mappings are numbered by position
            organisation_id: Tenant whose prospects are checked for duplicates
            campaign_id: Narrow the persisted check to one campaign
            check_persisted: False skips the persisted lookup, which is how
                callers override duplicates against existing prospects

        Returns:
            ValidationResult: Counts, ordered errors, valid and invalid rows

        Raises:
            DatabaseError: If the persisted duplicate lookup fails
        """
        start_time = time.monotonic()
        raw_rows = [self._coerce_row(row, index) for index, row in enumerate(rows, start=1)]

        logger.info(
            f"Starting data validation of {len(raw_rows)} rows for organisation {organisation_id}"
            + (f", campaign {campaign_id}" if campaign_id else "")
        )

        errors_by_row: Dict[int, List[RowValidationError]] = {raw.row_number: [] for raw in raw_rows}
        normalized_rows: Dict[int, ProspectRow] = {}

        for raw in raw_rows:
            field_errors, normalized = self._validate_fields(raw)
            errors_by_row[raw.row_number].extend(field_errors)
            if normalized is not None:
                normalized_rows[raw.row_number] = normalized

        for error in self._detect_upload_duplicates(raw_rows):
            errors_by_row[error.row_number].append(error)

        if check_persisted and self.prospect_lookup is not None:
            persisted_errors = await self._detect_persisted_duplicates(raw_rows, organisation_id, campaign_id)
            for error in persisted_errors:
                errors_by_row[error.row_number].append(error)
        elif check_persisted:
            logger.debug("No prospect lookup configured, skipping persisted duplicate check")

        errors: List[RowValidationError] = []
        valid_rows: List[ProspectRow] = []
        invalid_rows: List[RawProspectRow] = []
        for raw in sorted(raw_rows, key=lambda r: r.row_number):
            row_errors = errors_by_row[raw.row_number]
            if row_errors:
                errors.extend(row_errors)
                invalid_rows.append(raw)
            else:
                valid_rows.append(normalized_rows[raw.row_number])

        duplicate_count = sum(1 for error in errors if error.is_duplicate)
        result = ValidationResult(
            valid_count=len(valid_rows),
            invalid_count=len(invalid_rows),
            total_error_count=len(errors),
            duplicate_count=duplicate_count,
            errors=errors,
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
        )

        duration = time.monotonic() - start_time
        logger.info(
            f"Data validation complete: {result.valid_count} valid, {result.invalid_count} invalid, "
            f"{result.total_error_count} errors ({duplicate_count} duplicates), {duration:.3f}s"
        )
        return result

    @staticmethod
    def _coerce_row(row: RowInput, position: int) -> RawProspectRow:
        if isinstance(row, RawProspectRow):
            return row
        return RawProspectRow.from_mapping(row, position)

    def _validate_fields(self, raw: RawProspectRow):
        """Check every field independently; returns the errors and, if none, the normalized row."""
        errors: List[RowValidationError] = []

        def fail(field_name: str, error_type: ErrorType, message: str, value: str) -> None:
            errors.append(RowValidationError(
                row_number=raw.row_number,
                field=field_name,
                error_type=error_type,
                message=message,
                original_value=value,
            ))

        company_name = raw.company_name.strip()
        if not company_name:
            fail("company_name", ErrorType.COMPANY_NAME_REQUIRED, "Company name is required", raw.company_name)
        elif len(company_name) > self.company_name_max_length:
            fail(
                "company_name",
                ErrorType.COMPANY_NAME_TOO_LONG,
                f"Company name cannot exceed {self.company_name_max_length} characters",
                raw.company_name,
            )
        elif not any(ch.isalpha() for ch in company_name):
            fail(
                "company_name",
                ErrorType.COMPANY_NAME_INVALID,
                "Company name must contain at least one letter",
                raw.company_name,
            )

        contact_email = raw.contact_email.strip()
        email_valid, email_error = validate_email(contact_email)
        if not email_valid:
            logger.debug(f"Row {raw.row_number}: invalid email {contact_email!r}: {email_error}")
            fail("contact_email", ErrorType.INVALID_EMAIL_FORMAT, "Invalid email format", raw.contact_email)

        website_url = None
        if raw.website_url.strip():
            url_valid, website_url, url_error = validate_url(raw.website_url)
            if not url_valid:
                fail(
                    "website_url",
                    ErrorType.INVALID_URL_FORMAT,
                    f"Invalid URL format or protocol: {url_error}",
                    raw.website_url,
                )

        contact_name = raw.contact_name.strip() or None
        if contact_name and len(contact_name) > self.contact_name_max_length:
            fail(
                "contact_name",
                ErrorType.CONTACT_NAME_TOO_LONG,
                f"Contact name cannot exceed {self.contact_name_max_length} characters",
                raw.contact_name,
            )

        if errors:
            return errors, None

        return errors, ProspectRow(
            row_number=raw.row_number,
            company_name=company_name,
            contact_email=contact_email,
            contact_name=contact_name,
            website_url=website_url,
        )

    def _detect_upload_duplicates(self, rows: Sequence[RawProspectRow]) -> List[RowValidationError]:
        """Flag every row whose normalized email was already introduced by an earlier row."""
        first_seen: Dict[str, int] = {}
        duplicates: List[RowValidationError] = []

        for raw in sorted(rows, key=lambda r: r.row_number):
            normalized = normalize_email(raw.contact_email)
            if not normalized:
                continue

            first_row = first_seen.get(normalized)
            if first_row is None:
                first_seen[normalized] = raw.row_number
                continue

            duplicates.append(RowValidationError(
                row_number=raw.row_number,
                field="contact_email",
                error_type=ErrorType.DUPLICATE_EMAIL,
                message=f"Duplicate email ({raw.contact_email}). First occurrence at row {first_row}.",
                original_value=raw.contact_email,
                metadata=ErrorMetadata(first_occurrence_row=first_row, duplicate_of=normalized),
            ))

        logger.info(
            f"Duplicate detection complete: {len(duplicates)} duplicates, {len(first_seen)} unique emails"
        )
        return duplicates

    async def _detect_persisted_duplicates(
        self,
        rows: Sequence[RawProspectRow],
        organisation_id: str,
        campaign_id: Optional[str],
    ) -> List[RowValidationError]:
        """Flag every row whose normalized email already exists for the organisation."""
        emails: List[str] = []
        seen = set()
        for raw in rows:
            normalized = normalize_email(raw.contact_email)
            if normalized and normalized not in seen:
                seen.add(normalized)
                emails.append(normalized)

        if not emails:
            return []

        existing: Dict[str, PersistedProspectMatch] = {}
        for offset in range(0, len(emails), self.lookup_chunk_size):
            chunk = emails[offset:offset + self.lookup_chunk_size]
            matches = await self.prospect_lookup.find_existing_by_emails(chunk, organisation_id, campaign_id)
            for match in matches:
                existing.setdefault(normalize_email(match.email), match)

        duplicates: List[RowValidationError] = []
        for raw in sorted(rows, key=lambda r: r.row_number):
            normalized = normalize_email(raw.contact_email)
            match = existing.get(normalized)
            if match is None:
                continue

            where = f"campaign '{match.campaign_name}'" if match.campaign_name else f"campaign {match.campaign_id}"
            duplicates.append(RowValidationError(
                row_number=raw.row_number,
                field="contact_email",
                error_type=ErrorType.DUPLICATE_EMAIL,
                message=f"Email ({raw.contact_email}) already exists in {where}.",
                original_value=raw.contact_email,
                metadata=ErrorMetadata(
                    duplicate_of=normalized,
                    existing_prospect_id=match.id,
                    existing_campaign_id=match.campaign_id,
                    existing_campaign_name=match.campaign_name,
                ),
            ))

        logger.info(
            f"Persisted duplicate check: {len(existing)} of {len(emails)} emails already exist "
            f"for organisation {organisation_id}"
        )
        return duplicates
