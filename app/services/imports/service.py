# app/services/imports/service.py
"""
Prospect import workflow.

Drives an upload through its steps: store the file, suggest column mappings,
confirm a mapping, validate the rows, then import them or export the errors.
Every step re-reads the stored file, so no parsed state is kept between
requests.
"""
import logging
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.db.repositories.campaigns import CampaignRepository
from app.db.repositories.prospects import ProspectRepository
from app.db.repositories.uploads import ProspectUploadRepository
from app.db.session import get_session
from app.models.prospect_upload import ProspectUpload
from app.schemas.prospect import ValidationResult
from app.schemas.upload import (
    ColumnDetectionResponse,
    ImportResponse,
    ParsePreviewResponse,
    UploadResponse,
)
from app.services.imports.column_mapper import ColumnMapper
from app.services.imports.error_export import ErrorExporter
from app.services.imports.executor import ImportExecutor
from app.services.imports.parser import CsvParser
from app.services.imports.validator import ProspectLookup, ProspectValidator

logger = logging.getLogger("prospectr.imports.service")


class ProspectImportService:
    """
    Multi-step prospect upload workflow for one organisation at a time.

    All collaborators are passed in; each call opens its own session from the
    injected factory.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        parser: Optional[CsvParser] = None,
        mapper: Optional[ColumnMapper] = None,
        validator_factory: Callable[[ProspectLookup], ProspectValidator] = ProspectValidator,
        executor: Optional[ImportExecutor] = None,
        exporter: Optional[ErrorExporter] = None,
        preview_rows: Optional[int] = None,
    ):
        """
        Initialize the workflow.

        Args:
            session_factory: Session factory for upload, campaign and prospect storage
            parser: CSV parser
            mapper: Column mapper
            validator_factory: Builds a validator around a session-bound prospect lookup
            executor: Import executor (defaults to one on the same session factory)
            exporter: Error report exporter
            preview_rows: Rows returned by parse_with_mappings
        """
        self.session_factory = session_factory
        self.parser = parser or CsvParser()
        self.mapper = mapper or ColumnMapper()
        self.validator_factory = validator_factory
        self.executor = executor or ImportExecutor(session_factory)
        self.exporter = exporter or ErrorExporter()
        self.preview_rows = preview_rows if preview_rows is not None else settings.IMPORT_PREVIEW_ROWS

    async def handle_upload(
        self,
        campaign_id: str,
        organisation_id: str,
        filename: str,
        content: bytes,
    ) -> UploadResponse:
        """
        Store an uploaded file for a campaign the organisation owns.

        Raises:
            NotFoundError: If the campaign is missing or belongs to another organisation
            ParseError: If the file is too large, of the wrong type, or unreadable
        """
        logger.info(f"Handling CSV upload {filename!r} for campaign {campaign_id}, organisation {organisation_id}")

        async with get_session(self.session_factory) as session:
            campaign = await CampaignRepository(session).find_by_id_and_org(campaign_id, organisation_id)
            if campaign is None:
                logger.warning(f"Campaign {campaign_id} not found or access denied for {organisation_id}")
                raise NotFoundError("Campaign not found", details={"campaign_id": campaign_id})

            parsed = await self.parser.parse(content, filename)

            upload = await ProspectUploadRepository(session).create(obj_in={
                "organisation_id": organisation_id,
                "campaign_id": campaign_id,
                "filename": filename,
                "file_size": len(content),
                "file_content": content,
                "row_count": parsed.row_count,
            })

        logger.info(f"CSV upload {upload.id} stored: {parsed.row_count} rows")
        return UploadResponse(
            upload_id=upload.id,
            campaign_id=campaign_id,
            filename=filename,
            file_size=len(content),
            row_count=parsed.row_count,
            uploaded_at=upload.uploaded_at,
        )

    def generate_template(self) -> str:
        return self.exporter.generate_template_csv()

    async def get_column_mappings(self, upload_id: str, organisation_id: str) -> ColumnDetectionResponse:
        """
        Detect the upload's headers and suggest a mapping for each.

        Raises:
            NotFoundError: If the upload does not exist for the organisation
            ValidationError: If the file has malformed rows or no data rows
        """
        async with get_session(self.session_factory) as session:
            uploads = ProspectUploadRepository(session)
            upload = await self._get_upload(uploads, upload_id, organisation_id)

            if upload.detected_columns:
                headers = list(upload.detected_columns)
                logger.debug(f"Returning cached columns for upload {upload_id}")
            else:
                parsed = await self.parser.parse(upload.file_content, upload.filename)
                if parsed.has_errors:
                    logger.warning(f"Upload {upload_id} has {len(parsed.parse_errors)} parse errors")
                    raise ValidationError(
                        "CSV file format is invalid. Please check for unclosed quotes "
                        "or inconsistent column counts.",
                        details={"parse_errors": [issue.dict() for issue in parsed.parse_errors]},
                    )
                if parsed.row_count == 0:
                    raise ValidationError("CSV file contains no data rows")

                headers = list(parsed.headers)
                await uploads.save_detected_columns(upload, headers)

        mappings = self.mapper.suggest_mappings(headers)
        return ColumnDetectionResponse(
            upload_id=upload_id,
            detected_columns=headers,
            suggested_mappings=mappings,
            validation=self.mapper.validate_required_columns(mappings),
        )

    async def parse_with_mappings(
        self,
        upload_id: str,
        organisation_id: str,
        column_map: Dict[str, str],
    ) -> ParsePreviewResponse:
        """
        Store a confirmed column mapping and preview the mapped rows.

        Parse issues are returned instead of a preview, and the mapping is
        not stored in that case.

        Raises:
            NotFoundError: If the upload does not exist for the organisation
            MappingError: If a required field is not mapped
        """
        normalized_map = self.mapper.validate_column_map(column_map)

        async with get_session(self.session_factory) as session:
            uploads = ProspectUploadRepository(session)
            upload = await self._get_upload(uploads, upload_id, organisation_id)

            parsed = await self.parser.parse(upload.file_content, upload.filename)
            if parsed.has_errors:
                logger.warning(f"Upload {upload_id} has {len(parsed.parse_errors)} parse errors")
                return ParsePreviewResponse(
                    upload_id=upload_id,
                    row_count=0,
                    columns_mapped=list(normalized_map.values()),
                    preview=[],
                    parse_errors=[issue.dict() for issue in parsed.parse_errors],
                )

            raw_rows = self.mapper.apply_mappings(parsed.rows, normalized_map)
            await uploads.save_column_mappings(upload, normalized_map, parsed.row_count)

        logger.info(f"Upload {upload_id} mapped: {parsed.row_count} rows")
        return ParsePreviewResponse(
            upload_id=upload_id,
            row_count=parsed.row_count,
            columns_mapped=list(normalized_map.values()),
            preview=raw_rows[:self.preview_rows],
        )

    async def validate_upload(
        self,
        upload_id: str,
        organisation_id: str,
        override_duplicates: bool = False,
    ) -> ValidationResult:
        """
        Validate the mapped rows of an upload.

        Args:
            upload_id: Upload ID
            organisation_id: Tenant scope
            override_duplicates: Skip the check against existing prospects

        Raises:
            NotFoundError: If the upload does not exist for the organisation
            ValidationError: If no mapping is stored or the file has parse errors
        """
        result, _ = await self._validate(upload_id, organisation_id, override_duplicates)
        return result

    async def import_upload(
        self,
        upload_id: str,
        organisation_id: str,
        override_duplicates: bool = False,
    ) -> ImportResponse:
        """
        Validate an upload, then import its clean rows as one batch.

        Raises:
            ProspectImportError: If the batch insert fails; nothing is imported
        """
        result, campaign_id = await self._validate(upload_id, organisation_id, override_duplicates)
        summary = await self.executor.import_valid_prospects(result, campaign_id, organisation_id)

        logger.info(f"Upload {upload_id} imported: {summary.imported} of {result.total_rows} rows")
        return ImportResponse(
            upload_id=upload_id,
            campaign_id=campaign_id,
            summary=summary,
            skipped_count=result.total_rows - summary.imported,
        )

    async def export_errors(
        self,
        upload_id: str,
        organisation_id: str,
        override_duplicates: bool = False,
    ) -> str:
        """Validate an upload and render its invalid rows as CSV."""
        result, _ = await self._validate(upload_id, organisation_id, override_duplicates)
        return self.exporter.generate_error_csv(result)

    async def delete_upload(self, upload_id: str, organisation_id: str) -> None:
        """
        Delete a stored upload.

        Raises:
            NotFoundError: If the upload does not exist for the organisation
        """
        async with get_session(self.session_factory) as session:
            uploads = ProspectUploadRepository(session)
            upload = await self._get_upload(uploads, upload_id, organisation_id)
            await uploads.delete(upload)

    async def _validate(
        self,
        upload_id: str,
        organisation_id: str,
        override_duplicates: bool,
    ) -> Tuple[ValidationResult, str]:
        logger.info(
            f"Validating upload {upload_id} for organisation {organisation_id} "
            f"(override duplicates: {override_duplicates})"
        )

        # The session closes before any import opens its own transaction
        async with get_session(self.session_factory) as session:
            upload = await self._get_upload(ProspectUploadRepository(session), upload_id, organisation_id)

            if not upload.column_mappings:
                logger.warning(f"Column mappings not set for upload {upload_id}")
                raise ValidationError(
                    "Column mappings must be set before validating data. "
                    "Please complete the column mapping step first."
                )

            parsed = await self.parser.parse(upload.file_content, upload.filename)
            if parsed.has_errors:
                raise ValidationError(
                    "CSV file contains parsing errors",
                    details={"parse_errors": [issue.dict() for issue in parsed.parse_errors]},
                )

            raw_rows = self.mapper.apply_mappings(parsed.rows, upload.column_mappings)
            validator = self.validator_factory(ProspectRepository(session))

            # Duplicates are checked across all of the organisation's campaigns
            result = await validator.validate_rows(
                raw_rows,
                organisation_id,
                check_persisted=not override_duplicates,
            )

        return result, upload.campaign_id

    @staticmethod
    async def _get_upload(
        uploads: ProspectUploadRepository,
        upload_id: str,
        organisation_id: str,
    ) -> ProspectUpload:
        upload = await uploads.find_by_id_and_org(upload_id, organisation_id)
        if upload is None:
            logger.warning(f"Upload {upload_id} not found or access denied for {organisation_id}")
            raise NotFoundError("Upload not found", details={"upload_id": upload_id})
        return upload
