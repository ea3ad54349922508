"""
Error report export for prospect uploads.
"""
import csv
import io
import logging
from typing import Dict

from app.schemas.prospect import RowValidationError, ValidationResult

logger = logging.getLogger("prospectr.imports.export")

ERROR_CSV_COLUMNS = [
    "Row",
    "Company_Name",
    "Contact_Email",
    "Contact_Name",
    "Website_URL",
    "Error_Type",
    "Error_Reason",
]

TEMPLATE_CSV_COLUMNS = ["company_name", "contact_email", "contact_name", "website_url"]
TEMPLATE_CSV_EXAMPLE = ["Acme Corp", "sarah@acmecorp.com", "Sarah Johnson", "https://acmecorp.com"]


class ErrorExporter:
    """Renders the invalid rows of a validation result as a downloadable CSV."""

    def generate_error_csv(self, result: ValidationResult) -> str:
        """
        Build the error report.

        One line per invalid row, paired with the first error recorded for
        that row. A result without errors yields the header line alone.

        Args:
            result: Validation result to report on

        Returns:
            str: CSV text
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(ERROR_CSV_COLUMNS)

        if not result.errors:
            logger.warning("No errors to export")
            return buffer.getvalue()

        first_errors: Dict[int, RowValidationError] = {}
        for error in result.errors:
            first_errors.setdefault(error.row_number, error)

        for row in result.invalid_rows:
            error = first_errors.get(row.row_number)
            writer.writerow([
                row.row_number,
                row.company_name,
                row.contact_email,
                row.contact_name,
                row.website_url,
                error.error_type.value if error else "UNKNOWN",
                error.message if error else "Unknown error",
            ])

        logger.info(f"Error CSV generated: {len(result.invalid_rows)} rows, {len(result.errors)} errors")
        return buffer.getvalue()

    def generate_template_csv(self) -> str:
        """Import template: the expected header plus one example row."""
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(TEMPLATE_CSV_COLUMNS)
        writer.writerow(TEMPLATE_CSV_EXAMPLE)
        return buffer.getvalue()
