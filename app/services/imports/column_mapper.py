"""
Column mapping service for prospect uploads.

Suggests which uploaded header feeds which canonical prospect field and
checks that the required fields are covered.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from app.core.exceptions import MappingError
from app.schemas.prospect import (
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
    ColumnMapping,
    ColumnValidationResult,
    RawProspectRow,
)

logger = logging.getLogger("prospectr.imports.columns")

# Declaration order breaks ties between fields
DEFAULT_COLUMN_ALIASES: Dict[str, List[str]] = {
    "company_name": ["company", "nom_entreprise", "enterprise", "organization", "société", "societe"],
    "contact_email": ["email", "mail", "e-mail", "email_address", "contact_mail", "courriel"],
    "contact_name": ["name", "nom", "contact", "person", "full_name", "fullname", "prénom", "prenom"],
    "website_url": ["website", "url", "site", "web", "site_web", "siteweb"],
}


class ColumnMapper:
    """
    Greedy alias-table column mapper.

    Exact matches against a canonical name or alias are ``high`` confidence,
    substring matches in either direction are ``medium``, anything else is
    left unmapped with ``low`` confidence.
    """

    def __init__(self, extra_aliases: Optional[Mapping[str, Iterable[str]]] = None):
        """
        Initialize the mapper.

        Args:
            extra_aliases: Additional aliases per canonical field, appended
                after the built-in ones
        """
        self.aliases: Dict[str, List[str]] = {
            name: list(aliases) for name, aliases in DEFAULT_COLUMN_ALIASES.items()
        }
        for name, aliases in (extra_aliases or {}).items():
            if name not in self.aliases:
                raise ValueError(f"Unknown canonical field: {name}")
            self.aliases[name].extend(alias.strip().lower() for alias in aliases)

    def required_columns(self) -> List[str]:
        return list(REQUIRED_FIELDS)

    def optional_columns(self) -> List[str]:
        return list(OPTIONAL_FIELDS)

    def suggest_mappings(self, headers: Sequence[str]) -> List[ColumnMapping]:
        """
        Suggest a canonical field for each detected header.

        Args:
            headers: Header names as detected in the upload

        Returns:
            List[ColumnMapping]: One mapping per header, in header order
        """
        logger.debug(f"Suggesting column mappings for {list(headers)}")

        mappings = [self._suggest(header) for header in headers]

        tiers = {"high": 0, "medium": 0, "low": 0}
        for mapping in mappings:
            tiers[mapping.confidence] += 1
        logger.info(
            f"Column mappings suggested for {len(headers)} columns: "
            f"{tiers['high']} high, {tiers['medium']} medium, {tiers['low']} low"
        )
        return mappings

    def _suggest(self, header: str) -> ColumnMapping:
        normalized = header.strip().lower()

        for field_name, aliases in self.aliases.items():
            if normalized == field_name or normalized in aliases:
                return ColumnMapping(
                    detected=header,
                    suggested=field_name,
                    confidence="high",
                    required=field_name in REQUIRED_FIELDS,
                )

        # An empty header would be a substring of everything
        if normalized:
            for field_name, aliases in self.aliases.items():
                for candidate in [field_name, *aliases]:
                    if candidate in normalized or normalized in candidate:
                        return ColumnMapping(
                            detected=header,
                            suggested=field_name,
                            confidence="medium",
                            required=field_name in REQUIRED_FIELDS,
                        )

        return ColumnMapping(detected=header, suggested="", confidence="low", required=False)

    def validate_required_columns(self, mappings: Sequence[ColumnMapping]) -> ColumnValidationResult:
        """
        Check that every required canonical field is covered by some mapping.

        Args:
            mappings: Column mappings, typically from suggest_mappings

        Returns:
            ColumnValidationResult: valid flag and missing required fields
        """
        mapped = {mapping.suggested for mapping in mappings if mapping.suggested}
        missing = [name for name in REQUIRED_FIELDS if name not in mapped]

        if missing:
            logger.warning(f"Required columns missing: {missing} (mapped: {sorted(mapped)})")
        else:
            logger.debug(f"All required columns present: {sorted(mapped)}")

        return ColumnValidationResult(valid=not missing, missing=missing)

    @staticmethod
    def to_column_map(mappings: Sequence[ColumnMapping]) -> Dict[str, str]:
        """Collapse mappings into a detected-header to canonical-field map, dropping unmapped headers."""
        return {mapping.detected: mapping.suggested for mapping in mappings if mapping.suggested}

    def validate_column_map(self, column_map: Mapping[str, str]) -> Dict[str, str]:
        """
        Check a user-confirmed column map and normalize its header keys.

        Args:
            column_map: Detected header to canonical field; empty targets
                mean the column is ignored

        Returns:
            Dict[str, str]: The map with trimmed, lowercased header keys and
                ignored columns dropped

        Raises:
            MappingError: If a target is not a canonical field or a required
                field is left unmapped
        """
        canonical = set(REQUIRED_FIELDS) | set(OPTIONAL_FIELDS)
        unknown = sorted({target for target in column_map.values() if target and target not in canonical})
        if unknown:
            raise MappingError(
                f"Unknown target fields: {', '.join(unknown)}",
                details={"unknown": unknown},
            )

        missing = [name for name in REQUIRED_FIELDS if name not in column_map.values()]
        if missing:
            raise MappingError(
                f"Required columns are not mapped: {', '.join(missing)}",
                details={"missing": missing},
            )

        return {source.strip().lower(): target for source, target in column_map.items() if target}

    def apply_mappings(
        self,
        rows: Sequence[Mapping[str, str]],
        column_map: Mapping[str, str],
    ) -> List[RawProspectRow]:
        """
        Project parsed rows onto the canonical row shape.

        Args:
            rows: Parsed rows keyed by normalized header
            column_map: Detected header to canonical field

        Returns:
            List[RawProspectRow]: One raw row per input row, numbered from 1

        Raises:
            MappingError: If the column map is invalid
        """
        normalized_map = self.validate_column_map(column_map)

        raw_rows = []
        for index, row in enumerate(rows, start=1):
            values: Dict[str, str] = {}
            for source, target in normalized_map.items():
                # First mapped column wins when two headers target the same field
                if target not in values:
                    values[target] = row.get(source, "")
            raw_rows.append(RawProspectRow.from_mapping(values, index))

        logger.debug(f"Applied column map {normalized_map} to {len(raw_rows)} rows")
        return raw_rows
