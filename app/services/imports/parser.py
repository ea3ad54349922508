"""
CSV parser service for the prospect import pipeline.

Turns raw upload bytes into normalized headers and string-only rows. Bad rows
are collected as parse issues instead of aborting; only oversized input,
timeouts and an unreadable header fail the whole parse.
"""
import asyncio
import csv
import io
import logging
import time
from pathlib import PurePath
from typing import Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.exceptions import ParseError
from app.schemas.prospect import ParsedCsv, ParseIssue, ParseIssueCode

logger = logging.getLogger("prospectr.imports.parser")

_UTF8_BOM = b"\xef\xbb\xbf"


class CSVParserConfig:
    """Configuration for CSV parser behavior."""

    # CSV parsing settings
    ALLOWED_DELIMITERS = [',', ';', '\t', '|']
    DEFAULT_DELIMITER = ','
    ENCODING_FALLBACKS = ['utf-8', 'cp1252', 'latin-1']
    ALLOWED_EXTENSIONS = {'.csv', '.txt'}
    SNIFF_SAMPLE_SIZE = 8192

    # Rows between deadline checks
    DEADLINE_CHECK_INTERVAL = 500


class CsvParser:
    """
    Tolerant CSV parser for prospect uploads.

    Every value stays a string so the validators can apply exact rules.
    """

    def __init__(
        self,
        max_file_size: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the CSV parser.

        Args:
            max_file_size: Hard size ceiling in bytes (defaults to settings)
            timeout_seconds: Wall-clock parse budget (defaults to settings)
        """
        self.config = CSVParserConfig()
        self.max_file_size = max_file_size if max_file_size is not None else settings.IMPORT_MAX_FILE_SIZE
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.IMPORT_PARSE_TIMEOUT_SECONDS
        )

    async def parse(self, content: bytes, filename: Optional[str] = None) -> ParsedCsv:
        """
        Parse an uploaded CSV file.

        Size and file type are checked before anything is decoded. The parse
        itself runs in a worker thread and is abandoned once the timeout
        elapses.

        Args:
            content: Raw upload bytes
            filename: Declared filename, used for the extension check

        Returns:
            ParsedCsv: Headers, rows and collected row-level issues

        Raises:
            ParseError: Oversized input, unsupported type, timeout, or an
                unrecoverable structure such as a missing header row
        """
        self.check_upload(content, filename)

        start_time = time.monotonic()
        deadline = start_time + self.timeout_seconds

        try:
            parsed = await asyncio.wait_for(
                asyncio.to_thread(self._parse_sync, content, deadline),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"CSV parsing timed out after {self.timeout_seconds}s ({filename or 'upload'})")
            raise self._timeout_error()

        duration = time.monotonic() - start_time
        logger.info(
            f"CSV parsing complete for {filename or 'upload'}: {parsed.row_count} rows, "
            f"{len(parsed.headers)} columns, {len(parsed.parse_errors)} issues, "
            f"delimiter {parsed.delimiter!r}, {duration:.3f}s"
        )
        return parsed

    def check_upload(self, content: bytes, filename: Optional[str] = None) -> None:
        """Reject oversized or unsupported uploads without reading any rows."""
        file_size = len(content)
        if file_size > self.max_file_size:
            logger.warning(f"File size {file_size:,} exceeds limit {self.max_file_size:,}")
            raise ParseError(
                f"File size {file_size:,} bytes exceeds maximum allowed size "
                f"of {self.max_file_size // (1024 * 1024)}MB",
                code="FILE_TOO_LARGE",
                details={"file_size": file_size, "max_file_size": self.max_file_size},
            )

        if filename:
            extension = PurePath(filename).suffix.lower()
            if extension not in self.config.ALLOWED_EXTENSIONS:
                raise ParseError(
                    f"Unsupported file type '{extension or filename}'. Upload a .csv file",
                    code="UNSUPPORTED_FILE_TYPE",
                    details={"filename": filename},
                )

    def _timeout_error(self) -> ParseError:
        return ParseError(
            f"CSV parsing timed out after {self.timeout_seconds:g} seconds",
            code="PARSE_TIMEOUT",
            details={"timeout_seconds": self.timeout_seconds},
        )

    def _parse_sync(self, content: bytes, deadline: float) -> ParsedCsv:
        """Blocking parse, run off the event loop."""
        text, encoding = self._decode(content)
        if not text.strip():
            raise ParseError("CSV file is empty", code="MALFORMED_CSV")

        delimiter = self._detect_delimiter(text)
        reader = csv.reader(
            io.StringIO(text, newline=""),
            delimiter=delimiter,
            quotechar='"',
            doublequote=True,
            strict=True,
        )

        headers = self._read_headers(reader)
        width = len(headers)

        rows: List[Dict[str, str]] = []
        issues: List[ParseIssue] = []
        record_index = 0

        while True:
            if record_index % self.config.DEADLINE_CHECK_INTERVAL == 0 and time.monotonic() >= deadline:
                raise self._timeout_error()
            record_index += 1

            try:
                record = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                issues.append(ParseIssue(
                    code=ParseIssueCode.MALFORMED_ROW,
                    message=f"Malformed row: {e}",
                    # Skipped records get no data row number
                    row=None,
                    line=reader.line_num,
                ))
                logger.debug(f"Skipping malformed row near line {reader.line_num}: {e}")
                continue

            if self._is_blank(record):
                continue

            row_number = len(rows) + 1
            if len(record) < width:
                issues.append(ParseIssue(
                    code=ParseIssueCode.TOO_FEW_FIELDS,
                    message=f"Too few fields: expected {width}, found {len(record)}",
                    row=row_number,
                    line=reader.line_num,
                ))
                record = record + [""] * (width - len(record))
            elif len(record) > width:
                issues.append(ParseIssue(
                    code=ParseIssueCode.TOO_MANY_FIELDS,
                    message=f"Too many fields: expected {width}, found {len(record)}",
                    row=row_number,
                    line=reader.line_num,
                ))
                record = record[:width]

            rows.append(dict(zip(headers, record)))

        return ParsedCsv(
            headers=tuple(headers),
            rows=tuple(rows),
            parse_errors=tuple(issues),
            delimiter=delimiter,
            encoding=encoding,
        )

    def _decode(self, content: bytes) -> Tuple[str, str]:
        """Strip a UTF-8 BOM and decode with the first encoding that works."""
        if content.startswith(_UTF8_BOM):
            content = content[len(_UTF8_BOM):]
            logger.debug("Removed BOM from CSV content")

        for encoding in self.config.ENCODING_FALLBACKS:
            try:
                return content.decode(encoding), encoding
            except UnicodeDecodeError:
                continue

        # latin-1 maps every byte, so this is only reached if the fallbacks change
        raise ParseError("Could not decode file", code="MALFORMED_CSV")

    def _detect_delimiter(self, text: str) -> str:
        """Detect the CSV delimiter from a sample, defaulting to a comma."""
        sample = text[:self.config.SNIFF_SAMPLE_SIZE]
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=''.join(self.config.ALLOWED_DELIMITERS))
            return dialect.delimiter
        except csv.Error:
            return self._count_delimiter(sample)

    def _count_delimiter(self, sample: str) -> str:
        """Pick the allowed delimiter that occurs most in the first line."""
        first_line = sample.splitlines()[0] if sample else ""
        counts = {d: first_line.count(d) for d in self.config.ALLOWED_DELIMITERS}
        best = max(self.config.ALLOWED_DELIMITERS, key=lambda d: counts[d])
        return best if counts[best] > 0 else self.config.DEFAULT_DELIMITER

    def _read_headers(self, reader) -> List[str]:
        """Read the first non-blank record and normalize it into unique headers."""
        while True:
            try:
                record = next(reader)
            except StopIteration:
                raise ParseError("CSV file has no header row", code="MALFORMED_CSV")
            except csv.Error as e:
                raise ParseError(f"CSV header row is malformed: {e}", code="MALFORMED_CSV")
            if not self._is_blank(record):
                break

        headers: List[str] = []
        seen: Dict[str, int] = {}
        for index, raw in enumerate(record):
            header = raw.strip().lower() or f"column_{index + 1}"
            if header in seen:
                seen[header] += 1
                header = f"{header}_{seen[header]}"
            else:
                seen[header] = 0
            headers.append(header)

        logger.debug(f"Detected CSV headers: {headers}")
        return headers

    @staticmethod
    def _is_blank(record: List[str]) -> bool:
        return not record or (len(record) == 1 and not record[0].strip())
