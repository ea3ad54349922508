"""
Custom exception classes for Prospectr Backend.
"""
from typing import Any, Dict, Optional


class ProspectrException(Exception):
    """Base exception class for Prospectr application."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(ProspectrException):
    """Raised when the request carries no usable organisation scope."""

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTHENTICATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=401, details=details)


class ValidationError(ProspectrException):
    """Raised for validation errors."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=422, details=details)


class NotFoundError(ProspectrException):
    """Raised when a resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = "NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=404, details=details)


class ParseError(ProspectrException):
    """
    Raised when an upload cannot be parsed at all.

    Codes: FILE_TOO_LARGE, UNSUPPORTED_FILE_TYPE, PARSE_TIMEOUT, MALFORMED_CSV.
    Row-level problems are never raised; they are collected on the parse result.
    """

    STATUS_CODES = {
        "FILE_TOO_LARGE": 413,
        "UNSUPPORTED_FILE_TYPE": 415,
    }

    def __init__(
        self,
        message: str = "File could not be parsed",
        code: str = "MALFORMED_CSV",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=self.STATUS_CODES.get(code, 422),
            details=details,
        )


class MappingError(ValidationError):
    """Raised when a column mapping leaves required prospect fields uncovered."""

    def __init__(
        self,
        message: str = "Required columns are not mapped",
        code: str = "MAPPING_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, details=details)


class DatabaseError(ProspectrException):
    """Raised when a storage operation fails."""

    def __init__(
        self,
        message: str = "Database error",
        code: str = "DATABASE_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message=message, code=code, status_code=status_code, details=details)


class ProspectImportError(DatabaseError):
    """Raised when the batch insert fails. The whole batch has been rolled back."""

    def __init__(
        self,
        message: str = "Failed to insert prospects",
        code: str = "IMPORT_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message=message, code=code, details=details, status_code=status_code)


class DuplicateProspectError(ProspectImportError):
    """Raised when the batch insert hits the per-campaign unique email constraint."""

    def __init__(
        self,
        message: str = "Prospect already exists in this campaign",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="DUPLICATE_PROSPECT",
            details=details,
            status_code=409,
        )
