"""
Email address validation and normalization utilities.
"""
import logging
from typing import Optional, Tuple

from email_validator import EmailNotValidError, validate_email as _check_email_syntax

logger = logging.getLogger("prospectr.email")


def normalize_email(email: Optional[str]) -> str:
    """
    Normalize an email address for duplicate detection.

    Lowercases and trims. Missing values normalize to an empty string.
    The function is idempotent.

    Args:
        email: Raw email address

    Returns:
        str: Normalized email address
    """
    if not email:
        return ""
    return email.strip().lower()


def validate_email(email: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate an email address against a strict grammar.

    Rejects embedded whitespace and addresses without a top-level domain,
    and accepts Unicode local parts. No DNS lookups are made.

    Args:
        email: Email address to validate

    Returns:
        Tuple[bool, str]: (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email is required"

    trimmed = email.strip()
    if not trimmed:
        return False, "Email is required"

    if any(ch.isspace() for ch in trimmed):
        return False, "Email must not contain whitespace"

    try:
        _check_email_syntax(
            trimmed,
            allow_smtputf8=True,
            check_deliverability=False,
        )
    except EmailNotValidError as e:
        logger.debug(f"Rejected email {trimmed!r}: {e}")
        return False, str(e)

    return True, None


def is_valid_email(email: Optional[str]) -> bool:
    """
    Check if an email address is valid.

    Args:
        email: Email address to validate

    Returns:
        bool: True if valid, False otherwise
    """
    is_valid, _ = validate_email(email)
    return is_valid
