"""
Website URL validation and normalization utilities.
"""
import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

_SCHEME_RGX = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")
_LABEL_RGX = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_IPV4_RGX = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


class URLValidationError(Exception):
    """Exception raised when a URL cannot be normalized."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)


def _is_valid_hostname(hostname: str) -> bool:
    """Check a lowercased hostname: IPv4 or dotted DNS labels ending in a TLD."""
    if _IPV4_RGX.match(hostname):
        return all(int(part) <= 255 for part in hostname.split("."))

    try:
        ascii_host = hostname.encode("idna").decode("ascii")
    except UnicodeError:
        return False

    labels = ascii_host.rstrip(".").split(".")
    if len(labels) < 2:
        return False
    if not all(_LABEL_RGX.match(label) for label in labels):
        return False
    # TLDs are never purely numeric
    return not labels[-1].isdigit()


def normalize_url(url: Optional[str]) -> str:
    """
    Normalize a website URL.

    - Adds https:// when no scheme is present
    - Only http and https are accepted
    - Lowercases the scheme and host, drops credentials and default ports
    - Strips trailing slashes from the path, keeps query and fragment

    Args:
        url: Raw URL

    Returns:
        str: Normalized URL

    Raises:
        URLValidationError: If the URL is empty, malformed, or not http(s)
    """
    if not url or not isinstance(url, str):
        raise URLValidationError("URL must be a non-empty string", url)

    candidate = url.strip()
    if not candidate:
        raise URLValidationError("URL cannot be empty", url)

    if any(ch.isspace() for ch in candidate):
        raise URLValidationError(f"Invalid URL format: {url}", url)

    if not _SCHEME_RGX.match(candidate):
        candidate = f"https://{candidate}"

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError:
        raise URLValidationError(f"Invalid URL format: {url}", url)

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise URLValidationError(
            f"Invalid protocol: {scheme}:. Only http:// and https:// are allowed", url
        )

    hostname = parts.hostname or ""
    if not _is_valid_hostname(hostname):
        raise URLValidationError(f"Invalid URL format: {url}", url)

    normalized = f"{scheme}://{hostname}"
    if port is not None and port != DEFAULT_PORTS[scheme]:
        normalized += f":{port}"

    path = parts.path.rstrip("/")
    if path:
        normalized += path
    if parts.query:
        normalized += f"?{parts.query}"
    if parts.fragment:
        normalized += f"#{parts.fragment}"

    return normalized


def validate_url(url: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate and normalize a website URL.

    Args:
        url: URL to validate

    Returns:
        Tuple[bool, str, str]: (is_valid, normalized_url, error_message)
    """
    try:
        return True, normalize_url(url), None
    except URLValidationError as e:
        return False, None, e.message
