import ipaddress
from urllib.parse import urlparse
from typing import Tuple

from app.platform.exceptions import InvalidURLError


def normalize_url(url: str) -> Tuple[str, bool]:

    url = url.strip()

    parsed = urlparse(url)

    if not parsed.scheme:
        normalized = f"https://{url}"
        return normalized, True

    return url, False


def is_private_host(hostname: str) -> bool:
    """True for localhost, loopback and RFC 1918 / link-local addresses."""
    hostname = (hostname or "").lower().strip("[]")
    if hostname == "localhost" or hostname.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def validate_url(url: str, block_private: bool = False) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url, was_modified = normalize_url(url)

    try:
        parsed = urlparse(normalized_url)

        if parsed.scheme not in ['http', 'https']:
            return False, normalized_url, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"

        if not parsed.netloc:
            return False, normalized_url, "Invalid URL format: missing domain"

        if block_private and is_private_host(parsed.hostname or ""):
            return False, normalized_url, "Private IP addresses are not allowed"

        return True, normalized_url, ""

    except Exception as e:
        return False, normalized_url, f"URL parsing error: {str(e)}"


def ensure_valid_url(url: str, block_private: bool = False) -> str:
    """Normalized ``url``, or InvalidURLError with a code naming the problem."""
    is_valid, normalized_url, error = validate_url(url, block_private=block_private)
    if is_valid:
        return normalized_url

    if error.startswith("Invalid URL scheme"):
        code = "INVALID_PROTOCOL"
    elif error.startswith("Private IP"):
        code = "PRIVATE_IP_BLOCKED"
    else:
        code = "INVALID_URL"
    raise InvalidURLError(error, code=code, details={"url": url})
