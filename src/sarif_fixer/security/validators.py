"""
Input Validators - checks on completion-service settings, applied when a
profile is built (pydantic field validators) rather than at request time.

Endpoints are user-supplied URLs that receive source code and an API key,
and deployment names are spliced into the request path, so both are checked
before anything is sent.
"""

import ipaddress
import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_URL_SCHEMES = ("http", "https")
BLOCKED_HOSTNAMES = frozenset({"metadata.google.internal", "metadata.azure.internal"})

_PATH_SEGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class ValidationError(ValueError):
    """A configuration value was rejected. The message names the field."""

    pass


def validate_not_empty(value: str, field_name: str = "input") -> str:
    """Return `value` stripped; reject None, empty and whitespace-only strings."""
    stripped = (value or "").strip()
    if not stripped:
        raise ValidationError(f"{field_name} cannot be empty")
    return stripped


def validate_path_segment(value: str, field_name: str = "value") -> str:
    """
    Accept a value that is safe as a single URL path segment (deployment
    names, API versions): letters, digits, dot, dash and underscore.
    """
    stripped = validate_not_empty(value, field_name)
    if not _PATH_SEGMENT_RE.match(stripped):
        raise ValidationError(
            f"{field_name} may only contain letters, digits, '.', '-' and '_' (got {stripped!r})"
        )
    return stripped


def _is_metadata_host(hostname: str) -> bool:
    if hostname.lower() in BLOCKED_HOSTNAMES:
        return True
    try:
        return ipaddress.ip_address(hostname).is_link_local
    except ValueError:
        return False


def validate_url(url: str, field_name: str = "url") -> str:
    """
    Validate a completion-service endpoint URL and return it stripped.

    Rejected: empty values, schemes other than http/https, URLs without a
    host, cloud metadata hosts and link-local addresses (169.254.x.x).
    Loopback and private hosts are accepted; self-hosted gateways live there.
    """
    candidate = validate_not_empty(url, field_name)
    parsed = urlparse(candidate)

    if parsed.scheme not in ALLOWED_URL_SCHEMES:
        raise ValidationError(f"{field_name} must be an http(s) URL (got scheme {parsed.scheme!r})")
    if not parsed.hostname:
        raise ValidationError(f"{field_name} has no host: {candidate!r}")
    if _is_metadata_host(parsed.hostname):
        raise ValidationError(f"{field_name} points at a metadata address ({parsed.hostname})")

    logger.debug(f"[Validators] {field_name} accepted: {parsed.scheme}://{parsed.hostname}")
    return candidate
