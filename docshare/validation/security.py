"""
Path and URL security predicates. Pure functions, no I/O.

Callers map a False result to a user-facing validation error.
"""

import re
from urllib.parse import urlsplit

_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

# 10.0.0.0/8, 172.16.0.0/12, 192.168.0.0/16
_PRIVATE_IPV4 = re.compile(r"^10\.|^172\.(1[6-9]|2[0-9]|3[01])\.|^192\.168\.")
_LINK_LOCAL_IPV4 = re.compile(r"^169\.254\.")
_LINK_LOCAL_IPV6 = re.compile(r"^fe[89ab][0-9a-f]:", re.IGNORECASE)


def validate_path_security(path_or_url: str) -> bool:
    """Reject directory traversal, null bytes and double-encoded traversal."""
    if "../" in path_or_url or "..\\" in path_or_url:
        return False
    if "\0" in path_or_url:
        return False
    if "%2E%2E" in path_or_url or "%2F%2F" in path_or_url:
        return False
    return True


def validate_url_ssrf_protection(url: str) -> bool:
    """Reject URLs that target loopback, private or link-local addresses."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return False

    if not parts.scheme or not hostname:
        return False

    if hostname in _LOOPBACK_HOSTS:
        return False
    if _PRIVATE_IPV4.match(hostname):
        return False
    if _LINK_LOCAL_IPV4.match(hostname):
        return False
    # fe80::/10; urlsplit strips the brackets
    if _LINK_LOCAL_IPV6.match(hostname):
        return False

    return True


def validate_url_security(url: str) -> bool:
    return validate_path_security(url) and validate_url_ssrf_protection(url)
