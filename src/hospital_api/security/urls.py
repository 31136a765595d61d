# src/hospital_api/security/urls.py
"""URL and host allowlisting (SSRF defense)."""

from __future__ import annotations

import ipaddress
import logging
import re
from collections.abc import Iterable
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_HOSTS = ("localhost", "127.0.0.1")

ALLOWED_SCHEMES = {"http", "https"}
DEFAULT_PORTS = {"http": 80, "https": 443}

PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "::1/128",
    )
)
PRIVATE_HOSTNAMES = {"localhost"}

# Hosts made only of numeric/hex labels, e.g. 2130706433, 0x7f000001,
# 0177.0.0.1. Browsers and some resolvers turn these into IPv4 addresses.
NUMERIC_HOST_PATTERN = re.compile(
    r"(?:0x[0-9a-f]*|\d+)(?:\.(?:0x[0-9a-f]*|\d+)){0,3}\.?", re.IGNORECASE
)


def _normalize_hosts(allowed_hosts: Iterable[str]) -> list[str]:
    return [h.strip().lower() for h in allowed_hosts if h and h.strip()]


def is_host_allowed(hostname: str, allowed_hosts: Iterable[str]) -> bool:
    """Exact match or subdomain match (``*.allowed``) against the allowlist."""
    hostname = hostname.lower()
    return any(
        hostname == host or hostname.endswith(f".{host}")
        for host in _normalize_hosts(allowed_hosts)
    )


def is_private_host(hostname: str) -> bool:
    """True for loopback, RFC 1918, link-local and ``localhost`` hosts."""
    hostname = hostname.lower().rstrip(".")
    # RFC 6761: every name under .localhost resolves to loopback
    if hostname in PRIVATE_HOSTNAMES or hostname.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(
        address.version == net.version and address in net for net in PRIVATE_NETWORKS
    )


def is_obfuscated_host(hostname: str) -> bool:
    """Detect hostnames that encode an address in a non-canonical form.

    Covers integer, hex and octal IPv4 spellings, percent-encoding and
    non-ASCII hosts. Ordinary hostnames and dotted-quad addresses pass.
    """
    if not hostname.isascii() or "%" in hostname:
        return True
    if NUMERIC_HOST_PATTERN.fullmatch(hostname):
        try:
            ipaddress.IPv4Address(hostname)
        except ValueError:
            return True
    return False


def _canonical_href(scheme: str, hostname: str, port: int | None, parts) -> str:
    host = f"[{hostname}]" if ":" in hostname else hostname
    netloc = host if port in (None, DEFAULT_PORTS[scheme]) else f"{host}:{port}"
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def validate_url(
    url: object,
    allowed_hosts: Iterable[str] = DEFAULT_ALLOWED_HOSTS,
) -> str | None:
    """Validate a URL against a host allowlist and the private-address block.

    A private or loopback host passes only when that literal hostname is in
    the allowlist; matching it as a subdomain of an allowed host is not
    enough.

    Args:
        url: User- or config-supplied URL
        allowed_hosts: Hostnames that may be contacted

    Returns:
        Canonical URL string, or None if the URL is rejected
    """
    if not url or not isinstance(url, str):
        return None

    allowed = _normalize_hosts(allowed_hosts)

    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return None

    if scheme not in ALLOWED_SCHEMES or not hostname:
        return None

    # Credentials in the authority are a classic allowlist bypass
    if parts.username is not None or parts.password is not None:
        logger.warning("Rejected URL with userinfo in authority")
        return None

    if is_obfuscated_host(hostname):
        logger.warning(f"Rejected obfuscated hostname: {hostname!r}")
        return None

    if not is_host_allowed(hostname, allowed):
        return None

    if is_private_host(hostname) and hostname not in allowed:
        logger.warning(f"Rejected private address not explicitly allowed: {hostname}")
        return None

    return _canonical_href(scheme, hostname, port, parts)
