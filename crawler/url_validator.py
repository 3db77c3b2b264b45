"""
URL Validator - keep the crawler away from internal network addresses.

Source URLs, discovered links and image URLs all come from third parties,
so every outbound request is checked here first:
- only http/https
- no loopback, private, link-local or metadata hosts
- hostnames must not resolve into those ranges either
"""

import asyncio
import ipaddress
import socket
from urllib.parse import urlparse

from .exceptions import UnsafeURLError

BLOCKED_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("100.64.0.0/10"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "metadata",
    "metadata.google.internal",
}

BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")

ALLOWED_SCHEMES = {"http", "https"}


def is_ip_blocked(ip_str: str) -> bool:
    """Check if an IP address is in a blocked range."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(ip in network for network in BLOCKED_IP_RANGES)


def check_url(url: str) -> str:
    """
    Validate scheme and host of a URL without touching the network.

    Returns the lowercased hostname.

    Raises:
        UnsafeURLError: If the URL must not be fetched
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise UnsafeURLError(url, f"invalid URL: {e}")

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise UnsafeURLError(url, f"scheme '{parsed.scheme}' is not allowed")

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        raise UnsafeURLError(url, "URL must include a hostname")

    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(BLOCKED_SUFFIXES):
        raise UnsafeURLError(url, f"host '{hostname}' is not allowed")

    if is_ip_blocked(hostname):
        raise UnsafeURLError(url, f"address '{hostname}' is not allowed")

    return hostname


async def ensure_public_url(url: str, resolve_dns: bool = True) -> str:
    """
    Validate a URL and, optionally, every address its host resolves to.

    DNS failures are left for the HTTP client to report as transport errors.
    """
    hostname = check_url(url)

    if resolve_dns:
        port = urlparse(url).port or 443
        loop = asyncio.get_running_loop()
        try:
            addrinfo = await loop.getaddrinfo(hostname, port, proto=socket.IPPROTO_TCP)
        except socket.gaierror:
            return url
        for _, _, _, _, sockaddr in addrinfo:
            if is_ip_blocked(sockaddr[0]):
                raise UnsafeURLError(url, f"host '{hostname}' resolves to blocked address {sockaddr[0]}")

    return url
