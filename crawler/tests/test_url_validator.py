"""
Tests for SSRF (Server-Side Request Forgery) protection.
"""

import asyncio
import socket
from unittest.mock import AsyncMock, patch

import pytest

from crawler.exceptions import UnsafeURLError
from crawler.url_validator import check_url, ensure_public_url, is_ip_blocked


class TestCheckUrl:
    """Tests for URL validation without DNS."""

    # --- Allowed URLs ---

    def test_allows_https_url(self):
        assert check_url("https://example.com/feed.xml") == "example.com"

    def test_allows_public_ip(self):
        assert check_url("http://8.8.8.8/feed") == "8.8.8.8"

    def test_lowercases_hostname(self):
        assert check_url("https://News.Example.COM/") == "news.example.com"

    # --- Blocked Schemes ---

    @pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://example.com/f", "gopher://example.com/"])
    def test_blocks_other_schemes(self, url):
        with pytest.raises(UnsafeURLError, match="scheme.*not allowed"):
            check_url(url)

    # --- Blocked Hosts ---

    @pytest.mark.parametrize("url", [
        "http://localhost/admin",
        "http://metadata.google.internal/",
        "http://printer.local/",
        "http://api.internal/",
        "http://127.0.0.1/",
        "http://10.1.2.3/",
        "http://192.168.0.10/",
        "http://169.254.169.254/latest/meta-data/",
        "http://[::1]/",
    ])
    def test_blocks_internal_targets(self, url):
        with pytest.raises(UnsafeURLError, match="not allowed"):
            check_url(url)

    def test_requires_hostname(self):
        with pytest.raises(UnsafeURLError, match="hostname"):
            check_url("http:///path")


class TestIpBlocking:
    """Tests for IP range checks."""

    def test_private_ranges(self):
        assert is_ip_blocked("172.16.5.4")
        assert is_ip_blocked("100.64.0.1")
        assert is_ip_blocked("fe80::1")

    def test_public_addresses(self):
        assert not is_ip_blocked("93.184.216.34")
        assert not is_ip_blocked("not-an-ip")


class TestDnsResolution:
    """Tests for resolving hostnames before fetching."""

    @pytest.mark.asyncio
    async def test_blocks_host_resolving_to_private_ip(self):
        addrinfo = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.5", 443))]
        loop = asyncio.get_running_loop()
        with patch.object(loop, "getaddrinfo", AsyncMock(return_value=addrinfo)):
            with pytest.raises(UnsafeURLError):
                await ensure_public_url("https://sneaky.example.com/")

    @pytest.mark.asyncio
    async def test_allows_public_resolution(self):
        addrinfo = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("93.184.216.34", 443))]
        loop = asyncio.get_running_loop()
        with patch.object(loop, "getaddrinfo", AsyncMock(return_value=addrinfo)):
            assert await ensure_public_url("https://example.com/") == "https://example.com/"

    @pytest.mark.asyncio
    async def test_skips_dns_when_disabled(self):
        assert await ensure_public_url("https://example.com/", resolve_dns=False) == "https://example.com/"
