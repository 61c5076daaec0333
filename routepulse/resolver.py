"""
Host name resolution for RoutePulse.

Forward resolution turns the user's target text into one numeric
address. Reverse resolution turns hop addresses into display names,
backed by a process-lifetime cache.
"""

import asyncio
import logging
import socket
from typing import Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from .models import AddressFamily

logger = logging.getLogger(__name__)


class UnresolvableHostError(ValueError):
    """Raised when a target host cannot be turned into a numeric address."""

    def __init__(self, host: str, reason: Optional[str] = None):
        self.host = host
        # Lookup diagnostic; kept off the message shown as the session status
        self.reason = reason
        display = host.strip() or "<empty>"
        super().__init__(f"Can't resolve target host: {display}")


_FAMILIES = {
    AddressFamily.IPV4: socket.AF_INET,
    AddressFamily.ANY: socket.AF_UNSPEC,
}


class Resolver:
    """
    Forward and reverse resolver with a reverse-lookup cache.

    The cache maps numeric address to display name and is never evicted;
    it lives as long as the Resolver does.
    """

    def __init__(
        self,
        family: AddressFamily = AddressFamily.IPV4,
        timeout: float = 2.0,
    ):
        """
        Initialize the resolver.

        Args:
            family: Address family targets are resolved to
            timeout: Lifetime of a single reverse lookup in seconds
        """
        self.family = family
        self.timeout = timeout
        self._cache: dict[str, str] = {}
        self._dns: Optional[dns.asyncresolver.Resolver] = None

    async def resolve_numeric(self, host: str) -> str:
        """
        Resolve a host name or address literal to a numeric address.

        Raises:
            UnresolvableHostError: if the host is empty or lookup fails
        """
        trimmed = host.strip()
        if not trimmed:
            raise UnresolvableHostError(host)

        try:
            address = await self._lookup_address(trimmed)
        except (OSError, UnicodeError) as e:
            logger.info("Forward lookup of %r failed: %s", trimmed, e)
            raise UnresolvableHostError(host, reason=str(e)) from e

        if not address:
            raise UnresolvableHostError(host)
        return address

    async def _lookup_address(self, host: str) -> Optional[str]:
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(
            host,
            None,
            family=_FAMILIES[self.family],
            type=socket.SOCK_DGRAM,
        )
        for _family, _type, _proto, _canonname, sockaddr in infos:
            return sockaddr[0]
        return None

    async def resolve_hostname(self, address: str) -> str:
        """
        Best-effort reverse lookup of a numeric address.

        Returns the cached name when present. A missing PTR record is
        cached as the address itself; transient failures are not cached.
        Never raises.
        """
        cached = self._cache.get(address)
        if cached is not None:
            return cached

        try:
            name = await self._query_ptr(address)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            name = None
        except (dns.exception.DNSException, ValueError, OSError) as e:
            logger.debug("Reverse lookup of %s failed: %s", address, e)
            return address

        resolved = name if name and name != address else address
        self._cache[address] = resolved
        return resolved

    async def _query_ptr(self, address: str) -> Optional[str]:
        if self._dns is None:
            self._dns = dns.asyncresolver.Resolver()
        answer = await self._dns.resolve_address(address, lifetime=self.timeout)
        for rdata in answer:
            return rdata.target.to_text(omit_final_dot=True)
        return None

    def cached(self, address: str) -> Optional[str]:
        """Return the cached display name for an address, if any."""
        return self._cache.get(address)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()
