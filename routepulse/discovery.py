"""
Route discovery.

Resolves the target, runs a UDP discovery pass and, if that finds
nothing, an ICMP pass. The first non-empty hop list wins.
"""

import logging
import re

from .executors import ProbeExecutor
from .models import (
    SENTINEL_ADDRESS,
    DiscoveryOutput,
    DiscoveryResult,
    Hop,
    ProbeTransport,
)
from .resolver import Resolver, UnresolvableHostError
from .statistics import DEFAULT_WINDOW_SIZE, HopStats

logger = logging.getLogger(__name__)

# Hop number followed by the first address (IPv4 or IPv6) or a timeout star
HOP_LINE = re.compile(r"^\s*(\d+)\s+([0-9A-Fa-f:.]+|\*)")

# Order matters: fallback transport comes second
DISCOVERY_TRANSPORTS = (ProbeTransport.UDP, ProbeTransport.ICMP)


def parse_discovery_output(output: str, window_size: int = DEFAULT_WINDOW_SIZE) -> list[Hop]:
    """
    Parse raw traceroute output into an ordered hop list.

    Lines that do not start with a hop number and an address-or-star
    token are ignored. When a hop number appears more than once the
    last line wins.

    Args:
        output: Raw discovery stdout
        window_size: Latency window size for each hop's statistics

    Returns:
        Hops sorted by ordinal
    """
    by_ordinal: dict[int, Hop] = {}

    for line in output.splitlines():
        match = HOP_LINE.match(line)
        if not match:
            continue

        ordinal = int(match.group(1))
        token = match.group(2)
        address = SENTINEL_ADDRESS if token == "*" else token

        by_ordinal[ordinal] = Hop(
            ordinal=ordinal,
            address=address,
            hostname=address,
            stats=HopStats(window_size=window_size),
        )

    return [by_ordinal[k] for k in sorted(by_ordinal)]


def failure_message(target: str, attempts: dict[ProbeTransport, DiscoveryOutput]) -> str:
    """Combine per-attempt diagnostics into one status line."""
    reasons = []
    for transport in DISCOVERY_TRANSPORTS:
        attempt = attempts.get(transport)
        if attempt is None:
            continue
        text = attempt.stderr.strip()
        if text:
            reasons.append(f"{transport.name}: {text}")

    if not reasons:
        return f"Failed to discover route to {target}"
    return "traceroute error: " + " | ".join(reasons)


class RouteDiscoverer:
    """
    Two-attempt route discovery.

    Attempt A uses the primary transport (UDP); attempt B falls back to
    ICMP echo for networks that drop UDP traceroute.
    """

    def __init__(
        self,
        executor: ProbeExecutor,
        resolver: Resolver,
        per_hop_timeout: float = 3.0,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ):
        self.executor = executor
        self.resolver = resolver
        self.per_hop_timeout = per_hop_timeout
        self.window_size = window_size

    async def discover(self, host: str, max_hops: int) -> DiscoveryResult:
        """
        Discover the route to a host.

        Args:
            host: Target host name or address text
            max_hops: Highest TTL to probe

        Returns:
            DiscoveryResult; never raises for resolution or probe failures
        """
        try:
            target = await self.resolver.resolve_numeric(host)
        except UnresolvableHostError as e:
            logger.info("Cannot resolve %r: %s", host, e.reason or "empty host")
            return DiscoveryResult(host=host, success=False, message=str(e))

        attempts: dict[ProbeTransport, DiscoveryOutput] = {}

        for transport in DISCOVERY_TRANSPORTS:
            output = await self.executor.discover(
                target,
                transport,
                max_hops,
                per_hop_timeout=self.per_hop_timeout,
            )
            attempts[transport] = output

            hops = parse_discovery_output(output.stdout, window_size=self.window_size)
            if hops:
                logger.info(
                    "Discovered %d hops to %s (%s) over %s",
                    len(hops), host, target, transport.value,
                )
                return DiscoveryResult(
                    host=host,
                    success=True,
                    message=f"Monitoring {len(hops)} hops to {host}",
                    target=target,
                    hops=hops,
                    transport=transport,
                    attempts=attempts,
                )

            logger.info("No hops to %s over %s (exit %d)", target, transport.value, output.returncode)

        return DiscoveryResult(
            host=host,
            success=False,
            message=failure_message(target, attempts),
            target=target,
            attempts=attempts,
        )
