"""
Pytest configuration and fixtures for routepulse tests.

Provides a scripted probe executor and a static resolver so discovery,
monitoring and session scenarios run without touching the network.
"""
import asyncio

import dns.resolver
import pytest

from routepulse.executors import ProbeExecutor
from routepulse.models import DiscoveryOutput, ProbeOutput, ProbeTransport
from routepulse.resolver import Resolver


TRACE_TWO_HOPS = (
    "traceroute to 192.0.2.50 (192.0.2.50), 30 hops max, 60 byte packets\n"
    " 1  192.0.2.1  12.3 ms\n"
    " 2  *\n"
)

TRACE_THREE_HOPS = (
    "traceroute to 192.0.2.50 (192.0.2.50), 30 hops max, 60 byte packets\n"
    " 1  192.0.2.1  1.104 ms\n"
    " 2  198.51.100.7  8.512 ms\n"
    " 3  192.0.2.50  14.020 ms\n"
)


def probe_reply(hop: int, address: str, latency: float) -> ProbeOutput:
    """Output of a single-TTL traceroute that got an answer."""
    return ProbeOutput(stdout=f" {hop}  {address}  {latency} ms\n", returncode=0)


def probe_timeout(hop: int) -> ProbeOutput:
    return ProbeOutput(stdout=f" {hop}  *\n", returncode=0)


class ScriptedExecutor(ProbeExecutor):
    """
    Probe executor that replays scripted results.

    discovery: transport -> DiscoveryOutput (missing transports return empty)
    probes: hop -> list of ProbeOutput or Exception, consumed in order;
            when exhausted, `default` builds the reply (timeout if None)
    """

    def __init__(self, discovery=None, probes=None, default=None):
        self.discovery = discovery or {}
        self.probes = {hop: list(items) for hop, items in (probes or {}).items()}
        self.default = default
        self.discover_calls = []
        self.probe_calls = []
        self.terminate_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def discover(self, target, transport, max_hops, per_hop_timeout=3.0):
        self.discover_calls.append((target, transport, max_hops))
        await asyncio.sleep(0)
        return self.discovery.get(transport, DiscoveryOutput(stdout="", stderr="", returncode=1))

    async def probe_at_depth(self, target, hop, timeout=1.0):
        self.probe_calls.append((target, hop))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            queue = self.probes.get(hop)
            if queue:
                item = queue.pop(0)
                if isinstance(item, Exception):
                    raise item
                return item
            if self.default is not None:
                return self.default(hop)
            return probe_timeout(hop)
        finally:
            self.in_flight -= 1

    def terminate_all(self):
        self.terminate_calls += 1


class StaticResolver(Resolver):
    """Resolver answering from fixed tables and counting lookups."""

    def __init__(self, addresses=None, names=None, **kwargs):
        super().__init__(**kwargs)
        self.addresses = addresses or {}
        self.names = names or {}
        self.forward_lookups = []
        self.reverse_lookups = []

    async def _lookup_address(self, host):
        self.forward_lookups.append(host)
        await asyncio.sleep(0)
        if host not in self.addresses:
            raise OSError(f"Name or service not known: {host}")
        return self.addresses[host]

    async def _query_ptr(self, address):
        self.reverse_lookups.append(address)
        await asyncio.sleep(0)
        answer = self.names.get(address)
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            raise dns.resolver.NXDOMAIN()
        return answer


class VirtualClock:
    """Replacement for the inter-tick sleep that records each delay."""

    def __init__(self):
        self.now = 0.0
        self.delays = []
        self.on_sleep = None

    async def sleep(self, delay):
        self.delays.append(delay)
        self.now += delay
        if self.on_sleep:
            self.on_sleep(len(self.delays))
        await asyncio.sleep(0)


@pytest.fixture
def resolver():
    """Resolver knowing example.net and two router names."""
    return StaticResolver(
        addresses={"example.net": "192.0.2.50"},
        names={
            "192.0.2.1": "gw.example.net",
            "198.51.100.7": "core1.transit.example",
            "192.0.2.50": "example.net",
        },
    )


@pytest.fixture
def two_hop_executor():
    """Executor whose UDP discovery finds one router and one silent hop."""
    return ScriptedExecutor(
        discovery={ProbeTransport.UDP: DiscoveryOutput(stdout=TRACE_TWO_HOPS)},
        default=lambda hop: probe_reply(hop, "192.0.2.1", 10.0),
    )


@pytest.fixture
def clock():
    return VirtualClock()
