"""
Data models for RoutePulse.

Defines structured types for monitor configuration, discovered hops,
raw probe executor output and discovery results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .statistics import HopStats


# Address used for hops that did not answer during discovery
SENTINEL_ADDRESS = "*"

MIN_HOPS = 1
MAX_HOPS = 64
MIN_INTERVAL = 0.1
MAX_INTERVAL = 60.0


class ProbeTransport(Enum):
    """Probe mechanisms used during route discovery."""
    UDP = "udp"    # traceroute default
    ICMP = "icmp"  # ICMP echo, for networks that filter UDP


class AddressFamily(Enum):
    """Which numeric family a target is resolved to."""
    IPV4 = "ipv4"
    ANY = "any"  # dual-stack, first address returned wins


@dataclass
class MonitorConfig:
    """Configuration for a monitoring session."""
    host: str = "google.com"
    max_hops: int = 30
    interval: float = 1.0
    family: AddressFamily = AddressFamily.IPV4

    # Timeouts (seconds)
    discovery_timeout: float = 3.0
    probe_timeout: float = 1.0
    resolve_timeout: float = 2.0

    window_size: int = 100

    def validate(self) -> None:
        """Raise ValueError if any bounded field is out of range."""
        validate_max_hops(self.max_hops)
        validate_interval(self.interval)
        if self.window_size < 1:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        for name in ("discovery_timeout", "probe_timeout", "resolve_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")


def validate_max_hops(value: int) -> int:
    if not MIN_HOPS <= value <= MAX_HOPS:
        raise ValueError(f"max_hops must be between {MIN_HOPS} and {MAX_HOPS}, got {value}")
    return value


def validate_interval(value: float) -> float:
    if not MIN_INTERVAL <= value <= MAX_INTERVAL:
        raise ValueError(
            f"interval must be between {MIN_INTERVAL} and {MAX_INTERVAL} seconds, got {value}"
        )
    return value


@dataclass(eq=False)
class Hop:
    """
    One position along the route to the target.

    The ordinal and address are fixed at discovery time. The hostname
    starts as the address and may be replaced once reverse resolution
    completes.
    """
    ordinal: int
    address: str
    hostname: str = ""
    stats: HopStats = field(default_factory=HopStats)

    def __post_init__(self):
        if not self.hostname:
            self.hostname = self.address

    @property
    def is_sentinel(self) -> bool:
        """True if this hop never answered during discovery."""
        return self.address == SENTINEL_ADDRESS

    def update_hostname(self, hostname: str) -> None:
        if hostname:
            self.hostname = hostname


@dataclass
class DiscoveryOutput:
    """Raw result of one multi-hop discovery run."""
    stdout: str
    stderr: str = ""
    returncode: int = 0


@dataclass
class ProbeOutput:
    """Raw result of one fixed-depth probe."""
    stdout: str
    returncode: int = 0


@dataclass
class DiscoveryResult:
    """Outcome of a full route discovery (both attempts)."""
    host: str
    success: bool
    message: str
    target: Optional[str] = None  # numeric address, None if unresolved
    hops: list[Hop] = field(default_factory=list)
    transport: Optional[ProbeTransport] = None
    attempts: dict[ProbeTransport, DiscoveryOutput] = field(default_factory=dict)

    @property
    def hop_count(self) -> int:
        return len(self.hops)

