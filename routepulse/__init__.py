"""
RoutePulse - continuous MTR-style route monitoring.

Discovers the hops to a host and keeps probing each one to track
per-hop latency and packet loss.
"""

__version__ = "1.0.0"

from .discovery import RouteDiscoverer, parse_discovery_output
from .executors import ProbeExecutor, TracerouteExecutor
from .models import Hop, MonitorConfig, ProbeTransport
from .monitor import MonitorLoop
from .resolver import Resolver, UnresolvableHostError
from .session import Session, SessionBusyError
from .statistics import HopStats

__all__ = [
    "__version__",
    "Hop",
    "HopStats",
    "MonitorConfig",
    "MonitorLoop",
    "ProbeExecutor",
    "ProbeTransport",
    "Resolver",
    "RouteDiscoverer",
    "Session",
    "SessionBusyError",
    "TracerouteExecutor",
    "UnresolvableHostError",
    "parse_discovery_output",
]
