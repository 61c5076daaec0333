"""
Probe executor implementations.

The engine never sends packets itself. It asks a ProbeExecutor to:
- Discover a route (one probe per TTL up to a maximum)
- Probe the target at a fixed depth (one probe with first TTL == max TTL)

TracerouteExecutor shells out to the system traceroute binary and keeps
track of running processes so they can be terminated on stop.
"""

import asyncio
import ipaddress
import logging
from abc import ABC, abstractmethod
from typing import Optional

from .models import DiscoveryOutput, ProbeOutput, ProbeTransport
from .platform_utils import find_traceroute

logger = logging.getLogger(__name__)

# Extra time allowed beyond traceroute's own per-hop waits
DEADLINE_SLACK = 2.0


class ProbeExecutor(ABC):
    """Base class for probe executors."""

    @abstractmethod
    async def discover(
        self,
        target: str,
        transport: ProbeTransport,
        max_hops: int,
        per_hop_timeout: float = 3.0,
    ) -> DiscoveryOutput:
        """
        Run a multi-hop discovery probe against a numeric target.

        Returns:
            DiscoveryOutput with raw stdout, stderr and exit status
        """
        pass

    @abstractmethod
    async def probe_at_depth(
        self,
        target: str,
        hop: int,
        timeout: float = 1.0,
    ) -> ProbeOutput:
        """
        Send a single probe towards target that expires exactly at `hop`.

        Returns:
            ProbeOutput with raw stdout and exit status
        """
        pass

    def terminate_all(self) -> None:
        """Terminate any probe still running. No-op by default."""


def _is_ipv6(address: str) -> bool:
    try:
        return ipaddress.ip_address(address.split("%", 1)[0]).version == 6
    except ValueError:
        return False


class TracerouteExecutor(ProbeExecutor):
    """Probe executor backed by the system traceroute command."""

    def __init__(self, binary: Optional[str] = None):
        """
        Initialize the executor.

        Args:
            binary: Path to traceroute; looked up on PATH when omitted
        """
        self.binary = binary or find_traceroute() or "traceroute"
        self._processes: set[asyncio.subprocess.Process] = set()

    def build_discovery_args(
        self,
        target: str,
        transport: ProbeTransport,
        max_hops: int,
        per_hop_timeout: float,
    ) -> list[str]:
        args = ["-n", "-q", "1", "-w", _seconds(per_hop_timeout), "-m", str(max_hops)]
        if _is_ipv6(target):
            args.insert(0, "-6")
        if transport == ProbeTransport.ICMP:
            args.insert(0, "-I")
        args.append(target)
        return args

    def build_probe_args(self, target: str, hop: int, timeout: float) -> list[str]:
        args = [
            "-n",
            "-q", "1",
            "-w", _seconds(timeout),
            "-f", str(hop),
            "-m", str(hop),
        ]
        if _is_ipv6(target):
            args.insert(0, "-6")
        args.append(target)
        return args

    async def _run(self, args: list[str], deadline: float) -> tuple[str, str, int]:
        logger.debug("Running %s %s", self.binary, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("Could not launch %s: %s", self.binary, e)
            return "", f"launch failed: {e}", -1

        self._processes.add(process)
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=deadline)
        except asyncio.TimeoutError:
            _kill(process)
            await process.wait()
            return "", f"timed out after {deadline:.1f}s", -1
        except asyncio.CancelledError:
            _kill(process)
            await asyncio.shield(process.wait())
            raise
        finally:
            self._processes.discard(process)

        return (
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
            process.returncode if process.returncode is not None else -1,
        )

    async def discover(
        self,
        target: str,
        transport: ProbeTransport,
        max_hops: int,
        per_hop_timeout: float = 3.0,
    ) -> DiscoveryOutput:
        """Run traceroute once over the whole path."""
        args = self.build_discovery_args(target, transport, max_hops, per_hop_timeout)
        deadline = max_hops * per_hop_timeout + DEADLINE_SLACK
        stdout, stderr, code = await self._run(args, deadline)
        return DiscoveryOutput(stdout=stdout, stderr=stderr, returncode=code)

    async def probe_at_depth(
        self,
        target: str,
        hop: int,
        timeout: float = 1.0,
    ) -> ProbeOutput:
        """Run traceroute limited to a single TTL."""
        args = self.build_probe_args(target, hop, timeout)
        stdout, _stderr, code = await self._run(args, timeout + DEADLINE_SLACK)
        return ProbeOutput(stdout=stdout, returncode=code)

    @property
    def running(self) -> int:
        """Number of traceroute processes currently in flight."""
        return len(self._processes)

    def terminate_all(self) -> None:
        """Terminate every traceroute process still running."""
        for process in list(self._processes):
            _kill(process)
        self._processes.clear()


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass


def _seconds(value: float) -> str:
    # traceroute accepts fractional waits; keep integers tidy
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def create_executor(kind: str = "traceroute", **kwargs) -> ProbeExecutor:
    """
    Create a probe executor by name.

    Args:
        kind: Executor name ("traceroute")

    Returns:
        ProbeExecutor instance
    """
    if kind == "traceroute":
        return TracerouteExecutor(**kwargs)
    raise ValueError(f"Unknown executor: {kind}")
