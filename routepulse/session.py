"""
Monitoring session.

Session holds the published state a presentation layer reads (hops,
monitoring flag, status message, configuration) and owns the single
worker task that runs discovery and then the monitor loop.
"""

import asyncio
import logging
from typing import Callable, Optional

from .discovery import RouteDiscoverer
from .executors import ProbeExecutor, create_executor
from .models import (
    AddressFamily,
    DiscoveryResult,
    Hop,
    MonitorConfig,
    validate_interval,
    validate_max_hops,
)
from .monitor import MonitorLoop, SleepFunction
from .resolver import Resolver

logger = logging.getLogger(__name__)

READY_STATUS = "Ready to start monitoring"
STOPPED_STATUS = "Monitoring stopped"

# Listener receives (event, session). Events: "hops", "hostname",
# "monitoring", "status", "tick"
StateListener = Callable[[str, "Session"], None]


class SessionBusyError(RuntimeError):
    """Raised when discovery settings change while monitoring."""


class Session:
    """
    Observable monitoring session.

    All mutation happens on the event loop running the session, so
    readers on that loop always see whole values.
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        executor: Optional[ProbeExecutor] = None,
        resolver: Optional[Resolver] = None,
        sleep: Optional[SleepFunction] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Monitor configuration (defaults used when omitted)
            executor: Probe executor; system traceroute when omitted
            resolver: Resolver; its reverse cache is kept across runs
            sleep: Inter-tick delay override, mostly for tests
        """
        self.config = config or MonitorConfig()
        self.config.validate()
        self.executor = executor or create_executor()
        self.resolver = resolver or Resolver(
            family=self.config.family,
            timeout=self.config.resolve_timeout,
        )
        self._sleep = sleep

        self.hops: list[Hop] = []
        self.monitoring = False
        self.status = READY_STATUS
        self.target: Optional[str] = None
        self.last_discovery: Optional[DiscoveryResult] = None

        self._listeners: list[StateListener] = []
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[MonitorLoop] = None
        self._stop_requested = False
        self._hostname_tasks: set[asyncio.Task] = set()

    # Subscriptions

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.warning("Listener failed on %r event", event, exc_info=True)

    def _set_status(self, message: str) -> None:
        self.status = message
        self._notify("status")

    def _set_monitoring(self, value: bool) -> None:
        if self.monitoring != value:
            self.monitoring = value
            self._notify("monitoring")

    # Configuration

    def set_host(self, host: str) -> None:
        self._ensure_idle("host")
        self.config.host = host

    def set_max_hops(self, max_hops: int) -> None:
        self._ensure_idle("max_hops")
        self.config.max_hops = validate_max_hops(max_hops)

    def set_family(self, family: AddressFamily) -> None:
        self._ensure_idle("family")
        self.config.family = family
        self.resolver.family = family

    def set_interval(self, interval: float) -> None:
        """Change the probe interval; applies from the next scheduled tick."""
        self.config.interval = validate_interval(interval)

    def _ensure_idle(self, name: str) -> None:
        if self.monitoring:
            raise SessionBusyError(f"Cannot change {name} while monitoring")

    # Control

    @property
    def ticks(self) -> int:
        return self._loop.ticks if self._loop else 0

    def start(self) -> None:
        """
        Start discovery followed by monitoring.

        Does nothing if already monitoring. Must be called with an event
        loop running.
        """
        if self.monitoring:
            return

        self.config.validate()
        self._stop_requested = False
        self._loop = None
        self.target = None
        self.hops = []
        self._notify("hops")
        self._set_status(f"Discovering route to {self.config.host}...")
        self._set_monitoring(True)

        logger.info("Starting session for %s", self.config.host)
        # A stopped run may still be finishing its last tick
        previous = self._worker
        self._worker = asyncio.get_running_loop().create_task(self._run(previous))

    def stop(self) -> None:
        """
        Stop monitoring.

        No new tick is scheduled and in-flight probes are terminated.
        The last hop list and statistics stay readable.
        """
        if not self.monitoring:
            return

        self._stop_requested = True
        self._set_monitoring(False)
        self._set_status(STOPPED_STATUS)
        if self._loop:
            self._loop.request_stop()
        elif self._worker is not None and not self._worker.done():
            # Still discovering; cancelling kills the traceroute run
            self._worker.cancel()
        self.executor.terminate_all()
        logger.info("Session for %s stopped", self.config.host)

    async def wait(self) -> None:
        """Wait until the worker task has finished."""
        if self._worker is None:
            return
        try:
            await self._worker
        except asyncio.CancelledError:
            if not self._worker.cancelled():
                raise

    async def wait_hostnames(self) -> None:
        """Wait for pending reverse lookups to land in their hops."""
        if self._hostname_tasks:
            await asyncio.gather(*list(self._hostname_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop, wait for the worker and drop pending hostname lookups."""
        self.stop()
        await self.wait()
        for task in list(self._hostname_tasks):
            task.cancel()
        if self._hostname_tasks:
            await asyncio.gather(*self._hostname_tasks, return_exceptions=True)

    # Worker

    async def _run(self, previous: Optional[asyncio.Task] = None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        discoverer = RouteDiscoverer(
            self.executor,
            self.resolver,
            per_hop_timeout=self.config.discovery_timeout,
            window_size=self.config.window_size,
        )
        try:
            result = await discoverer.discover(self.config.host, self.config.max_hops)
        except Exception as e:
            logger.exception("Route discovery crashed")
            if not self._stop_requested:
                self._set_status(f"Failed to discover route: {e}")
                self._set_monitoring(False)
            return
        self.last_discovery = result

        if not result.success:
            logger.info("Discovery failed: %s", result.message)
            if not self._stop_requested:
                self._set_status(result.message)
                self._set_monitoring(False)
            return

        self.target = result.target
        self.hops = result.hops
        self._notify("hops")
        self._resolve_hostnames(result.hops)

        if self._stop_requested:
            return

        self._set_status(result.message)
        loop = MonitorLoop(
            self.hops,
            result.target,
            self.executor,
            interval_source=lambda: self.config.interval,
            probe_timeout=self.config.probe_timeout,
            sleep=self._sleep,
            on_tick=lambda _n: self._on_tick(loop),
        )
        self._loop = loop
        await loop.run()

    def _on_tick(self, loop: MonitorLoop) -> None:
        if loop is self._loop:
            self._notify("tick")

    def _resolve_hostnames(self, hops: list[Hop]) -> None:
        loop = asyncio.get_running_loop()
        for hop in hops:
            if hop.is_sentinel:
                continue
            task = loop.create_task(self._resolve_hostname(hop))
            self._hostname_tasks.add(task)
            task.add_done_callback(self._hostname_tasks.discard)

    async def _resolve_hostname(self, hop: Hop) -> None:
        hostname = await self.resolver.resolve_hostname(hop.address)
        if hostname != hop.hostname:
            hop.update_hostname(hostname)
            self._notify("hostname")
