"""
Continuous per-hop probing.

MonitorLoop runs one tick at a time: a probe for every hop, all in
parallel, then a pause of the configured interval. A tick never starts
before the previous one has fully completed.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional

from .executors import ProbeExecutor
from .models import MIN_INTERVAL, Hop

logger = logging.getLogger(__name__)

LATENCY = re.compile(r"(\d+(?:\.\d+)?)\s*ms\b")

IntervalSource = Callable[[], float]
SleepFunction = Callable[[float], Awaitable[None]]
TickCallback = Callable[[int], None]


def parse_probe_latency(output: str) -> Optional[float]:
    """Extract the first "<number> ms" round-trip time from probe output."""
    match = LATENCY.search(output)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


class MonitorLoop:
    """
    Self-pacing probe loop over a fixed hop list.

    Every hop is probed by sending to the final target with the TTL
    pinned to the hop's ordinal, so each measurement follows the real
    path instead of pinging routers directly.
    """

    def __init__(
        self,
        hops: list[Hop],
        target: str,
        executor: ProbeExecutor,
        interval_source: IntervalSource,
        probe_timeout: float = 1.0,
        sleep: Optional[SleepFunction] = None,
        on_tick: Optional[TickCallback] = None,
    ):
        """
        Initialize the loop.

        Args:
            hops: Hops to probe, in ordinal order
            target: Numeric address of the monitored host
            executor: Probe executor
            interval_source: Called after every tick for the next delay
            probe_timeout: Per-probe wait in seconds
            sleep: Delay function; defaults to a sleep that stop cuts short
            on_tick: Called with the tick number after each completed tick
        """
        self.hops = hops
        self.target = target
        self.executor = executor
        self.interval_source = interval_source
        self.probe_timeout = probe_timeout
        self.on_tick = on_tick
        self.ticks = 0
        self._sleep = sleep or self._wait_for_stop
        self._stop = asyncio.Event()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        """Ask the loop to finish after the current tick."""
        self._stop.set()

    def next_delay(self) -> float:
        return max(MIN_INTERVAL, self.interval_source())

    async def run(self) -> int:
        """
        Probe until stopped.

        Returns:
            Number of completed ticks
        """
        while not self._stop.is_set():
            await self.tick()
            if self._stop.is_set():
                break

            delay = self.next_delay()
            logger.debug("Tick %d done, next in %.2fs", self.ticks, delay)
            await self._sleep(delay)

        return self.ticks

    async def tick(self) -> None:
        """Probe every hop once and wait for all of them."""
        await asyncio.gather(*(self._probe_hop(hop) for hop in self.hops))
        self.ticks += 1

        if self.on_tick:
            self.on_tick(self.ticks)

    async def _probe_hop(self, hop: Hop) -> None:
        if hop.is_sentinel:
            hop.stats.record_outcome(None)
            return

        latency = None
        try:
            result = await self.executor.probe_at_depth(
                self.target,
                hop.ordinal,
                timeout=self.probe_timeout,
            )
            if result.returncode == 0:
                latency = parse_probe_latency(result.stdout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Probe of hop %d failed: %s", hop.ordinal, e)

        hop.stats.record_outcome(latency)

    async def _wait_for_stop(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
