"""
Per-hop statistics for RoutePulse.

HopStats folds a stream of probe outcomes into:
- Lifetime counters: sent, received, loss percentage
- Windowed latency: average, best, worst over the last N replies

StatisticsEngine adds distribution metrics over the window
(median, p95, stddev, jitter) for reporting.
"""

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np


DEFAULT_WINDOW_SIZE = 100


class HopStats:
    """
    Statistics accumulator owned by a single hop.

    The accumulator is the only writer of its fields. Readers may look
    at any attribute between calls to record_outcome().
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE):
        if window_size < 1:
            raise ValueError(f"window_size must be positive, got {window_size}")
        self.window_size = window_size
        self.sent = 0
        self.received = 0
        self.last_latency: Optional[float] = None
        self.average = 0.0
        self.minimum = 0.0
        self.maximum = 0.0
        self.loss_percent = 0.0
        self._window: deque[float] = deque()
        self._window_sum = 0.0

    def record_outcome(self, latency: Optional[float]) -> None:
        """
        Fold one probe outcome into the statistics.

        Args:
            latency: Round-trip time in milliseconds, or None for a lost probe
        """
        self.sent += 1

        if latency is not None:
            self.received += 1
            self._window.append(latency)
            self._window_sum += latency
            if len(self._window) > self.window_size:
                self._window_sum -= self._window.popleft()

            self.last_latency = latency
            self.average = self._window_sum / len(self._window)
            self.minimum = min(self._window)
            self.maximum = max(self._window)
        else:
            # Window history is kept; only the last reading is cleared
            self.last_latency = None

        self.loss_percent = (self.sent - self.received) / self.sent * 100.0

    @property
    def window(self) -> tuple[float, ...]:
        """Copy of the current latency window, oldest first."""
        return tuple(self._window)

    @property
    def has_data(self) -> bool:
        return bool(self._window)

    def snapshot(self) -> dict:
        return {
            "sent": self.sent,
            "received": self.received,
            "loss_pct": self.loss_percent,
            "last_ms": self.last_latency,
            "avg_ms": self.average,
            "min_ms": self.minimum,
            "max_ms": self.maximum,
        }


@dataclass
class HopSummary:
    """Distribution statistics over a hop's latency window."""
    samples: int
    median_ms: float
    p95_ms: float
    stddev_ms: float
    jitter_ms: float


@dataclass
class RouteSummary:
    """Aggregate view over every hop of a route."""
    hop_count: int
    responding_hops: int
    total_sent: int
    total_received: int
    worst_loss_hop: Optional[int]
    worst_loss_pct: float
    final_hop_avg_ms: float


class StatisticsEngine:
    """Calculates distribution statistics from hop windows."""

    @staticmethod
    def summarize_window(latencies: Iterable[float]) -> HopSummary:
        """
        Calculate distribution metrics for a latency window.

        Args:
            latencies: Successful round-trip times in milliseconds, oldest first

        Returns:
            HopSummary; all metrics are zero for an empty window
        """
        values = np.fromiter(latencies, dtype=float)

        if values.size == 0:
            return HopSummary(samples=0, median_ms=0.0, p95_ms=0.0, stddev_ms=0.0, jitter_ms=0.0)

        # Jitter: mean absolute difference between consecutive replies
        if values.size > 1:
            jitter = float(np.mean(np.abs(np.diff(values))))
        else:
            jitter = 0.0

        return HopSummary(
            samples=int(values.size),
            median_ms=float(np.median(values)),
            p95_ms=float(np.percentile(values, 95)),
            stddev_ms=float(np.std(values)),
            jitter_ms=jitter,
        )

    @staticmethod
    def summarize_route(hops) -> RouteSummary:
        """
        Aggregate lifetime counters across a hop list.

        Args:
            hops: Ordered hops (objects with ordinal and stats)

        Returns:
            RouteSummary for the whole path
        """
        hops = list(hops)
        worst = None
        for hop in hops:
            if hop.stats.sent == 0:
                continue
            if worst is None or hop.stats.loss_percent > worst.stats.loss_percent:
                worst = hop

        final_avg = hops[-1].stats.average if hops else 0.0

        return RouteSummary(
            hop_count=len(hops),
            responding_hops=sum(1 for h in hops if h.stats.received > 0),
            total_sent=sum(h.stats.sent for h in hops),
            total_received=sum(h.stats.received for h in hops),
            worst_loss_hop=worst.ordinal if worst else None,
            worst_loss_pct=worst.stats.loss_percent if worst else 0.0,
            final_hop_avg_ms=final_avg,
        )
