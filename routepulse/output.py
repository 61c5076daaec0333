"""
Output formatting for route monitoring results.

Provides multiple output formats:
- JSON: Machine-readable snapshot of a session
- CSV: One row per hop
- Human-readable: Rich terminal table
"""

import csv
import json
from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .models import Hop
from .session import Session
from .statistics import StatisticsEngine


def hop_record(hop: Hop) -> dict:
    """Flatten a hop and its statistics into a plain dict."""
    stats = hop.stats
    summary = StatisticsEngine.summarize_window(stats.window)
    return {
        "hop": hop.ordinal,
        "address": hop.address,
        "hostname": hop.hostname,
        "sent": stats.sent,
        "received": stats.received,
        "loss_pct": round(stats.loss_percent, 2),
        "last_ms": round(stats.last_latency, 3) if stats.last_latency is not None else None,
        "avg_ms": round(stats.average, 3),
        "min_ms": round(stats.minimum, 3),
        "max_ms": round(stats.maximum, 3),
        "median_ms": round(summary.median_ms, 3),
        "p95_ms": round(summary.p95_ms, 3),
        "stddev_ms": round(summary.stddev_ms, 3),
        "jitter_ms": round(summary.jitter_ms, 3),
    }


class JSONOutput:
    """JSON output formatter."""

    @staticmethod
    def format(session: Session, indent: int = 2) -> str:
        """
        Format a session snapshot as JSON.

        Args:
            session: Session to snapshot
            indent: JSON indentation level

        Returns:
            JSON string
        """
        route = StatisticsEngine.summarize_route(session.hops)
        data = {
            "metadata": {
                "generated_at": datetime.now().isoformat(),
                "host": session.config.host,
                "target": session.target,
                "max_hops": session.config.max_hops,
                "interval": session.config.interval,
                "monitoring": session.monitoring,
                "status": session.status,
                "ticks": session.ticks,
            },
            "summary": {
                "hop_count": route.hop_count,
                "responding_hops": route.responding_hops,
                "total_sent": route.total_sent,
                "total_received": route.total_received,
                "worst_loss_hop": route.worst_loss_hop,
                "worst_loss_pct": round(route.worst_loss_pct, 2),
                "final_hop_avg_ms": round(route.final_hop_avg_ms, 3),
            },
            "hops": [hop_record(hop) for hop in session.hops],
        }
        return json.dumps(data, indent=indent)

    @staticmethod
    def save(session: Session, path: Path) -> None:
        """Save a session snapshot to a JSON file."""
        with open(path, "w") as f:
            f.write(JSONOutput.format(session))


class CSVOutput:
    """CSV output formatter."""

    COLUMNS = [
        "hop", "address", "hostname", "sent", "received", "loss_pct",
        "last_ms", "avg_ms", "min_ms", "max_ms",
        "median_ms", "p95_ms", "stddev_ms", "jitter_ms",
    ]

    @staticmethod
    def format(session: Session) -> str:
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=CSVOutput.COLUMNS)
        writer.writeheader()
        for hop in session.hops:
            record = hop_record(hop)
            if record["last_ms"] is None:
                record["last_ms"] = ""
            writer.writerow(record)
        return output.getvalue()

    @staticmethod
    def save(session: Session, path: Path) -> None:
        """Save a session snapshot to a CSV file."""
        with open(path, "w", newline="") as f:
            f.write(CSVOutput.format(session))


def loss_style(loss_percent: float) -> str:
    """Colour for a loss percentage."""
    if loss_percent >= 100:
        return "dark_orange"
    if loss_percent > 50:
        return "red"
    if loss_percent > 10:
        return "yellow"
    return ""


def _ms(value: float, present: bool) -> str:
    return f"{value:.1f}" if present else "-"


class RichConsoleOutput:
    """Rich library hop table."""

    @staticmethod
    def build_table(hops: list[Hop], title: Optional[str] = None) -> Table:
        """
        Build a hop table.

        Args:
            hops: Hops in ordinal order
            title: Optional table title (typically the session status)

        Returns:
            rich Table ready to print or render live
        """
        table = Table(
            title=title,
            box=box.ROUNDED,
            header_style="bold magenta",
        )

        table.add_column("Hop", justify="right", style="cyan")
        table.add_column("Host")
        table.add_column("Loss%", justify="right")
        table.add_column("Sent", justify="right")
        table.add_column("Recv", justify="right")
        table.add_column("Last", justify="right", style="green")
        table.add_column("Avg", justify="right")
        table.add_column("Best", justify="right")
        table.add_column("Worst", justify="right")

        for hop in hops:
            stats = hop.stats

            host = Text(hop.hostname)
            if hop.hostname != hop.address:
                host.append(f" ({hop.address})", style="dim")

            if stats.sent > 0:
                loss = Text(f"{stats.loss_percent:.1f}%", style=loss_style(stats.loss_percent))
            else:
                loss = Text("-")

            last = stats.last_latency
            table.add_row(
                str(hop.ordinal),
                host,
                loss,
                str(stats.sent),
                str(stats.received),
                f"{last:.1f} ms" if last is not None else "-",
                _ms(stats.average, stats.has_data),
                _ms(stats.minimum, stats.has_data),
                _ms(stats.maximum, stats.has_data),
            )

        return table

    @staticmethod
    def print(session: Session, console: Optional[Console] = None) -> None:
        """Print the session's hop table."""
        console = console or Console()
        if not session.hops:
            console.print(f"[yellow]{session.status}[/yellow]")
            console.print("[dim]No route data available[/dim]")
            return
        console.print(RichConsoleOutput.build_table(session.hops, title=session.status))
