"""
Command-line interface for RoutePulse.

Provides a live MTR-style monitor, a one-shot route trace and a
system information command.
"""

import asyncio
import json as jsonlib
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler

from . import __version__
from .discovery import RouteDiscoverer
from .executors import TracerouteExecutor
from .models import MAX_HOPS, MAX_INTERVAL, MIN_HOPS, MIN_INTERVAL, AddressFamily, MonitorConfig
from .output import CSVOutput, JSONOutput, RichConsoleOutput
from .platform_utils import check_elevated_privileges, find_traceroute, get_platform
from .resolver import Resolver
from .session import Session


def setup_logging(verbose: bool) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def require_traceroute() -> None:
    if find_traceroute() is None:
        click.echo("Error: traceroute is not installed or not on PATH", err=True)
        sys.exit(1)


def save_snapshot(session: Session, output: str) -> Path:
    """Write a JSON or CSV snapshot based on the file extension."""
    path = Path(output)
    if path.suffix.lower() == ".csv":
        CSVOutput.save(session, path)
    else:
        if path.suffix.lower() != ".json":
            path = path.with_suffix(".json")
        JSONOutput.save(session, path)
    return path


@click.group()
@click.version_option(__version__)
def main():
    """
    RoutePulse - continuous MTR-style route monitoring.

    Discovers the hops to a host, then keeps probing every hop to show
    per-hop latency and packet loss.
    """
    pass


@main.command()
@click.argument("host")
@click.option(
    "--max-hops", "-m",
    type=click.IntRange(MIN_HOPS, MAX_HOPS),
    default=30,
    help="Maximum number of hops to discover",
)
@click.option(
    "--interval", "-i",
    type=click.FloatRange(MIN_INTERVAL, MAX_INTERVAL),
    default=1.0,
    help="Seconds between probe rounds",
)
@click.option(
    "--count", "-c",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many probe rounds (default: run until Ctrl+C)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0.1),
    default=1.0,
    help="Per-probe timeout in seconds",
)
@click.option(
    "--ipv6", "-6",
    is_flag=True,
    help="Allow IPv6 targets (dual-stack resolution)",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    help="Write a final snapshot (JSON or CSV based on extension)",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable debug logging",
)
def monitor(
    host: str,
    max_hops: int,
    interval: float,
    count: Optional[int],
    timeout: float,
    ipv6: bool,
    output: Optional[str],
    verbose: bool,
):
    """
    Monitor the route to HOST.

    Examples:

    \b
      # Monitor until interrupted
      routepulse monitor example.com

    \b
      # Ten rounds, half a second apart, saved as JSON
      routepulse monitor example.com -c 10 -i 0.5 -o route.json
    """
    setup_logging(verbose)
    require_traceroute()

    config = MonitorConfig(
        host=host,
        max_hops=max_hops,
        interval=interval,
        probe_timeout=timeout,
        family=AddressFamily.ANY if ipv6 else AddressFamily.IPV4,
    )
    session = Session(config=config)
    console = Console()

    async def run_monitor():
        finished = asyncio.Event()

        with Live(console=console, refresh_per_second=4, transient=False) as live:

            def refresh(event: str, current: Session):
                live.update(RichConsoleOutput.build_table(current.hops, title=current.status))
                if event == "monitoring" and not current.monitoring:
                    finished.set()
                if event == "tick" and count is not None and current.ticks >= count:
                    finished.set()

            session.subscribe(refresh)
            session.start()
            try:
                await finished.wait()
            finally:
                await session.close()
                live.update(RichConsoleOutput.build_table(session.hops, title=session.status))

    try:
        asyncio.run(run_monitor())
    except KeyboardInterrupt:
        pass

    if output and session.hops:
        path = save_snapshot(session, output)
        click.echo(f"Results saved to {path}")

    if not session.hops:
        click.echo(session.status, err=True)
        sys.exit(1)


@main.command()
@click.argument("host")
@click.option(
    "--max-hops", "-m",
    type=click.IntRange(MIN_HOPS, MAX_HOPS),
    default=30,
    help="Maximum number of hops to discover",
)
@click.option(
    "--ipv6", "-6",
    is_flag=True,
    help="Allow IPv6 targets (dual-stack resolution)",
)
@click.option(
    "--json",
    is_flag=True,
    help="Output hops as JSON to stdout",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable debug logging",
)
def trace(host: str, max_hops: int, ipv6: bool, json: bool, verbose: bool):
    """Discover the route to HOST once and print its hops."""
    setup_logging(verbose)
    require_traceroute()

    resolver = Resolver(family=AddressFamily.ANY if ipv6 else AddressFamily.IPV4)
    discoverer = RouteDiscoverer(TracerouteExecutor(), resolver)

    async def run_trace():
        result = await discoverer.discover(host, max_hops)
        if result.success:
            names = await asyncio.gather(*(
                resolver.resolve_hostname(hop.address)
                for hop in result.hops
                if not hop.is_sentinel
            ))
            named = iter(names)
            for hop in result.hops:
                if not hop.is_sentinel:
                    hop.update_hostname(next(named))
        return result

    result = asyncio.run(run_trace())

    if not result.success:
        click.echo(result.message, err=True)
        sys.exit(1)

    if json:
        click.echo(jsonlib.dumps({
            "host": result.host,
            "target": result.target,
            "transport": result.transport.value,
            "hops": [
                {"hop": h.ordinal, "address": h.address, "hostname": h.hostname}
                for h in result.hops
            ],
        }, indent=2))
        return

    console = Console()
    console.print(f"[dim]{result.host} ({result.target}) via {result.transport.value.upper()}[/dim]")
    for hop in result.hops:
        suffix = f" ({hop.address})" if hop.hostname != hop.address else ""
        console.print(f"  {hop.ordinal:>2}  {hop.hostname}{suffix}")


@main.command()
def info():
    """Show platform and traceroute availability."""
    click.echo(f"Platform: {get_platform()}")
    click.echo(f"Elevated: {check_elevated_privileges()}")

    path = find_traceroute()
    if path:
        click.echo(f"traceroute: {path}")
    else:
        click.echo("traceroute: not found")
        click.echo("Install traceroute to enable discovery and monitoring")


if __name__ == "__main__":
    main()
