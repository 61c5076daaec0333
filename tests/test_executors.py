"""Tests for the traceroute-backed probe executor."""
import asyncio
import sys
import time

import pytest

from routepulse.executors import TracerouteExecutor, create_executor
from routepulse.models import ProbeTransport


@pytest.fixture
def executor():
    return TracerouteExecutor(binary="/usr/sbin/traceroute")


class TestCommandLines:
    """Argument construction for discovery and depth probes."""

    def test_udp_discovery(self, executor):
        args = executor.build_discovery_args("192.0.2.50", ProbeTransport.UDP, 30, 3.0)
        assert args == ["-n", "-q", "1", "-w", "3", "-m", "30", "192.0.2.50"]

    def test_icmp_discovery(self, executor):
        args = executor.build_discovery_args("192.0.2.50", ProbeTransport.ICMP, 12, 3.0)
        assert args[0] == "-I"
        assert args[-1] == "192.0.2.50"
        assert "-m" in args and args[args.index("-m") + 1] == "12"

    def test_ipv6_discovery(self, executor):
        args = executor.build_discovery_args("2001:db8::1", ProbeTransport.UDP, 30, 3.0)
        assert args[0] == "-6"
        assert args[-1] == "2001:db8::1"

    def test_depth_probe_pins_ttl(self, executor):
        args = executor.build_probe_args("192.0.2.50", 7, 1.0)
        assert args == ["-n", "-q", "1", "-w", "1", "-f", "7", "-m", "7", "192.0.2.50"]

    def test_fractional_wait(self, executor):
        args = executor.build_probe_args("192.0.2.50", 1, 0.5)
        assert args[args.index("-w") + 1] == "0.5"


class TestLaunchFailure:
    """A missing binary behaves like a failed probe, not an exception."""

    def test_discover_launch_failure(self):
        executor = TracerouteExecutor(binary="/nonexistent/traceroute")

        output = asyncio.run(executor.discover("192.0.2.50", ProbeTransport.UDP, 5, 1.0))

        assert output.stdout == ""
        assert output.returncode == -1
        assert output.stderr.startswith("launch failed:")
        assert executor.running == 0

    def test_probe_launch_failure(self):
        executor = TracerouteExecutor(binary="/nonexistent/traceroute")

        output = asyncio.run(executor.probe_at_depth("192.0.2.50", 3, 1.0))

        assert output.returncode == -1
        assert output.stdout == ""

    def test_terminate_all_when_idle(self):
        executor = TracerouteExecutor(binary="/nonexistent/traceroute")
        executor.terminate_all()
        assert executor.running == 0


@pytest.fixture
def stalled_executor(tmp_path):
    """Executor whose "traceroute" never finishes on its own."""
    script = tmp_path / "traceroute"
    script.write_text("#!/bin/sh\nexec sleep 30\n")
    script.chmod(0o755)
    return TracerouteExecutor(binary=str(script))


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
class TestRunningProcesses:
    """Processes still running are killed on stop or when they overrun."""

    def test_terminate_all_kills_probe_in_flight(self, stalled_executor):
        async def scenario():
            task = asyncio.ensure_future(stalled_executor.probe_at_depth("192.0.2.50", 1, 1.0))
            for _ in range(500):
                if stalled_executor.running:
                    break
                await asyncio.sleep(0.01)
            assert stalled_executor.running == 1

            started = time.monotonic()
            stalled_executor.terminate_all()
            output = await asyncio.wait_for(task, timeout=5)
            return output, time.monotonic() - started

        output, elapsed = asyncio.run(scenario())

        assert output.returncode != 0
        assert output.stdout == ""
        assert elapsed < 1.0
        assert stalled_executor.running == 0

    def test_overrun_is_killed_at_deadline(self, stalled_executor):
        output = asyncio.run(stalled_executor.discover("192.0.2.50", ProbeTransport.UDP, 1, 0.1))

        assert output.returncode == -1
        assert output.stdout == ""
        assert output.stderr.startswith("timed out after")
        assert stalled_executor.running == 0

    def test_cancelled_probe_reaps_process(self, stalled_executor):
        async def scenario():
            task = asyncio.ensure_future(stalled_executor.probe_at_depth("192.0.2.50", 1, 1.0))
            for _ in range(500):
                if stalled_executor.running:
                    break
                await asyncio.sleep(0.01)
            process = next(iter(stalled_executor._processes))
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return process

        process = asyncio.run(scenario())

        assert process.returncode is not None
        assert stalled_executor.running == 0


def test_create_executor():
    assert isinstance(create_executor("traceroute", binary="/usr/sbin/traceroute"), TracerouteExecutor)
    with pytest.raises(ValueError):
        create_executor("scamper")
