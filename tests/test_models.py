"""Unit tests for configuration and hop models."""
import pytest

from routepulse.models import Hop, MonitorConfig


class TestMonitorConfig:
    """Bounds checks on monitor configuration."""

    def test_defaults_are_valid(self):
        config = MonitorConfig()
        config.validate()
        assert config.max_hops == 30
        assert config.interval == 1.0

    @pytest.mark.parametrize("max_hops", [0, 65, -1])
    def test_max_hops_out_of_range(self, max_hops):
        with pytest.raises(ValueError, match="max_hops"):
            MonitorConfig(max_hops=max_hops).validate()

    @pytest.mark.parametrize("interval", [0.05, 60.5])
    def test_interval_out_of_range(self, interval):
        with pytest.raises(ValueError, match="interval"):
            MonitorConfig(interval=interval).validate()

    def test_bounds_are_inclusive(self):
        MonitorConfig(max_hops=1, interval=0.1).validate()
        MonitorConfig(max_hops=64, interval=60.0).validate()

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError, match="probe_timeout"):
            MonitorConfig(probe_timeout=0).validate()


class TestHop:
    def test_hostname_defaults_to_address(self):
        hop = Hop(ordinal=1, address="192.0.2.1")
        assert hop.hostname == "192.0.2.1"
        assert not hop.is_sentinel

    def test_sentinel(self):
        hop = Hop(ordinal=4, address="*")
        assert hop.is_sentinel
        assert hop.hostname == "*"

    def test_update_hostname_ignores_empty(self):
        hop = Hop(ordinal=1, address="192.0.2.1")
        hop.update_hostname("")
        assert hop.hostname == "192.0.2.1"
        hop.update_hostname("gw.example.net")
        assert hop.hostname == "gw.example.net"

    def test_hops_have_independent_stats(self):
        first = Hop(ordinal=1, address="192.0.2.1")
        second = Hop(ordinal=2, address="192.0.2.2")
        first.stats.record_outcome(1.0)
        assert second.stats.sent == 0
