"""Tests for TCP connect probing."""

from unittest.mock import MagicMock, patch

from camscout_cli.discovery import probe
from camscout_cli.discovery.probe import open_ports, probe_tcp


class TestProbeTcp:
    """Tests for probe_tcp."""

    def test_successful_connect_is_open(self):
        """A completed handshake means open."""
        with patch.object(probe.socket, "create_connection", return_value=MagicMock()) as connect:
            assert probe_tcp("192.168.1.10", 554, 0.6) is True
        connect.assert_called_once_with(("192.168.1.10", 554), timeout=0.6)

    def test_refused_is_closed(self):
        """Connection refused is closed, not an error."""
        with patch.object(probe.socket, "create_connection", side_effect=ConnectionRefusedError()):
            assert probe_tcp("192.168.1.10", 80, 0.6) is False

    def test_timeout_is_closed(self):
        """A timeout is closed, not an error."""
        with patch.object(probe.socket, "create_connection", side_effect=TimeoutError()):
            assert probe_tcp("192.168.1.10", 80, 0.6) is False


class TestOpenPorts:
    """Tests for per-host port sweeps."""

    def test_returns_open_ports_in_candidate_order(self):
        """Only open ports are returned, in the order they were given."""
        open_set = {554, 80, 37777}

        def fake_probe(host, port, timeout):
            return port in open_set

        with patch.object(probe, "probe_tcp", side_effect=fake_probe):
            result = open_ports("10.0.0.5", [37777, 80, 443, 554, 8000], 0.5)
        assert result == [37777, 80, 554]

    def test_no_open_ports(self):
        """A silent host yields an empty list."""
        with patch.object(probe, "probe_tcp", return_value=False):
            assert open_ports("10.0.0.5", [80, 554], 0.5) == []
