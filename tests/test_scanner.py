"""Tests for the scan pipeline."""

from unittest.mock import patch

import httpx
import pytest

from camscout_cli.discovery import (
    DeviceKind,
    NetworkScanner,
    ScanConfigurationError,
    ScanOptions,
)
from camscout_cli.discovery import scanner as scanner_module
from camscout_cli.discovery.onvif import OnvifInfo

OPEN = {
    "192.168.1.2": [80, 554],
    "192.168.1.5": [80, 8000, 37777],
}

PAGES = {
    ("192.168.1.2", 80): "<html><title>IP Camera</title></html>",
    ("192.168.1.5", 80): "<html><title>WEB SERVICE</title>Dahua DVR</html>",
    ("192.168.1.5", 8000): "",
}


def fake_open_ports(host, ports, timeout):
    return [p for p in OPEN.get(host, []) if p in ports]


def http_handler(request: httpx.Request) -> httpx.Response:
    key = (request.url.host, request.url.port or 80)
    if key not in PAGES:
        raise httpx.ConnectError("refused", request=request)
    return httpx.Response(200, text=PAGES[key])


@pytest.fixture
def client():
    with httpx.Client(transport=httpx.MockTransport(http_handler)) as c:
        yield c


class TestScanOptions:
    """Tests for option validation."""

    def test_defaults_are_valid(self):
        """Default options pass validation."""
        ScanOptions().validate()

    @pytest.mark.parametrize("field", ["timeout_ms", "http_timeout_ms", "concurrency", "max_hosts"])
    def test_non_positive_values_rejected(self, field):
        """Zero timeouts, concurrency or budget are configuration errors."""
        with pytest.raises(ScanConfigurationError):
            ScanOptions(**{field: 0}).validate()

    def test_invalid_port_rejected(self):
        """Ports outside 1..65535 are rejected."""
        with pytest.raises(ScanConfigurationError, match="70000"):
            ScanOptions(ports=(80, 70000)).validate()

    def test_onvif_credentials_come_in_pairs(self):
        """A user without password is a configuration error."""
        with pytest.raises(ScanConfigurationError):
            ScanOptions(onvif_user="admin").validate()
        assert ScanOptions(onvif_user="admin", onvif_pass="x").onvif_enabled


class TestNetworkScanner:
    """Tests for NetworkScanner.scan."""

    def test_classifies_candidates_in_host_order(self, client):
        """Live hosts are fingerprinted and classified, in enumeration order."""
        options = ScanOptions(subnets=("192.168.1.0/29",), concurrency=4)
        with patch.object(scanner_module, "probe_open_ports", side_effect=fake_open_ports):
            result = NetworkScanner(options, client=client).scan()

        assert result.host_count == 6
        assert result.subnets == ("192.168.1.0/29",)
        assert [d.host for d in result.devices] == ["192.168.1.2", "192.168.1.5"]

        camera, nvr = result.devices
        assert camera.device_kind == DeviceKind.CAMERA
        assert camera.open_ports == (80, 554)
        assert camera.fingerprints[0].title == "IP Camera"
        assert camera.primary_url == "rtsp://192.168.1.2:554/"

        assert nvr.device_kind == DeviceKind.NVR
        assert nvr.vendor_guess.vendor == "dahua"
        assert "nvr-port" in nvr.reasons
        assert [fp.port for fp in nvr.fingerprints] == [80, 8000]
        assert nvr.primary_url == "http://192.168.1.5:80/"

    def test_public_subnet_fails_before_probing(self, client):
        """The private-range guard runs before any probe."""
        options = ScanOptions(subnets=("8.8.8.0/24",))
        with patch.object(scanner_module, "probe_open_ports") as probe:
            with pytest.raises(ScanConfigurationError):
                NetworkScanner(options, client=client).scan()
        probe.assert_not_called()

    def test_invalid_options_fail_before_probing(self, client):
        """Option validation happens first."""
        options = ScanOptions(subnets=("192.168.1.0/29",), concurrency=0)
        with patch.object(scanner_module, "probe_open_ports") as probe:
            with pytest.raises(ScanConfigurationError):
                NetworkScanner(options, client=client).scan()
        probe.assert_not_called()

    def test_progress_reports_every_host(self, client):
        """on_progress is called once per host, ending at (total, total)."""
        seen = []
        options = ScanOptions(subnets=("192.168.1.0/29",))
        with patch.object(scanner_module, "probe_open_ports", side_effect=fake_open_ports):
            NetworkScanner(options, client=client).scan(on_progress=lambda done, total: seen.append((done, total)))

        assert len(seen) == 6
        assert max(seen) == (6, 6)
        assert all(total == 6 for _, total in seen)

    def test_onvif_not_attempted_without_credentials(self, client):
        """Enrichment needs both user and password."""
        options = ScanOptions(subnets=("192.168.1.0/29",))
        with patch.object(scanner_module, "probe_open_ports", side_effect=fake_open_ports), \
                patch.object(scanner_module, "try_onvif") as onvif:
            result = NetworkScanner(options, client=client).scan()
        onvif.assert_not_called()
        assert all(d.onvif is None for d in result.devices)

    def test_onvif_stream_count_feeds_classifier(self, client):
        """Multi-profile ONVIF devices gain recorder evidence."""
        options = ScanOptions(subnets=("192.168.1.0/29",), onvif_user="admin", onvif_pass="pw")
        info = OnvifInfo(port=80, manufacturer="Dahua", model="NVR4108", profiles=8)
        with patch.object(scanner_module, "probe_open_ports", side_effect=fake_open_ports), \
                patch.object(scanner_module, "try_onvif", return_value=info) as onvif:
            result = NetworkScanner(options, client=client).scan()

        assert onvif.call_count == 2
        targets = {tuple(call.args[1:3]) for call in onvif.call_args_list}
        assert targets == {("192.168.1.2", 80), ("192.168.1.5", 80)}
        assert result.devices[0].onvif == info
        assert "multi-stream:8" in result.devices[0].reasons
        assert result.devices[1].display_name == "Dahua NVR4108"

    def test_result_serializes_to_camel_case(self, client):
        """The JSON document uses the documented keys."""
        options = ScanOptions(subnets=("192.168.1.0/29",))
        with patch.object(scanner_module, "probe_open_ports", side_effect=fake_open_ports):
            data = NetworkScanner(options, client=client).scan().to_dict()

        assert set(data) == {"scannedAt", "subnets", "hostCount", "devices"}
        device = data["devices"][0]
        assert set(device) == {
            "host", "openPorts", "fingerprints", "vendorGuess", "deviceKind", "confidence", "reasons",
        }
        assert device["deviceKind"] == "CAMERA"
        assert device["openPorts"] == [80, 554]
