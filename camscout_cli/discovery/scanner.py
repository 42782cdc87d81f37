"""
Network scanner for discovering IP cameras and NVRs.

Pipeline per run:
- expand subnets behind the private-range guard
- TCP connect-probe a fixed candidate port set (hosts and ports bounded separately)
- fingerprint open web ports over HTTP(S)
- score vendor and device kind
- optionally enrich with an authenticated ONVIF query
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from .. import config
from .classify import DeviceKind, KindThresholds, VendorGuess, classify_device, guess_vendor
from .http_probe import Fingerprint, create_client, fetch_fingerprint
from .onvif import OnvifInfo, try_onvif
from .pool import run_bounded
from .probe import open_ports as probe_open_ports
from .subnets import ScanConfigurationError, resolve_scan_hosts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanOptions:
    """Immutable configuration for one scan run. Timeouts in milliseconds."""

    subnets: tuple[str, ...] = ()
    ports: tuple[int, ...] = config.DEFAULT_PORTS
    timeout_ms: int = config.DEFAULT_TCP_TIMEOUT_MS
    http_timeout_ms: int = config.DEFAULT_HTTP_TIMEOUT_MS
    concurrency: int = config.DEFAULT_CONCURRENCY
    max_hosts: int = config.DEFAULT_MAX_HOSTS
    allow_public: bool = False
    onvif_user: Optional[str] = None
    onvif_pass: Optional[str] = None
    onvif_timeout_ms: int = config.DEFAULT_ONVIF_TIMEOUT_MS

    @property
    def onvif_enabled(self) -> bool:
        return bool(self.onvif_user and self.onvif_pass)

    def validate(self) -> None:
        """Raise ScanConfigurationError for values no scan can run with."""
        for name in ("timeout_ms", "http_timeout_ms", "onvif_timeout_ms", "concurrency", "max_hosts"):
            if getattr(self, name) <= 0:
                raise ScanConfigurationError(f"{name} must be positive")
        if not self.ports:
            raise ScanConfigurationError("At least one port is required")
        bad = [p for p in self.ports if not 1 <= p <= 65535]
        if bad:
            raise ScanConfigurationError(f"Invalid port(s): {', '.join(map(str, bad))}")
        if bool(self.onvif_user) != bool(self.onvif_pass):
            raise ScanConfigurationError("ONVIF user and password must be given together")


@dataclass(frozen=True)
class DeviceCandidate:
    """One responsive host and everything we concluded about it."""

    host: str
    open_ports: tuple[int, ...]
    fingerprints: tuple[Fingerprint, ...] = ()
    vendor_guess: VendorGuess = field(default_factory=VendorGuess)
    device_kind: DeviceKind = DeviceKind.UNKNOWN
    confidence: float = 0.0
    reasons: tuple[str, ...] = ()
    onvif: Optional[OnvifInfo] = None

    @property
    def primary_url(self) -> Optional[str]:
        """Best guess at where an operator should look first."""
        if config.RTSP_PORT in self.open_ports:
            return f"rtsp://{self.host}:{config.RTSP_PORT}/"
        if self.fingerprints:
            return self.fingerprints[0].url_for(self.host)
        return None

    @property
    def display_name(self) -> str:
        parts = []
        if self.onvif and self.onvif.manufacturer:
            parts.append(self.onvif.manufacturer)
        elif self.vendor_guess.vendor:
            parts.append(self.vendor_guess.vendor.capitalize())
        if self.onvif and self.onvif.model:
            parts.append(self.onvif.model)
        return " ".join(parts) if parts else f"{self.device_kind.value.lower()}@{self.host}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "host": self.host,
            "openPorts": list(self.open_ports),
            "fingerprints": [fp.to_dict() for fp in self.fingerprints],
            "vendorGuess": self.vendor_guess.to_dict(),
            "deviceKind": self.device_kind.value,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
        }
        if self.onvif:
            data["onvif"] = self.onvif.to_dict()
        return data


@dataclass(frozen=True)
class ScanResult:
    scanned_at: str
    subnets: tuple[str, ...]
    host_count: int
    devices: tuple[DeviceCandidate, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scannedAt": self.scanned_at,
            "subnets": list(self.subnets),
            "hostCount": self.host_count,
            "devices": [d.to_dict() for d in self.devices],
        }


class NetworkScanner:
    """
    Scans the local network for IP cameras and NVRs.

    Usage:
        scanner = NetworkScanner(ScanOptions(subnets=("192.168.1.0/24",)))
        result = scanner.scan()
        for device in result.devices:
            print(device.host, device.device_kind.value)
    """

    def __init__(
        self,
        options: ScanOptions,
        client: httpx.Client | None = None,
        thresholds: KindThresholds = KindThresholds(),
    ):
        """
        Initialize the scanner.

        Args:
            options: Run configuration.
            client: HTTP client for fingerprint and ONVIF requests. A
                verify=False client is created (and closed) per scan if None.
            thresholds: Device-kind calibration.
        """
        self.options = options
        self.thresholds = thresholds
        self._client = client

    def _sweep_host(self, host: str) -> tuple[str, list[int]] | None:
        found = probe_open_ports(host, self.options.ports, self.options.timeout_ms / 1000)
        return (host, found) if found else None

    def _fingerprint_host(self, client: httpx.Client, host: str, ports: list[int]) -> list[Fingerprint]:
        targets = [p for p in ports if p in config.HTTP_PORTS or p in config.HTTPS_PORTS]
        results = run_bounded(
            targets,
            config.MAX_FINGERPRINT_WORKERS,
            lambda port: fetch_fingerprint(client, host, port, self.options.http_timeout_ms / 1000),
        )
        return [fp for fp in results if fp is not None]

    def _enrich(self, client: httpx.Client, host: str, ports: list[int]) -> OnvifInfo | None:
        if not self.options.onvif_enabled:
            return None
        port = next((p for p in config.ONVIF_PORTS if p in ports), None)
        if port is None:
            return None
        return try_onvif(
            client,
            host,
            port,
            self.options.onvif_user,
            self.options.onvif_pass,
            self.options.onvif_timeout_ms / 1000,
        )

    def inspect_host(self, client: httpx.Client, host: str, ports: list[int]) -> DeviceCandidate:
        """Fingerprint, classify and optionally enrich one live host."""
        fingerprints = self._fingerprint_host(client, host, ports)
        vendor = guess_vendor(ports, fingerprints)
        onvif = self._enrich(client, host, ports)
        kind = classify_device(ports, vendor, onvif.streams if onvif else None, self.thresholds)
        logger.debug("%s -> %s (%.2f) %s", host, kind.kind.value, kind.confidence, ", ".join(kind.reasons))
        return DeviceCandidate(
            host=host,
            open_ports=tuple(ports),
            fingerprints=tuple(fingerprints),
            vendor_guess=vendor,
            device_kind=kind.kind,
            confidence=kind.confidence,
            reasons=kind.reasons,
            onvif=onvif,
        )

    def scan(
        self,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> ScanResult:
        """
        Run the scan.

        Args:
            on_progress: Callback (hosts swept, total hosts).

        Returns:
            ScanResult with candidates in host enumeration order.

        Raises:
            ScanConfigurationError: Before any network I/O, if the options
                or the target subnets are not acceptable.
        """
        self.options.validate()
        subnets, hosts = resolve_scan_hosts(
            list(self.options.subnets),
            self.options.allow_public,
            self.options.max_hosts,
        )
        logger.info("Scanning %d host(s) in %s", len(hosts), ", ".join(subnets))

        total = len(hosts)
        done = 0
        progress_lock = threading.Lock()

        def sweep(host: str) -> tuple[str, list[int]] | None:
            nonlocal done
            result = self._sweep_host(host)
            if on_progress:
                with progress_lock:
                    done += 1
                    on_progress(done, total)
            return result

        live = [item for item in run_bounded(hosts, self.options.concurrency, sweep) if item]
        logger.info("%d host(s) with open candidate ports", len(live))

        client = self._client or create_client()
        try:
            devices = run_bounded(
                live,
                self.options.concurrency,
                lambda item: self.inspect_host(client, item[0], item[1]),
            )
        finally:
            if self._client is None:
                client.close()

        return ScanResult(
            scanned_at=datetime.now(timezone.utc).isoformat(),
            subnets=tuple(subnets),
            host_count=total,
            devices=tuple(devices),
        )
