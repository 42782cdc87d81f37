"""Network discovery utilities for IP cameras and NVRs."""

from .classify import DeviceKind, VendorGuess
from .scanner import DeviceCandidate, NetworkScanner, ScanOptions, ScanResult
from .subnets import ScanConfigurationError

__all__ = [
    "DeviceCandidate",
    "DeviceKind",
    "NetworkScanner",
    "ScanConfigurationError",
    "ScanOptions",
    "ScanResult",
    "VendorGuess",
]
