"""
Vendor and device-kind classification.

Both classifiers are pure scoring functions over flat rule data. New vendors
are added to VENDOR_RULES, not by subclassing anything.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from .. import config
from .http_probe import Fingerprint


class DeviceKind(Enum):
    """Kind of surveillance device behind a host."""

    NVR = "NVR"
    CAMERA = "CAMERA"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class VendorRule:
    """Signature of one vendor: text patterns, realm patterns, usual ports."""

    vendor: str
    patterns: tuple[re.Pattern, ...]
    ports: tuple[int, ...] = ()
    realms: tuple[re.Pattern, ...] = ()


def _rx(*sources: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(s, re.IGNORECASE) for s in sources)


# Order matters on ties: the earlier rule wins.
VENDOR_RULES: tuple[VendorRule, ...] = (
    VendorRule("hikvision", _rx(r"hikvision", r"ivms", r"isapi", r"ds-2"), (8000,), _rx(r"hikvision")),
    VendorRule("dahua", _rx(r"dahua", r"webs", r"dvr"), (37777, 37778), _rx(r"dahua")),
    VendorRule("uniview", _rx(r"uniview", r"\bunv\b"), (5060,), _rx(r"unv")),
    VendorRule("axis", _rx(r"axis"), (), _rx(r"axis")),
    VendorRule("reolink", _rx(r"reolink"), (9000,)),
    VendorRule("seetong", _rx(r"seetong"), (8899,)),
)

TEXT_POINTS = 3
REALM_POINTS = 2
PORT_POINTS = 1


@dataclass(frozen=True)
class VendorGuess:
    vendor: Optional[str] = None
    confidence: float = 0.0
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"vendor": self.vendor, "confidence": self.confidence, "reasons": list(self.reasons)}


@dataclass(frozen=True)
class KindThresholds:
    """Calibration for the device-kind decision."""

    nvr_margin: int = config.NVR_MARGIN
    camera_margin: int = config.CAMERA_MARGIN
    nvr_ceiling: int = config.NVR_SCORE_CEILING
    camera_ceiling: int = config.CAMERA_SCORE_CEILING
    unknown_confidence: float = config.UNKNOWN_CONFIDENCE


@dataclass(frozen=True)
class KindResult:
    kind: DeviceKind
    confidence: float
    reasons: tuple[str, ...] = field(default_factory=tuple)


def score_rule(
    rule: VendorRule,
    haystack: str,
    open_ports: Iterable[int],
) -> tuple[int, list[str]]:
    """
    Score one rule against all banner text.

    Realm patterns are a second, lighter signal over the same text, so a
    vendor name in the auth realm or the title earns both. Points only ever
    add up; more evidence never lowers a score.
    """
    ports = set(open_ports)
    score = 0
    reasons: list[str] = []
    for pattern in rule.patterns:
        if pattern.search(haystack):
            score += TEXT_POINTS
            reasons.append(f"match:{pattern.pattern}")
    for pattern in rule.realms:
        if pattern.search(haystack):
            score += REALM_POINTS
            reasons.append(f"realm:{pattern.pattern}")
    for port in rule.ports:
        if port in ports:
            score += PORT_POINTS
            reasons.append(f"port:{port}")
    return score, reasons


def guess_vendor(
    open_ports: Sequence[int],
    fingerprints: Sequence[Fingerprint],
    rules: Sequence[VendorRule] = VENDOR_RULES,
    ceiling: int = config.VENDOR_SCORE_CEILING,
) -> VendorGuess:
    """Pick the best-scoring vendor rule for a host; confidence is score/ceiling capped at 1."""
    haystack = " ".join(text for fp in fingerprints for text in fp.evidence())

    best_vendor = None
    best_score = 0
    best_reasons: list[str] = []
    for rule in rules:
        score, reasons = score_rule(rule, haystack, open_ports)
        if score > best_score:
            best_vendor, best_score, best_reasons = rule.vendor, score, reasons

    if best_score <= 0:
        return VendorGuess()
    return VendorGuess(
        vendor=best_vendor,
        confidence=min(1.0, best_score / ceiling),
        reasons=tuple(best_reasons),
    )


def classify_device(
    open_ports: Sequence[int],
    vendor_guess: VendorGuess,
    onvif_streams: Optional[int] = None,
    thresholds: KindThresholds = KindThresholds(),
) -> KindResult:
    """
    Decide NVR vs camera from port mix, vendor family and stream count.

    NVR needs a lead of nvr_margin points, camera a lead of camera_margin;
    anything closer is UNKNOWN.
    """
    ports = set(open_ports)
    nvr_score = 0
    cam_score = 0
    reasons: list[str] = []

    if config.RTSP_PORT in ports:
        cam_score += 2
        reasons.append("rtsp-port")
    if ports & config.NVR_PORTS:
        nvr_score += 2
        reasons.append("nvr-port")
    if config.SHARED_MGMT_PORT in ports:
        nvr_score += 1
        cam_score += 1
        reasons.append(f"mgmt-port:{config.SHARED_MGMT_PORT}")
    if ports & config.WEB_PORTS:
        cam_score += 1
        reasons.append("web-port")
    if vendor_guess.vendor in config.RECORDER_VENDORS:
        nvr_score += 1
        reasons.append(f"recorder-vendor:{vendor_guess.vendor}")
    if onvif_streams is not None and onvif_streams > 1:
        nvr_score += 3
        reasons.append(f"multi-stream:{onvif_streams}")

    if nvr_score >= cam_score + thresholds.nvr_margin:
        return KindResult(DeviceKind.NVR, min(1.0, nvr_score / thresholds.nvr_ceiling), tuple(reasons))
    if cam_score >= nvr_score + thresholds.camera_margin:
        return KindResult(DeviceKind.CAMERA, min(1.0, cam_score / thresholds.camera_ceiling), tuple(reasons))
    return KindResult(DeviceKind.UNKNOWN, thresholds.unknown_confidence, tuple(reasons))
