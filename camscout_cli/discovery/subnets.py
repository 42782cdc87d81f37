"""
Subnet expansion and the private-range guard.

Scans are only allowed on RFC1918 / link-local space unless the caller
explicitly opts in to public ranges. All checks here run before any socket
is opened.
"""

import ipaddress
import logging
import re
import socket
import subprocess
from dataclasses import dataclass

from ..config import clean_subprocess_env

logger = logging.getLogger(__name__)

PRIVATE_RANGES = (
    ipaddress.IPv4Network("10.0.0.0/8"),
    ipaddress.IPv4Network("172.16.0.0/12"),
    ipaddress.IPv4Network("192.168.0.0/16"),
    ipaddress.IPv4Network("169.254.0.0/16"),
)

_IP_ADDR_LINE = re.compile(r"\binet\s+(\d+\.\d+\.\d+\.\d+)/(\d+)")


class ScanConfigurationError(Exception):
    """Raised when a scan is misconfigured. Always raised before network I/O."""


@dataclass(frozen=True)
class Subnet:
    """A parsed IPv4 CIDR block."""

    cidr: str
    network: int
    prefix: int

    @property
    def broadcast(self) -> int:
        return self.network + (2 ** (32 - self.prefix) - 1)

    @property
    def host_count(self) -> int:
        return max(0, self.broadcast - self.network - 1)

    def hosts(self) -> list[str]:
        """Usable hosts: the open interval between network and broadcast."""
        return [int_to_ip(i) for i in range(self.network + 1, self.broadcast)]

    def is_private(self) -> bool:
        """True when the whole block sits inside one private/link-local range."""
        for private in PRIVATE_RANGES:
            low = int(private.network_address)
            high = int(private.broadcast_address)
            if low <= self.network and self.broadcast <= high:
                return True
        return False


def ip_to_int(ip: str) -> int:
    """Convert dotted-quad IPv4 to a 32-bit integer."""
    return int(ipaddress.IPv4Address(ip))


def int_to_ip(value: int) -> str:
    return str(ipaddress.IPv4Address(value))


def parse_subnet(cidr: str) -> Subnet:
    """
    Parse "a.b.c.d/nn" (or a bare address, taken as /32).

    Host bits are allowed and masked off, so an interface address such as
    192.168.1.37/24 expands to the whole 192.168.1.0/24 block.
    """
    text = cidr.strip()
    if "/" not in text:
        text = f"{text}/32"
    address, _, prefix_str = text.partition("/")
    try:
        base = ip_to_int(address)
        prefix = int(prefix_str)
    except ValueError as e:
        raise ScanConfigurationError(f"Invalid subnet '{cidr}': {e}") from e
    if not 0 <= prefix <= 32:
        raise ScanConfigurationError(f"Invalid prefix length in '{cidr}'")

    mask = 0 if prefix == 0 else (0xFFFFFFFF << (32 - prefix)) & 0xFFFFFFFF
    return Subnet(cidr=text, network=base & mask, prefix=prefix)


def expand_cidr(cidr: str) -> list[str]:
    """List usable host addresses in a CIDR block (network/broadcast excluded)."""
    return parse_subnet(cidr).hosts()


def is_private_cidr(cidr: str) -> bool:
    return parse_subnet(cidr).is_private()


def _subnets_from_ip_command() -> list[str]:
    try:
        output = subprocess.run(
            ["ip", "-o", "-4", "addr", "show"],
            capture_output=True,
            text=True,
            timeout=5,
            env=clean_subprocess_env(),
        ).stdout
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("ip command unavailable: %s", e)
        return []

    subnets = []
    for line in output.splitlines():
        match = _IP_ADDR_LINE.search(line)
        if not match:
            continue
        address, prefix = match.groups()
        if address.startswith("127."):
            continue
        subnets.append(f"{address}/{prefix}")
    return subnets


def _primary_address() -> str | None:
    """Outbound IPv4 address. A UDP connect sends no packets."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
        finally:
            s.close()
    except OSError:
        return None


def get_local_subnets() -> list[str]:
    """
    Detect subnets of this machine's non-loopback IPv4 interfaces.

    Falls back to the primary outbound address as a /24 when interface
    details are not available.
    """
    subnets = _subnets_from_ip_command()
    if subnets:
        return subnets
    primary = _primary_address()
    if primary and not primary.startswith("127."):
        return [f"{primary}/24"]
    return []


def distinct_host_count(subnets: list[Subnet]) -> int:
    """Usable hosts across subnets, overlaps counted once, without expanding them."""
    total = 0
    end = -1
    for low, high in sorted((s.network + 1, s.broadcast - 1) for s in subnets if s.host_count):
        low = max(low, end + 1)
        if high >= low:
            total += high - low + 1
            end = high
    return total


def resolve_scan_hosts(
    subnets: list[str],
    allow_public: bool,
    max_hosts: int,
) -> tuple[list[str], list[str]]:
    """
    Apply the guards and expand subnets into a de-duplicated host list.

    Explicit subnets must all be private unless allow_public is set.
    Auto-detected interface subnets that are public are dropped with a
    warning. Either way, an empty result is an error.

    Returns:
        (subnets actually scanned, host addresses in enumeration order)

    Raises:
        ScanConfigurationError: No usable private subnet, or the host
            budget is exceeded.
    """
    explicit = bool(subnets)
    candidates = list(subnets) if explicit else get_local_subnets()
    if not candidates:
        raise ScanConfigurationError("No subnets given and no local IPv4 interface detected.")

    parsed = [parse_subnet(cidr) for cidr in candidates]

    if not allow_public:
        public = [s.cidr for s in parsed if not s.is_private()]
        if public and explicit:
            raise ScanConfigurationError(
                f"Refusing to scan public range(s): {', '.join(public)}. "
                "Pass --allow-public to override (not recommended)."
            )
        for cidr in public:
            logger.warning("Skipping public interface subnet %s", cidr)
        parsed = [s for s in parsed if s.is_private()]
        if not parsed:
            raise ScanConfigurationError(
                "No private subnets detected. Pass --allow-public to override (not recommended)."
            )

    total = distinct_host_count(parsed)
    if total > max_hosts:
        raise ScanConfigurationError(f"Host count {total} exceeds max hosts {max_hosts}")

    seen: set[str] = set()
    hosts: list[str] = []
    for subnet in parsed:
        for host in subnet.hosts():
            if host not in seen:
                seen.add(host)
                hosts.append(host)
    return [s.cidr for s in parsed], hosts
