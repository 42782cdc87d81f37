"""TCP connect probing."""

import logging
import socket
from typing import Sequence

from ..config import MAX_PORT_WORKERS
from .pool import run_bounded

logger = logging.getLogger(__name__)


def probe_tcp(host: str, port: int, timeout: float) -> bool:
    """
    Return True if a TCP connection to host:port succeeds within timeout.

    Refused, timed out and unreachable are all just "closed".
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.debug("%s:%d closed (%s)", host, port, e)
        return False


def open_ports(host: str, ports: Sequence[int], timeout: float) -> list[int]:
    """Probe all candidate ports of one host, returning the open ones in candidate order."""
    results = run_bounded(
        list(ports),
        min(MAX_PORT_WORKERS, len(ports)),
        lambda port: port if probe_tcp(host, port, timeout) else None,
    )
    return [port for port in results if port is not None]
