"""
HTTP(S) fingerprinting of device web-management ports.

One unauthenticated GET / per open web port. Embedded recorders and
cameras almost always ship self-signed certificates, so TLS verification
is disabled on the scanning client.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import HTTPS_PORTS, MAX_BODY_BYTES, SNIPPET_CHARS

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_REALM_RE = re.compile(r'realm="?([^";]+)"?', re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


@dataclass(frozen=True)
class Fingerprint:
    """Evidence collected from one responding web port."""

    port: int
    protocol: str  # http, https
    status: Optional[int] = None
    server: Optional[str] = None
    realm: Optional[str] = None
    title: Optional[str] = None
    snippet: Optional[str] = None

    def url_for(self, host: str) -> str:
        return f"{self.protocol}://{host}:{self.port}/"

    def evidence(self) -> list[str]:
        """Text fields fed to the vendor classifier."""
        return [v for v in (self.title, self.snippet, self.server, self.realm) if v]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"port": self.port, "protocol": self.protocol}
        for key in ("status", "server", "realm", "title", "snippet"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


def create_client() -> httpx.Client:
    """Shared scanning client. Thread-safe; one per scan run."""
    return httpx.Client(verify=False, headers=REQUEST_HEADERS, follow_redirects=False)


def protocol_for_port(port: int) -> str:
    return "https" if port in HTTPS_PORTS else "http"


def _read_bounded(response: httpx.Response, limit: int, deadline: float) -> bytes:
    """Read at most limit bytes, giving up once the monotonic deadline passes."""
    chunks: list[bytes] = []
    size = 0
    for chunk in response.iter_bytes():
        if time.monotonic() > deadline:
            raise httpx.ReadTimeout("fingerprint read exceeded its deadline", request=response.request)
        chunks.append(chunk)
        size += len(chunk)
        if size >= limit:
            break
    return b"".join(chunks)[:limit]


def parse_fingerprint(port: int, protocol: str, response: httpx.Response, body: bytes) -> Fingerprint:
    text = body.decode("utf-8", errors="replace")
    title_match = _TITLE_RE.search(text)
    auth_header = response.headers.get("www-authenticate", "")
    realm_match = _REALM_RE.search(auth_header)
    snippet = _WHITESPACE_RE.sub(" ", text[:SNIPPET_CHARS]).strip()
    return Fingerprint(
        port=port,
        protocol=protocol,
        status=response.status_code,
        server=response.headers.get("server"),
        realm=realm_match.group(1) if realm_match else None,
        title=title_match.group(1).strip() if title_match else None,
        snippet=snippet or None,
    )


def fetch_fingerprint(
    client: httpx.Client,
    host: str,
    port: int,
    timeout: float,
) -> Fingerprint | None:
    """
    GET / on host:port and extract banner evidence.

    Any failure (timeout, reset, TLS or protocol error) yields None.
    """
    protocol = protocol_for_port(port)
    url = f"{protocol}://{host}:{port}/"
    deadline = time.monotonic() + timeout
    try:
        with client.stream("GET", url, timeout=timeout) as response:
            body = _read_bounded(response, MAX_BODY_BYTES, deadline)
            return parse_fingerprint(port, protocol, response, body)
    except httpx.HTTPError as e:
        logger.debug("No fingerprint for %s: %s", url, e)
        return None
