"""
Authenticated ONVIF enrichment.

Speaks just enough SOAP 1.2 to read device information and count media
profiles: GetDeviceInformation, GetCapabilities (Media) and GetProfiles,
authenticated with a WS-Security UsernameToken digest.

The whole exchange runs against a single deadline. Each request gets the
remaining budget as its timeout, response bodies are read against the
same deadline, and nothing more is sent once it is spent.
"""

import base64
import hashlib
import logging
import os
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

DEVICE_SERVICE_PATH = "/onvif/device_service"
MAX_RESPONSE_BYTES = 256 * 1024

SOAP_CONTENT_TYPE = "application/soap+xml; charset=utf-8"

ENVELOPE = """<?xml version="1.0" encoding="UTF-8"?>
<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope">
    <s:Header>
        <wsse:Security s:mustUnderstand="1"
            xmlns:wsse="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
            xmlns:wsu="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd">
            <wsse:UsernameToken>
                <wsse:Username>{username}</wsse:Username>
                <wsse:Password Type="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-username-token-profile-1.0#PasswordDigest">{digest}</wsse:Password>
                <wsse:Nonce EncodingType="http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-soap-message-security-1.0#Base64Binary">{nonce}</wsse:Nonce>
                <wsu:Created>{created}</wsu:Created>
            </wsse:UsernameToken>
        </wsse:Security>
    </s:Header>
    <s:Body>
        {body}
    </s:Body>
</s:Envelope>"""

GET_DEVICE_INFORMATION = '<tds:GetDeviceInformation xmlns:tds="http://www.onvif.org/ver10/device/wsdl"/>'
GET_CAPABILITIES = (
    '<tds:GetCapabilities xmlns:tds="http://www.onvif.org/ver10/device/wsdl">'
    "<tds:Category>Media</tds:Category>"
    "</tds:GetCapabilities>"
)
GET_PROFILES = '<trt:GetProfiles xmlns:trt="http://www.onvif.org/ver10/media/wsdl"/>'


class ONVIFError(Exception):
    """Handshake, transport or protocol failure. Never escapes the scanner."""


class ONVIFTimeout(ONVIFError):
    """The enrichment deadline passed."""


@dataclass(frozen=True)
class OnvifInfo:
    """What an authenticated ONVIF query told us about a device."""

    port: int
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    profiles: int = 0

    @property
    def streams(self) -> int:
        # One media profile per independently consumable stream.
        return self.profiles

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"port": self.port}
        if self.manufacturer:
            data["manufacturer"] = self.manufacturer
        if self.model:
            data["model"] = self.model
        if self.serial_number:
            data["serialNumber"] = self.serial_number
        data["profiles"] = self.profiles
        data["streams"] = self.streams
        return data


def _xml_escape(value: str) -> str:
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def password_digest(password: str, nonce: bytes, created: str) -> str:
    """Base64(SHA1(nonce + created + password)) per the UsernameToken profile."""
    raw = hashlib.sha1(nonce + created.encode() + password.encode()).digest()
    return base64.b64encode(raw).decode()


def build_envelope(body: str, username: str, password: str) -> str:
    nonce = os.urandom(16)
    created = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
    return ENVELOPE.format(
        username=_xml_escape(username),
        digest=password_digest(password, nonce, created),
        nonce=base64.b64encode(nonce).decode(),
        created=created,
        body=body,
    )


class _Deadline:
    def __init__(self, seconds: float):
        self._expires = time.monotonic() + seconds

    def remaining(self) -> float:
        left = self._expires - time.monotonic()
        if left <= 0:
            raise ONVIFTimeout("timeout")
        return left


def _text(root: ET.Element, path: str) -> Optional[str]:
    node = root.find(path)
    if node is None or node.text is None:
        return None
    return node.text.strip() or None


class OnvifSession:
    """One authenticated conversation with a device, bounded by a deadline."""

    def __init__(
        self,
        client: httpx.Client,
        host: str,
        port: int,
        username: str,
        password: str,
        timeout: float,
    ):
        self.client = client
        self.device_url = f"http://{host}:{port}{DEVICE_SERVICE_PATH}"
        self.username = username
        self.password = password
        self._deadline = _Deadline(timeout)

    def _read_body(self, response: httpx.Response) -> bytes:
        # httpx read timeouts are per chunk; the deadline bounds the whole body.
        chunks: list[bytes] = []
        size = 0
        for chunk in response.iter_bytes():
            self._deadline.remaining()
            size += len(chunk)
            if size > MAX_RESPONSE_BYTES:
                raise ONVIFError("response too large")
            chunks.append(chunk)
        return b"".join(chunks)

    def call(self, url: str, body: str) -> ET.Element:
        envelope = build_envelope(body, self.username, self.password)
        try:
            with self.client.stream(
                "POST",
                url,
                content=envelope.encode(),
                headers={"Content-Type": SOAP_CONTENT_TYPE},
                timeout=self._deadline.remaining(),
            ) as response:
                status_code = response.status_code
                content = self._read_body(response)
        except httpx.HTTPError as e:
            raise ONVIFError(f"request to {url} failed: {e}") from e

        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise ONVIFError(f"invalid SOAP response from {url}: {e}") from e

        fault = root.find(".//{*}Fault")
        if fault is not None:
            reason = _text(fault, ".//{*}Text") or "SOAP fault"
            raise ONVIFError(reason)
        if status_code >= 300:
            raise ONVIFError(f"HTTP {status_code} from {url}")
        return root

    def device_information(self) -> dict[str, Optional[str]]:
        root = self.call(self.device_url, GET_DEVICE_INFORMATION)
        info = root.find(".//{*}GetDeviceInformationResponse")
        if info is None:
            raise ONVIFError("missing GetDeviceInformationResponse")
        return {
            "manufacturer": _text(info, "{*}Manufacturer"),
            "model": _text(info, "{*}Model"),
            "serial_number": _text(info, "{*}SerialNumber"),
        }

    def media_url(self) -> str:
        """Media service XAddr, or the device service when not advertised."""
        try:
            root = self.call(self.device_url, GET_CAPABILITIES)
        except ONVIFTimeout:
            raise
        except ONVIFError as e:
            logger.debug("GetCapabilities failed on %s: %s", self.device_url, e)
            return self.device_url
        xaddr = _text(root, ".//{*}Media/{*}XAddr")
        if not xaddr:
            return self.device_url
        try:
            same_host = httpx.URL(xaddr).host == httpx.URL(self.device_url).host
        except httpx.InvalidURL:
            same_host = False
        if not same_host:
            logger.debug("Ignoring media XAddr %s advertised by %s", xaddr, self.device_url)
            return self.device_url
        return xaddr

    def profile_count(self) -> int:
        root = self.call(self.media_url(), GET_PROFILES)
        return len(root.findall(".//{*}GetProfilesResponse/{*}Profiles"))


def fetch_onvif_info(
    client: httpx.Client,
    host: str,
    port: int,
    username: str,
    password: str,
    timeout: float,
) -> OnvifInfo:
    """
    Query device information and media profiles.

    Raises:
        ONVIFError: On any handshake, transport or protocol failure,
            including running out of time.
    """
    session = OnvifSession(client, host, port, username, password, timeout)
    info = session.device_information()
    profiles = session.profile_count()
    return OnvifInfo(port=port, profiles=profiles, **info)


def try_onvif(
    client: httpx.Client,
    host: str,
    port: int,
    username: str,
    password: str,
    timeout: float,
) -> OnvifInfo | None:
    """fetch_onvif_info, degrading to None on failure."""
    try:
        return fetch_onvif_info(client, host, port, username, password, timeout)
    except ONVIFError as e:
        logger.debug("ONVIF enrichment skipped for %s:%d: %s", host, port, e)
        return None
