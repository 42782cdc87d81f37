"""Client for the inventory API endpoints used by provisioning."""

import logging
from typing import Any, Optional

import httpx

from ..config import (
    CAMERAS_ENDPOINT,
    DEPLOY_ENDPOINT,
    NVR_SYNC_ENDPOINT,
    NVR_TEST_ENDPOINT,
    NVRS_ENDPOINT,
)

logger = logging.getLogger(__name__)


class InventoryAPIError(Exception):
    """The inventory API rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        prefix = f"{status_code} " if status_code is not None else ""
        super().__init__(f"{prefix}{message}")


def _error_message(response: httpx.Response, data: Any) -> str:
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or "Request failed"


class InventoryClient:
    """Bearer-authenticated JSON client, one synchronous round-trip per call."""

    def __init__(
        self,
        base_url: str,
        token: str,
        school_id: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.school_id = school_id
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {token}",
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, body: dict) -> Any:
        """
        POST JSON and return the decoded response.

        Raises:
            InventoryAPIError: Non-2xx status (with the server's message) or
                transport failure (status_code None).
        """
        logger.debug("POST %s%s", self.base_url, path)
        try:
            response = self._client.post(path, json=body)
        except httpx.RequestError as e:
            raise InventoryAPIError(f"Connection error: {e}") from e

        try:
            data = response.json() if response.content.strip() else {}
        except ValueError:
            data = response.text

        if not response.is_success:
            raise InventoryAPIError(_error_message(response, data), response.status_code, data)
        return data

    def create_recorder(self, payload: dict) -> dict:
        """Create an NVR. Returns at least {"id", "name"}."""
        data = self._post(NVRS_ENDPOINT.format(school_id=self.school_id), payload)
        if not isinstance(data, dict) or not data.get("id"):
            raise InventoryAPIError("Create recorder response has no id", details=data)
        return data

    def test_recorder(self, nvr_id: str) -> Any:
        return self._post(NVR_TEST_ENDPOINT.format(nvr_id=nvr_id), {})

    def sync_recorder(self, nvr_id: str, overwrite_names: bool, disable_missing: bool) -> Any:
        return self._post(
            NVR_SYNC_ENDPOINT.format(nvr_id=nvr_id),
            {"overwriteNames": overwrite_names, "disableMissing": disable_missing},
        )

    def create_camera(self, payload: dict) -> Any:
        return self._post(CAMERAS_ENDPOINT.format(school_id=self.school_id), payload)

    def trigger_deploy(self, payload: dict) -> Any:
        """Ask the backend to build and deploy the media-relay config itself."""
        return self._post(DEPLOY_ENDPOINT.format(school_id=self.school_id), payload)
