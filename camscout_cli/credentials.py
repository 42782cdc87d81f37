"""Stored API credentials for the camscout CLI."""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from .config import CONFIG_DIR, CREDENTIALS_FILE

logger = logging.getLogger(__name__)


@dataclass
class Credentials:
    """Inventory API token plus optional defaults for provisioning."""

    token: str
    api_url: Optional[str] = None
    school_id: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"token": self.token}
        if self.api_url:
            payload["api_url"] = self.api_url
        if self.school_id:
            payload["school_id"] = self.school_id
        if self.created_at:
            payload["created_at"] = self.created_at
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "Credentials":
        return cls(
            token=data.get("token", ""),
            api_url=data.get("api_url"),
            school_id=data.get("school_id"),
            created_at=data.get("created_at"),
        )


def ensure_config_dir() -> None:
    """Ensure the config directory exists with proper permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    if os.name != "nt":
        try:
            os.chmod(CONFIG_DIR, 0o700)
        except PermissionError:
            logger.debug("Could not restrict permissions on %s", CONFIG_DIR)


def save_credentials(credentials: Credentials) -> None:
    """Save credentials, keeping fields the new value leaves unset."""
    ensure_config_dir()

    if not credentials.created_at:
        credentials.created_at = datetime.now(timezone.utc).isoformat()

    existing: dict = {}
    if CREDENTIALS_FILE.exists():
        try:
            with open(CREDENTIALS_FILE, "r") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                existing = loaded
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable credentials file %s: %s", CREDENTIALS_FILE, e)

    with open(CREDENTIALS_FILE, "w") as f:
        json.dump({**existing, **credentials.to_dict()}, f, indent=2)

    if os.name != "nt":
        try:
            os.chmod(CREDENTIALS_FILE, 0o600)
        except PermissionError:
            logger.debug("Could not restrict permissions on %s", CREDENTIALS_FILE)


def load_credentials() -> Optional[Credentials]:
    """Load credentials from the config file."""
    if not CREDENTIALS_FILE.exists():
        return None

    try:
        with open(CREDENTIALS_FILE, "r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Could not read %s: %s", CREDENTIALS_FILE, e)
        return None
    if not isinstance(data, dict):
        return None
    return Credentials.from_dict(data)


def clear_credentials() -> bool:
    """Remove stored credentials. Returns True if a file was removed."""
    if CREDENTIALS_FILE.exists():
        CREDENTIALS_FILE.unlink()
        return True
    return False
