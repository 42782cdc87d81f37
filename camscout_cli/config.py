"""Configuration and constants for the camscout CLI."""

import os
import sys
from pathlib import Path

# Inventory API
DEFAULT_API_URL = "http://localhost:4000"
NVRS_ENDPOINT = "/schools/{school_id}/nvrs"
CAMERAS_ENDPOINT = "/schools/{school_id}/cameras"
NVR_TEST_ENDPOINT = "/nvrs/{nvr_id}/test-connection"
NVR_SYNC_ENDPOINT = "/nvrs/{nvr_id}/onvif-sync"
DEPLOY_ENDPOINT = "/schools/{school_id}/mediamtx-deploy"

# Config directory
CONFIG_DIR = Path.home() / ".camscout"
CREDENTIALS_FILE = CONFIG_DIR / "credentials.json"

# Port sets probed during a scan
DEFAULT_PORTS = (80, 443, 554, 8000, 8080, 8443, 8899, 37777, 37778, 34567, 5060, 9000)
HTTP_PORTS = frozenset({80, 8000, 8080, 8899, 9000})
HTTPS_PORTS = frozenset({443, 8443})
ONVIF_PORTS = (80, 8000, 8080)
RTSP_PORT = 554

# Scan defaults (milliseconds where noted)
DEFAULT_TCP_TIMEOUT_MS = 600
DEFAULT_HTTP_TIMEOUT_MS = 1200
DEFAULT_ONVIF_TIMEOUT_MS = 2000
DEFAULT_CONCURRENCY = 128
DEFAULT_MAX_HOSTS = 1024
MAX_PORT_WORKERS = 64
MAX_FINGERPRINT_WORKERS = 8

# Fingerprint capture bounds
MAX_BODY_BYTES = 12_000
SNIPPET_CHARS = 200

# Device-kind calibration. Empirical values, keep them as they are.
NVR_PORTS = frozenset({37777, 37778, 34567, 8000})
SHARED_MGMT_PORT = 8899
WEB_PORTS = frozenset({80, 443})
RECORDER_VENDORS = frozenset({"hikvision", "dahua", "uniview"})
VENDOR_SCORE_CEILING = 6
NVR_SCORE_CEILING = 6
CAMERA_SCORE_CEILING = 5
NVR_MARGIN = 2
CAMERA_MARGIN = 1
UNKNOWN_CONFIDENCE = 0.2

# Deploy
DEPLOY_TOOL_NAME = "mediamtx"
DEFAULT_SSH_PORT = 22

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


def get_env_api_url() -> str | None:
    return os.getenv("CAMSCOUT_API_URL") or None


def get_env_token() -> str | None:
    """Bearer token from the environment, if set."""
    return os.getenv("CAMSCOUT_TOKEN") or None


def get_env_school_id() -> str | None:
    return os.getenv("CAMSCOUT_SCHOOL_ID") or None


def deploy_enabled() -> bool:
    """Whether config deploys are allowed at all."""
    return _env_flag("CAMSCOUT_DEPLOY_ENABLED", True)


def restart_commands_allowed() -> bool:
    """Whether deploys may run a restart command after copying the config."""
    return _env_flag("CAMSCOUT_DEPLOY_ALLOW_RESTART", True)


def clean_subprocess_env() -> dict[str, str]:
    """
    Environment for child processes.

    Frozen (PyInstaller) builds prepend their bundle directory to
    LD_LIBRARY_PATH, which breaks system binaries like ssh and docker.
    """
    env = dict(os.environ)
    original = env.pop("LD_LIBRARY_PATH_ORIG", None)
    if original is not None:
        env["LD_LIBRARY_PATH"] = original
    elif "_MEIPASS2" in env or getattr(sys, "frozen", False):
        env.pop("LD_LIBRARY_PATH", None)
    env.pop("_MEIPASS2", None)
    return env
