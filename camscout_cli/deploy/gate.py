"""
Deploy safety gate.

Every deploy spec goes through validate_deploy() before any process or
network call. It returns a frozen target object; the dispatcher only
accepts those, so an unchecked string cannot reach scp, ssh or docker.
"""

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, ClassVar, Optional, Union

from .. import config

MODES = ("ssh", "docker", "local")

_HOST_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.-]*$")
_USER_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")
_CONTAINER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
# The ssh variant hands its restart command, and legacy scp its destination
# path, to the remote login shell.
_SHELL_META_RE = re.compile(r"[;&|$`<>()\n\r]")
_PATH_UNSAFE_RE = re.compile(r"""[\s'"\\*?\[\]{}!#]""")

SAFE_RESTART_MARKERS = (config.DEPLOY_TOOL_NAME, "systemctl restart", "docker restart")
REMOTE_PATH_RULE = "must be absolute without '..', '~', whitespace, quotes or shell operators"


class DeployValidationError(Exception):
    """Deploy input rejected as unsafe or incomplete. Nothing was run."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


@dataclass(frozen=True)
class SSHTarget:
    host: str
    user: str
    remote_path: str
    port: int = config.DEFAULT_SSH_PORT
    restart_command: Optional[str] = None
    mode: ClassVar[str] = "ssh"

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.remote_path} (port {self.port})"

    def to_payload(self) -> dict[str, Any]:
        ssh: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "remotePath": self.remote_path,
        }
        if self.restart_command:
            ssh["restartCommand"] = self.restart_command
        return {"mode": "ssh", "ssh": ssh}


@dataclass(frozen=True)
class DockerTarget:
    container: str
    config_path: str
    restart: bool = False
    mode: ClassVar[str] = "docker"

    def describe(self) -> str:
        return f"{self.container}:{self.config_path}"

    def to_payload(self) -> dict[str, Any]:
        return {
            "mode": "docker",
            "docker": {"container": self.container, "configPath": self.config_path, "restart": self.restart},
        }


@dataclass(frozen=True)
class LocalTarget:
    path: str
    restart_command: Optional[str] = None
    mode: ClassVar[str] = "local"

    def describe(self) -> str:
        return self.path

    def to_payload(self) -> dict[str, Any]:
        local: dict[str, Any] = {"path": self.path}
        if self.restart_command:
            local["restartCommand"] = self.restart_command
        return {"mode": "local", "local": local}


DeployTarget = Union[SSHTarget, DockerTarget, LocalTarget]


def is_safe_host(value: str) -> bool:
    return bool(_HOST_RE.match(value))


def is_safe_user(value: str) -> bool:
    return bool(_USER_RE.match(value))


def is_safe_remote_path(value: str) -> bool:
    """Absolute, no parent traversal, no home expansion, nothing a shell would expand."""
    if not value.startswith("/") or ".." in value or "~" in value:
        return False
    return not (_SHELL_META_RE.search(value) or _PATH_UNSAFE_RE.search(value))


def is_safe_local_path(value: str) -> bool:
    """The file itself, not just some directory, must be the tool's config."""
    return config.DEPLOY_TOOL_NAME in PurePath(value).name


def is_safe_restart_command(value: str) -> bool:
    if not value or not value.strip():
        return False
    if _SHELL_META_RE.search(value):
        return False
    return any(marker in value for marker in SAFE_RESTART_MARKERS)


def _string(section: dict, key: str, field: str, required: bool = True) -> Optional[str]:
    value = section.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise DeployValidationError(field, "is required")
        return None
    if not isinstance(value, str):
        raise DeployValidationError(field, "must be a string")
    return value.strip()


def _check_restart(value: Optional[str], field: str, allow_restart: bool) -> Optional[str]:
    if value is None:
        return None
    if not allow_restart:
        raise DeployValidationError(field, "restart commands are disabled")
    if not is_safe_restart_command(value):
        raise DeployValidationError(
            field,
            f"must reference one of: {', '.join(SAFE_RESTART_MARKERS)} "
            "and contain no shell operators",
        )
    return value


def _validate_ssh(section: dict, allow_restart: bool) -> SSHTarget:
    host = _string(section, "host", "ssh.host")
    user = _string(section, "user", "ssh.user")
    remote_path = _string(section, "remotePath", "ssh.remotePath")
    if not is_safe_host(host):
        raise DeployValidationError("ssh.host", "contains invalid characters")
    if not is_safe_user(user):
        raise DeployValidationError("ssh.user", "contains invalid characters")
    if not is_safe_remote_path(remote_path):
        raise DeployValidationError("ssh.remotePath", REMOTE_PATH_RULE)

    port = section.get("port", config.DEFAULT_SSH_PORT)
    if port is None:
        port = config.DEFAULT_SSH_PORT
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise DeployValidationError("ssh.port", "must be an integer between 1 and 65535")

    restart = _check_restart(
        _string(section, "restartCommand", "ssh.restartCommand", required=False),
        "ssh.restartCommand",
        allow_restart,
    )
    return SSHTarget(host=host, user=user, remote_path=remote_path, port=port, restart_command=restart)


def _validate_docker(section: dict) -> DockerTarget:
    container = _string(section, "container", "docker.container")
    config_path = _string(section, "configPath", "docker.configPath")
    if not _CONTAINER_RE.match(container):
        raise DeployValidationError("docker.container", "contains invalid characters")
    if not is_safe_remote_path(config_path):
        raise DeployValidationError("docker.configPath", REMOTE_PATH_RULE)
    restart = section.get("restart", False)
    if not isinstance(restart, bool):
        raise DeployValidationError("docker.restart", "must be a boolean")
    return DockerTarget(container=container, config_path=config_path, restart=restart)


def _validate_local(section: dict, allow_restart: bool) -> LocalTarget:
    path = _string(section, "path", "local.path")
    if not is_safe_local_path(path):
        raise DeployValidationError("local.path", f"must reference the {config.DEPLOY_TOOL_NAME} config file")
    restart = _check_restart(
        _string(section, "restartCommand", "local.restartCommand", required=False),
        "local.restartCommand",
        allow_restart,
    )
    return LocalTarget(path=path, restart_command=restart)


def validate_deploy(
    spec: Any,
    *,
    enabled: Optional[bool] = None,
    allow_restart: Optional[bool] = None,
) -> DeployTarget:
    """
    Validate a deploy spec such as {"mode": "ssh", "ssh": {...}}.

    Args:
        spec: Parsed deploy document.
        enabled: Override CAMSCOUT_DEPLOY_ENABLED.
        allow_restart: Override CAMSCOUT_DEPLOY_ALLOW_RESTART.

    Returns:
        A validated SSHTarget, DockerTarget or LocalTarget.

    Raises:
        DeployValidationError: On any missing, malformed or unsafe field.
    """
    if enabled is None:
        enabled = config.deploy_enabled()
    if allow_restart is None:
        allow_restart = config.restart_commands_allowed()

    if not enabled:
        raise DeployValidationError("deploy", "deploys are disabled")
    if not isinstance(spec, dict):
        raise DeployValidationError("deploy", "must be an object")

    mode = spec.get("mode")
    if mode not in MODES:
        raise DeployValidationError("mode", f"must be one of: {', '.join(MODES)}")

    populated = [m for m in MODES if spec.get(m) is not None]
    if populated != [mode]:
        raise DeployValidationError(mode, f"exactly one '{mode}' section is required")
    section = spec[mode]
    if not isinstance(section, dict):
        raise DeployValidationError(mode, "must be an object")

    if mode == "ssh":
        return _validate_ssh(section, allow_restart)
    if mode == "docker":
        return _validate_docker(section)
    return _validate_local(section, allow_restart)
