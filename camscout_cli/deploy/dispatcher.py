"""
Deploy dispatcher: copy a generated media-relay config to its target.

Only gate-validated targets are accepted. Processes are started with
argument lists, never through a local shell.
"""

import logging
import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..config import clean_subprocess_env
from .gate import DeployTarget, DockerTarget, LocalTarget, SSHTarget

logger = logging.getLogger(__name__)


class DeployError(Exception):
    """An external command used for the deploy failed."""

    def __init__(self, command: list[str], returncode: int | None, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f"exit {returncode}" if returncode is not None else "could not start"
        message = f"{command[0]} failed ({detail})"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


@dataclass(frozen=True)
class DeployResult:
    mode: str
    target: str
    restarted: bool = False


def run_command(cmd: list[str]) -> subprocess.CompletedProcess:
    """Run a command without a shell; raise DeployError on failure."""
    logger.debug("$ %s", shlex.join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            env=clean_subprocess_env(),
        )
    except OSError as e:
        raise DeployError(cmd, None, str(e)) from e
    if result.returncode != 0:
        raise DeployError(cmd, result.returncode, result.stderr or "")
    return result


def _write_temp(content: bytes) -> Path:
    with tempfile.NamedTemporaryFile(prefix="mediamtx_", suffix=".yml", delete=False) as tmp_file:
        tmp_file.write(content)
        return Path(tmp_file.name)


def _remove_temp(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove temporary file %s: %s", path, e)


def _deploy_ssh(tmp_path: Path, target: SSHTarget) -> DeployResult:
    destination = f"{target.user}@{target.host}"
    run_command([
        "scp", "-o", "BatchMode=yes", "-P", str(target.port),
        str(tmp_path), f"{destination}:{target.remote_path}",
    ])
    if target.restart_command:
        run_command([
            "ssh", "-o", "BatchMode=yes", "-p", str(target.port),
            destination, target.restart_command,
        ])
    return DeployResult("ssh", target.describe(), restarted=bool(target.restart_command))


def _deploy_docker(tmp_path: Path, target: DockerTarget) -> DeployResult:
    run_command(["docker", "cp", str(tmp_path), f"{target.container}:{target.config_path}"])
    if target.restart:
        run_command(["docker", "restart", target.container])
    return DeployResult("docker", target.describe(), restarted=target.restart)


def _deploy_local(content: bytes, target: LocalTarget) -> DeployResult:
    destination = Path(target.path)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)
    except OSError as e:
        raise DeployError(["write", str(destination)], None, str(e)) from e
    if target.restart_command:
        run_command(shlex.split(target.restart_command))
    return DeployResult("local", target.describe(), restarted=bool(target.restart_command))


def dispatch(content: bytes | str, target: DeployTarget) -> DeployResult:
    """
    Transfer ``content`` to a validated target and run its restart step.

    The temporary copy is removed whether the transfer succeeds or not.

    Raises:
        DeployError: If scp, ssh, docker or the restart command fails.
        TypeError: If ``target`` did not come from the safety gate.
    """
    if not isinstance(target, (SSHTarget, DockerTarget, LocalTarget)):
        raise TypeError("dispatch() requires a target returned by validate_deploy()")
    if isinstance(content, str):
        content = content.encode("utf-8")

    tmp_path = _write_temp(content)
    try:
        if isinstance(target, SSHTarget):
            return _deploy_ssh(tmp_path, target)
        if isinstance(target, DockerTarget):
            return _deploy_docker(tmp_path, target)
        return _deploy_local(content, target)
    finally:
        _remove_temp(tmp_path)
