"""Validated deployment of generated media-relay configs."""

from .dispatcher import DeployError, DeployResult, dispatch
from .gate import DeployTarget, DeployValidationError, DockerTarget, LocalTarget, SSHTarget, validate_deploy

__all__ = [
    "DeployError",
    "DeployResult",
    "DeployTarget",
    "DeployValidationError",
    "DockerTarget",
    "LocalTarget",
    "SSHTarget",
    "dispatch",
    "validate_deploy",
]
