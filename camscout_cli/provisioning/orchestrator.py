"""
Provisioning run: recorders, then cameras, then an optional deploy.

Strictly sequential. Any inventory API failure aborts the run; the input
document is meant to be fixed and replayed, not resumed. Connection tests
are the exception: their result is reported and the run goes on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..deploy import DeployResult, DeployTarget, dispatch, validate_deploy
from .client import InventoryAPIError, InventoryClient
from .models import CameraSpec, ProvisionInput, RecorderSpec

logger = logging.getLogger(__name__)

DRY_RUN_ID_PREFIX = "dry-run:"


@dataclass(frozen=True)
class ProvisionFlags:
    dry_run: bool = False
    test: bool = False
    sync: bool = False
    deploy: bool = False


@dataclass(frozen=True)
class ProvisionStep:
    """One thing the run did (or, in dry-run, would have done)."""

    action: str  # create-nvr, test-nvr, sync-nvr, create-camera, deploy
    name: str
    resource_id: Optional[str] = None
    ok: bool = True
    dry_run: bool = False
    detail: str = ""
    payload: Optional[dict] = None


@dataclass
class ProvisionReport:
    steps: list[ProvisionStep] = field(default_factory=list)
    recorder_ids: dict[str, str] = field(default_factory=dict)
    deploy_result: Optional[DeployResult] = None

    def by_action(self, action: str) -> list[ProvisionStep]:
        return [s for s in self.steps if s.action == action]

    @property
    def failed_tests(self) -> list[ProvisionStep]:
        return [s for s in self.by_action("test-nvr") if not s.ok]


def _test_passed(response: Any) -> bool:
    if isinstance(response, dict):
        for key in ("ok", "success"):
            if response.get(key) is False:
                return False
    return True


class Provisioner:
    """
    Executes a ProvisionInput against the inventory API.

    Usage:
        with InventoryClient(api, token, school_id) as client:
            report = Provisioner(client, ProvisionFlags(test=True)).run(document)
    """

    def __init__(
        self,
        client: Optional[InventoryClient],
        flags: ProvisionFlags = ProvisionFlags(),
        config_content: bytes | None = None,
        dispatcher: Callable[[bytes, DeployTarget], DeployResult] = dispatch,
        on_step: Callable[[ProvisionStep], None] | None = None,
    ):
        """
        Args:
            client: Inventory API client. May be None for dry runs.
            flags: Run switches (dry-run, test, sync, deploy).
            config_content: Generated media-relay config. When given, deploys
                are dispatched from this machine; otherwise the backend's
                deploy endpoint is triggered.
            dispatcher: Local deploy implementation.
            on_step: Called after every step, in order.
        """
        if client is None and not flags.dry_run:
            raise ValueError("An inventory client is required unless dry_run is set")
        self.client = client
        self.flags = flags
        self.config_content = config_content
        self.dispatcher = dispatcher
        self.on_step = on_step

    def _record(self, report: ProvisionReport, step: ProvisionStep) -> None:
        report.steps.append(step)
        if self.on_step:
            self.on_step(step)

    def _provision_recorder(self, spec: RecorderSpec, report: ProvisionReport) -> None:
        if self.flags.dry_run:
            placeholder = f"{DRY_RUN_ID_PREFIX}{spec.name}"
            report.recorder_ids[spec.name] = placeholder
            self._record(report, ProvisionStep(
                "create-nvr", spec.name, placeholder, dry_run=True,
                payload=spec.to_payload(mask_secrets=True),
            ))
            return

        created = self.client.create_recorder(spec.to_payload())
        nvr_id = str(created["id"])
        report.recorder_ids[spec.name] = nvr_id
        self._record(report, ProvisionStep("create-nvr", created.get("name", spec.name), nvr_id))

        if self.flags.test or spec.test_connection:
            try:
                passed = _test_passed(self.client.test_recorder(nvr_id))
                detail = "" if passed else "device reported failure"
            except InventoryAPIError as e:
                passed, detail = False, str(e)
            if not passed:
                logger.warning("Connection test failed for %s (%s): %s", spec.name, nvr_id, detail)
            self._record(report, ProvisionStep("test-nvr", spec.name, nvr_id, ok=passed, detail=detail))

        if self.flags.sync or spec.sync_onvif:
            self.client.sync_recorder(nvr_id, spec.overwrite_names, spec.disable_missing)
            self._record(report, ProvisionStep("sync-nvr", spec.name, nvr_id))

    def _provision_camera(self, spec: CameraSpec, report: ProvisionReport) -> None:
        nvr_id = spec.resolve_recorder(report.recorder_ids)
        if spec.nvr_ref and nvr_id is None and not spec.nvr_id:
            logger.warning("Camera %s: recorder '%s' not defined in this document, creating unlinked",
                           spec.name, spec.nvr_ref)
        payload = spec.to_payload(nvr_id)

        if self.flags.dry_run:
            self._record(report, ProvisionStep("create-camera", spec.name, dry_run=True, payload=payload))
            return

        created = self.client.create_camera(payload)
        camera_id = created.get("id") if isinstance(created, dict) else None
        self._record(report, ProvisionStep(
            "create-camera", spec.name, str(camera_id) if camera_id else None,
            detail=f"nvr {nvr_id}" if nvr_id else "",
        ))

    def _deploy(self, target: DeployTarget, report: ProvisionReport) -> None:
        if self.flags.dry_run:
            self._record(report, ProvisionStep(
                "deploy", target.mode, dry_run=True, detail=target.describe(), payload=target.to_payload(),
            ))
            return

        if self.config_content is not None:
            result = self.dispatcher(self.config_content, target)
            report.deploy_result = result
            detail = f"{result.target}" + (" (restarted)" if result.restarted else "")
        else:
            self.client.trigger_deploy(target.to_payload())
            detail = f"{target.describe()} via inventory API"
        self._record(report, ProvisionStep("deploy", target.mode, detail=detail))

    def run(self, document: ProvisionInput) -> ProvisionReport:
        """
        Execute the document.

        Raises:
            DeployValidationError: Deploy spec rejected. Raised before any API call.
            InventoryAPIError: A create or sync call failed; later steps did not run.
            DeployError: The local deploy command failed.
        """
        target = None
        if self.flags.deploy:
            if document.deploy is not None:
                target = validate_deploy(document.deploy)
            else:
                logger.warning("Deploy requested but the document has no deploy section")

        report = ProvisionReport()
        for recorder in document.recorders:
            self._provision_recorder(recorder, report)
        for camera in document.cameras:
            self._provision_camera(camera, report)
        if target is not None:
            self._deploy(target, report)
        return report
