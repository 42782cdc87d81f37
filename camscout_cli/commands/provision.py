"""Provision command: create recorders and cameras from a JSON document."""

import logging
from pathlib import Path

import click

from ..deploy import DeployError, DeployValidationError
from ..provisioning import (
    InventoryAPIError,
    InventoryClient,
    ProvisionFlags,
    ProvisionInput,
    ProvisionInputError,
    ProvisionStep,
    Provisioner,
    format_validation_errors,
    load_document,
)
from ..utils import console, err_console, print_error, print_info, print_success, print_warning, resolve_api_settings

logger = logging.getLogger(__name__)

STEP_LABELS = {
    "create-nvr": "Create NVR",
    "test-nvr": "Test NVR",
    "sync-nvr": "Sync ONVIF channels",
    "create-camera": "Create camera",
    "deploy": "Deploy config",
}


def print_step(step: ProvisionStep) -> None:
    label = STEP_LABELS.get(step.action, step.action)
    suffix = f" [dim]({step.resource_id})[/dim]" if step.resource_id else ""
    detail = f" [dim]{step.detail}[/dim]" if step.detail else ""
    if step.dry_run:
        print_info(f"[dim]dry-run[/dim] {label}: [cyan]{step.name}[/cyan]{suffix}{detail}")
        if step.payload is not None:
            console.print_json(data=step.payload)
    elif step.ok:
        print_success(f"{label}: [cyan]{step.name}[/cyan]{suffix}{detail}")
    else:
        print_warning(f"{label}: [cyan]{step.name}[/cyan]{suffix} failed{detail}")


@click.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Provisioning document (JSON).")
@click.option("--api", "api_url", help="Inventory API base URL (env: CAMSCOUT_API_URL).")
@click.option("--token", help="Bearer token (env: CAMSCOUT_TOKEN).")
@click.option("--school-id", help="Target school id (env: CAMSCOUT_SCHOOL_ID).")
@click.option("--dry-run", is_flag=True, help="Show what would be created without calling the API.")
@click.option("--test", is_flag=True, help="Run a connection test for every created NVR.")
@click.option("--sync", is_flag=True, help="Trigger an ONVIF channel sync for every created NVR.")
@click.option("--deploy", is_flag=True, help="Deploy the media-relay config using the document's deploy section.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Generated media-relay config to deploy from this machine.")
def provision(
    input_path: str,
    api_url: str | None,
    token: str | None,
    school_id: str | None,
    dry_run: bool,
    test: bool,
    sync: bool,
    deploy: bool,
    config_path: str | None,
) -> None:
    """Provision NVRs and cameras through the inventory API.

    Recorders are created first so cameras can reference them by name
    (nvrRef). Any API error stops the run; fix the document and re-run.

    \b
    Examples:
        camscout provision -i site.json --dry-run
        camscout provision -i site.json --school-id 42 --test --sync
        camscout provision -i site.json --deploy --config mediamtx.yml
    """
    settings = resolve_api_settings(api_url, token, school_id)
    logger.debug("Inventory API %s, school %s", settings.api_url, settings.school_id)

    try:
        document = ProvisionInput.from_dict(load_document(input_path))
        if not dry_run:
            missing = [
                name
                for name, value in (("--token", settings.token), ("--school-id", settings.school_id))
                if not value
            ]
            if missing:
                raise ProvisionInputError(
                    [f"Missing {', '.join(missing)}"],
                    ["Pass the option, set the CAMSCOUT_* environment variable, or run: camscout configure"],
                )
    except ProvisionInputError as e:
        err_console.print(format_validation_errors(e.errors, e.suggestions))
        raise SystemExit(2)

    if config_path and not deploy:
        print_warning("--config is ignored without --deploy")
    config_content = Path(config_path).read_bytes() if config_path and deploy else None

    console.print(
        f"\n[bold]Provisioning {len(document.recorders)} NVR(s) and {len(document.cameras)} camera(s)"
        + (" [dim](dry run)[/dim]" if dry_run else f" via {settings.api_url}")
        + "[/bold]\n"
    )

    client = None
    if not dry_run:
        client = InventoryClient(settings.api_url, settings.token, settings.school_id)
    provisioner = Provisioner(
        client,
        ProvisionFlags(dry_run=dry_run, test=test, sync=sync, deploy=deploy),
        config_content=config_content,
        on_step=print_step,
    )
    try:
        report = provisioner.run(document)
    except DeployValidationError as e:
        print_error(f"Deploy rejected: {e}", "Nothing was created. Fix the deploy section and re-run.")
        raise SystemExit(3)
    except InventoryAPIError as e:
        print_error(f"Inventory API error: {e}", "Steps before this one were applied; fix and re-run.")
        raise SystemExit(1)
    except DeployError as e:
        print_error(f"Deploy failed: {e}")
        raise SystemExit(1)
    finally:
        if client is not None:
            client.close()

    cameras = len(report.by_action("create-camera"))
    console.print()
    if dry_run:
        print_info(f"Dry run complete: {len(report.recorder_ids)} NVR(s), {cameras} camera(s) planned")
        return
    print_success(f"Created {len(report.recorder_ids)} NVR(s) and {cameras} camera(s)")
    if report.failed_tests:
        names = ", ".join(s.name for s in report.failed_tests)
        print_warning(f"{len(report.failed_tests)} connection test(s) failed: {names}")
