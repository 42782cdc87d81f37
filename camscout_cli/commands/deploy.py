"""Deploy command: push a generated media-relay config to its host."""

import json
import logging
from pathlib import Path

import click

from ..deploy import DeployError, DeployValidationError, dispatch, validate_deploy
from ..utils import console, print_error, print_info, print_success

logger = logging.getLogger(__name__)


def load_deploy_spec(path: str) -> dict:
    """Read a deploy spec, either bare or under a document's "deploy" key."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise click.BadParameter(f"cannot read {path}: {e}", param_hint="--spec") from e
    if isinstance(data, dict) and "mode" not in data and isinstance(data.get("deploy"), dict):
        return data["deploy"]
    return data


@click.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--spec", "spec_path", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Deploy spec JSON, or a provisioning document with a deploy section.")
@click.option("--dry-run", is_flag=True, help="Validate and show the target without copying anything.")
def deploy(config_file: str, spec_path: str, dry_run: bool) -> None:
    """Copy a media-relay config to an SSH host, a container or a local path.

    The spec is checked by the deploy safety gate first; nothing is copied
    or restarted if any field is rejected.

    \b
    Examples:
        camscout deploy mediamtx.yml --spec deploy.json --dry-run
        camscout deploy mediamtx.yml --spec site.json
    """
    spec = load_deploy_spec(spec_path)
    try:
        target = validate_deploy(spec)
    except DeployValidationError as e:
        print_error(f"Deploy rejected: {e}")
        raise SystemExit(3)

    if dry_run:
        print_info(f"Would deploy {config_file} via {target.mode} to {target.describe()}")
        console.print_json(data=target.to_payload())
        return

    content = Path(config_file).read_bytes()
    logger.info("Deploying %d bytes via %s", len(content), target.mode)
    try:
        result = dispatch(content, target)
    except DeployError as e:
        print_error(f"Deploy failed: {e}")
        raise SystemExit(1)

    print_success(f"Deployed to {result.target}")
    if result.restarted:
        print_success("Restart command completed")
