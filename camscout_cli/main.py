"""Main entry point for the camscout CLI."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .commands import configure, deploy, logout, provision, scan

LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def setup_logging(verbosity: int) -> None:
    logging.basicConfig(
        level=LOG_LEVELS.get(verbosity, logging.DEBUG),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="camscout")
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """camscout - find, classify and provision NVRs and IP cameras on a LAN.

    \b
    Commands:
      scan       Discover and classify devices on private subnets
      provision  Create NVRs and cameras through the inventory API
      deploy     Push a generated media-relay config to its host
      configure  Save inventory API credentials
      logout     Remove stored credentials

    \b
    Examples:
      camscout scan --table
      camscout scan -s 192.168.1.0/24 --onvif-user admin --onvif-pass secret
      camscout provision -i site.json --dry-run
      camscout deploy mediamtx.yml --spec deploy.json
    """
    setup_logging(verbose)


# Register commands
cli.add_command(scan)
cli.add_command(provision)
cli.add_command(deploy)
cli.add_command(configure)
cli.add_command(logout)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
