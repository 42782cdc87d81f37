"""Logout command for the camscout CLI."""

import click

from ..config import CREDENTIALS_FILE
from ..credentials import clear_credentials
from ..utils import print_success, print_warning


@click.command()
def logout() -> None:
    """Remove stored inventory API credentials."""
    if not clear_credentials():
        print_warning("No stored credentials")
        return
    print_success(f"Credentials removed from {CREDENTIALS_FILE}")
