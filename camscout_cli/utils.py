"""
Shared utilities for camscout CLI commands.

This module provides common functionality used across multiple CLI commands:
- Output formatting helpers
- Resolution of API settings from options, environment and stored credentials
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .config import DEFAULT_API_URL, get_env_api_url, get_env_school_id, get_env_token
from .credentials import load_credentials

console = Console()
err_console = Console(stderr=True)


def print_error(message: str, hint: str = None):
    """Print an error message with optional hint."""
    err_console.print(f"[red]✗[/red] {message}")
    if hint:
        err_console.print(f"[dim]{hint}[/dim]")


def print_success(message: str):
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str):
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str):
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def mask_token(token: str) -> str:
    if len(token) <= 12:
        return "***"
    return f"{token[:6]}...{token[-4:]}"


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """
    Create a Rich table with common styling.

    Args:
        title: Table title
        columns: List of (name, style) tuples

    Returns:
        Configured Rich Table
    """
    table = Table(title=title)
    for name, style in columns:
        table.add_column(name, style=style)
    return table


def format_json(data: Any, pretty: bool = True) -> str:
    return json.dumps(data, indent=2 if pretty else None, default=str)


@dataclass(frozen=True)
class APISettings:
    api_url: str
    token: Optional[str]
    school_id: Optional[str]


def resolve_api_settings(
    api_url: str | None = None,
    token: str | None = None,
    school_id: str | None = None,
) -> APISettings:
    """
    Fill in inventory API settings.

    Precedence per field: explicit option, environment variable, stored
    credentials, built-in default.
    """
    creds = load_credentials()
    stored_url = creds.api_url if creds else None
    stored_token = creds.token if creds and creds.token else None
    stored_school = creds.school_id if creds else None

    return APISettings(
        api_url=api_url or get_env_api_url() or stored_url or DEFAULT_API_URL,
        token=token or get_env_token() or stored_token,
        school_id=school_id or get_env_school_id() or stored_school,
    )
