"""Configure command for the camscout CLI."""

import click
from rich.prompt import Prompt

from ..config import CREDENTIALS_FILE, DEFAULT_API_URL
from ..credentials import Credentials, load_credentials, save_credentials
from ..utils import console, mask_token, print_error, print_success, resolve_api_settings


@click.command()
@click.option(
    "--token",
    "-t",
    help="Inventory API bearer token to save",
)
@click.option(
    "--api-url",
    "-u",
    help="Inventory API base URL to save",
)
@click.option(
    "--school-id",
    "-s",
    help="Default school id for provisioning",
)
@click.option(
    "--show",
    is_flag=True,
    help="Show current configuration",
)
def configure(token: str | None, api_url: str | None, school_id: str | None, show: bool) -> None:
    """Configure inventory API credentials.

    Stored values are used when neither an option nor a CAMSCOUT_*
    environment variable is given.

    \b
    Examples:
        camscout configure --token YOUR_TOKEN --school-id 42
        camscout configure -u https://inventory.example.org
        camscout configure --show
    """
    if show:
        settings = resolve_api_settings()
        console.print("\n[bold]Current Configuration:[/bold]")
        console.print(f"  API URL: [cyan]{settings.api_url}[/cyan]")
        if settings.token:
            console.print(f"  Token: [dim]{mask_token(settings.token)}[/dim]")
        else:
            console.print("  Token: [yellow]Not configured[/yellow]")
        console.print(f"  School: [cyan]{settings.school_id or '-'}[/cyan]")
        console.print(f"\n[dim]Stored in {CREDENTIALS_FILE}[/dim]")
        return

    existing = load_credentials()
    if not token and not (existing and existing.token):
        token = Prompt.ask("[bold]Enter API token[/bold]", password=True)

    token = token or (existing.token if existing else "")
    if not token:
        print_error("Token is required")
        raise click.Abort()

    save_credentials(Credentials(
        token=token,
        api_url=api_url or (existing.api_url if existing else None),
        school_id=school_id or (existing.school_id if existing else None),
    ))
    print_success(f"Configuration saved to {CREDENTIALS_FILE}")
    if api_url and api_url.rstrip("/") != DEFAULT_API_URL:
        console.print(f"[dim]API URL: {api_url}[/dim]")
