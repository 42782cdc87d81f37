"""Network scan command for discovering IP cameras and NVRs."""

import logging
from pathlib import Path

import click
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from .. import config
from ..discovery import DeviceKind, NetworkScanner, ScanConfigurationError, ScanOptions, ScanResult
from ..utils import console, create_table, err_console, format_json, print_error, print_success

logger = logging.getLogger(__name__)

KIND_STYLE = {
    DeviceKind.NVR: "bold magenta",
    DeviceKind.CAMERA: "green",
    DeviceKind.UNKNOWN: "dim",
}


def parse_ports(ctx, param, value: str | None) -> tuple[int, ...] | None:
    if value is None:
        return None
    ports = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit():
            raise click.BadParameter(f"'{part}' is not a port number")
        ports.append(int(part))
    if not ports:
        raise click.BadParameter("at least one port is required")
    return tuple(dict.fromkeys(ports))


def render_table(result: ScanResult) -> None:
    table = create_table(
        f"Found {len(result.devices)} device(s) in {result.host_count} host(s)",
        [
            ("Host", "cyan"),
            ("Kind", ""),
            ("Confidence", ""),
            ("Device", "yellow"),
            ("Open ports", "magenta"),
            ("URL", "dim"),
        ],
    )
    for device in result.devices:
        table.add_row(
            device.host,
            f"[{KIND_STYLE[device.device_kind]}]{device.device_kind.value}[/]",
            f"{device.confidence:.2f}",
            device.display_name,
            ", ".join(map(str, device.open_ports)),
            device.primary_url or "-",
        )
    console.print(table)


@click.command()
@click.option(
    "--subnet",
    "-s",
    "subnets",
    multiple=True,
    help="CIDR or address to scan, repeatable. Auto-detected from local interfaces if omitted.",
)
@click.option(
    "--ports",
    "-p",
    callback=parse_ports,
    help="Comma-separated candidate ports (default: common camera/NVR ports).",
)
@click.option("--timeout", "timeout_ms", type=int, default=config.DEFAULT_TCP_TIMEOUT_MS,
              show_default=True, help="TCP connect timeout in milliseconds.")
@click.option("--http-timeout", "http_timeout_ms", type=int, default=config.DEFAULT_HTTP_TIMEOUT_MS,
              show_default=True, help="HTTP fingerprint timeout in milliseconds.")
@click.option("--concurrency", "-c", type=int, default=config.DEFAULT_CONCURRENCY,
              show_default=True, help="Hosts probed in parallel.")
@click.option("--max-hosts", type=int, default=config.DEFAULT_MAX_HOSTS,
              show_default=True, help="Refuse to scan more hosts than this.")
@click.option("--allow-public", is_flag=True, help="Allow subnets outside private ranges.")
@click.option("--onvif-user", help="ONVIF username for optional enrichment.")
@click.option("--onvif-pass", help="ONVIF password for optional enrichment.")
@click.option("--onvif-timeout", "onvif_timeout_ms", type=int, default=config.DEFAULT_ONVIF_TIMEOUT_MS,
              show_default=True, help="Budget for the whole ONVIF exchange, in milliseconds.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the JSON result to a file.")
@click.option("--pretty", is_flag=True, help="Indent JSON output.")
@click.option("--table", "as_table", is_flag=True, help="Show a table instead of JSON.")
def scan(
    subnets: tuple[str, ...],
    ports: tuple[int, ...] | None,
    timeout_ms: int,
    http_timeout_ms: int,
    concurrency: int,
    max_hosts: int,
    allow_public: bool,
    onvif_user: str | None,
    onvif_pass: str | None,
    onvif_timeout_ms: int,
    output: str | None,
    pretty: bool,
    as_table: bool,
) -> None:
    """Scan the local network for IP cameras and NVRs.

    Probes candidate ports, fingerprints web interfaces and classifies each
    responsive host as NVR, CAMERA or UNKNOWN. Only private ranges are
    scanned unless --allow-public is given.

    \b
    Examples:
        camscout scan
        camscout scan -s 192.168.1.0/24 --table
        camscout scan -s 10.0.0.0/24 -p 80,554,8000 --pretty
        camscout scan --onvif-user admin --onvif-pass secret -o scan.json
    """
    options = ScanOptions(
        subnets=subnets,
        ports=ports or config.DEFAULT_PORTS,
        timeout_ms=timeout_ms,
        http_timeout_ms=http_timeout_ms,
        concurrency=concurrency,
        max_hosts=max_hosts,
        allow_public=allow_public,
        onvif_user=onvif_user,
        onvif_pass=onvif_pass,
        onvif_timeout_ms=onvif_timeout_ms,
    )
    logger.debug("Ports %s, concurrency %d, onvif %s", options.ports, concurrency, options.onvif_enabled)
    scanner = NetworkScanner(options)
    show_progress = as_table or output is not None

    try:
        if show_progress:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total} hosts"),
                console=err_console,
                transient=True,
            ) as progress:
                task = progress.add_task("Scanning...", total=None)

                def on_progress(done: int, total: int) -> None:
                    progress.update(task, completed=done, total=total)

                result = scanner.scan(on_progress=on_progress)
        else:
            result = scanner.scan()
    except ScanConfigurationError as e:
        print_error(str(e), "Pass a private subnet with --subnet, or --allow-public if you own the range.")
        raise SystemExit(2)

    if as_table:
        if not result.devices:
            console.print("[yellow]No devices found.[/yellow]")
            return
        render_table(result)
        return

    document = format_json(result.to_dict(), pretty=pretty)
    if output:
        Path(output).write_text(document + "\n", encoding="utf-8")
        print_success(f"Wrote {len(result.devices)} device(s) to {output}")
    else:
        click.echo(document)
