"""Command-line interface for Hue Bridge discovery."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .coordinator import BridgeDiscovery
from .diagnostics import generate_report
from .logging_setup import configure_logging
from .models import BridgeRecord, DiscoveryMode
from .probe import BridgeProber, create_http_client
from .settings import DiscoverySettings

app = typer.Typer(help="Find Philips Hue Bridges on the local network")
console = Console()


def load_settings(**overrides) -> DiscoverySettings:
    try:
        return DiscoverySettings.from_env(**overrides)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(2)


def bridges_table(bridges) -> Table:
    table = Table(title=f"Found {len(bridges)} Hue Bridge(s)")
    table.add_column("Name", style="cyan")
    table.add_column("Bridge ID", style="magenta")
    table.add_column("Address", style="green")
    table.add_column("Method")
    for bridge in bridges:
        table.add_row(bridge.name, bridge.id, f"{bridge.ip_address}:{bridge.port}", bridge.method)
    return table


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Console log level (default from HUE_DISCOVERY_LOG_LEVEL or INFO)"
    ),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write a debug log here"),
) -> None:
    """Hue Bridge discovery tools."""
    settings = load_settings(log_level=log_level)
    configure_logging(settings.log_level, log_file)


@app.command()
def discover(
    mode: Optional[DiscoveryMode] = typer.Option(
        None, "--mode", case_sensitive=False, help="Strategy set to run"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Session timeout in seconds"),
    no_mdns: bool = typer.Option(False, "--no-mdns", help="Skip mDNS discovery"),
    ssdp: bool = typer.Option(False, "--ssdp", help="Add SSDP to the fallback strategies"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
) -> None:
    """Run one discovery session and list the bridges found."""
    overrides = {"mode": mode, "session_timeout": timeout}
    if no_mdns:
        overrides["mdns_enabled"] = False
    if ssdp:
        overrides["ssdp_enabled"] = True
    settings = load_settings(**overrides)

    if not as_json:
        console.print(
            Panel.fit(
                f"Searching for Hue Bridges ({settings.mode.value} mode, "
                f"up to {settings.session_timeout:.0f}s)",
                title="Bridge Discovery",
                border_style="blue",
            )
        )

    bridges = BridgeDiscovery(settings).discover_bridges_sync()

    if not bridges:
        console.print("[yellow]No bridge found. Check the network.[/yellow]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps([asdict(bridge) for bridge in bridges], indent=2))
        return

    console.print(bridges_table(bridges))


async def _validate_host(host: str, settings: DiscoverySettings) -> Optional[BridgeRecord]:
    async with create_http_client(settings) as client:
        return await BridgeProber(client, settings, method="validate").probe(host)


@app.command()
def validate(host: str = typer.Argument(..., help="IP address or hostname to check")) -> None:
    """Check whether HOST is a Hue Bridge."""
    settings = load_settings()
    bridge = asyncio.run(_validate_host(host, settings))

    if bridge is None:
        console.print(f"[red]{host} is not a Hue Bridge[/red]")
        raise typer.Exit(1)

    console.print(
        Panel.fit(
            f"Name: {bridge.name}\nBridge ID: {bridge.id}\nAddress: {bridge.ip_address}:{bridge.port}",
            title="Hue Bridge",
            border_style="green",
        )
    )


@app.command()
def diagnose() -> None:
    """Print a network diagnostics report."""
    settings = load_settings()
    with console.status("Running network diagnostics..."):
        report = asyncio.run(generate_report(settings=settings))
    console.print(Panel(Text(report), title="Diagnostics", border_style="cyan"))


if __name__ == "__main__":
    app()
