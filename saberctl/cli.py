"""Typer CLI entrypoint."""

from __future__ import annotations

import logging

import typer

from saberctl.core.errors import SaberctlError
from saberctl.core.model import DiscoveredDevice, OutcomeKind
from saberctl.core.service import SaberService

app = typer.Typer(help="Discover light sabers over BLE and list their modules")

EXIT_FAILED = 1
EXIT_TIMED_OUT = 2


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_service() -> SaberService:
    service = SaberService()
    for warning in (*service.load_warnings, *service.runtime_warnings):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _describe(device: DiscoveredDevice) -> str:
    line = f"{device.address} {device.display_name}"
    if device.manufacturer_hint:
        line += f" [{device.manufacturer_hint}]"
    return line


@app.command("scan")
def scan(
    duration: float = typer.Option(10.0, "--duration", help="Seconds to scan for"),
) -> None:
    """Scan for nearby BLE devices."""
    try:
        service = _build_service()
        devices = service.discover(duration)
        if not devices:
            typer.echo("No devices found")
            return
        for device in devices:
            typer.echo(_describe(device))
    except SaberctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILED) from None


@app.command("modules")
def modules(
    address: str,
    scan_timeout: float = typer.Option(
        10.0, "--scan-timeout", help="Seconds to scan for the device before giving up"
    ),
) -> None:
    """Connect to a saber and list the modules it exposes."""
    try:
        service = _build_service()
        device, outcome = service.load_modules(address, scan_timeout_s=scan_timeout)
    except SaberctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILED) from None

    typer.echo(f"Device: {_describe(device)}")
    if outcome.kind is OutcomeKind.TIMED_OUT:
        typer.echo("Error: Timed out waiting for the device to report its services.", err=True)
        raise typer.Exit(code=EXIT_TIMED_OUT)
    if outcome.kind is OutcomeKind.FAILED:
        typer.echo(f"Error: {outcome.reason}", err=True)
        raise typer.Exit(code=EXIT_FAILED)
    if not outcome.modules:
        typer.echo("No modules found")
        return
    for module in outcome.modules:
        typer.echo(f"  {module.display_name} {module.uuid} #{module.instance_id}")


@app.command("catalog")
def catalog() -> None:
    """List the known module UUIDs and their names."""
    try:
        service = _build_service()
        for service_uuid, name in service.module_catalog():
            typer.echo(f"{service_uuid} {name}")
    except SaberctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILED) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
