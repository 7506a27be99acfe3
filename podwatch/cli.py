"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import time

import typer

from podwatch.core.errors import PodwatchError
from podwatch.core.model import ScanMode, ScanState
from podwatch.core.presentation import format_report, format_summary
from podwatch.core.service import MonitorService

app = typer.Typer(help="Battery status of nearby AirPods cases from BLE advertisements")


def _build_service() -> MonitorService:
    service = MonitorService()
    for warning in getattr(service, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _echo_pending(service: MonitorService, timeout_s: float = 0.0) -> None:
    for line in service.sink.drain(timeout_s):
        typer.echo(line)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level"),
) -> None:
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@app.command("scan")
def scan(
    duration: float | None = typer.Option(None, "--duration", min=0, help="Stop after this many seconds"),
    report_delay: float | None = typer.Option(
        None, "--report-delay", min=0, help="Batch window in seconds, 0 for immediate delivery"
    ),
    mode: ScanMode | None = typer.Option(None, "--mode", help="Scan mode"),
) -> None:
    """Scan for earbud cases and print every decoded battery report."""
    service: MonitorService | None = None
    try:
        service = _build_service()
        controller = service.build_controller(service.scan_settings(mode=mode, report_delay=report_delay))
        verdict = controller.start()
        _echo_pending(service)
        if not verdict.ready:
            raise typer.Exit(code=1)

        deadline = None if duration is None else time.monotonic() + duration
        try:
            while deadline is None or time.monotonic() < deadline:
                _echo_pending(service, timeout_s=0.2)
                if controller.state is ScanState.FAILED:
                    _echo_pending(service)
                    raise typer.Exit(code=1)
        except KeyboardInterrupt:
            pass

        controller.stop()
        _echo_pending(service)
        typer.echo(f"Decoded {controller.decoded} advertisement(s)")
        if controller.last_report is not None:
            typer.echo(f"Last: {format_summary(controller.last_report)}")
    except PodwatchError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if service is not None:
            service.close()


@app.command("check")
def check() -> None:
    """Report whether scanning can start."""
    try:
        service = _build_service()
        verdict = service.check_ready()
        if verdict.ready:
            typer.echo("Ready")
            return
        typer.echo("Not ready:")
        for reason in verdict.describe():
            typer.echo(f"  {reason}")
        raise typer.Exit(code=1)
    except PodwatchError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("filters")
def show_filters() -> None:
    """Print the advertisement match criteria handed to the radio."""
    try:
        service = _build_service()
        for criterion in service.filters():
            typer.echo(f"manufacturer_id: {criterion.manufacturer_id}")
            typer.echo(f"  data: {criterion.data.hex()}")
            typer.echo(f"  mask: {criterion.mask.hex()}")
    except PodwatchError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("decode")
def decode_payload(payload: str = typer.Argument(..., help="27-byte manufacturer payload as hex")) -> None:
    """Decode a captured manufacturer payload."""
    try:
        service = _build_service()
        report = service.decode_payload(payload)
        typer.echo(f"Manufacturer data (hex): {report.raw_hex}")
        for line in format_report(report):
            typer.echo(line)
    except PodwatchError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("bonded")
def list_bonded() -> None:
    """List devices paired with this host."""
    try:
        service = _build_service()
        devices = service.bonded_devices()
        if not devices:
            typer.echo("No bonded devices")
            return
        for device in devices:
            typer.echo(f"{device.address} {device.name}")
    except PodwatchError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
