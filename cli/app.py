from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config, load_jsonbin_config
from cli.importer import JsonBinImporter, JsonBinSource
from cli.render import (
    render_ingest,
    render_quality,
    render_reading,
    render_readings,
    render_statistics,
)
from datastore.readings_table import StorageError, build_default_table
from logging_config import configure_logging
from services.ingest import IngestService


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the LoRaWAN uplink ingester.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Ingester API base URL (defaults to API_BASE_URL env or http://localhost:3000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Uplink event JSON."),
) -> None:
    """Replay a webhook uplink event against the ingester."""
    state = _get_state(ctx)
    typer.echo(f"Sending {file} to {state.config.base_url}/ttn ...")
    render_ingest(state.client.send_uplink(file))


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
) -> None:
    """Show the most recent reading of a device."""
    render_reading(_get_state(ctx).client.latest(device_id))


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    limit: int = typer.Option(20, "--limit", min=1, max=1000),
    skip: int = typer.Option(0, "--skip", min=0),
    start_date: Optional[str] = typer.Option(None, "--start", help="ISO start timestamp."),
    end_date: Optional[str] = typer.Option(None, "--end", help="ISO end timestamp."),
) -> None:
    """List readings of a device, newest first."""
    payload = _get_state(ctx).client.readings(
        device_id, limit=limit, skip=skip, start_date=start_date, end_date=end_date
    )
    render_readings(payload)


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    period: str = typer.Option("24h", "--period", "-p", help="1h, 24h, 7d or 30d."),
) -> None:
    """Show windowed statistics for a device."""
    render_statistics(_get_state(ctx).client.statistics(device_id, period))


@app.command("quality")
def quality_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    limit: int = typer.Option(100, "--limit", min=1, max=1000),
) -> None:
    """Classify the signal quality of a device's recent readings."""
    render_quality(_get_state(ctx).client.quality(device_id, limit))


@app.command("import-jsonbin")
def import_jsonbin_command(
    api_key: Optional[str] = typer.Option(None, "--api-key", help="JSONBin master key."),
    collection: Optional[str] = typer.Option(None, "--collection", help="JSONBin collection id."),
    store_path: Optional[str] = typer.Option(
        None,
        "--store-path",
        help="Readings store file (defaults to READINGS_STORE_PATH).",
    ),
) -> None:
    """Copy archived uplinks from a JSONBin collection into the readings store."""
    configure_logging()
    try:
        jsonbin = load_jsonbin_config(api_key=api_key, collection_id=collection)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    source = JsonBinSource(jsonbin)
    importer = JsonBinImporter(
        source=source,
        ingest=IngestService(table=build_default_table(path=store_path)),
    )

    def progress(current: int, total: int) -> None:
        typer.echo(f"Processing bin {current}/{total}...")

    try:
        summary = importer.run(progress=progress)
    except StorageError as exc:
        typer.secho(f"Import aborted: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    finally:
        source.close()

    if not summary.bins:
        typer.secho("No bins found.", fg=typer.colors.YELLOW)
        return
    typer.secho(
        (
            f"Import finished: {summary.inserted} inserted, {summary.duplicates} duplicates, "
            f"{summary.skipped} skipped records, {summary.failed_bins} unreadable bins."
        ),
        fg=typer.colors.GREEN,
    )
