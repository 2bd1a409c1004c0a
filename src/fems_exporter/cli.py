#!/usr/bin/env python3
"""Command-line entry point for fems-exporter using Typer."""

import asyncio
import json
import logging
from typing import Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .catalog import get_default_catalog
from .pool import DEFAULT_TIMEOUT, ConnectionPool
from .scrape import scrape as run_scrape
from .types import RemoteAddress

app = typer.Typer(
    name="fems-exporter",
    help="Prometheus exporter for FEMS energy-management devices via Modbus TCP.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

BindOption = Annotated[
    str,
    typer.Option("--bind", "-b", help="Address to listen on", envvar="FEMS_EXPORTER_BIND"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="HTTP port to listen on", envvar="FEMS_EXPORTER_PORT"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Modbus connect/read timeout in seconds", envvar="FEMS_EXPORTER_TIMEOUT"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool, default_level: int = logging.WARNING) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else default_level
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_address(value: str) -> RemoteAddress:
    """Parse HOST:PORT, exiting with usage error on failure."""
    try:
        return RemoteAddress.parse(value)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def serve(
    bind: BindOption = "0.0.0.0",
    port: PortOption = 80,
    timeout: TimeoutOption = DEFAULT_TIMEOUT,
    verbose: VerboseOption = False,
) -> None:
    """
    Serve /metrics over HTTP.

    Each request names its device: /metrics?host=192.168.1.20:502&fems_id=plant-1
    """
    setup_logging(verbose, default_level=logging.INFO)

    from .server import run

    run(bind=bind, port=port, timeout=timeout)


@app.command()
def scrape(
    host: Annotated[str, typer.Argument(help="FEMS Modbus TCP address, HOST:PORT")],
    fems_id: Annotated[str, typer.Argument(help="Device label written to the fems_id label")],
    timeout: TimeoutOption = DEFAULT_TIMEOUT,
    verbose: VerboseOption = False,
) -> None:
    """
    Scrape one device once and print the exposition text.

    Exits 3 if the device cannot be reached or a register read fails.
    """
    setup_logging(verbose)
    address = parse_address(host)

    async def _once() -> tuple[bool, str]:
        pool = ConnectionPool(timeout=timeout)
        try:
            result = await run_scrape(pool, address, fems_id)
        finally:
            await pool.close()
        return result.ok, result.body

    try:
        ok, body = asyncio.run(_once())
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)

    if not ok:
        typer.echo(f"Error: {body}", err=True)
        raise typer.Exit(3)
    typer.echo(body, nl=False)


@app.command()
def catalog(
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    List the register table: metric, labels, first register, type and word count.

    Does not require a connection.
    """
    setup_logging(verbose)

    rows = [
        {
            "name": d.name,
            "labels": dict(d.labels),
            "address": d.address,
            "type": d.value_type.value,
            "words": d.word_count,
        }
        for d in get_default_catalog()
    ]

    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return
    for row in rows:
        labels = ",".join(f"{k}={v}" for k, v in row["labels"].items())
        typer.echo(f"{row['address']:>5}  {row['type']:<3}  x{row['words']}  {row['name']}  {labels}".rstrip())


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"fems-exporter {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """fems-exporter - Prometheus exporter for FEMS devices via Modbus TCP."""
    pass


if __name__ == "__main__":
    app()
