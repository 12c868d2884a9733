"""Command line entrypoint: run the API server or inspect a delimited file.

Example:
  chbridge serve --port 8080
  chbridge preview uploads/170000_data.csv --limit 5
"""

from __future__ import annotations

from pathlib import Path

import typer

from chbridge.core.config import get_settings
from chbridge.core.errors import BridgeError
from chbridge.services.files import DEFAULT_PREVIEW_LIMIT, FileStore

app = typer.Typer(add_completion=False, help="ClickHouse bridge utilities")


def _local_store(path: Path) -> FileStore:
    # Local inspection is not confined to the upload directory
    settings = get_settings()
    return FileStore(path.parent, settings.max_upload_size, restrict_to_upload_dir=False)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Interface to bind"),
    port: int | None = typer.Option(None, help="Port (defaults to PORT / settings)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    chosen = port or settings.port
    typer.echo(f"Server starting on port {chosen}")
    uvicorn.run("chbridge.main:app", host=host, port=chosen, reload=reload)


@app.command()
def columns(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    delimiter: str = typer.Option(",", help="Field delimiter"),
):
    """Print the header row of a delimited file."""
    try:
        header = _local_store(path).get_header(path, delimiter)
    except BridgeError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)
    for name in header:
        typer.echo(name)


@app.command()
def preview(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    delimiter: str = typer.Option(",", help="Field delimiter"),
    limit: int = typer.Option(DEFAULT_PREVIEW_LIMIT, help="Maximum data rows"),
):
    """Print the first data rows of a delimited file."""
    try:
        rows = _local_store(path).preview(path, delimiter, limit)
    except BridgeError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)
    for row in rows:
        typer.echo(" | ".join(row))
    typer.echo(f"{len(rows)} rows")


def main():  # pragma: no cover
    app()  # noqa


if __name__ == "__main__":  # pragma: no cover
    main()
