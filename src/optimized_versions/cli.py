"""Command line entry point for the Optimized Versions Server."""

import shutil
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console

from optimized_versions import __version__
from optimized_versions.core.config import load_settings
from optimized_versions.core.paths import PathGuard
from optimized_versions.main import create_app

app = typer.Typer(
    name="optimized-versions",
    help="Optimized Versions Server - transcoding jobs for media items",
)
console = Console()


@app.command()
def run(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Override bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Override port"),
) -> None:
    """Run the HTTP server."""
    settings = load_settings(config)
    uvicorn.run(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_config=None,
    )


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Optimized Versions Server v{__version__}")


@app.command()
def check(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
) -> None:
    """Check system requirements and configuration."""
    console.print("[bold]Optimized Versions Server - System Check[/bold]\n")

    settings = load_settings(config)
    ok = True

    for label, executable in (
        ("Encoder", settings.encoder.executable),
        ("Probe", settings.encoder.probe_executable),
    ):
        found = shutil.which(executable)
        if found:
            console.print(f"[green][OK][/green] {label} found: {found}")
        elif label == "Encoder":
            console.print(f"[red][X][/red] {label} not found: {executable}")
            ok = False
        else:
            console.print(f"[yellow][!][/yellow] {label} not found: {executable}")
            console.print("  (Progress percentages will be unavailable)")

    output_root = settings.storage.output_root
    if output_root.exists():
        console.print(f"[green][OK][/green] Output directory exists: {output_root}")
    else:
        console.print(f"[yellow][!][/yellow] Output directory missing: {output_root}")
        console.print("  (Will be created on first job)")

    for root in settings.storage.media_roots:
        if Path(root).is_dir():
            console.print(f"[green][OK][/green] Media root: {root}")
        else:
            console.print(f"[red][X][/red] Media root missing: {root}")
            ok = False

        if PathGuard(root).is_safe(output_root) or PathGuard(output_root).is_safe(root):
            console.print(f"[yellow][!][/yellow] Output directory overlaps media root: {root}")

    console.print(f"\nDatabase: {settings.database_url}")
    console.print(f"Max concurrent jobs: {settings.jobs.max_concurrent_jobs}")

    if not ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
