"""
Command-line entry point for running SiteFlow scans locally
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console

from siteflow.config import settings

app = typer.Typer(
    name="siteflow",
    help="Crawl a website and build its process-flow report",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()


def _setup_logging(log_level: str):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def analyze(
    url: str = typer.Argument(..., help="Absolute URL of the site to scan"),
    depth: int = typer.Option(3, min=1, max=10, help="Spider depth"),
    max_pages: int = typer.Option(settings.DEFAULT_MAX_PAGES, min=1, max=200, help="Pages to visit"),
    respect_robots: bool = typer.Option(True, "--respect-robots/--no-robots"),
    authenticated: bool = typer.Option(False, help="Log in first using the LOGIN_* settings"),
    report_dir: Path = typer.Option(None, help="Report directory (default: reports/<timestamp>)"),
    publish: bool = typer.Option(True, "--publish/--no-publish"),
    log_level: str = "INFO",
):
    """Run discovery, page collection and flow synthesis for one site"""
    from pydantic import ValidationError

    from siteflow.schemas.scan import ScanOptions
    from siteflow.services.pipeline import run_pipeline
    from siteflow.services.reports import SUMMARY_FILE, ensure_dir, new_scan_dir

    _setup_logging(log_level)

    try:
        options = ScanOptions(
            target_url=url,
            max_depth=depth,
            max_pages=max_pages,
            respect_robots=respect_robots,
            authenticated=authenticated,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid options:[/red] {e}")
        raise typer.Exit(2)

    target_dir = ensure_dir(report_dir) if report_dir else new_scan_dir()
    try:
        status = asyncio.run(run_pipeline(options, target_dir, publish=publish))
    except Exception as e:
        console.print(f"[red]Scan failed:[/red] {e}")
        raise typer.Exit(1)

    if status.discovery_error:
        console.print(f"[yellow]Discovery degraded:[/yellow] {status.discovery_error}")
    console.print(f"[green]Report ready:[/green] {target_dir / SUMMARY_FILE}")


@app.command("build-flow")
def build_flow(
    report_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Existing report directory"),
    log_level: str = "INFO",
):
    """Rebuild summary.md, flow.mmd and flow.html from a report's JSON files"""
    from siteflow.services.pipeline import build_flow_files
    from siteflow.services.render import write_flow_html

    _setup_logging(log_level)

    artifacts = build_flow_files(report_dir)
    write_flow_html(report_dir)
    console.print(
        f"[green]Flow rebuilt:[/green] {artifacts.metadata.node_count} nodes, "
        f"{artifacts.metadata.edge_count} edges"
    )


@app.command()
def publish(
    report_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Existing report directory"),
    publish_dir: Path = typer.Option(None, help=f"Destination (default: {settings.PUBLISH_DIR})"),
    log_level: str = "INFO",
):
    """Copy a report into the published tree and update the history index"""
    from siteflow.core.exceptions import ReportError
    from siteflow.services.publisher import publish_report

    _setup_logging(log_level)

    try:
        entry = publish_report(report_dir, publish_dir)
    except ReportError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Published:[/green] {entry.summary_path}")


if __name__ == "__main__":
    app()
