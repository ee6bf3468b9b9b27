#!/usr/bin/env python3
"""
Command line interface for geolens.

Download GEO series, then inspect their samples, statistics and genes
from the terminal.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich import box
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from geolens.config.settings import get_settings
from geolens.core.schemas.download import DownloadProgress, DownloadStage
from geolens.services.data_access.geo_service import GEOService
from geolens.utils.logger import configure_cli_logging
from geolens.version import __version__

app = typer.Typer(
    name="geolens",
    help="Download and query GEO Series Matrix and SOFT files.",
    add_completion=False,
)
console = Console()

_state: Dict[str, Any] = {"data_dir": None}


@app.callback()
def main(
    data_dir: Optional[Path] = typer.Option(
        None, "--data-dir", "-d", help="Dataset root (default: GEOLENS_DATA_DIR)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """geolens - GEO dataset downloader and query engine."""
    configure_cli_logging(verbose=verbose)
    _state["data_dir"] = data_dir
    error = get_settings().config_error
    if error:
        console.print(f"[red]Configuration error:[/red] {error}")
        raise typer.Exit(code=2)


def _service() -> GEOService:
    return GEOService(data_dir=_state["data_dir"])


def _print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def _fail_on_error(payload: Dict[str, Any]) -> None:
    if "error" in payload:
        console.print(f"[red]{payload['error']}[/red]")
        raise typer.Exit(code=1)


@app.command()
def version():
    """Show the installed version."""
    console.print(f"geolens {__version__}")


@app.command()
def download(
    dataset_id: str = typer.Argument(..., help="GEO series id, e.g. GSE12345"),
    output_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Download and decompress the Series Matrix and SOFT files of a series."""
    service = _service()

    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=output_json,
    ) as progress:
        tasks: Dict[str, Any] = {}

        def on_progress(event: DownloadProgress) -> None:
            if event.stage is DownloadStage.COMPLETE:
                return
            task_id = tasks.get(event.file_name)
            if task_id is None:
                task_id = progress.add_task(event.file_name, total=None)
                tasks[event.file_name] = task_id
            if event.stage is DownloadStage.DECOMPRESSING:
                progress.update(task_id, description=f"{event.file_name} (decompressing)")
            elif event.received_bytes is not None:
                progress.update(
                    task_id, completed=event.received_bytes, total=event.total_bytes
                )

        result = service.download_dataset(dataset_id, progress_callback=on_progress)

    if output_json:
        _print_json(result.model_dump(mode="json"))
    else:
        for file in result.files:
            line = f"[green]✓[/green] {file.name} ({file.size_kb} KB)"
            if file.decompressed_size_kb is not None:
                line += f" → {Path(file.decompressed_path).name} ({file.decompressed_size_kb} KB)"
            if file.decompress_error:
                line += f" [yellow]decompression failed: {file.decompress_error}[/yellow]"
            console.print(line)
        for error in result.errors or []:
            console.print(f"[red]✗[/red] {error}")

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def status(dataset_id: str = typer.Argument(..., help="GEO series id")):
    """Show which files of a dataset are on disk."""
    summary = _service().get_dataset_summary(dataset_id)
    if summary["status"] != "downloaded":
        console.print(summary.get("message") or summary.get("error"))
        raise typer.Exit(code=1)

    table = Table(title=f"{summary['dataset_id']} ({summary['total_size_mb']} MB)", box=box.SIMPLE)
    table.add_column("File")
    table.add_column("Size (MB)", justify="right")
    table.add_column("Modified")
    for file in summary["files"]:
        table.add_row(file["name"], file["size_mb"], f"{file['modified']:%Y-%m-%d %H:%M}")
    console.print(table)
    console.print(f"Location: {summary['location']}")


@app.command()
def summary(
    dataset_id: str = typer.Argument(..., help="GEO series id"),
    output_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Overview, sample excerpt, statistics and data quality of a dataset."""
    analysis = _service().get_full_analysis(dataset_id)
    _fail_on_error(analysis)
    if output_json:
        _print_json(analysis)
        return

    overview = analysis["overview"]
    console.print(f"[bold]{analysis['dataset_id']}[/bold] {overview.get('title') or ''}")
    if overview:
        console.print(
            f"Platform: {overview.get('platform')}  Organism: {overview.get('organism')}  "
            f"Samples: {overview['total_samples']}  Rows: {overview['total_genes']}"
            + ("  [yellow](truncated)[/yellow]" if overview["has_more_data"] else "")
        )
    for flag, value in analysis["data_quality"].items():
        console.print(f"  {flag}: {'yes' if value else 'no'}")


@app.command()
def stats(
    dataset_id: str = typer.Argument(..., help="GEO series id"),
    output_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Per-sample statistics over the retained expression rows."""
    result = _service().get_statistics(dataset_id)
    _fail_on_error(result)
    result.pop("report", None)
    if output_json:
        _print_json(result)
        return

    table = Table(title=f"{result['dataset_id']} sample statistics", box=box.SIMPLE)
    for column in ("Sample", "Values", "Mean", "Median", "Min", "Max", "Range"):
        table.add_column(column, justify="left" if column == "Sample" else "right")
    for sample in result.get("samples", []):
        table.add_row(
            sample["name"],
            str(sample["value_count"]),
            sample["mean"],
            sample["median"],
            sample["min"],
            sample["max"],
            sample["range"],
        )
    console.print(table)


@app.command()
def gene(
    dataset_id: str = typer.Argument(..., help="GEO series id"),
    gene_name: str = typer.Argument(..., help="Gene symbol or probe id"),
    output_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Expression values of a gene across samples."""
    result = _service().query_gene(dataset_id, gene_name)
    _fail_on_error(result)
    if output_json:
        _print_json(result)
        return
    if not result["found"]:
        console.print(f"Gene {gene_name} not found")
        if result.get("note"):
            console.print(f"[dim]{result['note']}[/dim]")
        raise typer.Exit(code=1)

    table = Table(title=f"{result['gene_id']}", box=box.SIMPLE)
    table.add_column("Sample")
    table.add_column("Value", justify="right")
    for sample, value in result["expression_by_sample"].items():
        table.add_row(sample, "NA" if value is None else f"{value:g}")
    console.print(table)


@app.command()
def samples(
    dataset_id: str = typer.Argument(..., help="GEO series id"),
    output_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Sample annotations from the SOFT file."""
    details = _service().get_sample_details(dataset_id)
    _fail_on_error(details)
    if output_json:
        _print_json(details)
        return

    table = Table(title=f"{details['dataset_id']} samples", box=box.SIMPLE)
    table.add_column("Sample")
    table.add_column("Title")
    table.add_column("Characteristics")
    for sample in details["samples"]:
        characteristics = "; ".join(f"{k}: {v}" for k, v in sample["characteristics"].items())
        table.add_row(sample["id"] or "", sample["title"] or "", characteristics)
    console.print(table)


@app.command()
def search(
    dataset_id: str = typer.Argument(..., help="GEO series id"),
    query: str = typer.Argument(..., help="Text to search for"),
    output_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Search gene ids and sample annotations."""
    results = _service().search_in_dataset(dataset_id, query)
    _fail_on_error(results)
    if output_json:
        _print_json(results)
        return

    console.print(f"[bold]Genes[/bold] ({len(results['genes'])})")
    for hit in results["genes"]:
        console.print(f"  {hit['gene_id']}: {hit['preview']}")
    console.print(f"[bold]Samples[/bold] ({len(results['samples'])})")
    for hit in results["samples"]:
        matched = ", ".join(hit["matched"]) or "-"
        console.print(f"  {hit['id']}: {matched}")


@app.command()
def delete(
    dataset_id: str = typer.Argument(..., help="GEO series id"),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation"),
):
    """Delete the downloaded files of a dataset."""
    if not force and not typer.confirm(f"Delete all files of {dataset_id}?"):
        raise typer.Exit(code=1)
    result = _service().delete_dataset(dataset_id)
    _fail_on_error(result)
    console.print(f"Deleted {dataset_id}")


if __name__ == "__main__":
    app()
