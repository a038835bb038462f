"""
CLI Main - Typer-based command-line interface.

Usage:
    folioscope extract path/to/report.pdf --refine --title -o report.json
    folioscope extract scan.png
    folioscope info path/to/report.pdf
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

app = typer.Typer(
    name="folioscope",
    help="Folioscope - Document structure extraction with Gemini",
    add_completion=False,
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


@app.command()
def extract(
    path: Path = typer.Argument(..., help="PDF, image or text/markdown file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON path"),
    flat: bool = typer.Option(False, "--flat", help="Write nodes in flat form (no image bytes)"),
    refine: bool = typer.Option(False, "--refine", "-r", help="Run the quality pass"),
    title: bool = typer.Option(False, "--title", "-t", help="Infer a document title"),
    model: str | None = typer.Option(None, "--model", "-m", help="Extraction model"),
    refine_model: str | None = typer.Option(None, "--refine-model", help="Evaluation/refine model"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", min=1, help="Pages in flight"),
    dpi: int | None = typer.Option(None, "--dpi", min=36, help="PDF rendering resolution"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Extract typed page nodes from a document."""
    _configure_logging(verbose)
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)

    overrides = {
        "gemini_model": model,
        "refine_model": refine_model,
        "max_concurrency": concurrency,
        "render_dpi": dpi,
    }
    asyncio.run(
        _extract_async(
            path,
            output,
            refine,
            title,
            flat,
            {k: v for k, v in overrides.items() if v is not None},
        )
    )


async def _extract_async(
    path: Path,
    output: Path | None,
    refine: bool,
    infer_title: bool,
    flat: bool,
    overrides: dict[str, Any],
) -> None:
    """Async extraction implementation."""
    from folioscope.config import ExtractionError, get_settings
    from folioscope.domains.extraction import DocumentService

    settings = get_settings().model_copy(update=overrides)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Extracting {path.name}...", total=None)

        try:
            service = DocumentService.from_settings(settings)
            document = await service.extract_file(path, refine=refine, infer_title=infer_title)
        except ExtractionError as e:
            progress.stop()
            _print_page_errors(e)
            raise typer.Exit(1)
        except Exception as e:
            progress.stop()
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

    console.print("\n[green]Extraction Complete[/green]\n")

    counts: Counter[str] = Counter(node.type for page in document.pages for node in page.nodes)
    table = Table(title="Extraction Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Title", document.title or "-")
    table.add_row("Pages", str(document.page_count))
    table.add_row("Nodes", str(document.node_count))
    for node_type, count in sorted(counts.items()):
        table.add_row(f"  {node_type}", str(count))
    table.add_row("Model", document.model_used)
    table.add_row("Seconds", f"{document.processing_seconds:.1f}")

    console.print(table)

    if output:
        if flat:
            data = document.model_dump(mode="json", exclude={"pages"})
            data["pages"] = [
                {"index": page.index, "nodes": [node.to_flat() for node in page.nodes]}
                for page in document.pages
            ]
            output.write_text(json.dumps(data, indent=2))
        else:
            output.write_text(document.model_dump_json(indent=2))
        console.print(f"\n[green]Saved to:[/green] {output}")


def _print_page_errors(error: Any) -> None:
    """Show an aggregated page failure."""
    console.print(
        Panel(
            f"[bold]{error.total_errors}[/bold] page(s) failed, "
            f"first failure on page {error.failed_page}",
            title="Extraction Failed",
            style="red",
        )
    )
    table = Table()
    table.add_column("Page", style="cyan")
    table.add_column("Error", style="yellow")
    table.add_column("Status")
    table.add_column("Message", overflow="fold")
    for page_error in error.all_errors:
        table.add_row(
            str(page_error.get("page_index")),
            str(page_error.get("error_type")),
            str(page_error.get("status_code") or "-"),
            str(page_error.get("message")),
        )
    console.print(table)


@app.command()
def info(
    path: Path = typer.Argument(..., help="Path to PDF file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Show PDF page count and document information."""
    from folioscope.adapters.pdf import PDFRasterizer
    from folioscope.config import FolioscopeError

    _configure_logging(verbose)
    if path.suffix.lower() != ".pdf":
        console.print(f"[red]Error:[/red] Not a PDF: {path}")
        raise typer.Exit(1)

    try:
        rasterizer = PDFRasterizer()
        metadata = rasterizer.metadata(path)
        rotations = rasterizer.detect_text_rotation(path)
    except FolioscopeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=path.name)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for field, value in metadata.model_dump().items():
        table.add_row(field, "-" if value is None else str(value))
    rotated = [str(i) for i, r in enumerate(rotations) if r]
    table.add_row("rotated_pages", ", ".join(rotated) or "-")
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from folioscope import __version__

    console.print(f"Folioscope v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
