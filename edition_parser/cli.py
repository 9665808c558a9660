"""
CLI Interface
=============
Command-line interface for the edition parser.

Usage:
    python -m edition_parser process <export_root> [options]
    python -m edition_parser inspect <export_root> [--rules FILE]
    python -m edition_parser article <article_id> [--db PATH]
    python -m edition_parser edition <edition_id> [--db PATH]
"""

from __future__ import annotations

import json
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from . import __version__
from . import crud
from .config import EditionConfig
from .engine import EditionEngine
from .errors import EditionParserError, ExportRootError
from .loader import load_export
from .models import EditionStatus, Role
from .segmenter import extract_articles
from .style_classifier import DEFAULT_STYLE_RULES, load_style_rules

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="edition-parser")
def cli():
    """Edition Parser: layout export to articles, authors and images."""
    pass


@cli.command()
@click.argument("export_root", type=click.Path(exists=True, file_okay=False))
@click.option("--db", "db_path", default=None, help="SQLite database path")
@click.option("--uploads", default="uploads", help="Base uploads directory")
@click.option(
    "--rules",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON style rule table",
)
@click.option(
    "--workers", "-j",
    default=1,
    type=int,
    help="Worker threads for loading and segmentation (1 = sequential)",
)
@click.option(
    "--end-marker",
    is_flag=True,
    default=False,
    help="Close articles at the ■ end marker",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option("--log-file", default=None, help="Path to log file")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only the JSON result to stdout",
)
def process(
    export_root: str,
    db_path: str,
    uploads: str,
    rules: str,
    workers: int,
    end_marker: bool,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Process an edition export into the database."""

    if json_output:
        log_level = "ERROR"

    config = EditionConfig(
        log_level=log_level,
        log_file=log_file,
        db_path=db_path,
        uploads_dir=uploads,
        style_rules_file=rules,
        honor_end_marker=end_marker,
        workers=workers,
    )

    try:
        engine = EditionEngine(config)

        if json_output:
            result = engine.process(export_root)
            print(json.dumps(
                result.model_dump(mode="json"), indent=2, ensure_ascii=False
            ))
        else:
            console.print()
            console.print(
                Panel.fit(
                    f"[bold cyan]Edition Parser v{__version__}[/]\n"
                    f"[dim]Processing: {escape(export_root)}[/]",
                    border_style="cyan",
                )
            )
            console.print()

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                progress.add_task("Processing edition...", total=None)
                result = engine.process(export_root)

            _display_result(result)

    except ExportRootError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if log_level == "DEBUG":
            console.print_exception()
        sys.exit(1)

    if result.status == EditionStatus.FAILED:
        sys.exit(2)


@cli.command()
@click.argument("export_root", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--rules",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON style rule table",
)
def inspect(export_root: str, rules: str):
    """Show spreads, style roles and articles of an export without saving."""

    rule_set = load_style_rules(rules) if rules else DEFAULT_STYLE_RULES
    try:
        export = load_export(export_root, rules=rule_set)
    except EditionParserError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    extraction = extract_articles(export)

    spreads = Table(title="Spreads", border_style="cyan")
    spreads.add_column("#", justify="right")
    spreads.add_column("File", style="bold")
    spreads.add_column("Pages", justify="right")
    for spread in export.spreads:
        spreads.add_row(
            str(spread.spread_index),
            spread.filename,
            f"{spread.page_start}-{spread.page_end}",
        )
    console.print()
    console.print(spreads)

    styles = Table(title="Style Roles", border_style="green")
    styles.add_column("Role", style="bold")
    styles.add_column("Classes")
    for role in Role:
        classes = export.styles.classes_for(role)
        if classes:
            styles.add_row(role.value, ", ".join(classes))
    console.print(styles)

    articles = Table(title="Articles", border_style="magenta")
    articles.add_column("Title", style="bold")
    articles.add_column("Pages", justify="right")
    articles.add_column("Authors")
    articles.add_column("Images", justify="right")
    for article in extraction.articles:
        articles.add_row(
            article.title.replace("\n", " "),
            f"{article.page_start}-{article.page_end}",
            ", ".join(article.author_names) or "-",
            str(len(article.referenced_images)),
        )
    console.print(articles)

    meta = export.metadata
    console.print(
        f"[dim]Edition {meta.edition_number or '?'} | "
        f"Date: {meta.edition_date or '?'} | "
        f"Images: {len(export.images.images)} | "
        f"Cover headlines: {len(meta.cover_headlines)}[/]"
    )
    _display_messages("Errors", export.errors + extraction.errors, "red")
    console.print()


@cli.command()
@click.argument("article_id", type=int)
@click.option("--db", "db_path", default=None, help="SQLite database path")
def article(article_id: int, db_path: str):
    """Print the read-API detail of a stored article."""
    detail = crud.get_article_detail(article_id, db_path=db_path)
    if detail is None:
        console.print(f"[red]Article {article_id} not found[/]")
        sys.exit(1)
    print(json.dumps(detail, indent=2, ensure_ascii=False))


@cli.command()
@click.argument("edition_id", type=int)
@click.option("--db", "db_path", default=None, help="SQLite database path")
def edition(edition_id: int, db_path: str):
    """Print a stored edition with its article listing."""
    detail = crud.get_edition_detail(edition_id, db_path=db_path)
    if detail is None:
        console.print(f"[red]Edition {edition_id} not found[/]")
        sys.exit(1)
    print(json.dumps(detail, indent=2, ensure_ascii=False))


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_result(result):
    """Display processing results in a formatted table."""
    stats = result.stats
    colors = {
        EditionStatus.COMPLETED: "green",
        EditionStatus.COMPLETED_WITH_ERRORS: "yellow",
        EditionStatus.FAILED: "red",
    }
    color = colors.get(result.status, "white")

    table = Table(title=f"Edition {result.edition_id}", border_style=color)
    table.add_column("Metric", style="bold")
    table.add_column("Extracted", justify="right")
    table.add_column("Saved", justify="right")
    table.add_row("Spreads", str(stats.spreads_loaded), "-")
    table.add_row(
        "Articles", str(stats.articles_extracted), str(stats.articles_saved)
    )
    table.add_row(
        "Authors", str(stats.authors_extracted), str(stats.authors_saved)
    )
    table.add_row("Images", str(stats.images_extracted), str(stats.images_saved))
    console.print()
    console.print(table)

    console.print(
        f"[bold {color}]{result.status.value}[/] "
        f"[dim]in {stats.elapsed_ms} ms[/]"
    )
    _display_messages("Errors", result.errors, "red")
    _display_messages("Warnings", result.warnings, "yellow")
    console.print()


def _display_messages(title: str, messages: list[str], color: str):
    if not messages:
        return
    console.print(f"[bold {color}]{title} ({len(messages)}):[/]")
    for message in messages:
        console.print(f"  [{color}]•[/] {escape(message)}", highlight=False)


# ─── Entry point (for python -m edition_parser.cli) ──────────────────────────


if __name__ == "__main__":
    cli()
