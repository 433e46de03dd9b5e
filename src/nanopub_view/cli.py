"""CLI interface for nanopub-view."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from nanopub_view.config import OUTPUT_FORMATS, NanopubConfig
from nanopub_view.template.models import Label, LabelInfo

app = typer.Typer(
    name="nanopub-view",
    help="Structured views of nanopublications via their templates",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def _read_or_exit(path: Path) -> str:
    from nanopub_view.io import read_text

    if not path.is_file():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    return read_text(path)


def _label_text(label: Label) -> str:
    if isinstance(label, LabelInfo):
        return label.label
    return label


@app.command()
def view(
    nanopub: str = typer.Argument(..., help="Nanopublication TriG file"),
    template: str | None = typer.Option(None, "--template", "-t", help="Template TriG file"),
    labels: str | None = typer.Option(None, "--labels", help="YAML file of IRI labels"),
    fmt: str | None = typer.Option(None, "--format", help=f"Output format ({', '.join(OUTPUT_FORMATS)})"),
    output: str | None = typer.Option(None, "-o", help="Write the view to this file (json or yaml)"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Match a nanopublication against its template and show the fields."""
    _setup_logging(verbose)

    try:
        config = NanopubConfig(output_format=fmt) if fmt else NanopubConfig()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    from nanopub_view.io import dump_view, read_labels, write_view
    from nanopub_view.match.labels import CachingLabelResolver, StaticLabelResolver
    from nanopub_view.nanopub import find_template_uri, parse_nanopub, template_id
    from nanopub_view.parse import build_prefix_table, parse_graphs

    text = _read_or_exit(Path(nanopub))

    template_text = None
    if template:
        template_text = _read_or_exit(Path(template))
    else:
        template_uri = find_template_uri(parse_graphs(text, build_prefix_table(text)))
        found = config.find_template(template_id(template_uri)) if template_uri else None
        if found:
            logger.info(f"Using template {found}")
            template_text = _read_or_exit(found)
        elif template_uri:
            logger.warning(f"Template {template_uri} not available locally, showing raw assertion")

    labels_path = Path(labels) if labels else config.labels_file
    try:
        static = read_labels(labels_path) if labels_path else {}
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    resolver = CachingLabelResolver(
        StaticLabelResolver(static),
        heuristic_fallback=config.heuristic_labels,
    )

    result = parse_nanopub(text, template_text, resolver)

    if output:
        out_fmt = "yaml" if output.endswith((".yaml", ".yml")) else "json"
        write_view(result, Path(output), out_fmt)
        console.print(f"[green]Wrote view to {output}[/green]")
        return

    if config.output_format != "table":
        typer.echo(dump_view(result, config.output_format))
        return

    title = result.title or result.uri or nanopub
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Field", style="green")
    table.add_column("Value")

    if result.template_title:
        table.add_row("Template", result.template_title)
    if result.author_name or result.author:
        table.add_row("Author", result.author_name or result.author)
    if result.date:
        table.add_row("Date", result.date)

    for field in result.structured_data:
        label = _label_text(field.label)
        if field.unmatched:
            label = f"[dim]{label}[/dim]"
        values = "\n".join(_label_text(v.display) for v in field.values)
        table.add_row(label, values)

    for triple in result.unmatched_assertions:
        table.add_row(
            _label_text(result.entity_labels.get(triple.predicate, triple.predicate)),
            _label_text(result.entity_labels.get(triple.object, triple.object)),
        )

    console.print(table)


@app.command("template")
def show_template(
    template: str = typer.Argument(..., help="Template TriG file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Show the statements and placeholders of a template."""
    _setup_logging(verbose)
    from nanopub_view.template.parser import parse_template

    parsed = parse_template(_read_or_exit(Path(template)))
    if parsed.is_empty:
        console.print(f"[yellow]No statements found in {template}[/yellow]")
        raise typer.Exit(0)

    if parsed.title:
        console.print(f"[bold]{parsed.title}[/bold]")
    if parsed.description:
        console.print(parsed.description)

    table = Table(title="Statements", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Subject")
    table.add_column("Predicate")
    table.add_column("Object")
    table.add_column("Flags")
    group_members = parsed.group_member_ids()
    for stmt in parsed.ordered_statements():
        flags = [
            name
            for name, on in (
                ("optional", stmt.optional),
                ("repeatable", stmt.repeatable),
                ("grouped", stmt.grouped or stmt.id in group_members),
            )
            if on
        ]
        table.add_row(stmt.id, stmt.subject.value, stmt.predicate.value, stmt.object.value, ", ".join(flags))
    console.print(table)

    if parsed.placeholders:
        ph_table = Table(title="Placeholders", show_header=True, header_style="bold cyan")
        ph_table.add_column("ID", style="green")
        ph_table.add_column("Types")
        ph_table.add_column("Label")
        for ph in parsed.placeholders.values():
            ph_table.add_row(ph.id, ", ".join(t.value for t in ph.types), ph.label)
        console.print(ph_table)

    if parsed.grouped_statements:
        group_table = Table(title="Grouped Statements", show_header=True, header_style="bold cyan")
        group_table.add_column("ID", style="green")
        group_table.add_column("Statements")
        group_table.add_column("Optional")
        for group in parsed.grouped_statements.values():
            group_table.add_row(group.id, ", ".join(group.statement_ids), "Yes" if group.optional else "No")
        console.print(group_table)


@app.command()
def graphs(
    nanopub: str = typer.Argument(..., help="Nanopublication TriG file"),
    graph: str | None = typer.Option(None, "--graph", "-g", help="Only this graph (assertion, provenance, pubinfo)"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """List the triples of each named graph."""
    _setup_logging(verbose)
    from nanopub_view.parse import GraphName, build_prefix_table, parse_graphs

    if graph:
        try:
            names = [GraphName(graph)]
        except ValueError:
            valid = ", ".join(g.value for g in GraphName)
            console.print(f"[red]Error:[/red] Unknown graph {graph!r}. Choose from: {valid}")
            raise typer.Exit(1) from None
    else:
        names = list(GraphName)

    text = _read_or_exit(Path(nanopub))
    parsed = parse_graphs(text, build_prefix_table(text))

    for name in names:
        triples = parsed.get(name)
        table = Table(title=f"{name.value} ({len(triples)})", show_header=True, header_style="bold cyan")
        table.add_column("Subject", style="dim")
        table.add_column("Predicate", style="green")
        table.add_column("Object")
        for t in triples:
            table.add_row(t.subject, t.predicate, t.object)
        console.print(table)
