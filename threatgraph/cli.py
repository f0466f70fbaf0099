"""Typer CLI for inspecting a threat graph document from the terminal."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from threatgraph import __version__

app = typer.Typer(
    name="threatgraph",
    help="Threatgraph — threat correlation graph queries and risk checks",
    no_args_is_help=True,
)
console = Console()

_SEVERITY_STYLE = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "dim",
    "unknown": "dim",
}


def _setup_logging(verbose: bool = False, config_level: str | None = None) -> None:
    if verbose:
        level = logging.DEBUG
    elif config_level:
        level = getattr(logging, config_level.upper(), logging.INFO)
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_settings(config: str | None, verbose: bool):
    from threatgraph.config import Settings

    settings = Settings.load(config)
    _setup_logging(verbose, config_level=settings.log_level if config else None)
    return settings


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read {path}: {e}[/]")
        raise typer.Exit(1) from None
    if not isinstance(data, dict):
        console.print(f"[red]{path} must contain a JSON object[/]")
        raise typer.Exit(1)
    return data


def _load_engine(path: Path, config: str | None, verbose: bool):
    """Ingest *path* into a fresh graph and return a query engine over it."""
    from threatgraph.ingest.adapter import IngestionAdapter
    from threatgraph.query.engine import QueryEngine

    settings = _load_settings(config, verbose)
    adapter = IngestionAdapter.from_settings(settings)
    try:
        result = adapter.ingest_document(_read_json(path))
    except ValueError as e:
        console.print(f"[red]Invalid document {path}: {e}[/]")
        raise typer.Exit(1) from None

    if result.rejected_relations:
        console.print(f"[yellow]{len(result.rejected_relations)} relation(s) rejected[/]")
        for rejected in result.rejected_relations:
            console.print(f"  [dim]{rejected.relation_id}: {rejected.reason}[/]")
    engine = QueryEngine.of(adapter.graph, default_limit=settings.query.default_limit)
    return engine, settings


def _entity_table(title: str, entities) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Kind", style="green")
    table.add_column("Severity")
    table.add_column("Confidence", justify="right")
    for e in entities:
        style = _SEVERITY_STYLE.get(str(e.severity), "")
        pct = e.confidence_percent
        table.add_row(
            e.id,
            e.name,
            str(e.kind),
            f"[{style}]{e.severity}[/{style}]" if style else str(e.severity),
            "-" if pct is None else f"{pct}%",
        )
    return table


def _parse_kind(kind: str | None):
    if kind is None:
        return None
    from threatgraph.errors import InvalidEntityError
    from threatgraph.ingest.wire import parse_kind

    try:
        return parse_kind(kind)
    except InvalidEntityError:
        console.print(f"[red]Unknown kind: {kind}[/]")
        raise typer.Exit(1) from None


@app.command()
def search(
    file: Path = typer.Argument(help="Graph document (JSON)"),
    query: str = typer.Argument(help="Text to look for in names and aliases"),
    kind: str | None = typer.Option(None, "--kind", "-k", help="Entity kind filter"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=0, help="Max results"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """Search entities by name or alias."""
    engine, _ = _load_engine(file, config, verbose)
    hits = engine.search(query, kind=_parse_kind(kind), limit=limit)
    if not hits:
        console.print(f"No entities match '{query}'")
        return
    console.print(_entity_table(f"Search: {query}", hits))


@app.command()
def neighbors(
    file: Path = typer.Argument(help="Graph document (JSON)"),
    entity_id: str = typer.Argument(help="Entity ID"),
    direction: str = typer.Option("either", help="either | outgoing | incoming"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """List relations touching an entity."""
    from threatgraph.knowledge.relations import Direction

    try:
        how = Direction(direction.lower())
    except ValueError:
        console.print(f"[red]Unknown direction: {direction}[/]")
        raise typer.Exit(1) from None

    engine, _ = _load_engine(file, config, verbose)
    entity = engine.get(entity_id)
    if entity is None:
        console.print(f"[red]Entity not found: {entity_id}[/]")
        raise typer.Exit(1)

    table = Table(title=f"Neighbors of {entity.name}")
    table.add_column("Relation", style="green")
    table.add_column("Direction", style="dim")
    table.add_column("Neighbor", style="cyan")
    table.add_column("Name")
    for relation, neighbor_id in engine.neighbors_of(entity_id, how):
        other = engine.get(neighbor_id)
        arrow = "→" if relation.source_id == entity_id else "←"
        table.add_row(
            relation.relation_type, arrow, neighbor_id, other.name if other else "",
        )
    console.print(table)
    console.print(f"  Degree: {engine.degree(entity_id)}")


@app.command()
def subgraph(
    file: Path = typer.Argument(help="Graph document (JSON)"),
    root_id: str = typer.Argument(help="Root entity ID"),
    hops: int = typer.Option(2, "--hops", min=0, help="Maximum hop distance"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """Show the neighborhood of an entity up to N hops away."""
    engine, settings = _load_engine(file, config, verbose)
    if engine.get(root_id) is None:
        console.print(f"[red]Entity not found: {root_id}[/]")
        raise typer.Exit(1)
    if hops > settings.query.max_hops:
        console.print(f"[yellow]Capping hops at {settings.query.max_hops}[/]")
        hops = settings.query.max_hops

    sub = engine.subgraph(root_id, hops)
    table = Table(title=f"Subgraph of {root_id} ({hops} hop(s))")
    table.add_column("Hop", justify="right", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Kind", style="green")
    for e in sorted(sub.entities, key=lambda x: (sub.depth[x.id], x.id)):
        table.add_row(str(sub.depth[e.id]), e.id, e.name, str(e.kind))
    console.print(table)
    console.print(f"  {len(sub.entities)} entities, {len(sub.relations)} relations")


@app.command()
def rank(
    file: Path = typer.Argument(help="Graph document (JSON)"),
    kind: str | None = typer.Option(None, "--kind", "-k", help="Entity kind filter"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=0, help="Max results"),
    by: str = typer.Option("confidence", "--by", help="confidence | severity"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """Rank entities by confidence (unknown last) or by severity."""
    engine, _ = _load_engine(file, config, verbose)
    if by == "confidence":
        ranked = engine.rank_by_confidence(_parse_kind(kind), limit)
    elif by == "severity":
        ranked = engine.rank_by_severity(_parse_kind(kind), limit)
    else:
        console.print(f"[red]Unknown ranking: {by}[/]")
        raise typer.Exit(1)
    console.print(_entity_table(f"Ranked by {by}", ranked))


@app.command()
def classify(
    file: Path = typer.Argument(help="SMS analysis response (JSON)"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """Recompute an SMS verdict and check it against the reported one."""
    from pydantic import ValidationError

    from threatgraph.risk.classifier import check_consistency
    from threatgraph.risk.policy import RiskPolicy

    settings = _load_settings(config, verbose)
    payload = _read_json(file)
    try:
        report = check_consistency(payload, RiskPolicy.from_settings(settings.risk))
    except ValidationError as e:
        console.print(f"[red]Invalid SMS analysis response: {e.error_count()} error(s)[/]")
        raise typer.Exit(1) from None

    recomputed = report.recomputed
    table = Table(title="SMS verdict")
    table.add_column("", style="bold")
    table.add_column("Reported")
    table.add_column("Recomputed")
    table.add_row(
        "Score", f"{report.reported_score:.1f}", f"{recomputed.risk_score:.1f}",
    )
    table.add_row("Level", str(report.reported_level), str(recomputed.risk_level))
    table.add_row("Signals", "", str(recomputed.signal_count))
    console.print(table)

    if report.consistent:
        console.print("[bold green]Consistent[/]")
    else:
        console.print(
            f"[bold red]Inconsistent[/] (delta {report.score_delta:.1f}, "
            f"level match: {report.level_matches}, "
            f"phishing flag match: {report.phishing_flag_matches})",
        )


@app.command()
def summary(
    file: Path = typer.Argument(help="Graph document (JSON)"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """Entity counts by kind and severity."""
    engine, _ = _load_engine(file, config, verbose)
    info = engine.summary()
    table = Table(title="Graph summary")
    table.add_column("Kind", style="green")
    table.add_column("Count", justify="right")
    for kind, count in sorted(info.by_kind.items()):
        table.add_row(str(kind), str(count))
    console.print(table)
    console.print(f"  {info.entity_count} entities, {info.relation_count} relations")


@app.command()
def version():
    """Show version."""
    console.print(f"Threatgraph v{__version__}")


def main() -> None:
    app()
