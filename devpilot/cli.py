"""DevPilot CLI — Typer + Rich operator interface.

Commands: rules, match, patterns, learn, cleanup.
Inspects the seed rule registry and the learned pattern store.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from devpilot import __version__
from devpilot.errors import DevpilotError
from devpilot.rules.registry import RuleRegistry
from devpilot.schemas.config import EngineConfig
from devpilot.schemas.rules import Rule

console = Console()

app = typer.Typer(
    name="devpilot",
    help="Adaptive decision engine for development-workflow events.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"devpilot {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """DevPilot — resolve workflow events by rule first, AI second."""


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(config_path: str | None) -> EngineConfig:
    """Load engine configuration, exit on error."""
    from devpilot.settings import load_engine_config

    try:
        return load_engine_config(Path(config_path) if config_path else None)
    except (FileNotFoundError, DevpilotError) as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1) from None


def _load_registry(learned_path: str | None = None) -> RuleRegistry:
    """Seed registry plus any previously exported learned rules."""
    try:
        registry = RuleRegistry.with_seed_rules()
        if learned_path:
            exported = json.loads(Path(learned_path).read_text(encoding="utf-8"))
            registry.import_rules(exported)
    except (OSError, ValueError, DevpilotError) as e:
        console.print(f"[red]Failed to load rules:[/red] {e}")
        raise typer.Exit(1) from None
    return registry


def _db_path(db: str | None, config_path: str | None) -> str:
    return db or _load_config(config_path).storage.pattern_db_path


def _rules_table(title: str, rules: list[Rule]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Category")
    table.add_column("Action")
    table.add_column("Confidence", justify="right")
    table.add_column("Auto-fix", justify="center")
    table.add_column("Source", style="dim")
    for rule in rules:
        table.add_row(
            rule.id,
            rule.category or "-",
            rule.action,
            f"{rule.confidence:.2f}",
            "[green]yes[/green]" if rule.auto_fix else "[dim]no[/dim]",
            rule.source,
        )
    return table


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def rules(
    category: str = typer.Option(None, "--category", "-c", help="Only this category"),
    learned: str = typer.Option(
        None, "--learned", help="JSON file of exported learned rules to include",
    ),
) -> None:
    """List registered rules."""
    registry = _load_registry(learned)
    if category:
        selected = registry.rules_by_category(category)
    else:
        selected = registry.list_rules()

    if not selected:
        console.print("[dim]No rules found.[/dim]")
        return

    selected.sort(key=lambda r: (r.category or "", r.id))
    console.print(_rules_table(f"Rules ({len(selected)})", selected))


@app.command()
def match(
    text: str = typer.Argument(..., help="Event text to match, e.g. an error message"),
    category: str = typer.Option(None, "--category", "-c", help="Restrict to a category"),
    learned: str = typer.Option(
        None, "--learned", help="JSON file of exported learned rules to include",
    ),
) -> None:
    """Show which rules match a piece of text."""
    registry = _load_registry(learned)
    result = registry.match(text, category)

    if not result.matched:
        console.print("[yellow]No rule matched.[/yellow] The AI tier would handle this.")
        raise typer.Exit(1)

    console.print(
        f"[bold]Best:[/bold] [cyan]{result.rule.id}[/cyan] → {result.action} "
        f"(confidence {result.confidence:.2f})"
    )
    if result.solution:
        console.print(f"[bold]Solution:[/bold] {result.solution}")
    console.print(_rules_table("All matches", result.all_matches))


@app.command()
def patterns(
    db: str = typer.Option(None, "--db", help="Pattern database path"),
    type_filter: str = typer.Option(None, "--type", "-t", help="Filter by task type"),
    min_confidence: float = typer.Option(
        0.7, "--min-confidence", help="Minimum pattern confidence",
    ),
    config: str = typer.Option(None, "--config", help="Engine config TOML"),
) -> None:
    """Show learned patterns."""
    from devpilot.learning.store import PatternStore, close_db, init_db
    from devpilot.learning.tracker import PatternTracker

    db_path = _db_path(db, config)

    async def _list():
        conn = await init_db(db_path)
        try:
            tracker = PatternTracker(PatternStore(conn))
            return await tracker.get_patterns(type_filter, min_confidence)
        finally:
            await close_db(conn)

    found = asyncio.run(_list())
    if not found:
        console.print("[dim]No patterns found.[/dim]")
        return

    table = Table(title=f"Patterns ({len(found)} shown)")
    table.add_column("Signature", style="cyan", max_width=50)
    table.add_column("Type")
    table.add_column("Solution", max_width=40)
    table.add_column("OK", justify="right", style="green")
    table.add_column("Fail", justify="right", style="red")
    table.add_column("Confidence", justify="right")
    table.add_column("Last seen", style="dim")

    for p in found:
        table.add_row(
            p.signature,
            p.type,
            (p.solution or "")[:40],
            str(p.success_count),
            str(p.failure_count),
            f"{p.confidence:.2f}",
            p.last_seen.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def learn(
    db: str = typer.Option(None, "--db", help="Pattern database path"),
    output: str = typer.Option(
        None, "--output", "-o", help="Write generated rules to this JSON file",
    ),
    config: str = typer.Option(None, "--config", help="Engine config TOML"),
) -> None:
    """Synthesize rules from high-confidence patterns."""
    from devpilot.learning.store import PatternStore, close_db, init_db
    from devpilot.learning.synthesizer import RuleSynthesizer
    from devpilot.learning.tracker import PatternTracker

    engine_config = _load_config(config)
    db_path = db or engine_config.storage.pattern_db_path
    registry = _load_registry()

    async def _learn():
        conn = await init_db(db_path)
        try:
            synthesizer = RuleSynthesizer(PatternTracker(PatternStore(conn)), registry)
            count = await synthesizer.generate_rules(
                engine_config.learning.min_confidence,
                engine_config.learning.min_success_count,
            )
            return count, sorted(synthesizer.generated_rule_ids)
        finally:
            await close_db(conn)

    count, rule_ids = asyncio.run(_learn())
    if not count:
        console.print("[dim]No patterns qualified for rule generation.[/dim]")
        return

    generated = [r for r in (registry.get_rule(i) for i in rule_ids) if r]
    console.print(_rules_table(f"Generated rules ({count})", generated))

    if output:
        exported = [
            e.model_dump(mode="json") for e in registry.export_rules() if e.id in rule_ids
        ]
        Path(output).write_text(json.dumps(exported, indent=2), encoding="utf-8")
        console.print(Text(f"Wrote {len(exported)} rules to {output}", style="green"))


@app.command()
def cleanup(
    db: str = typer.Option(None, "--db", help="Pattern database path"),
    days: int = typer.Option(None, "--days", help="Delete patterns unseen for this long"),
    config: str = typer.Option(None, "--config", help="Engine config TOML"),
) -> None:
    """Delete stale, weakly supported patterns."""
    from devpilot.learning.store import PatternStore, close_db, init_db
    from devpilot.learning.tracker import PatternTracker

    engine_config = _load_config(config)
    db_path = db or engine_config.storage.pattern_db_path
    older_than = days if days is not None else engine_config.learning.cleanup_days

    async def _cleanup():
        conn = await init_db(db_path)
        try:
            return await PatternTracker(PatternStore(conn)).cleanup(older_than)
        finally:
            await close_db(conn)

    deleted = asyncio.run(_cleanup())
    console.print(f"Deleted [bold]{deleted}[/bold] pattern(s) older than {older_than} days.")
