"""CLI entry point for context-anchor.

Invoked as::

    context-anchor [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m context_anchor.cli.main

Commands
--------
anchor resolve       Resolve session hints to an anchor
anchor create        Create the anchor for hints that match nothing
anchor show          Display an anchor and its DNA summary
anchor retire        Retire an anchor
session bind         Bind a session to an anchor
session unbind       Close a session and commit its metrics
exposure log         Record exposure to an external source
behavior assess      Run a behavioral assessment
trust evolve         Recalculate trust if enough evidence has arrived
archetype classify   Match an anchor against the archetype catalog
ledger verify        Replay and verify an anchor's ledger chain
ledger show          List an anchor's ledger entries
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.table import Table

from context_anchor.config import DEFAULT_DATABASE_PATH, EngineSettings
from context_anchor.engine import ContextEngine
from context_anchor.errors import EngineResult, ErrorKind
from context_anchor.identity.resolver import ResolutionAction

console = Console()

T = TypeVar("T")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="context-anchor")
@click.option(
    "--db",
    "db_path",
    envvar="CONTEXT_ANCHOR_DB",
    default=DEFAULT_DATABASE_PATH,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="SQLite database file.",
)
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
@click.pass_context
def cli(ctx: click.Context, db_path: str, log_level: str) -> None:
    """Identity resolution, DNA accumulation, and trust evolution for AI sessions"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from context_anchor import __version__

    console.print(f"[bold]context-anchor[/bold] v{__version__}")


# ------------------------------------------------------------------
# anchor command group
# ------------------------------------------------------------------


def _hint_options(func: Any) -> Any:
    for option in reversed(
        (
            click.option("--project-path", "-p", default=None, help="Project root path."),
            click.option("--workspace", "-w", default=None, help="Workspace name."),
            click.option("--support-type", "-s", default=None, help="Kind of support given."),
            click.option("--organization", "-o", default=None, help="Owning organization."),
        )
    ):
        func = option(func)
    return func


@cli.group(name="anchor")
def anchor_group() -> None:
    """Resolve, create, and manage identity anchors."""


@anchor_group.command(name="resolve")
@_hint_options
@click.option("--anchor-id", default=None, help="Look up this anchor directly.")
@click.pass_context
def resolve_command(
    ctx: click.Context,
    project_path: str | None,
    workspace: str | None,
    support_type: str | None,
    organization: str | None,
    anchor_id: str | None,
) -> None:
    """Resolve hints to an existing anchor, or report what would be created."""
    engine = _engine(ctx)
    resolution = _unwrap(
        engine.resolve(
            {
                "project_path": project_path,
                "workspace": workspace,
                "support_type": support_type,
                "organization": organization,
                "anchor_id": anchor_id,
            }
        )
    )
    console.print(f"Action:     [bold]{resolution.action.value}[/bold]")
    console.print(f"Confidence: {resolution.confidence:.2f}")
    console.print(f"Reason:     {resolution.reason}")
    if resolution.anchor_hash:
        console.print(f"Hash:       {resolution.anchor_hash}")
    if resolution.anchor is not None:
        console.print(f"Anchor:     [cyan]{resolution.anchor.anchor_id}[/cyan]")
    else:
        console.print("[yellow]No anchor matches.[/yellow] Run 'anchor create' to confirm creation.")


@anchor_group.command(name="create")
@_hint_options
@click.option(
    "--metadata",
    "-m",
    default=None,
    help="JSON object passed to the minting authority.",
)
@click.pass_context
def create_command(
    ctx: click.Context,
    project_path: str | None,
    workspace: str | None,
    support_type: str | None,
    organization: str | None,
    metadata: str | None,
) -> None:
    """Create the anchor for hints that match no existing anchor."""
    parsed_metadata = _parse_json_option("--metadata", metadata)
    engine = _engine(ctx)
    resolution = _unwrap(
        engine.resolve(
            {
                "project_path": project_path,
                "workspace": workspace,
                "support_type": support_type,
                "organization": organization,
            }
        )
    )
    if resolution.action is ResolutionAction.BIND_EXISTING and resolution.anchor is not None:
        console.print(
            f"[yellow]Anchor already exists:[/yellow] [bold]{resolution.anchor.anchor_id}[/bold]"
        )
        return

    assert resolution.pending_anchor is not None
    anchor = _unwrap(engine.create_anchor(resolution.pending_anchor, parsed_metadata))
    console.print(f"[green]Created[/green] anchor [bold]{anchor.anchor_id}[/bold]")
    console.print(f"  Issuer:  {anchor.issuer.value}")
    console.print(f"  Hash:    {anchor.anchor_hash}")
    console.print(f"  Trust:   {anchor.trust_score:.2f} (level {anchor.trust_level})")


@anchor_group.command(name="show")
@click.argument("anchor_id")
@click.pass_context
def show_command(ctx: click.Context, anchor_id: str) -> None:
    """Display ANCHOR_ID with its trust and DNA summary."""
    engine = _engine(ctx)
    anchor = _unwrap(engine.get_anchor(anchor_id))
    profile = _unwrap(engine.dna_profile(anchor_id))

    table = Table(title=f"Anchor — {anchor_id}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", anchor.status.value)
    table.add_row("Issuer", anchor.issuer.value)
    table.add_row("Project path", anchor.project_path or "-")
    table.add_row("Workspace", anchor.workspace or "-")
    table.add_row("Organization", anchor.organization or "-")
    table.add_row("Trust score", f"{anchor.trust_score:.2f}")
    table.add_row("Trust level", str(anchor.trust_level))
    table.add_row("Sessions", f"{anchor.total_sessions} ({len(anchor.current_sessions)} open)")
    table.add_row("Interactions", str(profile.total_interactions))
    table.add_row("Success rate", f"{profile.success_rate:.3f}")
    table.add_row("Anomalies", str(profile.anomaly_count))
    table.add_row("Trend", profile.trend)
    table.add_row("Last activity", anchor.last_activity.isoformat())
    console.print(table)


@anchor_group.command(name="retire")
@click.argument("anchor_id")
@click.option("--reason", "-r", default="", help="Why the anchor is being retired.")
@click.pass_context
def retire_command(ctx: click.Context, anchor_id: str, reason: str) -> None:
    """Retire ANCHOR_ID. Retired anchors never resolve again."""
    anchor = _unwrap(_engine(ctx).set_status(anchor_id, "retired", reason))
    console.print(f"[green]Retired[/green] anchor [bold]{anchor.anchor_id}[/bold]")


# ------------------------------------------------------------------
# session command group
# ------------------------------------------------------------------


@cli.group(name="session")
def session_group() -> None:
    """Bind and unbind sessions."""


@session_group.command(name="bind")
@click.argument("anchor_id")
@click.argument("session_id")
@click.option("--platform", default="unknown", show_default=True, help="Platform label.")
@click.pass_context
def bind_command(ctx: click.Context, anchor_id: str, session_id: str, platform: str) -> None:
    """Bind SESSION_ID to ANCHOR_ID."""
    binding = _unwrap(_engine(ctx).bind_session(anchor_id, session_id, platform))
    console.print(
        f"[green]Bound[/green] session [bold]{binding.session_id}[/bold] "
        f"to anchor [bold]{binding.anchor_id}[/bold]"
    )


@session_group.command(name="unbind")
@click.argument("session_id")
@click.option(
    "--metrics",
    default=None,
    help='JSON session metrics (e.g. \'{"interactions": 12, "successes": 9}\').',
)
@click.option("--reason", default="session_complete", show_default=True)
@click.pass_context
def unbind_command(
    ctx: click.Context, session_id: str, metrics: str | None, reason: str
) -> None:
    """Close SESSION_ID and commit its metrics to the anchor's DNA."""
    parsed = _parse_json_option("--metrics", metrics)
    engine = _engine(ctx)
    binding = _unwrap(engine.unbind_session(session_id, parsed or None, reason))
    console.print(
        f"[green]Unbound[/green] session [bold]{binding.session_id}[/bold] "
        f"({binding.interactions} interactions)"
    )
    anchor = _unwrap(engine.get_anchor(binding.anchor_id))
    console.print(f"  Trust: {anchor.trust_score:.2f} (level {anchor.trust_level})")


# ------------------------------------------------------------------
# exposure / behavior
# ------------------------------------------------------------------


@cli.group(name="exposure")
def exposure_group() -> None:
    """Record exposure to external information sources."""


@exposure_group.command(name="log")
@click.argument("anchor_id")
@click.argument("source")
@click.option(
    "--type",
    "interaction_type",
    type=click.Choice(["read", "write", "execute", "query", "chat", "observe"]),
    default="read",
    show_default=True,
)
@click.option("--session", "session_id", default=None, help="Session the exposure happened in.")
@click.option("--count", default=1, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def exposure_log_command(
    ctx: click.Context,
    anchor_id: str,
    source: str,
    interaction_type: str,
    session_id: str | None,
    count: int,
) -> None:
    """Log that ANCHOR_ID consumed information from SOURCE."""
    record = _unwrap(
        _engine(ctx).log_exposure(anchor_id, source, interaction_type, session_id, count)
    )
    console.print(
        f"[green]Logged[/green] {record.interaction_type.value} exposure to "
        f"[bold]{record.source}[/bold] ({record.source_category}, "
        f"sentiment {record.sentiment:+.2f})"
    )


@cli.group(name="behavior")
def behavior_group() -> None:
    """Behavioral assessment."""


@behavior_group.command(name="assess")
@click.argument("anchor_id")
@click.pass_context
def assess_command(ctx: click.Context, anchor_id: str) -> None:
    """Assess ANCHOR_ID's behavioral traits, trend, and red flags."""
    assessment = _unwrap(_engine(ctx).assess(anchor_id))

    table = Table(title=f"Behavioral Traits — {anchor_id}", show_header=True)
    table.add_column("Trait", style="cyan")
    table.add_column("Previous", justify="right")
    table.add_column("Current", justify="right")
    for trait, value in assessment.traits.items():
        previous = assessment.previous_traits.get(trait)
        table.add_row(trait, "-" if previous is None else f"{previous:.2f}", f"{value:.2f}")
    console.print(table)
    console.print(
        f"Trend: [bold]{assessment.trend.direction}[/bold] "
        f"(confidence {assessment.trend.confidence:.2f})"
    )
    if assessment.red_flags:
        for flag in assessment.red_flags:
            console.print(f"[red]Red flag[/red] (severity {flag.severity}): {flag.reason}")
    else:
        console.print("[green]No red flags.[/green]")


# ------------------------------------------------------------------
# trust / archetype
# ------------------------------------------------------------------


@cli.group(name="trust")
def trust_group() -> None:
    """Trust evolution."""


@trust_group.command(name="evolve")
@click.argument("anchor_id")
@click.pass_context
def evolve_command(ctx: click.Context, anchor_id: str) -> None:
    """Recalculate ANCHOR_ID's trust if enough new evidence has arrived."""
    result = _engine(ctx).maybe_evolve(anchor_id)
    if result.ok and result.kind is ErrorKind.INSUFFICIENT_DATA:
        console.print(f"[yellow]Skipped:[/yellow] {result.message}")
        return
    record = _unwrap(result)
    if record is None:
        console.print("Trust unchanged.")
        return
    console.print(
        f"[green]Evolved[/green] trust {record.previous_score:.2f} -> {record.new_score:.2f} "
        f"(level {record.previous_level} -> {record.new_level}, severity {record.severity})"
    )
    table = Table(title="Factors", show_header=True)
    table.add_column("Factor", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Weight", justify="right")
    for factor in record.factors:
        table.add_row(str(factor["name"]), f"{factor['score']:.2f}", f"{factor['weight']:.2f}")
    console.print(table)


@cli.group(name="archetype")
def archetype_group() -> None:
    """Archetype classification."""


@archetype_group.command(name="classify")
@click.argument("anchor_id")
@click.pass_context
def classify_command(ctx: click.Context, anchor_id: str) -> None:
    """Match ANCHOR_ID against the archetype catalog."""
    classification = _unwrap(_engine(ctx).classify(anchor_id))
    console.print(
        f"Archetype: [bold]{classification.archetype.name}[/bold] "
        f"(distance {classification.distance:.3f}, stability {classification.stability:.2f})"
    )
    table = Table(title="Capabilities", show_header=True)
    table.add_column("Dimension", style="cyan")
    table.add_column("Score", justify="right")
    for dim, score in classification.capabilities.items():
        table.add_row(dim.value, f"{score:.2f}")
    console.print(table)
    if classification.tradeoff is not None:
        console.print(f"Trade-off: {classification.tradeoff.assessment}")
    for rec in classification.recommendations:
        console.print(f"  - {rec.action}: {rec.message}")


# ------------------------------------------------------------------
# ledger command group
# ------------------------------------------------------------------


@cli.group(name="ledger")
def ledger_group() -> None:
    """Inspect and verify the event ledger."""


@ledger_group.command(name="verify")
@click.argument("anchor_id")
@click.pass_context
def ledger_verify_command(ctx: click.Context, anchor_id: str) -> None:
    """Replay ANCHOR_ID's chain and check every hash and link."""
    result = _engine(ctx).verify_ledger(anchor_id)
    verification = result.value
    if result.ok and verification is not None:
        console.print(
            f"[green]Chain intact[/green]: {verification.entries_checked} entries, "
            f"head {verification.head_hash[:16]}"
        )
        return
    console.print(f"[red]Chain broken:[/red] {result.message}")
    sys.exit(1)


@ledger_group.command(name="show")
@click.argument("anchor_id")
@click.option("--limit", default=50, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def ledger_show_command(ctx: click.Context, anchor_id: str, limit: int) -> None:
    """List the most recent ledger entries of ANCHOR_ID."""
    entries = _engine(ctx).ledger.entries(anchor_id)
    if not entries:
        console.print("[yellow]No ledger entries.[/yellow]")
        return
    table = Table(title=f"Ledger — {anchor_id}", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Event", style="cyan")
    table.add_column("Session")
    table.add_column("Timestamp")
    table.add_column("Hash")
    for entry in entries[-limit:]:
        table.add_row(
            str(entry.sequence),
            entry.event_type,
            entry.session_id or "-",
            entry.timestamp,
            entry.content_hash[:16],
        )
    console.print(table)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _engine(ctx: click.Context) -> ContextEngine:
    """Return the engine for this invocation, opening the database once."""
    root = ctx.find_root()
    root.ensure_object(dict)
    engine = root.obj.get("engine")
    if engine is None:
        settings = EngineSettings.from_env().model_copy(
            update={"database_path": root.obj.get("db_path", DEFAULT_DATABASE_PATH)}
        )
        engine = ContextEngine.from_settings(settings)
        root.obj["engine"] = engine
        root.call_on_close(engine.close)
    return engine


def _unwrap(result: EngineResult[T]) -> T:
    """Return a successful result's value; print the failure and exit otherwise."""
    if not result.ok:
        kind = result.kind.value if result.kind is not None else "error"
        console.print(f"[red]Error ({kind}):[/red] {result.message}")
        sys.exit(1)
    return result.value  # type: ignore[return-value]


def _parse_json_option(name: str, raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error:[/red] {name} is not valid JSON: {exc}")
        sys.exit(1)
    if not isinstance(parsed, dict):
        console.print(f"[red]Error:[/red] {name} must be a JSON object")
        sys.exit(1)
    return parsed


if __name__ == "__main__":
    cli()
