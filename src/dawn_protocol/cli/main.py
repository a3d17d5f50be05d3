"""CLI commands for Dawn Protocol using Typer."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, time
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dawn_protocol import __version__
from dawn_protocol.billing.entitlement import Plan, Subscription, plan_for_price_id
from dawn_protocol.core.config import Config, get_config
from dawn_protocol.protocols.steps import Protocol, ProtocolContext
from dawn_protocol.scoring.reaction import ReactionSample
from dawn_protocol.sessions.flow import SessionFlow
from dawn_protocol.sessions.models import validate_energy_rating
from dawn_protocol.sessions.schemas import StartSessionRequest
from dawn_protocol.storage.database import Database
from dawn_protocol.storage.session_store import SqliteSessionStore
from dawn_protocol.summarizers.progress import summarize_progress

T = TypeVar("T")

app = typer.Typer(
    name="dawn-protocol",
    help="Guided morning protocol with reaction-time scoring.",
    add_completion=False,
)

console = Console()

# Spacing between synthetic stimuli when samples are entered as bare times
SAMPLE_SPACING_MS = 2000


def setup_logging(log_level: str, log_file: Path | None = None, verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    if verbose or not handlers:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def _with_store(
    config: Config, action: Callable[[SqliteSessionStore], Awaitable[T]]
) -> T:
    """Run ``action`` against the local store, closing the database afterwards."""

    async def runner() -> T:
        db = Database(config.db_path)
        await db.connect()
        try:
            return await action(SqliteSessionStore(db))
        finally:
            await db.close()

    try:
        return asyncio.run(runner())
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _parse_samples(raw: str) -> list[ReactionSample]:
    """Parse comma-separated reaction times in ms."""
    try:
        times = [float(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise typer.BadParameter(f"Expected comma-separated milliseconds, got {raw!r}")
    return [
        ReactionSample.from_reaction_time(t, shown_at=i * SAMPLE_SPACING_MS)
        for i, t in enumerate(times)
    ]


def _parse_wake_time(raw: str | None) -> time | None:
    if raw is None:
        return None
    try:
        return time.fromisoformat(raw)
    except ValueError:
        raise typer.BadParameter(f"Expected HH:MM, got {raw!r}")


def _parse_datetime(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise typer.BadParameter(f"Expected an ISO 8601 date or datetime, got {raw!r}")


def _protocol_table(protocol: Protocol) -> Table:
    table = Table(title=protocol.name, show_header=True, header_style="bold cyan")
    table.add_column("#")
    table.add_column("Step")
    table.add_column("Type")
    table.add_column("Duration")
    table.add_column("Cadence")

    for i, step in enumerate(protocol.steps, start=1):
        cadence = ""
        if step.breath_cadence:
            c = step.breath_cadence
            cadence = f"{c.inhale_seconds}/{c.hold_seconds}/{c.exhale_seconds} x{c.cycles}"
        minutes, seconds = divmod(step.duration_seconds, 60)
        table.add_row(str(i), step.name, step.kind.value, f"{minutes}:{seconds:02d}", cadence)

    return table


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to stderr"),
) -> None:
    """Dawn Protocol command line."""
    config = get_config()
    config.ensure_directories()
    setup_logging(log_level or config.log_level, config.log_dir / "dawn-protocol.log", verbose)


@app.command()
def protocol(
    context: ProtocolContext = typer.Option(ProtocolContext.STANDARD, "--context", "-c", help="Session context"),
    as_json: bool = typer.Option(False, "--json", help="Print the protocol as JSON"),
) -> None:
    """Preview today's protocol."""
    config = get_config()

    async def plan(store: SqliteSessionStore):
        return await SessionFlow(store, config).plan_session(context)

    session_plan = _with_store(config, plan)

    if as_json:
        typer.echo(session_plan.to_response().model_dump_json(indent=2))
        return

    if session_plan.requires_paywall:
        console.print(
            f"[yellow]Your free trial has ended after {config.trial.free_full_sessions} days. "
            "Maintenance protocol only.[/yellow]"
        )

    console.print(_protocol_table(session_plan.protocol))
    console.print(
        f"Day {session_plan.day_index + 1} of {config.trial.program_days} "
        f"- total {session_plan.protocol.total_duration_display}"
    )


@app.command()
def record(
    pre: str = typer.Option(..., "--pre", help="Pre-test reaction times in ms, comma-separated"),
    post: str = typer.Option(None, "--post", help="Post-test reaction times in ms, comma-separated"),
    energy_pre: int = typer.Option(..., "--energy-pre", help="Energy before the protocol (1-5)"),
    energy_post: int = typer.Option(None, "--energy-post", help="Energy after the protocol (1-5)"),
    context: ProtocolContext = typer.Option(ProtocolContext.STANDARD, "--context", "-c", help="Session context"),
    wake_time: str = typer.Option(None, "--wake-time", "-w", help="Wake time as HH:MM"),
    maintenance: bool = typer.Option(False, "--maintenance", help="Use the maintenance protocol"),
) -> None:
    """Record a completed session from measured reaction times."""
    config = get_config()

    # Reject ratings before anything is written to the store
    try:
        validate_energy_rating(energy_pre)
        if energy_post is not None:
            validate_energy_rating(energy_post)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    pre_samples = _parse_samples(pre)
    post_samples = _parse_samples(post) if post else None
    request = StartSessionRequest(
        context=context, wake_time=_parse_wake_time(wake_time), maintenance=maintenance
    )

    async def run(store: SqliteSessionStore):
        flow = SessionFlow(store, config)
        session, session_plan = await flow.start_session(request)
        pre_result = await flow.record_pre_test(session, pre_samples)
        await flow.record_pre_energy(session, energy_pre)

        if post_samples is None:
            return session_plan, pre_result, None, await flow.skip_post_test(session)

        post_result = await flow.record_post_test(session, post_samples)
        if energy_post is None:
            outcome = await flow.complete_session(session)
        else:
            outcome = await flow.record_post_energy(session, energy_post)
        return session_plan, pre_result, post_result, outcome

    session_plan, pre_result, post_result, outcome = _with_store(config, run)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Protocol", f"{session_plan.protocol.name} ({session_plan.protocol.id})")
    table.add_row("Pre score", f"{pre_result.score} (median {pre_result.median_ms}ms)")
    if post_result is not None:
        table.add_row("Post score", f"{post_result.score} (median {post_result.median_ms}ms)")
        change = outcome.improvement
        color = "green" if change.improved else "yellow"
        table.add_row("Change", f"[{color}]{change.delta:+d} ({change.percent_change:+d}%)[/{color}]")
    else:
        table.add_row("Post score", "[dim]skipped[/dim]")
    table.add_row("Minutes saved", str(outcome.minutes_saved))
    table.add_row("Next day", f"{outcome.next_day_index + 1} of {config.trial.program_days}")

    console.print(Panel(table, title="Session Complete", border_style="green"))

    if outcome.show_soft_prompt:
        console.print("[dim]Create an account to keep your progress across devices.[/dim]")


@app.command()
def status() -> None:
    """Show progress, plan and database health."""
    config = get_config()

    async def gather(store: SqliteSessionStore) -> dict[str, Any]:
        return {
            "summary": summarize_progress(await store.get_completed_sessions()),
            "day_index": await store.get_day_index(),
            "plan": await store.get_entitlement(),
            "device_id": await store.get_device_id(),
            "db_ok": await store.db.check_integrity(),
            "db_size": await store.db.get_size_mb(),
        }

    info = _with_store(config, gather)
    summary = info["summary"]

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("Day", f"{info['day_index'] + 1} of {config.trial.program_days}")
    table.add_row("Plan", info["plan"].value)
    table.add_row("Sessions", str(len(summary.sessions)))
    table.add_row("Streak", f"{summary.streak} days")
    table.add_row("Minutes saved", str(summary.total_minutes_saved))
    if summary.average_delta is not None:
        table.add_row("Average change", f"{summary.average_delta:+.1f}")
    table.add_row("Device", info["device_id"])
    table.add_row("Database", f"{config.db_path} ({info['db_size']:.2f} MB)")
    table.add_row("Integrity", "[green]ok[/green]" if info["db_ok"] else "[red]FAILED[/red]")

    console.print(Panel(table, title="Dawn Protocol Status", border_style="blue"))


@app.command()
def history(
    limit: int = typer.Option(14, "--limit", "-n", help="Number of sessions to show"),
) -> None:
    """Show recent completed sessions."""
    config = get_config()

    async def load(store: SqliteSessionStore):
        return await store.get_last_n_sessions(limit)

    sessions = _with_store(config, load)

    if not sessions:
        console.print("[dim]No completed sessions yet[/dim]")
        return

    table = Table(title="Recent Sessions", show_header=True, header_style="bold cyan")
    table.add_column("Day")
    table.add_column("Date")
    table.add_column("Protocol")
    table.add_column("Pre")
    table.add_column("Post")
    table.add_column("Energy")
    table.add_column("Saved")

    for s in sessions:
        energy = f"{s.energy_pre or '-'} → {s.energy_post or '-'}"
        table.add_row(
            str(s.day_index + 1),
            s.completed_at.strftime("%Y-%m-%d") if s.completed_at else "",
            s.protocol_id,
            str(s.reaction_pre_score) if s.reaction_pre_score is not None else "-",
            str(s.reaction_post_score) if s.reaction_post_score is not None else "-",
            energy,
            f"{s.minutes_saved_est or 0}m",
        )

    console.print(table)


@app.command(name="entitlement")
def entitlement_cmd(
    plan: Plan = typer.Option(None, "--plan", "-p", help="Plan to record"),
    price_id: str = typer.Option(None, "--price-id", help="Purchased price id (maps to a plan)"),
    status_: str = typer.Option("active", "--status", "-s", help="Subscription status"),
    period_end: str = typer.Option(None, "--period-end", help="Current period end (ISO 8601)"),
) -> None:
    """Show or record the subscription for this device."""
    config = get_config()

    subscription: Subscription | None = None
    if plan is not None or price_id is not None:
        subscription = Subscription(
            plan=plan if plan is not None else plan_for_price_id(price_id, config.billing),
            status=status_,
            current_period_end=_parse_datetime(period_end),
        )

    async def run(store: SqliteSessionStore) -> Plan:
        if subscription is not None:
            await store.set_subscription(subscription)
        return await store.get_entitlement()

    current = _with_store(config, run)
    console.print(f"Current plan: [bold]{current.value}[/bold]")

    available = [name for name, ok in config.billing.prices_available.items() if ok]
    if current is Plan.FREE and available:
        console.print(f"[dim]Available upgrades: {', '.join(available)}[/dim]")


@app.command()
def sync() -> None:
    """Push local sessions to the remote session store."""
    from dawn_protocol.sync.cloud_sync import CloudSync

    config = get_config()

    async def run(store: SqliteSessionStore) -> dict[str, Any]:
        return await CloudSync(config, store).sync_now()

    results = _with_store(config, run)

    if results["errors"]:
        for error in results["errors"]:
            console.print(f"[red]{error}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Synced {len(results['synced'])} sessions[/green]")


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete local session history and restart at day 1."""
    config = get_config()

    if not yes and not typer.confirm("Delete all local sessions?"):
        raise typer.Abort()

    async def run(store: SqliteSessionStore) -> None:
        await store.clear_sessions()

    _with_store(config, run)
    console.print("[green]Session history cleared[/green]")


@app.command(name="config-show")
def config_show(
    as_json: bool = typer.Option(False, "--json", help="Print configuration as JSON"),
) -> None:
    """Show current configuration."""
    config = get_config()

    if as_json:
        typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))
        return

    table = Table(title="Dawn Protocol Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("[bold]Paths[/bold]", "")
    table.add_row("  Data Directory", str(config.data_dir))
    table.add_row("  Log Directory", str(config.log_dir))
    table.add_row("  Database", str(config.db_path))

    table.add_row("[bold]Trial[/bold]", "")
    table.add_row("  Full Sessions", str(config.trial.free_full_sessions))
    table.add_row("  Program Days", str(config.trial.program_days))

    table.add_row("[bold]Adaptation[/bold]", "")
    table.add_row("  History Window", str(config.adaptation.history_window))

    table.add_row("[bold]Billing[/bold]", "")
    table.add_row("  Plus Price", config.billing.plus_price_id or "[yellow]Not Set[/yellow]")
    table.add_row("  Pro Price", config.billing.pro_price_id or "[yellow]Not Set[/yellow]")

    table.add_row("[bold]Sync[/bold]", "")
    table.add_row("  Enabled", str(config.sync.enabled))
    table.add_row("  API", config.sync.cloud_api_url)

    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"dawn-protocol {__version__}")
