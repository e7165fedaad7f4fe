"""CLI for Esports Hub."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Annotated, Literal

import pydantic
import structlog
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from esports_hub import __version__
from esports_hub.core.config import HubConfig, load_config
from esports_hub.core.errors import ConfigurationError, HubError
from esports_hub.hub import EsportsHub, open_hub
from esports_hub.models import TournamentDraft, TournamentStatus, as_utc
from esports_hub.ranking import SortKey
from esports_hub.services.reporting import (
    generate_leaderboard_report,
    generate_tournament_report,
    leaderboard_rows,
)

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

app = typer.Typer(
    name="esports-hub",
    help="Esports Hub - browse and join tournaments, follow the leaderboard",
    add_completion=False,
)
admin_app = typer.Typer(help="Admin tournament management")
app.add_typer(admin_app, name="admin")
console = Console()

ConfigArg = Annotated[Path, typer.Argument(help="Path to config YAML file")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-V", help="Verbose output")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"esports-hub v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Esports Hub CLI."""
    load_dotenv()


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _report(error: HubError) -> None:
    console.print(f"[red]{error.message}[/red]")


def _run(
    config_path: Path,
    verbose: bool,
    action: Callable[[EsportsHub], Awaitable[None]],
) -> None:
    """Load config, open a hub, run one action and close everything."""
    _configure_logging(verbose)
    try:
        config = load_config(config_path)

        async def _main() -> None:
            hub = await open_hub(config, reporter=_report)
            try:
                await action(hub)
            finally:
                await hub.close()

        asyncio.run(_main())

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ConfigurationError as e:
        console.print(f"[red]{e}")
        raise typer.Exit(1) from e
    except HubError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1) from e


def _tournament_table(hub: EsportsHub) -> Table:
    table = Table(title="Tournaments")
    for column in ("ID", "Name", "Status", "Start", "End", "Max Players", "Prize Pool", ""):
        table.add_column(column)
    for t in hub.tournaments:
        table.add_row(
            t.id,
            t.name,
            t.status,
            as_utc(t.start_date).date().isoformat(),
            as_utc(t.end_date).date().isoformat(),
            str(t.max_participants),
            t.prize_pool or "",
            "[cyan]registered[/cyan]" if hub.is_joined(t.id) else "",
        )
    return table


def _print_tournaments(hub: EsportsHub) -> None:
    if hub.view.error:
        console.print(f"[red]{hub.view.error}[/red]")
    if not hub.tournaments:
        console.print("No tournaments available yet")
        return
    console.print(_tournament_table(hub))


@app.command()
def tournaments(
    config_path: ConfigArg,
    output_format: Annotated[
        Literal["table", "markdown"],
        typer.Option("--format", help="Output format (table/markdown)"),
    ] = "table",
    verbose: VerboseOpt = False,
) -> None:
    """List tournaments, marking the ones you have joined."""

    async def _action(hub: EsportsHub) -> None:
        await hub.mount_tournaments()
        if output_format == "markdown":
            joined = hub.participations.joined
            report = generate_tournament_report(hub.tournaments, joined)
            console.print(report, markup=False, soft_wrap=True)
            return
        _print_tournaments(hub)

    _run(config_path, verbose, _action)


@app.command()
def join(
    config_path: ConfigArg,
    tournament_id: Annotated[str, typer.Argument(help="Tournament ID")],
    verbose: VerboseOpt = False,
) -> None:
    """Join a tournament."""

    async def _action(hub: EsportsHub) -> None:
        if not hub.session.is_authenticated:
            console.print("[yellow]Not signed in; set user_id or ESPORTS_HUB_USER_ID[/yellow]")
            return
        await hub.mount_tournaments()
        await hub.join_tournament(tournament_id)
        if hub.is_joined(tournament_id):
            console.print(f"[green]You're registered for {tournament_id}![/green]")

    _run(config_path, verbose, _action)


@app.command()
def leave(
    config_path: ConfigArg,
    tournament_id: Annotated[str, typer.Argument(help="Tournament ID")],
    verbose: VerboseOpt = False,
) -> None:
    """Leave a tournament."""

    async def _action(hub: EsportsHub) -> None:
        if not hub.session.is_authenticated:
            console.print("[yellow]Not signed in; set user_id or ESPORTS_HUB_USER_ID[/yellow]")
            return
        await hub.mount_tournaments()
        await hub.leave_tournament(tournament_id)
        if not hub.is_joined(tournament_id):
            console.print(f"Not registered for {tournament_id}")

    _run(config_path, verbose, _action)


@app.command()
def leaderboard(
    config_path: ConfigArg,
    sort: Annotated[
        str, typer.Option("--sort", "-s", help="points, wins or kdr")
    ] = "points",
    output_format: Annotated[
        Literal["table", "markdown"],
        typer.Option("--format", help="Output format (table/markdown)"),
    ] = "table",
    verbose: VerboseOpt = False,
) -> None:
    """Show the top players."""
    try:
        sort_key = SortKey.parse(sort)
    except ValueError as e:
        console.print(f"[red]Unknown sort key:[/red] {sort}")
        raise typer.Exit(1) from e

    async def _action(hub: EsportsHub) -> None:
        await hub.set_sort_key(sort_key)
        ranking = hub.current_ranking()
        if output_format == "markdown":
            report = generate_leaderboard_report(ranking, sort_key)
            console.print(report, markup=False, soft_wrap=True)
            return
        if not ranking:
            console.print("No players on leaderboard yet")
            return
        table = Table(title=f"Leaderboard ({sort_key.value})")
        for column in ("Rank", "Player", "Wins", "Points", "K/D"):
            table.add_column(column)
        for row in leaderboard_rows(ranking):
            table.add_row(*(str(cell) for cell in row))
        console.print(table)

    _run(config_path, verbose, _action)


@app.command()
def watch(
    config_path: ConfigArg,
    duration: Annotated[
        float | None, typer.Option("--duration", help="Stop after N seconds")
    ] = None,
    verbose: VerboseOpt = False,
) -> None:
    """Follow the tournament list live, re-printing it on every change."""

    async def _action(hub: EsportsHub) -> None:
        await hub.mount_tournaments()
        _print_tournaments(hub)
        seen = hub.view.fetch_count
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration if duration is not None else None
        try:
            while deadline is None or loop.time() < deadline:
                await asyncio.sleep(0.5)
                if hub.view.fetch_count != seen:
                    seen = hub.view.fetch_count
                    _print_tournaments(hub)
        finally:
            await hub.unmount_tournaments()

    try:
        _run(config_path, verbose, _action)
    except KeyboardInterrupt:
        console.print("Stopped watching")


@admin_app.command("list")
def admin_list(config_path: ConfigArg, verbose: VerboseOpt = False) -> None:
    """List all tournaments, newest first."""

    async def _action(hub: EsportsHub) -> None:
        rows = await hub.admin.list_tournaments()
        table = Table(title="All Tournaments")
        for column in ("ID", "Name", "Status", "Created"):
            table.add_column(column)
        for t in rows:
            table.add_row(t.id, t.name, t.status, as_utc(t.created_at).isoformat())
        console.print(table)

    _run(config_path, verbose, _action)


@admin_app.command("create")
def admin_create(
    config_path: ConfigArg,
    name: Annotated[str, typer.Option("--name", help="Tournament name")],
    start: Annotated[datetime, typer.Option("--start", help="Start date")],
    end: Annotated[datetime, typer.Option("--end", help="End date")],
    description: Annotated[str | None, typer.Option("--description")] = None,
    max_participants: Annotated[int, typer.Option("--max-participants")] = 100,
    prize_pool: Annotated[str | None, typer.Option("--prize-pool")] = None,
    status: Annotated[TournamentStatus, typer.Option("--status")] = TournamentStatus.UPCOMING,
    verbose: VerboseOpt = False,
) -> None:
    """Create a tournament."""
    try:
        draft = TournamentDraft(
            name=name,
            description=description,
            start_date=start,
            end_date=end,
            max_participants=max_participants,
            prize_pool=prize_pool,
            status=status,
        )
    except pydantic.ValidationError as e:
        console.print(f"[red]Invalid tournament:[/red] {e}")
        raise typer.Exit(1) from e

    async def _action(hub: EsportsHub) -> None:
        tournament = await hub.admin.create_tournament(draft)
        console.print(f"[green]Created[/green] {tournament.name} ({tournament.id})")

    _run(config_path, verbose, _action)


@admin_app.command("delete")
def admin_delete(
    config_path: ConfigArg,
    tournament_id: Annotated[str, typer.Argument(help="Tournament ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    verbose: VerboseOpt = False,
) -> None:
    """Delete a tournament."""
    if not yes:
        typer.confirm("Are you sure you want to delete this tournament?", abort=True)

    async def _action(hub: EsportsHub) -> None:
        await hub.admin.delete_tournament(tournament_id)
        console.print(f"Deleted {tournament_id}")

    _run(config_path, verbose, _action)


@app.command()
def validate(config_path: ConfigArg) -> None:
    """Validate a configuration file without connecting.

    Args:
        config_path: Path to YAML configuration file.
    """
    try:
        config = load_config(config_path)
        _print_config(config)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ConfigurationError as e:
        console.print(f"[red]{e}")
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Validation error:[/red] {e}")
        raise typer.Exit(1) from e


def _print_config(config: HubConfig) -> None:
    console.print("[green]Configuration is valid![/green]")
    console.print(f"  Backend: {config.backend}")
    if config.backend == "supabase":
        console.print(f"  URL: {config.supabase.get_url()}")
    else:
        console.print(f"  Database: {config.local.database_path}")
    console.print(f"  User: {config.get_user_id() or 'anonymous'}")
    leaderboard = config.leaderboard
    console.print(f"  Leaderboard: top {leaderboard.limit} by {leaderboard.default_sort}")
    console.print(f"  Remote timeout: {config.remote_timeout_seconds}s")


@app.command()
def info() -> None:
    """Show tool information and example commands."""
    console.print("[bold]Esports Hub[/bold]")
    console.print(f"Version: {__version__}\n")

    console.print("[bold]Example Commands:[/bold]")
    console.print("  # List tournaments")
    console.print("  esports-hub tournaments config.yaml\n")

    console.print("  # Join and leave")
    console.print("  esports-hub join config.yaml <tournament-id>")
    console.print("  esports-hub leave config.yaml <tournament-id>\n")

    console.print("  # Leaderboard by K/D, as markdown")
    console.print("  esports-hub leaderboard config.yaml --sort kdr --format markdown\n")

    console.print("  # Follow live changes for a minute")
    console.print("  esports-hub watch config.yaml --duration 60\n")

    console.print("  # Validate config")
    console.print("  esports-hub validate config.yaml")


if __name__ == "__main__":
    app()
