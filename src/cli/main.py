"""
Typer CLI for practice-engine.

Commands:
    practice db init                 - Initialize database tables
    practice db reset --yes          - Drop and recreate all tables
    practice db validate             - Check session aggregates against attempts
    practice repair sessions         - Recount session aggregates from attempts
    practice repair progress         - Rebuild topic/subtopic progress from attempts
    practice settings show USER      - Show a user's adaptive settings
    practice settings set USER ...   - Update a user's adaptive settings
    practice config                  - Show effective configuration
    practice version                 - Show version information

Usage:
    practice --help
    practice repair progress --user user_123
    practice settings set user_123 --level 8 --preference challenging
"""

from __future__ import annotations

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.core.errors import PracticeError
from src.core.logging_config import configure_logging

app = typer.Typer(
    help="practice-engine CLI: database setup and repair of derived practice data",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show INFO logs on the console"),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(get_settings(), console_level="INFO" if verbose else "WARNING")


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management (init, reset, validate)")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    from src.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


@db_app.command("reset")
def db_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Drop every table and recreate it. Destroys all practice data."""
    if not yes and not typer.confirm("This deletes all sessions, attempts and progress. Continue?"):
        raise typer.Exit(code=1)

    from src.db.database import drop_db, init_db

    drop_db()
    init_db()
    rprint("[green]✓[/green] Database reset")


@db_app.command("validate")
def db_validate() -> None:
    """Check that every session's total matches its distinct attempted questions."""
    from src.db.database import validate_session_aggregates

    result = validate_session_aggregates()
    if result.get("error"):
        rprint(f"[red]✗[/red] Validation failed: {result['error']}")
        raise typer.Exit(code=1)
    if result["valid"]:
        rprint("[green]✓[/green] All session aggregates match their attempts")
        return

    table = Table(title=f"Mismatched Sessions ({len(result['mismatches'])})")
    table.add_column("Session", style="cyan", justify="right")
    table.add_column("Stored", justify="right")
    table.add_column("Actual", style="green", justify="right")
    for row in result["mismatches"]:
        table.add_row(str(row["session_id"]), str(row["claimed"]), str(row["actual"]))
    console.print(table)
    rprint("[yellow]Run 'practice repair sessions' to fix them[/yellow]")
    raise typer.Exit(code=1)


# ========================================
# REPAIR COMMANDS
# ========================================

repair_app = typer.Typer(help="Rebuild derived data from attempts")
app.add_typer(repair_app, name="repair")


@repair_app.command("sessions")
def repair_sessions() -> None:
    """Recount total_questions, correct_answers and score for every session."""
    from src.practice.repair import repair_session_aggregates

    report = repair_session_aggregates()
    if report.details:
        table = Table(title="Repaired Sessions")
        table.add_column("Session", style="cyan", justify="right")
        table.add_column("Before (total, correct, score)", style="dim")
        table.add_column("After", style="green")
        for row in report.details:
            table.add_row(str(row["session_id"]), str(row["before"]), str(row["after"]))
        console.print(table)
    rprint(f"[green]✓[/green] {report.updated} of {report.checked} sessions updated")


@repair_app.command("progress")
def repair_progress(
    user: str | None = typer.Option(None, "--user", "-u", help="Only rebuild this user's progress"),
) -> None:
    """Rebuild topic and subtopic progress from all-time attempts."""
    from src.practice.repair import rebuild_progress

    report = rebuild_progress(user_id=user)
    rprint(f"[green]✓[/green] Rebuilt progress for {report.updated} subtopic scopes")


# ========================================
# SETTINGS COMMANDS
# ========================================

settings_app = typer.Typer(help="Per-user adaptive settings")
app.add_typer(settings_app, name="settings")


def _print_settings(values) -> None:
    table = Table(title=f"Adaptive Settings: {values.user_id}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Adaptivity level", str(values.adaptivity_level))
    table.add_row("Difficulty preference", values.difficulty_preference)
    table.add_row("Adaptive learning", "on" if values.enable_adaptive_learning else "off")
    console.print(table)


@settings_app.command("show")
def settings_show(user_id: str = typer.Argument(..., help="User id")) -> None:
    """Show a user's settings (creates defaults if missing)."""
    from src.adaptive import SettingsStore

    _print_settings(SettingsStore().get_settings(user_id))


@settings_app.command("set")
def settings_set(
    user_id: str = typer.Argument(..., help="User id"),
    level: int | None = typer.Option(None, "--level", "-l", help="Adaptivity level 1-10"),
    preference: str | None = typer.Option(None, "--preference", "-p", help="easier, balanced or challenging"),
    enabled: bool | None = typer.Option(None, "--enable/--disable", help="Adaptive learning on or off"),
) -> None:
    """Update a user's settings."""
    from src.adaptive import SettingsStore

    partial = {
        "adaptivity_level": level,
        "difficulty_preference": preference,
        "enable_adaptive_learning": enabled,
    }
    try:
        values = SettingsStore().update_settings(user_id, {k: v for k, v in partial.items() if v is not None})
    except PracticeError as e:
        rprint(f"[red]✗[/red] {e.message}")
        raise typer.Exit(code=1)
    _print_settings(values)


# ========================================
# INFO COMMANDS
# ========================================


@app.command("config")
def show_config() -> None:
    """Show effective practice and gap-policy configuration."""
    settings = get_settings()

    table = Table(title="Practice Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("database", settings.database_url.split("@")[-1])
    for key, value in settings.get_practice_config().items():
        table.add_row(key, str(value))
    for stage, values in settings.get_gap_policy().items():
        for key, value in values.items():
            table.add_row(f"gap.{stage}.{key}", str(value))
    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint("[bold]practice-engine[/bold] v1.0.0")
    rprint("  Adaptive quiz practice: sessions, progress, learning gaps")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
