"""
studyloop CLI - interactive study sessions in the terminal.

Usage:
    studyloop modes                                  # Show the mode policy table
    studyloop study quiz -i q1 -i q2 -i q3 -o me      # Start a session
    studyloop resume -o me                           # Continue where you left off
    studyloop show SESSION_ID -o me                  # Inspect a stored session

During a session:
    1-9 / A-D  answer        r  reveal/flip  n  next / skip
    m          mark          b  bookmark     h  hint
    g N        go to N       f  finish       q  quit (progress is kept)
    again|hard|good|easy (or 1-4 while reviewing) rate confidence
"""

from __future__ import annotations

import asyncio
import sys
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from config import Settings, get_settings
from src.engine.controller import ControllerState, SessionController
from src.engine.engine import StudyEngine
from src.engine.errors import SessionEngineError, SessionNotFound
from src.engine.models import ConfidenceRating, ItemType, Mode
from src.engine.modes import get_policy
from src.engine.navigator import QuestionStatus
from src.engine.notifications import Notification, NotificationLevel
from src.engine.session_manager import SessionManager
from src.integrations.platform_client import PlatformClient
from src.store.sql import SqlDocumentStore

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="studyloop",
    help="Timed, resumable study sessions against the study platform",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()

_STATUS_STYLE = {
    QuestionStatus.UNANSWERED: "dim",
    QuestionStatus.ANSWERED: "cyan",
    QuestionStatus.CORRECT: "green",
    QuestionStatus.INCORRECT: "red",
    QuestionStatus.MARKED: "yellow",
}

_NOTE_STYLE = {
    NotificationLevel.INFO: "cyan",
    NotificationLevel.SUCCESS: "green",
    NotificationLevel.WARNING: "yellow",
    NotificationLevel.ERROR: "red",
}

_RATINGS = {"1": "again", "2": "hard", "3": "good", "4": "easy"}


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a compact stderr format."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


def _show_notification(note: Notification) -> None:
    console.print(f"[{_NOTE_STYLE[note.level]}]{note.message}[/]")


def _build_engine(settings: Settings, client: PlatformClient, store: SqlDocumentStore) -> StudyEngine:
    manager = SessionManager(store, ttl_hours=settings.session_ttl_hours)
    engine = StudyEngine(
        manager,
        content=client,
        attempts=client,
        bookmarks=client,
        hints=client,
        timer_overrides=settings.get_timer_overrides(),
    )
    engine.notifications.subscribe(_show_notification)
    return engine


# =============================================================================
# Rendering
# =============================================================================


def _render_navigator(controller: SessionController) -> None:
    cells = controller.navigator.cells()
    parts = []
    for cell in cells:
        label = f"{cell.index + 1}"
        style = _STATUS_STYLE[cell.display_status]
        if cell.current:
            style += " reverse"
        parts.append(f"[{style}]{label:>3}[/]")
    console.print(" ".join(parts))


def _render_item(controller: SessionController) -> None:
    session = controller.session
    item = controller.current_item
    index = controller.current_index
    header = f"Question {index + 1}/{len(session)}  [dim]{session.mode.value}[/]"
    if controller.timer is not None and controller.timer.running:
        header += f"  [yellow]{controller.timer.remaining:.0f}s[/]"
    if controller.policy.uses_streak_multiplier:
        header += f"  [magenta]{controller.streak.points} pts x{controller.streak.multiplier}[/]"

    if item is None:
        console.print(Panel("[red]This question could not be loaded.[/]", title=header))
        return

    lines = [f"[bold]{item.question}[/]", ""]
    selected = session.answers.get(index)
    revealed = controller.is_revealed(index)
    if item.type is ItemType.FLASHCARD:
        lines.append(f"[green]{item.correct_option}[/]" if revealed else "[dim]Press r to flip the card.[/]")
    for n, option in enumerate(item.options):
        marker = "•" if option == selected else " "
        style = ""
        if revealed and option == item.correct_option:
            style = "green"
        elif revealed and option == selected:
            style = "red"
        text = f"{marker} {n + 1}. {option}"
        lines.append(f"[{style}]{text}[/]" if style else text)
    if revealed and item.explanation:
        lines += ["", f"[dim]{item.explanation}[/]"]
    if controller.hint:
        lines += ["", f"[cyan]Hint: {controller.hint}[/]"]
    if controller.bookmarks.is_bookmarked(item.id):
        header += "  [yellow]★[/]"
    console.print(Panel("\n".join(lines), title=header, border_style="cyan"))


def _render_summary(controller: SessionController) -> None:
    summary = controller.summary
    if summary is None:
        console.print("[dim]Session already finished.[/]")
        return
    table = Table(title=f"Session {summary.session_id}")
    table.add_column("#", justify="right")
    table.add_column("Your answer")
    table.add_column("Correct answer")
    table.add_column("", justify="center")
    for n, outcome in enumerate(summary.attempts, start=1):
        table.add_row(
            str(n),
            outcome.selected_answer or "-",
            outcome.correct_answer or "-",
            "[green]✓[/]" if outcome.is_correct else "[red]✗[/]",
        )
    console.print(table)
    line = f"[bold]Score: {summary.score}/{summary.total_questions}[/]"
    if summary.game_score is not None:
        line += f"  points {summary.game_score}  xp {summary.xp_earned}"
    console.print(line)


# =============================================================================
# Interactive loop
# =============================================================================


def _resolve_option(controller: SessionController, raw: str) -> str | None:
    item = controller.current_item
    if item is None or not item.options:
        return raw or None
    if raw.isdigit() and 1 <= int(raw) <= len(item.options):
        return item.options[int(raw) - 1]
    if len(raw) == 1 and raw.upper() in "ABCDEFGHI":
        position = ord(raw.upper()) - ord("A")
        if position < len(item.options):
            return item.options[position]
    return None


async def _handle(controller: SessionController, command: str) -> bool:
    """Apply one typed command. Returns False when the user quits."""
    command = command.strip()
    lowered = command.lower()

    if lowered == "q":
        return False
    if lowered == "f":
        await controller.finish()
    elif lowered == "r":
        if not await controller.reveal():
            console.print("[dim]Nothing to reveal yet.[/]")
    elif lowered == "n":
        if not await controller.advance():
            console.print("[dim]Answer (and rate) this question first.[/]")
    elif lowered == "m":
        marked = await controller.toggle_mark()
        console.print("[yellow]Marked for review[/]" if marked else "[dim]Unmarked[/]")
    elif lowered == "b":
        await controller.toggle_bookmark()
    elif lowered == "h":
        await controller.request_hint()
    elif lowered.startswith("g "):
        target = lowered[2:].strip()
        if not target.isdigit() or not await controller.navigate(int(target) - 1):
            console.print("[dim]Can't go there in this mode.[/]")
    elif controller.state is ControllerState.REVIEWING and (
        lowered in _RATINGS or lowered in {r.value for r in ConfidenceRating}
    ):
        await controller.rate(_RATINGS.get(lowered, lowered))
    else:
        option = _resolve_option(controller, command)
        if option is None or not await controller.answer(option):
            console.print("[dim]Not accepted.[/]")
    return True


async def _interact(controller: SessionController) -> None:
    while controller.state in (ControllerState.IN_PROGRESS, ControllerState.REVIEWING):
        _render_navigator(controller)
        _render_item(controller)
        # Blocking prompt runs off-loop so countdowns keep ticking
        command = await asyncio.to_thread(Prompt.ask, "[bold]>[/]", default="")
        if controller.state not in (ControllerState.IN_PROGRESS, ControllerState.REVIEWING):
            break
        if not await _handle(controller, command):
            console.print(f"[dim]Progress saved. Resume with: studyloop resume -o {controller.owner_id}[/]")
            break

    await controller.dispose()
    if controller.state is ControllerState.ERROR:
        console.print(f"[red]{controller.last_error}[/]")
    elif controller.state is ControllerState.FINISHED:
        _render_summary(controller)


async def _run(owner: str, action) -> None:
    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    store = SqlDocumentStore(settings.get_database_url())
    try:
        async with PlatformClient.from_settings(settings, owner_id=owner) as client:
            engine = _build_engine(settings, client, store)
            await engine.refresh_bookmarks()
            controller = await action(engine)
            if controller is None:
                console.print("[yellow]No session to resume.[/]")
                return
            await _interact(controller)
    finally:
        store.close()


# =============================================================================
# Commands
# =============================================================================


@app.command()
def modes() -> None:
    """Show how each study mode behaves."""
    settings = get_settings()
    table = Table(title="Study modes")
    for column in ("Mode", "Reveal", "Rating", "Timer", "Free nav", "Skip", "Auto-advance"):
        table.add_column(column)

    def flag(value: bool) -> str:
        return "[green]yes[/]" if value else "[dim]no[/]"

    for mode in Mode:
        policy = get_policy(mode, settings.get_timer_overrides())
        timer = "-"
        if policy.has_timer:
            timer = f"{policy.seconds_per_item:g}s {policy.timer_scope.value.replace('_', ' ')}"
        table.add_row(
            mode.value,
            "immediate" if policy.reveal_immediately else "deferred",
            flag(policy.requires_confidence_rating),
            timer,
            flag(policy.allow_free_navigation),
            flag(policy.allow_skip),
            flag(policy.auto_advance_on_answer),
        )
    console.print(table)


@app.command()
def study(
    mode: Annotated[str, typer.Argument(help="Study mode (see `studyloop modes`)")],
    item: Annotated[list[str], typer.Option("--item", "-i", help="Item id (repeatable, in order)")],
    owner: Annotated[str, typer.Option("--owner", "-o", help="Owner (user) id")],
    session: Annotated[
        str | None, typer.Option("--session", "-s", help="Continue this session id if still live")
    ] = None,
) -> None:
    """Start a study session over the given items."""
    try:
        get_policy(mode)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=2)

    async def action(engine: StudyEngine) -> SessionController:
        return await engine.start(owner, mode, item, session_id=session)

    try:
        asyncio.run(_run(owner, action))
    except SessionEngineError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=1)


@app.command()
def resume(
    owner: Annotated[str, typer.Option("--owner", "-o", help="Owner (user) id")],
) -> None:
    """Continue the owner's active session."""

    async def action(engine: StudyEngine) -> SessionController | None:
        return await engine.resume(owner)

    try:
        asyncio.run(_run(owner, action))
    except SessionNotFound:
        console.print("[yellow]That session has expired. Start a new one.[/]")
        raise typer.Exit(code=1)
    except SessionEngineError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=1)


@app.command()
def show(
    session_id: Annotated[str, typer.Argument(help="Session id")],
    owner: Annotated[str, typer.Option("--owner", "-o", help="Owner (user) id")],
) -> None:
    """Print a stored session without starting it."""
    settings = get_settings()
    store = SqlDocumentStore(settings.get_database_url())
    manager = SessionManager(store, ttl_hours=settings.session_ttl_hours)
    try:
        found = asyncio.run(manager.get(session_id, owner))
    except SessionEngineError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=1)
    finally:
        store.close()

    if found is None:
        console.print(f"[yellow]Session {session_id} not found (or expired).[/]")
        raise typer.Exit(code=1)

    table = Table(title=f"Session {found.id}", show_header=False)
    table.add_row("Mode", found.mode.value)
    table.add_row("Progress", f"{found.current_index + 1}/{len(found)}")
    table.add_row("Answered", str(sum(1 for i in range(len(found)) if found.is_answered(i))))
    table.add_row("Marked", ", ".join(str(i + 1) for i in sorted(found.marked_for_review)) or "-")
    table.add_row("Finished", "yes" if found.is_finished else "no")
    table.add_row("Expires", found.expires_at.isoformat() if found.expires_at else "-")
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """
    studyloop - timed, resumable study sessions.

    \b
    Quick Start:
      studyloop modes
      studyloop study practice -i q1 -i q2 -o me
      studyloop resume -o me
    """
    configure_logging("DEBUG" if verbose else get_settings().log_level)


def run() -> None:
    """Entry point for the CLI."""
    app(prog_name="studyloop")


if __name__ == "__main__":
    run()
