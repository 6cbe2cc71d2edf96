"""
Rhythm Drill: terminal interface.

A Rich terminal front end for the adaptive rhythm dictation drill,
running against the local collaborators and a SQLite store.

Commands:
- rhythm-drill drill    - Start an interactive drill session
- rhythm-drill pool     - Show the weighted item pool for a level
- rhythm-drill stats    - Show mastery and confusion records
- rhythm-drill reset    - Clear confusion data
"""
from __future__ import annotations

import asyncio
import random
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from rhythm_drill.adaptive.pool_builder import MAX_LEVEL, MIN_LEVEL, PoolBuilder, WeightConfig
from rhythm_drill.config import DrillSettings, get_settings
from rhythm_drill.core.catalog import DurationKind, Item, ItemCatalog, TimeSignature, default_catalog
from rhythm_drill.drill.question import DrillEvent, EvaluationOutcome, QuestionState
from rhythm_drill.drill.session import RhythmDrillSession
from rhythm_drill.exceptions import CatalogError
from rhythm_drill.integrations.local import (
    LocalDifficultyController,
    LocalLedger,
    LocalSrsScheduler,
    LoguruAnalytics,
)
from rhythm_drill.learning.confusion_tracker import ConfusionMasteryTracker

from .state_store import SQLiteDrillStore

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="rhythm-drill",
    help="Rhythm Drill: adaptive rhythm dictation in the terminal",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
    "tier": {
        "easy": "green",
        "medium": "yellow",
        "complex": "red",
    },
    "status": {
        "mastered": "green",
        "learning": "yellow",
        "needs-work": "red",
    },
}


def style_tier(tier: str) -> str:
    color = STYLES["tier"].get(tier, "white")
    return f"[{color}]{tier}[/{color}]"


def style_status(status: str) -> str:
    color = STYLES["status"].get(status, "white")
    return f"[{color}]{status}[/{color}]"


def configure_logging(level: str = "WARNING") -> None:
    """Route loguru to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<level>{message}</level>",
    )


# =============================================================================
# Terminal Audio
# =============================================================================


class ConsoleAudio:
    """Audio engine that renders ticks as glyphs on the console."""

    def __init__(self, out: Console):
        self.out = out

    def play_rhythm_pattern(self, item: Item, tempo: int, time_signature: TimeSignature) -> bool:
        # No native pattern playback; ticks come from the playback scheduler
        return False

    def play_metronome_tick(self, is_accent: bool, volume: float) -> None:
        glyph = "[bold magenta]●[/bold magenta]" if is_accent else "[magenta]•[/magenta]"
        self.out.print(glyph, end=" ")

    def stop(self) -> None:
        pass


# =============================================================================
# Shared Helpers
# =============================================================================


def _load_catalog(catalog_path: Optional[Path]) -> ItemCatalog:
    if catalog_path is None:
        return default_catalog()
    try:
        return ItemCatalog.from_json(catalog_path)
    except (OSError, CatalogError) as e:
        console.print(f"[red]Could not load catalog:[/red] {e}")
        raise typer.Exit(1)


def _parse_time_signature(value: str) -> TimeSignature:
    try:
        return TimeSignature.parse(value)
    except CatalogError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _open_store(db_path: Optional[Path], settings: DrillSettings) -> SQLiteDrillStore:
    return SQLiteDrillStore(db_path or settings.store_path)


def parse_answer(raw: str) -> list[DurationKind]:
    """
    Parse typed answers such as 'q q e e' or 'qqee'.

    Raises:
        CatalogError: On an unknown duration token
    """
    tokens = raw.split() if " " in raw.strip() else list(raw.strip())
    return [DurationKind.parse(token) for token in tokens if token]


# =============================================================================
# Display Helpers
# =============================================================================


def display_question(question: QuestionState, session: RhythmDrillSession, index: int) -> None:
    item = question.item
    header = (
        f"Question {index}  |  {item.time_signature}  |  {session.tempo} BPM  |  "
        f"Level {session.level} ({session.config.difficulty_label})"
    )
    slots = "  ".join("_" for _ in question.answer_slots)
    content = (
        f"{item.slot_count} beats: {slots}\n\n"
        "[dim]Type one letter per beat: q = quarter, e = eighths, s = sixteenths[/dim]\n"
        "[dim]Commands: play, hint, quit[/dim]"
    )
    console.print(Panel(content, title=header, title_align="left", border_style="cyan", padding=(1, 2)))


def display_feedback(question: QuestionState, outcome: EvaluationOutcome) -> None:
    item = question.item
    if outcome.correct:
        title = "[green]✓ Correct[/green]"
        style = "green"
    else:
        title = "[red]✗ Incorrect[/red]"
        style = "red"

    given = " ".join(slot.symbol if slot else "_" for slot in question.answer_slots)
    lines = [
        f"Pattern: {item.pattern}   ({item.description or item.id})",
        f"You:     {given}",
        f"XP: +{outcome.xp}   Response: {outcome.response_time_ms / 1000:.1f}s",
    ]
    if outcome.newly_mastered:
        lines.append("[bold green]Mastered![/bold green]")
    if outcome.mixups_detected:
        lines.append("[yellow]This pattern keeps tripping you up; it will come back more often.[/yellow]")
    decision = outcome.tempo_decision
    if decision is not None and decision.changed:
        lines.append(f"[cyan]Tempo {decision.previous} -> {decision.tempo} BPM[/cyan]")

    console.print(Panel("\n".join(lines), title=title, title_align="left", border_style=style))


def _display_session_summary(session: RhythmDrillSession, ledger: LocalLedger) -> None:
    stats = session.stats
    console.print("\n")
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"Questions answered: {stats.total_count}\n"
        f"Accuracy: {stats.accuracy * 100:.1f}%\n"
        f"Current streak: {stats.streak}\n"
        f"Duration: {stats.duration_minutes:.1f} min\n"
        f"XP earned: {ledger.xp} (level {ledger.level})",
        title="Summary",
        border_style="green",
    ))

    practiced = [entry for entry in session.mastery_stats() if entry.seen > 0]
    if not practiced:
        return

    table = Table(title="Item Accuracy (weakest first)")
    table.add_column("Item")
    table.add_column("Seen", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Status")
    for entry in practiced:
        status = "mastered" if entry.mastered else entry.status
        table.add_row(entry.item_id, str(entry.seen), f"{entry.accuracy}%", style_status(status))
    console.print(table)


# =============================================================================
# Drill Loop
# =============================================================================


async def _wait_for_playback(session: RhythmDrillSession) -> None:
    while session.playback.is_playing:
        await asyncio.sleep(0.02)


async def _play(session: RhythmDrillSession) -> None:
    if session.play_pattern():
        await _wait_for_playback(session)
        console.print()


async def _run_drill(session: RhythmDrillSession, questions: int, ledger: LocalLedger) -> None:
    first = await session.start()
    if first is None:
        console.print("\n[red]No patterns available for this level and time signature.[/red]")
        await session.close()
        return

    answered = 0
    try:
        while answered < questions and session.question is not None:
            question = session.question
            display_question(question, session, answered + 1)
            await _play(session)

            outcome = None
            while outcome is None:
                raw = Prompt.ask("Answer").strip().lower()
                if raw == "quit":
                    return
                if raw == "play":
                    await _play(session)
                    continue
                if raw == "hint":
                    expected = session.use_hint()
                    if expected is not None:
                        console.print(f"[yellow]Hint:[/yellow] next beat is {expected.symbol} ({expected.value})")
                    continue

                try:
                    kinds = parse_answer(raw)
                except CatalogError as e:
                    console.print(f"[red]{e}[/red]")
                    continue

                session.fill_answer(kinds)
                if not question.is_complete:
                    missing = ", ".join(str(i + 1) for i in question.empty_slots)
                    console.print(f"[yellow]Beats still empty: {missing}[/yellow]")
                    continue
                result = await session.check_answer()
                if result is None or not result.accepted:
                    continue
                outcome = result

            answered += 1
            display_feedback(question, outcome)
            if answered < questions:
                Prompt.ask("[dim]Press Enter for the next pattern[/dim]", default="", show_default=False)
                session.advance()

    finally:
        await session.close()
        _display_session_summary(session, ledger)


# =============================================================================
# Commands
# =============================================================================


@app.callback()
def root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show log output"),
) -> None:
    """Adaptive rhythm dictation drills."""
    configure_logging(get_settings().log_level if verbose else "WARNING")


@app.command()
def drill(
    time_signature: str = typer.Option("4/4", "--time-signature", "-t", help="Meter to drill"),
    tempo: Optional[int] = typer.Option(None, "--tempo", help="Starting tempo (BPM)"),
    questions: int = typer.Option(10, "--questions", "-n", help="Number of questions"),
    level: int = typer.Option(1, "--level", "-l", help="Starting difficulty level (1-6)"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for item selection"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", "-c", help="Catalog JSON file"),
    audio: bool = typer.Option(True, "--audio/--no-audio", help="Render ticks in the terminal"),
) -> None:
    """
    Start an interactive rhythm dictation session.

    Each pattern is played as ticks; type the subdivision of every beat.
    Progress is kept in the local SQLite database.
    """
    settings = get_settings().model_copy(update={"auto_advance": False, "auto_play": False})
    catalog = _load_catalog(catalog_path)
    ts = _parse_time_signature(time_signature)

    console.print("\n[bold cyan]Rhythm Drill[/bold cyan] - adaptive dictation", style="bold")
    console.print("=" * 40)

    store = _open_store(db_path, settings)
    ledger = LocalLedger()
    session = RhythmDrillSession(
        catalog,
        srs=LocalSrsScheduler(store),
        difficulty=LocalDifficultyController(start_level=level),
        ledger=ledger,
        analytics=LoguruAnalytics(),
        store=store,
        audio=ConsoleAudio(console) if audio else None,
        settings=settings,
        rng=random.Random(seed),
        time_signature=ts,
    )
    if tempo is not None:
        session.set_tempo(tempo)

    def on_event(event: DrillEvent) -> None:
        if event.name == "mixups_detected":
            logger.info(f"Mixups on {event.payload['item_id']}")

    session.subscribe(on_event)

    try:
        asyncio.run(_run_drill(session, questions, ledger))
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")
    finally:
        store.close()


@app.command()
def pool(
    level: int = typer.Option(1, "--level", "-l", help="Difficulty level (1-6)"),
    time_signature: str = typer.Option("4/4", "--time-signature", "-t", help="Meter"),
    tempo: int = typer.Option(80, "--tempo", help="Tempo used for weighting"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", "-c", help="Catalog JSON file"),
) -> None:
    """Show the weighted item pool for a level and time signature."""
    settings = get_settings()
    catalog = _load_catalog(catalog_path)
    ts = _parse_time_signature(time_signature)

    if not MIN_LEVEL <= level <= MAX_LEVEL:
        console.print(f"[yellow]Level {level} clamped to {MIN_LEVEL}-{MAX_LEVEL}[/yellow]")

    store = _open_store(db_path, settings)
    try:
        tracker = ConfusionMasteryTracker(store, settings.module_tag)
        tracker.load()
        entries = PoolBuilder(
            catalog, WeightConfig(fast_tempo_threshold=settings.fast_tempo_threshold)
        ).build(
            level=level,
            time_signature=ts,
            mastered=tracker.mastered,
            confusion_by_item=tracker.confusion_by_item,
            tempo=tempo,
        )
    finally:
        store.close()

    if not entries:
        console.print(f"\n[red]No eligible patterns at level {level} in {ts}.[/red]")
        raise typer.Exit(1)

    total = sum(entry.weight for entry in entries)
    console.print(f"\n[bold]Pool: level {level}, {ts}, {tempo} BPM[/bold]\n")

    table = Table()
    table.add_column("Item")
    table.add_column("Pattern")
    table.add_column("Tier")
    table.add_column("Sync", justify="center")
    table.add_column("Weight", justify="right")
    table.add_column("Chance", justify="right")

    for entry in entries:
        item = entry.item
        table.add_row(
            item.id,
            item.pattern,
            style_tier(item.tier.value),
            "✓" if item.syncopated else "",
            f"{entry.weight:.2f}",
            f"{entry.weight / total * 100:.1f}%",
        )

    console.print(table)


@app.command()
def stats(
    db_path: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    limit: int = typer.Option(5, "--limit", help="Confusion pairs to show"),
) -> None:
    """Show mastered items and confusion counts."""
    settings = get_settings()
    store = _open_store(db_path, settings)
    try:
        tracker = ConfusionMasteryTracker(store, settings.module_tag)
        tracker.load()
    finally:
        store.close()

    confusion = tracker.confusion

    console.print("\n[bold cyan]Rhythm Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Mastered items", str(len(tracker.mastered)))
    table.add_row("Items with misses", str(len(confusion.by_item)))
    table.add_row("Total misses", str(sum(confusion.by_item.values())))
    console.print(table)

    if tracker.mastered:
        console.print("\n[bold]Mastered[/bold]")
        console.print(", ".join(sorted(tracker.mastered)))

    if confusion.by_item:
        console.print("\n[bold]Misses by Item[/bold]")
        item_table = Table()
        item_table.add_column("Item")
        item_table.add_column("Misses", justify="right")
        item_table.add_column("Status")
        for item_id, count in sorted(confusion.by_item.items(), key=lambda kv: -kv[1]):
            status = "needs-work" if count >= tracker.mixup_threshold else "learning"
            item_table.add_row(item_id, str(count), style_status(status))
        console.print(item_table)

    pairs = confusion.top_pairs(limit)
    if pairs:
        console.print("\n[bold]Common Mix-ups[/bold] (expected -> given)")
        pair_table = Table()
        pair_table.add_column("Expected")
        pair_table.add_column("Given")
        pair_table.add_column("Count", justify="right")
        for key, count in pairs:
            expected, given = key.split(":", 1)
            pair_table.add_row(expected, given, str(count))
        console.print(pair_table)


@app.command()
def reset(
    item: Optional[str] = typer.Option(
        None,
        "--item", "-i",
        help="Reset only this item's confusion counter",
    ),
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
    db_path: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Clear confusion data for a fresh start."""
    if item:
        msg = f"Reset confusion data for '{item}'?"
    else:
        msg = "Reset ALL confusion data? This cannot be undone!"

    if not confirm and not Confirm.ask(msg, default=False):
        raise typer.Exit(0)

    settings = get_settings()
    store = _open_store(db_path, settings)
    try:
        tracker = ConfusionMasteryTracker(store, settings.module_tag)
        tracker.load()
        tracker.reset(item)
    finally:
        store.close()

    if item:
        console.print(f"[green]Reset confusion data for '{item}'[/green]")
    else:
        console.print("[green]All confusion data has been reset.[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging("WARNING")
    app()


if __name__ == "__main__":
    main()
