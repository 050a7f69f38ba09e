"""CLI interface for Notedeck."""

import logging
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from notedeck import __version__
from notedeck.config import SCHEDULER_SETTING_KEYS, Settings, get_settings
from notedeck.database.repository import PersistenceError, Repository
from notedeck.models.card import Card, CardState, InvalidRatingError, Rating, UserRating
from notedeck.models.note import Note
from notedeck.services.review_service import ReviewService
from notedeck.services.stats import collection_stats, due_forecast

app = typer.Typer(
    name="notedeck",
    help="Notes with spaced-repetition flashcards scheduled by FSRS.",
    no_args_is_help=True,
)
console = Console()

ANSWERS = {
    "f": UserRating.FAIL,
    "fail": UserRating.FAIL,
    "p": UserRating.PASS,
    "pass": UserRating.PASS,
}
QUIT_ANSWERS = ("q", "quit")


def get_repository(settings: Settings) -> Repository:
    """Get repository instance, ensuring data directory exists."""
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    return Repository(settings.database_url)


def get_review_service(settings: Settings) -> ReviewService:
    return ReviewService(get_repository(settings), settings)


def format_due(when: Optional[datetime]) -> str:
    if when is None:
        return "-"
    return when.astimezone().strftime("%Y-%m-%d %H:%M")


def format_interval(days: int) -> str:
    """Human readable interval for the rating buttons."""
    if days < 1:
        return "<1d"
    if days < 30:
        return f"{days}d"
    if days < 365:
        return f"{days / 30:.1f}mo"
    return f"{days / 365:.1f}y"


def cards_table(title: str, cards: list[Card]) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Front")
    table.add_column("Direction", style="dim")
    table.add_column("State")
    table.add_column("Reps", justify="right")
    table.add_column("Lapses", justify="right")
    table.add_column("Due")
    table.add_column("Buried until", style="yellow")

    for card in cards:
        front = card.front[:40] + "..." if len(card.front) > 40 else card.front
        table.add_row(
            str(card.id),
            front,
            card.direction.value,
            CardState(card.state).name.title(),
            str(card.reps),
            str(card.lapses),
            format_due(card.due),
            format_due(card.buried_until),
        )
    return table


@app.command()
def init():
    """Create the database if it does not exist."""
    settings = get_settings()
    get_repository(settings)
    console.print(f"[green]✓[/green] Database ready at {settings.database_path}")


@app.command()
def add(
    front: str = typer.Argument(..., help="Question side"),
    back: str = typer.Argument(..., help="Answer side"),
    title: Optional[str] = typer.Option(
        None, "--title", "-t", help="Note title (default: the front text)"
    ),
    reverse: bool = typer.Option(
        False, "--reverse", "-r", help="Also create a back-to-front card"
    ),
    front_image: Optional[str] = typer.Option(None, "--front-image", help="Image path for the front"),
    back_image: Optional[str] = typer.Option(None, "--back-image", help="Image path for the back"),
    front_audio: Optional[str] = typer.Option(None, "--front-audio", help="Audio path for the front"),
    back_audio: Optional[str] = typer.Option(None, "--back-audio", help="Audio path for the back"),
):
    """Add a flashcard note with one or two cards."""
    repo = get_repository(get_settings())

    try:
        _, cards = repo.add_flashcard_note(
            Note(
                title=title or front,
                content=f"{front}\n---\n{back}",
                note_type="flashcard",
                is_flashcard_note=True,
            ),
            Card(
                front=front,
                back=back,
                front_image=front_image,
                back_image=back_image,
                front_audio=front_audio,
                back_audio=back_audio,
            ),
            reverse=reverse,
        )
    except (PersistenceError, ValueError) as e:
        console.print(f"[red]Error adding note: {e}[/red]")
        raise typer.Exit(1)

    for card in cards:
        console.print(
            f"  [green]✓[/green] Card {card.id} ({card.direction.value}): {card.front}"
        )


@app.command()
def cards():
    """List all cards."""
    repo = get_repository(get_settings())
    all_cards = repo.get_all_cards()
    if not all_cards:
        console.print("[yellow]No cards yet. Add one with 'notedeck add'.[/yellow]")
        return
    console.print(cards_table("Cards", all_cards))


@app.command()
def due():
    """List the cards due for review now."""
    service = get_review_service(get_settings())
    due_cards = service.due_cards()
    if not due_cards:
        console.print("[green]Nothing due. Come back later![/green]")
        return
    console.print(cards_table(f"Due cards ({len(due_cards)})", due_cards))


@app.command()
def preview(card_id: int = typer.Argument(..., help="Card ID")):
    """Show the interval each answer would schedule."""
    service = get_review_service(get_settings())
    try:
        intervals = service.preview(card_id)
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]Card {card_id}[/bold]")
    console.print(f"  [red]Fail[/red]: {format_interval(intervals[Rating.AGAIN])}")
    console.print(f"  [green]Pass[/green]: {format_interval(intervals[Rating.EASY])}")


@app.command()
def rate(
    card_id: int = typer.Argument(..., help="Card ID"),
    rating: str = typer.Argument(..., help="fail, pass, again, hard, good or easy"),
):
    """Record a review of one card without the interactive session."""
    service = get_review_service(get_settings())
    try:
        outcome = service.review(card_id, rating)
    except (InvalidRatingError, PersistenceError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Card {card_id} rated {outcome.rating.name.title()}, "
        f"next review {format_due(outcome.card.due)}"
    )
    if outcome.buried_sibling:
        console.print(
            f"  [dim]Buried card {outcome.buried_sibling.id} until "
            f"{format_due(outcome.buried_sibling.buried_until)}[/dim]"
        )
    if outcome.burial_error:
        console.print(f"  [yellow]Could not bury sibling: {outcome.burial_error}[/yellow]")


def prompt_answer() -> Optional[UserRating]:
    """Ask until the answer is fail, pass or quit; None means quit."""
    while True:
        choice = typer.prompt("Choice").lower().strip()
        if choice in QUIT_ANSWERS:
            return None
        if choice in ANSWERS:
            return ANSWERS[choice]
        console.print("[yellow]Answer f (fail), p (pass) or q (quit).[/yellow]")


@app.command()
def review(
    limit: int = typer.Option(0, "--limit", "-l", help="Stop after this many cards (0 for no limit)"),
):
    """
    Review due cards interactively.

    Each card shows its front; press Enter to reveal the back, then answer
    f (fail) or p (pass). q quits the session.
    """
    service = get_review_service(get_settings())
    reviewed = 0

    while limit == 0 or reviewed < limit:
        card = service.next_card()
        if card is None:
            break

        remaining = service.due_count()
        intervals = service.preview(card.id)

        console.print(f"\n[bold cyan]─── Card {card.id} ({remaining} due) ───[/bold cyan]")
        console.print(f"  [bold]Q:[/bold] {card.front}")
        if card.front_image:
            console.print(f"  [dim]Image: {card.front_image}[/dim]")
        if card.front_audio:
            console.print(f"  [dim]Audio: {card.front_audio}[/dim]")

        typer.prompt("Press Enter to show the answer", default="", show_default=False)
        console.print(f"  [bold]A:[/bold] {card.back}")
        if card.back_image:
            console.print(f"  [dim]Image: {card.back_image}[/dim]")
        if card.back_audio:
            console.print(f"  [dim]Audio: {card.back_audio}[/dim]")

        console.print(
            f"\n  [red]f[/red] - Fail ({format_interval(intervals[Rating.AGAIN])})"
            f"   [green]p[/green] - Pass ({format_interval(intervals[Rating.EASY])})"
            "   [dim]q - Quit[/dim]"
        )
        user_rating = prompt_answer()
        if user_rating is None:
            break

        try:
            outcome = service.review(card.id, user_rating)
        except PersistenceError as e:
            console.print(f"[red]Could not save review: {e}[/red]")
            raise typer.Exit(1)

        reviewed += 1
        console.print(f"  [green]✓[/green] Next review {format_due(outcome.card.due)}")
        if outcome.burial_error:
            console.print(f"  [yellow]Could not bury sibling: {outcome.burial_error}[/yellow]")

    console.print(f"\n[bold blue]Reviewed {reviewed} card(s).[/bold blue]")
    if service.due_count() == 0:
        console.print("[green]All caught up![/green]")


@app.command()
def delete(card_id: int = typer.Argument(..., help="Card ID")):
    """Delete a card together with its reverse card."""
    repo = get_repository(get_settings())
    try:
        deleted = repo.delete_card(card_id)
    except PersistenceError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not deleted:
        console.print(f"[yellow]Card {card_id} not found.[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Deleted card {card_id}")


@app.command("settings")
def settings_command(
    key: Optional[str] = typer.Argument(None, help="Setting name"),
    value: Optional[str] = typer.Argument(None, help="New value"),
):
    """Show or change the scheduler settings."""
    settings = get_settings()
    repo = get_repository(settings)

    if key is not None and key not in SCHEDULER_SETTING_KEYS:
        console.print(f"[red]Unknown setting '{key}'.[/red]")
        console.print(f"Known settings: {', '.join(SCHEDULER_SETTING_KEYS)}")
        raise typer.Exit(1)

    if key is not None and value is not None:
        repo.set_setting(key, value)
        console.print(f"[green]✓[/green] {key} = {value}")
        return

    config = ReviewService(repo, settings).load_config()
    effective = {
        "request_retention": config.scheduler.request_retention,
        "maximum_interval": config.scheduler.maximum_interval,
        "bury_sibling_cards": str(config.bury_sibling_cards).lower(),
        "review_new_cards_first": str(config.review_new_cards_first).lower(),
    }
    stored = repo.get_all_settings()

    table = Table(title="Scheduler Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Effective value")
    table.add_column("Stored", style="dim")
    for name in SCHEDULER_SETTING_KEYS:
        if key is None or name == key:
            table.add_row(name, str(effective[name]), stored.get(name, "(default)"))
    console.print(table)


@app.command()
def stats(
    days: int = typer.Option(7, "--days", "-d", help="Forecast window in days"),
):
    """Show collection statistics and upcoming reviews."""
    settings = get_settings()
    repo = get_repository(settings)
    service = ReviewService(repo, settings)
    all_cards = repo.get_all_cards()
    now = service.clock()
    summary = collection_stats(all_cards, now)

    table = Table(title="Notedeck Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Notes", str(repo.count_notes()))
    table.add_row("Cards", str(summary.total_cards))
    table.add_row("  Reversed", str(summary.reversed_cards))
    table.add_row("  New", str(summary.new_cards))
    table.add_row("  Due now", str(summary.due_cards))
    table.add_row("Total reviews", str(summary.total_reviews))
    table.add_row("Total lapses", str(summary.total_lapses))
    table.add_row("Avg difficulty", f"{summary.average_difficulty:.2f}")
    table.add_row("Avg stability (days)", f"{summary.average_stability:.1f}")
    console.print(table)

    forecast = due_forecast(all_cards, now, days)
    if forecast:
        console.print(f"\n[bold]Due in the next {days} day(s):[/bold]")
        for day, count in forecast.items():
            console.print(f"  {day}: [cyan]{count}[/cyan]")


@app.command()
def version():
    """Show version information."""
    console.print(f"Notedeck v{__version__}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Notedeck - notes with spaced-repetition flashcards.

    Cards are scheduled with the FSRS memory model; a review is a
    simple fail/pass decision.
    """
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


if __name__ == "__main__":
    app()
