"""
Main CLI application using Typer.
"""

import asyncio
import logging
from datetime import date, time
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters import JsonStore, create_store
from ..adapters.store import StoreProtocol
from ..config import AppConfig
from ..domain.models import SuggestionResponse, format_clock
from ..domain.timezones import common_timezones
from ..services import MutualAvailabilityService, SuggestionRequest, SuggestionService

app = typer.Typer(
    name="hangoutplanner",
    help="Find times that work for two friends, across timezones",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the bundled sample data instead of the configured store.")]
DataOption = Annotated[Optional[Path], typer.Option("--data", help="JSON store file to read instead of the configured store.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path], mock: bool, data: Optional[Path]) -> tuple[AppConfig, StoreProtocol]:
    """Load configuration and build the store the command should read from."""
    config = AppConfig.load_or_default(config_file)

    if data is not None:
        store = JsonStore.from_file(data)
    elif mock:
        console.print("[yellow]⚠  MOCK MODE: using sample data[/yellow]\n")
        store = JsonStore.from_file()
    else:
        store = create_store(config.store)

    return config, store


def _parse_date(value: str, option: str) -> date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD").date()
    except ValueError as e:
        console.print(f"[red]Could not parse {option}: {e}[/red]")
        raise typer.Exit(1)


def _determine_date_range(tz: str, start_option: Optional[str], end_option: Optional[str]) -> tuple[date, date]:
    """
    Resolve the search window from explicit dates.
    Defaults to today plus seven days in the configured timezone.
    """
    start_date = _parse_date(start_option, "--start") if start_option else pendulum.now(tz).date()
    end_date = _parse_date(end_option, "--end") if end_option else start_date.add(days=7)

    if end_date < start_date:
        console.print("[red]Error: --end must not be before --start.[/red]")
        raise typer.Exit(1)

    return start_date, end_date


def _print_suggestions(response: SuggestionResponse) -> None:
    if not response.suggestions:
        console.print(
            "[yellow]⚠ No suggestions found.[/yellow]\n"
            "Try a longer date range or a shorter duration."
        )
        return

    table = Table(
        title=f"Suggestions ({response.total_analyzed} candidates analyzed)",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("When", style="bold")
    table.add_column("Confidence", justify="right")
    table.add_column("Type", style="dim")
    table.add_column("Why")

    for suggestion in response.suggestions:
        table.add_row(
            suggestion.format_display(),
            f"{suggestion.confidence:.0%}",
            suggestion.suggestion_type,
            "\n".join(suggestion.reasoning),
        )

    console.print(table)
    console.print(f"\nPattern confidence: [bold]{response.pattern_confidence:.0%}[/bold]")
    if response.mutual_history is None:
        console.print("[dim]No shared hangout history yet.[/dim]")


@app.command()
def suggest(
    user: Annotated[str, typer.Argument(help="Requesting user id")],
    friend: Annotated[str, typer.Argument(help="Friend's user id")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    max_suggestions: Annotated[Optional[int], typer.Option("--max", "-n", help="Maximum number of suggestions")] = None,
    buffer: Annotated[Optional[int], typer.Option("--buffer", help="Buffer before and after in minutes")] = None,
    no_weekends: Annotated[bool, typer.Option("--no-weekends", help="Skip Saturdays and Sundays.")] = False,
    time_of_day: Annotated[str, typer.Option("--time-of-day", help="morning, afternoon, evening or any")] = "any",
    mock: MockOption = False,
    data: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Suggest the best times for two users to meet.

    Examples:

        hangoutplanner suggest alice carol --mock
        hangoutplanner suggest alice bob --start 2026-10-26 --end 2026-10-30 --duration 60
        hangoutplanner suggest alice bob --time-of-day evening --no-weekends
    """
    _setup_logging(verbose)

    try:
        config, store = _load(config_file, mock, data)
        start_date, end_date = _determine_date_range(config.timezone, start, end)

        request = SuggestionRequest(
            user_id=user,
            friend_id=friend,
            start_date=start_date,
            end_date=end_date,
            preferred_duration=duration,
            max_suggestions=max_suggestions,
            include_weekends=not no_weekends,
            time_of_day_preference=time_of_day,
            buffer_minutes=buffer,
        )

        console.print(f"\n[bold cyan]Suggestions for {user} and {friend}[/bold cyan]")
        console.print(f"   Period: {start_date.isoformat()} - {end_date.isoformat()}\n")

        service = SuggestionService.from_config(store, config)
        response = asyncio.run(service.generate_smart_suggestions(request))

        _print_suggestions(response)
        console.print()

    except typer.Exit:
        raise

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def mutual(
    user: Annotated[str, typer.Argument(help="Requesting user id")],
    friend: Annotated[str, typer.Argument(help="Friend's user id")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    buffer: Annotated[Optional[int], typer.Option("--buffer", help="Buffer before and after in minutes")] = None,
    mock: MockOption = False,
    data: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    List the windows in which both users are free.
    """
    _setup_logging(verbose)

    try:
        config, store = _load(config_file, mock, data)
        start_date, end_date = _determine_date_range(config.timezone, start, end)

        service = MutualAvailabilityService.from_config(store, config)
        comparison = asyncio.run(
            service.find_mutual_availability(
                user,
                friend,
                start_date,
                end_date,
                duration or config.defaults.duration_minutes,
                buffer,
            )
        )

        console.print()
        if not comparison.mutual_slots:
            console.print("[yellow]⚠ No mutual availability in this period.[/yellow]")
        else:
            table = Table(
                title=f"Mutual availability of {user} and {friend}",
                show_header=True,
                header_style="bold cyan"
            )
            table.add_column("Window", style="bold")
            table.add_column("Confidence", justify="right")
            table.add_column("Notes", style="dim")

            for slot in comparison.mutual_slots:
                table.add_row(
                    slot.format_display(),
                    f"{slot.confidence:.0%}",
                    ", ".join(slot.reasoning),
                )
            console.print(table)

        if comparison.conflict_count:
            console.print(
                f"[dim]{comparison.conflict_count} window(s) skipped because of conflicts.[/dim]"
            )
        console.print()

    except typer.Exit:
        raise

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def conflicts(
    user: Annotated[str, typer.Argument(help="Requesting user id")],
    friend: Annotated[str, typer.Argument(help="Friend's user id")],
    on: Annotated[str, typer.Option("--date", help="Date of the proposed meeting (YYYY-MM-DD)")],
    at: Annotated[str, typer.Option("--time", help="Start time in the user's timezone (HH:MM)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    data: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Check a proposed meeting against both users' calendars and exceptions.
    """
    _setup_logging(verbose)

    try:
        config, store = _load(config_file, mock, data)
        day = _parse_date(on, "--date")
        try:
            start_time = time.fromisoformat(at)
        except ValueError as e:
            console.print(f"[red]Could not parse --time: {e}[/red]")
            raise typer.Exit(1)

        service = MutualAvailabilityService.from_config(store, config)
        report = asyncio.run(
            service.check_conflicts(
                user,
                friend,
                day,
                start_time,
                duration or config.defaults.duration_minutes,
            )
        )

        if not report.has_conflicts:
            console.print(Panel.fit(
                f"[bold green]✓ No conflicts[/bold green]\n\n{report.proposed}",
                title="Conflict check"
            ))
            return

        table = Table(
            title=f"Conflicts ({report.severity} severity)",
            show_header=True,
            header_style="bold red"
        )
        table.add_column("User", style="bold yellow")
        table.add_column("Kind")
        table.add_column("When")
        table.add_column("Details", style="dim")

        for conflict in report.conflicts:
            table.add_row(
                conflict.user_id,
                conflict.kind,
                str(conflict.time_range),
                conflict.description,
            )

        console.print()
        console.print(table)
        console.print()

        if report.alternative_times:
            console.print("[bold]Alternative times:[/bold]")
            for alternative in report.alternative_times:
                console.print(
                    f"  {alternative.date.isoformat()}  "
                    f"{format_clock(alternative.start_time)} - {format_clock(alternative.end_time)}"
                )
            console.print()

    except typer.Exit:
        raise

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def timezones():
    """
    List commonly used timezones with their current offset.
    """
    table = Table(
        title="Common timezones",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Timezone", style="bold yellow")
    table.add_column("Offset", justify="right")
    table.add_column("Abbr.", style="dim")
    table.add_column("Name")

    for info in common_timezones():
        table.add_row(info.timezone, info.offset, info.abbreviation, info.display_name)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]hangoutplanner[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
