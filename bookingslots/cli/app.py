"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.reservation_ledger import InMemoryReservationLedger
from ..adapters.schedule_store import ConfigScheduleStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingEngineError
from ..domain.models import BookingRequest, DayAvailability
from ..domain.time_normalizer import TimeNormalizer
from ..services.booking_service import BookingService

app = typer.Typer(
    name="bookingslots",
    help="Show bookable appointment slots and place booking holds",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _load(config_file: Optional[Path], verbose: bool):
    """Load configuration and wire the service with its storage adapters."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging("DEBUG" if verbose else config.log_level)

    normalizer = TimeNormalizer(config.timezone)
    if config.reservations_file and config.reservations_file.exists():
        ledger = InMemoryReservationLedger.load_from_json(config.reservations_file, normalizer)
    else:
        ledger = InMemoryReservationLedger(normalizer)

    service = BookingService.from_config(config, ConfigScheduleStore.from_config(config), ledger)
    return config, ledger, service


def _render_day(day: DayAvailability, show_booked: bool) -> str:
    header = f"[bold]{day.day_label} {day.day_number} {day.month_name}[/bold]"

    if day.is_day_off:
        return f"{header}  [dim]day off[/dim]"
    if not day.slots:
        return f"{header}  [dim]no slots[/dim]"
    if day.is_fully_booked and not show_booked:
        return f"{header}  [red]fully booked[/red]"

    labels = []
    for slot in day.slots:
        if slot.is_booked:
            if show_booked:
                labels.append(f"[red strike]{slot.label}[/red strike]")
        else:
            labels.append(f"[green]{slot.label}[/green]")

    return f"{header}  " + "  ".join(labels)


@app.command()
def availability(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    config_file: ConfigOption = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Number of days to show")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD)")] = None,
    show_booked: Annotated[bool, typer.Option("--show-booked", help="Also list booked slots.")] = False,
    verbose: VerboseOption = False,
):
    """
    Show bookable slots for a provider.

    Examples:

        bookingslots availability artist-1
        bookingslots availability artist-1 --days 7 --start 2026-11-02 --show-booked
    """
    try:
        config, _, service = _load(config_file, verbose)
        result = asyncio.run(service.get_availability(provider, days=days, start=start))
    except (FileNotFoundError, BookingEngineError, ValueError) as e:
        _fail(e)

    provider_config = config.find_provider(provider)
    name = provider_config.display_name() if provider_config else provider

    console.print(f"\n[bold cyan]🗓️  Availability for {name}[/bold cyan] ({config.timezone})\n")
    for day in result:
        console.print(_render_day(day, show_booked))

    free_total = sum(len(day.free_slots) for day in result)
    console.print(f"\n[bold green]✓ {free_total} free slot(s)[/bold green]\n")


@app.command()
def book(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    start: Annotated[str, typer.Argument(help="Requested start, ISO-8601 (e.g. 2026-11-02T14:00)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")] = 60,
    price: Annotated[float, typer.Option("--price", help="Service price")] = 0.0,
    notes: Annotated[str, typer.Option("--notes", help="Notes for the provider")] = "",
    location: Annotated[Optional[str], typer.Option("--location", help="Service location")] = None,
    save: Annotated[bool, typer.Option("--save", help="Write the hold back to the reservations file.")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Validate a booking request and place a PENDING hold.
    """
    try:
        config, ledger, service = _load(config_file, verbose)
        request = BookingRequest(
            provider_id=provider,
            service_duration_minutes=duration,
            requested_start=start,
            price_amount=price,
            notes=notes,
            location=location,
        )
        outcome = asyncio.run(service.validate_and_reserve(provider, request))
    except (FileNotFoundError, BookingEngineError, ValueError) as e:
        _fail(e)

    if outcome.reason is not None:
        console.print(f"[yellow]⚠ Rejected ({outcome.reason.value}):[/yellow] {outcome.reason.message}")
        raise typer.Exit(1)

    reservation = outcome.reservation
    local_start = service.normalizer.to_local(reservation.start_utc)
    console.print(
        f"[green]✓ Hold placed:[/green] {reservation.id}\n"
        f"   {local_start.format('ddd DD.MM.YYYY HH:mm')} ({reservation.duration_minutes} min)\n"
        f"   Expires: {service.normalizer.to_local(reservation.expires_at).format('HH:mm')}"
    )

    if save:
        if not config.reservations_file:
            console.print("[yellow]No reservations_file configured; hold not saved.[/yellow]")
        else:
            ledger.save_to_json(config.reservations_file)
            console.print(f"[green]✓ Saved to {config.reservations_file}[/green]")


@app.command()
def providers(config_file: ConfigOption = None):
    """
    List all configured providers.
    """
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)

    if not config.providers:
        console.print("[yellow]No providers defined in the config file.[/yellow]")
        return

    table = Table(
        title="Configured providers",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    table.add_column("Days")
    table.add_column("Hours")
    table.add_column("Session / Break", style="dim")
    table.add_column("Accepting")

    weekday_names = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    for provider in config.providers:
        schedule = provider.schedule
        table.add_row(
            provider.id,
            provider.name,
            " ".join(weekday_names[day] for day in sorted(schedule.working_days)) or "-",
            f"{schedule.start_time} - {schedule.end_time}",
            f"{schedule.session_duration} / {schedule.break_between_sessions} min",
            "yes" if schedule.is_available else "no",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
