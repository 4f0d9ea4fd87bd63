"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.table import Table

from ..adapters.memory_gateway import InMemorySchedulingGateway
from ..adapters.rest_gateway import RestSchedulingGateway
from ..config import AppConfig, get_default_config_path
from ..domain.availability import AvailabilityEngine
from ..domain.converter import LocalTimeConverter, format_instant, format_local, parse_instant
from ..domain.exceptions import SchedulingError
from ..domain.models import BookingRequest
from ..domain.zone_resolver import COMMON_TIMEZONES, ZoneResolver
from ..services.booking import BookingService, SchedulingGatewayProtocol

app = typer.Typer(
    name="storeslots",
    help="Timezone-correct appointment availability for stores",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_engine(config: AppConfig) -> AvailabilityEngine:
    availability = config.availability
    return AvailabilityEngine(
        LocalTimeConverter(ZoneResolver()),
        grid_interval_minutes=availability.grid_interval_minutes,
        allow_past_slots_for_today=availability.allow_past_slots_for_today,
        default_timezone=availability.default_timezone,
    )


def _build_gateway(config: AppConfig) -> SchedulingGatewayProtocol:
    """REST backend when configured, otherwise the local appointment file."""
    if config.backend_url:
        return RestSchedulingGateway(base_url=config.backend_url)
    return InMemorySchedulingGateway(data_file=config.appointments_file)


def _build_service(config: AppConfig, gateway: SchedulingGatewayProtocol) -> BookingService:
    return BookingService(
        gateway=gateway,
        engine=_build_engine(config),
        stores=config.store_profiles(),
        staff=config.staff_members(),
    )


@app.command()
def slots(
    store_id: Annotated[int, typer.Argument(help="Store id")],
    date: Annotated[str, typer.Argument(help="Store-local date (YYYY-MM-DD)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")] = 30,
    staff_id: Annotated[Optional[int], typer.Option("--staff", "-s", help="Only this staff member")] = None,
    one_per_time: Annotated[bool, typer.Option("--one-per-time", help="Offer each start time once, spread across staff.")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    List bookable slots for a store on a local date.

    Examples:

        storeslots slots 1 2024-06-01 --duration 45

        storeslots slots 1 2024-06-01 --staff 2
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        service = _build_service(config, _build_gateway(config))
        store = service.get_store(store_id)

        found = service.find_slots(
            store_id=store_id,
            date=date,
            duration_minutes=duration,
            staff_id=staff_id,
            one_per_time=one_per_time,
        )
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except (SchedulingError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    zone_id = store.timezone or config.availability.default_timezone

    if not found:
        console.print(
            f"[yellow]No available slots at store {store_id} on {date}.[/yellow]\n"
            "Try another day, another staff member or a shorter duration."
        )
        return

    table = Table(
        title=f"Available slots - {store.name or f'store {store_id}'} ({zone_id})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Local time", style="bold yellow")
    table.add_column("Staff")
    table.add_column("UTC", style="dim")

    for slot in found:
        table.add_row(
            slot.local_start.strftime("%H:%M"),
            f"{slot.staff_name} (#{slot.staff_id})",
            format_instant(slot.start),
        )

    console.print()
    console.print(table)
    console.print(f"\n[green]✓ {len(found)} slot(s) of {duration} min[/green]\n")


@app.command()
def book(
    store_id: Annotated[int, typer.Argument(help="Store id")],
    staff_id: Annotated[int, typer.Argument(help="Staff id")],
    local_start: Annotated[str, typer.Argument(help="Store-local start, e.g. 2024-06-01T14:30")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")] = 30,
    service_id: Annotated[Optional[int], typer.Option("--service", help="Service id")] = None,
    customer_id: Annotated[Optional[int], typer.Option("--customer", help="Customer id")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Book a slot. The local start is converted to UTC before it is sent.
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        gateway = _build_gateway(config)
        service = _build_service(config, gateway)

        appointment = service.book(
            BookingRequest(
                store_id=store_id,
                staff_id=staff_id,
                local_start=local_start,
                duration_minutes=duration,
                service_id=service_id,
                customer_id=customer_id,
            )
        )

        if isinstance(gateway, InMemorySchedulingGateway) and gateway.data_file:
            gateway.save()
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except (SchedulingError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(
        f"\n[green]✓ Booked appointment #{appointment.appointment_id}[/green] "
        f"for staff {staff_id} at {local_start} local ({format_instant(appointment.start)})\n"
    )


@app.command()
def convert(
    value: Annotated[str, typer.Argument(help="Local date-time, or a UTC timestamp with --to-local")],
    tz: Annotated[str, typer.Option("--tz", "-z", help="IANA timezone identifier")],
    to_local: Annotated[bool, typer.Option("--to-local", help="Convert a UTC timestamp to local time")] = False,
):
    """
    Convert between store-local time and UTC.

    Examples:

        storeslots convert 2024-03-10T02:30 --tz America/New_York

        storeslots convert 2024-07-15T12:00:00Z --tz America/New_York --to-local
    """
    resolver = ZoneResolver()
    converter = LocalTimeConverter(resolver)

    try:
        if to_local:
            instant = parse_instant(value)
            local = converter.to_local(instant, tz)
        else:
            instant = converter.to_instant(value, tz)
            local = converter.to_local(instant, tz)
        description = resolver.describe(tz, instant)
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold]Local:[/bold] {format_local(local)} {description.abbreviation} ({description.offset_label})")
    console.print(f"[bold]UTC:[/bold]   {format_instant(instant)}")


@app.command()
def zones(
    at: Annotated[Optional[str], typer.Option("--at", help="UTC timestamp to evaluate offsets at. Defaults to now.")] = None,
):
    """
    List common store timezones with their current offset.
    """
    resolver = ZoneResolver()

    try:
        instant = parse_instant(at) if at else pendulum.now("UTC")
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(
        title=f"Timezones at {format_instant(instant)}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Timezone", style="bold yellow")
    table.add_column("Offset")
    table.add_column("Abbr.", style="dim")

    for zone_id in COMMON_TIMEZONES:
        description = resolver.describe(zone_id, instant)
        table.add_row(zone_id, description.offset_label, description.abbreviation)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]storeslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
