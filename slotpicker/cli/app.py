"""
Main CLI application using Typer.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..adapters.notifiers import LoggingNotifier, SmtpNotifier
from ..adapters.proposal_store import JsonProposalStore
from ..config import AppConfig, get_default_config_path
from ..domain.business_calendar import BusinessCalendar
from ..domain.exceptions import EmptySelectionError, SlotPickerError
from ..domain.models import WEEKDAY_NAMES, WEEKDAY_SHORT_NAMES, SelectedCell, TimeRange
from ..domain.slot_calculator import SlotCalculator
from ..domain.view_state import CellState, SchedulerViewState
from ..services.availability import AvailabilityService, validate_slot_minutes
from ..services.proposals import ProposalService
from ..services.scheduler_controller import SchedulerController

app = typer.Typer(
    name="slotpicker",
    help="Freie Termine aus dem Kalender vorschlagen und auswählen lassen",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
StartOption = Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")]
EndOption = Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")]
MockOption = Annotated[bool, typer.Option("--mock", help="Mock-Daten nutzen und Authentifizierung überspringen.")]
ThisWeekOption = Annotated[bool, typer.Option("--this-week", help="Suche von heute bis Ende der aktuellen Woche.")]
NextWeekOption = Annotated[bool, typer.Option("--next-week", help="Suche in der kommenden Woche (Montag–Sonntag).")]

SELECTION_PATTERN = re.compile(
    r"^(?P<day>\d{4}-\d{2}-\d{2})\s+(?P<start>\d{1,2}:\d{2})(?:\s*-\s*(?P<end>\d{1,2}:\d{2}))?$"
)

CELL_SYMBOLS = {
    CellState.UNAVAILABLE: "[dim]·[/dim]",
    CellState.AVAILABLE: "[green]□[/green]",
    CellState.SELECTED: "[bold green]■[/bold green]",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug-Ausgaben anzeigen.")] = False,
):
    """
    Freie Zeitfenster berechnen und Terminvorschläge einsammeln.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    try:
        return AppConfig.load_from_yaml(config_path)
    except SlotPickerError as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_date_option(value: str, tz: str, label: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Fehler beim Parsen des {label}: {e}[/red]")
        raise typer.Exit(1)


def _determine_time_range(
    *,
    calendar: BusinessCalendar,
    this_week: bool,
    next_week: bool,
    start_option: Optional[str],
    end_option: Optional[str]
) -> TimeRange:
    """
    Resolve the desired query window based on shortcut flags or explicit dates.
    """
    if this_week and next_week:
        console.print("[red]Fehler: --this-week und --next-week können nicht gleichzeitig verwendet werden.[/red]")
        raise typer.Exit(1)

    tz = calendar.timezone
    today = pendulum.today(tz).date()

    if this_week:
        start_date, end_date = today, today.end_of("week")
    elif next_week:
        start_date = today.next(pendulum.MONDAY)
        end_date = start_date.add(days=6)
    else:
        start_date = _parse_date_option(start_option, tz, "Startdatums") if start_option else today
        end_date = (
            _parse_date_option(end_option, tz, "Enddatums") if end_option
            else start_date.add(days=14)
        )

    try:
        return calendar.query_window(start_date, end_date)
    except SlotPickerError as e:
        console.print(f"[red]Fehler: {e}[/red]")
        raise typer.Exit(1)


def _build_calendar_client(config: AppConfig, mock: bool):
    if mock:
        console.print("[yellow]⚠  MOCK-MODUS: Verwende Test-Daten[/yellow]\n")
        return MockCalendarClient()

    authenticator = GraphAuthenticator(
        client_id=config.calendar.client_id,
        tenant_id=config.calendar.tenant_id,
        authority_url=config.calendar.get_authority_url()
    )
    return GraphClient(access_token=authenticator.get_access_token())


def _build_availability_service(config: AppConfig, mock: bool) -> AvailabilityService:
    calendar = BusinessCalendar(config.get_business_hours())
    return AvailabilityService(
        calendar_client=_build_calendar_client(config, mock),
        slot_calculator=SlotCalculator(calendar=calendar),
        calendar_id=config.calendar.calendar_id,
    )


def _print_summary(
    config: AppConfig,
    calendar: BusinessCalendar,
    query: TimeRange,
    slot_minutes: Optional[int] = None
) -> None:
    days = calendar.local_days(query.start, query.end)
    console.print("[bold cyan]📊 Zusammenfassung:[/bold cyan]")
    console.print(f"   Kalender: {config.calendar.calendar_id}")
    console.print(f"   Zeitraum: {days[0].format('DD.MM.YYYY')} - {days[-1].format('DD.MM.YYYY')}")
    console.print(f"   Arbeitszeiten: {config.business_hours.start_hour}:00 - {config.business_hours.end_hour}:00 ({config.timezone})")
    if slot_minutes is not None:
        console.print(f"   Slot-Länge: {slot_minutes} Minuten")
    console.print()


def _print_ranges_by_day(ranges: List[TimeRange], calendar: BusinessCalendar, numbered: bool = False) -> None:
    current_day = None
    for idx, time_range in enumerate(ranges, 1):
        local = time_range.in_timezone(calendar.timezone)
        day_key = calendar.day_key(local.start)
        if day_key != current_day:
            current_day = day_key
            console.print(f"\n[bold]{WEEKDAY_NAMES[local.start.day_of_week]}, {local.start.format('DD.MM.YYYY')}[/bold]")

        prefix = f"{idx:>3}. " if numbered else "  "
        console.print(
            f"{prefix}{local.start.format('HH:mm')} – {local.end.format('HH:mm')} Uhr "
            f"({time_range.duration_minutes()} Min.)"
        )


def _resolve_slot_minutes(config: AppConfig, slot: Optional[int]) -> int:
    slot_minutes = slot if slot is not None else config.business_hours.slot_minutes
    try:
        return validate_slot_minutes(slot_minutes)
    except SlotPickerError as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def free(
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    mock: MockOption = False,
    this_week: ThisWeekOption = False,
    next_week: NextWeekOption = False,
):
    """
    Show free intervals within business hours, grouped by day.

    Examples:

        slotpicker free --next-week

        slotpicker free --start 2026-10-19 --end 2026-10-23 --mock
    """
    config = _load_config(config_file)
    calendar = BusinessCalendar(config.get_business_hours())
    query = _determine_time_range(
        calendar=calendar, this_week=this_week, next_week=next_week,
        start_option=start, end_option=end
    )
    _print_summary(config, calendar, query)

    try:
        service = _build_availability_service(config, mock)
        intervals = asyncio.run(service.find_free_intervals(start_date=query.start, end_date=query.end))
    except SlotPickerError as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if not intervals:
        console.print(
            "[yellow]⚠ Keine freien Zeitfenster gefunden.[/yellow]\n"
            "Versuchen Sie einen längeren Zeitraum."
        )
        return

    console.print(f"[bold green]✓ {len(intervals)} freie(s) Zeitfenster gefunden:[/bold green]")
    _print_ranges_by_day(intervals, calendar)
    console.print()


@app.command()
def slots(
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    slot: Annotated[Optional[int], typer.Option("--slot", "-s", help="Slot length in minutes (15-180)")] = None,
    mock: MockOption = False,
    this_week: ThisWeekOption = False,
    next_week: NextWeekOption = False,
):
    """
    Show bookable slots of a fixed length.
    """
    config = _load_config(config_file)
    calendar = BusinessCalendar(config.get_business_hours())
    slot_minutes = _resolve_slot_minutes(config, slot)
    query = _determine_time_range(
        calendar=calendar, this_week=this_week, next_week=next_week,
        start_option=start, end_option=end
    )
    _print_summary(config, calendar, query, slot_minutes)

    try:
        service = _build_availability_service(config, mock)
        found = asyncio.run(
            service.find_slots(start_date=query.start, end_date=query.end, slot_minutes=slot_minutes)
        )
    except SlotPickerError as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if not found:
        console.print(
            "[yellow]⚠ Keine verfügbaren Slots gefunden.[/yellow]\n"
            "Versuchen Sie einen längeren Zeitraum oder eine kürzere Slot-Länge."
        )
        return

    console.print(f"[bold green]✓ {len(found)} verfügbare(r) Slot(s):[/bold green]")
    _print_ranges_by_day(found, calendar, numbered=True)
    console.print()


@app.command()
def events(
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    mock: MockOption = False,
    this_week: ThisWeekOption = False,
    next_week: NextWeekOption = False,
):
    """
    List the busy entries reported by the calendar, grouped by local day.
    """
    config = _load_config(config_file)
    calendar = BusinessCalendar(config.get_business_hours())
    query = _determine_time_range(
        calendar=calendar, this_week=this_week, next_week=next_week,
        start_option=start, end_option=end
    )

    try:
        service = _build_availability_service(config, mock)
        busy = asyncio.run(service.fetch_busy_ranges(start_date=query.start, end_date=query.end))
    except SlotPickerError as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if not busy:
        console.print("[green]Keine belegten Zeiten im Zeitraum.[/green]")
        return

    console.print(f"[bold cyan]{len(busy)} belegte(r) Termin(e):[/bold cyan]")
    _print_ranges_by_day(sorted(busy, key=lambda r: r.start), calendar)
    console.print()


def _render_grid(state: SchedulerViewState, calendar: BusinessCalendar) -> None:
    rows = state.grid(calendar)
    columns = calendar.grid_minutes(state.slot_minutes)

    if not rows or not columns:
        console.print("[yellow]Keine Zeitfenster zum Anzeigen.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None, pad_edge=False)
    table.add_column("Tag", style="bold")
    for minute in columns:
        table.add_column(f"{minute // 60:02d}:{minute % 60:02d}" if minute % 60 == 0 else "", justify="center")

    for row in rows:
        label = f"{WEEKDAY_SHORT_NAMES[row.day.day_of_week]} {row.day.format('DD.MM.')}"
        table.add_row(label, *(CELL_SYMBOLS[cell_state] for _, cell_state in row.cells))

    console.print(table)


def _cells_for_input(text: str, state: SchedulerViewState, calendar: BusinessCalendar) -> List[SelectedCell]:
    """
    Map 'YYYY-MM-DD HH:MM[-HH:MM]' to the grid cells it covers.

    Raises:
        ValueError: If the text does not match the expected format
    """
    match = SELECTION_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Ungültige Auswahl: '{text}'. Format: YYYY-MM-DD HH:MM[-HH:MM]")

    def to_minute(value: str) -> int:
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)

    first = to_minute(match.group("start"))
    last = to_minute(match.group("end")) if match.group("end") else first + state.slot_minutes

    return [
        SelectedCell(day_key=match.group("day"), start_minute=minute)
        for minute in calendar.grid_minutes(state.slot_minutes)
        if first <= minute and minute + state.slot_minutes <= last
    ]


def _drag_select(controller: SchedulerController, cells: List[SelectedCell]) -> None:
    """Replay a drag gesture across consecutive cells."""
    if not cells:
        return
    controller.pointer_down(cells[0])
    for cell in cells[1:]:
        controller.pointer_enter(cell)
    controller.pointer_up()


async def _run_selection(
    controller: SchedulerController,
    calendar: BusinessCalendar,
    preset: List[str],
) -> None:
    await controller.reload()

    for text in preset:
        _drag_select(controller, _cells_for_input(text, controller.state, calendar))

    if preset:
        return

    console.print(
        "Auswahl: [bold]YYYY-MM-DD HH:MM[-HH:MM][/bold] markiert bzw. entfernt Zellen, "
        "[bold]slot N[/bold] ändert die Slot-Länge, [bold]leeren[/bold], [bold]fertig[/bold]."
    )

    while True:
        _render_grid(controller.state, calendar)
        command = typer.prompt("→ Auswahl", default="fertig").strip()

        if command == "fertig":
            if controller.proposed_intervals():
                return
            console.print("[yellow]Bitte mindestens einen Zeitraum auswählen.[/yellow]")
        elif command == "leeren":
            controller.clear_selection()
        elif command.startswith("slot "):
            try:
                controller.set_slot_minutes(validate_slot_minutes(int(command.split()[1])))
            except (ValueError, IndexError) as e:
                console.print(f"[red]{e}[/red]")
                continue
            await controller.drain()
        else:
            try:
                _drag_select(controller, _cells_for_input(command, controller.state, calendar))
            except ValueError as e:
                console.print(f"[red]{e}[/red]")


@app.command()
def propose(
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    slot: Annotated[Optional[int], typer.Option("--slot", "-s", help="Grid cell length in minutes (15-180)")] = None,
    select: Annotated[Optional[List[str]], typer.Option("--select", help="Zellen wählen: 'YYYY-MM-DD HH:MM[-HH:MM]'. Ohne Angabe startet die interaktive Auswahl.")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Name des Gastes")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="E-Mail des Gastes")] = None,
    note: Annotated[str, typer.Option("--note", help="Optionale Notiz")] = "",
    no_mail: Annotated[bool, typer.Option("--no-mail", help="Keine E-Mails senden, nur protokollieren.")] = False,
    mock: MockOption = False,
    this_week: ThisWeekOption = False,
    next_week: NextWeekOption = False,
):
    """
    Select free grid cells and submit them as a meeting proposal.

    Examples:

        # Interactive grid
        slotpicker propose --next-week

        # Batch mode
        slotpicker propose --mock --start 2026-10-19 --end 2026-10-23 \\
            --select "2026-10-19 10:00-11:30" --name "Max" --email max@example.com
    """
    config = _load_config(config_file)
    calendar = BusinessCalendar(config.get_business_hours())
    slot_minutes = _resolve_slot_minutes(config, slot)
    query = _determine_time_range(
        calendar=calendar, this_week=this_week, next_week=next_week,
        start_option=start, end_option=end
    )
    _print_summary(config, calendar, query, slot_minutes)

    notifier = (
        LoggingNotifier(timezone=config.timezone) if no_mail
        else SmtpNotifier(smtp=config.smtp, notify_to=config.notify_to, timezone=config.timezone)
    )
    proposal_service = ProposalService(
        notifier=notifier,
        store=JsonProposalStore(config.proposals_path),
        max_proposals=config.max_proposals,
    )

    try:
        availability = _build_availability_service(config, mock)

        async def fetch(start_date, end_date):
            return await availability.find_free_intervals(start_date=start_date, end_date=end_date)

        controller = SchedulerController(
            calendar=calendar,
            fetch_free_intervals=fetch,
            initial_state=SchedulerViewState(query=query, slot_minutes=slot_minutes),
        )
        asyncio.run(_run_selection(controller, calendar, list(select or [])))
    except (ValueError, SlotPickerError) as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    proposed = controller.proposed_intervals()
    if not proposed:
        console.print("[yellow]Bitte mindestens einen Zeitraum auswählen.[/yellow]")
        raise typer.Exit(1)

    console.print("\n[bold cyan]Ihre Vorschläge:[/bold cyan]")
    for interval in proposed:
        console.print(f"  {interval.time_range.format_display(config.timezone)}")
    if len(proposed) > config.max_proposals:
        console.print(f"[yellow]Nur die ersten {config.max_proposals} Vorschläge werden gesendet.[/yellow]")
    console.print()

    guest_name = name or typer.prompt("→ Ihr Name")
    guest_email = email or typer.prompt("→ Ihre E-Mail")

    try:
        record = asyncio.run(proposal_service.submit(
            name=guest_name,
            email=guest_email,
            note=note,
            intervals=[interval.time_range for interval in proposed],
        ))
    except EmptySelectionError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(1)
    except SlotPickerError as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓ Vorschlag gesendet. Vielen Dank![/bold green] [dim](ID {record.id})[/dim]\n")


@app.command()
def proposals(
    config_file: ConfigOption = None,
):
    """
    List all stored proposals.
    """
    config = _load_config(config_file)
    store = JsonProposalStore(config.proposals_path)
    try:
        records = store.list()
    except SlotPickerError as e:
        console.print(f"[bold red]Fehler:[/bold red] {e}")
        raise typer.Exit(1)

    if not records:
        console.print("[yellow]Noch keine Vorschläge eingegangen.[/yellow]")
        return

    table = Table(title="Eingegangene Vorschläge", show_header=True, header_style="bold cyan")
    table.add_column("Eingegangen", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("E-Mail")
    table.add_column("Zeiten")

    for record in records:
        times = "\n".join(
            suggestion.to_time_range().format_display(config.timezone)
            for suggestion in record.slot_suggestions
        )
        submitted = pendulum.parse(record.submitted_at).in_timezone(config.timezone)
        table.add_row(submitted.format("DD.MM.YYYY HH:mm"), record.name, record.email, times)

    console.print()
    console.print(table)
    console.print()


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph authentication.
    """
    config = _load_config(config_file)
    console.print("\n[bold]Testing Microsoft Graph authentication...[/bold]\n")

    try:
        authenticator = GraphAuthenticator(
            client_id=config.calendar.client_id,
            tenant_id=config.calendar.tenant_id,
            authority_url=config.calendar.get_authority_url()
        )
        client = GraphClient(access_token=authenticator.get_access_token(force_refresh=force))
        user_info = client.test_connection()
    except SlotPickerError as e:
        console.print(f"\n[bold red]✗ Fehler:[/bold red] {e}\n")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Authentifizierung erfolgreich![/bold green]\n\n"
        f"[bold]Benutzer:[/bold] {user_info.get('displayName', 'N/A')}\n"
        f"[bold]E-Mail:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}\n"
        f"[bold]Token-Cache:[/bold] {authenticator.cache_backend}",
        title="✓ Verbindungstest"
    ))
    console.print()


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the authentication token cache.
    """
    config = _load_config(config_file)

    authenticator = GraphAuthenticator(
        client_id=config.calendar.client_id,
        tenant_id=config.calendar.tenant_id
    )
    authenticator.clear_cache()

    console.print("\n[green]✓ Token-Cache gelöscht.[/green]")
    console.print("Sie müssen sich beim nächsten Aufruf neu authentifizieren.\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotpicker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
