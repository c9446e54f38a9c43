"""
Main CLI application using Typer.

Operator tooling around the scheduling services: the chat bot calls the
same services, this CLI lets staff inspect and fix bookings by hand.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, AsyncIterator, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.db import init_db as create_schema
from ..adapters.db import make_engine, make_session_factory
from ..adapters.memory_repository import MemoryRepository
from ..adapters.sql_repository import SqlRepository
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import (
    ConcurrentUpdateError,
    InvalidInterval,
    InvalidValue,
    MaxCapacityExceeded,
    MigregError,
    SlotAlreadyReserved,
    SlotNotFoundError,
    StorageError,
    UserNotFound,
    UserNotReserved,
)
from ..domain.models import Citizenship, Service
from ..services.export import export_file_name, reservations_to_csv
from ..services.scheduling import SchedulingService
from ..services.users import UserService

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="migreg",
    help="Appointment slots for the migration-registration office",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use in-memory demo data instead of the database.")]
ServiceOption = Annotated[str, typer.Option("--service", "-s", help="Service code, e.g. initial_registration, visa, renewal_of_visa")]

# Subclasses first: the first matching entry wins.
_ERROR_MESSAGES = [
    (SlotNotFoundError, "Слот не найден или уже занят. Выберите другое время."),
    (MaxCapacityExceeded, "В этом слоте не осталось мест."),
    (SlotAlreadyReserved, "Вы уже записаны на это время."),
    (UserNotReserved, "У пользователя нет записи на это время."),
    (UserNotFound, "Пользователь не зарегистрирован."),
    (ConcurrentUpdateError, "Слот изменился во время записи. Обновите список и попробуйте снова."),
    (StorageError, "Ошибка хранилища."),
    (InvalidInterval, "Некорректный интервал."),
    (InvalidValue, "Некорректное значение."),
]


def _fail(exc: MigregError) -> None:
    message = next((text for kind, text in _ERROR_MESSAGES if isinstance(exc, kind)), "Ошибка.")
    logger.debug("Command failed", exc_info=exc)
    console.print(f"[bold red]Ошибка:[/bold red] {message} [dim]({exc})[/dim]")
    raise typer.Exit(1)


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    if config_file is None and not config_path.exists():
        return AppConfig()
    try:
        return AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Ошибка конфигурации:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_date(value: str, tz: str) -> pendulum.Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Не удалось разобрать дату {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _parse_time(value: str, tz: str) -> pendulum.DateTime:
    try:
        parsed = pendulum.parse(value, tz=tz)
    except ValueError as e:
        console.print(f"[red]Не удалось разобрать время {value!r}: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(parsed, pendulum.DateTime):
        console.print(f"[red]Ожидалась дата и время, получено {value!r}[/red]")
        raise typer.Exit(1)
    return parsed


def _parse_service(value: str) -> Service:
    try:
        return Service.parse(value)
    except InvalidValue as e:
        _fail(e)


@asynccontextmanager
async def _services(config: AppConfig, mock: bool) -> AsyncIterator[Tuple[SchedulingService, UserService]]:
    """Wire the services to the configured store for one command."""
    engine = None
    if mock:
        store = MemoryRepository.from_json()
    else:
        engine = make_engine(config.database_url)
        store = SqlRepository(make_session_factory(engine))

    scheduling = SchedulingService.from_store(
        store,
        slot_factory=config.build_slot_factory(),
        working_hours=config.build_working_hours_policy(),
        deadline_policy=config.build_deadline_policy(),
        max_days_ahead=config.slots.max_days_ahead,
    )
    users = UserService(store, store, admin_ids=config.admins)
    try:
        yield scheduling, users
    finally:
        if engine is not None:
            await engine.dispose()


def _run(coro):
    try:
        return asyncio.run(coro)
    except MigregError as e:
        _fail(e)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init-db")
def init_db_command(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Drop existing tables first.")] = False,
):
    """
    Create the database schema.
    """
    config = _load_config(config_file)

    async def _init():
        engine = make_engine(config.database_url)
        try:
            await create_schema(engine, force=force)
        finally:
            await engine.dispose()

    try:
        asyncio.run(_init())
    except Exception as e:
        console.print(f"[bold red]Ошибка:[/bold red] {e}")
        raise typer.Exit(1)
    console.print("[green]✓ Схема базы данных создана[/green]")


@app.command("register-user")
def register_user(
    user_id: Annotated[int, typer.Argument(help="Telegram user id")],
    name_lat: Annotated[str, typer.Option("--name-lat", help="Full name in Latin letters")],
    name_cyr: Annotated[str, typer.Option("--name-cyr", help="Full name in Cyrillic letters")],
    citizenship: Annotated[str, typer.Option("--citizenship", help="Country name, e.g. Таджикистан")],
    arrival: Annotated[str, typer.Option("--arrival", help="Arrival date (YYYY-MM-DD)")],
    username: Annotated[str, typer.Option("--username", help="Telegram handle")] = "",
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Register a user (or overwrite an existing record).
    """
    config = _load_config(config_file)
    arrival_date = _parse_date(arrival, config.timezone)

    async def _register():
        async with _services(config, mock) as (_, users):
            return await users.register(
                user_id=user_id,
                username=username,
                full_name_lat=name_lat,
                full_name_cyr=name_cyr,
                citizenship=Citizenship.parse(citizenship),
                arrival_date=arrival_date,
            )

    user = _run(_register())
    console.print(f"[green]✓ Пользователь {user.id} зарегистрирован[/green]")


@app.command("show-user")
def show_user(
    user_id: Annotated[int, typer.Argument(help="Telegram user id")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show a registered user and their upcoming reservations.
    """
    config = _load_config(config_file)

    async def _show():
        async with _services(config, mock) as (scheduling, users):
            user = await users.user(user_id)
            today = pendulum.today(config.timezone).date()
            rows = await scheduling.user_reservations(user_id, today, config.slots.max_days_ahead)
            return user, rows

    user, rows = _run(_show())
    bookings = "\n".join(
        f"  {row.slot_start.format('DD.MM.YYYY HH:mm')} – {row.slot_end.format('HH:mm')} · {row.service.label}"
        for row in rows
    ) or "  -"
    console.print(Panel.fit(
        f"[bold]ФИО (лат):[/bold] {user.full_name_lat}\n"
        f"[bold]ФИО (кир):[/bold] {user.full_name_cyr}\n"
        f"[bold]Telegram:[/bold] @{user.username}\n"
        f"[bold]Гражданство:[/bold] {user.citizenship}\n"
        f"[bold]Дата прибытия:[/bold] {user.arrival_date.format('DD.MM.YYYY')}\n\n"
        f"[bold]Записи:[/bold]\n{bookings}",
        title=f"Пользователь {user.id}"
    ))


@app.command("free-slots")
def free_slots(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List slots of a day that still have free seats.
    """
    config = _load_config(config_file)
    day = _parse_date(date, config.timezone)

    async def _free():
        async with _services(config, mock) as (scheduling, _):
            return await scheduling.free_slots(day)

    slots = _run(_free())
    if not slots:
        console.print(f"[yellow]⚠ На {day.format('DD.MM.YYYY')} свободных слотов нет.[/yellow]")
        return

    table = Table(title=f"Свободные слоты на {day.format('DD.MM.YYYY')}", header_style="bold cyan")
    table.add_column("Начало", style="bold yellow")
    table.add_column("Конец")
    for slot in slots:
        table.add_row(slot.start.format("HH:mm"), slot.end.format("HH:mm"))
    console.print(table)


@app.command("free-days")
def free_days(
    user_id: Annotated[int, typer.Argument(help="Telegram user id")],
    service: ServiceOption = Service.INITIAL_REGISTRATION.value,
    start: Annotated[Optional[str], typer.Option("--from", help="First date to scan (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List days on which the user can still book the service.
    """
    config = _load_config(config_file)
    chosen = _parse_service(service)
    start_date = _parse_date(start, config.timezone) if start else pendulum.today(config.timezone).date()

    async def _days():
        async with _services(config, mock) as (scheduling, _):
            return await scheduling.days_with_free_slots(user_id, start_date, chosen)

    days = _run(_days())
    if not days:
        console.print("[yellow]⚠ Нет дней со свободными слотами в доступном периоде.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(days)} день(дней) со свободными слотами:[/bold green]\n")
    for day in days:
        console.print(f"  {day.format('dddd, DD.MM.YYYY', locale='ru')}")


@app.command("check-deadline")
def check_deadline(
    user_id: Annotated[int, typer.Argument(help="Telegram user id")],
    service: ServiceOption = Service.INITIAL_REGISTRATION.value,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Tell whether the user is still within the booking deadline.
    """
    config = _load_config(config_file)
    chosen = _parse_service(service)

    async def _check():
        async with _services(config, mock) as (scheduling, _):
            return await scheduling.check_deadline(user_id, chosen)

    if _run(_check()):
        console.print("[green]✓ Срок записи не истёк[/green]")
    else:
        console.print("[red]✗ Срок записи истёк[/red]")
        raise typer.Exit(2)


@app.command()
def reserve(
    user_id: Annotated[int, typer.Argument(help="Telegram user id")],
    time: Annotated[str, typer.Argument(help="Slot start, e.g. '2026-10-20 10:00'")],
    service: ServiceOption = Service.INITIAL_REGISTRATION.value,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Reserve a seat in the slot starting at TIME.
    """
    config = _load_config(config_file)
    chosen = _parse_service(service)
    start = _parse_time(time, config.timezone)

    async def _reserve():
        async with _services(config, mock) as (scheduling, _):
            return await scheduling.reserve_slot(user_id, start, chosen)

    slot = _run(_reserve())
    console.print(
        f"[green]✓ Запись подтверждена:[/green] {slot.start.format('DD.MM.YYYY HH:mm')} – "
        f"{slot.end.format('HH:mm')} ({chosen.label})"
    )


@app.command()
def cancel(
    user_id: Annotated[int, typer.Argument(help="Telegram user id")],
    time: Annotated[str, typer.Argument(help="Slot start, e.g. '2026-10-20 10:00'")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Cancel the user's reservation in the slot starting at TIME.
    """
    config = _load_config(config_file)
    start = _parse_time(time, config.timezone)

    async def _cancel():
        async with _services(config, mock) as (scheduling, _):
            await scheduling.cancel_reservation(user_id, start)

    _run(_cancel())
    console.print("[green]✓ Запись отменена[/green]")


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show every working slot of a day with its occupancy.
    """
    config = _load_config(config_file)
    day = _parse_date(date, config.timezone)

    async def _slots():
        async with _services(config, mock) as (scheduling, _):
            return await scheduling.slots(day)

    views = _run(_slots())
    if not views:
        console.print(f"[yellow]{day.format('DD.MM.YYYY')}: нерабочий день.[/yellow]")
        return

    table = Table(title=f"Слоты на {day.format('DD.MM.YYYY')}", header_style="bold cyan")
    table.add_column("Время", style="bold yellow")
    table.add_column("Свободно", justify="right")
    table.add_column("Записаны", style="dim")
    for view in views:
        table.add_row(
            f"{view.start.format('HH:mm')} – {view.end.format('HH:mm')}",
            f"{view.free_seats}/{view.max_size}",
            ", ".join(row.full_name_cyr for row in view.reservations),
        )
    console.print(table)


@app.command()
def export(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Target file. Defaults to reservations_<date>.csv")] = None,
    admin: Annotated[Optional[int], typer.Option("--admin", help="Id of the requesting admin; checked against the config.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Export a day's reservations as CSV (UTF-8 with BOM).
    """
    config = _load_config(config_file)
    day = _parse_date(date, config.timezone)

    async def _export():
        async with _services(config, mock) as (scheduling, users):
            if admin is not None and not users.is_admin(admin):
                return None
            return await scheduling.reservations(day)

    rows = _run(_export())
    if rows is None:
        console.print(f"[bold red]Ошибка:[/bold red] пользователь {admin} не является администратором.")
        raise typer.Exit(1)

    target = output or Path(export_file_name(day))
    target.write_bytes(reservations_to_csv(rows))
    console.print(f"[green]✓ {len(rows)} запис(ей) сохранено в {target}[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]migreg[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
