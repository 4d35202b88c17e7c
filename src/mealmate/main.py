"""
MealMate - CLI Entry Point.

Developer commands over the planning core.

Usage:
    mealmate week USER_ID            Show the week's planned meals
    mealmate plan USER_ID MEAL_ID DAY --type lunch
    mealmate reminders               List indexed reminders
    mealmate settings                Show/update notification settings
    mealmate sync USER_ID            Run the app-start sequence
    mealmate db                      Check the meal store connection

The CLI uses the in-process notification facility, so reminders it
schedules live only for the duration of one command. The reminder index
and settings persist in local storage.
"""

import asyncio
import logging
from datetime import date

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mealmate.config import MealMateSettings, get_settings
from mealmate.dates import require_day
from mealmate.errors import MealMateError
from mealmate.models import MEAL_TYPES
from mealmate.notifications import (
    LocalNotificationFacility,
    NotificationFacility,
    NotificationScheduler,
    ReminderIndex,
    SettingsStore,
    format_notification_time,
)
from mealmate.planning import MealPlanner, PlanningSnapshot
from mealmate.storage import JsonFileStorage

app = typer.Typer(
    name="mealmate",
    help="MealMate - meal planning and reminders.",
    add_completion=False,
)
console = Console()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def build_planner(
    app_settings: MealMateSettings | None = None,
    facility: NotificationFacility | None = None,
) -> MealPlanner:
    """Wire store, scheduler and settings into a MealPlanner."""
    from zoneinfo import ZoneInfo

    from mealmate.db.client import get_client
    from mealmate.db.meals import MealStore
    from mealmate.uploads import ImageUploader

    app_settings = app_settings or get_settings()
    storage = JsonFileStorage(app_settings.resolved_storage_path)
    tz = ZoneInfo(app_settings.timezone) if app_settings.timezone else None

    scheduler = NotificationScheduler(facility or LocalNotificationFacility(), ReminderIndex(storage), tz=tz)
    store = MealStore(get_client(), ImageUploader.from_settings(app_settings), table=app_settings.meals_table)
    return MealPlanner(store, scheduler, SettingsStore(storage))


def _local_stores(app_settings: MealMateSettings) -> tuple[ReminderIndex, SettingsStore]:
    storage = JsonFileStorage(app_settings.resolved_storage_path)
    return ReminderIndex(storage), SettingsStore(storage)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    configure_logging("DEBUG" if verbose else get_settings().log_level)


@app.command()
def week(
    user_id: str = typer.Argument(..., help="Owner of the meals"),
    start: str = typer.Option(None, "--start", "-s", help="First day (YYYY-MM-DD), default today"),
) -> None:
    """Show planned meals for seven days."""
    start_day = require_day(start) if start else date.today()
    planner = build_planner()

    meals = asyncio.run(planner.store.list_planned_by_user(user_id))
    snapshot = PlanningSnapshot.from_meals(meals)

    table = Table(title=f"Week of {start_day.isoformat()}")
    table.add_column("Day")
    for meal_type in MEAL_TYPES:
        table.add_column(meal_type.capitalize())

    for day, _ in snapshot.week(start=start_day):
        label = f"{day.day_name} {day.day_number}" + (" (today)" if day.is_today else "")
        cells = [
            ", ".join(m.display_name for m in snapshot.for_slot(day.date, meal_type)) or "[dim]-[/dim]"
            for meal_type in MEAL_TYPES
        ]
        table.add_row(label, *cells)

    console.print(table)


@app.command()
def plan(
    user_id: str = typer.Argument(..., help="Owner of the new planned meal"),
    meal_id: str = typer.Argument(..., help="Meal to copy onto the slot"),
    day: str = typer.Argument(..., help="Day (YYYY-MM-DD)"),
    meal_type: str = typer.Option("breakfast", "--type", "-t", help="breakfast, lunch, dinner or snack"),
) -> None:
    """Plan an existing meal onto a (day, meal type) slot."""
    planner = build_planner()

    async def _plan() -> str:
        source = await planner.store.get_by_id(meal_id)
        if source is None:
            raise typer.BadParameter(f"Meal not found: {meal_id}")
        planned = PlanningSnapshot.from_meals(await planner.store.list_planned_by_user(user_id))
        if planned.is_slot_taken(day, meal_type):
            console.print(f"[yellow]Note: {meal_type} on {day} already has a meal planned[/yellow]")
        return await planner.plan_existing_meal(source, day, meal_type, user_id)

    try:
        new_id = asyncio.run(_plan())
    except MealMateError as e:
        console.print(f"[red]FAIL[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] Planned as meal {new_id}")


@app.command()
def reminders() -> None:
    """List meal and planning reminders in the local index."""
    index, _ = _local_stores(get_settings())
    meal_reminders = asyncio.run(index.meal_reminders())
    planning = asyncio.run(index.planning_reminders())

    table = Table(title="Meal reminders")
    table.add_column("Meal")
    table.add_column("Type")
    table.add_column("When")
    for reminder in sorted(meal_reminders, key=lambda r: r.scheduled_time):
        table.add_row(
            reminder.title or reminder.meal_id,
            reminder.meal_type,
            reminder.scheduled_time.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)

    if planning:
        console.print("\n[bold]Planning reminders:[/bold] " + ", ".join(sorted(planning)))
    else:
        console.print("\n[dim]No planning reminders.[/dim]")


@app.command("settings")
def settings_command(
    enable: bool = typer.Option(None, "--enable/--disable", help="Global notification switch"),
    meal_type: str = typer.Option(None, "--meal-type", "-m", help="Meal type to change"),
    time: str = typer.Option(None, "--time", help="Reminder time (HH:MM) for --meal-type"),
    meal_type_on: bool = typer.Option(None, "--on/--off", help="Toggle reminders for --meal-type"),
    planning: bool = typer.Option(None, "--planning/--no-planning", help="Daily planning reminders"),
    user_id: str = typer.Option(None, "--user", "-u", help="Reschedule this user's reminders"),
) -> None:
    """Show or change notification settings."""
    planner = build_planner()

    async def _apply():
        if enable is not None:
            await planner.set_notifications_enabled(enable, user_id=user_id)
        if meal_type is not None and (time is not None or meal_type_on is not None):
            await planner.set_meal_type_reminder(meal_type, enabled=meal_type_on, time=time, user_id=user_id)
        if planning is not None:
            await planner.set_planning_reminders(planning)
        return await planner.load_settings()

    if meal_type is not None and meal_type not in MEAL_TYPES:
        raise typer.BadParameter(f"Unknown meal type: {meal_type}")
    try:
        current = asyncio.run(_apply())
    except MealMateError as e:
        console.print(f"[red]FAIL[/red] {e}")
        raise typer.Exit(1)

    state = "[green]on[/green]" if current.enabled else "[red]off[/red]"
    console.print(f"\n[bold]Notifications:[/bold] {state}")
    table = Table()
    table.add_column("Meal type")
    table.add_column("Reminders")
    table.add_column("Time")
    table.add_column("Planning time")
    for name in MEAL_TYPES:
        reminder = current.for_meal_type(name)
        table.add_row(
            name,
            "on" if reminder.enabled else "off",
            format_notification_time(reminder.time),
            format_notification_time(current.planning_times[name]),
        )
    console.print(table)
    console.print(f"Planning reminders: {'on' if current.planning_reminders else 'off'}")


@app.command()
def sync(user_id: str = typer.Argument(..., help="Signed-in user")) -> None:
    """Backfill favorites and rebuild all reminders (app-start sequence)."""
    planner = build_planner()
    try:
        asyncio.run(planner.start(user_id))
    except MealMateError as e:
        console.print(f"[red]FAIL[/red] {e}")
        raise typer.Exit(1)
    console.print("[green]OK[/green] Reminders rebuilt")


@app.command()
def db() -> None:
    """Check the meal store connection."""
    from mealmate.db.client import get_client

    console.print("\n[bold]Database Connection Check[/bold]\n")
    try:
        client = get_client()
        result = client.table(get_settings().meals_table).select("*", count="exact").limit(0).execute()
        count = result.count if hasattr(result, "count") else "?"
        console.print(f"[green]OK[/green] {get_settings().meals_table}: {count} rows")
    except Exception as e:
        console.print(f"\n[red]FAIL Database connection failed: {e}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
