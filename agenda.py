import argparse
import asyncio

from loguru import logger

from dentadesk.clinic.display import appointment_title, format_interval, reminder_label
from dentadesk.clinic.factory import build_clinic
from dentadesk.config import AppConfig
from dentadesk.scheduling.month_grid import WEEK_DAY_LABELS, weeks
from dentadesk.scheduling.time_helpers import clinic_now, resolve_timezone


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the clinic agenda for a month.")
    parser.add_argument("--year", type=int, help="Calendar year (default: current)")
    parser.add_argument(
        "--month", type=int, choices=range(1, 13), metavar="MONTH",
        help="Calendar month 1-12 (default: current)",
    )
    parser.add_argument(
        "--upcoming", type=int, default=5, help="How many upcoming appointments to list"
    )
    return parser.parse_args(argv)


async def run_agenda(args: argparse.Namespace) -> None:
    config = AppConfig()
    tz = resolve_timezone(config.clinic_timezone)
    now = clinic_now(tz)
    year = args.year or now.year
    month = args.month or now.month

    clinic = build_clinic(config)
    try:
        if not await clinic.health_check():
            logger.error("Data store is not reachable")
            return

        cells = await clinic.calendar.month_view(year, month)
        print(f"{year}-{month:02d}")
        print(" ".join(f"{label:>5}" for label in WEEK_DAY_LABELS))
        for week in weeks(cells):
            row = []
            for cell in week:
                day = f"{cell.date.day:>2}" if cell.in_current_month else "  "
                marker = f"({len(cell.appointments)})" if cell.appointments else "   "
                row.append(f"{day}{marker}")
            print(" ".join(row))

        print("\nUpcoming appointments:")
        for appointment in await clinic.appointments.upcoming(now, limit=args.upcoming):
            interval = format_interval(appointment.start_time, appointment.end_time)
            print(f"  {appointment.date} {interval}  {appointment_title(appointment)}")

        print("\nReminders:")
        for reminder in await clinic.reminders.upcoming(now.date()):
            print(f"  {reminder_label(reminder, now.date())}  {reminder.title}")
    finally:
        await clinic.close()


if __name__ == "__main__":
    asyncio.run(run_agenda(_parse_args()))
