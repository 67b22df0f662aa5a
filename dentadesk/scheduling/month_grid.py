"""Month-view layout for the appointment calendar.

The grid is always six Sunday-first weeks (42 cells). No Gregorian month
needs more than six rows: the worst case is a 31-day month starting on a
Saturday, which ends on row six.
"""

import calendar
import datetime as dt
from collections import defaultdict
from collections.abc import Iterable

from dentadesk.domain.models import AppointmentDetails, CalendarDayCell

GRID_CELLS = 42
WEEK_DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def month_bounds(year: int, month: int) -> tuple[dt.date, dt.date]:
    """First and last day of the month, for the range query that feeds the grid."""
    last_day = calendar.monthrange(year, month)[1]
    return dt.date(year, month, 1), dt.date(year, month, last_day)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move ``delta`` months forward (or back, when negative)."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def sunday_weekday(day: dt.date) -> int:
    """Weekday index with 0 = Sunday."""
    return (day.weekday() + 1) % 7


def group_by_day(
    appointments: Iterable[AppointmentDetails],
) -> dict[dt.date, list[AppointmentDetails]]:
    """Bucket appointments by exact date, keeping their incoming order."""
    buckets: dict[dt.date, list[AppointmentDetails]] = defaultdict(list)
    for appointment in appointments:
        buckets[appointment.date].append(appointment)
    return buckets


def build_month_grid(
    year: int,
    month: int,
    appointments: Iterable[AppointmentDetails] = (),
) -> list[CalendarDayCell]:
    """Lay out the 42 day cells of a month view.

    Leading cells come from the previous month up to the weekday of the 1st,
    trailing cells from the next month fill the sixth week.  Each cell gets
    the appointments dated that day, in the order they were fetched.
    """
    first, last = month_bounds(year, month)
    grid_start = first - dt.timedelta(days=sunday_weekday(first))
    by_day = group_by_day(appointments)

    cells: list[CalendarDayCell] = []
    for offset in range(GRID_CELLS):
        day = grid_start + dt.timedelta(days=offset)
        cells.append(
            CalendarDayCell(
                date=day,
                in_current_month=first <= day <= last,
                appointments=tuple(by_day.get(day, ())),
            )
        )
    return cells


def leading_cell_count(year: int, month: int) -> int:
    return sunday_weekday(dt.date(year, month, 1))


def weeks(cells: list[CalendarDayCell]) -> list[list[CalendarDayCell]]:
    """Split a grid into its rows of seven days."""
    return [cells[i : i + 7] for i in range(0, len(cells), 7)]
