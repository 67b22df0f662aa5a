import datetime as dt

from loguru import logger

from dentadesk.clinic.appointments import AppointmentRepository
from dentadesk.domain.models import AppointmentDetails, CalendarDayCell
from dentadesk.scheduling.month_grid import build_month_grid, month_bounds


class CalendarService:
    """Loads a month of appointments and lays it out as a calendar grid."""

    def __init__(self, appointments: AppointmentRepository) -> None:
        self._appointments = appointments

    async def month_view(self, year: int, month: int) -> list[CalendarDayCell]:
        first, last = month_bounds(year, month)
        appointments = await self._appointments.by_date_range(first, last)
        logger.info("Loaded {} appointment(s) for {}-{:02d}", len(appointments), year, month)
        return build_month_grid(year, month, appointments)

    async def day(self, date: dt.date) -> list[AppointmentDetails]:
        return await self._appointments.by_date(date)
