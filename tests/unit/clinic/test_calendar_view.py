import datetime as dt

import pytest

from dentadesk.clinic.appointments import AppointmentRepository
from dentadesk.clinic.calendar_view import CalendarService
from dentadesk.store.adapters.memory import MemoryStoreClient
from dentadesk.store.ports import Row


@pytest.fixture
def calendar(appointments: AppointmentRepository) -> CalendarService:
    return CalendarService(appointments)


@pytest.fixture
def booked(store: MemoryStoreClient, patient: Row, doctor: Row, treatment: Row) -> list[Row]:
    base = {"patient_id": patient["id"], "doctor_id": doctor["id"], "treatment_id": treatment["id"]}
    return store.seed(
        "appointments",
        {**base, "date": "2024-05-15", "start_time": "11:00", "end_time": "11:30"},
        {**base, "date": "2024-05-15", "start_time": "09:00", "end_time": "09:30"},
        {**base, "date": "2024-05-31", "start_time": "10:00", "end_time": "10:30"},
        {**base, "date": "2024-06-03", "start_time": "10:00", "end_time": "10:30"},
    )


@pytest.mark.usefixtures("booked")
class TestMonthView:
    @pytest.mark.asyncio
    async def test_places_month_appointments_in_start_order(
        self, calendar: CalendarService
    ) -> None:
        cells = await calendar.month_view(2024, 5)

        cell = next(c for c in cells if c.date == dt.date(2024, 5, 15))
        assert len(cells) == 42
        assert [a.start_time for a in cell.appointments] == [dt.time(9, 0), dt.time(11, 0)]
        assert cell.appointments[0].patient is not None

    @pytest.mark.asyncio
    async def test_only_loads_the_displayed_month(
        self, calendar: CalendarService, store: MemoryStoreClient
    ) -> None:
        cells = await calendar.month_view(2024, 5)

        trailing = next(c for c in cells if c.date == dt.date(2024, 6, 3))
        assert trailing.appointments == ()
        assert [(f.op, f.value) for f in store.queries[0].filters] == [
            ("gte", "2024-05-01"),
            ("lte", "2024-05-31"),
        ]

    @pytest.mark.asyncio
    async def test_day(self, calendar: CalendarService) -> None:
        result = await calendar.day(dt.date(2024, 5, 31))

        assert len(result) == 1
        assert result[0].treatment is not None
        assert result[0].treatment.name == "Cleaning"
