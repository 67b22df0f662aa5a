import datetime as dt
from collections import Counter

from loguru import logger
from pydantic import BaseModel

from dentadesk.clinic.base import TableRepository
from dentadesk.domain.exceptions import (
    AppointmentConflictError,
    InvalidAppointmentError,
    RecordNotFoundError,
)
from dentadesk.domain.models import (
    Appointment,
    AppointmentChanges,
    AppointmentDetails,
    AppointmentDraft,
    AppointmentStatus,
    Page,
    PageRequest,
    Treatment,
)
from dentadesk.scheduling.conflicts import find_conflict
from dentadesk.scheduling.time_helpers import compute_end_time
from dentadesk.store.query import Embed, Query, match

APPOINTMENT_EMBEDS = (
    Embed(alias="patient", table="patients", foreign_key="patient_id"),
    Embed(alias="doctor", table="doctors", foreign_key="doctor_id"),
    Embed(alias="treatment", table="treatments", foreign_key="treatment_id"),
)

ACTIVE_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.PENDING)


class AppointmentFilters(BaseModel):
    search: str | None = None
    patient_id: str | None = None
    doctor_id: int | None = None
    treatment_id: int | None = None
    status: AppointmentStatus | None = None
    date_from: dt.date | None = None
    date_to: dt.date | None = None


class AppointmentStats(BaseModel):
    total: int
    today: int
    this_week: int
    this_month: int
    by_status: dict[str, int]


class AppointmentRepository(TableRepository[AppointmentDetails]):
    """Appointments, with double-booking checks on every schedule change."""

    table = "appointments"
    model = AppointmentDetails
    embeds = APPOINTMENT_EMBEDS
    default_sort = ("date", False)

    def _order_tiebreak(self, query: Query, sort_by: str) -> None:
        if sort_by == "date":
            query.order("start_time")

    async def find(
        self,
        filters: AppointmentFilters | None = None,
        page: PageRequest | None = None,
    ) -> Page[AppointmentDetails]:
        """List appointments matching ``filters``, newest date first by default."""
        filters = filters or AppointmentFilters()
        query = self._query()
        if filters.patient_id:
            query.eq("patient_id", filters.patient_id)
        if filters.doctor_id:
            query.eq("doctor_id", filters.doctor_id)
        if filters.treatment_id:
            query.eq("treatment_id", filters.treatment_id)
        if filters.status:
            query.eq("status", filters.status)
        if filters.date_from:
            query.gte("date", filters.date_from)
        if filters.date_to:
            query.lte("date", filters.date_to)
        if filters.search:
            query.any_of(match("notes", "ilike", f"%{filters.search}%"))
        return await self._fetch_page(query, page or PageRequest(), "Listing appointments")

    async def _treatment(self, treatment_id: int) -> Treatment:
        row = await self._guard(
            "Fetching treatment",
            self._client.select_one(Query(table="treatments").eq("id", treatment_id)),
        )
        if row is None:
            raise InvalidAppointmentError(f"treatment {treatment_id} does not exist")
        return Treatment.model_validate(row)

    async def _end_time(self, start_time: dt.time, treatment_id: int) -> dt.time:
        treatment = await self._treatment(treatment_id)
        try:
            return compute_end_time(start_time, treatment.duration)
        except ValueError as exc:
            raise InvalidAppointmentError(str(exc)) from exc

    async def check_time_conflict(
        self,
        doctor_id: int,
        date: dt.date,
        start_time: dt.time,
        end_time: dt.time,
        exclude_id: int | None = None,
    ) -> Appointment | None:
        """Return the first active appointment of the doctor overlapping the interval.

        Store failures propagate unchanged.
        """
        query = (
            Query(table=self.table)
            .eq("doctor_id", doctor_id)
            .eq("date", date)
            .neq("status", AppointmentStatus.CANCELLED)
        )
        if exclude_id is not None:
            query.neq("id", exclude_id)

        result = await self._client.select(query)
        candidates = [Appointment.model_validate(row) for row in result.rows]
        return find_conflict(candidates, start_time, end_time, exclude_id=exclude_id)

    async def _ensure_free(
        self,
        doctor_id: int,
        date: dt.date,
        start_time: dt.time,
        end_time: dt.time,
        exclude_id: int | None = None,
    ) -> None:
        conflict = await self.check_time_conflict(doctor_id, date, start_time, end_time, exclude_id)
        if conflict is not None:
            logger.info(
                "Rejected booking for doctor={} on {}: overlaps appointment id={}",
                doctor_id,
                date,
                conflict.id,
            )
            raise AppointmentConflictError(conflict.start_time, conflict.end_time, conflict.id)

    async def create(self, draft: AppointmentDraft) -> AppointmentDetails:
        """Book an appointment. The end time comes from the treatment's duration."""
        end_time = await self._end_time(draft.start_time, draft.treatment_id)
        if draft.status != AppointmentStatus.CANCELLED:
            await self._ensure_free(draft.doctor_id, draft.date, draft.start_time, end_time)

        values = draft.model_dump(mode="json")
        values["end_time"] = end_time.strftime("%H:%M")
        return await self._insert(values)

    async def update(self, appointment_id: int, changes: AppointmentChanges) -> AppointmentDetails:
        """Apply ``changes``, re-deriving the end time and re-checking conflicts when it moves."""
        values = changes.model_dump(mode="json", exclude_unset=True)
        reactivating = changes.status is not None and changes.status != AppointmentStatus.CANCELLED

        if changes.touches_schedule or reactivating:
            existing = await self.get(appointment_id)
            if existing is None:
                raise RecordNotFoundError(self.table, appointment_id)

            doctor_id = changes.doctor_id or existing.doctor_id
            date = changes.date or existing.date
            start_time = changes.start_time or existing.start_time
            treatment_id = changes.treatment_id or existing.treatment_id
            status = changes.status or existing.status

            if changes.start_time or changes.treatment_id:
                end_time = await self._end_time(start_time, treatment_id)
                values["end_time"] = end_time.strftime("%H:%M")
            else:
                end_time = existing.end_time

            if status != AppointmentStatus.CANCELLED:
                await self._ensure_free(doctor_id, date, start_time, end_time, appointment_id)

        updated = await self._update(appointment_id, values)
        if updated is None:
            raise RecordNotFoundError(self.table, appointment_id)
        return updated

    async def set_status(self, appointment_id: int, status: AppointmentStatus) -> AppointmentDetails:
        """Change the lifecycle status.

        Re-activating a cancelled appointment re-checks its slot, since other
        bookings may have taken it meanwhile.
        """
        existing = await self.get(appointment_id)
        if existing is None:
            raise RecordNotFoundError(self.table, appointment_id)
        if existing.status == AppointmentStatus.CANCELLED and status != AppointmentStatus.CANCELLED:
            await self._ensure_free(
                existing.doctor_id, existing.date, existing.start_time, existing.end_time, appointment_id
            )

        updated = await self._update(appointment_id, {"status": status.value})
        if updated is None:
            raise RecordNotFoundError(self.table, appointment_id)
        return updated

    async def cancel(self, appointment_id: int) -> AppointmentDetails:
        return await self.set_status(appointment_id, AppointmentStatus.CANCELLED)

    async def delete(self, appointment_id: int) -> None:
        """Permanently remove the appointment. Use ``cancel`` to keep its history."""
        await self._delete(appointment_id)

    async def by_date(self, date: dt.date) -> list[AppointmentDetails]:
        query = self._query().eq("date", date).order("start_time")
        return await self._fetch(query, "Fetching appointments by date")

    async def by_patient(self, patient_id: str) -> list[AppointmentDetails]:
        query = (
            self._query()
            .eq("patient_id", patient_id)
            .order("date", ascending=False)
            .order("start_time", ascending=False)
        )
        return await self._fetch(query, "Fetching appointments by patient")

    async def by_doctor(self, doctor_id: int) -> list[AppointmentDetails]:
        query = (
            self._query()
            .eq("doctor_id", doctor_id)
            .order("date", ascending=False)
            .order("start_time", ascending=False)
        )
        return await self._fetch(query, "Fetching appointments by doctor")

    async def by_date_range(self, start: dt.date, end: dt.date) -> list[AppointmentDetails]:
        """Appointments dated within ``[start, end]``, by date then start time."""
        query = self._query().gte("date", start).lte("date", end).order("date").order("start_time")
        return await self._fetch(query, "Fetching appointments by date range")

    async def upcoming(self, now: dt.datetime, limit: int = 5) -> list[AppointmentDetails]:
        """The next confirmed or pending appointments from ``now`` on."""
        today = now.date()
        current = now.time().replace(second=0, microsecond=0)
        later_today = (
            self._query()
            .eq("date", today)
            .gte("start_time", current)
            .in_("status", list(ACTIVE_STATUSES))
            .order("start_time")
            .limit(limit)
        )
        later_days = (
            self._query()
            .gt("date", today)
            .in_("status", list(ACTIVE_STATUSES))
            .order("date")
            .order("start_time")
            .limit(limit)
        )
        upcoming = await self._fetch(later_today, "Fetching upcoming appointments")
        if len(upcoming) < limit:
            upcoming += await self._fetch(later_days, "Fetching upcoming appointments")
        return upcoming[:limit]

    async def stats(self, today: dt.date) -> AppointmentStats:
        query = Query(table=self.table).select("date", "status")
        result = await self._guard("Fetching appointment statistics", self._client.select(query))

        start_of_week = today - dt.timedelta(days=(today.weekday() + 1) % 7)
        start_of_month = today.replace(day=1)
        today_iso = today.isoformat()
        dates = [row["date"] for row in result.rows]

        return AppointmentStats(
            total=len(result.rows),
            today=sum(1 for d in dates if d == today_iso),
            this_week=sum(1 for d in dates if d >= start_of_week.isoformat()),
            this_month=sum(1 for d in dates if d >= start_of_month.isoformat()),
            by_status=dict(Counter(row["status"] for row in result.rows if row.get("status"))),
        )
