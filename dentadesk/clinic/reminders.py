import datetime as dt
from typing import Literal

from pydantic import BaseModel

from dentadesk.clinic.base import TableRepository
from dentadesk.domain.exceptions import RecordNotFoundError
from dentadesk.domain.models import Reminder, ReminderChanges, ReminderDraft
from dentadesk.store.query import Query, search_any


class ReminderFilters(BaseModel):
    date: dt.date | None = None
    completed: bool | None = None
    search: str | None = None


class ReminderStats(BaseModel):
    total: int
    completed: int
    pending: int
    today: int
    overdue: int


class ReminderRepository(TableRepository[Reminder]):
    """Manually created reminders, independent of appointments."""

    table = "reminders"
    model = Reminder

    async def find(
        self,
        filters: ReminderFilters | None = None,
        *,
        sort_by: str = "date",
        sort_order: Literal["asc", "desc"] = "asc",
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Reminder]:
        filters = filters or ReminderFilters()
        query = self._query()
        if filters.date:
            query.eq("date", filters.date)
        if filters.completed is not None:
            query.eq("completed", filters.completed)
        if filters.search:
            query.any_of(*search_any(("title", "text"), filters.search))
        query.order(sort_by, ascending=sort_order == "asc")
        if offset:
            query.range(offset, limit or 10)
        elif limit:
            query.limit(limit)
        return await self._fetch(query, "Listing reminders")

    async def create(self, draft: ReminderDraft) -> Reminder:
        return await self._insert(draft.model_dump(mode="json"))

    async def update(self, reminder_id: int, changes: ReminderChanges) -> Reminder:
        reminder = await self._update(
            reminder_id, changes.model_dump(mode="json", exclude_unset=True)
        )
        if reminder is None:
            raise RecordNotFoundError(self.table, reminder_id)
        return reminder

    async def delete(self, reminder_id: int) -> None:
        await self._delete(reminder_id)

    async def toggle_completed(self, reminder_id: int) -> Reminder:
        current = await self.get(reminder_id)
        if current is None:
            raise RecordNotFoundError(self.table, reminder_id)
        return await self.update(reminder_id, ReminderChanges(completed=not current.completed))

    async def by_date(self, date: dt.date) -> list[Reminder]:
        return await self.find(ReminderFilters(date=date))

    async def for_today(self, today: dt.date) -> list[Reminder]:
        return await self.by_date(today)

    async def upcoming(self, today: dt.date, count: int = 5) -> list[Reminder]:
        """Open reminders from ``today`` on, soonest first."""
        query = (
            self._query()
            .gte("date", today)
            .eq("completed", False)
            .order("date")
            .order("time")
            .limit(count)
        )
        return await self._fetch(query, "Fetching upcoming reminders")

    async def overdue(self, today: dt.date) -> list[Reminder]:
        """Open reminders dated before ``today``, most recent first."""
        query = (
            self._query()
            .lt("date", today)
            .eq("completed", False)
            .order("date", ascending=False)
            .order("time", ascending=False)
        )
        return await self._fetch(query, "Fetching overdue reminders")

    async def stats(self, today: dt.date) -> ReminderStats:
        action = "Counting reminders"
        total = await self._count(Query(table=self.table), action)
        completed = await self._count(Query(table=self.table).eq("completed", True), action)
        for_today = await self._count(Query(table=self.table).eq("date", today), action)
        overdue = await self._count(
            Query(table=self.table).lt("date", today).eq("completed", False), action
        )
        return ReminderStats(
            total=total,
            completed=completed,
            pending=total - completed,
            today=for_today,
            overdue=overdue,
        )
