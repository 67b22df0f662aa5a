import datetime as dt

from pydantic import BaseModel

from dentadesk.clinic.base import TableRepository
from dentadesk.domain.exceptions import RecordNotFoundError
from dentadesk.domain.models import (
    DeleteCheck,
    Page,
    PageRequest,
    Patient,
    PatientChanges,
    PatientDraft,
)
from dentadesk.scheduling.month_grid import month_bounds, shift_month
from dentadesk.store.query import Query, search_any

SEARCH_COLUMNS = ("first_name", "last_name", "email", "fiscal_code")


class PatientFilters(BaseModel):
    search: str | None = None
    city: str | None = None
    is_smoker: bool | None = None
    has_allergies: bool | None = None


class PatientStats(BaseModel):
    total_patients: int
    new_patients_this_month: int
    smokers_count: int
    patients_with_allergies: int
    smokers_percentage: float
    allergies_percentage: float


class PatientRepository(TableRepository[Patient]):
    table = "patients"
    model = Patient
    default_sort = ("last_name", True)

    async def find(
        self,
        filters: PatientFilters | None = None,
        page: PageRequest | None = None,
    ) -> Page[Patient]:
        filters = filters or PatientFilters()
        query = self._query()
        if filters.search:
            query.any_of(*search_any(SEARCH_COLUMNS, filters.search))
        if filters.city:
            query.ilike("city", f"%{filters.city}%")
        if filters.is_smoker is not None:
            query.eq("is_smoker", filters.is_smoker)
        if filters.has_allergies is not None:
            if filters.has_allergies:
                query.not_null("allergies")
            else:
                query.is_null("allergies")
        return await self._fetch_page(query, page or PageRequest(limit=20), "Listing patients")

    async def create(self, draft: PatientDraft) -> Patient:
        return await self._insert(draft.model_dump(mode="json"))

    async def update(self, patient_id: str, changes: PatientChanges) -> Patient:
        patient = await self._update(patient_id, changes.model_dump(mode="json", exclude_unset=True))
        if patient is None:
            raise RecordNotFoundError(self.table, patient_id)
        return patient

    async def can_delete(self, patient_id: str) -> DeleteCheck:
        return await self._check_references(
            patient_id, {"appointments": "patient_id", "invoices": "patient_id"}, "patient"
        )

    async def delete(self, patient_id: str) -> None:
        """Delete a patient, refusing while appointments or invoices reference them."""
        self._refuse_unless(await self.can_delete(patient_id))
        await self._delete(patient_id)

    async def search(self, term: str, limit: int = 10) -> list[Patient]:
        query = self._query().any_of(*search_any(SEARCH_COLUMNS, term)).order("last_name").limit(limit)
        return await self._fetch(query, "Searching patients")

    async def _is_taken(self, column: str, value: str, exclude_id: str | None) -> bool:
        query = Query(table=self.table).select("id").eq(column, value)
        if exclude_id:
            query.neq("id", exclude_id)
        result = await self._guard(f"Checking {column} uniqueness", self._client.select(query))
        return len(result.rows) > 0

    async def is_email_taken(self, email: str, exclude_id: str | None = None) -> bool:
        return await self._is_taken("email", email, exclude_id)

    async def is_fiscal_code_taken(self, fiscal_code: str, exclude_id: str | None = None) -> bool:
        return await self._is_taken("fiscal_code", fiscal_code, exclude_id)

    async def stats(self, today: dt.date) -> PatientStats:
        month_start, _ = month_bounds(today.year, today.month)
        next_year, next_month = shift_month(today.year, today.month, 1)
        next_month_start, _ = month_bounds(next_year, next_month)

        action = "Counting patients"
        total = await self._count(Query(table=self.table), action)
        smokers = await self._count(Query(table=self.table).eq("is_smoker", True), action)
        allergic = await self._count(Query(table=self.table).not_null("allergies"), action)
        new_this_month = await self._count(
            Query(table=self.table).gte("created_at", month_start).lt("created_at", next_month_start),
            action,
        )

        return PatientStats(
            total_patients=total,
            new_patients_this_month=new_this_month,
            smokers_count=smokers,
            patients_with_allergies=allergic,
            smokers_percentage=smokers / total * 100 if total else 0.0,
            allergies_percentage=allergic / total * 100 if total else 0.0,
        )
