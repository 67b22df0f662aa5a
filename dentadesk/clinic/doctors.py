from collections import Counter

from pydantic import BaseModel

from dentadesk.clinic.base import TableRepository
from dentadesk.domain.exceptions import RecordNotFoundError
from dentadesk.domain.models import DeleteCheck, Doctor, DoctorChanges, DoctorDraft, Page, PageRequest
from dentadesk.store.query import Query, search_any


class DoctorFilters(BaseModel):
    search: str | None = None
    specialization: str | None = None


class DoctorStats(BaseModel):
    total: int
    specializations: dict[str, int]


class DoctorRepository(TableRepository[Doctor]):
    table = "doctors"
    model = Doctor
    default_sort = ("name", True)

    async def find(
        self,
        filters: DoctorFilters | None = None,
        page: PageRequest | None = None,
    ) -> Page[Doctor]:
        filters = filters or DoctorFilters()
        query = self._query()
        if filters.search:
            query.any_of(*search_any(("name", "specialization"), filters.search))
        if filters.specialization:
            query.eq("specialization", filters.specialization)
        return await self._fetch_page(query, page or PageRequest(), "Listing doctors")

    async def create(self, draft: DoctorDraft) -> Doctor:
        return await self._insert(draft.model_dump(mode="json"))

    async def update(self, doctor_id: int, changes: DoctorChanges) -> Doctor:
        doctor = await self._update(doctor_id, changes.model_dump(mode="json", exclude_unset=True))
        if doctor is None:
            raise RecordNotFoundError(self.table, doctor_id)
        return doctor

    async def can_delete(self, doctor_id: int) -> DeleteCheck:
        return await self._check_references(doctor_id, {"appointments": "doctor_id"}, "doctor")

    async def delete(self, doctor_id: int) -> None:
        """Delete a doctor, refusing while appointments still reference them."""
        self._refuse_unless(await self.can_delete(doctor_id))
        await self._delete(doctor_id)

    async def _specialization_rows(self) -> list[str]:
        query = Query(table=self.table).select("specialization")
        result = await self._guard("Fetching specializations", self._client.select(query))
        return [row["specialization"] for row in result.rows if row.get("specialization")]

    async def specializations(self) -> list[str]:
        """Distinct specializations, sorted."""
        return sorted(set(await self._specialization_rows()))

    async def stats(self) -> DoctorStats:
        query = Query(table=self.table).select("specialization")
        result = await self._guard("Fetching doctor statistics", self._client.select(query))
        return DoctorStats(
            total=len(result.rows),
            specializations=dict(
                Counter(row["specialization"] for row in result.rows if row.get("specialization"))
            ),
        )
