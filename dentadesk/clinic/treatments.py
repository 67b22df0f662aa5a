from collections import Counter

from pydantic import BaseModel

from dentadesk.clinic.base import TableRepository
from dentadesk.domain.exceptions import RecordNotFoundError
from dentadesk.domain.models import (
    DeleteCheck,
    Page,
    PageRequest,
    Treatment,
    TreatmentChanges,
    TreatmentDraft,
)
from dentadesk.store.query import Query, search_any

SEARCH_COLUMNS = ("name", "description", "category")


class TreatmentFilters(BaseModel):
    search: str | None = None
    category: str | None = None
    min_price: float | None = None
    max_price: float | None = None


class PriceRange(BaseModel):
    min: float
    max: float


class TreatmentStats(BaseModel):
    total: int
    categories: dict[str, int]
    average_price: float
    price_range: PriceRange


class PopularTreatment(Treatment):
    appointment_count: int


class TreatmentRepository(TableRepository[Treatment]):
    """Treatments. A treatment's duration drives appointment end times."""

    table = "treatments"
    model = Treatment
    default_sort = ("name", True)

    async def find(
        self,
        filters: TreatmentFilters | None = None,
        page: PageRequest | None = None,
    ) -> Page[Treatment]:
        filters = filters or TreatmentFilters()
        query = self._query()
        if filters.search:
            query.any_of(*search_any(SEARCH_COLUMNS, filters.search))
        if filters.category:
            query.eq("category", filters.category)
        if filters.min_price is not None:
            query.gte("price", filters.min_price)
        if filters.max_price is not None:
            query.lte("price", filters.max_price)
        return await self._fetch_page(query, page or PageRequest(), "Listing treatments")

    async def create(self, draft: TreatmentDraft) -> Treatment:
        return await self._insert(draft.model_dump(mode="json"))

    async def update(self, treatment_id: int, changes: TreatmentChanges) -> Treatment:
        treatment = await self._update(
            treatment_id, changes.model_dump(mode="json", exclude_unset=True)
        )
        if treatment is None:
            raise RecordNotFoundError(self.table, treatment_id)
        return treatment

    async def can_delete(self, treatment_id: int) -> DeleteCheck:
        return await self._check_references(
            treatment_id, {"appointments": "treatment_id"}, "treatment"
        )

    async def delete(self, treatment_id: int) -> None:
        """Delete a treatment, refusing while appointments still reference it."""
        self._refuse_unless(await self.can_delete(treatment_id))
        await self._delete(treatment_id)

    async def categories(self) -> list[str]:
        query = Query(table=self.table).select("category")
        result = await self._guard("Fetching categories", self._client.select(query))
        return sorted({row["category"] for row in result.rows if row.get("category")})

    async def by_category(self, category: str) -> list[Treatment]:
        query = self._query().eq("category", category).order("name")
        return await self._fetch(query, "Fetching treatments by category")

    async def search(self, term: str, limit: int = 10) -> list[Treatment]:
        query = self._query().any_of(*search_any(SEARCH_COLUMNS, term)).order("name").limit(limit)
        return await self._fetch(query, "Searching treatments")

    async def stats(self) -> TreatmentStats:
        query = Query(table=self.table).select("category", "price")
        result = await self._guard("Fetching treatment statistics", self._client.select(query))

        prices = [float(row["price"]) for row in result.rows if row.get("price") is not None]
        total = len(result.rows)
        return TreatmentStats(
            total=total,
            categories=dict(Counter(row["category"] for row in result.rows if row.get("category"))),
            average_price=sum(prices) / total if total else 0.0,
            price_range=PriceRange(min=min(prices, default=0.0), max=max(prices, default=0.0)),
        )

    async def popular(self, limit: int = 5) -> list[PopularTreatment]:
        """Treatments with the most appointments, busiest first."""
        query = Query(table="appointments").select("treatment_id")
        result = await self._guard("Counting treatment bookings", self._client.select(query))
        ranked = Counter(
            row["treatment_id"] for row in result.rows if row.get("treatment_id") is not None
        ).most_common(limit)
        if not ranked:
            return []

        ids = [treatment_id for treatment_id, _ in ranked]
        found = await self._fetch(self._query().in_("id", ids), "Fetching popular treatments")
        by_id = {treatment.id: treatment for treatment in found}
        return [
            PopularTreatment(**by_id[treatment_id].model_dump(), appointment_count=count)
            for treatment_id, count in ranked
            if treatment_id in by_id
        ]
