import pytest

from dentadesk.clinic.treatments import TreatmentFilters, TreatmentRepository
from dentadesk.domain.exceptions import DataStoreUnavailableError, DeleteBlockedError
from dentadesk.domain.models import TreatmentChanges, TreatmentDraft
from dentadesk.store.adapters.memory import MemoryStoreClient
from dentadesk.store.ports import Row


@pytest.fixture
def catalog(store: MemoryStoreClient) -> list[Row]:
    return store.seed(
        "treatments",
        {"name": "Cleaning", "duration": 30, "price": 80.0, "category": "Hygiene"},
        {"name": "Whitening", "duration": 60, "price": 250.0, "category": "Aesthetics"},
        {
            "name": "Root canal",
            "duration": 90,
            "price": 450.0,
            "category": "Endodontics",
            "description": "Includes x-ray",
        },
    )


@pytest.mark.usefixtures("catalog")
class TestFind:
    @pytest.mark.asyncio
    async def test_price_window(self, treatments: TreatmentRepository) -> None:
        page = await treatments.find(TreatmentFilters(min_price=100, max_price=300))

        assert [t.name for t in page.records] == ["Whitening"]

    @pytest.mark.asyncio
    async def test_search_matches_description(self, treatments: TreatmentRepository) -> None:
        page = await treatments.find(TreatmentFilters(search="X-RAY"))

        assert [t.name for t in page.records] == ["Root canal"]

    @pytest.mark.asyncio
    async def test_search_helper_limits(self, treatments: TreatmentRepository) -> None:
        result = await treatments.search("e", limit=2)

        assert [t.name for t in result] == ["Cleaning", "Root canal"]


class TestWrites:
    @pytest.mark.asyncio
    async def test_create(self, treatments: TreatmentRepository) -> None:
        created = await treatments.create(
            TreatmentDraft(name="Filling", duration=45, price=120.0, category="Restorative")
        )

        assert created.id == 1
        assert created.duration == 45

    def test_rejects_non_positive_duration(self) -> None:
        with pytest.raises(ValueError):
            TreatmentDraft(name="Nothing", duration=0, price=0, category="None")

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("catalog")
    async def test_update_price(self, treatments: TreatmentRepository) -> None:
        updated = await treatments.update(1, TreatmentChanges(price=95.0))

        assert updated.price == 95.0
        assert updated.duration == 30

    @pytest.mark.asyncio
    async def test_wraps_store_failure(
        self, treatments: TreatmentRepository, store: MemoryStoreClient
    ) -> None:
        store.update_error = RuntimeError("timeout")

        with pytest.raises(DataStoreUnavailableError, match="Updating treatments row failed"):
            await treatments.update(1, TreatmentChanges(price=95.0))


@pytest.mark.usefixtures("catalog")
class TestDelete:
    @pytest.mark.asyncio
    async def test_refuses_while_referenced(
        self, treatments: TreatmentRepository, store: MemoryStoreClient
    ) -> None:
        store.seed("appointments", {"treatment_id": 3})

        with pytest.raises(DeleteBlockedError, match="The treatment has 1 associated appointments"):
            await treatments.delete(3)

    @pytest.mark.asyncio
    async def test_deletes_unreferenced(self, treatments: TreatmentRepository) -> None:
        await treatments.delete(2)

        assert await treatments.get(2) is None


@pytest.mark.usefixtures("catalog")
class TestAggregates:
    @pytest.mark.asyncio
    async def test_categories(self, treatments: TreatmentRepository) -> None:
        assert await treatments.categories() == ["Aesthetics", "Endodontics", "Hygiene"]

    @pytest.mark.asyncio
    async def test_by_category(self, treatments: TreatmentRepository) -> None:
        result = await treatments.by_category("Hygiene")

        assert [t.name for t in result] == ["Cleaning"]

    @pytest.mark.asyncio
    async def test_stats(self, treatments: TreatmentRepository) -> None:
        stats = await treatments.stats()

        assert stats.total == 3
        assert stats.average_price == pytest.approx(260.0)
        assert (stats.price_range.min, stats.price_range.max) == (80.0, 450.0)
        assert stats.categories == {"Hygiene": 1, "Aesthetics": 1, "Endodontics": 1}

    @pytest.mark.asyncio
    async def test_stats_on_empty_catalog(self) -> None:
        stats = await TreatmentRepository(MemoryStoreClient()).stats()

        assert stats.total == 0
        assert stats.average_price == 0.0


@pytest.mark.usefixtures("catalog")
class TestPopular:
    @pytest.mark.asyncio
    async def test_ranked_by_appointment_count(
        self, treatments: TreatmentRepository, store: MemoryStoreClient
    ) -> None:
        store.seed("appointments", {"treatment_id": 3}, {"treatment_id": 1}, {"treatment_id": 3})

        result = await treatments.popular()

        assert [(t.name, t.appointment_count) for t in result] == [
            ("Root canal", 2),
            ("Cleaning", 1),
        ]
        assert result[0].duration == 90

    @pytest.mark.asyncio
    async def test_respects_limit(
        self, treatments: TreatmentRepository, store: MemoryStoreClient
    ) -> None:
        store.seed(
            "appointments",
            {"treatment_id": 2},
            {"treatment_id": 2},
            {"treatment_id": 1},
            {"treatment_id": 3},
        )

        result = await treatments.popular(limit=1)

        assert [(t.name, t.appointment_count) for t in result] == [("Whitening", 2)]

    @pytest.mark.asyncio
    async def test_no_appointments(self, treatments: TreatmentRepository) -> None:
        assert await treatments.popular() == []

    @pytest.mark.asyncio
    async def test_wraps_store_failure(
        self, treatments: TreatmentRepository, store: MemoryStoreClient
    ) -> None:
        store.select_error = RuntimeError("offline")

        with pytest.raises(DataStoreUnavailableError, match="Counting treatment bookings failed"):
            await treatments.popular()
