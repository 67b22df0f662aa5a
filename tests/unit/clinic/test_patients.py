import datetime as dt

import pytest

from dentadesk.clinic.patients import PatientFilters, PatientRepository
from dentadesk.domain.exceptions import DeleteBlockedError, RecordNotFoundError
from dentadesk.domain.models import PageRequest, PatientChanges, PatientDraft
from dentadesk.store.adapters.memory import MemoryStoreClient
from dentadesk.store.ports import Row


@pytest.fixture
def registry(store: MemoryStoreClient, patient: Row) -> list[Row]:
    return [patient] + store.seed(
        "patients",
        {
            "first_name": "Marco",
            "last_name": "Rossi",
            "email": "marco@example.com",
            "city": "Milano",
            "is_smoker": True,
            "allergies": "Penicillin",
            "created_at": "2024-05-10T09:00:00+00:00",
        },
        {
            "first_name": "Anna",
            "last_name": "Esposito",
            "city": "Roma",
            "created_at": "2024-04-28T09:00:00+00:00",
        },
    )


@pytest.mark.usefixtures("registry")
class TestFind:
    @pytest.mark.asyncio
    async def test_sorted_by_last_name(self, patients: PatientRepository) -> None:
        page = await patients.find()

        assert [p.last_name for p in page.records] == ["Bianchi", "Esposito", "Rossi"]
        assert page.pagination.limit == 20

    @pytest.mark.asyncio
    async def test_search_covers_email(self, patients: PatientRepository) -> None:
        page = await patients.find(PatientFilters(search="MARCO@"))

        assert [p.first_name for p in page.records] == ["Marco"]

    @pytest.mark.asyncio
    async def test_search_term_sent_as_typed(
        self, patients: PatientRepository, store: MemoryStoreClient
    ) -> None:
        await patients.find(PatientFilters(search="McRossi"))

        group = store.queries[-1].filters[0]
        assert {f.value for f in group.filters} == {"%McRossi%"}

    @pytest.mark.asyncio
    async def test_city_is_a_substring_match(self, patients: PatientRepository) -> None:
        page = await patients.find(PatientFilters(city="rom"))

        assert {p.last_name for p in page.records} == {"Bianchi", "Esposito"}

    @pytest.mark.asyncio
    async def test_allergies_flag(self, patients: PatientRepository) -> None:
        with_allergies = await patients.find(PatientFilters(has_allergies=True))
        without = await patients.find(PatientFilters(has_allergies=False))

        assert [p.last_name for p in with_allergies.records] == ["Rossi"]
        assert len(without.records) == 2

    @pytest.mark.asyncio
    async def test_custom_sort_and_paging(self, patients: PatientRepository) -> None:
        page = await patients.find(
            page=PageRequest(page=2, limit=1, sort_by="first_name", sort_order="desc")
        )

        assert [p.first_name for p in page.records] == ["Giulia"]
        assert page.pagination.total_pages == 3


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_assigns_uuid(self, patients: PatientRepository) -> None:
        created = await patients.create(
            PatientDraft(
                first_name="Luca",
                last_name="Ferrari",
                phone="+39 320 0000000",
                date_of_birth=dt.date(1985, 1, 31),
            )
        )

        assert len(created.id) == 36
        assert created.date_of_birth == dt.date(1985, 1, 31)

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("registry")
    async def test_update(self, patients: PatientRepository, patient: Row) -> None:
        updated = await patients.update(patient["id"], PatientChanges(city="Napoli"))

        assert updated.city == "Napoli"
        assert updated.first_name == "Giulia"

    @pytest.mark.asyncio
    async def test_update_missing(self, patients: PatientRepository) -> None:
        with pytest.raises(RecordNotFoundError):
            await patients.update("missing", PatientChanges(city="Napoli"))


@pytest.mark.usefixtures("registry")
class TestDelete:
    @pytest.mark.asyncio
    async def test_blocked_by_appointments(
        self, patients: PatientRepository, store: MemoryStoreClient, patient: Row
    ) -> None:
        store.seed("appointments", {"patient_id": patient["id"]})

        check = await patients.can_delete(patient["id"])

        assert check.can_delete is False
        assert check.reason == "The patient has 1 associated appointments"

    @pytest.mark.asyncio
    async def test_blocked_by_invoices(
        self, patients: PatientRepository, store: MemoryStoreClient, patient: Row
    ) -> None:
        store.seed("invoices", {"patient_id": patient["id"]})

        with pytest.raises(DeleteBlockedError, match="associated invoices"):
            await patients.delete(patient["id"])

    @pytest.mark.asyncio
    async def test_deletes_unreferenced(self, patients: PatientRepository, patient: Row) -> None:
        await patients.delete(patient["id"])

        assert await patients.get(patient["id"]) is None


@pytest.mark.usefixtures("registry")
class TestLookups:
    @pytest.mark.asyncio
    async def test_search(self, patients: PatientRepository) -> None:
        result = await patients.search("bnc")

        assert [p.last_name for p in result] == ["Bianchi"]

    @pytest.mark.asyncio
    async def test_email_taken(self, patients: PatientRepository, patient: Row) -> None:
        assert await patients.is_email_taken("giulia@example.com") is True
        assert (
            await patients.is_email_taken("giulia@example.com", exclude_id=patient["id"]) is False
        )
        assert await patients.is_email_taken("nobody@example.com") is False

    @pytest.mark.asyncio
    async def test_fiscal_code_taken(self, patients: PatientRepository) -> None:
        assert await patients.is_fiscal_code_taken("BNCGLI90D52H501X") is True

    @pytest.mark.asyncio
    async def test_stats(self, patients: PatientRepository) -> None:
        stats = await patients.stats(dt.date(2024, 5, 20))

        assert stats.total_patients == 3
        assert stats.new_patients_this_month == 1
        assert stats.smokers_count == 1
        assert stats.patients_with_allergies == 1
        assert stats.smokers_percentage == pytest.approx(100 / 3)
