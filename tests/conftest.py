import pytest

from dentadesk.clinic.appointments import AppointmentRepository
from dentadesk.clinic.doctors import DoctorRepository
from dentadesk.clinic.invoices import InvoiceRepository
from dentadesk.clinic.patients import PatientRepository
from dentadesk.clinic.reminders import ReminderRepository
from dentadesk.clinic.treatments import TreatmentRepository
from dentadesk.store.adapters.memory import MemoryStoreClient
from dentadesk.store.ports import Row

PATIENT_ID = "6f1c2d3e-0000-4000-8000-000000000001"


@pytest.fixture
def store() -> MemoryStoreClient:
    return MemoryStoreClient()


@pytest.fixture
def doctor(store: MemoryStoreClient) -> Row:
    return store.seed(
        "doctors",
        {"id": 1, "name": "Dr. Rossi", "specialization": "Orthodontics", "color": "#8E24AA"},
    )[0]


@pytest.fixture
def treatment(store: MemoryStoreClient) -> Row:
    return store.seed(
        "treatments",
        {"id": 1, "name": "Cleaning", "duration": 30, "price": 80.0, "category": "Hygiene"},
    )[0]


@pytest.fixture
def patient(store: MemoryStoreClient) -> Row:
    return store.seed(
        "patients",
        {
            "id": PATIENT_ID,
            "first_name": "Giulia",
            "last_name": "Bianchi",
            "email": "giulia@example.com",
            "phone": "+39 333 1234567",
            "date_of_birth": "1990-04-12",
            "fiscal_code": "BNCGLI90D52H501X",
            "city": "Roma",
        },
    )[0]


@pytest.fixture
def appointments(store: MemoryStoreClient) -> AppointmentRepository:
    return AppointmentRepository(store)


@pytest.fixture
def doctors(store: MemoryStoreClient) -> DoctorRepository:
    return DoctorRepository(store)


@pytest.fixture
def treatments(store: MemoryStoreClient) -> TreatmentRepository:
    return TreatmentRepository(store)


@pytest.fixture
def patients(store: MemoryStoreClient) -> PatientRepository:
    return PatientRepository(store)


@pytest.fixture
def invoices(store: MemoryStoreClient) -> InvoiceRepository:
    return InvoiceRepository(store)


@pytest.fixture
def reminders(store: MemoryStoreClient) -> ReminderRepository:
    return ReminderRepository(store)
