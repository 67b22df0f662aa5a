from dataclasses import dataclass

from loguru import logger

from dentadesk.clinic.appointments import AppointmentRepository
from dentadesk.clinic.calendar_view import CalendarService
from dentadesk.clinic.doctors import DoctorRepository
from dentadesk.clinic.invoices import InvoiceRepository
from dentadesk.clinic.patients import PatientRepository
from dentadesk.clinic.reminders import ReminderRepository
from dentadesk.clinic.treatments import TreatmentRepository
from dentadesk.config import AppConfig
from dentadesk.store.factory import build_store_client
from dentadesk.store.ports import StoreClientProtocol


@dataclass(frozen=True)
class Clinic:
    """Every repository of the clinic, sharing one store client."""

    client: StoreClientProtocol
    appointments: AppointmentRepository
    doctors: DoctorRepository
    treatments: TreatmentRepository
    patients: PatientRepository
    invoices: InvoiceRepository
    reminders: ReminderRepository
    calendar: CalendarService

    async def health_check(self) -> bool:
        return await self.client.health_check()

    async def close(self) -> None:
        await self.client.close()


def clinic_for(client: StoreClientProtocol, *, default_tax_rate: float = 22.0) -> Clinic:
    """Wire all repositories around an existing store client."""
    appointments = AppointmentRepository(client)
    return Clinic(
        client=client,
        appointments=appointments,
        doctors=DoctorRepository(client),
        treatments=TreatmentRepository(client),
        patients=PatientRepository(client),
        invoices=InvoiceRepository(client, default_tax_rate=default_tax_rate),
        reminders=ReminderRepository(client),
        calendar=CalendarService(appointments),
    )


def build_clinic(config: AppConfig) -> Clinic:
    """Build the clinic repositories on the store selected by config."""
    logger.info("Building clinic services")
    return clinic_for(build_store_client(config), default_tax_rate=config.default_tax_rate)
