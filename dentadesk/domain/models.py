import datetime as dt
import math
from enum import Enum
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer

T = TypeVar("T")


def _clock(value: dt.time | None) -> str | None:
    return value.strftime("%H:%M") if value is not None else None


class AppointmentStatus(str, Enum):
    """Lifecycle tag of an appointment. No transition rules are enforced."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class Doctor(BaseModel):
    """A doctor of the clinic. ``color`` tints calendar entries."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    specialization: str
    color: str
    email: str | None = None
    phone: str | None = None


class DoctorDraft(BaseModel):
    name: str
    specialization: str
    color: str = "#1E88E5"
    email: str | None = None
    phone: str | None = None


class DoctorChanges(BaseModel):
    name: str | None = None
    specialization: str | None = None
    color: str | None = None
    email: str | None = None
    phone: str | None = None


class Treatment(BaseModel):
    """A billable treatment. ``duration`` is in minutes."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    duration: int = Field(gt=0)
    price: float
    category: str
    description: str | None = None


class TreatmentDraft(BaseModel):
    name: str
    duration: int = Field(gt=0)
    price: float = Field(ge=0)
    category: str
    description: str | None = None


class TreatmentChanges(BaseModel):
    name: str | None = None
    duration: int | None = Field(default=None, gt=0)
    price: float | None = Field(default=None, ge=0)
    category: str | None = None
    description: str | None = None


class Patient(BaseModel):
    """A patient record."""

    model_config = ConfigDict(frozen=True)

    id: str
    first_name: str
    last_name: str
    email: str | None = None
    phone: str = ""
    date_of_birth: dt.date | None = None
    fiscal_code: str | None = None
    address: str = ""
    city: str = ""
    postal_code: str = ""
    province: str = ""
    medical_history: str = ""
    allergies: str | None = None
    medications: str | None = None
    is_smoker: bool = False
    anamnesis: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PatientDraft(BaseModel):
    first_name: str
    last_name: str
    email: str | None = None
    phone: str
    date_of_birth: dt.date
    fiscal_code: str | None = None
    address: str = ""
    city: str = ""
    postal_code: str = ""
    province: str = ""
    medical_history: str = ""
    allergies: str | None = None
    medications: str | None = None
    is_smoker: bool = False
    anamnesis: str = ""


class PatientChanges(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: dt.date | None = None
    fiscal_code: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    province: str | None = None
    medical_history: str | None = None
    allergies: str | None = None
    medications: str | None = None
    is_smoker: bool | None = None
    anamnesis: str | None = None


class Appointment(BaseModel):
    """A booked appointment.

    ``end_time`` is always ``start_time`` plus the treatment's duration and
    is never entered independently.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    patient_id: str
    doctor_id: int
    treatment_id: int
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    notes: str | None = None

    @field_serializer("start_time", "end_time")
    def _serialize_clock(self, value: dt.time) -> str | None:
        return _clock(value)


class AppointmentDetails(Appointment):
    """An appointment with its patient, doctor and treatment rows embedded."""

    patient: Patient | None = None
    doctor: Doctor | None = None
    treatment: Treatment | None = None


class AppointmentDraft(BaseModel):
    """Input for booking. The end time is derived from the treatment."""

    patient_id: str
    doctor_id: int
    treatment_id: int
    date: dt.date
    start_time: dt.time
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    notes: str | None = None

    @field_serializer("start_time")
    def _serialize_clock(self, value: dt.time) -> str | None:
        return _clock(value)


class AppointmentChanges(BaseModel):
    patient_id: str | None = None
    doctor_id: int | None = None
    treatment_id: int | None = None
    date: dt.date | None = None
    start_time: dt.time | None = None
    status: AppointmentStatus | None = None
    notes: str | None = None

    @field_serializer("start_time")
    def _serialize_clock(self, value: dt.time | None) -> str | None:
        return _clock(value)

    @property
    def touches_schedule(self) -> bool:
        """True when the change can move the appointment in time or to another doctor."""
        return any(
            name in self.model_fields_set
            for name in ("doctor_id", "treatment_id", "date", "start_time")
        )


class Invoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    invoice_number: str
    issue_date: dt.date
    due_date: dt.date
    subtotal: float
    tax_rate: float
    tax_amount: float
    total: float
    status: InvoiceStatus = InvoiceStatus.DRAFT
    payment_method: str | None = None
    payment_date: dt.date | None = None
    patient_id: str
    description: str = ""
    notes: str | None = None


class InvoiceDetails(Invoice):
    patient: Patient | None = None


class InvoiceDraft(BaseModel):
    invoice_number: str | None = None
    issue_date: dt.date
    due_date: dt.date
    subtotal: float
    tax_rate: float
    tax_amount: float
    total: float
    status: InvoiceStatus = InvoiceStatus.DRAFT
    payment_method: str | None = None
    payment_date: dt.date | None = None
    patient_id: str
    description: str = ""
    notes: str | None = None


class InvoiceChanges(BaseModel):
    invoice_number: str | None = None
    issue_date: dt.date | None = None
    due_date: dt.date | None = None
    subtotal: float | None = None
    tax_rate: float | None = None
    tax_amount: float | None = None
    total: float | None = None
    status: InvoiceStatus | None = None
    payment_method: str | None = None
    payment_date: dt.date | None = None
    patient_id: str | None = None
    description: str | None = None
    notes: str | None = None


class InvoiceTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: float
    tax_rate: float
    tax_amount: float
    total: float


class Reminder(BaseModel):
    """A free-standing note pinned to a date and time."""

    model_config = ConfigDict(frozen=True)

    id: int
    date: dt.date
    time: dt.time
    title: str
    text: str = ""
    completed: bool = False

    @field_serializer("time")
    def _serialize_clock(self, value: dt.time) -> str | None:
        return _clock(value)


class ReminderDraft(BaseModel):
    date: dt.date
    time: dt.time
    title: str
    text: str = ""
    completed: bool = False

    @field_serializer("time")
    def _serialize_clock(self, value: dt.time) -> str | None:
        return _clock(value)


class ReminderChanges(BaseModel):
    date: dt.date | None = None
    time: dt.time | None = None
    title: str | None = None
    text: str | None = None
    completed: bool | None = None

    @field_serializer("time")
    def _serialize_clock(self, value: dt.time | None) -> str | None:
        return _clock(value)


class CalendarDayCell(BaseModel):
    """One day slot of the month view, in or out of the displayed month."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    in_current_month: bool
    appointments: tuple[AppointmentDetails, ...] = ()


class PageRequest(BaseModel):
    """Offset pagination and ordering options for list queries."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, total: int, request: PageRequest) -> "Pagination":
        return cls(
            total=total,
            page=request.page,
            limit=request.limit,
            total_pages=math.ceil(total / request.limit),
        )


class Page(BaseModel, Generic[T]):
    """A page of records in the ``{records, pagination}`` shape."""

    records: list[T]
    pagination: Pagination


class DeleteCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_delete: bool
    reason: str | None = None
    reference_count: int = 0
