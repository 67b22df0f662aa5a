import datetime as dt


class ClinicError(Exception):
    """Base exception for all clinic data errors."""


class DataStoreUnavailableError(ClinicError):
    """Raised when the data store is unreachable or rejects a request."""


class RecordNotFoundError(ClinicError):
    """Raised when a write targets a row that does not exist."""

    def __init__(self, table: str, record_id: int | str) -> None:
        self.table = table
        self.record_id = record_id
        super().__init__(f"No {table} row with id {record_id}")


class InvalidAppointmentError(ClinicError):
    """Raised when an appointment cannot be scheduled as requested."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid appointment: {reason}")


class AppointmentConflictError(ClinicError):
    """Raised when a doctor already has an appointment in the requested interval."""

    def __init__(self, start_time: dt.time, end_time: dt.time, appointment_id: int | None = None) -> None:
        self.start_time = start_time
        self.end_time = end_time
        self.appointment_id = appointment_id
        super().__init__(
            "Time conflict: the doctor already has an appointment from "
            f"{start_time.strftime('%H:%M')} to {end_time.strftime('%H:%M')}"
        )


class DeleteBlockedError(ClinicError):
    """Raised when a delete would orphan rows that reference the record."""

    def __init__(self, reason: str, reference_count: int = 0) -> None:
        self.reason = reason
        self.reference_count = reference_count
        super().__init__(f"Cannot delete: {reason}")
