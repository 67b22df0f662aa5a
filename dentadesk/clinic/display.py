import datetime as dt

from dentadesk.domain.models import AppointmentDetails, AppointmentStatus, Reminder
from dentadesk.scheduling.time_helpers import format_clock

DEFAULT_COLOR = "#1E88E5"

STATUS_COLORS: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: "#4CAF50",
    AppointmentStatus.PENDING: "#FFC107",
    AppointmentStatus.CANCELLED: "#F44336",
    AppointmentStatus.COMPLETED: "#9E9E9E",
}

STATUS_BADGES: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: "success",
    AppointmentStatus.PENDING: "warning",
    AppointmentStatus.CANCELLED: "failure",
    AppointmentStatus.COMPLETED: "info",
}


def format_interval(start: dt.time, end: dt.time) -> str:
    """``09:00 - 09:30``"""
    return f"{format_clock(start)} - {format_clock(end)}"


def appointment_title(appointment: AppointmentDetails) -> str:
    """``"<patient> - <treatment>"``, with placeholders for missing embeds."""
    patient = appointment.patient
    if patient and patient.first_name and patient.last_name:
        patient_name = patient.full_name
    else:
        patient_name = (patient.first_name if patient else "") or "Patient"
    treatment_name = appointment.treatment.name if appointment.treatment else "Treatment"
    return f"{patient_name} - {treatment_name}"


def appointment_color(appointment: AppointmentDetails) -> str:
    """The doctor's color, else a color for the appointment status."""
    if appointment.doctor and appointment.doctor.color:
        return appointment.doctor.color
    return STATUS_COLORS.get(appointment.status, DEFAULT_COLOR)


def status_badge(status: AppointmentStatus | str) -> str:
    try:
        return STATUS_BADGES[AppointmentStatus(status)]
    except ValueError:
        return "default"


def relative_day_label(date: dt.date, today: dt.date) -> str:
    if date == today:
        return "Today"
    if date == today + dt.timedelta(days=1):
        return "Tomorrow"
    return f"{date.strftime('%A')}, {date.strftime('%B')} {date.day}, {date.year}"


def reminder_label(reminder: Reminder, today: dt.date) -> str:
    return f"{relative_day_label(reminder.date, today)} at {format_clock(reminder.time)}"
