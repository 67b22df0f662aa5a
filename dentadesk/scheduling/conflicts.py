import datetime as dt
from collections.abc import Iterable
from typing import TypeVar

from dentadesk.domain.models import Appointment, AppointmentStatus

A = TypeVar("A", bound=Appointment)


def intervals_overlap(
    start: dt.time,
    end: dt.time,
    existing_start: dt.time,
    existing_end: dt.time,
) -> bool:
    """Return True when ``[start, end)`` and ``[existing_start, existing_end)`` intersect.

    Equivalent to the three-way test "start falls in [s, e)", "end falls in
    (s, e]" or "the proposal contains [s, e]" for non-empty intervals.
    Touching intervals (one ends when the other starts) do not overlap.
    """
    return start < existing_end and existing_start < end


def find_conflict(
    candidates: Iterable[A],
    start: dt.time,
    end: dt.time,
    *,
    exclude_id: int | None = None,
) -> A | None:
    """Return the first candidate whose interval overlaps ``[start, end)``.

    Cancelled appointments and ``exclude_id`` are skipped, so an appointment
    never conflicts with itself while being edited.
    """
    for appointment in candidates:
        if appointment.status == AppointmentStatus.CANCELLED:
            continue
        if exclude_id is not None and appointment.id == exclude_id:
            continue
        if intervals_overlap(start, end, appointment.start_time, appointment.end_time):
            return appointment
    return None
