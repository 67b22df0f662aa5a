import datetime as dt
from zoneinfo import ZoneInfo

from loguru import logger

MINUTES_PER_DAY = 24 * 60


def _to_minutes(value: dt.time) -> int:
    return value.hour * 60 + value.minute


def parse_clock(text: str) -> dt.time:
    """Parse ``"9:05"``, ``"09:05"`` or ``"09:05:00"`` into a ``dt.time``."""
    parts = text.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time '{text}'. Expected HH:MM.")
    hours, minutes = int(parts[0]), int(parts[1])
    return dt.time(hours, minutes)


def format_clock(value: dt.time) -> str:
    """Format a time as zero-padded 24-hour ``HH:MM``."""
    return value.strftime("%H:%M")


def compute_end_time(start: dt.time, duration_minutes: int) -> dt.time:
    """Return ``start`` shifted by ``duration_minutes``.

    ``compute_end_time(time(9, 40), 90)`` is ``time(11, 10)``.  Appointments
    never span midnight, so a result past 23:59 raises ``ValueError``.
    """
    if duration_minutes <= 0:
        raise ValueError(f"Duration must be positive, got {duration_minutes}")
    end = _to_minutes(start) + duration_minutes
    if end >= MINUTES_PER_DAY:
        raise ValueError(
            f"An appointment starting at {format_clock(start)} lasting "
            f"{duration_minutes} min would end after midnight"
        )
    return dt.time(end // 60, end % 60)


def duration_minutes(start: dt.time, end: dt.time) -> int:
    return _to_minutes(end) - _to_minutes(start)


def resolve_timezone(name: str) -> dt.tzinfo:
    """Resolve a timezone name, falling back to UTC if invalid."""
    try:
        return ZoneInfo(name)
    except Exception:
        logger.warning("Invalid clinic timezone '{}'; defaulting to UTC", name)
        return dt.timezone.utc


def clinic_now(tz: dt.tzinfo) -> dt.datetime:
    return dt.datetime.now(tz)


def clinic_today(tz: dt.tzinfo) -> dt.date:
    return clinic_now(tz).date()
