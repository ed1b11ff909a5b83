from datetime import UTC, date, datetime, time, timedelta

from app.core.errors import ValidationError


def utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def parse_hhmm(value: str) -> time:
    """Parse an "HH:MM" wall-clock string."""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")


def format_hhmm(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def at_time(d: date, hhmm: str) -> datetime:
    return datetime.combine(d, parse_hhmm(hhmm))


def add_minutes_hhmm(hhmm: str, minutes: int) -> str:
    """Shift an HH:MM time; the result must stay on the same day."""
    base = datetime.combine(date.min, parse_hhmm(hhmm))
    shifted = base + timedelta(minutes=minutes)
    if shifted.date() != date.min:
        raise ValidationError(f"{hhmm} plus {minutes} minutes runs past midnight")
    return format_hhmm(shifted.time())


def day_bounds(d: date) -> tuple[datetime, datetime]:
    start = datetime(d.year, d.month, d.day, 0, 0, 0)
    return start, start + timedelta(days=1)
