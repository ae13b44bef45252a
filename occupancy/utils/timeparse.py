from datetime import date, datetime, time
import time as _time

from occupancy.errors import InvalidReservationWindow, DeadlineExceeded


def parse_time_of_day(value) -> time:
    """Normalize "HH:MM", "HH:MM:SS", ISO datetimes or time objects to a time."""
    if value is None:
        raise InvalidReservationWindow("Missing time of day.")
    if isinstance(value, datetime):
        return value.time().replace(microsecond=0)
    if isinstance(value, time):
        return value.replace(microsecond=0)

    text = str(value).strip()
    try:
        if 'T' in text:
            return datetime.fromisoformat(text).time().replace(microsecond=0)
        for fmt in ("%H:%M:%S", "%H:%M"):
            try:
                return datetime.strptime(text, fmt).time()
            except ValueError:
                continue
    except ValueError:
        pass
    raise InvalidReservationWindow(f"Unrecognized time of day: {value!r}")


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        text = str(value).strip()
        if 'T' in text:
            return datetime.fromisoformat(text).date()
        return datetime.strptime(text, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise InvalidReservationWindow(f"Unrecognized date: {value!r}")


def parse_slot_bound(value, on_date: date) -> datetime:
    """A slot bound may come as a full datetime or as a time on the reservation date."""
    if isinstance(value, datetime):
        return value.replace(microsecond=0)
    if isinstance(value, str) and 'T' in value:
        try:
            return datetime.fromisoformat(value).replace(tzinfo=None, microsecond=0)
        except ValueError:
            raise InvalidReservationWindow(f"Unrecognized datetime: {value!r}")
    return datetime.combine(on_date, parse_time_of_day(value))


def hours_between(start: datetime, end: datetime) -> float:
    return round((end - start).total_seconds() / 3600, 2)


def format_hours(hours: float) -> str:
    """0.9166 -> '00:55:00'."""
    total = int(round(max(hours, 0) * 3600))
    h, rest = divmod(total, 3600)
    m, s = divmod(rest, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


# Deadlines are absolute time.monotonic() values supplied by the caller.

def remaining_seconds(deadline):
    if deadline is None:
        return None
    return deadline - _time.monotonic()


def ensure_before(deadline, what: str):
    remaining = remaining_seconds(deadline)
    if remaining is not None and remaining <= 0:
        raise DeadlineExceeded(f"Deadline exceeded before {what}.")
