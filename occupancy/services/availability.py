import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List

from occupancy.utils.timeparse import hours_between

logger = logging.getLogger(__name__)


@dataclass
class ExtensionSlot:
    start: datetime
    end: datetime

    @property
    def duration_hours(self):
        return hours_between(self.start, self.end)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # (StartA < EndB) and (EndA > StartB)
        return self.start < end and self.end > start

    def to_dict(self):
        return {
            'start': self.start.strftime('%H:%M'),
            'end': self.end.strftime('%H:%M'),
            'duration_hours': self.duration_hours,
        }


@dataclass
class SpaceExtensionOption:
    space_id: int
    space_name: str
    capacity: int
    slots: List[ExtensionSlot] = field(default_factory=list)

    def to_dict(self):
        return {
            'space_id': self.space_id,
            'space_name': self.space_name,
            'capacity': self.capacity,
            'slots': [s.to_dict() for s in self.slots],
        }


def find_free_slots(bookings, window_start: datetime, window_end: datetime) -> List[ExtensionSlot]:
    """
    Gaps between bookings inside [window_start, window_end].

    `bookings` is any iterable of objects with `start`/`end` datetimes.
    Both bounds are required: there is no open-ended search.
    """
    if window_start is None or window_end is None:
        raise ValueError("Slot search needs a bounded window.")

    free_slots = []
    current_cursor = window_start
    for b in sorted(bookings, key=lambda r: (r.start, r.end)):
        if b.end <= current_cursor:
            continue
        if b.start >= window_end:
            break
        if b.start > current_cursor:
            # Found a gap
            free_slots.append(ExtensionSlot(current_cursor, b.start))
        current_cursor = max(current_cursor, b.end)
        if current_cursor >= window_end:
            break

    # Final gap
    if current_cursor < window_end:
        free_slots.append(ExtensionSlot(current_cursor, window_end))
    return free_slots


class AvailabilityResolver:
    """
    Read-only search of extension slots. Results are advisory: the
    ExtensionCommitter re-validates against fresh data before writing.
    """

    def __init__(self, booking_client, space_client, clock,
                 opening_hour: int = 8, closing_hour: int = 20, max_lookahead_hours=None):
        if closing_hour <= opening_hour:
            raise ValueError("Closing hour must be after opening hour.")
        self.bookings = booking_client
        self.spaces = space_client
        self.clock = clock
        self.opening_hour = opening_hour
        self.closing_hour = closing_hour
        self.max_lookahead_hours = max_lookahead_hours

    def opening(self, on_date) -> datetime:
        return datetime.combine(on_date, time(self.opening_hour))

    def closing(self, on_date) -> datetime:
        if self.closing_hour >= 24:
            return datetime.combine(on_date, time.min) + timedelta(days=1)
        return datetime.combine(on_date, time(self.closing_hour))

    def search_bound(self, reservation) -> datetime:
        bound = self.closing(reservation.date)
        if self.max_lookahead_hours is not None:
            bound = min(bound, reservation.end + timedelta(hours=self.max_lookahead_hours))
        return bound

    def same_space_slots(self, reservation, existing) -> List[ExtensionSlot]:
        others = [r for r in existing
                  if r.id != reservation.id and r.is_active and r.space_id == reservation.space_id
                  and r.date == reservation.date]
        start = max(reservation.end, self.opening(reservation.date))
        return find_free_slots(others, start, self.search_bound(reservation))

    def other_space_start(self, reservation) -> datetime:
        start = max(reservation.end, self.opening(reservation.date))
        now = self.clock.now()
        if now.date() == reservation.date and now > start:
            start = now.replace(second=0, microsecond=0)
        return start

    def find_extension_options(self, reservation, existing_reservations=None) -> dict:
        """
        Free slots after the reservation's end, in its own space and in every
        other active space that fits its attendees.

        `existing_reservations` may carry the day's bookings for the
        reservation's space; other spaces are read from the booking service.
        """
        if existing_reservations is None:
            existing_reservations = self.bookings.list_reservations(reservation.space_id, reservation.date)
        same_space = self.same_space_slots(reservation, existing_reservations)

        bound = self.search_bound(reservation)
        start = self.other_space_start(reservation)
        other_spaces = []
        if start < bound:
            candidates = [s for s in self.spaces.list_spaces()
                          if s.id != reservation.space_id and s.is_active
                          and s.capacity >= reservation.attendees_count]
            for space in candidates:
                bookings = [r for r in self.bookings.list_reservations(space.id, reservation.date) if r.is_active]
                slots = find_free_slots(bookings, start, bound)
                if slots:
                    other_spaces.append(SpaceExtensionOption(space.id, space.name, space.capacity, slots))

        # Best fit first, then soonest, then id for a stable order
        other_spaces.sort(key=lambda o: (
            o.capacity - reservation.attendees_count,
            o.slots[0].start,
            o.space_id,
        ))

        logger.debug(
            "Extension options for reservation %s: %d same-space slot(s), %d other space(s)",
            reservation.id, len(same_space), len(other_spaces),
        )
        return {'same_space': same_space, 'other_spaces': other_spaces}

    @staticmethod
    def serialize(options: dict) -> dict:
        return {
            'same_space': [s.to_dict() for s in options['same_space']],
            'other_spaces': [o.to_dict() for o in options['other_spaces']],
        }
