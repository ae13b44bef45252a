import logging
import threading
from contextlib import contextmanager

from occupancy.clients.http import UpstreamConflict
from occupancy.errors import (
    ReservationNotFound,
    ReservationInactive,
    InvalidReservationWindow,
    AvailabilityConflict,
    UpstreamUnavailable,
)
from occupancy.services.availability import ExtensionSlot
from occupancy.utils.timeparse import parse_slot_bound, ensure_before

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One lock per key; commits on different spaces/dates never wait on each other."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def __len__(self):
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key):
        # Entries are reference counted and dropped once no thread holds or waits on them.
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class ExtensionCommitter:
    """
    Write side of an extension: re-reads the day's bookings, re-validates the
    chosen slot, then issues a conditional write to the booking service.
    Conflicts are returned to the caller, never retried here.
    """

    def __init__(self, booking_client, space_client, resolver, lifecycle):
        self.bookings = booking_client
        self.spaces = space_client
        self.resolver = resolver
        self.lifecycle = lifecycle
        self.locks = KeyedLocks()

    def _conflict(self, reservation_id, reason):
        logger.warning("Extension of reservation %s rejected: %s", reservation_id, reason)
        return AvailabilityConflict(
            f"{reason} Search extension options again.",
            reservation_id=reservation_id,
        )

    def _parse_slot(self, reservation, chosen_slot) -> ExtensionSlot:
        if isinstance(chosen_slot, ExtensionSlot):
            slot = chosen_slot
        else:
            slot = ExtensionSlot(
                parse_slot_bound(chosen_slot.get('start'), reservation.date),
                parse_slot_bound(chosen_slot.get('end'), reservation.date),
            )
        if slot.end <= slot.start:
            raise InvalidReservationWindow("Slot end must be after its start.")
        if slot.start.date() != reservation.date or slot.end.date() != reservation.date:
            raise InvalidReservationWindow("An extension must stay on the reservation date.")
        return slot

    def _check_group_not_elsewhere(self, reservation, window, deadline):
        """The same owner and event must not already continue in another space over the window."""
        for space in self.spaces.list_spaces(deadline=deadline):
            if space.id == reservation.space_id:
                continue
            for other in self.bookings.list_reservations(space.id, reservation.date, deadline=deadline):
                if (other.id != reservation.id and other.is_active
                        and other.owner.id == reservation.owner.id
                        and other.event_name == reservation.event_name
                        and window.overlaps(other.start, other.end)):
                    raise self._conflict(
                        reservation.id,
                        f"This booking already continues in {space.name} "
                        f"from {other.start_time:%H:%M} to {other.end_time:%H:%M}.",
                    )

    def commit(self, reservation_id, chosen_slot, deadline=None) -> dict:
        reservation = self.bookings.get_reservation(reservation_id, deadline=deadline)
        if reservation is None:
            raise ReservationNotFound(f"Reservation {reservation_id} not found.", reservation_id=reservation_id)
        if not reservation.is_active:
            raise ReservationInactive(f"Reservation {reservation_id} is not active.", reservation_id=reservation_id)

        slot = self._parse_slot(reservation, chosen_slot)
        target_space = chosen_slot.get('space_id') if isinstance(chosen_slot, dict) else None
        target_space = int(target_space) if target_space not in (None, '') else reservation.space_id

        # Reservation lock first, then space lock: same order everywhere.
        with self.locks.hold(('reservation', reservation.id)), \
                self.locks.hold((target_space, reservation.date)):
            if target_space == reservation.space_id:
                return self._extend_in_place(reservation_id, slot, deadline)
            return self._extend_elsewhere(reservation_id, target_space, slot, deadline)

    def _extend_in_place(self, reservation_id, slot, deadline):
        # Freshness check: everything is re-read under the lock.
        reservation = self.bookings.get_reservation(reservation_id, deadline=deadline)
        if reservation is None or not reservation.is_active:
            raise self._conflict(reservation_id, "Reservation is no longer active.")
        if slot.start < reservation.end:
            raise self._conflict(reservation_id, "Reservation already ends after the chosen slot starts.")
        if slot.end > self.resolver.search_bound(reservation):
            raise self._conflict(reservation_id, "Chosen slot runs past closing time.")

        others = self.bookings.list_reservations(reservation.space_id, reservation.date, deadline=deadline)
        extension = ExtensionSlot(reservation.end, slot.end)
        for other in others:
            if other.id != reservation.id and other.is_active and extension.overlaps(other.start, other.end):
                raise self._conflict(reservation_id, f"Space is booked from {other.start_time:%H:%M} to {other.end_time:%H:%M}.")
        self._check_group_not_elsewhere(reservation, extension, deadline)

        ensure_before(deadline, "extension write")
        expected_end = reservation.end_time
        try:
            updated = self.bookings.update_end_time(
                reservation.id, slot.end.time(), expected_end, deadline=deadline
            )
        except UpstreamConflict:
            raise self._conflict(reservation_id, "The booking service refused the new end time.")
        except UpstreamUnavailable as e:
            if not e.outcome_unknown:
                raise
            updated = self._reconcile_in_place(reservation, slot)

        session = self.lifecycle.adjust_reserved_baseline(updated)
        logger.info(
            "Reservation %s extended %s -> %s", reservation.id,
            expected_end.strftime('%H:%M'), updated.end_time.strftime('%H:%M'),
        )
        return {
            'reservation': updated.to_dict(),
            'extended_in_place': True,
            'session': session.to_dict() if session else None,
        }

    def _reconcile_in_place(self, reservation, slot):
        logger.warning("Extension write for reservation %s timed out; reconciling", reservation.id)
        try:
            current = self.bookings.get_reservation(reservation.id)
        except UpstreamUnavailable:
            raise UpstreamUnavailable(
                f"Extension of reservation {reservation.id} has an unknown outcome.",
                outcome_unknown=True,
                reservation_id=reservation.id,
            )
        if current is not None and current.end_time == slot.end.time():
            return current
        raise UpstreamUnavailable(
            f"Extension of reservation {reservation.id} was not applied by the booking service.",
            reservation_id=reservation.id,
        )

    def _extend_elsewhere(self, reservation_id, space_id, slot, deadline):
        reservation = self.bookings.get_reservation(reservation_id, deadline=deadline)
        if reservation is None or not reservation.is_active:
            raise self._conflict(reservation_id, "Reservation is no longer active.")
        if slot.start < reservation.end:
            raise self._conflict(reservation_id, "Chosen slot starts before the reservation ends.")
        if slot.end > self.resolver.search_bound(reservation):
            raise self._conflict(reservation_id, "Chosen slot runs past closing time.")

        space = self.spaces.get_space(space_id, deadline=deadline)
        if space is None or not space.is_active:
            raise self._conflict(reservation_id, f"Space {space_id} is not available.")
        if space.capacity < reservation.attendees_count:
            raise self._conflict(reservation_id, f"Space {space.name} is too small for {reservation.attendees_count} attendees.")

        for other in self.bookings.list_reservations(space_id, reservation.date, deadline=deadline):
            if other.is_active and slot.overlaps(other.start, other.end):
                raise self._conflict(reservation_id, f"{space.name} is booked from {other.start_time:%H:%M} to {other.end_time:%H:%M}.")
        self._check_group_not_elsewhere(reservation, slot, deadline)

        ensure_before(deadline, "extension write")
        try:
            created = self.bookings.create_reservation(
                reservation, space_id, slot.start.time(), slot.end.time(), deadline=deadline
            )
        except UpstreamConflict:
            raise self._conflict(reservation_id, f"{space.name} was booked in the meantime.")
        except UpstreamUnavailable as e:
            if not e.outcome_unknown:
                raise
            created = self._reconcile_elsewhere(reservation, space_id, slot)

        logger.info(
            "Reservation %s continued in space %s as reservation %s (%s-%s)",
            reservation.id, space_id, created.id, slot.start.strftime('%H:%M'), slot.end.strftime('%H:%M'),
        )
        return {
            'reservation': created.to_dict(),
            'extended_in_place': False,
            'extends_reservation': reservation.id,
            'session': None,
        }

    def _reconcile_elsewhere(self, reservation, space_id, slot):
        logger.warning("Follow-on booking for reservation %s timed out; reconciling", reservation.id)
        try:
            bookings = self.bookings.list_reservations(space_id, reservation.date)
        except UpstreamUnavailable:
            raise UpstreamUnavailable(
                f"Follow-on booking for reservation {reservation.id} has an unknown outcome.",
                outcome_unknown=True,
                reservation_id=reservation.id,
            )
        for booking in bookings:
            if (booking.start == slot.start and booking.end == slot.end
                    and booking.owner.id == reservation.owner.id
                    and booking.event_name == reservation.event_name):
                return booking
        raise UpstreamUnavailable(
            f"Follow-on booking for reservation {reservation.id} was not created by the booking service.",
            reservation_id=reservation.id,
        )
