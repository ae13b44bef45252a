import logging
from datetime import timedelta

from occupancy.models import ReservationSession, SessionStatus
from occupancy.errors import (
    OccupancyError,
    ReservationNotFound,
    ReservationInactive,
    InvalidReservationWindow,
    VerificationMismatch,
    AlreadyCheckedIn,
    InvalidStateTransition,
    UpstreamUnavailable,
)
from occupancy.services.session_store import StaleSession
from occupancy.utils.timeparse import hours_between, format_hours

logger = logging.getLogger(__name__)


class SessionLifecycleManager:
    """
    Check-in / check-out state machine.

    pending -> checked_in -> checked_out, and pending|checked_in -> cancelled.
    Live figures (elapsed, remaining, overtime) are computed from the stored
    check-in time and the clock; nothing is persisted until check-out.
    """

    def __init__(self, store, booking_client, space_client, billing, clock, grace_days: int = 0):
        self.store = store
        self.bookings = booking_client
        self.spaces = space_client
        self.billing = billing
        self.clock = clock
        self.grace_days = grace_days

    # --- reservation checks ---

    def _load_reservation(self, reservation_id, deadline=None):
        reservation = self.bookings.get_reservation(reservation_id, deadline=deadline)
        if reservation is None:
            raise ReservationNotFound(f"Reservation {reservation_id} not found.", reservation_id=reservation_id)
        return reservation

    def _check_window(self, reservation):
        if reservation.end_time <= reservation.start_time:
            raise InvalidReservationWindow(
                f"Reservation {reservation.id} ends before it starts "
                f"({reservation.start_time:%H:%M}-{reservation.end_time:%H:%M}).",
                reservation_id=reservation.id,
            )
        today = self.clock.today()
        if abs((reservation.date - today).days) > self.grace_days:
            raise InvalidReservationWindow(
                f"Reservation {reservation.id} is scheduled for {reservation.date.isoformat()}, "
                f"check-in is only possible on that day.",
                reservation_id=reservation.id,
            )

    @staticmethod
    def _check_verification(reservation, verification):
        if not verification:
            return
        if not isinstance(verification, dict):
            raise VerificationMismatch("Verification details are malformed.")
        email = verification.get('email')
        if email and str(email).strip().lower() != (reservation.owner.email or '').strip().lower():
            raise VerificationMismatch("Email does not match the reservation owner.")
        claimed_id = verification.get('reservation_id')
        if claimed_id not in (None, '') and str(claimed_id).strip() != str(reservation.id):
            raise VerificationMismatch("Reservation number does not match.")
        event_name = verification.get('event_name')
        if event_name and str(event_name).strip().lower() != (reservation.event_name or '').strip().lower():
            raise VerificationMismatch("Event name does not match the reservation.")

    def _validate_for_check_in(self, reservation, verification=None):
        if not reservation.is_active:
            raise ReservationInactive(f"Reservation {reservation.id} is not active.", reservation_id=reservation.id)
        self._check_window(reservation)
        self._check_verification(reservation, verification)
        if self.store.get_open_for_reservation(reservation.id):
            raise AlreadyCheckedIn(
                f"Reservation {reservation.id} already has an open session.",
                reservation_id=reservation.id,
            )

    # --- operations ---

    def verify_reservation(self, reservation_id, email=None, event_name=None):
        """Check-in preview: same checks as check_in, no write."""
        reservation = self._load_reservation(reservation_id)
        try:
            self._validate_for_check_in(reservation, {'email': email, 'event_name': event_name})
        except UpstreamUnavailable:
            raise
        except OccupancyError as e:
            return {
                'valid': not isinstance(e, VerificationMismatch),
                'can_check_in': False,
                'error': e.kind,
                'message': e.message,
                'reservation': reservation.to_dict(),
                'user': reservation.owner.to_dict(),
            }
        return {
            'valid': True,
            'can_check_in': True,
            'error': None,
            'message': None,
            'reservation': reservation.to_dict(),
            'user': reservation.owner.to_dict(),
        }

    def check_in(self, reservation_id, actor=None, notes=None, verification=None, deadline=None) -> ReservationSession:
        reservation = self._load_reservation(reservation_id, deadline=deadline)
        self._validate_for_check_in(reservation, verification)

        now = self.clock.now()
        session = ReservationSession(
            reservation_id=reservation.id,
            space_id=reservation.space_id,
            open_reservation_id=reservation.id,
            status=SessionStatus.PENDING,
        )
        session.transition_to(SessionStatus.CHECKED_IN)
        session.check_in_time = now
        session.check_in_notes = notes or ''
        session.checked_in_by = actor
        session.reserved_duration_hours = hours_between(reservation.start, reservation.end)

        self.store.insert_open(session, deadline=deadline)
        logger.info("Checked in reservation %s (session %s) at %s", reservation.id, session.id, now.isoformat())
        return session

    def check_out(self, session_id, actor=None, notes=None, deadline=None) -> ReservationSession:
        session = self.store.get(session_id)
        if session.status == SessionStatus.CHECKED_OUT:
            return session
        if session.status != SessionStatus.CHECKED_IN:
            raise InvalidStateTransition(
                f"Cannot check out a session in status '{session.status}'.",
                session_id=session.id,
                status=session.status,
            )

        space = self.spaces.get_space(session.space_id, deadline=deadline)
        if space is None:
            raise UpstreamUnavailable(f"Space {session.space_id} is unknown to the pricing service.")

        now = max(self.clock.now(), session.check_in_time)
        actual = hours_between(session.check_in_time, now)
        breakdown = self.billing.compute(space, session.reserved_duration_hours, actual)

        session.transition_to(SessionStatus.CHECKED_OUT)
        session.check_out_time = now
        session.check_out_notes = notes or ''
        session.checked_out_by = actor
        session.actual_duration_hours = breakdown.actual_hours
        session.overtime_hours = breakdown.overtime_hours
        session.base_cost = breakdown.base_cost
        session.overtime_cost = breakdown.overtime_cost
        session.total_cost = breakdown.total_cost

        try:
            self.store.save(session, deadline=deadline)
        except StaleSession:
            # Lost the race: report whatever the winner stored.
            session = self.store.refresh(session)
            if session.status == SessionStatus.CHECKED_OUT:
                return session
            raise InvalidStateTransition(
                f"Session {session.id} changed to '{session.status}' during check-out.",
                session_id=session.id,
                status=session.status,
            )

        logger.info(
            "Checked out session %s: %.2fh (overtime %.2fh), total %.2f",
            session.id, session.actual_duration_hours, session.overtime_hours, session.total_cost,
        )
        return session

    def cancel(self, session_id, actor=None, reason=None, deadline=None) -> ReservationSession:
        session = self.store.get(session_id)
        session.transition_to(SessionStatus.CANCELLED)
        session.cancelled_at = self.clock.now()
        session.cancelled_by = actor
        session.cancel_reason = reason or ''
        try:
            self.store.save(session, deadline=deadline)
        except StaleSession:
            session = self.store.refresh(session)
            raise InvalidStateTransition(
                f"Session {session.id} changed to '{session.status}' during cancellation.",
                session_id=session.id,
                status=session.status,
            )
        logger.info("Cancelled session %s", session.id)
        return session

    def live_figures(self, session: ReservationSession) -> dict:
        if session.status != SessionStatus.CHECKED_IN:
            actual = session.actual_duration_hours or 0.0
            reserved = session.reserved_duration_hours or 0.0
            overtime = session.overtime_hours or 0.0
            return {
                'current_duration_hours': actual,
                'remaining_reserved_time_hours': round(max(0.0, reserved - actual), 2),
                'overtime_hours': overtime,
                'is_overtime': overtime > 0,
                'elapsed_time': format_hours(actual),
                'remaining_time': format_hours(max(0.0, reserved - actual)),
            }

        now = max(self.clock.now(), session.check_in_time)
        current = hours_between(session.check_in_time, now)
        reserved = session.reserved_duration_hours or 0.0
        remaining = round(max(0.0, reserved - current), 2)
        overtime = round(max(0.0, current - reserved), 2)
        return {
            'current_duration_hours': current,
            'remaining_reserved_time_hours': remaining,
            'overtime_hours': overtime,
            'is_overtime': overtime > 0,
            'elapsed_time': format_hours((now - session.check_in_time).total_seconds() / 3600),
            'remaining_time': format_hours(
                max(0.0, (session.check_in_time + timedelta(hours=reserved) - now).total_seconds() / 3600)
            ),
        }

    def get_live_status(self, session_id) -> dict:
        session = self.store.get(session_id)
        status = {
            'session_id': session.id,
            'reservation_id': session.reservation_id,
            'status': session.status,
            'check_in_time': session.check_in_time.isoformat() if session.check_in_time else None,
            'reserved_duration_hours': session.reserved_duration_hours,
        }
        status.update(self.live_figures(session))
        return status

    def get_session_for_reservation(self, reservation_id):
        return self.store.get_open_for_reservation(reservation_id) or \
            self.store.get_latest_for_reservation(reservation_id)

    def list_active_sessions(self, space_id=None):
        return self.store.list_checked_in(space_id=space_id)

    def session_history(self, status=None, date_from=None, date_to=None, space_id=None, page=1, page_size=20):
        query = self.store.history_query(status=status, date_from=date_from, date_to=date_to, space_id=space_id)
        sessions = query.all()

        completed = [s for s in sessions if s.status == SessionStatus.CHECKED_OUT]
        total_hours = round(sum(s.actual_duration_hours or 0 for s in completed), 2)
        stats = {
            'total_sessions': len(sessions),
            'total_hours': total_hours,
            'total_overtime': round(sum(s.overtime_hours or 0 for s in completed), 2),
            'average_duration': round(total_hours / len(completed), 2) if completed else 0.0,
        }

        page = max(int(page), 1)
        page_size = max(min(int(page_size), 100), 1)
        start = (page - 1) * page_size
        return {
            'sessions': sessions[start:start + page_size],
            'total': len(sessions),
            'page': page,
            'page_size': page_size,
            'stats': stats,
        }

    def adjust_reserved_baseline(self, reservation):
        """
        After an extension: new reserved budget, same check-in time.

        Runs after the booking service accepted the new end time, so it takes
        no deadline and keeps retrying on version conflicts until the write
        lands or the session is no longer checked in.
        """
        session = self.store.get_open_for_reservation(reservation.id)
        if session is None or session.status != SessionStatus.CHECKED_IN:
            return None
        previous = session.reserved_duration_hours
        reserved = hours_between(reservation.start, reservation.end)
        while True:
            session.reserved_duration_hours = reserved
            try:
                self.store.save(session)
                break
            except StaleSession:
                session = self.store.refresh(session)
                if session.status != SessionStatus.CHECKED_IN:
                    logger.info("Session %s left checked_in before its baseline moved", session.id)
                    return None
        logger.info(
            "Session %s reserved baseline %.2fh -> %.2fh",
            session.id, previous or 0, session.reserved_duration_hours,
        )
        return session
