import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from occupancy.extensions import db
from occupancy.models import ReservationSession, SessionStatus
from occupancy.errors import AlreadyCheckedIn, SessionNotFound
from occupancy.utils.timeparse import ensure_before

logger = logging.getLogger(__name__)


class StaleSession(Exception):
    """Another writer moved the session's version between read and write."""


class SessionStore:
    """
    Owner of ReservationSession rows.

    Writes are compare-and-swap: the UPDATE carries the version that was read
    (SQLAlchemy version_id_col) and the open_reservation_id unique column
    rejects a second open session. The transaction is the unit of rollback.
    """

    def get(self, session_id) -> ReservationSession:
        session = db.session.get(ReservationSession, session_id)
        if not session:
            raise SessionNotFound(f"Session {session_id} not found.", session_id=session_id)
        return session

    def refresh(self, session: ReservationSession) -> ReservationSession:
        db.session.expire(session)
        return self.get(session.id)

    def get_open_for_reservation(self, reservation_id):
        return ReservationSession.query.filter_by(open_reservation_id=reservation_id).first()

    def get_latest_for_reservation(self, reservation_id):
        return ReservationSession.query.filter_by(reservation_id=reservation_id) \
            .order_by(ReservationSession.created_at.desc(), ReservationSession.id.desc()).first()

    def insert_open(self, session: ReservationSession, deadline=None) -> ReservationSession:
        """Insert a new open session; a concurrent open session for the same reservation wins."""
        try:
            ensure_before(deadline, "check-in write")
            db.session.add(session)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.warning("Concurrent check-in rejected for reservation %s", session.reservation_id)
            raise AlreadyCheckedIn(
                f"Reservation {session.reservation_id} already has an open session.",
                reservation_id=session.reservation_id,
            )
        except Exception:
            db.session.rollback()
            raise
        return session

    def save(self, session: ReservationSession, deadline=None) -> ReservationSession:
        """Flush pending changes on a loaded session. Raises StaleSession on version mismatch."""
        try:
            ensure_before(deadline, "session write")
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            logger.warning("Version conflict on session %s", session.id)
            raise StaleSession(session.id)
        except Exception:
            db.session.rollback()
            raise
        return session

    def list_checked_in(self, space_id=None):
        query = ReservationSession.query.filter_by(status=SessionStatus.CHECKED_IN)
        if space_id is not None:
            query = query.filter_by(space_id=space_id)
        return query.order_by(ReservationSession.check_in_time.asc()).all()

    def history_query(self, status=None, date_from=None, date_to=None, space_id=None):
        query = ReservationSession.query
        if status:
            query = query.filter(ReservationSession.status == status)
        if space_id is not None:
            query = query.filter(ReservationSession.space_id == space_id)
        if date_from:
            query = query.filter(ReservationSession.check_in_time >= datetime.combine(date_from, datetime.min.time()))
        if date_to:
            query = query.filter(ReservationSession.check_in_time <= datetime.combine(date_to, datetime.max.time()))
        return query.order_by(ReservationSession.check_in_time.desc(), ReservationSession.id.desc())
