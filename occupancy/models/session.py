from occupancy.extensions import db
from occupancy.errors import InvalidStateTransition
from datetime import datetime


class SessionStatus:
    PENDING = 'pending'
    CHECKED_IN = 'checked_in'
    CHECKED_OUT = 'checked_out'
    CANCELLED = 'cancelled'

    OPEN = (PENDING, CHECKED_IN)
    TERMINAL = (CHECKED_OUT, CANCELLED)


ALLOWED_TRANSITIONS = {
    SessionStatus.PENDING: {SessionStatus.CHECKED_IN, SessionStatus.CANCELLED},
    SessionStatus.CHECKED_IN: {SessionStatus.CHECKED_OUT, SessionStatus.CANCELLED},
    SessionStatus.CHECKED_OUT: set(),
    SessionStatus.CANCELLED: set(),
}


class ReservationSession(db.Model):
    __tablename__ = 'reservation_sessions'

    id = db.Column(db.Integer, primary_key=True)
    reservation_id = db.Column(db.Integer, nullable=False, index=True)
    space_id = db.Column(db.Integer, nullable=True, index=True)

    # Equals reservation_id while the session is open, NULL once terminal.
    # The unique constraint is what makes a second concurrent check-in fail.
    open_reservation_id = db.Column(db.Integer, unique=True, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=SessionStatus.PENDING, index=True)

    check_in_time = db.Column(db.DateTime, nullable=True, index=True)
    check_in_notes = db.Column(db.Text, default='')
    checked_in_by = db.Column(db.Integer, nullable=True)

    check_out_time = db.Column(db.DateTime, nullable=True)
    check_out_notes = db.Column(db.Text, default='')
    checked_out_by = db.Column(db.Integer, nullable=True)

    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, nullable=True)
    cancel_reason = db.Column(db.Text, default='')

    reserved_duration_hours = db.Column(db.Float, nullable=True)
    actual_duration_hours = db.Column(db.Float, nullable=True)
    overtime_hours = db.Column(db.Float, nullable=True)

    base_cost = db.Column(db.Float, nullable=True)
    overtime_cost = db.Column(db.Float, nullable=True)
    total_cost = db.Column(db.Float, nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version}

    @property
    def is_open(self):
        return self.status in SessionStatus.OPEN

    def transition_to(self, new_status):
        if new_status not in ALLOWED_TRANSITIONS.get(self.status, set()):
            raise InvalidStateTransition(
                f"Cannot move session from '{self.status}' to '{new_status}'.",
                session_id=self.id,
                status=self.status,
            )
        self.status = new_status
        self.open_reservation_id = self.reservation_id if new_status in SessionStatus.OPEN else None

    def to_dict(self):
        return {
            'id': self.id,
            'reservation_id': self.reservation_id,
            'space_id': self.space_id,
            'status': self.status,
            'check_in_time': self.check_in_time.isoformat() if self.check_in_time else None,
            'check_in_notes': self.check_in_notes or '',
            'checked_in_by': self.checked_in_by,
            'check_out_time': self.check_out_time.isoformat() if self.check_out_time else None,
            'check_out_notes': self.check_out_notes or '',
            'checked_out_by': self.checked_out_by,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'cancel_reason': self.cancel_reason or '',
            'reserved_duration_hours': self.reserved_duration_hours,
            'actual_duration_hours': self.actual_duration_hours,
            'overtime_hours': self.overtime_hours,
            'base_cost': self.base_cost,
            'overtime_cost': self.overtime_cost,
            'total_cost': self.total_cost,
            'is_active': self.is_open,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
