from occupancy.models.session import ReservationSession, SessionStatus, ALLOWED_TRANSITIONS
