"""
Error taxonomy of the occupancy engine.

Every error carries a stable machine-readable ``kind`` and a human-readable
message. Routes translate them to JSON with ``status_code``; nothing in the
engine retries on them.
"""


class OccupancyError(Exception):
    kind = 'OccupancyError'
    category = 'internal'
    status_code = 500
    default_message = 'Occupancy engine error'

    def __init__(self, message: str = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {
            'error': self.kind,
            'category': self.category,
            'message': self.message,
        }
        if self.details:
            payload['details'] = self.details
        return payload


# --- validation ---

class ReservationNotFound(OccupancyError):
    kind = 'ReservationNotFound'
    category = 'validation'
    status_code = 404
    default_message = 'Reservation not found.'


class ReservationInactive(OccupancyError):
    kind = 'ReservationInactive'
    category = 'validation'
    status_code = 409
    default_message = 'Reservation is not active.'


class InvalidReservationWindow(OccupancyError):
    kind = 'InvalidReservationWindow'
    category = 'validation'
    status_code = 400
    default_message = 'Reservation time window is invalid.'


class VerificationMismatch(OccupancyError):
    kind = 'VerificationMismatch'
    category = 'validation'
    status_code = 403
    default_message = 'Verification data does not match the reservation.'


# Billing reports this one as a warning, it is never raised.
DEGENERATE_DURATION = 'DegenerateDuration'


# --- state ---

class AlreadyCheckedIn(OccupancyError):
    kind = 'AlreadyCheckedIn'
    category = 'state'
    status_code = 409
    default_message = 'An open session already exists for this reservation.'


class InvalidStateTransition(OccupancyError):
    kind = 'InvalidStateTransition'
    category = 'state'
    status_code = 409
    default_message = 'Transition not allowed from the current session status.'


class SessionNotFound(OccupancyError):
    kind = 'SessionNotFound'
    category = 'state'
    status_code = 404
    default_message = 'Session not found.'


# --- concurrency ---

class AvailabilityConflict(OccupancyError):
    kind = 'AvailabilityConflict'
    category = 'concurrency'
    status_code = 409
    default_message = 'The chosen slot is no longer available. Search extension options again.'


# --- infrastructure ---

class UpstreamUnavailable(OccupancyError):
    kind = 'UpstreamUnavailable'
    category = 'infrastructure'
    status_code = 503
    default_message = 'An upstream service is unavailable.'

    def __init__(self, message: str = None, outcome_unknown: bool = False, **details):
        self.outcome_unknown = outcome_unknown
        if outcome_unknown:
            details['outcome_unknown'] = True
        super().__init__(message, **details)


class DeadlineExceeded(OccupancyError):
    kind = 'DeadlineExceeded'
    category = 'infrastructure'
    status_code = 504
    default_message = 'Deadline exceeded before the operation could complete.'
