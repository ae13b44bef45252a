from flask import current_app

from occupancy.clients import BookingClient, SpaceClient
from occupancy.services.availability import AvailabilityResolver
from occupancy.services.billing import BillingCalculator
from occupancy.services.extension import ExtensionCommitter
from occupancy.services.session_lifecycle import SessionLifecycleManager
from occupancy.services.session_store import SessionStore
from occupancy.utils.clock import SystemClock


class OccupancyEngine:
    """Wires the engine's components from a Flask config mapping."""

    def __init__(self, config, clock=None, booking_client=None, space_client=None):
        timeout = config.get('UPSTREAM_TIMEOUT_SECONDS', 5)
        self.clock = clock or SystemClock(config.get('TIMEZONE', 'UTC'))
        self.bookings = booking_client or BookingClient(
            config['BOOKING_API_URL'], token=config.get('BOOKING_API_TOKEN'), timeout=timeout
        )
        self.spaces = space_client or SpaceClient(
            config.get('SPACE_API_URL') or config['BOOKING_API_URL'],
            token=config.get('BOOKING_API_TOKEN'), timeout=timeout,
        )
        self.store = SessionStore()
        self.billing = BillingCalculator(
            half_day_hours=config.get('HALF_DAY_HOURS', 4),
            full_day_hours=config.get('FULL_DAY_HOURS', 8),
        )
        self.lifecycle = SessionLifecycleManager(
            self.store, self.bookings, self.spaces, self.billing, self.clock,
            grace_days=config.get('CHECK_IN_GRACE_DAYS', 0),
        )
        self.resolver = AvailabilityResolver(
            self.bookings, self.spaces, self.clock,
            opening_hour=config.get('WORKING_HOURS_START', 8),
            closing_hour=config.get('WORKING_HOURS_END', 20),
            max_lookahead_hours=config.get('EXTENSION_MAX_LOOKAHEAD_HOURS'),
        )
        self.committer = ExtensionCommitter(self.bookings, self.spaces, self.resolver, self.lifecycle)


def get_engine() -> OccupancyEngine:
    return current_app.extensions['occupancy']
