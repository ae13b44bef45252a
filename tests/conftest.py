import threading
from dataclasses import replace
from datetime import date, datetime, time

import jwt
import pytest

from occupancy import create_app, db
from occupancy.clients import Reservation, Owner, Space, UpstreamConflict
from occupancy.config import TestingConfig
from occupancy.utils.clock import FixedClock

DAY = date(2026, 3, 10)


class FakeBookingService:
    """In-memory booking collaborator with the same conditional-write contract as the HTTP one."""

    def __init__(self):
        self.reservations = {}
        self.lock = threading.Lock()
        self.next_id = 1000
        self.fail_writes = None

    def add(self, **kwargs):
        owner = kwargs.pop('owner', None) or Owner(id=7, email='ada@example.com', first_name='Ada', last_name='Lovelace')
        kwargs.setdefault('date', DAY)
        kwargs.setdefault('event_name', 'Team sync')
        reservation = Reservation(owner=owner, **kwargs)
        self.reservations[reservation.id] = reservation
        return reservation

    def get_reservation(self, reservation_id, deadline=None):
        with self.lock:
            found = self.reservations.get(int(reservation_id))
            return replace(found) if found else None

    def list_reservations(self, space_id, on_date, deadline=None):
        with self.lock:
            return [replace(r) for r in self.reservations.values()
                    if r.space_id == space_id and r.date == on_date]

    def _overlapping(self, space_id, on_date, start, end, exclude=None):
        for r in self.reservations.values():
            if r.id != exclude and r.is_active and r.space_id == space_id and r.date == on_date \
                    and r.start_time < end and r.end_time > start:
                return r
        return None

    def update_end_time(self, reservation_id, new_end, expected_end, deadline=None):
        if self.fail_writes:
            raise self.fail_writes
        with self.lock:
            current = self.reservations[reservation_id]
            if current.end_time != expected_end:
                raise UpstreamConflict("end time changed")
            if self._overlapping(current.space_id, current.date, current.end_time, new_end, exclude=current.id):
                raise UpstreamConflict("overlap")
            current.end_time = new_end
            return replace(current)

    def create_reservation(self, template, space_id, start, end, deadline=None):
        if self.fail_writes:
            raise self.fail_writes
        with self.lock:
            if self._overlapping(space_id, template.date, start, end):
                raise UpstreamConflict("overlap")
            self.next_id += 1
            created = replace(template, id=self.next_id, space_id=space_id, start_time=start, end_time=end)
            self.reservations[created.id] = created
            return replace(created)


class FakeSpaceService:
    def __init__(self, spaces=None):
        self.spaces = {s.id: s for s in (spaces or [])}

    def get_space(self, space_id, deadline=None):
        return self.spaces.get(space_id)

    def list_spaces(self, deadline=None):
        return sorted(self.spaces.values(), key=lambda s: s.id)


@pytest.fixture
def clock():
    return FixedClock(datetime.combine(DAY, time(14, 5)))


@pytest.fixture
def bookings():
    return FakeBookingService()


@pytest.fixture
def spaces():
    return FakeSpaceService([
        Space(id=1, name='Open Space', capacity=10, price_hour=3000, price_half_day=10000, price_full_day=18000),
        Space(id=2, name='Salle Beta', capacity=6, price_hour=2500, price_half_day=9000, price_full_day=16000),
        Space(id=3, name='Focus Room', capacity=2, price_hour=1500),
        Space(id=4, name='Auditorium', capacity=50, price_hour=9000, price_half_day=30000, price_full_day=55000),
    ])


@pytest.fixture
def app(clock, bookings, spaces):
    app = create_app(TestingConfig, clock=clock, booking_client=bookings, space_client=spaces)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def engine(app):
    return app.extensions['occupancy']


@pytest.fixture
def reservation(bookings):
    """Scenario reservation: Open Space, 14:00-16:00, 4 attendees."""
    return bookings.add(id=1, space_id=1, start_time=time(14, 0), end_time=time(16, 0), attendees_count=4)


def auth_header(user_id=1, role='staff'):
    token = jwt.encode({'user_id': user_id, 'role': role}, TestingConfig.SECRET_KEY, algorithm="HS256")
    return {'Authorization': f"Bearer {token}"}


def at(hour, minute=0):
    return datetime.combine(DAY, time(hour, minute))
