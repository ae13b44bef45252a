from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from occupancy.clients.http import UpstreamClient, UpstreamConflict
from occupancy.utils.timeparse import parse_date, parse_time_of_day


@dataclass
class Owner:
    id: Optional[int] = None
    email: str = ''
    first_name: str = ''
    last_name: str = ''

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.email

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
        }


@dataclass
class Reservation:
    id: int
    space_id: int
    date: date
    start_time: time
    end_time: time
    is_active: bool = True
    attendees_count: int = 1
    event_name: str = ''
    owner: Owner = field(default_factory=Owner)

    @property
    def start(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def end(self) -> datetime:
        return datetime.combine(self.date, self.end_time)

    @classmethod
    def from_payload(cls, data: dict) -> 'Reservation':
        user = data.get('user') or {}
        space = data.get('space')
        if isinstance(space, dict):
            space = space.get('id')
        return cls(
            id=int(data['id']),
            space_id=int(space if space is not None else data['space_id']),
            date=parse_date(data['date']),
            start_time=parse_time_of_day(data.get('start_time')),
            end_time=parse_time_of_day(data.get('end_time')),
            is_active=bool(data.get('is_active', True)),
            attendees_count=int(data.get('attendees_count') or 1),
            event_name=data.get('event_name') or '',
            owner=Owner(
                id=user.get('id'),
                email=user.get('email', ''),
                first_name=user.get('first_name', ''),
                last_name=user.get('last_name', ''),
            ),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'space_id': self.space_id,
            'date': self.date.isoformat(),
            'start_time': self.start_time.strftime('%H:%M'),
            'end_time': self.end_time.strftime('%H:%M'),
            'is_active': self.is_active,
            'attendees_count': self.attendees_count,
            'event_name': self.event_name,
            'user': self.owner.to_dict(),
        }


class BookingClient(UpstreamClient):
    """Reservation collaborator: read by id, list by space/date, conditional writes."""

    def get_reservation(self, reservation_id, deadline=None) -> Optional[Reservation]:
        data = self.request('GET', f"/reservations/{reservation_id}/", deadline=deadline)
        return Reservation.from_payload(data) if data else None

    def list_reservations(self, space_id, on_date: date, deadline=None):
        data = self.request(
            'GET', '/reservations/',
            params={'space': space_id, 'date': on_date.isoformat()},
            deadline=deadline,
        ) or []
        if isinstance(data, dict):
            data = data.get('results', [])
        return [Reservation.from_payload(item) for item in data]

    def update_end_time(self, reservation_id, new_end: time, expected_end: time, deadline=None) -> Reservation:
        """
        Conditional update: applied only if the collaborator still holds
        expected_end. Raises UpstreamConflict otherwise.
        """
        data = self.request(
            'PATCH', f"/reservations/{reservation_id}/",
            json={
                'end_time': new_end.strftime('%H:%M:%S'),
                'expected_end_time': expected_end.strftime('%H:%M:%S'),
            },
            deadline=deadline,
            write=True,
        )
        if data is None:
            raise UpstreamConflict(f"Reservation {reservation_id} disappeared")
        return Reservation.from_payload(data)

    def create_reservation(self, template: Reservation, space_id, start: time, end: time, deadline=None) -> Reservation:
        """Follow-on booking for the same owner/event in another space. 409 on overlap."""
        data = self.request(
            'POST', '/reservations/',
            json={
                'space': space_id,
                'date': template.date.isoformat(),
                'start_time': start.strftime('%H:%M:%S'),
                'end_time': end.strftime('%H:%M:%S'),
                'event_name': template.event_name,
                'attendees_count': template.attendees_count,
                'user': template.owner.id,
                'extends_reservation': template.id,
            },
            deadline=deadline,
            write=True,
        )
        if data is None:
            raise UpstreamConflict("Reservation endpoint not found")
        return Reservation.from_payload(data)
