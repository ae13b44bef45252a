from dataclasses import dataclass
from typing import Optional

from occupancy.clients.http import UpstreamClient


def _price(value):
    return float(value) if value not in (None, '') else None


@dataclass
class Space:
    id: int
    name: str
    capacity: int
    price_hour: float
    price_half_day: Optional[float] = None
    price_full_day: Optional[float] = None
    is_active: bool = True

    @classmethod
    def from_payload(cls, data: dict) -> 'Space':
        return cls(
            id=int(data['id']),
            name=data.get('name', ''),
            capacity=int(data.get('capacity') or 0),
            price_hour=_price(data.get('price_hour')) or 0.0,
            price_half_day=_price(data.get('price_half_day')),
            price_full_day=_price(data.get('price_full_day')),
            is_active=bool(data.get('is_active', True)),
        )


class SpaceClient(UpstreamClient):
    """Space/pricing collaborator, read-only."""

    def get_space(self, space_id, deadline=None) -> Optional[Space]:
        data = self.request('GET', f"/spaces/{space_id}/", deadline=deadline)
        return Space.from_payload(data) if data else None

    def list_spaces(self, deadline=None):
        data = self.request('GET', '/spaces/', deadline=deadline) or []
        if isinstance(data, dict):
            data = data.get('results', [])
        return [Space.from_payload(item) for item in data]
