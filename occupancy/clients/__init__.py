from .booking_client import BookingClient, Reservation, Owner
from .space_client import SpaceClient, Space
from .http import UpstreamConflict
