import time
from flask import request
from occupancy.utils.timeparse import parse_date


def request_deadline():
    """X-Request-Timeout (seconds) as an absolute monotonic deadline."""
    raw = request.headers.get('X-Request-Timeout')
    if not raw:
        return None
    return time.monotonic() + float(raw)


def optional_int(name):
    value = request.args.get(name)
    return int(value) if value not in (None, '') else None


def optional_date(name):
    value = request.args.get(name)
    return parse_date(value) if value else None
