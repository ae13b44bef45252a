from datetime import datetime, timedelta
import threading
import pytz


class SystemClock:
    """Wall clock in the configured timezone, returned as naive local time."""

    def __init__(self, timezone: str = 'UTC'):
        self.tz = pytz.timezone(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None)

    def today(self):
        return self.now().date()


class FixedClock:
    """Clock pinned to a given instant. Tests move it with set() / advance()."""

    def __init__(self, current: datetime):
        self._current = current
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def today(self):
        return self.now().date()

    def set(self, current: datetime):
        with self._lock:
            self._current = current

    def advance(self, **kwargs):
        with self._lock:
            self._current = self._current + timedelta(**kwargs)
