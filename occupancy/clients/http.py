import logging
import requests

from occupancy.errors import UpstreamUnavailable, DeadlineExceeded
from occupancy.utils.timeparse import remaining_seconds

logger = logging.getLogger(__name__)


class UpstreamConflict(Exception):
    """The collaborator refused a conditional write (HTTP 409)."""


class UpstreamClient:
    """Thin requests wrapper: bounded timeout, no retries, failures as UpstreamUnavailable."""

    def __init__(self, base_url: str, token: str = None, timeout: float = 5, session=None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.http = session or requests.Session()

    def _headers(self):
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        return headers

    def _timeout(self, deadline):
        remaining = remaining_seconds(deadline)
        if remaining is None:
            return self.timeout
        if remaining <= 0:
            raise DeadlineExceeded("Deadline exceeded before calling upstream.")
        return min(self.timeout, remaining)

    def request(self, method: str, path: str, deadline=None, write=False, **kwargs):
        """
        Returns the decoded JSON body, or None on 404.

        A timeout on a write means the request may have been applied: the
        raised UpstreamUnavailable is flagged outcome_unknown so the caller
        reconciles with a read before reporting anything.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(
                method, url, headers=self._headers(), timeout=self._timeout(deadline), **kwargs
            )
        except requests.Timeout as e:
            logger.error("Upstream timeout on %s %s: %s", method, url, e)
            raise UpstreamUnavailable(f"Timeout calling {method} {path}", outcome_unknown=write)
        except requests.RequestException as e:
            logger.error("Upstream error on %s %s: %s", method, url, e)
            raise UpstreamUnavailable(f"Cannot reach upstream for {method} {path}")

        if response.status_code == 404:
            return None
        if response.status_code == 409:
            raise UpstreamConflict(response.text)
        if response.status_code >= 500:
            logger.error("Upstream %s on %s %s", response.status_code, method, url)
            raise UpstreamUnavailable(f"Upstream answered {response.status_code} for {method} {path}")
        try:
            response.raise_for_status()
            return response.json()
        except (requests.HTTPError, ValueError) as e:
            logger.error("Unexpected upstream response on %s %s: %s", method, url, e)
            raise UpstreamUnavailable(f"Unexpected upstream response for {method} {path}")
