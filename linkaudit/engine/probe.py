"""Reachability checks for link targets."""

from __future__ import annotations

import logging
import threading

import requests

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; LinkAuditBot/1.0)",
}
DEFAULT_TIMEOUT = 10


def _is_ok(status: int) -> bool:
    return 200 <= status < 400


def is_link_inaccessible(
    url: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> bool:
    """Return True when ``url`` cannot be reached.

    HEAD is tried first; servers that reject HEAD get a GET before the link is
    declared broken. Timeouts count as reachable since a slow page is not a
    broken one.
    """

    http = session or requests
    try:
        response = http.head(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
        if _is_ok(response.status_code):
            return False
        logger.debug("HEAD %s returned %s, retrying with GET", url, response.status_code)
    except requests.Timeout:
        logger.info("TIMEOUT: HEAD request timed out for %s, treating as accessible", url)
        return False
    except requests.RequestException as exc:
        logger.debug("HEAD %s failed (%s), retrying with GET", url, exc)

    try:
        response = http.get(url, headers=HEADERS, timeout=timeout, allow_redirects=True, stream=True)
        response.close()
    except requests.Timeout:
        logger.info("TIMEOUT: GET request timed out for %s, treating as accessible", url)
        return False
    except requests.RequestException as exc:
        logger.info("Link %s is inaccessible: %s", url, exc)
        return True

    if _is_ok(response.status_code):
        return False
    logger.info("Link %s is inaccessible: status %s", url, response.status_code)
    return True


class LinkProbe:
    """Callable probe keeping one HTTP session per thread."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self._local = threading.local()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(HEADERS)
            self._local.session = session
        return session

    def __call__(self, url: str) -> bool:
        return is_link_inaccessible(url, session=self._session(), timeout=self.timeout)
