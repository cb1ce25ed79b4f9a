"""Broken link detection from real-user-monitoring (RUM) 404 reports."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Protocol, Sequence

import requests

from .paths import parse_url
from .types import BrokenLinkCandidate, RumDetectionResult

logger = logging.getLogger(__name__)

REPORT_404_INTERNAL_LINKS = "404-internal-links"
DEFAULT_INTERVAL_DAYS = 30


class RumQueryClient(Protocol):
    """Anything able to run a named RUM report."""

    def query(self, report: str, options: Mapping[str, Any]) -> Sequence[Mapping[str, Any]]:
        ...


class HttpRumClient:
    """Query RUM reports over HTTP.

    The service answers ``GET <base_url>/<report>`` with a JSON body of the
    shape ``{"results": [...]}``.
    """

    def __init__(
        self,
        base_url: str,
        domain_key: str | None = None,
        *,
        timeout: float = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.domain_key = domain_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def query(self, report: str, options: Mapping[str, Any]) -> List[Dict[str, Any]]:
        params = dict(options)
        if self.domain_key:
            params["domainkey"] = self.domain_key
        response = self.session.get(f"{self.base_url}/{report}", params=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, dict):
            return list(payload.get("results") or [])
        return list(payload or [])


def normalize_url_to_domain(url: str, canonical_domain: str) -> str:
    """Rewrite the host of ``url`` to ``canonical_domain``.

    ``canonical_domain`` may be a bare host or a full URL. The original string
    is returned when either side cannot be parsed.
    """

    try:
        parts = parse_url(url)
        canonical = parse_url(canonical_domain)
    except ValueError:
        return url
    netloc = canonical.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return parts._replace(netloc=netloc).geturl()


def detect_from_rum(
    client: RumQueryClient,
    domain: str,
    canonical_domain: str | None = None,
    time_window_days: int = DEFAULT_INTERVAL_DAYS,
) -> RumDetectionResult:
    """Return broken internal links reported by RUM for ``domain``.

    Query failures are reported through ``RumDetectionResult.success`` so the
    calling step can record a failed audit instead of crashing.
    """

    options = {
        "domain": domain,
        "interval": time_window_days,
        "granularity": "hourly",
    }
    try:
        rows = client.query(REPORT_404_INTERNAL_LINKS, options)
    except Exception as exc:
        logger.error("RUM query for %s failed: %s", domain, exc)
        return RumDetectionResult(success=False, error=str(exc))

    if not rows:
        logger.info("No 404 internal links found in RUM data for %s", domain)
        return RumDetectionResult(success=True, links=[])

    target_domain = canonical_domain or domain
    links: List[BrokenLinkCandidate] = []
    for row in rows:
        url_from = row.get("url_from")
        url_to = row.get("url_to")
        if not url_from or not url_to:
            logger.debug("Skipping RUM row without source or target: %s", row)
            continue
        links.append(
            BrokenLinkCandidate(
                url_from=normalize_url_to_domain(url_from, target_domain),
                url_to=normalize_url_to_domain(url_to, target_domain),
                traffic_domain=row.get("traffic_domain") or 0,
            )
        )

    logger.info("Found %d 404 internal links in RUM data for %s", len(links), domain)
    return RumDetectionResult(success=True, links=links)
