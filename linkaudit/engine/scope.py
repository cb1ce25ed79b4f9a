"""Restrict links and URLs to the part of a site an audit covers.

A site's base URL may carry a subpath (``https://example.com/uk``). Only
pages under that subpath belong to the audit, and a prefix match has to
respect segment boundaries so that ``/fr`` never matches ``/french``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, TypeVar
from urllib.parse import urlsplit

from .paths import parse_url
from .types import BrokenLinkCandidate

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AuditScope:
    """Host, port and path prefix an audit is restricted to."""

    host: str
    port: Optional[int]
    path_prefix: str

    def contains(self, url: str) -> bool:
        if not url:
            return False
        url = url.strip()
        if url.startswith("/") and not url.startswith("//"):
            path = url.split("?", 1)[0].split("#", 1)[0]
        else:
            try:
                parts = parse_url(url)
            except ValueError:
                return False
            if parts.hostname != self.host or parts.port != self.port:
                return False
            path = parts.path
        return self.matches_path(path)

    def contains_absolute(self, url: str) -> bool:
        """Like :meth:`contains`, but relative and non-http URLs are out of scope."""

        if not url:
            return False
        try:
            scheme = urlsplit(url.strip()).scheme
        except ValueError:
            return False
        return scheme in ("http", "https") and self.contains(url)

    def matches_path(self, path: str) -> bool:
        if not self.path_prefix:
            return True
        return path == self.path_prefix or path.startswith(f"{self.path_prefix}/")


def parse_scope(base_url: str) -> AuditScope:
    """Parse ``base_url`` into an :class:`AuditScope`.

    Raises ``ValueError`` when the base URL cannot be parsed.
    """

    parts = parse_url(base_url)
    return AuditScope(
        host=parts.hostname or "",
        port=parts.port,
        path_prefix=parts.path.rstrip("/"),
    )


def is_within_audit_scope(url: str | None, base_url: str | None) -> bool:
    """Return True when ``url`` lives under ``base_url``'s host and subpath."""

    if not url or not base_url:
        return False
    try:
        scope = parse_scope(base_url)
    except ValueError:
        return False
    return scope.contains(url)


def filter_by_scope(base_url: str, links: Iterable[BrokenLinkCandidate]) -> List[BrokenLinkCandidate]:
    """Keep links whose source and target both fall inside the audit scope.

    Both ends must be absolute http(s) URLs on the scope host. Relative,
    host-less and malformed URLs, including a malformed ``base_url``, count
    as out of scope. Nothing is raised.
    """

    try:
        scope: AuditScope | None = parse_scope(base_url)
    except ValueError:
        scope = None

    kept: List[BrokenLinkCandidate] = []
    rejected = 0
    for link in links:
        if scope is not None and scope.contains_absolute(link.url_from) and scope.contains_absolute(link.url_to):
            kept.append(link)
            continue
        rejected += 1
        logger.debug("Filtered out %s -> %s: out of scope", link.url_from, link.url_to)

    if rejected:
        logger.info("Filtered out %d links out of audit scope", rejected)
    return kept


def _item_url(item: object) -> str | None:
    if isinstance(item, str):
        return item
    for attribute in ("url", "url_from", "url_to"):
        value = getattr(item, attribute, None)
        if isinstance(value, str) and value:
            return value
    return None


def filter_urls_by_scope(items: Sequence[T], base_url: str) -> List[T]:
    """Filter URL strings (or objects exposing ``url``) down to the audit scope.

    A base URL without a subpath, or one that cannot be parsed, returns
    every item unchanged.
    """

    if not items:
        return list(items or [])
    try:
        scope = parse_scope(base_url)
    except ValueError:
        logger.warning("Could not parse base URL %s, skipping scope filter", base_url)
        return list(items)
    if not scope.path_prefix:
        logger.debug("No subpath in base URL %s, returning all %d items", base_url, len(items))
        return list(items)

    kept: List[T] = []
    for item in items:
        url = _item_url(item)
        if url and scope.contains(url):
            kept.append(item)
    logger.debug(
        "Filtered %d items to %d based on audit scope: %s",
        len(items),
        len(kept),
        scope.path_prefix,
    )
    return kept
