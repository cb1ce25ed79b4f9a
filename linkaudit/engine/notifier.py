"""Dispatch broken links to the Mystique recommendation service in batches.

Each batch carries its own slice of links plus one shared list of
alternative URLs the service may pick replacements from. Alternatives come
from the site's top pages, restricted to the audit scope and, when a batch
sits entirely inside one locale, to that locale.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence
from urllib.parse import urlsplit

from .errors import NotificationError
from .paths import extract_path_prefix
from .scope import filter_urls_by_scope
from .types import BatchInfo, NotificationBatch, PrioritizedLink

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "guidance:broken-links"
DEFAULT_BATCH_SIZE = 100
DEFAULT_DENYLIST = (".pdf", ".xlsx", ".pptx", ".docx")

SendFn = Callable[[Dict[str, Any]], Any]


def _top_page_url(page: object) -> str | None:
    if isinstance(page, str):
        return page
    url = getattr(page, "url", None)
    return url if isinstance(url, str) else None


def is_denied_extension(url: str, denylist: Iterable[str] = DEFAULT_DENYLIST) -> bool:
    path = urlsplit(url).path.lower()
    return any(path.endswith(ext.lower()) for ext in denylist)


def link_locale_prefix(link: PrioritizedLink) -> str:
    """Locale of a broken link: the target's prefix, else the source's."""

    return extract_path_prefix(link.url_to) or extract_path_prefix(link.url_from)


def restrict_to_locale(links: Sequence[PrioritizedLink], alternative_urls: Sequence[str]) -> List[str]:
    """Keep alternatives in the single locale shared by ``links``, if there is one.

    The first path segment is only a guess at a locale; when no alternative
    shares it the full list is returned.
    """

    prefixes = {link_locale_prefix(link) for link in links}
    if len(prefixes) != 1:
        return list(alternative_urls)
    prefix = prefixes.pop()
    if not prefix:
        return list(alternative_urls)
    restricted = [url for url in alternative_urls if extract_path_prefix(url) == prefix]
    if not restricted:
        logger.debug("No alternative URLs under %s, keeping all %d", prefix, len(alternative_urls))
        return list(alternative_urls)
    return restricted


def split_batches(links: Sequence[PrioritizedLink], batch_size: int) -> List[List[PrioritizedLink]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(links[start:start + batch_size]) for start in range(0, len(links), batch_size)]


class MystiqueNotifier:
    """Build and send batched broken-link messages through ``send``."""

    def __init__(
        self,
        send: SendFn,
        batch_size: int = DEFAULT_BATCH_SIZE,
        denylist: Iterable[str] = DEFAULT_DENYLIST,
    ) -> None:
        self.send = send
        self.batch_size = batch_size
        self.denylist = tuple(ext.lower() for ext in denylist)

    def alternative_urls(self, site_top_pages: Iterable[object], site_base_url: str) -> List[str]:
        urls = [url for url in (_top_page_url(page) for page in site_top_pages) if url]
        scoped = filter_urls_by_scope(urls, site_base_url)
        allowed = [url for url in scoped if not is_denied_extension(url, self.denylist)]
        filtered_out = len(urls) - len(allowed)
        if filtered_out:
            logger.info(
                "Filtered out %d of %d top pages as alternative URLs (out of scope or unsupported file type)",
                filtered_out,
                len(urls),
            )
        return allowed

    def build_batches(
        self,
        links: Sequence[PrioritizedLink],
        alternative_urls: Sequence[str],
    ) -> List[NotificationBatch]:
        chunks = split_batches(links, self.batch_size)
        return [
            NotificationBatch(
                links=chunk,
                alternative_urls=restrict_to_locale(chunk, alternative_urls),
                batch_info=BatchInfo(
                    batch_index=index,
                    total_batches=len(chunks),
                    total_broken_links=len(links),
                ),
            )
            for index, chunk in enumerate(chunks)
        ]

    def notify(
        self,
        opportunity_id: str | None,
        prioritized_links: Iterable[PrioritizedLink],
        site_top_pages: Iterable[object],
        site_base_url: str,
        message_base: Mapping[str, Any] | None = None,
    ) -> int:
        """Send the links and return how many messages went out.

        A failing send raises :class:`NotificationError`; batches already
        sent stay sent.
        """

        valid = [link for link in prioritized_links if link.url_from and link.url_to and link.suggestion_id]
        if not valid:
            logger.warning("No valid broken links to send to Mystique")
            return 0
        if not opportunity_id:
            logger.error("Opportunity ID is missing, cannot send broken links to Mystique")
            return 0

        alternatives = self.alternative_urls(site_top_pages, site_base_url)
        if not alternatives:
            logger.warning("No alternative URLs available for %s, skipping Mystique request", site_base_url)
            return 0

        batches = self.build_batches(valid, alternatives)
        logger.info("Sending %d broken links in %d batch(es) to Mystique", len(valid), len(batches))

        sent = 0
        for batch in batches:
            message = self.build_message(opportunity_id, batch, site_base_url, message_base)
            try:
                self.send(message)
            except Exception as exc:
                logger.error(
                    "Failed to send batch %d/%d to Mystique: %s",
                    batch.batch_info.batch_index + 1,
                    batch.batch_info.total_batches,
                    exc,
                )
                raise NotificationError(
                    f"Failed to send broken links batch {batch.batch_info.batch_index} to Mystique: {exc}",
                    batch_index=batch.batch_info.batch_index,
                ) from exc
            sent += 1
            logger.debug(
                "Sent batch %d/%d with %d broken links and %d alternative URLs",
                batch.batch_info.batch_index + 1,
                batch.batch_info.total_batches,
                len(batch.links),
                len(batch.alternative_urls),
            )
        return sent

    @staticmethod
    def build_message(
        opportunity_id: str,
        batch: NotificationBatch,
        site_base_url: str,
        message_base: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        message: Dict[str, Any] = {"type": MESSAGE_TYPE}
        message.update(message_base or {})
        message.setdefault("time", datetime.now(timezone.utc).isoformat())
        message["auditContext"] = dict(message.get("auditContext") or {})
        message["data"] = {
            "opportunityId": opportunity_id,
            "brokenLinks": [link.to_message() for link in batch.links],
            "alternativeUrls": list(batch.alternative_urls),
            "siteBaseURL": site_base_url,
            "batchInfo": batch.batch_info.to_dict(),
        }
        return message
