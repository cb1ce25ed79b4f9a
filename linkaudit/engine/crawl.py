"""Crawl-based broken link detection over scraped page bodies.

Pages are processed in bounded batches so a long crawl can be spread over
several invocations. Each call receives the caches built by earlier batches
and returns them updated together with the position of the next batch; the
caller persists that state and decides when to continue.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup  # type: ignore

from .paths import parse_url, strip_www
from .scope import AuditScope, parse_scope
from .types import (
    BrokenLinkCandidate,
    CrawlBatchResult,
    CrawlBatchState,
    CrawlBatchStats,
    ScrapedPage,
)

logger = logging.getLogger(__name__)

PAGES_PER_BATCH = 30
LINK_CHECK_BATCH_SIZE = 10

# Anchors inside these tags are site chrome repeated on every page.
SKIP_ANCESTORS = ["header", "footer"]
SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")

PageBody = Union[str, ScrapedPage, None]
Probe = Callable[[str], bool]


def _parse_html(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except Exception:
        # Fallback to html.parser if lxml isn't installed
        return BeautifulSoup(html, "html.parser")


def extract_internal_links(html: str, page_url: str, base_hostname: str) -> List[Tuple[str, str]]:
    """Return ``(absolute_url, anchor_text)`` for internal anchors in ``html``.

    Anchors inside ``<header>`` or ``<footer>``, fragment-only links and
    non-HTTP schemes are ignored. Hosts are compared without a ``www.``
    prefix.
    """

    soup = _parse_html(html)
    base_host = strip_www(base_hostname.lower())
    links: List[Tuple[str, str]] = []
    for anchor in soup.find_all("a", href=True):
        if anchor.find_parent(SKIP_ANCESTORS) is not None:
            continue
        href = (anchor.get("href") or "").strip()
        if not href or href.startswith("#") or href.lower().startswith(SKIP_SCHEMES):
            continue
        try:
            absolute, _ = urldefrag(urljoin(page_url, href))
            hostname = parse_url(absolute).hostname or ""
        except ValueError:
            logger.debug("Skipping invalid href on %s: %s", page_url, href)
            continue
        if strip_www(hostname) != base_host:
            continue
        text = anchor.get_text(strip=True) or "[no text]"
        links.append((absolute, text))
    return links


def _page_parts(url: str, body: PageBody) -> Tuple[str, Optional[str]]:
    if isinstance(body, ScrapedPage):
        return body.final_url or url, body.raw_body
    return url, body


class _BatchScan:
    """Mutable bookkeeping for one batch."""

    def __init__(self, state: CrawlBatchState, probe: Probe, scope: AuditScope, chunk_size: int) -> None:
        self.broken = set(state.broken_urls)
        self.working = set(state.working_urls)
        self.probe = probe
        self.scope = scope
        self.chunk_size = max(1, chunk_size)
        self.found: Dict[str, BrokenLinkCandidate] = {}
        self.total_links = 0
        self.checked = 0
        self.hits_broken = 0
        self.hits_working = 0

    def scan_page(self, page_url: str, links: List[Tuple[str, str]]) -> None:
        in_scope = [url for url, _ in links if self.scope.contains(url)]
        self.total_links += len(in_scope)
        for start in range(0, len(in_scope), self.chunk_size):
            chunk = in_scope[start:start + self.chunk_size]
            to_probe: List[str] = []
            for url in chunk:
                if url in self.broken:
                    self.hits_broken += 1
                elif url in self.working:
                    self.hits_working += 1
                elif url not in to_probe:
                    to_probe.append(url)
            self._probe_all(to_probe)
            for url in chunk:
                if url in self.broken:
                    link = BrokenLinkCandidate(url_from=page_url, url_to=url, traffic_domain=0)
                    self.found.setdefault(link.key, link)

    def _probe_all(self, urls: List[str]) -> None:
        if not urls:
            return
        self.checked += len(urls)
        with ThreadPoolExecutor(max_workers=len(urls)) as executor:
            outcomes = list(executor.map(self.probe, urls))
        for url, broken in zip(urls, outcomes):
            (self.broken if broken else self.working).add(url)

    def stats(self) -> CrawlBatchStats:
        return CrawlBatchStats(
            total_links_analyzed=self.total_links,
            links_checked=self.checked,
            cache_hits_broken=self.hits_broken,
            cache_hits_working=self.hits_working,
        )


def detect_broken_links_from_crawl_batch(
    pages: Mapping[str, PageBody],
    start_index: int = 0,
    batch_size: int = PAGES_PER_BATCH,
    previous: CrawlBatchState | None = None,
    *,
    base_url: str,
    probe: Probe,
    link_check_batch_size: int = LINK_CHECK_BATCH_SIZE,
) -> CrawlBatchResult:
    """Process one batch of scraped pages and report broken internal links.

    ``pages`` maps each scraped URL to its HTML body (or a
    :class:`ScrapedPage`). URLs are sorted before slicing so every
    invocation sees the same order. Targets already present in the caches of
    ``previous`` are not probed again.
    """

    state = previous or CrawlBatchState()
    scope = parse_scope(base_url)
    started = time.monotonic()

    ordered = sorted(pages)
    total_pages = len(ordered)
    start_index = max(0, start_index)
    end_index = min(start_index + batch_size, total_pages)
    batch_urls = ordered[start_index:end_index]

    logger.info(
        "Processing pages %d-%d of %d (cache: %d broken, %d working)",
        start_index + 1,
        end_index,
        total_pages,
        len(state.broken_urls),
        len(state.working_urls),
    )

    scan = _BatchScan(state, probe, scope, link_check_batch_size)
    pages_processed = 0
    pages_skipped = 0

    for url in batch_urls:
        pages_processed += 1
        page_url, html = _page_parts(url, pages[url])
        if not html:
            pages_skipped += 1
            continue
        if not scope.contains(page_url):
            logger.debug("Skipping %s: outside audit scope", page_url)
            pages_skipped += 1
            continue
        try:
            links = extract_internal_links(html, page_url, scope.host)
            scan.scan_page(page_url, links)
        except Exception as exc:
            logger.error("Error processing %s: %s", url, exc)
            pages_skipped += 1

    stats = scan.stats()
    results = list(scan.found.values())
    has_more_pages = start_index + batch_size < total_pages

    logger.info(
        "Batch done in %.1fs: %d pages processed, %d skipped, %d links analyzed, "
        "%d probed, %.1f%% cache hits, %d broken links",
        time.monotonic() - started,
        pages_processed,
        pages_skipped,
        stats.total_links_analyzed,
        stats.links_checked,
        stats.cache_hit_rate,
        len(results),
    )
    if has_more_pages:
        logger.info("%d pages remaining", total_pages - end_index)

    return CrawlBatchResult(
        results=results,
        broken_urls_cache=sorted(scan.broken),
        working_urls_cache=sorted(scan.working),
        pages_processed=pages_processed,
        pages_skipped=pages_skipped,
        has_more_pages=has_more_pages,
        next_batch_start_index=end_index,
        total_pages=total_pages,
        stats=stats,
    )


def advance_state(state: CrawlBatchState, result: CrawlBatchResult) -> CrawlBatchState:
    """Fold one batch result into the continuation state."""

    merged: Dict[str, BrokenLinkCandidate] = {link.key: link for link in state.results}
    for link in result.results:
        merged.setdefault(link.key, link)
    return CrawlBatchState(
        results=list(merged.values()),
        broken_urls=list(result.broken_urls_cache),
        working_urls=list(result.working_urls_cache),
        last_batch_num=state.last_batch_num + 1,
        total_pages_processed=state.total_pages_processed + result.pages_processed,
        next_batch_start_index=result.next_batch_start_index,
    )
