"""Combine crawl and RUM findings into one de-duplicated set."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List

from .types import BrokenLinkCandidate

logger = logging.getLogger(__name__)


def merge_and_deduplicate(
    crawl_links: Iterable[BrokenLinkCandidate],
    rum_links: Iterable[BrokenLinkCandidate],
) -> List[BrokenLinkCandidate]:
    """Merge both sources keyed on ``(url_from, url_to)``.

    RUM records are inserted first and always win, since they carry traffic
    data. A pair RUM reports twice keeps its highest ``traffic_domain``.
    Crawl records only fill in pairs RUM did not report, with
    ``traffic_domain`` forced to 0. The result lists RUM pairs in first-seen
    order followed by crawl-only pairs.
    """

    merged: Dict[str, BrokenLinkCandidate] = {}
    for link in rum_links:
        current = merged.get(link.key)
        if current is None or link.traffic_domain > current.traffic_domain:
            merged[link.key] = link
    rum_keys = set(merged)

    crawl_keys: set[str] = set()
    for link in crawl_links:
        crawl_keys.add(link.key)
        if link.key not in merged:
            merged[link.key] = replace(link, traffic_domain=0)

    overlap = len(rum_keys & crawl_keys)
    crawl_only = len(crawl_keys - rum_keys)
    rum_only = len(rum_keys - crawl_keys)
    logger.info(
        "Merge results: %d total (%d crawl-only, %d RUM-only, %d overlap)",
        len(merged),
        crawl_only,
        rum_only,
        overlap,
    )
    return list(merged.values())
