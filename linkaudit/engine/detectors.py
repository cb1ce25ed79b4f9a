"""Detector capability set injected into the audit steps.

Steps depend on the :class:`Detectors` protocol instead of importing the
detection functions directly, so tests can substitute canned results.
"""

from __future__ import annotations

from typing import Mapping, Protocol

from .crawl import LINK_CHECK_BATCH_SIZE, PAGES_PER_BATCH, PageBody, Probe, detect_broken_links_from_crawl_batch
from .probe import LinkProbe
from .rum import DEFAULT_INTERVAL_DAYS, RumQueryClient, detect_from_rum
from .types import CrawlBatchResult, CrawlBatchState, RumDetectionResult


class Detectors(Protocol):
    def detect_from_rum(
        self,
        domain: str,
        canonical_domain: str | None = None,
        time_window_days: int = DEFAULT_INTERVAL_DAYS,
    ) -> RumDetectionResult:
        ...

    def detect_from_crawl(
        self,
        pages: Mapping[str, PageBody],
        start_index: int,
        state: CrawlBatchState,
        base_url: str,
    ) -> CrawlBatchResult:
        ...


class DefaultDetectors:
    """Production detectors backed by a RUM client and live HTTP probing."""

    def __init__(
        self,
        rum_client: RumQueryClient,
        *,
        probe: Probe | None = None,
        pages_per_batch: int = PAGES_PER_BATCH,
        link_check_batch_size: int = LINK_CHECK_BATCH_SIZE,
    ) -> None:
        self.rum_client = rum_client
        self.probe = probe or LinkProbe()
        self.pages_per_batch = pages_per_batch
        self.link_check_batch_size = link_check_batch_size

    def detect_from_rum(
        self,
        domain: str,
        canonical_domain: str | None = None,
        time_window_days: int = DEFAULT_INTERVAL_DAYS,
    ) -> RumDetectionResult:
        return detect_from_rum(self.rum_client, domain, canonical_domain, time_window_days)

    def detect_from_crawl(
        self,
        pages: Mapping[str, PageBody],
        start_index: int,
        state: CrawlBatchState,
        base_url: str,
    ) -> CrawlBatchResult:
        return detect_broken_links_from_crawl_batch(
            pages,
            start_index,
            self.pages_per_batch,
            state,
            base_url=base_url,
            probe=self.probe,
            link_check_batch_size=self.link_check_batch_size,
        )
