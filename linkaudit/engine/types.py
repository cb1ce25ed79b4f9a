"""Typed data structures used by the broken internal links pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"
PRIORITIES = (PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW)


def link_key(url_from: str, url_to: str) -> str:
    """Return the identity key for a ``(url_from, url_to)`` pair."""

    return f"{url_from}|{url_to}"


@dataclass(frozen=True)
class BrokenLinkCandidate:
    """A broken link found on ``url_from`` pointing at ``url_to``."""

    url_from: str
    url_to: str
    traffic_domain: float = 0

    def __post_init__(self) -> None:
        if not isinstance(self.url_from, str) or not self.url_from:
            raise ValueError("url_from must be a non-empty string")
        if not isinstance(self.url_to, str) or not self.url_to:
            raise ValueError("url_to must be a non-empty string")
        traffic = self.traffic_domain if self.traffic_domain is not None else 0
        if not isinstance(traffic, (int, float)) or isinstance(traffic, bool) or traffic < 0:
            raise ValueError(f"traffic_domain must be a non-negative number, got {self.traffic_domain!r}")
        object.__setattr__(self, "traffic_domain", traffic)

    @property
    def key(self) -> str:
        return link_key(self.url_from, self.url_to)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "urlFrom": self.url_from,
            "urlTo": self.url_to,
            "trafficDomain": self.traffic_domain,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BrokenLinkCandidate":
        return cls(
            url_from=data.get("urlFrom", ""),
            url_to=data.get("urlTo", ""),
            traffic_domain=data.get("trafficDomain") or 0,
        )


@dataclass(frozen=True)
class PrioritizedLink(BrokenLinkCandidate):
    """Broken link with its computed priority and, once persisted, its suggestion id."""

    priority: str = PRIORITY_LOW
    suggestion_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.priority not in PRIORITIES:
            raise ValueError(f"Unknown priority {self.priority!r}")

    def with_suggestion(self, suggestion_id: str | None) -> "PrioritizedLink":
        return replace(self, suggestion_id=suggestion_id)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["priority"] = self.priority
        return data

    def to_message(self) -> Dict[str, Any]:
        data = self.to_dict()
        data["suggestionId"] = self.suggestion_id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PrioritizedLink":
        return cls(
            url_from=data.get("urlFrom", ""),
            url_to=data.get("urlTo", ""),
            traffic_domain=data.get("trafficDomain") or 0,
            priority=data.get("priority", PRIORITY_LOW),
            suggestion_id=data.get("suggestionId"),
        )


@dataclass(frozen=True)
class BatchInfo:
    batch_index: int
    total_batches: int
    total_broken_links: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "batchIndex": self.batch_index,
            "totalBatches": self.total_batches,
            "totalBrokenLinks": self.total_broken_links,
        }


@dataclass(frozen=True)
class NotificationBatch:
    """One slice of broken links sent to the recommendation service."""

    links: List[PrioritizedLink]
    alternative_urls: List[str]
    batch_info: BatchInfo


@dataclass(frozen=True)
class ScrapedPage:
    """Scraped body of a page plus the URL it resolved to."""

    final_url: str
    raw_body: str


@dataclass
class CrawlBatchState:
    """Continuation token persisted between crawl batch invocations."""

    results: List[BrokenLinkCandidate] = field(default_factory=list)
    broken_urls: List[str] = field(default_factory=list)
    working_urls: List[str] = field(default_factory=list)
    last_batch_num: int = -1
    total_pages_processed: int = 0
    next_batch_start_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [link.to_dict() for link in self.results],
            "brokenUrlsCache": list(self.broken_urls),
            "workingUrlsCache": list(self.working_urls),
            "lastBatchNum": self.last_batch_num,
            "totalPagesProcessed": self.total_pages_processed,
            "nextBatchStartIndex": self.next_batch_start_index,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CrawlBatchState":
        last_batch = data.get("lastBatchNum")
        return cls(
            results=[BrokenLinkCandidate.from_dict(item) for item in data.get("results") or []],
            broken_urls=list(data.get("brokenUrlsCache") or []),
            working_urls=list(data.get("workingUrlsCache") or []),
            last_batch_num=-1 if last_batch is None else int(last_batch),
            total_pages_processed=int(data.get("totalPagesProcessed") or 0),
            next_batch_start_index=int(data.get("nextBatchStartIndex") or 0),
        )


@dataclass(frozen=True)
class CrawlBatchStats:
    total_links_analyzed: int = 0
    links_checked: int = 0
    cache_hits_broken: int = 0
    cache_hits_working: int = 0

    @property
    def cache_hit_rate(self) -> float:
        if not self.total_links_analyzed:
            return 0.0
        hits = self.cache_hits_broken + self.cache_hits_working
        return round(hits / self.total_links_analyzed * 100, 1)


@dataclass(frozen=True)
class CrawlBatchResult:
    """Output of one crawl batch: findings plus the updated caches."""

    results: List[BrokenLinkCandidate]
    broken_urls_cache: List[str]
    working_urls_cache: List[str]
    pages_processed: int
    pages_skipped: int
    has_more_pages: bool
    next_batch_start_index: int
    total_pages: int
    stats: CrawlBatchStats


@dataclass(frozen=True)
class RumDetectionResult:
    success: bool
    links: List[BrokenLinkCandidate] = field(default_factory=list)
    error: Optional[str] = None
