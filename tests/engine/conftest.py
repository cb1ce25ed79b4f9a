"""Shared fixtures for engine tests."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Tuple

import pytest

from linkaudit.engine.config import load_config
from linkaudit.engine.errors import ObjectNotFound
from linkaudit.engine.types import BrokenLinkCandidate, PrioritizedLink


@pytest.fixture()
def engine_config():
    """Provide a mutable copy of the default engine configuration."""

    return load_config(None)


def make_link(url_from: str, url_to: str, traffic: float = 0) -> BrokenLinkCandidate:
    return BrokenLinkCandidate(url_from=url_from, url_to=url_to, traffic_domain=traffic)


def make_prioritized(
    index: int,
    *,
    base: str = "https://example.com",
    priority: str = "low",
    suggestion_id: str | None = "auto",
) -> PrioritizedLink:
    return PrioritizedLink(
        url_from=f"{base}/page-{index}",
        url_to=f"{base}/missing-{index}",
        traffic_domain=index,
        priority=priority,
        suggestion_id=f"suggestion-{index}" if suggestion_id == "auto" else suggestion_id,
    )


class FakeStore:
    """In-memory object store keyed on ``(bucket, key)``."""

    def __init__(self, objects: Dict[Tuple[str, str], Any] | None = None) -> None:
        self.objects: Dict[Tuple[str, str], Any] = dict(objects or {})
        self.deleted: List[Tuple[str, str]] = []

    def get_json(self, bucket: str, key: str) -> Any:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise ObjectNotFound(key) from None

    def put_json(self, bucket: str, key: str, payload: Any) -> None:
        self.objects[(bucket, key)] = payload

    def delete(self, bucket: str, key: str) -> None:
        self.deleted.append((bucket, key))
        self.objects.pop((bucket, key), None)


class FakeProbe:
    """Probe answering from a fixed set of broken URLs and recording calls."""

    def __init__(self, broken: Iterable[str] = ()) -> None:
        self.broken = set(broken)
        self.calls: List[str] = []

    def __call__(self, url: str) -> bool:
        self.calls.append(url)
        return url in self.broken


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()
