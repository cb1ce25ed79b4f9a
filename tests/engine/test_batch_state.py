"""Crawl continuation state storage and fail-soft fetching."""

from __future__ import annotations

import logging

import pytest

from linkaudit.engine.batch_state import (
    cleanup_batch_state,
    get_batch_state_key,
    load_batch_state,
    save_batch_state,
)
from linkaudit.engine.errors import DataUnavailableError
from linkaudit.engine.fetch import fetch_all
from linkaudit.engine.types import CrawlBatchState

from .conftest import make_link

BUCKET = "scraper-bucket"


def test_state_key_layout():
    assert get_batch_state_key("audit-1") == "broken-internal-links/batch-state/audit-1/state.json"


def test_missing_state_starts_fresh(store, caplog):
    with caplog.at_level(logging.DEBUG, logger="linkaudit.engine.batch_state"):
        state = load_batch_state(store, BUCKET, "audit-1")

    assert state == CrawlBatchState()
    assert "No existing state found" in caplog.text


def test_saved_state_loads_back(store, caplog):
    state = CrawlBatchState(
        results=[make_link("https://example.com/a", "https://example.com/b")],
        broken_urls=["https://example.com/b"],
        working_urls=["https://example.com/c"],
        last_batch_num=2,
        total_pages_processed=90,
        next_batch_start_index=90,
    )

    with caplog.at_level(logging.INFO, logger="linkaudit.engine.batch_state"):
        save_batch_state(store, BUCKET, "audit-1", state)

    assert "Saved state: batch 2, 1 results" in caplog.text
    assert store.objects[(BUCKET, get_batch_state_key("audit-1"))]["nextBatchStartIndex"] == 90
    assert load_batch_state(store, BUCKET, "audit-1") == state


def test_other_load_errors_propagate(caplog):
    class BrokenStore:
        def get_json(self, bucket, key):
            raise RuntimeError("access denied")

    with caplog.at_level(logging.ERROR, logger="linkaudit.engine.batch_state"):
        with pytest.raises(RuntimeError):
            load_batch_state(BrokenStore(), BUCKET, "audit-1")

    assert "Failed to load state" in caplog.text


def test_cleanup_tolerates_failures(store):
    save_batch_state(store, BUCKET, "audit-1", CrawlBatchState())

    assert cleanup_batch_state(store, BUCKET, "audit-1") is True
    assert store.objects == {}

    class BrokenStore:
        def delete(self, bucket, key):
            raise RuntimeError("no permission")

    assert cleanup_batch_state(BrokenStore(), BUCKET, "audit-1") is False


def test_fetch_all_tolerates_partial_failures(caplog):
    def fetch_one(key):
        if key == "bad":
            raise IOError("unreadable")
        return key.upper()

    with caplog.at_level(logging.INFO, logger="linkaudit.engine.fetch"):
        outcome = fetch_all(["a", "bad", "b"], fetch_one)

    assert outcome.results == {"a": "A", "b": "B"}
    assert set(outcome.failures) == {"bad"}
    assert outcome.total == 3
    assert "File processing completed: 2 successful, 1 failed out of 3 total files" in caplog.text


def test_fetch_all_retries_once_before_giving_up():
    attempts = {}

    def flaky(key):
        attempts[key] = attempts.get(key, 0) + 1
        if attempts[key] == 1:
            raise IOError("transient")
        return attempts[key]

    outcome = fetch_all(["a"], flaky, max_retries=1)

    assert outcome.results == {"a": 2}
    assert attempts == {"a": 2}


def test_fetch_all_raises_when_nothing_succeeds():
    def always_fails(key):
        raise IOError("gone")

    with pytest.raises(DataUnavailableError):
        fetch_all(["a", "b"], always_fails, max_retries=2)


def test_fetch_all_with_no_keys_is_empty():
    outcome = fetch_all([], lambda key: key)

    assert outcome.results == {}
    assert outcome.total == 0
