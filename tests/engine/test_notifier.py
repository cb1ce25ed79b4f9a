"""Batched notifications to Mystique."""

from __future__ import annotations

import logging

import pytest

from linkaudit.engine.errors import NotificationError
from linkaudit.engine.notifier import MESSAGE_TYPE, MystiqueNotifier, is_denied_extension, restrict_to_locale
from linkaudit.engine.types import PrioritizedLink

from .conftest import make_prioritized

BASE = "https://example.com"
TOP_PAGES = ["https://example.com/", "https://example.com/products", "https://example.com/about"]
MESSAGE_BASE = {
    "siteId": "site-1",
    "auditId": "audit-1",
    "deliveryType": "aem_edge",
    "auditContext": {"auditId": "audit-1", "interval": 30},
}


class RecordingQueue:
    def __init__(self, fail_on: int | None = None):
        self.messages = []
        self.fail_on = fail_on

    def __call__(self, message):
        if self.fail_on is not None and len(self.messages) == self.fail_on:
            raise RuntimeError("queue unavailable")
        self.messages.append(message)


def test_one_hundred_fifty_links_make_two_batches(caplog):
    queue = RecordingQueue()
    links = [make_prioritized(index) for index in range(150)]

    with caplog.at_level(logging.INFO, logger="linkaudit.engine.notifier"):
        sent = MystiqueNotifier(queue, batch_size=100).notify("oppty-1", links, TOP_PAGES, BASE, MESSAGE_BASE)

    assert sent == 2
    assert [len(message["data"]["brokenLinks"]) for message in queue.messages] == [100, 50]
    assert [message["data"]["batchInfo"] for message in queue.messages] == [
        {"batchIndex": 0, "totalBatches": 2, "totalBrokenLinks": 150},
        {"batchIndex": 1, "totalBatches": 2, "totalBrokenLinks": 150},
    ]
    assert "Sending 150 broken links in 2 batch(es) to Mystique" in caplog.text


def test_batches_cover_input_without_duplicates():
    queue = RecordingQueue()
    links = [make_prioritized(index) for index in range(23)]

    MystiqueNotifier(queue, batch_size=5).notify("oppty-1", links, TOP_PAGES, BASE, MESSAGE_BASE)

    sent_ids = [link["suggestionId"] for message in queue.messages for link in message["data"]["brokenLinks"]]
    assert len(queue.messages) == 5
    assert all(len(message["data"]["brokenLinks"]) <= 5 for message in queue.messages)
    assert sorted(sent_ids) == sorted(link.suggestion_id for link in links)
    assert len(set(sent_ids)) == len(sent_ids)


def test_message_shape():
    queue = RecordingQueue()
    link = PrioritizedLink(
        url_from="https://example.com/a",
        url_to="https://example.com/gone",
        traffic_domain=1800,
        priority="high",
        suggestion_id="s-1",
    )

    MystiqueNotifier(queue).notify("oppty-1", [link], TOP_PAGES, BASE, MESSAGE_BASE)

    (message,) = queue.messages
    assert message["type"] == MESSAGE_TYPE
    assert message["siteId"] == "site-1"
    assert message["auditId"] == "audit-1"
    assert message["deliveryType"] == "aem_edge"
    assert message["auditContext"] == {"auditId": "audit-1", "interval": 30}
    assert "time" in message
    assert message["data"] == {
        "opportunityId": "oppty-1",
        "brokenLinks": [
            {
                "urlFrom": "https://example.com/a",
                "urlTo": "https://example.com/gone",
                "trafficDomain": 1800,
                "priority": "high",
                "suggestionId": "s-1",
            }
        ],
        "alternativeUrls": TOP_PAGES,
        "siteBaseURL": BASE,
        "batchInfo": {"batchIndex": 0, "totalBatches": 1, "totalBrokenLinks": 1},
    }


def test_links_without_suggestion_are_not_sent(caplog):
    queue = RecordingQueue()
    links = [make_prioritized(1, suggestion_id=None)]

    with caplog.at_level(logging.WARNING, logger="linkaudit.engine.notifier"):
        sent = MystiqueNotifier(queue).notify("oppty-1", links, TOP_PAGES, BASE, MESSAGE_BASE)

    assert sent == 0
    assert queue.messages == []
    assert "No valid broken links to send to Mystique" in caplog.text


def test_missing_opportunity_id_stops_sending(caplog):
    queue = RecordingQueue()

    with caplog.at_level(logging.ERROR, logger="linkaudit.engine.notifier"):
        sent = MystiqueNotifier(queue).notify(None, [make_prioritized(1)], TOP_PAGES, BASE, MESSAGE_BASE)

    assert sent == 0
    assert queue.messages == []
    assert "Opportunity ID is missing" in caplog.text


def test_no_alternatives_after_filtering(caplog):
    queue = RecordingQueue()
    top_pages = ["https://example.com/brochure.PDF", "https://example.com/report.xlsx?v=2"]

    with caplog.at_level(logging.WARNING, logger="linkaudit.engine.notifier"):
        sent = MystiqueNotifier(queue).notify("oppty-1", [make_prioritized(1)], top_pages, BASE, MESSAGE_BASE)

    assert sent == 0
    assert "No alternative URLs available" in caplog.text


def test_denylist_is_case_insensitive_and_ignores_query():
    assert is_denied_extension("https://example.com/file.DOCX")
    assert is_denied_extension("https://example.com/deck.pptx?download=1#page")
    assert not is_denied_extension("https://example.com/pdf-guide")


def test_alternatives_follow_audit_scope():
    queue = RecordingQueue()
    top_pages = ["https://example.com/uk/a", "https://example.com/de/a", "https://example.com/uk/b"]
    link = make_prioritized(1, base="https://example.com/uk")

    MystiqueNotifier(queue).notify("oppty-1", [link], top_pages, "https://example.com/uk", MESSAGE_BASE)

    assert queue.messages[0]["data"]["alternativeUrls"] == ["https://example.com/uk/a", "https://example.com/uk/b"]


def test_single_locale_batch_is_restricted_to_that_locale():
    alternatives = ["https://example.com/uk/a", "https://example.com/de/a", "https://example.com/"]
    links = [make_prioritized(1, base="https://example.com/de"), make_prioritized(2, base="https://example.com/de")]

    assert restrict_to_locale(links, alternatives) == ["https://example.com/de/a"]


def test_locale_falls_back_to_source_prefix():
    link = PrioritizedLink(url_from="https://example.com/uk/page", url_to="/missing", suggestion_id="s")

    assert restrict_to_locale([link], ["https://example.com/uk/a", "https://example.com/de/a"]) == [
        "https://example.com/uk/a"
    ]


def test_mixed_locales_are_not_restricted():
    alternatives = ["https://example.com/uk/a", "https://example.com/de/a"]
    links = [make_prioritized(1, base="https://example.com/uk"), make_prioritized(2, base="https://example.com/de")]

    assert restrict_to_locale(links, alternatives) == alternatives


def test_send_failure_propagates_after_partial_success():
    queue = RecordingQueue(fail_on=1)
    links = [make_prioritized(index) for index in range(3)]

    with pytest.raises(NotificationError) as excinfo:
        MystiqueNotifier(queue, batch_size=1).notify("oppty-1", links, TOP_PAGES, BASE, MESSAGE_BASE)

    assert excinfo.value.batch_index == 1
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert len(queue.messages) == 1


def test_locale_without_matching_alternatives_keeps_all():
    alternatives = ["https://example.com/uk/a", "https://example.com/de/a"]
    links = [make_prioritized(1, base="https://example.com/fr")]

    assert restrict_to_locale(links, alternatives) == alternatives
