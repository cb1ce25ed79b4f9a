"""Merging detector output and assigning priorities."""

from __future__ import annotations

import logging

from linkaudit.engine.merge import merge_and_deduplicate
from linkaudit.engine.priority import calculate_kpi_deltas, calculate_priority, priority_for

from .conftest import make_link


def test_merge_prefers_rum_traffic(caplog):
    crawl = [make_link("A", "B", 0)]
    rum = [make_link("A", "B", 100), make_link("C", "D", 50)]

    with caplog.at_level(logging.INFO, logger="linkaudit.engine.merge"):
        merged = merge_and_deduplicate(crawl, rum)

    assert [link.to_dict() for link in merged] == [
        {"urlFrom": "A", "urlTo": "B", "trafficDomain": 100},
        {"urlFrom": "C", "urlTo": "D", "trafficDomain": 50},
    ]
    assert "Merge results: 2 total (0 crawl-only, 1 RUM-only, 1 overlap)" in caplog.text


def test_merge_appends_crawl_only_links_with_zero_traffic():
    crawl = [make_link("E", "F", 7), make_link("A", "B", 0)]
    rum = [make_link("A", "B", 100)]

    merged = merge_and_deduplicate(crawl, rum)

    assert [(link.url_from, link.url_to, link.traffic_domain) for link in merged] == [
        ("A", "B", 100),
        ("E", "F", 0),
    ]


def test_merge_is_deterministic_and_bounded():
    crawl = [make_link("A", "B"), make_link("A", "B"), make_link("X", "Y")]
    rum = [make_link("X", "Y", 10), make_link("A", "B", 3), make_link("X", "Y", 99)]

    first = merge_and_deduplicate(crawl, rum)
    second = merge_and_deduplicate(list(reversed(crawl)), list(reversed(rum)))

    assert first == merge_and_deduplicate(crawl, rum)
    assert {link.key: link.traffic_domain for link in first} == {link.key: link.traffic_domain for link in second}
    assert len(first) <= len(crawl) + len(rum)
    assert len({link.key for link in first}) == len(first)
    assert {link.key: link.traffic_domain for link in first} == {"X|Y": 99, "A|B": 3}


def test_priority_from_fixture_traffic():
    links = [
        make_link("https://example.com/a", "https://example.com/x", 200),
        make_link("https://example.com/b", "https://example.com/y", 1800),
        make_link("https://example.com/c", "https://example.com/z", 1200),
    ]

    prioritized = calculate_priority(links)

    assert [(link.traffic_domain, link.priority) for link in prioritized] == [
        (1800, "high"),
        (1200, "medium"),
        (200, "low"),
    ]


def test_priority_is_monotonic_in_traffic():
    order = {"low": 0, "medium": 1, "high": 2}
    values = [0, 1, 499, 500, 501, 1499, 1500, 1501, 10_000]

    ranks = [order[priority_for(value)] for value in values]

    assert ranks == sorted(ranks)
    assert priority_for(None) == "low"


def test_priority_thresholds_are_configurable():
    links = [make_link("a", "b", 1200)]

    assert calculate_priority(links, high_threshold=1000, medium_threshold=100)[0].priority == "high"


def test_zero_traffic_stays_low_with_zero_thresholds():
    assert priority_for(0, high_threshold=0, medium_threshold=0) == "low"
    assert priority_for(None, high_threshold=1000, medium_threshold=0) == "low"
    assert priority_for(1, high_threshold=1000, medium_threshold=0) == "medium"


def test_kpi_deltas_take_top_sources_per_target():
    links = [make_link(f"https://example.com/s{index}", "https://example.com/t", 100) for index in range(12)]
    links.append(make_link("https://example.com/s", "https://example.com/u", 300))

    deltas = calculate_kpi_deltas(links)

    # 10 * 100 * 0.01 for /t plus 300 * 0.01 for /u
    assert deltas == {"projectedTrafficLost": 13, "projectedTrafficValue": 13}
