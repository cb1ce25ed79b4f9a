"""Locale prefix helpers and audit scope filtering."""

from __future__ import annotations

import logging

import pytest

from linkaudit.engine.paths import extract_path_prefix, parse_url, strip_trailing_slash
from linkaudit.engine.scope import (
    filter_by_scope,
    filter_urls_by_scope,
    is_within_audit_scope,
    parse_scope,
)

from .conftest import make_link


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://bulk.com/uk/products/page", "/uk"),
        ("bulk.com/de/", "/de"),
        ("https://bulk.com", ""),
        ("https://bulk.com/", ""),
        ("/uk/relative", ""),
        ("", ""),
        (None, ""),
        ("http://[broken", ""),
    ],
)
def test_extract_path_prefix(url, expected):
    assert extract_path_prefix(url) == expected


def test_strip_trailing_slash_keeps_root():
    assert strip_trailing_slash("https://example.com/blog/") == "https://example.com/blog"
    assert strip_trailing_slash("/") == "/"
    assert strip_trailing_slash("") == ""


def test_parse_scope_drops_trailing_slash():
    scope = parse_scope("https://example.com/fr/")

    assert scope.host == "example.com"
    assert scope.port is None
    assert scope.path_prefix == "/fr"


def test_scope_respects_segment_boundaries():
    base = "https://example.com/fr"

    assert is_within_audit_scope("https://example.com/fr", base)
    assert is_within_audit_scope("https://example.com/fr/page", base)
    assert not is_within_audit_scope("https://example.com/french/page", base)
    assert not is_within_audit_scope("https://other.com/fr/page", base)
    assert not is_within_audit_scope("https://example.com:8080/fr/page", base)


def test_relative_urls_are_checked_on_path_only():
    base = "https://example.com/uk"

    assert is_within_audit_scope("/uk/page?x=1", base)
    assert not is_within_audit_scope("/de/page", base)


def test_malformed_input_is_out_of_scope():
    assert not is_within_audit_scope(None, "https://example.com")
    assert not is_within_audit_scope("https://example.com/a", "")
    assert not is_within_audit_scope("http://[broken", "https://example.com")


def test_filter_by_scope_requires_both_ends(caplog):
    base = "https://example.com/blog"
    inside = make_link("https://example.com/blog/a", "https://example.com/blog/b")
    wrong_target = make_link("https://example.com/blog/a", "https://example.com/shop/b")
    wrong_host = make_link("https://other.com/blog/a", "https://example.com/blog/b")

    with caplog.at_level(logging.DEBUG, logger="linkaudit.engine.scope"):
        kept = filter_by_scope(base, [inside, wrong_target, wrong_host])

    assert kept == [inside]
    assert "Filtered out 2 links out of audit scope" in caplog.text
    assert "Filtered out https://example.com/blog/a -> https://example.com/shop/b: out of scope" in caplog.text


def test_filter_by_scope_survivors_share_host_and_prefix():
    base = "https://example.com/uk"
    links = [
        make_link("https://example.com/uk/a", "https://example.com/uk/b"),
        make_link("https://example.com/ukraine/a", "https://example.com/uk/b"),
        make_link("https://www.example.com/uk/a", "https://example.com/uk/b"),
        make_link("https://example.com/uk", "https://example.com/uk/c"),
    ]

    kept = filter_by_scope(base, links)

    assert len(kept) == 2
    for link in kept:
        for url in (link.url_from, link.url_to):
            assert url.startswith("https://example.com/uk")


def test_filter_by_scope_drops_relative_and_non_http_targets():
    links = [
        make_link("https://example.com/blog/a", "/blog/gone"),
        make_link("https://example.com/blog/a", "mailto:team@example.com"),
        make_link("https://example.com/blog/a", "tel:+15550100"),
        make_link("https://example.com/blog/a", "ftp://example.com/blog/file"),
    ]

    assert filter_by_scope("https://example.com/blog", links) == []
    assert filter_by_scope("https://example.com", links[1:2]) == []


def test_parse_url_rejects_opaque_schemes():
    with pytest.raises(ValueError):
        parse_url("mailto:team@example.com")
    with pytest.raises(ValueError):
        parse_url("javascript:void(0)")

    assert parse_url("example.com:8080/uk").port == 8080
    assert parse_url("example.com/uk").hostname == "example.com"


def test_filter_by_scope_with_bad_base_rejects_everything(caplog):
    links = [make_link("https://example.com/a", "https://example.com/b")]

    with caplog.at_level(logging.INFO, logger="linkaudit.engine.scope"):
        assert filter_by_scope("http://[broken", links) == []

    assert "Filtered out 1 links out of audit scope" in caplog.text


def test_filter_by_scope_logs_nothing_when_all_pass(caplog):
    links = [make_link("https://example.com/a", "https://example.com/b")]

    with caplog.at_level(logging.INFO, logger="linkaudit.engine.scope"):
        assert filter_by_scope("https://example.com", links) == links

    assert "out of audit scope" not in caplog.text


def test_filter_urls_by_scope_without_subpath_returns_everything():
    urls = ["https://example.com/a", "https://example.com/b"]

    assert filter_urls_by_scope(urls, "https://example.com") == urls
    assert filter_urls_by_scope(urls, "https://example.com/") == urls


def test_filter_urls_by_scope_blog_base_excludes_other_sections():
    urls = ["https://example.com/products", "https://example.com/about"]

    assert filter_urls_by_scope(urls, "https://example.com/blog") == []


def test_filter_urls_by_scope_accepts_objects_with_url():
    class Page:
        def __init__(self, url):
            self.url = url

    pages = [Page("https://example.com/uk/a"), Page("https://example.com/de/a")]

    kept = filter_urls_by_scope(pages, "https://example.com/uk")

    assert [page.url for page in kept] == ["https://example.com/uk/a"]
