"""URL helpers for locale prefixes and host comparison."""

from __future__ import annotations

import re
from urllib.parse import SplitResult, urlsplit

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
# ``mailto:``, ``tel:`` and friends; ``host:8080`` is a port, not a scheme.
_OPAQUE_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:(?!\d*(?:[/?#]|$))")


def ensure_scheme(url: str) -> str:
    """Prefix ``url`` with ``https://`` when it carries no scheme."""

    url = url.strip()
    if _SCHEME_RE.match(url):
        return url
    return f"https://{url}"


def parse_url(url: str) -> SplitResult:
    """Split ``url`` (scheme optional) and make sure it names a host.

    Raises ``ValueError`` for input that cannot be read as an absolute URL,
    including invalid ports.
    """

    if not isinstance(url, str) or not url.strip():
        raise ValueError("empty URL")
    stripped = url.strip()
    if _OPAQUE_SCHEME_RE.match(stripped) and not _SCHEME_RE.match(stripped):
        raise ValueError(f"URL has no host: {url!r}")
    parts = urlsplit(ensure_scheme(url))
    if not parts.hostname:
        raise ValueError(f"URL has no host: {url!r}")
    # Accessing ``port`` validates it.
    parts.port
    return parts


def strip_www(hostname: str) -> str:
    return hostname[4:] if hostname.startswith("www.") else hostname


def strip_trailing_slash(url: str) -> str:
    """Remove trailing slashes, keeping a lone ``/`` intact."""

    if not url:
        return url
    stripped = url.rstrip("/")
    return stripped or "/"


def extract_path_prefix(url: str | None) -> str:
    """Return the first path segment of ``url`` as a locale prefix such as ``/uk``.

    Relative paths, URLs without a path and unparsable input yield ``''``.
    """

    if not url:
        return ""
    if url.strip().startswith("/"):
        return ""
    try:
        parts = parse_url(url)
    except ValueError:
        return ""
    segments = [segment for segment in parts.path.split("/") if segment]
    return f"/{segments[0]}" if segments else ""
