"""Log helpers shared by the audit steps."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Tuple

AUDIT_TAG = "[broken-internal-links]"


class SiteLoggerAdapter(logging.LoggerAdapter):
    """Prefix every record with the audit tag and the site id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{AUDIT_TAG} [Site: {self.extra['site_id']}] {msg}", kwargs


def site_logger(logger: logging.Logger, site_id: object) -> SiteLoggerAdapter:
    return SiteLoggerAdapter(logger, {"site_id": site_id})
