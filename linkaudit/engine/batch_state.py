"""Persist crawl continuation state between batch invocations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import ObjectNotFound
from .types import CrawlBatchState

if TYPE_CHECKING:  # pragma: no cover
    from linkaudit.clients import ObjectStore

logger = logging.getLogger(__name__)

STATE_PREFIX = "broken-internal-links/batch-state"


def get_batch_state_key(audit_id: str) -> str:
    return f"{STATE_PREFIX}/{audit_id}/state.json"


def load_batch_state(store: "ObjectStore", bucket: str, audit_id: str) -> CrawlBatchState:
    """Return the stored state for ``audit_id`` or a fresh one."""

    key = get_batch_state_key(audit_id)
    try:
        data = store.get_json(bucket, key)
    except ObjectNotFound:
        logger.debug("No existing state found for audit %s, starting fresh", audit_id)
        return CrawlBatchState()
    except Exception as exc:
        logger.error("Failed to load state for audit %s: %s", audit_id, exc)
        raise
    state = CrawlBatchState.from_dict(data or {})
    logger.info(
        "Loaded state for audit %s: batch %d, %d results, %d pages processed",
        audit_id,
        state.last_batch_num,
        len(state.results),
        state.total_pages_processed,
    )
    return state


def save_batch_state(store: "ObjectStore", bucket: str, audit_id: str, state: CrawlBatchState) -> None:
    store.put_json(bucket, get_batch_state_key(audit_id), state.to_dict())
    logger.info("Saved state: batch %d, %d results", state.last_batch_num, len(state.results))


def cleanup_batch_state(store: "ObjectStore", bucket: str, audit_id: str) -> bool:
    """Delete stored state; failures are logged and reported as ``False``."""

    key = get_batch_state_key(audit_id)
    try:
        store.delete(bucket, key)
    except Exception as exc:
        logger.warning("Failed to clean up batch state %s: %s", key, exc)
        return False
    logger.info("Cleaned up batch state for audit %s", audit_id)
    return True
