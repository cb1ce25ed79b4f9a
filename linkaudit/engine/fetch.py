"""Fail-soft parallel fetching of stored objects."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Sequence, TypeVar

from .errors import DataUnavailableError

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class FetchOutcome(Generic[K, V]):
    """Successes and failures of a :func:`fetch_all` call, keyed like the input."""

    results: Dict[K, V] = field(default_factory=dict)
    failures: Dict[K, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.results) + len(self.failures)


def _fetch_with_retry(key: K, fetch_one: Callable[[K], V], max_retries: int) -> V:
    attempt = 0
    while True:
        try:
            return fetch_one(key)
        except Exception as exc:
            if attempt >= max_retries:
                logger.error("Failed to process file %s after %d retries: %s", key, max_retries, exc)
                raise
            attempt += 1
            logger.warning("Retrying file %s (attempt %d/%d): %s", key, attempt, max_retries, exc)


def fetch_all(
    keys: Sequence[K],
    fetch_one: Callable[[K], V],
    *,
    max_retries: int = 1,
    max_workers: int = 8,
) -> FetchOutcome[K, V]:
    """Fetch every key concurrently, tolerating individual failures.

    Each failed key is retried immediately up to ``max_retries`` times. Only
    when every key fails does this raise :class:`DataUnavailableError`.
    """

    outcome: FetchOutcome[K, V] = FetchOutcome()
    if not keys:
        return outcome

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(keys)))) as executor:
        futures = {key: executor.submit(_fetch_with_retry, key, fetch_one, max_retries) for key in keys}
        for key, future in futures.items():
            try:
                outcome.results[key] = future.result()
            except Exception as exc:
                outcome.failures[key] = str(exc)

    if outcome.failures:
        logger.warning(
            "%d out of %d files failed to process, continuing with %d successful files",
            len(outcome.failures),
            len(keys),
            len(outcome.results),
        )
    logger.info(
        "File processing completed: %d successful, %d failed out of %d total files",
        len(outcome.results),
        len(outcome.failures),
        len(keys),
    )

    if not outcome.results:
        raise DataUnavailableError(f"No files could be processed successfully out of {len(keys)}")
    return outcome
