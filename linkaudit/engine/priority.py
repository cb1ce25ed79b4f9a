"""Priority and KPI calculations for broken links."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List

from .types import (
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    BrokenLinkCandidate,
    PrioritizedLink,
)

HIGH_PRIORITY_THRESHOLD = 1500
MEDIUM_PRIORITY_THRESHOLD = 500

# KPI projection constants
MAX_LINKS_TO_CONSIDER = 10
TRAFFIC_MULTIPLIER = 0.01
CPC_DEFAULT_VALUE = 1


def priority_for(
    traffic_domain: float | None,
    high_threshold: float = HIGH_PRIORITY_THRESHOLD,
    medium_threshold: float = MEDIUM_PRIORITY_THRESHOLD,
) -> str:
    """Map a traffic value onto ``high``/``medium``/``low``.

    Links without traffic are always ``low``, whatever the thresholds.
    """

    traffic = traffic_domain or 0
    if traffic <= 0:
        return PRIORITY_LOW
    if traffic >= high_threshold:
        return PRIORITY_HIGH
    if traffic >= medium_threshold:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


def calculate_priority(
    links: Iterable[BrokenLinkCandidate],
    high_threshold: float = HIGH_PRIORITY_THRESHOLD,
    medium_threshold: float = MEDIUM_PRIORITY_THRESHOLD,
) -> List[PrioritizedLink]:
    """Attach a priority to every link, highest traffic first."""

    prioritized = [
        PrioritizedLink(
            url_from=link.url_from,
            url_to=link.url_to,
            traffic_domain=link.traffic_domain,
            priority=priority_for(link.traffic_domain, high_threshold, medium_threshold),
        )
        for link in links
    ]
    prioritized.sort(key=lambda item: item.traffic_domain, reverse=True)
    return prioritized


def resolve_cpc_value() -> float:
    return CPC_DEFAULT_VALUE


def calculate_kpi_deltas(links: Iterable[BrokenLinkCandidate]) -> Dict[str, int]:
    """Project the traffic and value lost to the broken links.

    For each target only the ``MAX_LINKS_TO_CONSIDER`` busiest sources count.
    """

    by_target: Dict[str, List[float]] = defaultdict(list)
    for link in links:
        by_target[link.url_to].append(link.traffic_domain or 0)

    traffic_lost = 0.0
    for traffic_values in by_target.values():
        top = sorted(traffic_values, reverse=True)[:MAX_LINKS_TO_CONSIDER]
        traffic_lost += sum(value * TRAFFIC_MULTIPLIER for value in top)

    return {
        "projectedTrafficLost": round(traffic_lost),
        "projectedTrafficValue": round(traffic_lost * resolve_cpc_value()),
    }
