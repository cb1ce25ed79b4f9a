"""Keep the broken internal links opportunity and its suggestions in sync.

Each audit run produces the full current set of broken links for a site.
Suggestions are matched to links on ``(urlFrom, urlTo)``: known pairs are
updated, new pairs are created and pairs that disappeared are marked
outdated. Nothing is ever deleted, so review history survives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

from django.db import DatabaseError, transaction

from .engine.errors import SuggestionSyncError
from .engine.types import PrioritizedLink, link_key
from .models import AUDIT_TYPE, Audit, Opportunity, Site, Suggestion

logger = logging.getLogger(__name__)

SYSTEM_USER = 'system'

# Statuses a vanished link must not be moved out of.
TERMINAL_STATUSES = (
    Suggestion.Status.OUTDATED,
    Suggestion.Status.FIXED,
    Suggestion.Status.ERROR,
    Suggestion.Status.SKIPPED,
)

OPPORTUNITY_TITLE = 'Broken internal links are impairing user experience and SEO crawlability'
OPPORTUNITY_DESCRIPTION = (
    'Broken internal links send visitors and crawlers to pages that no longer exist. '
    'Replacing them with working URLs restores navigation and lets link equity flow again.'
)
OPPORTUNITY_GUIDANCE = {
    'steps': [
        'Update each broken internal link to a valid URL.',
        'Test the implemented changes manually to ensure they are working as expected.',
        'Monitor internal links for 404 errors in RUM tool over time to ensure they are functioning correctly.',
    ],
}
OPPORTUNITY_TAGS = ['Traffic acquisition', 'Engagement']


@dataclass
class SyncOutcome:
    created: List[Suggestion] = field(default_factory=list)
    updated: List[Suggestion] = field(default_factory=list)
    outdated: List[Suggestion] = field(default_factory=list)


def suggestion_data(link: PrioritizedLink) -> Dict[str, object]:
    return link.to_dict()


def _initial_status(requires_validation: bool) -> str:
    return Suggestion.Status.PENDING_VALIDATION if requires_validation else Suggestion.Status.NEW


def find_open_opportunity(site: Site) -> Opportunity | None:
    return (
        Opportunity.objects.filter(site=site, type=AUDIT_TYPE, status=Opportunity.Status.NEW)
        .order_by('-updated_at')
        .first()
    )


def convert_to_opportunity(
    site: Site,
    audit: Audit | None,
    kpi_deltas: Mapping[str, object] | None = None,
) -> Opportunity:
    """Return the open opportunity for ``site``, creating it when missing."""

    try:
        opportunity = find_open_opportunity(site)
        if opportunity is None:
            opportunity = Opportunity(
                site=site,
                type=AUDIT_TYPE,
                origin='AUTOMATION',
                title=OPPORTUNITY_TITLE,
                description=OPPORTUNITY_DESCRIPTION,
                guidance=OPPORTUNITY_GUIDANCE,
                tags=list(OPPORTUNITY_TAGS),
                data={},
            )
            logger.info('Creating %s opportunity for site %s', AUDIT_TYPE, site.pk)
        opportunity.audit = audit
        data = dict(opportunity.data or {})
        if kpi_deltas is not None:
            data['kpiDeltas'] = dict(kpi_deltas)
        opportunity.data = data
        opportunity.updated_by = SYSTEM_USER
        opportunity.save()
    except DatabaseError as exc:
        logger.error('Failed to create or update opportunity for site %s: %s', site.pk, exc)
        raise SuggestionSyncError(f"Failed to create or update opportunity for site {site.pk}: {exc}") from exc
    return opportunity


def sync_suggestions(
    opportunity: Opportunity,
    prioritized_links: Sequence[PrioritizedLink],
    *,
    requires_validation: bool = False,
) -> SyncOutcome:
    """Reconcile the suggestions of ``opportunity`` with ``prioritized_links``."""

    outcome = SyncOutcome()
    wanted: Dict[str, PrioritizedLink] = {}
    for link in prioritized_links:
        wanted.setdefault(link.key, link)

    try:
        with transaction.atomic():
            existing = list(opportunity.suggestions.all())
            seen = set()
            stale: List[Suggestion] = []
            for suggestion in existing:
                key = suggestion.link_key
                link = wanted.get(key)
                if link is None:
                    if suggestion.status not in TERMINAL_STATUSES:
                        stale.append(suggestion)
                    continue
                if key in seen:
                    continue
                seen.add(key)
                if _refresh(suggestion, link, requires_validation):
                    outcome.updated.append(suggestion)

            if stale:
                Suggestion.objects.bulk_update_status(stale, Suggestion.Status.OUTDATED, updated_by=SYSTEM_USER)
                outcome.outdated = stale

            status = _initial_status(requires_validation)
            for link in prioritized_links:
                if link.key in seen:
                    continue
                seen.add(link.key)
                outcome.created.append(
                    Suggestion.objects.create(
                        opportunity=opportunity,
                        type='CONTENT_UPDATE',
                        rank=int(link.traffic_domain),
                        data=suggestion_data(link),
                        status=status,
                        updated_by=SYSTEM_USER,
                    )
                )
    except DatabaseError as exc:
        logger.error('Error updating suggestions for opportunity %s: %s', opportunity.pk, exc)
        raise SuggestionSyncError(f"Error updating suggestions: {exc}") from exc

    logger.info(
        'Synced suggestions for opportunity %s: %d created, %d updated, %d outdated',
        opportunity.pk,
        len(outcome.created),
        len(outcome.updated),
        len(outcome.outdated),
    )
    return outcome


def _refresh(suggestion: Suggestion, link: PrioritizedLink, requires_validation: bool) -> bool:
    data = dict(suggestion.data or {})
    data.update(suggestion_data(link))
    changed = data != suggestion.data
    if suggestion.status == Suggestion.Status.OUTDATED:
        logger.warning(
            'Broken link %s -> %s reappeared, reopening suggestion %s',
            link.url_from,
            link.url_to,
            suggestion.pk,
        )
        suggestion.status = _initial_status(requires_validation)
        changed = True
    if not changed:
        return False
    suggestion.data = data
    suggestion.rank = int(link.traffic_domain)
    suggestion.updated_by = SYSTEM_USER
    suggestion.save()
    return True


def resolve_opportunity(opportunity: Opportunity) -> int:
    """Mark ``opportunity`` resolved and its suggestions fixed."""

    try:
        with transaction.atomic():
            suggestions = list(opportunity.suggestions.all())
            fixed = Suggestion.objects.bulk_update_status(suggestions, Suggestion.Status.FIXED, updated_by=SYSTEM_USER)
            opportunity.status = Opportunity.Status.RESOLVED
            opportunity.updated_by = SYSTEM_USER
            opportunity.save()
    except DatabaseError as exc:
        logger.error('Error resolving opportunity %s: %s', opportunity.pk, exc)
        raise SuggestionSyncError(f"Error updating suggestions: {exc}") from exc
    logger.info('Resolved opportunity %s and marked %d suggestions fixed', opportunity.pk, fixed)
    return fixed


def links_with_suggestion_ids(
    opportunity: Opportunity,
    links: Iterable[PrioritizedLink],
    statuses: Sequence[str] = (Suggestion.Status.NEW,),
) -> List[PrioritizedLink]:
    """Attach suggestion ids to ``links`` for suggestions in ``statuses``.

    Links whose suggestion is in another status come back without an id.
    """

    ids: Dict[str, str] = {}
    for suggestion in opportunity.suggestions.filter(status__in=list(statuses)):
        ids.setdefault(suggestion.link_key, str(suggestion.pk))
    return [link.with_suggestion(ids.get(link_key(link.url_from, link.url_to))) for link in links]
