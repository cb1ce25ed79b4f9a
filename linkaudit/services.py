"""Audit steps for the broken internal links audit.

Each step is a plain function taking an :class:`AuditContext` and returning
a JSON-serialisable dict for the orchestrator. The steps are, in order:

1. :func:`run_audit_and_import_top_pages` queries RUM for 404s and records
   the audit.
2. :func:`prepare_scraping` lists the top pages the scraper should fetch.
3. :func:`crawl_batch` inspects one batch of scraped pages, persisting its
   progress and asking to be re-invoked until every page is done.
4. :func:`opportunity_and_suggestions` merges both sources, updates the
   opportunity and its suggestions and notifies Mystique.

Problems with the inputs come back as ``{'status': 'failed'}`` results.
Failures while writing (database, queue) propagate to the caller.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from django.conf import settings

from .clients import MessageQueue, ObjectStore, S3ObjectStore, SqsMessageQueue
from .engine.batch_state import cleanup_batch_state, load_batch_state, save_batch_state
from .engine.config import EngineConfig, load_config
from .engine.crawl import PageBody, Probe, advance_state
from .engine.detectors import DefaultDetectors, Detectors
from .engine.errors import AuditError, DataUnavailableError
from .engine.fetch import fetch_all
from .engine.logs import site_logger
from .engine.merge import merge_and_deduplicate
from .engine.notifier import MystiqueNotifier
from .engine.priority import calculate_kpi_deltas, calculate_priority
from .engine.probe import LinkProbe
from .engine.rum import HttpRumClient
from .engine.scope import filter_by_scope, filter_urls_by_scope
from .engine.types import BrokenLinkCandidate, PrioritizedLink, ScrapedPage
from .models import AUDIT_TYPE, Audit, Site, SiteTopPage
from .suggestions import (
    convert_to_opportunity,
    find_open_opportunity,
    links_with_suggestion_ids,
    resolve_opportunity,
    sync_suggestions,
)

logger = logging.getLogger(__name__)

STATUS_COMPLETE = 'complete'
STATUS_FAILED = 'failed'
STATUS_IN_PROGRESS = 'in-progress'

STEP_CRAWL_BATCH = 'crawl-batch'


@dataclass
class AuditContext:
    """Everything a step needs: the site, its audit and the collaborators."""

    site: Optional[Site]
    detectors: Detectors
    store: ObjectStore
    queue: MessageQueue
    config: EngineConfig = field(default_factory=load_config)
    audit: Optional[Audit] = None
    scraper_bucket: str = ''
    mystique_queue_url: str = ''
    audit_queue_url: str = ''
    # Re-checks RUM targets before they are reported; None keeps them all.
    probe: Optional[Probe] = None

    @classmethod
    def from_settings(cls, site: Optional[Site], audit: Optional[Audit] = None) -> 'AuditContext':
        config = load_config(getattr(settings, 'LINKAUDIT_ENGINE_CONFIG', None))
        probe = LinkProbe(timeout=config.probe_timeout)
        rum_client = HttpRumClient(settings.RUM_API_BASE_URL, settings.RUM_DOMAIN_KEY or None)
        return cls(
            site=site,
            audit=audit,
            detectors=DefaultDetectors(
                rum_client,
                probe=probe,
                pages_per_batch=config.pages_per_batch,
                link_check_batch_size=config.link_check_batch_size,
            ),
            store=S3ObjectStore(),
            queue=SqsMessageQueue(),
            config=config,
            scraper_bucket=settings.LINKAUDIT_SCRAPER_BUCKET,
            mystique_queue_url=settings.LINKAUDIT_MYSTIQUE_QUEUE_URL,
            audit_queue_url=settings.LINKAUDIT_AUDIT_QUEUE_URL,
            probe=probe,
        )

    @property
    def log(self) -> logging.LoggerAdapter:
        return site_logger(logger, self.site.pk if self.site else None)


def _failed(error: str) -> Dict[str, Any]:
    logger.error('[%s] %s', AUDIT_TYPE, error)
    return {'status': STATUS_FAILED, 'error': error}


def _missing_input(context: AuditContext, need_audit: bool = True) -> Optional[Dict[str, Any]]:
    if context.site is None:
        return _failed('Site is missing from the audit context')
    if need_audit and context.audit is None:
        return _failed(f"Audit is missing for site {context.site.pk}")
    return None


def _top_pages(context: AuditContext) -> List[SiteTopPage]:
    return list(
        SiteTopPage.objects.filter(
            site=context.site,
            source=context.config.top_pages_source,
            geo=context.config.top_pages_geo,
        )
    )


def _links_from(records: Any, log: logging.LoggerAdapter) -> List[BrokenLinkCandidate]:
    links: List[BrokenLinkCandidate] = []
    for record in records or []:
        try:
            links.append(BrokenLinkCandidate.from_dict(record))
        except (AttributeError, ValueError) as exc:
            log.warning('Ignoring malformed broken link record %s: %s', record, exc)
    return links


def _still_broken(links: List[BrokenLinkCandidate], probe: Probe) -> List[BrokenLinkCandidate]:
    if not links:
        return links
    targets = sorted({link.url_to for link in links})
    with ThreadPoolExecutor(max_workers=min(len(targets), 10)) as executor:
        verdicts = dict(zip(targets, executor.map(probe, targets)))
    return [link for link in links if verdicts[link.url_to]]


def run_audit_and_import_top_pages(context: AuditContext) -> Dict[str, Any]:
    """Detect broken links from RUM data and store the audit result."""

    missing = _missing_input(context, need_audit=False)
    if missing:
        return missing
    site = context.site
    log = context.log
    interval = context.config.interval_days
    log.info('starting audit')

    detection = context.detectors.detect_from_rum(site.hostname, site.base_url, interval)
    if detection.success:
        links = filter_by_scope(site.base_url, detection.links)
        if context.probe is not None:
            reported = len(links)
            links = _still_broken(links, context.probe)
            log.info('%d of %d RUM links are still inaccessible', len(links), reported)
        prioritized = calculate_priority(
            links,
            context.config.high_priority_threshold,
            context.config.medium_priority_threshold,
        )
        log.info('found: %d broken internal links', len(prioritized))
        audit_result = {
            'brokenInternalLinks': [link.to_dict() for link in prioritized],
            'fullAuditRef': site.base_url,
            'finalUrl': site.base_url,
            'auditContext': {'interval': interval},
            'success': True,
        }
    else:
        error = f"[{AUDIT_TYPE}] [Site: {site.pk}] audit failed with error: {detection.error}"
        log.error('audit failed with error: %s', detection.error)
        audit_result = {
            'finalUrl': site.base_url,
            'error': error,
            'success': False,
        }

    context.audit = Audit.objects.create(
        site=site,
        audit_type=AUDIT_TYPE,
        audit_result=audit_result,
        full_audit_ref=site.base_url,
    )
    return {
        'auditResult': audit_result,
        'fullAuditRef': site.base_url,
        'type': 'top-pages',
        'siteId': str(site.pk),
        'auditId': str(context.audit.pk),
    }


def prepare_scraping(context: AuditContext) -> Dict[str, Any]:
    """Return the in-scope top page URLs the scraper should fetch.

    Raises :class:`AuditError` when the audit failed and
    :class:`DataUnavailableError` when the audit scope excludes every top
    page.
    """

    missing = _missing_input(context)
    if missing:
        return missing
    site = context.site
    log = context.log
    if not context.audit.is_successful:
        log.error('Audit failed, skip scraping and suggestion generation')
        raise AuditError(f"[{AUDIT_TYPE}] [Site: {site.pk}] Audit failed, skip scraping and suggestion generation")

    top_pages = _top_pages(context)
    log.info('found %d top pages', len(top_pages))
    urls = filter_urls_by_scope([page.url for page in top_pages], site.base_url)
    if top_pages and not urls:
        log.error('All %d top pages filtered out by audit scope %s', len(top_pages), site.base_url)
        raise DataUnavailableError(
            f"All top pages filtered out by audit scope. Base URL {site.base_url} "
            f"excludes all {len(top_pages)} top pages"
        )
    if len(urls) < len(top_pages):
        log.info('%d of %d top pages are within the audit scope', len(urls), len(top_pages))
    return {
        'urls': [{'url': url} for url in urls],
        'siteId': str(site.pk),
        'auditId': str(context.audit.pk),
        'type': AUDIT_TYPE,
    }


def _load_scraped_page(context: AuditContext, url: str, key: str) -> ScrapedPage:
    data = context.store.get_json(context.scraper_bucket, key) or {}
    scrape_result = data.get('scrapeResult') or {}
    return ScrapedPage(final_url=data.get('finalUrl') or url, raw_body=scrape_result.get('rawBody') or '')


def crawl_batch(context: AuditContext, scrape_result_paths: Mapping[str, str]) -> Dict[str, Any]:
    """Run the next crawl batch and either schedule another or finish up.

    ``scrape_result_paths`` maps every scraped URL to its object key in the
    scraper bucket. Only the keys of the current batch are read.
    """

    missing = _missing_input(context)
    if missing:
        return missing
    site = context.site
    audit = context.audit
    log = context.log
    audit_id = str(audit.pk)

    state = load_batch_state(context.store, context.scraper_bucket, audit_id)
    ordered = sorted(scrape_result_paths)
    start = state.next_batch_start_index
    batch_urls = ordered[start:start + context.config.pages_per_batch]

    pages: Dict[str, PageBody] = {url: None for url in ordered}
    if batch_urls:
        outcome = fetch_all(
            batch_urls,
            lambda url: _load_scraped_page(context, url, scrape_result_paths[url]),
            max_retries=context.config.fetch_max_retries,
            max_workers=context.config.fetch_max_workers,
        )
        pages.update(outcome.results)

    result = context.detectors.detect_from_crawl(pages, start, state, site.base_url)
    state = advance_state(state, result)

    if result.has_more_pages:
        save_batch_state(context.store, context.scraper_bucket, audit_id, state)
        context.queue.send_message(
            context.audit_queue_url,
            {
                'type': AUDIT_TYPE,
                'siteId': str(site.pk),
                'auditId': audit_id,
                'auditContext': {
                    'next': STEP_CRAWL_BATCH,
                    'batchStartIndex': result.next_batch_start_index,
                },
            },
        )
        log.info(
            'batch %d done, %d broken links so far, next batch starts at %d',
            state.last_batch_num,
            len(state.results),
            result.next_batch_start_index,
        )
        return {
            'status': STATUS_IN_PROGRESS,
            'nextBatchStartIndex': result.next_batch_start_index,
            'totalPages': result.total_pages,
        }

    log.info(
        'crawl finished after %d batch(es): %d pages processed, %d broken links',
        state.last_batch_num + 1,
        state.total_pages_processed,
        len(state.results),
    )
    audit_result = dict(audit.audit_result or {})
    audit_result['crawlBrokenInternalLinks'] = [link.to_dict() for link in state.results]
    audit.audit_result = audit_result
    audit.save(update_fields=['audit_result'])
    cleanup_batch_state(context.store, context.scraper_bucket, audit_id)
    return opportunity_and_suggestions(context)


def opportunity_and_suggestions(context: AuditContext) -> Dict[str, Any]:
    """Turn the audit findings into an opportunity, suggestions and Mystique requests."""

    missing = _missing_input(context)
    if missing:
        return missing
    site = context.site
    audit = context.audit
    log = context.log

    if not audit.is_successful:
        log.info('Audit failed, skipping suggestions generation')
        return {'status': STATUS_COMPLETE}

    rum_links = _links_from(audit.audit_result.get('brokenInternalLinks'), log)
    crawl_links = _links_from(audit.audit_result.get('crawlBrokenInternalLinks'), log)
    merged = filter_by_scope(site.base_url, merge_and_deduplicate(crawl_links, rum_links))

    if not merged:
        opportunity = find_open_opportunity(site)
        if opportunity is None:
            log.info('no broken internal links found, skipping opportunity creation')
        else:
            log.info('no broken internal links found, but found opportunity, updating status to RESOLVED')
            resolve_opportunity(opportunity)
        return {'status': STATUS_COMPLETE}

    prioritized = calculate_priority(
        merged,
        context.config.high_priority_threshold,
        context.config.medium_priority_threshold,
    )
    opportunity = convert_to_opportunity(site, audit, calculate_kpi_deltas(prioritized))
    sync_suggestions(opportunity, prioritized, requires_validation=site.requires_validation)

    if not site.auto_suggest_enabled:
        log.info('auto-suggest is disabled, not sending broken links to Mystique')
        return {'status': STATUS_COMPLETE}

    notify_mystique(context, str(opportunity.pk), links_with_suggestion_ids(opportunity, prioritized))
    return {'status': STATUS_COMPLETE}


def notify_mystique(context: AuditContext, opportunity_id: str, links: List[PrioritizedLink]) -> int:
    site = context.site

    def send(message: Dict[str, Any]) -> None:
        context.queue.send_message(context.mystique_queue_url, message)

    notifier = MystiqueNotifier(
        send,
        batch_size=context.config.mystique_batch_size,
        denylist=context.config.alternative_url_denylist,
    )
    return notifier.notify(
        opportunity_id,
        links,
        _top_pages(context),
        site.base_url,
        {
            'siteId': str(site.pk),
            'auditId': str(context.audit.pk),
            'deliveryType': site.delivery_type,
            'auditContext': {
                **((context.audit.audit_result or {}).get('auditContext') or {}),
                'auditId': str(context.audit.pk),
            },
        },
    )
