import json

from django.core.management.base import BaseCommand, CommandError

from linkaudit.engine.errors import AuditError
from linkaudit.models import Audit, Site
from linkaudit.services import (
    AuditContext,
    crawl_batch,
    opportunity_and_suggestions,
    prepare_scraping,
    run_audit_and_import_top_pages,
)

STEPS = ('run-audit', 'prepare-scraping', 'crawl-batch', 'opportunity-and-suggestions')


class Command(BaseCommand):
    help = 'Run one step of the broken internal links audit for a site.'

    def add_arguments(self, parser):
        parser.add_argument('step', choices=STEPS)
        parser.add_argument('--site', type=int, required=True, help='Site primary key.')
        parser.add_argument('--audit', type=int, help='Audit primary key, required after run-audit.')
        parser.add_argument(
            '--message',
            help='JSON file with the step message; crawl-batch reads "scrapeResultPaths" from it.',
        )

    def handle(self, *args, **options):
        try:
            site = Site.objects.get(pk=options['site'])
        except Site.DoesNotExist as exc:
            raise CommandError(f"Site {options['site']} does not exist") from exc

        audit = None
        if options.get('audit') is not None:
            try:
                audit = Audit.objects.get(pk=options['audit'], site=site)
            except Audit.DoesNotExist as exc:
                raise CommandError(f"Audit {options['audit']} does not exist for site {site.pk}") from exc

        message = {}
        if options.get('message'):
            try:
                with open(options['message'], encoding='utf-8') as stream:
                    message = json.load(stream)
            except (OSError, ValueError) as exc:
                raise CommandError(f"Could not read message file {options['message']}: {exc}") from exc

        context = AuditContext.from_settings(site, audit)
        step = options['step']
        try:
            if step == 'run-audit':
                result = run_audit_and_import_top_pages(context)
            elif step == 'prepare-scraping':
                result = prepare_scraping(context)
            elif step == 'crawl-batch':
                result = crawl_batch(context, message.get('scrapeResultPaths') or {})
            else:
                result = opportunity_and_suggestions(context)
        except AuditError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(json.dumps(result, indent=2, default=str))
        if result.get('status') == 'failed':
            raise CommandError(result.get('error', 'Audit step failed'))
