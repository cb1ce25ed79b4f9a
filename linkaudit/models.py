"""Database models for the linkaudit app.

A site has top pages (imported from a traffic source) and audits. The
broken internal links audit turns its findings into one opportunity per
site, and every broken link becomes a suggestion on that opportunity so it
can be reviewed, fixed or ignored.
"""

from __future__ import annotations

from typing import Iterable
from urllib.parse import urlsplit

from django.db import models
from django.utils import timezone

AUDIT_TYPE = 'broken-internal-links'


class Site(models.Model):
    """A website whose internal links are audited."""

    base_url = models.URLField(unique=True)
    delivery_type = models.CharField(max_length=50, default='other')
    requires_validation = models.BooleanField(default=False)
    auto_suggest_enabled = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return self.base_url

    @property
    def hostname(self) -> str:
        return urlsplit(self.base_url).hostname or ''


class SiteTopPage(models.Model):
    """A high-traffic page of a site, used as a replacement candidate."""

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name='top_pages')
    url = models.URLField(max_length=2000)
    source = models.CharField(max_length=50, default='ahrefs')
    geo = models.CharField(max_length=20, default='global')
    traffic = models.PositiveIntegerField(default=0)
    imported_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('site', 'url', 'source', 'geo')
        ordering = ['-traffic', 'url']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return self.url


class Audit(models.Model):
    """Result of one audit run for a site."""

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name='audits')
    audit_type = models.CharField(max_length=100, default=AUDIT_TYPE, db_index=True)
    audit_result = models.JSONField(default=dict, blank=True)
    full_audit_ref = models.CharField(max_length=2000, blank=True)
    audited_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-audited_at']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.audit_type} · {self.site} · {self.audited_at:%Y-%m-%d %H:%M}"

    @property
    def is_successful(self) -> bool:
        return bool((self.audit_result or {}).get('success'))


class Opportunity(models.Model):
    """A group of related findings for one site, up for review."""

    class Status(models.TextChoices):
        NEW = 'NEW'
        IN_PROGRESS = 'IN_PROGRESS'
        RESOLVED = 'RESOLVED'
        IGNORED = 'IGNORED'

    site = models.ForeignKey(Site, on_delete=models.CASCADE, related_name='opportunities')
    audit = models.ForeignKey(
        Audit,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='opportunities',
    )
    type = models.CharField(max_length=100, db_index=True)
    origin = models.CharField(max_length=50, default='AUTOMATION')
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    guidance = models.JSONField(default=dict, blank=True)
    tags = models.JSONField(default=list, blank=True)
    data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NEW)
    updated_by = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']
        verbose_name_plural = 'opportunities'

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.type} · {self.site} · {self.status}"


class SuggestionQuerySet(models.QuerySet):
    def bulk_update_status(self, suggestions: Iterable['Suggestion'], status: str, updated_by: str = 'system') -> int:
        """Set ``status`` on every given suggestion with a single query."""

        ids = [suggestion.pk for suggestion in suggestions]
        if not ids:
            return 0
        return self.filter(pk__in=ids).update(
            status=status,
            updated_by=updated_by,
            updated_at=timezone.now(),
        )


class Suggestion(models.Model):
    """One broken link on an opportunity, with its review status."""

    class Status(models.TextChoices):
        NEW = 'NEW'
        APPROVED = 'APPROVED'
        SKIPPED = 'SKIPPED'
        FIXED = 'FIXED'
        ERROR = 'ERROR'
        OUTDATED = 'OUTDATED'
        PENDING_VALIDATION = 'PENDING_VALIDATION'

    opportunity = models.ForeignKey(Opportunity, on_delete=models.CASCADE, related_name='suggestions')
    type = models.CharField(max_length=50, default='CONTENT_UPDATE')
    rank = models.IntegerField(default=0)
    data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=30, choices=Status.choices, default=Status.NEW)
    updated_by = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SuggestionQuerySet.as_manager()

    class Meta:
        ordering = ['-rank', 'pk']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.data.get('urlFrom')} -> {self.data.get('urlTo')} ({self.status})"

    @property
    def link_key(self) -> str:
        return f"{self.data.get('urlFrom')}|{self.data.get('urlTo')}"
