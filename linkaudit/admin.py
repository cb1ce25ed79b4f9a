from django.contrib import admin

from .models import Audit, Opportunity, Site, SiteTopPage, Suggestion


@admin.register(Site)
class SiteAdmin(admin.ModelAdmin):
    list_display = ('base_url', 'delivery_type', 'requires_validation', 'auto_suggest_enabled', 'created_at')
    list_filter = ('delivery_type', 'requires_validation', 'auto_suggest_enabled')
    search_fields = ('base_url',)


@admin.register(SiteTopPage)
class SiteTopPageAdmin(admin.ModelAdmin):
    list_display = ('url', 'site', 'source', 'geo', 'traffic')
    list_filter = ('source', 'geo', 'site')
    search_fields = ('url',)


@admin.register(Audit)
class AuditAdmin(admin.ModelAdmin):
    list_display = ('site', 'audit_type', 'audited_at', 'is_successful')
    list_filter = ('audit_type', 'site')
    search_fields = ('site__base_url', 'full_audit_ref')


class SuggestionInline(admin.TabularInline):
    model = Suggestion
    fields = ('rank', 'status', 'data', 'updated_by')
    extra = 0


@admin.register(Opportunity)
class OpportunityAdmin(admin.ModelAdmin):
    list_display = ('title', 'site', 'type', 'status', 'updated_by', 'updated_at')
    list_filter = ('type', 'status', 'site')
    search_fields = ('title', 'site__base_url')
    inlines = [SuggestionInline]


@admin.register(Suggestion)
class SuggestionAdmin(admin.ModelAdmin):
    list_display = ('opportunity', 'rank', 'status', 'updated_by', 'updated_at')
    list_filter = ('status', 'type')
    search_fields = ('data__urlFrom', 'data__urlTo')
