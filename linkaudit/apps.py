from django.apps import AppConfig


class LinkauditConfig(AppConfig):
    """Configuration for the linkaudit Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'linkaudit'
