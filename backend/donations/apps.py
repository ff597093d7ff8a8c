"""Donations app configuration."""

from django.apps import AppConfig


class DonationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'donations'

    def ready(self):
        # No-op unless ENABLE_EXPIRY_MONITOR is set
        from .expiry_monitor import start_expiry_monitor
        start_expiry_monitor()
