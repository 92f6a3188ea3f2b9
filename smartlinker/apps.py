from django.apps import AppConfig


class SmartLinkerConfig(AppConfig):
    """Configuration for the smartlinker Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'smartlinker'
