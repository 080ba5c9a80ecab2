"""Django app configuration for core app."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Shared plumbing: backend client, sign-in, time helpers."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.core"
    verbose_name = "Core"

    def ready(self):
        """Initialize app when Django starts."""
        # Connects the user_logged_in receiver
        from . import auth  # noqa: F401
