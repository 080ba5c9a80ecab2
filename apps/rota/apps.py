"""Django app configuration for rota app."""

from django.apps import AppConfig


class RotaConfig(AppConfig):
    """Configuration for the Rota (shift scheduling) application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.rota"
    verbose_name = "Vardiya Planı"  # Turkish: Shift Plan
