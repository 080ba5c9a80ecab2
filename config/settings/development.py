"""
Django development settings for the Rota project.

These settings extend base.py with development-specific configuration.
DEBUG is enabled and the browsable API is switched on.

Usage:
    export DJANGO_SETTINGS_MODULE=config.settings.development
    export ROTA_API_BASE=http://localhost:4000/api
    python manage.py runserver
"""

from .base import *  # noqa: F401, F403

# =============================================================================
# DEBUG CONFIGURATION
# =============================================================================

DEBUG = True

# Allow all hosts in development
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "[::1]", "testserver"]

INTERNAL_IPS = [
    "127.0.0.1",
    "localhost",
]


# =============================================================================
# STATIC FILES (Development - no compression)
# =============================================================================

# Use simple storage in development for faster reloads
STORAGES = {  # noqa: F405
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}


# =============================================================================
# REST FRAMEWORK (Development)
# =============================================================================

REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = [  # noqa: F405
    "rest_framework.renderers.JSONRenderer",
    "rest_framework.renderers.BrowsableAPIRenderer",  # Enable browsable API
]


# =============================================================================
# LOGGING (More verbose in development)
# =============================================================================

LOGGING["loggers"]["django"]["level"] = "DEBUG"  # noqa: F405
LOGGING["loggers"]["apps"]["level"] = "DEBUG"  # noqa: F405
