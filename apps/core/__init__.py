"""
Core application for Rota.

Shared plumbing used by the other apps:
- HTTP client for the scheduling backend (client.py)
- Sign-in against the backend and the backend_view decorator (auth.py)
- Date and time-of-day helpers (timeutils.py)
- Template context processors
- An in-memory fake backend for tests (testing.py)
"""

default_app_config = "apps.core.apps.CoreConfig"
