"""
Rota Django applications package.

This package contains all Django apps for the shift scheduling front-end:
- core: Backend client, sign-in, time helpers and shared test harness
- rota: Main application for scheduling screens (board, views, templates)
- api: JSON endpoints for the board script and health checks
"""
