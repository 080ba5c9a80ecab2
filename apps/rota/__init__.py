"""
Rota (shift scheduling) application.

This is the main application of the Rota front-end. It handles:
- Department, employee and shift template management
- The weekly schedule board (pending creates, drag-and-drop moves)
- Availability and swap request review
- Reports and the admin dashboard
- The employee's own week
"""

default_app_config = "apps.rota.apps.RotaConfig"
