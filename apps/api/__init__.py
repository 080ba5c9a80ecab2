"""
JSON endpoints for Rota.

- A public health check for container probes
- The reconciled schedule board, read by the drag-and-drop script

Also home of the serializers that decode the scheduling backend's payloads.
Built with Django REST Framework.
"""
