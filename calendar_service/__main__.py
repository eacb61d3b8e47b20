"""Allow ``python -m calendar_service`` to start the API server."""

from calendar_service.cli import serve

serve()
