"""
asgi.py -- Application assembly for BugTracker.

The ASGI entry point servers import. api/main.py builds the app and wires
the routers; this module is the stable import path for deployment so the
app's module layout can change without touching server configuration.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
