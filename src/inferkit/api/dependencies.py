"""FastAPI dependencies resolving the serving manager from application state."""

from __future__ import annotations

from fastapi import Request

from inferkit.modules.serving.manager import ServingManager


def get_manager(request: Request) -> ServingManager:
    """Return the ServingManager attached to the running app."""
    manager = getattr(request.app.state, "serving", None)
    if manager is None:
        raise RuntimeError("Serving manager not initialized. Build the app with ServiceBuilder.")
    return manager
