"""FastAPI framework layer without module dependencies - base router, middleware, health."""

from .middleware import add_error_handlers, add_logging_middleware, serving_error_handler, validation_error_handler
from .router import Router
from .routers import CheckResult, HealthCheck, HealthRouter, HealthState, HealthStatus

__all__ = [
    # Base router
    "Router",
    # Middleware
    "add_error_handlers",
    "add_logging_middleware",
    "serving_error_handler",
    "validation_error_handler",
    # Health
    "CheckResult",
    "HealthCheck",
    "HealthRouter",
    "HealthState",
    "HealthStatus",
]
