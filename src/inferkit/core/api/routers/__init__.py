"""Core routers."""

from .health import CheckResult, HealthCheck, HealthRouter, HealthState, HealthStatus

__all__ = ["CheckResult", "HealthCheck", "HealthRouter", "HealthState", "HealthStatus"]
