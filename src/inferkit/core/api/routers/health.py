"""Health check router."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import StrEnum

from pydantic import BaseModel, Field

from ..router import Router


class HealthState(StrEnum):
    """Health state enumeration for health checks."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


HealthCheck = Callable[[], Awaitable[tuple[HealthState, str | None]]]


class CheckResult(BaseModel):
    """Result of an individual health check."""

    state: HealthState
    message: str | None = None


class HealthStatus(BaseModel):
    """Overall health plus per-check results."""

    status: HealthState = Field(description="Worst state over all checks")
    checks: dict[str, CheckResult] | None = None


class HealthRouter(Router):
    """Runs the configured checks and reports the worst state."""

    def __init__(
        self,
        prefix: str,
        tags: list[str],
        checks: dict[str, HealthCheck] | None = None,
        **kwargs: object,
    ) -> None:
        """Initialize health router with named checks."""
        self.checks = checks or {}
        super().__init__(prefix=prefix, tags=tags, **kwargs)

    def _register_routes(self) -> None:
        checks = self.checks

        @self.router.get("", summary="Health check", response_model=HealthStatus, response_model_exclude_none=True)
        async def health_check() -> HealthStatus:
            if not checks:
                return HealthStatus(status=HealthState.HEALTHY)

            results: dict[str, CheckResult] = {}
            overall = HealthState.HEALTHY
            for name, check in checks.items():
                try:
                    state, message = await check()
                except Exception as e:
                    state, message = HealthState.UNHEALTHY, f"Check failed: {e}"
                results[name] = CheckResult(state=state, message=message)

                if state == HealthState.UNHEALTHY:
                    overall = HealthState.UNHEALTHY
                elif state == HealthState.DEGRADED and overall == HealthState.HEALTHY:
                    overall = HealthState.DEGRADED

            return HealthStatus(status=overall, checks=results)
