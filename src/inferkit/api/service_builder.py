"""Service builder assembling a FastAPI app around a ServingManager."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Self

from fastapi import APIRouter, FastAPI
from pydantic import BaseModel, ConfigDict

from inferkit.core.api import HealthCheck, HealthRouter, HealthState, add_error_handlers, add_logging_middleware
from inferkit.core.database import Database
from inferkit.core.logging import configure_logging, get_logger
from inferkit.core.settings import ServingSettings
from inferkit.modules.artifact import ArtifactStore, DatabaseArtifactStore, FileArtifactStore
from inferkit.modules.registry import BaseModelKind, ModelStatus
from inferkit.modules.serving import ServingManager, ServingRouter

from .dependencies import get_manager

logger = get_logger(__name__)

LifecycleHook = Callable[[FastAPI, ServingManager], Awaitable[None]]


class ServiceInfo(BaseModel):
    """Service metadata for FastAPI application."""

    display_name: str
    version: str = "1.0.0"
    summary: str | None = None
    description: str | None = None

    model_config = ConfigDict(extra="forbid")


class ServiceBuilder:
    """Fluent builder for a serving app; the manager is created in the app lifespan."""

    def __init__(
        self,
        *,
        info: ServiceInfo,
        kinds: Iterable[BaseModelKind] | Mapping[str, BaseModelKind] = (),
        settings: ServingSettings | None = None,
        include_error_handlers: bool = True,
        include_logging: bool = False,
    ) -> None:
        """Initialize builder with the model kind table and settings."""
        self.info = info
        self._kinds = kinds if isinstance(kinds, Mapping) else list(kinds)
        self._settings = settings
        self._include_error_handlers = include_error_handlers
        self._include_logging = include_logging
        self._manager_instance: ServingManager | None = None
        self._artifact_store: ArtifactStore | None = None
        self._health_options: tuple[str, list[str], dict[str, HealthCheck]] | None = None
        self._serving_options: tuple[str, list[str]] | None = None
        self._custom_routers: list[APIRouter] = []
        self._startup_hooks: list[LifecycleHook] = []
        self._shutdown_hooks: list[LifecycleHook] = []
        self._running: dict[str, ServingManager] = {}

    # --------------------------------------------------------------------- Fluent configuration

    def with_logging(self, enabled: bool = True) -> Self:
        """Enable structured logging with request logging."""
        self._include_logging = enabled
        return self

    def with_manager(self, manager: ServingManager) -> Self:
        """Use a pre-built manager; its lifecycle stays with the caller."""
        self._manager_instance = manager
        return self

    def with_artifact_store(self, store: ArtifactStore) -> Self:
        """Use a specific artifact store instead of the one derived from settings."""
        self._artifact_store = store
        return self

    def with_health(
        self,
        *,
        prefix: str = "/api/v1/health",
        tags: list[str] | None = None,
        checks: dict[str, HealthCheck] | None = None,
        include_model_check: bool = True,
    ) -> Self:
        """Add health endpoint; the model check reports failed registrations as degraded."""
        health_checks = dict(checks or {})
        if include_model_check:
            health_checks["models"] = self._create_model_health_check()
        self._health_options = (prefix, list(tags) if tags is not None else ["health"], health_checks)
        return self

    def with_serving(self, *, prefix: str = "/api/v1", tags: list[str] | None = None) -> Self:
        """Add model, pipeline and metrics endpoints."""
        self._serving_options = (prefix, list(tags) if tags is not None else ["serving"])
        return self

    def include_router(self, router: APIRouter) -> Self:
        """Include a custom router."""
        self._custom_routers.append(router)
        return self

    def on_startup(self, hook: LifecycleHook) -> Self:
        """Register a startup hook (e.g. to register models or pipelines)."""
        self._startup_hooks.append(hook)
        return self

    def on_shutdown(self, hook: LifecycleHook) -> Self:
        """Register a shutdown hook."""
        self._shutdown_hooks.append(hook)
        return self

    # --------------------------------------------------------------------- Build mechanics

    def build(self) -> FastAPI:
        """Build and configure the FastAPI application."""
        app = FastAPI(
            title=self.info.display_name,
            description=self.info.summary or self.info.description or "",
            version=self.info.version,
            lifespan=self._build_lifespan(),
        )

        if self._include_error_handlers:
            add_error_handlers(app)

        if self._include_logging:
            add_logging_middleware(app)

        if self._health_options:
            prefix, tags, checks = self._health_options
            app.include_router(HealthRouter.create(prefix=prefix, tags=tags, checks=checks))

        if self._serving_options:
            prefix, tags = self._serving_options
            app.include_router(ServingRouter.create(prefix=prefix, tags=tags, manager_factory=get_manager))

        for router in self._custom_routers:
            app.include_router(router)

        return app

    def _build_lifespan(self) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
        """Build lifespan context manager for app startup/shutdown."""
        kinds = self._kinds
        settings = self._settings or ServingSettings.from_env()
        manager_instance = self._manager_instance
        artifact_store = self._artifact_store
        include_logging = self._include_logging
        startup_hooks = list(self._startup_hooks)
        shutdown_hooks = list(self._shutdown_hooks)
        running = self._running

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:
            if include_logging:
                configure_logging()

            database: Database | None = None
            if manager_instance is not None:
                manager = manager_instance
                should_manage_lifecycle = False
            else:
                store = artifact_store
                if store is None:
                    if settings.database_url:
                        database = Database(settings.database_url)
                        await database.init()
                        store = DatabaseArtifactStore(database)
                    else:
                        store = FileArtifactStore(settings.artifact_path)
                manager = ServingManager(kinds, settings=settings, artifacts=store)
                should_manage_lifecycle = True

            app.state.serving = manager
            running["manager"] = manager
            logger.info("service.started", name=app.title, kinds=manager.registry.kinds)

            for hook in startup_hooks:
                await hook(app, manager)
            try:
                yield
            finally:
                for hook in shutdown_hooks:
                    await hook(app, manager)
                if should_manage_lifecycle:
                    await manager.shutdown()
                if database is not None:
                    await database.dispose()
                app.state.serving = None
                running.pop("manager", None)
                logger.info("service.stopped", name=app.title)

        return lifespan

    def _create_model_health_check(self) -> HealthCheck:
        """Health check reporting degraded while any model is in the failed state."""
        running = self._running

        async def check_models() -> tuple[HealthState, str | None]:
            manager = running.get("manager")
            if manager is None:
                return (HealthState.UNHEALTHY, "Serving manager not initialized")
            failed = [m.model_id for m in manager.list_models() if m.status == ModelStatus.FAILED]
            if failed:
                return (HealthState.DEGRADED, f"Failed models: {', '.join(sorted(failed))}")
            return (HealthState.HEALTHY, None)

        return check_models

    # --------------------------------------------------------------------- Convenience

    @classmethod
    def create(cls, *, info: ServiceInfo, **kwargs: Any) -> FastAPI:
        """Create and build a FastAPI application in one call."""
        return cls(info=info, **kwargs).with_health().with_serving().build()
