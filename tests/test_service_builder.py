"""Tests for ServiceBuilder app assembly and lifespan."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest
from _stubs import CountingKind, TrainableKind, echo_kind
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError

from inferkit import DatabaseArtifactStore, FileArtifactStore, ServingManager, ServingSettings
from inferkit.api import ServiceBuilder, ServiceInfo, get_manager
from inferkit.core.api import HealthState
from inferkit.core.exceptions import ModelLoadError


@pytest.fixture
def settings(tmp_path: Path) -> ServingSettings:
    """Settings writing artifacts below a temporary directory."""
    return ServingSettings(artifact_path=str(tmp_path / "models"), queue_retry_delay=0.01)


def make_builder(settings: ServingSettings) -> ServiceBuilder:
    return ServiceBuilder(
        info=ServiceInfo(display_name="Test Serving"),
        kinds=[echo_kind(), CountingKind(), TrainableKind()],
        settings=settings,
    )


class TestLifespan:
    """Tests for manager creation and teardown."""

    def test_manager_attached_during_lifespan(self, settings: ServingSettings) -> None:
        """The manager lives on app.state while the app runs and is removed afterwards."""
        app = make_builder(settings).with_serving().build()

        with TestClient(app):
            manager = app.state.serving
            assert isinstance(manager, ServingManager)
            assert isinstance(manager.registry.artifacts, FileArtifactStore)
            assert manager.registry.kinds == ["counting", "echo", "linear"]

        assert app.state.serving is None

    def test_hooks_receive_manager(self, settings: ServingSettings) -> None:
        """Startup hooks run before requests and shutdown hooks after."""
        calls: list[str] = []

        async def startup(app: FastAPI, manager: ServingManager) -> None:
            await manager.register_model("m1", {"kind": "echo"})
            calls.append("startup")

        async def shutdown(app: FastAPI, manager: ServingManager) -> None:
            assert "m1" in manager.registry
            calls.append("shutdown")

        app = make_builder(settings).with_serving().on_startup(startup).on_shutdown(shutdown).build()

        with TestClient(app) as client:
            response = client.post("/api/v1/models/m1/$predict", json={"input": [1, 2, 3]})
            assert response.json()["output"] == [1, 2, 3]

        assert calls == ["startup", "shutdown"]

    def test_owned_manager_is_shut_down(self, settings: ServingSettings) -> None:
        """Models are unregistered when the app stops."""
        counting = CountingKind()
        builder = ServiceBuilder(info=ServiceInfo(display_name="Test"), kinds=[counting], settings=settings)

        async def startup(app: FastAPI, manager: ServingManager) -> None:
            await manager.register_model("m1", {"kind": "counting"})

        app = builder.on_startup(startup).build()
        with TestClient(app):
            pass

        assert len(counting.disposed) == 1

    async def test_external_manager_is_not_shut_down(self, settings: ServingSettings) -> None:
        """A manager passed with with_manager keeps its models after the app stops."""
        manager = ServingManager([echo_kind()], settings=settings)
        await manager.register_model("m1", {"kind": "echo"})
        app = make_builder(settings).with_manager(manager).with_serving().build()

        with TestClient(app) as client:
            assert client.get("/api/v1/models").json()["models"][0]["model_id"] == "m1"

        assert "m1" in manager.registry
        await manager.shutdown()

    def test_database_artifact_store_from_settings(self, tmp_path: Path) -> None:
        """A database URL selects the database-backed artifact store."""
        settings = ServingSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'artifacts.db'}")
        app = make_builder(settings).with_serving().build()

        with TestClient(app) as client:
            assert isinstance(app.state.serving.registry.artifacts, DatabaseArtifactStore)

            client.post("/api/v1/models/$register", json={"model_id": "lin", "kind": "linear", "options": {"weight": 4}})
            train = client.post(
                "/api/v1/models/lin/$train",
                json={"data": {"columns": ["x", "label"], "data": [[1, 2]]}, "options": {"save": True}},
            )
            assert train.json()["artifact_key"] == "lin"

            restored = client.post(
                "/api/v1/models/$register",
                json={"model_id": "lin2", "kind": "linear", "artifact_path": "lin"},
            )
            assert restored.status_code == 201
            predicted = client.post("/api/v1/models/lin2/$predict", json={"input": [1, 2]})
            assert predicted.json()["output"] == [2.0, 4.0]


class TestHealth:
    """Tests for the built-in model health check."""

    def test_healthy_without_failures(self, settings: ServingSettings) -> None:
        """All models ready means healthy."""
        app = make_builder(settings).with_health().build()

        with TestClient(app) as client:
            response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_failed_model_degrades_health(self, settings: ServingSettings) -> None:
        """A model stuck in the failed state degrades the service."""

        async def startup(app: FastAPI, manager: ServingManager) -> None:
            with pytest.raises(ModelLoadError):
                await manager.register_model("bad", {"kind": "linear", "artifact_path": "missing"})

        app = make_builder(settings).with_health().on_startup(startup).build()

        with TestClient(app) as client:
            data = client.get("/api/v1/health").json()

        assert data["status"] == "degraded"
        assert data["checks"]["models"] == {"state": "degraded", "message": "Failed models: bad"}

    def test_custom_checks_and_prefix(self, settings: ServingSettings) -> None:
        """Custom checks are combined with the model check under a custom prefix."""

        async def disk() -> tuple[HealthState, str | None]:
            return (HealthState.HEALTHY, None)

        app = make_builder(settings).with_health(prefix="/healthz", checks={"disk": disk}).build()

        with TestClient(app) as client:
            data = client.get("/healthz").json()

        assert set(data["checks"]) == {"disk", "models"}


class TestServingEndpoints:
    """End-to-end requests through the built app."""

    def test_register_predict_and_metrics(self, settings: ServingSettings) -> None:
        """Registering and predicting via HTTP updates the metrics."""
        app = ServiceBuilder.create(
            info=ServiceInfo(display_name="Test"),
            kinds=[echo_kind()],
            settings=settings,
        )

        with TestClient(app) as client:
            created = client.post("/api/v1/models/$register", json={"model_id": "m1", "kind": "echo"})
            assert created.status_code == 201

            for _ in range(2):
                client.post("/api/v1/models/m1/$predict", json={"input": {"a": 1}})
            queued = client.post("/api/v1/models/m1/$queue", json={"input": [4]})
            assert queued.json()["output"] == [4]

            metrics = client.get("/api/v1/metrics").json()

        assert metrics["total_predictions"] == 3
        assert metrics["models"]["m1"]["prediction_count"] == 3
        assert metrics["models"]["m1"]["predictions"] == 3
        assert metrics["total_models"] == 1

    def test_unknown_model_is_404(self, settings: ServingSettings) -> None:
        """Errors from the manager are mapped by the installed handlers."""
        app = ServiceBuilder.create(info=ServiceInfo(display_name="Test"), kinds=[echo_kind()], settings=settings)

        with TestClient(app) as client:
            response = client.post("/api/v1/models/ghost/$predict", json={"input": 1})

        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "message": "Model not found: ghost"}

    def test_pipeline_via_startup_hook(self, settings: ServingSettings) -> None:
        """Pipelines created at startup are executable over HTTP."""

        async def startup(app: FastAPI, manager: ServingManager) -> None:
            await manager.register_model("echo", {"kind": "echo"})
            manager.create_pipeline(
                "p1",
                [
                    {"kind": "preprocess", "operation": "normalize"},
                    {"kind": "predict", "model_id": "echo"},
                    {"kind": "transform", "operation": "map", "params": {"scale": 2}},
                ],
            )

        app = make_builder(settings).with_serving().on_startup(startup).build()

        with TestClient(app) as client:
            response = client.post(
                "/api/v1/pipelines/p1/$execute",
                json={"input": [0, 10], "options": {"include_intermediate_results": True}},
            )

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "completed"
        assert body["output"] == [0.0, 2.0]
        assert [r["output"] for r in body["results"]] == [[0.0, 1.0], [0.0, 1.0], [0.0, 2.0]]

    def test_custom_router_and_logging(self, settings: ServingSettings) -> None:
        """Custom routers are included and request logging adds a request id header."""
        router = APIRouter(prefix="/custom")

        @router.get("/ping")
        async def ping() -> dict[str, str]:
            return {"pong": "ok"}

        app = make_builder(settings).include_router(router).with_logging().build()

        with TestClient(app) as client:
            response = client.get("/custom/ping")

        assert response.json() == {"pong": "ok"}
        assert "X-Request-ID" in response.headers


def test_service_info_rejects_unknown_fields() -> None:
    """ServiceInfo is strict."""
    with pytest.raises(ValidationError):
        ServiceInfo(display_name="x", owner="someone")  # type: ignore[call-arg]


def test_get_manager_requires_running_app() -> None:
    """get_manager fails outside a running app."""
    request = Mock()
    request.app.state = Mock(spec=[])

    with pytest.raises(RuntimeError, match="not initialized"):
        get_manager(request)
