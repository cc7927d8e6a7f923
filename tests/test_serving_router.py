"""Tests for ServingRouter request handling and error mapping."""

import datetime
from unittest.mock import AsyncMock, Mock

import pandas as pd
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from inferkit.core.api import add_error_handlers
from inferkit.core.exceptions import (
    CapacityError,
    DuplicateModelError,
    NotFoundError,
    NotReadyError,
    PipelineStepError,
    PredictionError,
    UnsupportedKindError,
)
from inferkit.modules.pipeline import Execution, ExecutionStatus
from inferkit.modules.registry import ModelConfig, ModelMetrics, ModelOut, ModelStatus
from inferkit.modules.serving import FrameworkMetrics, ServingManager, ServingRouter
from inferkit.modules.training import JobStatus, TrainingJob


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@pytest.fixture
def mock_manager() -> Mock:
    """Mock ServingManager."""
    return Mock(spec=ServingManager)


@pytest.fixture
def client(mock_manager: Mock) -> TestClient:
    """Client for an app with the serving router and error handlers."""

    def manager_factory() -> ServingManager:
        return mock_manager

    app = FastAPI()
    add_error_handlers(app)
    app.include_router(ServingRouter.create(prefix="/api/v1", tags=["serving"], manager_factory=manager_factory))
    return TestClient(app)


class TestModelRoutes:
    """Tests for registration, listing and prediction routes."""

    def test_register_model(self, client: TestClient, mock_manager: Mock) -> None:
        """Registration returns 201 and the model view."""
        model = Mock()
        model.to_out.return_value = ModelOut(
            model_id="m1", kind="echo", version="1.0.0", status=ModelStatus.READY, metrics=ModelMetrics()
        )
        mock_manager.register_model = AsyncMock(return_value=model)

        response = client.post("/api/v1/models/$register", json={"model_id": "m1", "kind": "echo"})

        assert response.status_code == 201
        assert response.json()["status"] == "ready"
        model_id, config = mock_manager.register_model.call_args.args
        assert model_id == "m1"
        assert config == ModelConfig(kind="echo")

    def test_list_models(self, client: TestClient, mock_manager: Mock) -> None:
        """Listing returns every model view."""
        mock_manager.list_models.return_value = [
            ModelOut(model_id="m1", kind="echo", version="1.0.0", status=ModelStatus.FAILED, metrics=ModelMetrics())
        ]

        response = client.get("/api/v1/models")

        assert response.status_code == 200
        assert response.json()["models"][0]["status"] == "failed"

    def test_unregister_model(self, client: TestClient, mock_manager: Mock) -> None:
        """Unregistering returns 204."""
        mock_manager.unregister_model = AsyncMock(return_value=None)

        response = client.delete("/api/v1/models/m1")

        assert response.status_code == 204
        mock_manager.unregister_model.assert_awaited_once_with("m1")

    def test_predict(self, client: TestClient, mock_manager: Mock) -> None:
        """Predictions return the model output."""
        mock_manager.predict = AsyncMock(return_value=[1, 2, 3])

        response = client.post("/api/v1/models/m1/$predict", json={"input": [1, 2, 3], "options": {"cache": True}})

        assert response.status_code == 200
        assert response.json() == {"model_id": "m1", "output": [1, 2, 3]}
        options = mock_manager.predict.call_args.args[2]
        assert options.cache is True

    def test_queued_predict(self, client: TestClient, mock_manager: Mock) -> None:
        """Queued predictions go through queue_inference."""
        mock_manager.queue_inference = AsyncMock(return_value=0.5)

        response = client.post("/api/v1/models/m1/$queue", json={"input": [0.5]})

        assert response.status_code == 200
        assert response.json()["output"] == 0.5
        mock_manager.queue_inference.assert_awaited_once()

    def test_train(self, client: TestClient, mock_manager: Mock) -> None:
        """Tabular training data reaches the manager as a DataFrame."""
        mock_manager.train_model = AsyncMock(
            return_value=TrainingJob(
                job_id="train_m1_1", model_id="m1", status=JobStatus.COMPLETED, progress=100.0, started_at=_now()
            )
        )

        response = client.post(
            "/api/v1/models/m1/$train",
            json={"data": {"columns": ["x", "label"], "data": [[1.0, 0]]}, "options": {"epochs": 3}},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        _, data, options = mock_manager.train_model.call_args.args
        assert isinstance(data, pd.DataFrame)
        assert list(data.columns) == ["x", "label"]
        assert options.epochs == 3

    def test_execute_pipeline(self, client: TestClient, mock_manager: Mock) -> None:
        """Pipeline executions return the execution record."""
        mock_manager.execute_pipeline = AsyncMock(
            return_value=Execution(
                execution_id="exec_p1_1",
                pipeline_id="p1",
                status=ExecutionStatus.COMPLETED,
                output=[0.0, 2.0],
                started_at=_now(),
            )
        )

        response = client.post("/api/v1/pipelines/p1/$execute", json={"input": [0, 10]})

        assert response.status_code == 200
        assert response.json()["output"] == [0.0, 2.0]

    def test_metrics(self, client: TestClient, mock_manager: Mock) -> None:
        """Metrics are returned as reported by the manager."""
        mock_manager.get_metrics.return_value = FrameworkMetrics(
            total_predictions=3,
            total_training_jobs=1,
            failed_training_jobs=0,
            average_inference_time=1.5,
            active_jobs=0,
            total_models=1,
            total_pipelines=0,
            queue_depth=0,
        )

        response = client.get("/api/v1/metrics")

        assert response.status_code == 200
        assert response.json()["total_predictions"] == 3


class TestErrorMapping:
    """Serving errors map to status codes with an ``{error, message}`` body."""

    @pytest.mark.parametrize(
        ("error", "status_code", "kind"),
        [
            (NotFoundError("Model", "m1"), 404, "not_found"),
            (NotReadyError("m1", "loading"), 409, "not_ready"),
            (PredictionError("m1", RuntimeError("boom")), 500, "prediction_failed"),
        ],
    )
    def test_predict_errors(
        self, client: TestClient, mock_manager: Mock, error: Exception, status_code: int, kind: str
    ) -> None:
        """Prediction failures keep their error kind."""
        mock_manager.predict = AsyncMock(side_effect=error)

        response = client.post("/api/v1/models/m1/$predict", json={"input": 1})

        assert response.status_code == status_code
        assert response.json() == {"error": kind, "message": str(error)}

    def test_duplicate_registration(self, client: TestClient, mock_manager: Mock) -> None:
        """Duplicate registrations return 409."""
        mock_manager.register_model = AsyncMock(side_effect=DuplicateModelError("m1"))

        response = client.post("/api/v1/models/$register", json={"model_id": "m1", "kind": "echo"})

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate"

    def test_unsupported_kind(self, client: TestClient, mock_manager: Mock) -> None:
        """Unknown kinds return 400."""
        mock_manager.register_model = AsyncMock(side_effect=UnsupportedKindError("onnx"))

        response = client.post("/api/v1/models/$register", json={"model_id": "m1", "kind": "onnx"})

        assert response.status_code == 400

    def test_training_capacity(self, client: TestClient, mock_manager: Mock) -> None:
        """A full training cap returns 429."""
        mock_manager.train_model = AsyncMock(side_effect=CapacityError(5))

        response = client.post("/api/v1/models/m1/$train", json={"data": {"columns": ["x"], "data": [[1]]}})

        assert response.status_code == 429
        assert response.json()["error"] == "capacity"

    def test_pipeline_step_failure(self, client: TestClient, mock_manager: Mock) -> None:
        """A failing step is reported with its name and index, never the original traceback."""
        mock_manager.execute_pipeline = AsyncMock(side_effect=PipelineStepError("predict:m1", 1, ValueError("bad")))

        response = client.post("/api/v1/pipelines/p1/$execute", json={"input": 1})

        assert response.status_code == 500
        assert response.json() == {
            "error": "pipeline_step_failed",
            "message": "Pipeline step 1 (predict:m1) failed: bad",
        }

    def test_request_validation(self, client: TestClient) -> None:
        """Malformed bodies return 422 in the same error shape."""
        response = client.post("/api/v1/models/$register", json={"kind": "echo"})

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
