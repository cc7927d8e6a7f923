"""Shared pytest fixtures for inferkit tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from _stubs import CountingKind, RecordingSink, TrainableKind, echo_kind

from inferkit import FileArtifactStore, ModelRegistry, ServingManager, ServingSettings


@pytest.fixture
def events() -> RecordingSink:
    """Event sink recording every lifecycle event."""
    return RecordingSink()


@pytest.fixture
def counting() -> CountingKind:
    """Counting model kind."""
    return CountingKind()


@pytest.fixture
def artifacts(tmp_path: Path) -> FileArtifactStore:
    """File artifact store below a temporary directory."""
    return FileArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def registry(events: RecordingSink, counting: CountingKind, artifacts: FileArtifactStore) -> ModelRegistry:
    """Registry with echo, counting and linear kinds."""
    return ModelRegistry([echo_kind(), counting, TrainableKind()], events=events, artifacts=artifacts)


@pytest.fixture
async def manager(
    events: RecordingSink,
    counting: CountingKind,
    artifacts: FileArtifactStore,
) -> AsyncIterator[ServingManager]:
    """Serving manager with small limits, shut down after the test."""
    settings = ServingSettings(max_concurrent_jobs=2, max_batch_size=10, default_epochs=4, queue_retry_delay=0.01)
    serving = ServingManager(
        [echo_kind(), counting, TrainableKind()],
        settings=settings,
        events=events,
        artifacts=artifacts,
    )
    yield serving
    await serving.shutdown()
