"""Tests for file and database artifact stores."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from inferkit.core import Database
from inferkit.core.exceptions import NotFoundError
from inferkit.modules.artifact import ArtifactStore, DatabaseArtifactStore, FileArtifactStore


@pytest.fixture
async def database() -> AsyncIterator[Database]:
    """Initialized in-memory database."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.init()
    yield db
    await db.dispose()


@pytest.fixture(params=["file", "database"])
def store(request: pytest.FixtureRequest, tmp_path: Path, database: Database) -> ArtifactStore:
    """Each artifact store backend."""
    if request.param == "file":
        return FileArtifactStore(tmp_path / "artifacts")
    return DatabaseArtifactStore(database)


class TestArtifactStore:
    """Behavior shared by every backend."""

    async def test_save_and_load(self, store: ArtifactStore) -> None:
        """Saved bytes are returned unchanged."""
        await store.save("models/m1", b"\x00weights\xff")

        assert await store.load("models/m1") == b"\x00weights\xff"
        assert await store.exists("models/m1")

    async def test_save_replaces(self, store: ArtifactStore) -> None:
        """Saving under an existing key overwrites it."""
        await store.save("m1", b"v1")
        await store.save("m1", b"v2")

        assert await store.load("m1") == b"v2"

    async def test_missing_key(self, store: ArtifactStore) -> None:
        """Loading a missing key raises NotFoundError."""
        assert not await store.exists("nope")
        with pytest.raises(NotFoundError):
            await store.load("nope")

    async def test_delete(self, store: ArtifactStore) -> None:
        """Deleted keys are gone and deleting twice is harmless."""
        await store.save("m1", b"data")

        await store.delete("m1")
        await store.delete("m1")

        assert not await store.exists("m1")


class TestFileArtifactStore:
    """File backend specifics."""

    async def test_files_below_root(self, tmp_path: Path) -> None:
        """Keys map to files below the root directory."""
        store = FileArtifactStore(tmp_path)
        await store.save("a/b.bin", b"x")

        assert (tmp_path / "a" / "b.bin").read_bytes() == b"x"
        assert not (tmp_path / "a" / "b.bin.tmp").exists()

    @pytest.mark.parametrize("key", ["../escape", "a/../../escape", ""])
    async def test_rejects_keys_outside_root(self, tmp_path: Path, key: str) -> None:
        """Keys escaping the root or empty keys are rejected."""
        store = FileArtifactStore(tmp_path / "root")

        with pytest.raises(ValueError):
            await store.save(key, b"x")
