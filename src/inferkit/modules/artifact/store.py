"""Byte-addressable artifact stores used to save and load model artifacts."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

from sqlalchemy import delete, select
from ulid import ULID

from inferkit.core.database import Database
from inferkit.core.exceptions import NotFoundError
from inferkit.core.logging import get_logger

from .models import Artifact

logger = get_logger(__name__)


class ArtifactStore(Protocol):
    """Protocol for artifact storage backends."""

    async def save(self, key: str, data: bytes) -> None:
        """Store bytes under key, replacing any previous value."""
        ...

    async def load(self, key: str) -> bytes:
        """Return the bytes stored under key or raise NotFoundError."""
        ...

    async def exists(self, key: str) -> bool:
        """Return True when key holds an artifact."""
        ...

    async def delete(self, key: str) -> None:
        """Remove the artifact under key if present."""
        ...


class FileArtifactStore:
    """Artifact store writing one file per key below a root directory."""

    def __init__(self, root: str | Path) -> None:
        """Initialize store rooted at the given directory (created lazily)."""
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path:
        """Map a key to a path, rejecting keys that escape the root."""
        if not key:
            raise ValueError("Artifact key must not be empty")
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"Artifact key escapes store root: {key}")
        return path

    async def save(self, key: str, data: bytes) -> None:
        """Write bytes atomically via a temporary sibling file."""
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)

        await asyncio.to_thread(_write)
        logger.info("artifact.saved", backend="file", key=key, size_bytes=len(data))

    async def load(self, key: str) -> bytes:
        """Read bytes for key."""
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise NotFoundError("Artifact", key) from e

    async def exists(self, key: str) -> bool:
        """Check whether a file exists for key."""
        path = self._path_for(key)
        return await asyncio.to_thread(path.is_file)

    async def delete(self, key: str) -> None:
        """Delete the file for key if present."""
        path = self._path_for(key)
        await asyncio.to_thread(path.unlink, True)


class DatabaseArtifactStore:
    """Artifact store keeping bytes in the ``artifacts`` table."""

    def __init__(self, database: Database) -> None:
        """Initialize store with a database (tables must be created via Database.init)."""
        self.database = database

    async def save(self, key: str, data: bytes) -> None:
        """Insert or replace the artifact row for key."""
        async with self.database.session() as session:
            existing = (await session.execute(select(Artifact).where(Artifact.key == key))).scalar_one_or_none()
            if existing is None:
                session.add(Artifact(id=ULID(), key=key, data=data, size_bytes=len(data)))
            else:
                existing.data = data
                existing.size_bytes = len(data)
            await session.commit()
        logger.info("artifact.saved", backend="database", key=key, size_bytes=len(data))

    async def load(self, key: str) -> bytes:
        """Return stored bytes for key."""
        async with self.database.session() as session:
            data = (await session.execute(select(Artifact.data).where(Artifact.key == key))).scalar_one_or_none()
        if data is None:
            raise NotFoundError("Artifact", key)
        return data

    async def exists(self, key: str) -> bool:
        """Check whether a row exists for key."""
        async with self.database.session() as session:
            found = (await session.execute(select(Artifact.id).where(Artifact.key == key))).first()
        return found is not None

    async def delete(self, key: str) -> None:
        """Delete the row for key if present."""
        async with self.database.session() as session:
            await session.execute(delete(Artifact).where(Artifact.key == key))
            await session.commit()
