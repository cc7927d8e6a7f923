from pathlib import Path
from types import SimpleNamespace
from typing import cast

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

import inferkit.core.database as database_module
from inferkit.core import Database


def test_install_sqlite_pragmas(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure SQLite connect pragmas are installed on new connections."""

    captured: dict[str, object] = {}

    def fake_listen(target: object, event_name: str, handler: object) -> None:
        captured["target"] = target
        captured["event_name"] = event_name
        captured["handler"] = handler

    fake_engine = cast(AsyncEngine, SimpleNamespace(sync_engine=object()))
    monkeypatch.setattr(database_module.event, "listen", fake_listen)

    database_module._install_sqlite_connect_pragmas(fake_engine)

    assert captured["target"] is fake_engine.sync_engine
    assert captured["event_name"] == "connect"
    handler = captured["handler"]
    assert callable(handler)

    class DummyCursor:
        def __init__(self) -> None:
            self.commands: list[str] = []
            self.closed = False

        def execute(self, sql: str) -> None:
            self.commands.append(sql)

        def close(self) -> None:
            self.closed = True

    class DummyConnection:
        def __init__(self) -> None:
            self._cursor = DummyCursor()

        def cursor(self) -> DummyCursor:
            return self._cursor

    connection = DummyConnection()
    handler(connection, None)

    assert connection._cursor.commands == [
        "PRAGMA foreign_keys=ON;",
        "PRAGMA synchronous=NORMAL;",
        "PRAGMA busy_timeout=30000;",
        "PRAGMA temp_store=MEMORY;",
    ]
    assert connection._cursor.closed is True


class TestDatabase:
    """Tests for the Database class."""

    async def test_init_creates_artifact_table(self) -> None:
        """Test that init() creates the artifacts table."""
        db = Database("sqlite+aiosqlite:///:memory:")
        await db.init()

        async with db.session() as session:
            result = await session.execute(
                text("SELECT name FROM sqlite_master WHERE type='table' AND name='artifacts'")
            )
            assert result.scalar() == "artifacts"

        await db.dispose()

    async def test_init_is_idempotent(self) -> None:
        """Test that calling init() twice does not fail."""
        db = Database("sqlite+aiosqlite:///:memory:")
        await db.init()
        await db.init()
        await db.dispose()

    async def test_in_memory_sessions_share_data(self) -> None:
        """Test that separate sessions see the same in-memory database."""
        db = Database("sqlite+aiosqlite:///:memory:")
        await db.init()

        async with db.session() as session1:
            await session1.execute(text("CREATE TABLE probe (x INTEGER)"))
            await session1.execute(text("INSERT INTO probe VALUES (42)"))
            await session1.commit()

        async with db.session() as session2:
            result = await session2.execute(text("SELECT x FROM probe"))
            assert result.scalar() == 42

        await db.dispose()

    async def test_echo_parameter(self) -> None:
        """Test that echo parameter is passed to engine."""
        db_echo = Database("sqlite+aiosqlite:///:memory:", echo=True)
        db_no_echo = Database("sqlite+aiosqlite:///:memory:", echo=False)

        assert db_echo.engine.echo is True
        assert db_no_echo.engine.echo is False

        await db_echo.dispose()
        await db_no_echo.dispose()

    async def test_url_storage(self) -> None:
        """Test that the URL is stored correctly."""
        url = "sqlite+aiosqlite:///:memory:"
        db = Database(url)
        assert db.url == url
        await db.dispose()

    async def test_session_factory_configuration(self) -> None:
        """Test that session factory is configured correctly."""
        db = Database("sqlite+aiosqlite:///:memory:")

        assert db._session_factory.kw.get("expire_on_commit") is False

        await db.dispose()

    async def test_file_based_database_uses_wal(self, tmp_path: Path) -> None:
        """Test that file-based databases switch to WAL journaling and get the schema."""
        db = Database(f"sqlite+aiosqlite:///{tmp_path / 'serving.db'}")
        await db.init()

        async with db.session() as session:
            result = await session.execute(text("PRAGMA journal_mode"))
            assert result.scalar() == "wal"

            result = await session.execute(
                text("SELECT name FROM sqlite_master WHERE type='table' AND name='artifacts'")
            )
            assert result.scalar() == "artifacts"

        await db.dispose()
