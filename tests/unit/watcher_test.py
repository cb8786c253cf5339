"""Tests for the watchfiles watcher adapter."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from tsbean.watcher.watchfiles_adapter import WatchfilesWatcher, _is_relevant_file


class TestIsRelevantFile:
    def test_typescript_file(self) -> None:
        assert _is_relevant_file(Path("src/monster.ts")) is True

    def test_tsx_file(self) -> None:
        assert _is_relevant_file(Path("src/view.tsx")) is True

    def test_declaration_file(self) -> None:
        assert _is_relevant_file(Path("types/global.d.ts")) is True

    def test_test_file(self) -> None:
        assert _is_relevant_file(Path("src/monster.spec.ts")) is False

    def test_node_modules(self) -> None:
        assert _is_relevant_file(Path("node_modules/pkg/index.ts")) is False

    def test_javascript_file(self) -> None:
        assert _is_relevant_file(Path("bar.js")) is False

    def test_schema_output(self) -> None:
        assert _is_relevant_file(Path("generated.schema")) is False


class TestWatchfilesWatcher:
    def test_implements_protocol(self) -> None:
        from tsbean.core.ports.watcher import FileWatcherPort

        callback = AsyncMock()
        watcher: FileWatcherPort = WatchfilesWatcher("/tmp", callback)
        assert hasattr(watcher, "start")
        assert hasattr(watcher, "stop")
        assert watcher.is_running is False

    @pytest.mark.asyncio
    async def test_start_creates_task(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback)

        with patch("tsbean.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _empty_async_iter()
            await watcher.start()
            assert watcher._task is not None
            await watcher.stop()
            assert watcher._task is None

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self) -> None:
        watcher = WatchfilesWatcher("/tmp", AsyncMock())
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_double_start_is_noop(self) -> None:
        watcher = WatchfilesWatcher("/tmp", AsyncMock())

        with patch("tsbean.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _empty_async_iter()
            await watcher.start()
            task1 = watcher._task
            await watcher.start()
            assert watcher._task is task1
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_callback_receives_typescript_sources(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback)

        changes = {(1, "/tmp/monster.ts"), (2, "/tmp/notes.txt"), (1, "/tmp/monster.test.ts"), (1, "/tmp/item.ts")}

        with patch("tsbean.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter(changes)
            await watcher.start()
            await asyncio.sleep(0.05)
            await watcher.stop()

        callback.assert_called_once()
        assert callback.call_args[0][0] == {Path("/tmp/monster.ts"), Path("/tmp/item.ts")}

    @pytest.mark.asyncio
    async def test_ignored_paths_are_filtered(self) -> None:
        callback = AsyncMock()
        watcher = WatchfilesWatcher("/tmp", callback, ignore=lambda path: path.name == "generated.ts")

        with patch("tsbean.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter({(2, "/tmp/generated.ts")})
            await watcher.start()
            await asyncio.sleep(0.05)
            await watcher.stop()

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_watching(self) -> None:
        callback = AsyncMock(side_effect=RuntimeError("boom"))
        watcher = WatchfilesWatcher("/tmp", callback)

        with patch("tsbean.watcher.watchfiles_adapter.awatch") as mock_awatch:
            mock_awatch.return_value = _single_change_iter({(1, "/tmp/monster.ts")})
            await watcher.start()
            await asyncio.sleep(0.05)
            assert watcher.is_running
            await watcher.stop()

        callback.assert_called_once()


class TestWatchCommand:
    def test_recompiles_in_worker_thread(self, tmp_path: Path) -> None:
        from tsbean.cli.compile import _watch
        from tsbean.config import CompilerSettings

        threads: list[int] = []
        settings = CompilerSettings(input=tmp_path, output=tmp_path / "schema.txt")

        with (
            patch("tsbean.cli.compile.WatchfilesWatcher", _OneChangeWatcher),
            patch("tsbean.cli.compile.compile_once", side_effect=lambda *_: threads.append(threading.get_ident())),
        ):
            _watch(settings)

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()


class _OneChangeWatcher:
    """Stands in for the watchfiles adapter: reports one change, then stops."""

    def __init__(self, path: Path, callback: Any, ignore: Any = None) -> None:
        self._path = Path(path)
        self._callback = callback

    async def start(self) -> None:
        await self._callback({self._path / "monster.ts"})

    async def wait(self) -> None:
        return None

    async def stop(self) -> None:
        return None


async def _empty_async_iter() -> AsyncIterator[Any]:
    """Async iterator that never yields, just blocks until cancelled."""
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return
    yield  # pragma: no cover


async def _single_change_iter(changes: set[tuple[int, str]]) -> AsyncIterator[set[tuple[int, str]]]:
    """Async iterator that yields one set of changes then blocks."""
    yield changes
    try:
        await asyncio.sleep(3600)
    except asyncio.CancelledError:
        return
