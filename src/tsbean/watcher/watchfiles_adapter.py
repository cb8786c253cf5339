from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from watchfiles import awatch

from tsbean.core.languages import is_source_file, is_test_file

logger = logging.getLogger(__name__)


def _is_relevant_file(path: Path) -> bool:
    return is_source_file(path) and not is_test_file(path) and "node_modules" not in path.parts


class WatchfilesWatcher:
    """Watch a source tree and trigger a recompile callback on TypeScript changes.

    Implements the ``FileWatcherPort`` protocol. Changes reported in one
    batch by ``watchfiles`` result in a single callback.
    """

    def __init__(
        self,
        directory: str | Path,
        on_change: Callable[[set[Path]], Coroutine[Any, Any, None]],
        ignore: Callable[[Path], bool] | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._on_change = on_change
        self._ignore = ignore
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._watch())
        logger.info("Watching %s for changes", self._directory)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Stopped watching %s", self._directory)

    async def wait(self) -> None:
        """Block until the watch loop ends."""
        if self._task is not None:
            await self._task

    async def _watch(self) -> None:
        async for changes in awatch(self._directory):
            paths = {Path(p) for _, p in changes if self._wanted(Path(p))}
            if paths:
                logger.info("Detected changes in %d file(s)", len(paths))
                try:
                    await self._on_change(paths)
                except Exception:
                    logger.exception("Recompile after file change failed")

    def _wanted(self, path: Path) -> bool:
        if not _is_relevant_file(path):
            return False
        return self._ignore is None or not self._ignore(path)
