from typing import Protocol


class FileWatcherPort(Protocol):
    """Source-tree watcher driving recompilation in watch mode."""

    @property
    def is_running(self) -> bool: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...
