from pathlib import Path
from typing import Protocol


class ModuleResolver(Protocol):
    """Turns an import specifier into the file that declares *symbol*.

    Returns ``None`` when this strategy does not handle the specifier, so
    strategies can be tried in order.
    """

    def resolve(self, specifier: str, importer: Path, symbol: str | None = None) -> Path | None: ...
