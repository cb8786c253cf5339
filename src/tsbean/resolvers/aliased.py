from pathlib import Path

from tsbean.resolvers.local import first_existing
from tsbean.resolvers.tsconfig import TsConfig


class AliasedPathResolver:
    """Resolves non-relative specifiers through tsconfig ``baseUrl`` and ``paths``."""

    def __init__(self, config: TsConfig) -> None:
        self._config = config

    def resolve(self, specifier: str, importer: Path, symbol: str | None = None) -> Path | None:
        if specifier.startswith((".", "/")):
            return None
        base_directory = self._config.base_directory
        for pattern, targets in self._config.compiler_options.paths.items():
            captured = _match(pattern, specifier)
            if captured is None:
                continue
            for target in targets:
                resolved = first_existing(base_directory / target.replace("*", captured, 1))
                if resolved is not None:
                    return resolved
        if self._config.compiler_options.base_url is not None:
            return first_existing(base_directory / specifier)
        return None


def _match(pattern: str, specifier: str) -> str | None:
    """Return the text captured by ``*`` in *pattern*, or ``""`` for an exact match."""
    if "*" not in pattern:
        return "" if pattern == specifier else None
    prefix, _, suffix = pattern.partition("*")
    if specifier.startswith(prefix) and specifier.endswith(suffix) and len(specifier) >= len(prefix) + len(suffix):
        return specifier[len(prefix) : len(specifier) - len(suffix)]
    return None
