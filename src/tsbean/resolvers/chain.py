import logging
from collections.abc import Sequence
from pathlib import Path

from tsbean.core.ports.resolver import ModuleResolver
from tsbean.resolvers.aliased import AliasedPathResolver
from tsbean.resolvers.local import LocalFileResolver
from tsbean.resolvers.package import PackageResolver
from tsbean.resolvers.tsconfig import find_tsconfig, load_tsconfig

logger = logging.getLogger(__name__)


class ChainedResolver:
    """Tries each strategy in order and returns the first hit."""

    def __init__(self, resolvers: Sequence[ModuleResolver]) -> None:
        self._resolvers = list(resolvers)

    def resolve(self, specifier: str, importer: Path, symbol: str | None = None) -> Path | None:
        for resolver in self._resolvers:
            resolved = resolver.resolve(specifier, importer, symbol)
            if resolved is not None:
                return resolved
        logger.debug("Unresolved import %r from %s", specifier, importer)
        return None


def build_resolver(start: Path, tsconfig: Path | None = None) -> ChainedResolver:
    """Standard chain: relative files, then tsconfig aliases, then packages."""
    resolvers: list[ModuleResolver] = [LocalFileResolver()]
    config_path = tsconfig or find_tsconfig(start)
    if config_path is not None:
        logger.debug("Using %s for path aliases", config_path)
        resolvers.append(AliasedPathResolver(load_tsconfig(config_path)))
    resolvers.append(PackageResolver())
    return ChainedResolver(resolvers)
