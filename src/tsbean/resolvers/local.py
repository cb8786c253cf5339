import os
from collections.abc import Iterator
from pathlib import Path

_SOURCE_SUFFIXES = (".ts", ".tsx", ".d.ts", ".mts", ".cts")
_INDEX_NAMES = ("index.ts", "index.tsx", "index.d.ts")
_SCRIPT_SUFFIXES = frozenset({".js", ".jsx", ".mjs", ".cjs"})


def candidate_files(base: Path) -> Iterator[Path]:
    """Yield the files an extensionless import of *base* may refer to, in lookup order."""
    if base.suffix in _SCRIPT_SUFFIXES:
        # compiled-output specifiers ("./foo.js") point at the TypeScript source
        stem = base.with_suffix("")
        yield stem.with_name(stem.name + ".ts")
        yield stem.with_name(stem.name + ".tsx")
        yield stem.with_name(stem.name + ".d.ts")
    if base.name.endswith(_SOURCE_SUFFIXES):
        yield base
    for suffix in _SOURCE_SUFFIXES:
        yield base.with_name(base.name + suffix)
    for index in _INDEX_NAMES:
        yield base / index


def first_existing(base: Path) -> Path | None:
    for candidate in candidate_files(base):
        if candidate.is_file():
            return candidate
    return None


class LocalFileResolver:
    """Resolves relative specifiers (``./x``, ``../y``) against the importing file."""

    def resolve(self, specifier: str, importer: Path, symbol: str | None = None) -> Path | None:
        if not specifier.startswith((".", "/")):
            return None
        base = Path(os.path.normpath(importer.parent / specifier))
        return first_existing(base)
