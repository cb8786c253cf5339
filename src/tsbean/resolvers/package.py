import json
import logging
import re
from pathlib import Path

from tsbean.resolvers.local import first_existing

logger = logging.getLogger(__name__)

_DECLARATION_PATTERN = r"\b(?:class|interface|enum|type)\s+{name}\b"


class PackageResolver:
    """Resolves bare specifiers to declaration files under ``node_modules``.

    The package's ``types``/``typings`` entry is preferred. When a symbol is
    requested and the entry file does not declare it, the package's other
    ``.d.ts`` files are searched in sorted order.
    """

    def resolve(self, specifier: str, importer: Path, symbol: str | None = None) -> Path | None:
        if specifier.startswith((".", "/")):
            return None
        package_dir = _find_package_dir(specifier, importer)
        if package_dir is None:
            return None
        entry = _entry_file(package_dir)
        if symbol is None or (entry is not None and _declares(entry, symbol)):
            return entry
        for candidate in sorted(package_dir.rglob("*.d.ts")):
            if "node_modules" in candidate.relative_to(package_dir).parts:
                continue
            if _declares(candidate, symbol):
                return candidate
        return entry


def _find_package_dir(specifier: str, importer: Path) -> Path | None:
    for directory in importer.resolve().parents:
        candidate = directory / "node_modules" / specifier
        if candidate.exists():
            return candidate
    return None


def _entry_file(package_dir: Path) -> Path | None:
    if package_dir.is_file():
        return package_dir
    manifest = package_dir / "package.json"
    if manifest.is_file():
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable %s", manifest)
            data = {}
        for key in ("types", "typings"):
            entry = data.get(key)
            if isinstance(entry, str):
                resolved = first_existing((package_dir / entry).with_suffix("")) or (package_dir / entry)
                if resolved.is_file():
                    return resolved
    return first_existing(package_dir / "index")


def _declares(path: Path, symbol: str) -> bool:
    text = path.read_text(encoding="utf-8", errors="replace")
    return re.search(_DECLARATION_PATTERN.format(name=re.escape(symbol)), text) is not None
