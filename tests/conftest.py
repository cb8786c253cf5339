"""Shared fixtures and helpers for tests."""

import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from tsbean.config import CompilerSettings
from tsbean.core.ast import SourceFile, parse_source
from tsbean.core.extract import DeclarationExtractor, DeclarationSet
from tsbean.core.source_graph import SourceGraph
from tsbean.resolvers import LocalFileResolver

logger = logging.getLogger(__name__)

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep settings lookups away from the developer's own files and variables."""
    for name in ("TSBEAN_CONFIG", "TSBEAN_OUTPUT", "TSBEAN_REGISTRATIONS", "TSBEAN_MODULE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def write_ts(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a source file below ``tmp_path`` and return its path."""

    def _write(relative: str, text: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def parse_ts() -> Callable[[str], SourceFile]:
    """Parse TypeScript text held in memory."""

    def _parse(text: str, name: str = "sample.ts") -> SourceFile:
        return parse_source(text.encode("utf-8"), Path(name))

    return _parse


@pytest.fixture
def settings(tmp_path: Path) -> CompilerSettings:
    return CompilerSettings(output=tmp_path / "out" / "generated.schema", banner=["test banner"])


@pytest.fixture
def scan(
    tmp_path: Path, write_ts: Callable[[str, str], Path], settings: CompilerSettings
) -> Callable[[str], DeclarationSet]:
    """Extract declarations from one TypeScript file written to ``src/model.ts``."""

    def _scan(text: str) -> DeclarationSet:
        write_ts("src/model.ts", text)
        extractor = DeclarationExtractor(settings, SourceGraph(LocalFileResolver()))
        return extractor.extract_directory(tmp_path / "src")

    return _scan
