from pathlib import Path

_EXTENSION_LANGUAGE_MAP = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

_DECLARATION_SUFFIXES = (".d.ts", ".d.mts", ".d.cts")

_TEST_SUFFIXES = (
    ".spec.ts",
    ".test.ts",
    ".spec.tsx",
    ".test.tsx",
)

_SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git"})


def detect_language_from_path(file_path: Path) -> str:
    suffix = file_path.suffix.lower()
    if suffix in _EXTENSION_LANGUAGE_MAP:
        return _EXTENSION_LANGUAGE_MAP[suffix]
    raise ValueError(f"Unsupported file extension: {suffix}")


def is_source_file(file_path: Path) -> bool:
    return file_path.suffix.lower() in _EXTENSION_LANGUAGE_MAP


def is_declaration_file(file_path: Path) -> bool:
    return file_path.name.lower().endswith(_DECLARATION_SUFFIXES)


def is_test_file(file_path: Path) -> bool:
    return file_path.name.lower().endswith(_TEST_SUFFIXES)


def is_scannable_file(file_path: Path, include_declarations: bool = False) -> bool:
    """Return True for files picked up by a directory scan."""
    if not is_source_file(file_path) or is_test_file(file_path):
        return False
    if is_declaration_file(file_path) and not include_declarations:
        return False
    return True


def scan_source_files(directory: Path, include_declarations: bool = False) -> list[Path]:
    """Recursively collect TypeScript sources below *directory* in a stable order."""
    files: list[Path] = []
    for path in sorted(directory.rglob("*")):
        if _SKIPPED_DIRECTORIES.intersection(path.relative_to(directory).parts):
            continue
        if path.is_file() and is_scannable_file(path, include_declarations):
            files.append(path)
    return files
