import logging
import re
from dataclasses import dataclass
from pathlib import Path

from tsbean.core.diagnostics import CacheCorruptionError

logger = logging.getLogger(__name__)

HASH_MARKER = "  // hash:"
ENTRY_INDENT = "  "
BODY_INDENT = "    "
ENTRY_CLOSE = "  }"

_MODULE_HEADER = re.compile(r'^module "(?:[^"\\]|\\.)*" \{$')
_ENTRY_HEADER = re.compile(r'^  (?P<kind>bean|enum) "(?P<name>(?:[^"\\]|\\.)*)".*\{$')
_HASH_LINE = re.compile(r"^  // hash:(?P<hash>[0-9A-Za-z]+)$")


@dataclass(frozen=True)
class CacheEntry:
    name: str
    kind: str
    content_hash: str
    text: str


class CacheIndex:
    """Entries of the previously emitted document, keyed by emitted name.

    Lives for one compile run. Entry text runs from the hash marker line
    through the closing brace and is reused byte-for-byte.
    """

    def __init__(self, entries: dict[str, CacheEntry] | None = None) -> None:
        self._entries = entries or {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def get(self, name: str) -> CacheEntry | None:
        return self._entries.get(name)

    def lookup(self, name: str, content_hash: str) -> str | None:
        """Cached text for *name* if it was emitted from identical source."""
        entry = self._entries.get(name)
        if entry is None or entry.content_hash != content_hash:
            return None
        return entry.text

    @classmethod
    def load(cls, path: Path) -> "CacheIndex":
        """Read the previous document; a missing or malformed one yields an empty index."""
        if not path.is_file():
            logger.debug("No previous output at %s; regenerating everything", path)
            return cls()
        try:
            index = cls.parse(path.read_text(encoding="utf-8"))
        except (CacheCorruptionError, UnicodeDecodeError) as exc:
            logger.info("Ignoring unreadable previous output %s (%s); regenerating everything", path, exc)
            return cls()
        logger.debug("Loaded %d cached entr(y/ies) from %s", len(index), path)
        return index

    @classmethod
    def parse(cls, text: str) -> "CacheIndex":
        lines = text.split("\n")
        position = 0
        while position < len(lines) and (not lines[position] or lines[position].startswith("//")):
            position += 1
        if position >= len(lines) or not _MODULE_HEADER.match(lines[position]):
            raise CacheCorruptionError(position + 1, "expected module header")
        position += 1

        entries: dict[str, CacheEntry] = {}
        while position < len(lines):
            line = lines[position]
            if not line:
                position += 1
                continue
            if line == "}":
                if any(rest.strip() for rest in lines[position + 1 :]):
                    raise CacheCorruptionError(position + 2, "content after module end")
                return cls(entries)
            hash_match = _HASH_LINE.match(line)
            content_hash = hash_match.group("hash") if hash_match else None
            start = position
            if hash_match:
                position += 1
            entry, position = _read_entry(lines, position)
            if content_hash is not None:
                text = "\n".join(lines[start:position])
                entries.setdefault(entry[1], CacheEntry(name=entry[1], kind=entry[0], content_hash=content_hash, text=text))
        raise CacheCorruptionError(len(lines), "missing module end")


def _read_entry(lines: list[str], position: int) -> tuple[tuple[str, str], int]:
    """Consume one bean/enum block starting at *position*; return (kind, name) and the next position."""
    if position >= len(lines):
        raise CacheCorruptionError(position, "expected bean or enum after hash marker")
    header = _ENTRY_HEADER.match(lines[position])
    if header is None:
        raise CacheCorruptionError(position + 1, f"unexpected line {lines[position]!r}")
    position += 1
    while position < len(lines):
        line = lines[position]
        if line == ENTRY_CLOSE:
            return (header.group("kind"), _unescape(header.group("name"))), position + 1
        if not line.startswith(BODY_INDENT):
            raise CacheCorruptionError(position + 1, f"unexpected line {line!r} inside entry")
        position += 1
    raise CacheCorruptionError(position, "unterminated entry")


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)
