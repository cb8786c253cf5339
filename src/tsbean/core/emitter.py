import logging
import os
import tempfile
from pathlib import Path

from tsbean.core.cache import BODY_INDENT, ENTRY_CLOSE, ENTRY_INDENT, HASH_MARKER
from tsbean.models import Declaration, DeclarationKind, SchemaEntry

logger = logging.getLogger(__name__)


def escape(value: str) -> str:
    """Quote-safe attribute text: backslashes and quotes escaped, line breaks flattened."""
    flattened = " ".join(value.splitlines()) if value else value
    return flattened.replace("\\", "\\\\").replace('"', '\\"')


def _attribute(name: str, value: str | None) -> str:
    return f' {name}="{escape(value)}"' if value else ""


class SchemaEmitter:
    def __init__(self, module: str = "", banner: list[str] | None = None) -> None:
        self._module = module
        self._banner = banner or []

    def bean_entry(
        self,
        declaration: Declaration,
        parent: str | None,
        fields: list[tuple[str, str, str | None]],
    ) -> SchemaEntry:
        """Serialize a record; *fields* holds ``(name, type string, comment)`` triples."""
        header = f'{ENTRY_INDENT}bean "{escape(declaration.name)}"'
        header += _attribute("parent", parent)
        header += _attribute("comment", declaration.summary)
        if declaration.table is not None:
            header += _attribute("table", declaration.table.mode)
            header += _attribute("index", declaration.table.index)
        lines = [f"{HASH_MARKER}{declaration.content_hash}", header + " {"]
        for name, type_text, comment in fields:
            lines.append(f'{BODY_INDENT}var "{escape(name)}" type="{escape(type_text)}"{_attribute("comment", comment)}')
        lines.append(ENTRY_CLOSE)
        return SchemaEntry(
            name=declaration.name, kind="bean", content_hash=declaration.content_hash, text="\n".join(lines)
        )

    def enum_entry(self, declaration: Declaration) -> SchemaEntry:
        header = f'{ENTRY_INDENT}enum "{escape(declaration.name)}"'
        if declaration.flags:
            header += ' flags="true"'
        header += _attribute("comment", declaration.summary)
        lines = [f"{HASH_MARKER}{declaration.content_hash}", header + " {"]
        for member in declaration.members:
            value = str(member.value) if isinstance(member.value, int) else f'"{escape(member.value)}"'
            line = f'{BODY_INDENT}item "{escape(member.name)}" value={value}'
            line += _attribute("alias", member.alias)
            line += _attribute("comment", member.comment)
            lines.append(line)
        lines.append(ENTRY_CLOSE)
        return SchemaEntry(
            name=declaration.name, kind="enum", content_hash=declaration.content_hash, text="\n".join(lines)
        )

    @staticmethod
    def cached_entry(declaration: Declaration, text: str) -> SchemaEntry:
        kind = "enum" if declaration.kind == DeclarationKind.ENUMERATION else "bean"
        return SchemaEntry(
            name=declaration.name, kind=kind, content_hash=declaration.content_hash, text=text, cached=True
        )

    def render(self, entries: list[SchemaEntry]) -> str:
        lines = [f"// {line}" if line else "//" for line in self._banner]
        lines.append(f'module "{escape(self._module)}" {{')
        body = "\n\n".join(entry.text for entry in entries)
        if body:
            lines.append(body)
        lines.append("}")
        return "\n".join(lines) + "\n"


def write_atomic(path: Path, text: str) -> None:
    """Replace *path* with *text* in one step; a failed write leaves the old file untouched."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    logger.debug("Wrote %d bytes to %s", len(text.encode("utf-8")), path)
