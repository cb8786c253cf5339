"""Reader for the JSDoc micro-syntax carried in declaration comments.

Supported tags:

* ``@ignore``: exclude the declaration or member from the schema
* ``@alias``: external canonical key (``@alias="key"``, ``@alias:key`` or ``@alias key``)
* ``@flags``: mark an enum as a flags enum
* ``@param name - text``: per-parameter field comment
* ``@range``, ``@size``, ``@required``, ``@set``, ``@index``, ``@ref``: validator tags
"""

import re
from dataclasses import dataclass, field

from tsbean.models import ValidatorTag

_TAG_LINE = re.compile(r"^@(?P<name>[A-Za-z_][\w-]*)(?P<rest>.*)$")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?")
_VALIDATOR_TAGS = frozenset({"range", "size", "required", "set", "index", "ref"})


@dataclass(frozen=True)
class DocComment:
    summary: str | None = None
    tags: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def has(self, name: str) -> bool:
        return any(tag == name for tag, _ in self.tags)

    def value(self, name: str) -> str | None:
        for tag, raw in self.tags:
            if tag == name:
                return _unquote(raw) or None
        return None

    def params(self) -> dict[str, str]:
        """Map ``@param`` names to their descriptions."""
        result: dict[str, str] = {}
        for tag, raw in self.tags:
            if tag != "param":
                continue
            rest = raw.strip()
            if rest.startswith("{") and "}" in rest:
                rest = rest[rest.index("}") + 1 :].strip()
            name, _, description = rest.partition(" ")
            description = description.strip()
            if description.startswith("-"):
                description = description[1:].strip()
            if name and description:
                result[name] = description
        return result

    def validators(self) -> list[ValidatorTag]:
        result: list[ValidatorTag] = []
        for tag, raw in self.tags:
            if tag in _VALIDATOR_TAGS:
                validator = _parse_validator(tag, _unquote(raw))
                if validator is not None:
                    result.append(validator)
        return result


def is_jsdoc(text: str) -> bool:
    return text.startswith("/**") and not text.startswith("/**/")


def comment_lines(text: str) -> list[str]:
    """Strip comment delimiters and leading ``*`` gutters from a comment."""
    body = text.strip()
    if body.startswith("/*"):
        body = body[2:]
        if body.endswith("*/"):
            body = body[:-2]
        lines = []
        for line in body.splitlines():
            line = line.strip()
            while line.startswith("*"):
                line = line[1:]
            lines.append(line.strip())
        return lines
    return [line.strip().removeprefix("//").strip() for line in body.splitlines()]


def parse_doc(text: str) -> DocComment:
    summary: str | None = None
    tags: list[tuple[str, str]] = []
    in_tags = False
    for line in comment_lines(text):
        match = _TAG_LINE.match(line)
        if match:
            in_tags = True
            rest = match.group("rest")
            if rest[:1] in ("=", ":"):
                rest = rest[1:]
            tags.append((match.group("name"), rest.strip()))
            continue
        if not in_tags and summary is None and line:
            summary = line
    return DocComment(summary=summary, tags=tuple(tags))


def line_comment_text(text: str) -> str | None:
    lines = [line for line in comment_lines(text) if line and not line.startswith("@")]
    return lines[0] if lines else None


def to_number(text: str) -> int | float:
    value = float(text)
    return int(value) if value.is_integer() and not any(c in text for c in ".eE") else value


def _unquote(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] in "\"'" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw


def _parse_validator(tag: str, raw: str) -> ValidatorTag | None:
    if tag == "required":
        return ValidatorTag(key="required")
    if tag in ("range", "size"):
        numbers = [to_number(n) for n in _NUMBER.findall(raw)]
        if tag == "range" and len(numbers) == 2:
            return ValidatorTag(key="range", params=numbers)
        if tag == "size" and len(numbers) in (1, 2):
            return ValidatorTag(key="size", params=[int(n) for n in numbers])
        return None
    if tag == "set":
        values = [v for v in re.split(r"[\s,\[\]]+", raw) if v]
        if not values:
            return None
        return ValidatorTag(key="set", params=[to_number(v) if _NUMBER.fullmatch(v) else _unquote(v) for v in values])
    if tag in ("index", "ref"):
        target = raw.split()[0] if raw.split() else ""
        return ValidatorTag(key=tag, params=[target]) if target else None  # type: ignore[arg-type]
    return None
