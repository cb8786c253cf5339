import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

DiagnosticKind = Literal["unmappable-type", "ambiguous-parent", "unemitted-reference"]


@dataclass(frozen=True)
class Diagnostic:
    declaration: str
    field: str | None
    type_text: str
    kind: DiagnosticKind = "unmappable-type"

    def describe(self) -> str:
        if self.kind == "ambiguous-parent":
            return f"{self.declaration}: ambiguous parent among interfaces {self.type_text}"
        if self.kind == "unemitted-reference":
            return f"{self.declaration}.{self.field}: '{self.type_text}' is not exported or registered, so it has no entry"
        return f"{self.declaration}.{self.field}: cannot map type '{self.type_text}'"


class Diagnostics:
    """Collects problems across a whole compile run.

    Reporting never aborts mapping; the run fails once, after every
    declaration has been visited, so users see all problems at once.
    """

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def report(
        self,
        declaration: str,
        field: str | None,
        type_text: str,
        kind: DiagnosticKind = "unmappable-type",
    ) -> None:
        diagnostic = Diagnostic(declaration=declaration, field=field, type_text=type_text, kind=kind)
        if diagnostic in self._items:
            return
        logger.debug("Diagnostic: %s", diagnostic.describe())
        self._items.append(diagnostic)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def raise_if_any(self) -> None:
        if self._items:
            raise UnmappableTypeError(list(self._items))


class CompileError(Exception):
    pass


class MissingInputError(CompileError):
    def __init__(self, path: object) -> None:
        super().__init__(f"Input not found: {path}")
        self.path = path


class UnmappableTypeError(CompileError):
    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        super().__init__(f"{len(diagnostics)} unmappable type(s); no output written")
        self.diagnostics = diagnostics


class CacheCorruptionError(CompileError):
    def __init__(self, line_number: int, reason: str) -> None:
        super().__init__(f"Malformed schema document at line {line_number}: {reason}")
        self.line_number = line_number
