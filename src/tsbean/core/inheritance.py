import logging
from dataclasses import dataclass

from tsbean.config import CompilerSettings
from tsbean.core.diagnostics import Diagnostics
from tsbean.core.extract import DeclarationSet
from tsbean.models import Declaration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lineage:
    parent: str | None
    polymorphic: bool
    inherited_fields: frozenset[str] = frozenset()


class InheritanceResolver:
    """Decides each record's single schema parent and its polymorphic tag.

    Precedence: an explicit base class wins; otherwise exactly one
    implemented interface is promoted to parent; two or more leave the record
    parentless. Records that reach the marker interface are polymorphic and,
    lacking any other parent, hang off the polymorphic base type.
    """

    def __init__(self, declarations: DeclarationSet, settings: CompilerSettings, diagnostics: Diagnostics) -> None:
        self._declarations = declarations
        self._settings = settings
        self._diagnostics = diagnostics
        self._polymorphic: dict[str, bool] = {}

    def resolve(self, declaration: Declaration) -> Lineage:
        parent_source = self._parent_source(declaration, report=True)
        polymorphic = self.is_polymorphic(declaration.source_name)
        parent = self._emitted_parent(declaration, parent_source)
        if parent is None and polymorphic:
            parent = self._settings.polymorphic_base
        if parent is None and self._settings.default_parent and not self._without_parent_by_design(declaration):
            parent = self._settings.default_parent
        return Lineage(
            parent=parent,
            polymorphic=polymorphic,
            inherited_fields=frozenset(self._ancestor_fields(declaration)),
        )

    @staticmethod
    def _without_parent_by_design(declaration: Declaration) -> bool:
        """Interfaces and ambiguous multi-interface records never take ``default_parent``."""
        if declaration.is_interface:
            return True
        return declaration.base is None and len(declaration.interfaces) > 1

    def is_polymorphic(self, source_name: str) -> bool:
        if source_name == self._settings.marker_interface:
            return False
        if source_name not in self._polymorphic:
            self._polymorphic[source_name] = self._reaches_marker(source_name, set())
        return self._polymorphic[source_name]

    def polymorphic_names(self) -> frozenset[str]:
        return frozenset(name for name in self._declarations.symbols if self.is_polymorphic(name))

    def _parent_source(self, declaration: Declaration, report: bool = False) -> str | None:
        if declaration.base:
            if report and declaration.interfaces:
                logger.debug("%s: base %s takes precedence over interfaces", declaration.name, declaration.base)
            return declaration.base
        if declaration.is_interface:
            return declaration.interfaces[0] if declaration.interfaces else None
        if len(declaration.interfaces) == 1:
            return declaration.interfaces[0]
        if len(declaration.interfaces) > 1 and report:
            self._report_ambiguous(declaration)
        return None

    def _emitted_parent(self, declaration: Declaration, parent_source: str | None) -> str | None:
        if parent_source is None:
            return None
        if parent_source == self._settings.marker_interface:
            return self._settings.polymorphic_base
        parent = self._declarations.symbols.get(parent_source)
        if parent is None:
            logger.warning("%s: parent %s is not a known declaration", declaration.name, parent_source)
            return parent_source
        return parent.name

    def _report_ambiguous(self, declaration: Declaration) -> None:
        interfaces = ", ".join(declaration.interfaces)
        if self._settings.ambiguous_parent == "error":
            self._diagnostics.report(declaration.name, None, interfaces, kind="ambiguous-parent")
        else:
            logger.warning("%s implements several interfaces (%s); emitting it without a parent", declaration.name, interfaces)

    def _reaches_marker(self, source_name: str, visiting: set[str]) -> bool:
        if source_name == self._settings.marker_interface:
            return True
        if source_name in visiting:
            return False
        declaration = self._declarations.symbols.get(source_name)
        if declaration is None:
            return False
        visiting.add(source_name)
        try:
            supertypes = [declaration.base, *declaration.interfaces]
            return any(self._reaches_marker(name, visiting) for name in supertypes if name)
        finally:
            visiting.discard(source_name)

    def _ancestor_fields(self, declaration: Declaration) -> set[str]:
        names: set[str] = set()
        seen = {declaration.source_name}
        current = self._parent_source(declaration)
        while current is not None and current not in seen:
            seen.add(current)
            ancestor = self._declarations.symbols.get(current)
            if ancestor is None:
                break
            names.update(f.name for f in ancestor.fields)
            current = self._parent_source(ancestor)
        return names
