import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node

from tsbean.core.ast import SourceFile, has_token, parse_file, string_value
from tsbean.core.languages import is_source_file, scan_source_files
from tsbean.core.ports.resolver import ModuleResolver
from tsbean.core.registrations import ImportBinding, read_imports

logger = logging.getLogger(__name__)

DECLARATION_TYPES = frozenset(
    {
        "class",
        "class_declaration",
        "abstract_class_declaration",
        "interface_declaration",
        "enum_declaration",
        "type_alias_declaration",
    }
)
_NAMESPACE_TYPES = frozenset({"internal_module", "module"})


@dataclass(frozen=True)
class LocatedDeclaration:
    source: SourceFile
    statement: Node
    node: Node
    name: str
    exported: bool


@dataclass(frozen=True)
class ReExport:
    specifier: str | None
    names: dict[str, str] = field(default_factory=dict)
    star: bool = False


@dataclass
class _FileIndex:
    declarations: dict[str, LocatedDeclaration]
    reexports: list[ReExport]
    imports: dict[str, ImportBinding]


class SourceGraph:
    """Loads TypeScript files on demand and locates declarations across them.

    Files are parsed once per run. Lookups follow imports, re-exports and
    ``export *`` chains; an ``index`` file that does not itself declare or
    re-export a name falls back to searching its sibling files.
    """

    def __init__(self, resolver: ModuleResolver) -> None:
        self._resolver = resolver
        self._files: dict[Path, SourceFile] = {}
        self._indexes: dict[Path, _FileIndex] = {}

    def load(self, path: Path) -> SourceFile:
        key = path.resolve()
        if key not in self._files:
            logger.debug("Parsing %s", key)
            self._files[key] = parse_file(key)
        return self._files[key]

    def files(self) -> list[SourceFile]:
        return list(self._files.values())

    def declarations(self, source: SourceFile) -> list[LocatedDeclaration]:
        return list(self._index(source).declarations.values())

    def imports(self, source: SourceFile) -> dict[str, ImportBinding]:
        return self._index(source).imports

    def find(self, name: str, path: Path) -> LocatedDeclaration | None:
        return self._find(name, path.resolve(), set())

    def follow_import(self, binding: ImportBinding, importer: Path) -> LocatedDeclaration | None:
        symbol = None if binding.is_namespace else binding.imported
        target = self._resolver.resolve(binding.specifier, importer, symbol if symbol != "default" else None)
        if target is None or symbol is None:
            return None
        if symbol == "default":
            return self._default_export(target)
        return self.find(symbol, target)

    def load_reachable(self, roots: list[Path]) -> None:
        """Parse every file transitively imported from *roots*.

        Files inside ``node_modules`` are loaded but their own imports are not
        followed.
        """
        queue = deque(path.resolve() for path in roots)
        seen: set[Path] = set()
        while queue:
            path = queue.popleft()
            if path in seen or not is_source_file(path):
                continue
            seen.add(path)
            try:
                source = self.load(path)
            except FileNotFoundError:
                logger.warning("Skipping missing file %s", path)
                continue
            if "node_modules" in path.parts:
                continue
            index = self._index(source)
            specifiers = [(binding.specifier, binding.imported) for binding in index.imports.values()]
            specifiers += [(reexport.specifier, None) for reexport in index.reexports if reexport.specifier]
            for specifier, symbol in specifiers:
                symbol = symbol if symbol not in ("*", "default") else None
                target = self._resolver.resolve(specifier, path, symbol)
                if target is not None and target.resolve() not in seen:
                    queue.append(target.resolve())

    def _find(self, name: str, path: Path, visited: set[tuple[Path, str]]) -> LocatedDeclaration | None:
        if (path, name) in visited:
            return None
        visited.add((path, name))
        try:
            source = self.load(path)
        except FileNotFoundError:
            logger.warning("Cannot read %s while looking for %s", path, name)
            return None
        index = self._index(source)
        if name in index.declarations:
            return index.declarations[name]

        for reexport in index.reexports:
            if name in reexport.names:
                local = reexport.names[name]
                if reexport.specifier is None:
                    found = self._find_local_export(local, source, index, visited)
                else:
                    found = self._find_in_module(reexport.specifier, local, path, visited)
                if found is not None:
                    return found
        for reexport in index.reexports:
            if reexport.star and reexport.specifier is not None:
                found = self._find_in_module(reexport.specifier, name, path, visited)
                if found is not None:
                    return found

        if path.name.startswith("index."):
            for sibling in scan_source_files(path.parent, include_declarations=True):
                sibling = sibling.resolve()
                if sibling != path and sibling.parent == path.parent:
                    found = self._find(name, sibling, visited)
                    if found is not None:
                        logger.debug("Found %s in sibling %s of %s", name, sibling, path)
                        return found
        return None

    def _find_local_export(
        self, local: str, source: SourceFile, index: _FileIndex, visited: set[tuple[Path, str]]
    ) -> LocatedDeclaration | None:
        if local in index.declarations:
            return index.declarations[local]
        binding = index.imports.get(local)
        if binding is None or binding.is_namespace:
            return None
        return self._find_in_module(binding.specifier, binding.imported, source.path.resolve(), visited)

    def _find_in_module(
        self, specifier: str, name: str, importer: Path, visited: set[tuple[Path, str]]
    ) -> LocatedDeclaration | None:
        target = self._resolver.resolve(specifier, importer, name)
        if target is None:
            return None
        return self._find(name, target.resolve(), visited)

    def _default_export(self, path: Path) -> LocatedDeclaration | None:
        source = self.load(path)
        for statement in source.root.named_children:
            if statement.type == "export_statement" and has_token(statement, "default"):
                declaration = statement.child_by_field_name("declaration") or _default_class(statement)
                if declaration is not None:
                    for located in self._index(source).declarations.values():
                        if located.node == declaration:
                            return located
        return None

    def _index(self, source: SourceFile) -> _FileIndex:
        key = source.path.resolve()
        if key not in self._indexes:
            declarations: dict[str, LocatedDeclaration] = {}
            reexports: list[ReExport] = []
            _collect(source, source.root, declarations, reexports, source.is_declaration_file)
            self._indexes[key] = _FileIndex(declarations, reexports, read_imports(source))
        return self._indexes[key]


def _collect(
    source: SourceFile,
    container: Node,
    declarations: dict[str, LocatedDeclaration],
    reexports: list[ReExport],
    ambient_exported: bool,
) -> None:
    for statement in container.named_children:
        exported = ambient_exported
        node = statement
        if statement.type == "export_statement":
            declaration = statement.child_by_field_name("declaration") or _default_class(statement)
            if declaration is None:
                reexport = _read_reexport(source, statement)
                if reexport is not None:
                    reexports.append(reexport)
                continue
            node = declaration
            exported = True
        if node.type == "ambient_declaration":
            inner = [child for child in node.named_children if child.type != "comment"]
            if not inner:
                continue
            node = inner[0]
        if node.type in _NAMESPACE_TYPES:
            body = node.child_by_field_name("body")
            if body is not None:
                _collect(source, body, declarations, reexports, ambient_exported or exported)
            continue
        if node.type not in DECLARATION_TYPES:
            continue
        name_node = node.child_by_field_name("name")
        if name_node is None:
            continue
        name = source.text(name_node)
        if name in declarations:
            # declaration merging: the first declaration of a name is the one compiled
            continue
        declarations[name] = LocatedDeclaration(
            source=source, statement=statement, node=node, name=name, exported=exported
        )

    for reexport in reexports:
        if reexport.specifier is None:
            for local in reexport.names.values():
                if local in declarations and not declarations[local].exported:
                    located = declarations[local]
                    declarations[local] = LocatedDeclaration(
                        source=located.source,
                        statement=located.statement,
                        node=located.node,
                        name=located.name,
                        exported=True,
                    )


def _read_reexport(source: SourceFile, statement: Node) -> ReExport | None:
    specifier_node = statement.child_by_field_name("source")
    specifier = string_value(source, specifier_node) if specifier_node is not None else None
    clause = next((c for c in statement.named_children if c.type == "export_clause"), None)
    if clause is not None:
        names: dict[str, str] = {}
        for spec in clause.named_children:
            if spec.type != "export_specifier":
                continue
            name_node = spec.child_by_field_name("name")
            alias_node = spec.child_by_field_name("alias")
            if name_node is None:
                continue
            local = source.text(name_node)
            names[source.text(alias_node) if alias_node is not None else local] = local
        return ReExport(specifier=specifier, names=names)
    if specifier is not None and has_token(statement, "*"):
        if any(c.type == "namespace_export" for c in statement.named_children):
            return None
        return ReExport(specifier=specifier, star=True)
    return None


def _default_class(statement: Node) -> Node | None:
    """``export default class Name {}`` may parse as a class expression."""
    value = statement.child_by_field_name("value")
    if value is not None and value.type == "class" and value.child_by_field_name("name") is not None:
        return value
    return None
