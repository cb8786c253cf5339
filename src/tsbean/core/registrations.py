"""Registration-file conventions.

A registration file lists the declarations to compile through calls such as::

    register(Monster);
    register("DropEntry", DropItem);

``registerClass`` and ``reg`` are accepted as well, under any import alias.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from tree_sitter import Node

from tsbean.core.ast import SourceFile, string_value

logger = logging.getLogger(__name__)

REGISTER_FUNCTIONS = frozenset({"register", "registerClass", "reg"})


@dataclass(frozen=True)
class ImportBinding:
    local: str
    imported: str
    specifier: str

    @property
    def is_namespace(self) -> bool:
        return self.imported == "*"


@dataclass(frozen=True)
class Registration:
    symbol: str
    name: str
    qualifier: str | None = None


def read_imports(source: SourceFile) -> dict[str, ImportBinding]:
    """Map each locally bound import name to where it comes from."""
    bindings: dict[str, ImportBinding] = {}
    for statement in source.root.named_children:
        if statement.type != "import_statement":
            continue
        specifier_node = statement.child_by_field_name("source")
        clause = next((c for c in statement.named_children if c.type == "import_clause"), None)
        if specifier_node is None or clause is None:
            continue
        specifier = string_value(source, specifier_node)
        for child in clause.named_children:
            if child.type == "identifier":
                local = source.text(child)
                bindings[local] = ImportBinding(local=local, imported="default", specifier=specifier)
            elif child.type == "namespace_import":
                identifier = next((c for c in child.named_children if c.type == "identifier"), None)
                if identifier is not None:
                    local = source.text(identifier)
                    bindings[local] = ImportBinding(local=local, imported="*", specifier=specifier)
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    alias_node = spec.child_by_field_name("alias")
                    if name_node is None:
                        continue
                    imported = _identifier_text(source, name_node)
                    local = _identifier_text(source, alias_node) if alias_node is not None else imported
                    bindings[local] = ImportBinding(local=local, imported=imported, specifier=specifier)
    return bindings


def register_function_names(imports: dict[str, ImportBinding]) -> frozenset[str]:
    aliases = {binding.local for binding in imports.values() if binding.imported in REGISTER_FUNCTIONS}
    return REGISTER_FUNCTIONS | aliases


def read_registrations(source: SourceFile) -> list[Registration]:
    """Collect registrations in call order; the first registration of a name wins."""
    functions = register_function_names(read_imports(source))
    registrations: list[Registration] = []
    seen: set[str] = set()
    for call in _walk_calls(source.root):
        function = call.child_by_field_name("function")
        arguments = call.child_by_field_name("arguments")
        if function is None or arguments is None or source.text(function) not in functions:
            continue
        registration = _read_arguments(source, [a for a in arguments.named_children if a.type != "comment"])
        if registration is None:
            logger.warning(
                "Ignoring unrecognized registration %s at %s:%d",
                source.text(call),
                source.path,
                call.start_point[0] + 1,
            )
            continue
        if registration.name in seen:
            logger.warning("Duplicate registration of %s in %s; keeping the first", registration.name, source.path)
            continue
        seen.add(registration.name)
        registrations.append(registration)
    return registrations


def _read_arguments(source: SourceFile, arguments: list[Node]) -> Registration | None:
    if len(arguments) == 1:
        return _registration_for(source, arguments[0], None)
    if len(arguments) == 2 and arguments[0].type == "string":
        return _registration_for(source, arguments[1], string_value(source, arguments[0]))
    return None


def _registration_for(source: SourceFile, node: Node, name: str | None) -> Registration | None:
    if node.type == "identifier":
        symbol = source.text(node)
        return Registration(symbol=symbol, name=name or symbol)
    if node.type == "member_expression":
        qualifier, _, symbol = source.text(node).rpartition(".")
        return Registration(symbol=symbol, name=name or symbol, qualifier=qualifier)
    return None


def _walk_calls(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "call_expression":
            yield node
        stack.extend(reversed(node.named_children))


def _identifier_text(source: SourceFile, node: Node) -> str:
    if node.type == "string":
        return string_value(source, node)
    return source.text(node)
