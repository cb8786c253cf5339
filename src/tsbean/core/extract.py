"""Declaration extraction.

Walks TypeScript sources with tree-sitter and produces language-neutral
``Declaration`` records: names, doc summaries, ordered fields with their raw
type expressions and validator tags, enum members, heritage clauses and a
content hash over the exact source span.
"""

import hashlib
import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node

from tsbean.config import CompilerSettings
from tsbean.core.ast import SourceFile, first_child_of_type, has_token, leading_comments, string_value
from tsbean.core.decorators import field_validators, has_ignore_marker, read_decorators, table_spec
from tsbean.core.diagnostics import MissingInputError
from tsbean.core.jsdoc import DocComment, is_jsdoc, line_comment_text, parse_doc, to_number
from tsbean.core.languages import scan_source_files
from tsbean.core.registrations import ImportBinding, Registration, read_registrations
from tsbean.core.source_graph import LocatedDeclaration, SourceGraph
from tsbean.core.type_expr import TypeExprBuilder
from tsbean.models import (
    Declaration,
    DeclarationKind,
    EnumMember,
    FieldDecl,
    PrimitiveType,
    TypeAlias,
    TypeExpr,
)
from tsbean.resolvers import build_resolver

logger = logging.getLogger(__name__)

_CLASS_TYPES = frozenset({"class", "class_declaration", "abstract_class_declaration"})
_HIDDEN_ACCESSIBILITY = frozenset({"private", "protected"})
_PARAMETER_TYPES = frozenset({"required_parameter", "optional_parameter"})


@dataclass
class DeclarationSet:
    """Declarations to emit, in input order, plus everything they may reference.

    ``symbols`` maps source identifiers to declarations from every parsed file;
    emitted declarations appear there under their source name with their
    emitted (possibly renamed) ``name``. ``unemitted`` holds the source names
    of symbols that were parsed but will not get an entry of their own.
    """

    declarations: list[Declaration] = field(default_factory=list)
    symbols: dict[str, Declaration] = field(default_factory=dict)
    aliases: dict[str, TypeAlias] = field(default_factory=dict)
    unemitted: set[str] = field(default_factory=set)

    def emitted_names(self) -> set[str]:
        return {declaration.name for declaration in self.declarations}


class DeclarationExtractor:
    def __init__(self, settings: CompilerSettings, graph: SourceGraph | None = None) -> None:
        self._settings = settings
        self._reserved = re.compile(settings.reserved_field_pattern)
        self._wrappers = frozenset(settings.wrappers)
        self._graph = graph

    def extract_directory(self, root: Path) -> DeclarationSet:
        """Collect every exported record and enumeration below *root*."""
        if not root.is_dir():
            raise MissingInputError(root)
        graph = self._graph_for(root)
        files = scan_source_files(root)
        logger.info("Scanning %d file(s) under %s", len(files), root)
        graph.load_reachable(files)

        result = DeclarationSet()
        for path in files:
            for located in graph.declarations(graph.load(path)):
                if not located.exported or located.node.type == "type_alias_declaration":
                    continue
                self._add(result, located, located.name)
        self._fill_symbols(result, graph)
        return result

    def extract_registrations(self, registration_file: Path) -> DeclarationSet:
        """Collect the declarations listed by ``register(...)`` calls, in call order."""
        if not registration_file.is_file():
            raise MissingInputError(registration_file)
        graph = self._graph_for(registration_file.parent)
        source = graph.load(registration_file)
        registrations = read_registrations(source)
        logger.info("Found %d registration(s) in %s", len(registrations), registration_file)

        result = DeclarationSet()
        roots = [registration_file]
        for registration in registrations:
            located = self._locate(graph, source, registration)
            if located is None:
                logger.warning("Cannot resolve registered declaration %s; skipping", registration.symbol)
                continue
            if located.node.type == "type_alias_declaration":
                logger.warning("Registered %s is a type alias, not a class or enum; skipping", registration.symbol)
                continue
            roots.append(located.source.path)
            self._add(result, located, registration.name)
        graph.load_reachable(roots)
        self._fill_symbols(result, graph)
        return result

    def build(self, located: LocatedDeclaration, name: str | None = None) -> Declaration | TypeAlias:
        """Build the record for one located declaration."""
        emitted_name = name or located.name
        node = located.node
        source = located.source
        if node.type == "type_alias_declaration":
            builder = TypeExprBuilder(source, self._wrappers)
            return TypeAlias(
                name=located.name,
                type=builder.build(node.child_by_field_name("value")),
                source_path=str(source.path),
            )

        comments = leading_comments(located.statement)
        doc = _doc_for(source, comments)
        decorators = read_decorators(source, node)
        if located.statement != node:
            decorators += read_decorators(source, located.statement)

        declaration = Declaration(
            name=emitted_name,
            source_name=located.name,
            kind=DeclarationKind.RECORD,
            summary=doc.summary,
            content_hash=_content_hash(source, located.statement, comments),
            source_path=str(source.path),
            exported=located.exported,
        )
        if doc.has("ignore") or has_ignore_marker(decorators):
            declaration.kind = DeclarationKind.IGNORED
            return declaration

        if node.type == "enum_declaration":
            declaration.kind = DeclarationKind.ENUMERATION
            declaration.members = self._enum_members(source, node)
            declaration.flags = doc.has("flags")
        elif node.type == "interface_declaration":
            declaration.is_interface = True
            declaration.interfaces = _heritage_names(source, first_child_of_type(node, "extends_type_clause"))
            declaration.fields = self._interface_fields(source, node, located.name)
        elif node.type in _CLASS_TYPES:
            declaration.base, declaration.interfaces = _class_heritage(source, node)
            declaration.fields = self._class_fields(source, node, doc, located.name)
            declaration.table = table_spec(decorators, emitted_name)
        return declaration

    def _graph_for(self, start: Path) -> SourceGraph:
        if self._graph is None:
            self._graph = SourceGraph(build_resolver(start, self._settings.tsconfig))
        return self._graph

    def _add(self, result: DeclarationSet, located: LocatedDeclaration, name: str) -> None:
        declaration = self.build(located, name)
        if not isinstance(declaration, Declaration):
            return
        if declaration.kind == DeclarationKind.IGNORED:
            logger.info("Skipping %s: marked as ignored", name)
            result.symbols.setdefault(located.name, declaration)
            return
        if name in result.emitted_names():
            logger.warning("Duplicate declaration %s in %s; keeping the first", name, located.source.path)
            return
        if declaration.kind == DeclarationKind.RECORD:
            self._attach_virtual_fields(declaration)
        result.declarations.append(declaration)
        result.symbols.setdefault(located.name, declaration)

    def _attach_virtual_fields(self, declaration: Declaration) -> None:
        virtual = self._settings.virtual_fields_for(declaration.name)
        if not virtual:
            return
        declaration.virtual_fields = virtual
        # settings changes must invalidate the cached entry too
        extra = "".join(item.model_dump_json() for item in virtual)
        declaration.content_hash = hashlib.sha256(f"{declaration.content_hash}{extra}".encode()).hexdigest()
        logger.debug("Added %d virtual field(s) to %s", len(virtual), declaration.name)

    def _fill_symbols(self, result: DeclarationSet, graph: SourceGraph) -> None:
        for source in graph.files():
            for located in graph.declarations(source):
                if located.name in result.symbols or located.name in result.aliases:
                    continue
                built = self.build(located)
                if isinstance(built, TypeAlias):
                    result.aliases[built.name] = built
                else:
                    result.symbols[located.name] = built
                    result.unemitted.add(located.name)
        logger.debug("Symbol table holds %d declaration(s)", len(result.symbols))

    def _locate(self, graph: SourceGraph, source: SourceFile, registration: Registration) -> LocatedDeclaration | None:
        imports = graph.imports(source)
        if registration.qualifier is not None:
            binding = imports.get(registration.qualifier)
            if binding is None or not binding.is_namespace:
                return None
            qualified = ImportBinding(local=registration.symbol, imported=registration.symbol, specifier=binding.specifier)
            return graph.follow_import(qualified, source.path)
        for located in graph.declarations(source):
            if located.name == registration.symbol:
                return located
        binding = imports.get(registration.symbol)
        if binding is None:
            return None
        return graph.follow_import(binding, source.path)

    def _class_fields(self, source: SourceFile, node: Node, doc: DocComment, owner: str) -> list[FieldDecl]:
        body = node.child_by_field_name("body")
        if body is None:
            return []
        builder = TypeExprBuilder(source, self._wrappers)
        fields: list[FieldDecl] = []
        for member in body.named_children:
            if member.type == "public_field_definition":
                decl = self._property(source, builder, member, owner)
                if decl is not None:
                    fields.append(decl)
            elif member.type in ("method_definition", "method_signature") and _is_constructor(source, member):
                constructor_doc = _doc_for(source, leading_comments(member))
                param_docs = {**doc.params(), **constructor_doc.params()}
                fields.extend(self._parameter_properties(source, builder, member, param_docs, owner))
        return _dedupe(fields, owner)

    def _interface_fields(self, source: SourceFile, node: Node, owner: str) -> list[FieldDecl]:
        body = node.child_by_field_name("body")
        if body is None:
            return []
        builder = TypeExprBuilder(source, self._wrappers)
        fields: list[FieldDecl] = []
        for member in body.named_children:
            if member.type == "property_signature":
                decl = self._property(source, builder, member, owner)
                if decl is not None:
                    fields.append(decl)
        return _dedupe(fields, owner)

    def _property(self, source: SourceFile, builder: TypeExprBuilder, member: Node, owner: str) -> FieldDecl | None:
        name_node = member.child_by_field_name("name")
        if name_node is None or name_node.type in ("private_property_identifier", "computed_property_name"):
            return None
        if has_token(member, "static") or _accessibility(source, member) in _HIDDEN_ACCESSIBILITY:
            return None
        name = string_value(source, name_node) if name_node.type == "string" else source.text(name_node)
        if self._reserved.search(name):
            logger.debug("Dropping reserved member %s.%s", owner, name)
            return None

        doc = _doc_for(source, leading_comments(member))
        decorators = read_decorators(source, member)
        if doc.has("ignore") or has_ignore_marker(decorators):
            logger.debug("Dropping ignored member %s.%s", owner, name)
            return None

        annotation = member.child_by_field_name("type")
        type_expr = builder.build(annotation) if annotation is not None else _infer(source, builder, member)
        return FieldDecl(
            name=name,
            type=type_expr,
            optional=has_token(member, "?"),
            comment=doc.summary,
            validators=doc.validators() + field_validators(decorators),
        )

    def _parameter_properties(
        self,
        source: SourceFile,
        builder: TypeExprBuilder,
        constructor: Node,
        param_docs: dict[str, str],
        owner: str,
    ) -> list[FieldDecl]:
        parameters = constructor.child_by_field_name("parameters")
        if parameters is None:
            return []
        fields: list[FieldDecl] = []
        for parameter in parameters.named_children:
            if parameter.type not in _PARAMETER_TYPES:
                continue
            accessibility = _accessibility(source, parameter)
            promoted = accessibility is not None or has_token(parameter, "readonly")
            if not (promoted or source.is_declaration_file) or accessibility in _HIDDEN_ACCESSIBILITY:
                continue
            pattern = parameter.child_by_field_name("pattern")
            if pattern is None or pattern.type != "identifier":
                continue
            name = source.text(pattern)
            if self._reserved.search(name):
                logger.debug("Dropping reserved parameter %s.%s", owner, name)
                continue
            decorators = read_decorators(source, parameter)
            if has_ignore_marker(decorators):
                continue
            annotation = parameter.child_by_field_name("type")
            type_expr = builder.build(annotation) if annotation is not None else _infer(source, builder, parameter)
            fields.append(
                FieldDecl(
                    name=name,
                    type=type_expr,
                    optional=parameter.type == "optional_parameter",
                    comment=param_docs.get(name),
                    validators=field_validators(decorators),
                )
            )
        return fields

    def _enum_members(self, source: SourceFile, node: Node) -> list[EnumMember]:
        body = node.child_by_field_name("body")
        if body is None:
            return []
        members: list[EnumMember] = []
        known: dict[str, int | str] = {}
        next_value = 0
        for child in body.named_children:
            if child.type == "comment":
                continue
            value_node = None
            name_node = child
            if child.type == "enum_assignment":
                name_node = child.child_by_field_name("name") or child.named_children[0]
                value_node = child.child_by_field_name("value")
            name = string_value(source, name_node) if name_node.type == "string" else source.text(name_node)

            value: int | str = next_value
            if value_node is not None:
                evaluated = _evaluate_constant(source, value_node, known.get)
                if evaluated is None:
                    logger.warning(
                        "Cannot evaluate enum member %s = %s; using %d",
                        name,
                        source.text(value_node),
                        next_value,
                    )
                else:
                    value = evaluated
            known[name] = value
            if isinstance(value, int):
                next_value = value + 1

            doc = _doc_for(source, leading_comments(child))
            if doc.has("ignore"):
                continue
            members.append(EnumMember(name=name, value=value, alias=doc.value("alias"), comment=doc.summary))
        return members


def _doc_for(source: SourceFile, comments: list[Node]) -> DocComment:
    if not comments:
        return DocComment()
    texts = [source.text(comment) for comment in comments]
    if is_jsdoc(texts[-1]):
        return parse_doc(texts[-1])
    return DocComment(summary=line_comment_text("\n".join(texts)))


def _content_hash(source: SourceFile, statement: Node, comments: list[Node]) -> str:
    start = comments[0].start_byte if comments else statement.start_byte
    return hashlib.sha256(source.span(start, statement.end_byte)).hexdigest()


def _class_heritage(source: SourceFile, node: Node) -> tuple[str | None, list[str]]:
    heritage = first_child_of_type(node, "class_heritage")
    if heritage is None:
        return None, []
    base = None
    extends = first_child_of_type(heritage, "extends_clause")
    if extends is not None:
        value = extends.child_by_field_name("value")
        if value is not None and value.type in ("identifier", "member_expression"):
            base = source.text(value).rsplit(".", 1)[-1]
        elif value is not None:
            logger.debug("Ignoring non-nominal base expression %s", source.text(value))
    return base, _heritage_names(source, first_child_of_type(heritage, "implements_clause"))


def _heritage_names(source: SourceFile, clause: Node | None) -> list[str]:
    if clause is None:
        return []
    names: list[str] = []
    for child in clause.named_children:
        if child.type in ("comment", "type_arguments"):
            continue
        name_node = child.child_by_field_name("name") if child.type == "generic_type" else child
        if name_node is not None:
            names.append(source.text(name_node).rsplit(".", 1)[-1])
    return names


def _accessibility(source: SourceFile, node: Node) -> str | None:
    modifier = first_child_of_type(node, "accessibility_modifier")
    return source.text(modifier) if modifier is not None else None


def _is_constructor(source: SourceFile, member: Node) -> bool:
    name = member.child_by_field_name("name")
    return name is not None and source.text(name) == "constructor"


def _infer(source: SourceFile, builder: TypeExprBuilder, node: Node) -> TypeExpr:
    """Type of an unannotated property, taken from its initializer."""
    value = node.child_by_field_name("value")
    if value is None:
        return PrimitiveType(name="string")
    if value.type in ("as_expression", "satisfies_expression"):
        named = [child for child in value.named_children if child.type != "comment"]
        if len(named) >= 2:
            return builder.build(named[-1])
    if value.type == "number" or (value.type == "unary_expression" and source.text(value).lstrip("-+ ").isdigit()):
        return PrimitiveType(name="number")
    if value.type in ("true", "false"):
        return PrimitiveType(name="boolean")
    return PrimitiveType(name="string")


def _dedupe(fields: list[FieldDecl], owner: str) -> list[FieldDecl]:
    seen: set[str] = set()
    unique: list[FieldDecl] = []
    for decl in fields:
        if decl.name in seen:
            logger.debug("Dropping duplicate field %s.%s", owner, decl.name)
            continue
        seen.add(decl.name)
        unique.append(decl)
    return unique


def _int32(value: int | float) -> int:
    """ECMAScript ToInt32: truncate, then wrap to a signed 32-bit integer."""
    wrapped = int(value) & 0xFFFFFFFF
    return wrapped - 0x100000000 if wrapped & 0x80000000 else wrapped


def _shift_count(value: int | float) -> int:
    return int(value) & 31


_BINARY_OPERATORS: dict[str, Callable[[int | float, int | float], int | float]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a / b,
    "%": lambda a, b: math.fmod(a, b),
    "**": lambda a, b: float(a) ** b,
    "<<": lambda a, b: _int32(_int32(a) << _shift_count(b)),
    ">>": lambda a, b: _int32(a) >> _shift_count(b),
    ">>>": lambda a, b: (_int32(a) & 0xFFFFFFFF) >> _shift_count(b),
    "|": lambda a, b: _int32(a) | _int32(b),
    "&": lambda a, b: _int32(a) & _int32(b),
    "^": lambda a, b: _int32(a) ^ _int32(b),
}


def _evaluate_constant(source: SourceFile, node: Node, lookup: Callable[[str], int | str | None]) -> int | str | None:
    """Evaluate an enum initializer made of literals, operators and earlier members."""
    value = _evaluate(source, node, lookup)
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, complex):
        return None
    return value


def _evaluate(source: SourceFile, node: Node, lookup: Callable[[str], int | str | None]) -> int | float | str | None:
    kind = node.type
    if kind == "number":
        text = source.text(node).replace("_", "")
        try:
            return int(text, 0)
        except ValueError:
            return to_number(text)
    if kind == "string":
        return string_value(source, node)
    if kind == "identifier":
        return lookup(source.text(node))
    if kind == "member_expression":
        member = node.child_by_field_name("property")
        return lookup(source.text(member)) if member is not None else None
    if kind == "parenthesized_expression":
        inner = [child for child in node.named_children if child.type != "comment"]
        return _evaluate(source, inner[0], lookup) if inner else None
    if kind == "unary_expression":
        operator = node.child_by_field_name("operator")
        operand = node.child_by_field_name("argument")
        value = _evaluate(source, operand, lookup) if operand is not None else None
        if not isinstance(value, int | float) or operator is None:
            return None
        symbol = source.text(operator)
        if symbol == "-":
            return -value
        if symbol == "+":
            return value
        if symbol == "~":
            try:
                return ~_int32(value)
            except (ValueError, OverflowError):
                return None
        return None
    if kind == "binary_expression":
        left_node = node.child_by_field_name("left")
        right_node = node.child_by_field_name("right")
        operator = node.child_by_field_name("operator")
        if left_node is None or right_node is None or operator is None:
            return None
        left = _evaluate(source, left_node, lookup)
        right = _evaluate(source, right_node, lookup)
        symbol = source.text(operator)
        if isinstance(left, str) and isinstance(right, str) and symbol == "+":
            return left + right
        if not isinstance(left, int | float) or not isinstance(right, int | float) or symbol not in _BINARY_OPERATORS:
            return None
        try:
            return _BINARY_OPERATORS[symbol](left, right)
        except (ZeroDivisionError, ValueError, OverflowError):
            return None
    return None
