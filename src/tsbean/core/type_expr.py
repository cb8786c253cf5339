import re

from tree_sitter import Node

from tsbean.core.ast import SourceFile, string_value, type_annotation_type
from tsbean.core.jsdoc import to_number
from tsbean.models import (
    DictionaryType,
    LiteralType,
    PrimitiveType,
    ReferenceType,
    SequenceType,
    TypeExpr,
    UnionType,
    UnknownType,
    UnwrapType,
)

DEFAULT_WRAPPERS = frozenset({"ObjectFactory", "Readonly", "NonNullable"})

_SEQUENCE_GENERICS = frozenset({"Array", "ReadonlyArray", "Set", "ReadonlySet"})
_SET_GENERICS = frozenset({"Set", "ReadonlySet"})
_DICTIONARY_GENERICS = frozenset({"Map", "ReadonlyMap", "Record"})
_NULLISH = frozenset({"null", "undefined", "void"})
_WHITESPACE = re.compile(r"\s+")


class TypeExprBuilder:
    """Turns tree-sitter type nodes of one file into ``TypeExpr`` trees."""

    def __init__(self, source: SourceFile, wrappers: frozenset[str] = DEFAULT_WRAPPERS) -> None:
        self._source = source
        self._wrappers = wrappers

    def build(self, node: Node | None) -> TypeExpr:
        if node is None:
            return UnknownType(original="")
        if node.type == "type_annotation":
            return self.build(type_annotation_type(node))

        text = self._source.text(node)
        if text in _NULLISH:
            return PrimitiveType(name=text)

        kind = node.type
        if kind == "predefined_type":
            return PrimitiveType(name=text)
        if kind == "type_identifier":
            return ReferenceType(name=text)
        if kind == "nested_type_identifier":
            return ReferenceType(name=text.rsplit(".", 1)[-1])
        if kind in ("parenthesized_type", "readonly_type"):
            return self.build(self._first_named(node))
        if kind == "array_type":
            element = self._first_named(node)
            pair = self._tuple_pair(element)
            if pair is not None:
                return DictionaryType(key=pair[0], value=pair[1])
            return SequenceType(element=self.build(element))
        if kind == "generic_type":
            return self._generic(node)
        if kind == "union_type":
            return UnionType(alternatives=[self.build(arm) for arm in self._union_arms(node)])
        if kind == "literal_type":
            return self._literal(node)
        if kind == "template_literal_type":
            return PrimitiveType(name="string")
        if kind == "object_type":
            return self._object(node)
        return UnknownType(original=_WHITESPACE.sub(" ", text))

    def _generic(self, node: Node) -> TypeExpr:
        name_node = node.child_by_field_name("name")
        arguments_node = node.child_by_field_name("type_arguments")
        name = self._source.text(name_node).rsplit(".", 1)[-1] if name_node is not None else ""
        arguments = self._named(arguments_node) if arguments_node is not None else []

        if name in _SEQUENCE_GENERICS and len(arguments) == 1:
            pair = self._tuple_pair(arguments[0]) if name in ("Array", "ReadonlyArray") else None
            if pair is not None:
                return DictionaryType(key=pair[0], value=pair[1])
            container = "set" if name in _SET_GENERICS else "list"
            return SequenceType(element=self.build(arguments[0]), container=container)
        if name in _DICTIONARY_GENERICS and len(arguments) == 2:
            return DictionaryType(key=self.build(arguments[0]), value=self.build(arguments[1]))
        if name in self._wrappers and len(arguments) == 1:
            return UnwrapType(wrapper=name, inner=self.build(arguments[0]))
        return ReferenceType(name=name, arguments=[self.build(argument) for argument in arguments])

    def _literal(self, node: Node) -> TypeExpr:
        value = self._first_named(node)
        if value is None:
            return UnknownType(original=self._source.text(node))
        if value.type == "string":
            return LiteralType(value=string_value(self._source, value))
        if value.type in ("true", "false"):
            return LiteralType(value=value.type == "true")
        text = self._source.text(value).replace(" ", "")
        try:
            return LiteralType(value=to_number(text))
        except ValueError:
            return UnknownType(original=text)

    def _object(self, node: Node) -> TypeExpr:
        members = self._named(node)
        if len(members) == 1 and members[0].type == "index_signature":
            signature = members[0]
            key = signature.child_by_field_name("index_type")
            if key is None:
                clause = next((c for c in signature.named_children if c.type == "mapped_type_clause"), None)
                key = clause.child_by_field_name("type") if clause is not None else None
            value = type_annotation_type(signature.child_by_field_name("type"))
            if key is not None and value is not None:
                return DictionaryType(key=self.build(key), value=self.build(value))
        return UnknownType(original=_WHITESPACE.sub(" ", self._source.text(node)))

    def _tuple_pair(self, node: Node | None) -> tuple[TypeExpr, TypeExpr] | None:
        """Return ``(K, V)`` when *node* is a two-element tuple type ``[K, V]``."""
        if node is None or node.type != "tuple_type":
            return None
        elements = []
        for element in self._named(node):
            if element.type in ("required_parameter", "optional_parameter"):
                element = type_annotation_type(element.child_by_field_name("type"))
            elements.append(element)
        if len(elements) != 2 or any(element is None for element in elements):
            return None
        return self.build(elements[0]), self.build(elements[1])

    def _union_arms(self, node: Node) -> list[Node]:
        arms: list[Node] = []
        for child in self._named(node):
            if child.type == "union_type":
                arms.extend(self._union_arms(child))
            else:
                arms.append(child)
        return arms

    @staticmethod
    def _named(node: Node) -> list[Node]:
        return [child for child in node.named_children if child.type != "comment"]

    def _first_named(self, node: Node) -> Node | None:
        named = self._named(node)
        return named[0] if named else None


def is_nullish(expr: TypeExpr) -> bool:
    return isinstance(expr, PrimitiveType) and expr.name in _NULLISH
