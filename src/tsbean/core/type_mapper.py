"""Recursive mapping of ``TypeExpr`` trees to schema type strings.

Policy, in short:

* ``number``/``string``/``boolean`` map through the alias table (``int``/``string``/``bool``)
* ``T[]`` maps to ``list,<T>`` and ``Record<K, V>`` to ``map,<K>,<V>``
* a union maps to its first non-null alternative; null arms make the field optional
* unresolvable names are reported to ``Diagnostics`` and mapped to a best-effort name

An optional scalar or reference field gets a trailing ``?``. An optional
``list``/``set``/``map`` field does not: the empty container already encodes absence.
"""

import logging
from dataclasses import dataclass

from tsbean.config import CompilerSettings
from tsbean.core.diagnostics import Diagnostics
from tsbean.core.extract import DeclarationSet
from tsbean.core.type_expr import is_nullish
from tsbean.models import (
    DeclarationKind,
    DictionaryType,
    FieldDecl,
    LiteralType,
    PrimitiveType,
    ReferenceType,
    SequenceType,
    TypeExpr,
    UnionType,
    UnknownType,
    UnwrapType,
    ValidatorTag,
)

logger = logging.getLogger(__name__)

BUILTIN_ALIASES: dict[str, str] = {
    "number": "int",
    "string": "string",
    "boolean": "bool",
    "bigint": "long",
    "int": "int",
    "long": "long",
    "float": "float",
    "double": "double",
    "vector3": "Vector3",
    "vector2": "Vector2",
    "cframe": "CFrame",
    "color3": "Color3",
    "anyentity": "long",
    "entity": "long",
    "entityid": "long",
    "assetpath": "string",
    "castactiontarget": "CastActionTarget",
    "castcontext": "CastContext",
}

_FALLBACK_SCALAR = "string"


@dataclass(frozen=True)
class MappedType:
    text: str
    container: str | None = None
    nullable: bool = False

    @property
    def is_container(self) -> bool:
        return self.container is not None


class TypeMapper:
    def __init__(
        self,
        declarations: DeclarationSet,
        settings: CompilerSettings,
        diagnostics: Diagnostics,
        polymorphic: frozenset[str] = frozenset(),
    ) -> None:
        self._declarations = declarations
        self._settings = settings
        self._diagnostics = diagnostics
        self._polymorphic = polymorphic
        self._aliases = {**BUILTIN_ALIASES, **{k.lower(): v for k, v in settings.type_mappings.items()}}
        self._external = frozenset(settings.external_types)
        self._expanding: set[str] = set()

    def map_field(self, owner: str, decl: FieldDecl) -> str:
        """Full type string for a field, including optionality and validator tags."""
        mapped = self.map(decl.type, owner, decl.name)
        optional = decl.optional or mapped.nullable
        if mapped.is_container:
            return self._container_text(owner, decl, mapped)
        return mapped.text + self._scalar_suffix(owner, decl.name, decl.validators, optional, allow_required=True)

    def map(self, expr: TypeExpr, owner: str = "", field: str | None = None) -> MappedType:
        if isinstance(expr, PrimitiveType):
            return MappedType(self._aliases.get(expr.name.lower(), _FALLBACK_SCALAR))
        if isinstance(expr, LiteralType):
            return MappedType(self._aliases[_literal_primitive(expr.value)])
        if isinstance(expr, SequenceType):
            element = self.map(expr.element, owner, field)
            return MappedType(f"{expr.container},{element.text}", container=expr.container)
        if isinstance(expr, DictionaryType):
            key = self.map(expr.key, owner, field)
            value = self.map(expr.value, owner, field)
            return MappedType(f"map,{key.text},{value.text}", container="map")
        if isinstance(expr, UnionType):
            arms = [arm for arm in expr.alternatives if not is_nullish(arm)]
            nullable = len(arms) != len(expr.alternatives)
            if not arms:
                return MappedType(_FALLBACK_SCALAR, nullable=True)
            if len(arms) > 1:
                logger.debug("%s.%s: union maps to its first alternative", owner, field)
            first = self.map(arms[0], owner, field)
            return MappedType(first.text, container=first.container, nullable=nullable or first.nullable)
        if isinstance(expr, UnwrapType):
            return self.map(expr.inner, owner, field)
        if isinstance(expr, ReferenceType):
            return self._reference(expr, owner, field)
        return self._unmappable(expr.original if isinstance(expr, UnknownType) else str(expr), owner, field)

    def emitted_name(self, source_name: str) -> str | None:
        """Schema name of a referenced declaration, or ``None`` if it is not known."""
        if source_name.lower() in self._aliases:
            return self._aliases[source_name.lower()]
        if source_name == self._settings.marker_interface or source_name in self._polymorphic:
            return self._settings.polymorphic_base
        if source_name == self._settings.polymorphic_base:
            return source_name
        declaration = self._declarations.symbols.get(source_name)
        unemitted = source_name in self._declarations.unemitted
        if declaration is not None and declaration.kind != DeclarationKind.IGNORED and not unemitted:
            return declaration.name
        if source_name in self._external:
            return source_name
        return None

    def _reference(self, expr: ReferenceType, owner: str, field: str | None) -> MappedType:
        name = expr.name
        resolved = self.emitted_name(name)
        if resolved is not None:
            return MappedType(resolved)
        declaration = self._declarations.symbols.get(name)
        if declaration is not None and declaration.kind == DeclarationKind.IGNORED:
            logger.warning("%s.%s references ignored declaration %s", owner, field, name)
            return self._unmappable(name, owner, field)
        if declaration is not None and name in self._declarations.unemitted:
            logger.warning("%s.%s references %s, which has no entry of its own", owner, field, name)
            self._diagnostics.report(owner, field, name, kind="unemitted-reference")
            return MappedType(declaration.name)
        alias = self._declarations.aliases.get(name)
        if alias is not None and name not in self._expanding:
            self._expanding.add(name)
            try:
                return self.map(alias.type, owner, field)
            finally:
                self._expanding.discard(name)
        return self._unmappable(name, owner, field)

    def _unmappable(self, type_text: str, owner: str, field: str | None) -> MappedType:
        self._diagnostics.report(owner, field, type_text)
        return MappedType(type_text.lower() or _FALLBACK_SCALAR)

    def _container_text(self, owner: str, decl: FieldDecl, mapped: MappedType) -> str:
        container_tags: list[str] = []
        scalar_tags: list[ValidatorTag] = []
        for tag in decl.validators:
            if tag.key == "size":
                size = tag.params
                container_tags.append(f"size={size[0]}" if len(size) == 1 else f"size=[{size[0]},{size[1]}]")
            elif tag.key == "index":
                container_tags.append(f"index={tag.params[0]}")
            elif tag.key == "required":
                logger.info("%s.%s: required has no effect on a %s field", owner, decl.name, mapped.container)
            else:
                scalar_tags.append(tag)

        text = mapped.text
        element_suffix = self._scalar_suffix(owner, decl.name, scalar_tags, optional=False, allow_required=False)
        if element_suffix:
            text += element_suffix
        if container_tags:
            _, _, rest = text.partition(",")
            text = f"({mapped.container}#{','.join(container_tags)}),{rest}"
        return text

    def _scalar_suffix(
        self,
        owner: str,
        field: str,
        validators: list[ValidatorTag],
        optional: bool,
        allow_required: bool,
    ) -> str:
        suffix = "?" if optional else ""
        by_key: dict[str, ValidatorTag] = {}
        for tag in validators:
            by_key.setdefault(tag.key, tag)
        if allow_required and "required" in by_key:
            suffix += "!"
        if "ref" in by_key:
            target = str(by_key["ref"].params[0]) if by_key["ref"].params else ""
            resolved = self.emitted_name(target)
            if resolved is None:
                logger.warning("%s.%s: dropping reference tag to unknown type %s", owner, field, target)
            else:
                suffix += f"#ref={resolved}"
        if "range" in by_key:
            low, high = by_key["range"].params[:2]
            suffix += f"#range=[{_number_text(low)},{_number_text(high)}]"
        if "set" in by_key:
            suffix += "#set=" + ",".join(_number_text(value) for value in by_key["set"].params)
        for key in ("size", "index"):
            if key in by_key:
                logger.info("%s.%s: %s only applies to list or map fields", owner, field, key)
        return suffix


def _literal_primitive(value: bool | int | float | str) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    return "number"


def _number_text(value: int | float | str) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value)) if abs(value) < 1e16 else repr(value)
    return str(value)
