from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class PrimitiveType(BaseModel):
    kind: Literal["primitive"] = "primitive"
    name: str


class SequenceType(BaseModel):
    kind: Literal["sequence"] = "sequence"
    element: "TypeExpr"
    container: Literal["list", "set"] = "list"


class DictionaryType(BaseModel):
    kind: Literal["dictionary"] = "dictionary"
    key: "TypeExpr"
    value: "TypeExpr"


class ReferenceType(BaseModel):
    kind: Literal["reference"] = "reference"
    name: str
    arguments: list["TypeExpr"] = []


class UnionType(BaseModel):
    kind: Literal["union"] = "union"
    alternatives: list["TypeExpr"]


class LiteralType(BaseModel):
    kind: Literal["literal"] = "literal"
    value: bool | int | float | str


class UnwrapType(BaseModel):
    kind: Literal["unwrap"] = "unwrap"
    wrapper: str
    inner: "TypeExpr"


class UnknownType(BaseModel):
    kind: Literal["unknown"] = "unknown"
    original: str


TypeExpr = Annotated[
    PrimitiveType | SequenceType | DictionaryType | ReferenceType | UnionType | LiteralType | UnwrapType | UnknownType,
    Field(discriminator="kind"),
]

# necessary for recursive types
SequenceType.model_rebuild()
DictionaryType.model_rebuild()
ReferenceType.model_rebuild()
UnionType.model_rebuild()
UnwrapType.model_rebuild()


class ValidatorTag(BaseModel):
    """Declarative validation metadata attached to a field during extraction."""

    key: Literal["range", "size", "required", "set", "index", "ref"]
    params: list[int | float | str] = []


class FieldDecl(BaseModel):
    name: str
    type: TypeExpr
    optional: bool = False
    comment: str | None = None
    validators: list[ValidatorTag] = []


class EnumMember(BaseModel):
    name: str
    value: int | str
    alias: str | None = None
    comment: str | None = None


class VirtualField(BaseModel):
    """A field added from settings rather than from source; `type` is a finished schema type string."""

    name: str
    type: str
    comment: str | None = None
    optional: bool = False


class TableSpec(BaseModel):
    mode: Literal["map", "list", "one", "single", "singleton"] = "map"
    index: str | None = None


class DeclarationKind(str, Enum):
    RECORD = "record"
    ENUMERATION = "enumeration"
    IGNORED = "ignored"


class Declaration(BaseModel):
    name: str
    source_name: str
    kind: DeclarationKind
    summary: str | None = None
    content_hash: str
    source_path: str
    exported: bool = True
    is_interface: bool = False
    fields: list[FieldDecl] = []
    members: list[EnumMember] = []
    base: str | None = None
    interfaces: list[str] = []
    polymorphic: bool = False
    table: TableSpec | None = None
    flags: bool = False
    virtual_fields: list[VirtualField] = []


class TypeAlias(BaseModel):
    name: str
    type: TypeExpr
    source_path: str


class SchemaEntry(BaseModel):
    name: str
    kind: Literal["bean", "enum"]
    content_hash: str
    text: str
    cached: bool = False
