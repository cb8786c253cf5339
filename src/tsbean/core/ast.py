from dataclasses import dataclass
from pathlib import Path
from typing import cast

from tree_sitter import Node, Tree
from tree_sitter_language_pack import SupportedLanguage, get_parser

from tsbean.core.languages import detect_language_from_path, is_declaration_file


@dataclass(frozen=True)
class SourceFile:
    path: Path
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def is_declaration_file(self) -> bool:
        return is_declaration_file(self.path)

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def span(self, start_byte: int, end_byte: int) -> bytes:
        return self.source[start_byte:end_byte]


def parse_source(source_bytes: bytes, path: Path, language: str | None = None) -> SourceFile:
    resolved_language = language or detect_language_from_path(path)
    parser = get_parser(cast(SupportedLanguage, resolved_language))
    tree = parser.parse(source_bytes)
    return SourceFile(path=path, source=source_bytes, tree=tree)


def parse_file(path: Path) -> SourceFile:
    try:
        source_bytes = path.read_bytes()
    except FileNotFoundError:
        raise FileNotFoundError(f"File not found: {path}") from None
    return parse_source(source_bytes, path)


def leading_comments(node: Node) -> list[Node]:
    """Return the comment nodes directly preceding *node*, in source order.

    A comment sharing its line with the previous statement is a trailing
    comment of that statement and is not included.
    """
    comments: list[Node] = []
    sibling = node.prev_sibling
    while sibling is not None and sibling.type == "comment":
        comments.append(sibling)
        sibling = sibling.prev_sibling
    if sibling is not None and comments and comments[-1].start_point[0] == sibling.end_point[0]:
        comments.pop()
    comments.reverse()
    return comments


def first_child_of_type(node: Node, *types: str) -> Node | None:
    for child in node.children:
        if child.type in types:
            return child
    return None


def has_token(node: Node, token: str) -> bool:
    return any(not child.is_named and child.type == token for child in node.children)


def type_annotation_type(annotation: Node | None) -> Node | None:
    """Unwrap a ``type_annotation`` node (``: T``) to its type node."""
    if annotation is None:
        return None
    if annotation.type != "type_annotation":
        return annotation
    named = [child for child in annotation.named_children if child.type != "comment"]
    return named[-1] if named else None


def string_value(source: SourceFile, node: Node) -> str:
    """Return the unquoted contents of a ``string`` node."""
    raw = source.text(node)
    if len(raw) >= 2 and raw[0] in "\"'`" and raw[-1] == raw[0]:
        raw = raw[1:-1]
    return raw.replace("\\'", "'").replace('\\"', '"').replace("\\\\", "\\")
