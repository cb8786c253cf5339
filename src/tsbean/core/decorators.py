"""Static reading of decorator calls into declarative metadata.

Decorators are never executed: their arguments are evaluated from literal
syntax only, and the result is attached to fields and declarations as data.
"""

import logging
from dataclasses import dataclass
from typing import Any, get_args

from tree_sitter import Node

from tsbean.core.ast import SourceFile, string_value
from tsbean.core.jsdoc import to_number
from tsbean.models import TableSpec, ValidatorTag

logger = logging.getLogger(__name__)

_TABLE_DECORATORS = frozenset({"Table", "LubanTable"})
_TABLE_MODES = frozenset(get_args(TableSpec.model_fields["mode"].annotation))


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class DecoratorCall:
    name: str
    args: tuple[Any, ...] = ()


def read_decorators(source: SourceFile, node: Node) -> list[DecoratorCall]:
    """Return the decorators attached directly to *node*."""
    calls: list[DecoratorCall] = []
    for child in node.children:
        if child.type == "decorator":
            call = read_decorator(source, child)
            if call is not None:
                calls.append(call)
    return calls


def read_decorator(source: SourceFile, node: Node) -> DecoratorCall | None:
    expressions = [child for child in node.named_children if child.type != "comment"]
    if not expressions:
        return None
    expression = expressions[0]
    if expression.type == "call_expression":
        function = expression.child_by_field_name("function")
        arguments = expression.child_by_field_name("arguments")
        if function is None:
            return None
        args: tuple[Any, ...] = ()
        if arguments is not None:
            args = tuple(
                evaluate(source, arg) for arg in arguments.named_children if arg.type != "comment"
            )
        return DecoratorCall(name=_last_segment(source.text(function)), args=args)
    if expression.type in ("identifier", "member_expression"):
        return DecoratorCall(name=_last_segment(source.text(expression)))
    return None


def evaluate(source: SourceFile, node: Node) -> Any:
    """Evaluate a literal expression node to a Python value."""
    kind = node.type
    if kind == "number":
        return _number(source.text(node))
    if kind == "string":
        return string_value(source, node)
    if kind == "template_string" and not any(c.type == "template_substitution" for c in node.children):
        return source.text(node)[1:-1]
    if kind == "true":
        return True
    if kind == "false":
        return False
    if kind in ("null", "undefined"):
        return None
    if kind in ("identifier", "member_expression"):
        return Identifier(source.text(node))
    if kind == "unary_expression":
        operand = node.child_by_field_name("argument")
        operator = node.child_by_field_name("operator")
        if operand is not None and operand.type == "number":
            value = _number(source.text(operand))
            if operator is not None and source.text(operator) == "-":
                return -value
            return value
        return None
    if kind in ("parenthesized_expression", "as_expression", "satisfies_expression", "non_null_expression"):
        inner = [child for child in node.named_children if child.type != "comment"]
        return evaluate(source, inner[0]) if inner else None
    if kind == "array":
        return [evaluate(source, child) for child in node.named_children if child.type != "comment"]
    if kind == "object":
        result: dict[str, Any] = {}
        for child in node.named_children:
            if child.type == "pair":
                key = child.child_by_field_name("key")
                value = child.child_by_field_name("value")
                if key is None or value is None:
                    continue
                key_text = string_value(source, key) if key.type == "string" else source.text(key)
                result[key_text] = evaluate(source, value)
            elif child.type == "shorthand_property_identifier":
                result[source.text(child)] = Identifier(source.text(child))
        return result
    return None


def field_validators(calls: list[DecoratorCall]) -> list[ValidatorTag]:
    validators: list[ValidatorTag] = []
    for call in calls:
        numbers = [arg for arg in call.args if isinstance(arg, int | float) and not isinstance(arg, bool)]
        if call.name == "Range" and len(numbers) >= 2:
            validators.append(ValidatorTag(key="range", params=numbers[:2]))
        elif call.name == "Required":
            validators.append(ValidatorTag(key="required"))
        elif call.name == "Size" and len(numbers) in (1, 2):
            validators.append(ValidatorTag(key="size", params=[int(n) for n in numbers]))
        elif call.name == "Set":
            values = [_plain(arg) for arg in call.args if _plain(arg) is not None]
            if values:
                validators.append(ValidatorTag(key="set", params=values))
        elif call.name == "Index" and call.args and isinstance(call.args[0], str):
            validators.append(ValidatorTag(key="index", params=[call.args[0]]))
        elif call.name == "Ref" and call.args:
            target = _plain(call.args[0])
            if isinstance(target, str):
                validators.append(ValidatorTag(key="ref", params=[target]))
    return validators


def table_spec(calls: list[DecoratorCall], declaration_name: str) -> TableSpec | None:
    for call in calls:
        if call.name not in _TABLE_DECORATORS:
            continue
        options = call.args[0] if call.args and isinstance(call.args[0], dict) else {}
        mode = options.get("mode", "map")
        if mode not in _TABLE_MODES:
            logger.warning("Ignoring table decorator on %s: unsupported mode %r", declaration_name, mode)
            return None
        index = options.get("index")
        return TableSpec(mode=mode, index=index if isinstance(index, str) and index else None)
    return None


def has_ignore_marker(calls: list[DecoratorCall]) -> bool:
    return any(call.name == "Ignore" for call in calls)


def _plain(value: Any) -> int | float | str | None:
    if isinstance(value, Identifier):
        return value.name
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int | float | str):
        return value
    return None


def _number(text: str) -> int | float:
    cleaned = text.replace("_", "")
    try:
        return int(cleaned, 0)
    except ValueError:
        return to_number(cleaned)


def _last_segment(text: str) -> str:
    return text.split("<", 1)[0].rsplit(".", 1)[-1].strip()
