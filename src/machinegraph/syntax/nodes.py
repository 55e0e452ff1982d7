"""Helpers for reading tree-sitter JavaScript/TypeScript expression nodes."""

from __future__ import annotations

import re
from typing import Optional, Union

from tree_sitter import Node

from machinegraph.syntax.source import SourceFile

# Expression wrappers that do not change the runtime value
TYPE_ASSERTION_TYPES: frozenset[str] = frozenset(
    {"as_expression", "satisfies_expression", "type_assertion", "non_null_expression"}
)
WRAPPER_TYPES: frozenset[str] = TYPE_ASSERTION_TYPES | {"parenthesized_expression"}

FUNCTION_TYPES: frozenset[str] = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)

_ESCAPE_RE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)", re.DOTALL
)
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


def _unescape(match: re.Match[str]) -> str:
    seq = match.group(1)
    if seq.startswith("u{"):
        return chr(int(seq[2:-1], 16))
    if seq[0] == "u" and len(seq) == 5:
        return chr(int(seq[1:], 16))
    if seq[0] == "x" and len(seq) == 3:
        return chr(int(seq[1:], 16))
    if seq in ("\n", "\r\n", "\r"):
        return ""
    return _SIMPLE_ESCAPES.get(seq, seq)


def members(node: Node) -> list[Node]:
    """Named children without comments (object properties, array elements, args)."""
    return [c for c in node.named_children if c.type != "comment"]


def wrapped_expression(node: Node) -> Optional[Node]:
    """Return the expression inside a wrapper node."""
    inner = members(node)
    if not inner:
        return None
    # <T>expr puts the type first
    return inner[-1] if node.type == "type_assertion" else inner[0]


def unwrap_expression(node: Node, kinds: frozenset[str] = WRAPPER_TYPES) -> Node:
    while node.type in kinds:
        inner = wrapped_expression(node)
        if inner is None:
            break
        node = inner
    return node


def string_value(node: Node, source: SourceFile) -> str:
    """Decode a ``string`` node (quotes stripped, escapes applied)."""
    return _ESCAPE_RE.sub(_unescape, source.node_text(node)[1:-1])


def template_has_substitutions(node: Node) -> bool:
    return any(c.type == "template_substitution" for c in node.named_children)


def template_raw_text(node: Node, source: SourceFile) -> str:
    return source.node_text(node)[1:-1]


def number_value(text: str) -> Union[int, float]:
    """Parse a JavaScript numeric literal."""
    cleaned = text.replace("_", "").rstrip("n")
    lowered = cleaned.lower()
    if lowered.startswith(("0x", "0o", "0b")):
        return int(cleaned, 0)
    try:
        return int(cleaned)
    except ValueError:
        return float(cleaned)


def property_key(prop: Node, source: SourceFile) -> Optional[str]:
    """Return the static key of an object member, or ``None`` if computed."""
    if prop.type == "shorthand_property_identifier":
        return source.node_text(prop)
    key = prop.child_by_field_name("key") or prop.child_by_field_name("name")
    if key is None:
        return None
    if key.type in ("property_identifier", "identifier", "private_property_identifier"):
        return source.node_text(key)
    if key.type == "string":
        return string_value(key, source)
    if key.type == "number":
        return str(number_value(source.node_text(key)))
    return None


def property_value(prop: Node) -> Optional[Node]:
    """Return the value node of a ``pair``; other members have none."""
    if prop.type != "pair":
        return None
    return prop.child_by_field_name("value")


def object_properties(obj: Node, source: SourceFile) -> list[tuple[Optional[str], Node]]:
    """List ``(key, member)`` for every member of an ``object`` node."""
    return [(property_key(m, source), m) for m in members(obj)]


def find_property(obj: Node, key: str, source: SourceFile) -> Optional[Node]:
    """Return the last ``pair`` keyed *key* (later keys win, as at runtime)."""
    found = None
    for name, member in object_properties(obj, source):
        if name == key and member.type == "pair":
            found = member
    return found


def is_plain_object(obj: Node) -> bool:
    """True if every member of *obj* is a ``key: value`` pair."""
    return all(m.type == "pair" for m in members(obj))


def is_identifier_name(text: str) -> bool:
    return re.fullmatch(r"[A-Za-z_$][A-Za-z0-9_$]*", text) is not None


def enclosing_pair(node: Node) -> Optional[Node]:
    """Climb wrapper nodes from a value up to the ``pair`` that holds it."""
    current = node.parent
    while current is not None and current.type in WRAPPER_TYPES:
        current = current.parent
    if current is not None and current.type == "pair":
        return current
    return None
