"""Member-level source edits on object and array literals.

All helpers compute a single :class:`TextEdit` against the unmodified
source and follow the surrounding layout: multi-line literals get a new
line at the indentation of their siblings, single-line literals stay on
one line.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from tree_sitter import Node

from machinegraph.models.digraph import ExpressionPlaceholder
from machinegraph.patching.edits import TextEdit
from machinegraph.syntax.ast_path import same_node
from machinegraph.syntax.nodes import is_identifier_name, members
from machinegraph.syntax.source import SourceFile


def format_key(key: str) -> str:
    return key if is_identifier_name(key) else json.dumps(key, ensure_ascii=False)


def format_value(value: Any) -> str:
    """Render *value* as a JS literal; placeholders are written verbatim."""
    if isinstance(value, ExpressionPlaceholder):
        return value.expression
    if isinstance(value, dict) and set(value) == {"expression"} and isinstance(
        value["expression"], str
    ):
        return value["expression"]
    return json.dumps(value, ensure_ascii=False)


def format_property(key: str, value_text: str) -> str:
    return f"{format_key(key)}: {value_text}"


def following_comma(node: Node) -> Optional[Node]:
    sibling = node.next_sibling
    while sibling is not None and sibling.type == "comment":
        sibling = sibling.next_sibling
    if sibling is not None and sibling.type == ",":
        return sibling
    return None


def insert_members(
    source: SourceFile, container: Node, index: int, texts: Sequence[str]
) -> TextEdit:
    """Insert *texts*, in order, as members starting at *index* of an object or array literal.

    ``index`` may equal the member count to append.  All members go into one
    edit so that several insertions at one position stay well formed.
    """
    items = members(container)
    start, end = source.char_range(container)
    open_end, close_start = start + 1, end - 1

    if not items:
        inner = source.text[open_end:close_start]
        joined = ", ".join(texts)
        padded = f" {joined} " if container.type == "object" else joined
        if inner.strip():
            # only comments inside
            return TextEdit(start=open_end, end=open_end, new_text=padded.rstrip() + ",")
        return TextEdit(start=open_end, end=close_start, new_text=padded)

    if index < len(items):
        item_start, _ = source.char_range(items[index])
        boundary = open_end if index == 0 else source.char_range(items[index - 1])[1]
        if "\n" in source.text[boundary:item_start]:
            separator = f",\n{source.line_indent(item_start)}"
        else:
            separator = ", "
        new_text = separator.join(texts) + separator
        return TextEdit(start=item_start, end=item_start, new_text=new_text)

    last = items[-1]
    last_start, last_end = source.char_range(last)
    multiline = "\n" in source.text[last_end:close_start]
    indent = source.line_indent(last_start)
    comma = following_comma(last)
    if comma is not None:
        anchor = source.char_range(comma)[1]
        template = "\n{indent}{text}," if multiline else " {text},"
    else:
        anchor = last_end
        template = ",\n{indent}{text}" if multiline else ", {text}"
    new_text = "".join(template.format(indent=indent, text=text) for text in texts)
    return TextEdit(start=anchor, end=anchor, new_text=new_text)


def remove_member(source: SourceFile, container: Node, member: Node) -> TextEdit:
    """Delete *member* together with the comma separating it from a sibling."""
    items = members(container)
    position = next(i for i, item in enumerate(items) if same_node(item, member))
    start, end = source.char_range(member)
    if position + 1 < len(items):
        return TextEdit(start=start, end=source.char_range(items[position + 1])[0])
    if position > 0:
        return TextEdit(start=source.char_range(items[position - 1])[1], end=end)
    comma = following_comma(member)
    if comma is not None:
        end = source.char_range(comma)[1]
    return TextEdit(start=start, end=end)


def replace_node(source: SourceFile, node: Node, text: str) -> TextEdit:
    start, end = source.char_range(node)
    return TextEdit(start=start, end=end, new_text=text)
