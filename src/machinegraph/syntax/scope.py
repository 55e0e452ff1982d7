"""Lexical lookups for identifiers and enum members.

This is not a type checker: declarations are found by walking enclosing
blocks up to the program and scanning their top-level statements.  That
covers the ``const x = 'a'`` and ``enum E { A = 'a' }`` forms machine
configs commonly reference.
"""

from __future__ import annotations

from typing import Iterator, Optional, Union

from tree_sitter import Node

from machinegraph.syntax.nodes import members, number_value, string_value
from machinegraph.syntax.source import SourceFile

SCOPE_TYPES: frozenset[str] = frozenset({"program", "statement_block", "module"})
DECLARATION_TYPES: frozenset[str] = frozenset({"lexical_declaration", "variable_declaration"})

EnumValue = Union[str, int, float]


def _scope_statements(scope: Node) -> Iterator[Node]:
    for statement in members(scope):
        if statement.type == "export_statement":
            declaration = statement.child_by_field_name("declaration")
            if declaration is not None:
                yield declaration
        else:
            yield statement


def _enclosing_scopes(node: Node) -> Iterator[Node]:
    current = node.parent
    while current is not None:
        if current.type in SCOPE_TYPES:
            yield current
        current = current.parent


def find_variable_initializer(identifier: Node, source: SourceFile) -> Optional[Node]:
    """Return the initializer of the declaration *identifier* refers to."""
    name = source.node_text(identifier)
    for scope in _enclosing_scopes(identifier):
        for statement in _scope_statements(scope):
            if statement.type not in DECLARATION_TYPES:
                continue
            for declarator in members(statement):
                if declarator.type != "variable_declarator":
                    continue
                declared = declarator.child_by_field_name("name")
                if (
                    declared is not None
                    and declared.type == "identifier"
                    and source.node_text(declared) == name
                ):
                    return declarator.child_by_field_name("value")
    return None


def _find_enum(name: str, origin: Node, source: SourceFile) -> Optional[Node]:
    for scope in _enclosing_scopes(origin):
        for statement in _scope_statements(scope):
            if statement.type != "enum_declaration":
                continue
            declared = statement.child_by_field_name("name")
            if declared is not None and source.node_text(declared) == name:
                return statement.child_by_field_name("body")
    return None


def _enum_member_name(member: Node, source: SourceFile) -> str:
    if member.type == "string":
        return string_value(member, source)
    return source.node_text(member)


def find_enum_member_value(member_expression: Node, source: SourceFile) -> Optional[EnumValue]:
    """Resolve ``Enum.Member`` to the member's constant value.

    Members without initializers count up from the previous numeric value,
    as TypeScript does.  Returns ``None`` for anything non-constant.
    """
    obj = member_expression.child_by_field_name("object")
    prop = member_expression.child_by_field_name("property")
    if obj is None or prop is None or obj.type != "identifier":
        return None
    body = _find_enum(source.node_text(obj), member_expression, source)
    if body is None:
        return None

    wanted = source.node_text(prop)
    counter: Optional[Union[int, float]] = 0
    for member in members(body):
        value: Optional[EnumValue]
        if member.type == "enum_assignment":
            name_node = member.child_by_field_name("name") or members(member)[0]
            value_node = member.child_by_field_name("value") or members(member)[-1]
            name = _enum_member_name(name_node, source)
            if value_node.type == "string":
                value = string_value(value_node, source)
                counter = None
            elif value_node.type == "number":
                value = number_value(source.node_text(value_node))
                counter = value + 1
            else:
                value = None
                counter = None
        else:
            name = _enum_member_name(member, source)
            value = counter
            counter = None if counter is None else counter + 1
        if name == wanted:
            return value
    return None
