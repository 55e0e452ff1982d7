"""Literal value extractors.

Each scalar matcher tries, in order: an enum-member reference, then the
literal reached through identifier aliases and type assertions, then the
direct literal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Union

from tree_sitter import Node

from machinegraph.extraction.matchers import (
    NO_MATCH,
    Matcher,
    maybe_identifier,
    maybe_type_assertion,
    node_matcher,
    union,
)
from machinegraph.models.digraph import ExpressionPlaceholder
from machinegraph.syntax.nodes import (
    number_value,
    string_value,
    template_has_substitutions,
    template_raw_text,
)
from machinegraph.syntax.scope import find_enum_member_value

if TYPE_CHECKING:
    from machinegraph.extraction.context import ExtractionContext


def placeholder(node: Node, ctx: ExtractionContext) -> ExpressionPlaceholder:
    """Capture *node* verbatim as an expression placeholder."""
    return ExpressionPlaceholder(expression=ctx.text(node))


def _enum_member(expected: type | tuple[type, ...]) -> Matcher[Any]:
    def parse(node: Node, ctx: ExtractionContext) -> Any:
        value = find_enum_member_value(node, ctx.source)
        if isinstance(value, bool) or not isinstance(value, expected):
            return NO_MATCH
        return value

    return node_matcher("member_expression", parse=parse)


def _indirect(direct: Matcher[Any]) -> Matcher[Any]:
    return maybe_type_assertion(maybe_identifier(maybe_type_assertion(direct)))


def _parse_template(node: Node, ctx: ExtractionContext) -> Union[str, ExpressionPlaceholder]:
    if template_has_substitutions(node):
        return placeholder(node, ctx)
    return template_raw_text(node, ctx.source)


direct_string: Matcher[str] = node_matcher(
    "string", parse=lambda n, ctx: string_value(n, ctx.source)
)
direct_number: Matcher[Union[int, float]] = node_matcher(
    "number", parse=lambda n, ctx: number_value(ctx.text(n))
)
direct_boolean: Matcher[bool] = node_matcher(
    "true", "false", parse=lambda n, _ctx: n.type == "true"
)
direct_template: Matcher[Union[str, ExpressionPlaceholder]] = node_matcher(
    "template_string", parse=_parse_template
)

string_literal: Matcher[str] = union(_enum_member(str), _indirect(direct_string))
numeric_literal: Matcher[Union[int, float]] = union(
    _enum_member((int, float)), _indirect(direct_number)
)
boolean_literal: Matcher[bool] = _indirect(direct_boolean)
template_literal: Matcher[Union[str, ExpressionPlaceholder]] = _indirect(direct_template)

# Quoted strings or templates without interpolation
static_string: Matcher[str] = union(
    string_literal,
    _indirect(
        node_matcher(
            "template_string",
            parse=lambda n, ctx: NO_MATCH
            if template_has_substitutions(n)
            else template_raw_text(n, ctx.source),
        )
    ),
)


def literal_value(node: Node, ctx: ExtractionContext) -> Any:
    """Extract a value written directly as a literal, else a placeholder.

    Arrays, objects, regexes, ``null``, interpolated templates and every
    non-literal expression (identifiers included) are kept as placeholders.
    """
    for matcher in (direct_string, direct_number, direct_boolean, direct_template):
        result = matcher(node, ctx)
        if result is not None:
            return result.value
    return placeholder(node, ctx)
