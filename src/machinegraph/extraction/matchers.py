"""Composable matchers over tree-sitter nodes.

A :class:`Matcher` pairs a node-type predicate with a parse function and
yields a :class:`MatchResult` or ``None``.  Extractors are built by
combining matchers:

- :func:`union` tries matchers in priority order, first success wins;
- :func:`wrap` derives a new value from a successful result;
- :func:`maybe_identifier` follows an identifier to its initializer;
- :func:`maybe_type_assertion` looks through ``as``/``satisfies``/``!``/parens.

Results always keep the outermost node (what an edit must replace) while the
value comes from the innermost node that was actually read.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional, TypeVar

from tree_sitter import Node

from machinegraph.syntax.nodes import WRAPPER_TYPES, unwrap_expression
from machinegraph.syntax.scope import find_variable_initializer

if TYPE_CHECKING:
    from machinegraph.extraction.context import ExtractionContext

T = TypeVar("T")
U = TypeVar("U")


class _NoMatch:
    def __repr__(self) -> str:
        return "NO_MATCH"


NO_MATCH: Any = _NoMatch()


@dataclass(frozen=True)
class MatchResult(Generic[T]):
    """A successful match.

    Attributes:
        value: The extracted value.
        node:  The outer syntax node, used for edit locations.
        inner: The node the value was read from.
    """

    value: T
    node: Node
    inner: Node

    def char_range(self, ctx: ExtractionContext) -> tuple[int, int]:
        return ctx.source.char_range(self.node)


class Matcher(Generic[T]):
    """A predicate/parse pair applied to a single node."""

    def __init__(
        self,
        predicate: Callable[[Node], bool],
        parse: Callable[[Node, "ExtractionContext"], Any],
        name: str = "matcher",
    ) -> None:
        self.predicate = predicate
        self.parse = parse
        self.name = name

    def __call__(
        self, node: Optional[Node], ctx: ExtractionContext
    ) -> Optional[MatchResult[T]]:
        if node is None or not self.predicate(node):
            return None
        value = self.parse(node, ctx)
        if value is NO_MATCH:
            return None
        return MatchResult(value=value, node=node, inner=node)

    def __repr__(self) -> str:
        return f"Matcher({self.name})"


class _Combinator(Matcher[T]):
    """Matcher defined directly by a result-producing function."""

    def __init__(
        self,
        fn: Callable[[Node, "ExtractionContext"], Optional[MatchResult[T]]],
        name: str,
    ) -> None:
        super().__init__(lambda _node: True, lambda _node, _ctx: NO_MATCH, name)
        self._fn = fn

    def __call__(
        self, node: Optional[Node], ctx: ExtractionContext
    ) -> Optional[MatchResult[T]]:
        if node is None:
            return None
        return self._fn(node, ctx)


def node_matcher(
    *node_types: str,
    parse: Optional[Callable[[Node, "ExtractionContext"], Any]] = None,
) -> Matcher[Any]:
    """Match nodes of the given tree-sitter types.

    Without *parse* the value is the node itself.
    """
    types = frozenset(node_types)
    return Matcher(
        lambda node: node.type in types,
        parse or (lambda node, _ctx: node),
        name="|".join(node_types),
    )


def union(*matchers: Matcher[Any]) -> Matcher[Any]:
    def match(node: Node, ctx: ExtractionContext) -> Optional[MatchResult[Any]]:
        for candidate in matchers:
            result = candidate(node, ctx)
            if result is not None:
                return result
        return None

    return _Combinator(match, "union(" + ", ".join(m.name for m in matchers) + ")")


def wrap(
    matcher: Matcher[T],
    fn: Callable[[MatchResult[T], "ExtractionContext"], U],
) -> Matcher[U]:
    def match(node: Node, ctx: ExtractionContext) -> Optional[MatchResult[U]]:
        result = matcher(node, ctx)
        if result is None:
            return None
        value = fn(result, ctx)
        if value is NO_MATCH:
            return None
        return replace(result, value=value)  # type: ignore[arg-type]

    return _Combinator(match, f"wrap({matcher.name})")


def maybe_identifier(matcher: Matcher[T]) -> Matcher[T]:
    """Retry *matcher* on an identifier's declaration initializer."""

    def match(node: Node, ctx: ExtractionContext) -> Optional[MatchResult[T]]:
        if node.type != "identifier":
            return matcher(node, ctx)
        initializer = find_variable_initializer(node, ctx.source)
        if initializer is None:
            return None
        result = matcher(initializer, ctx)
        if result is None:
            return None
        return replace(result, node=node)

    return _Combinator(match, f"maybe_identifier({matcher.name})")


def maybe_type_assertion(matcher: Matcher[T]) -> Matcher[T]:
    """Retry *matcher* on the expression inside a type assertion."""

    def match(node: Node, ctx: ExtractionContext) -> Optional[MatchResult[T]]:
        if node.type not in WRAPPER_TYPES:
            return matcher(node, ctx)
        result = matcher(unwrap_expression(node), ctx)
        if result is None:
            return None
        return replace(result, node=node)

    return _Combinator(match, f"maybe_type_assertion({matcher.name})")
