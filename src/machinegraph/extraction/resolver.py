"""Transition target resolution over the lexical arena."""

from __future__ import annotations

import logging
from typing import Optional

from machinegraph.extraction.context import ExtractionContext
from machinegraph.models.enums import ExtractionErrorKind
from machinegraph.syntax.ast_path import locate_ast_path

logger = logging.getLogger(__name__)


def _origin_index(ctx: ExtractionContext, source_id: str, origin: str) -> Optional[int]:
    lexical = ctx.lexical
    source = lexical.index_of(source_id)
    if source is None:
        return None
    # ".child" and "" both start from the source itself
    if origin == "":
        return source
    if origin.startswith("#"):
        node_id = ctx.explicit_ids.get(origin[1:])
        if node_id is None and lexical.index_of(origin[1:]) is not None:
            node_id = origin[1:]
        return lexical.index_of(node_id) if node_id is not None else None
    parent = lexical.parent(source)
    if parent is None:
        return None
    return lexical.child(parent, origin)


def resolve_target(ctx: ExtractionContext, source_id: str, target: str) -> Optional[str]:
    """Resolve a target string written on *source_id* to a node id.

    ``"b"`` is a sibling of the source, ``".b"`` a child of the source,
    ``"#id.b"`` starts from an explicit id; remaining dot segments walk down.
    """
    origin, *segments = target.split(".")
    index = _origin_index(ctx, source_id, origin)
    for segment in segments:
        if index is None:
            return None
        index = ctx.lexical.child(index, segment)
    return ctx.lexical.node_id(index) if index is not None else None


def resolve_targets(ctx: ExtractionContext) -> None:
    """Fill ``target_ids`` of every extracted edge, recording failures."""
    unresolved = 0
    for edge in ctx.edges.values():
        for target in edge.data.targets:
            node_id = resolve_target(ctx, edge.source_id, target)
            if node_id is not None:
                edge.target_ids.append(node_id)
                continue
            unresolved += 1
            path = ctx.ast_paths.edges.get(edge.id)
            syntax_node = locate_ast_path(ctx.call, path) if path is not None else None
            ctx.add_error(
                ExtractionErrorKind.TRANSITION_TARGET_UNRESOLVED,
                f"Cannot resolve target '{target}' of edge {edge.id}",
                syntax_node,
            )
    if unresolved:
        logger.debug("%d transition target(s) left unresolved", unresolved)
