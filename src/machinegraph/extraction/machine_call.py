"""Machine call-site discovery and per-call extraction entry point."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from tree_sitter import Node

from machinegraph.extraction.context import ExtractionContext
from machinegraph.extraction.resolver import resolve_targets
from machinegraph.extraction.scalars import placeholder
from machinegraph.extraction.state_node import extract_state
from machinegraph.models.digraph import ROOT_NODE_ID, Digraph, Implementation
from machinegraph.models.enums import ExtractionErrorKind, ImplementationKind
from machinegraph.models.errors import MachineExtraction
from machinegraph.syntax.nodes import members, object_properties, property_value, unwrap_expression
from machinegraph.syntax.source import SourceFile

logger = logging.getLogger(__name__)

DEFAULT_FACTORY_NAMES: tuple[str, ...] = ("createMachine", "Machine", "createTestMachine")

# Subtrees that never contain runtime calls
_SKIPPED_TYPES = frozenset(
    {"type_annotation", "type_alias_declaration", "interface_declaration", "comment"}
)

_OPTION_KINDS: dict[str, ImplementationKind] = {
    "actions": ImplementationKind.ACTION,
    "guards": ImplementationKind.GUARD,
    "actors": ImplementationKind.ACTOR,
    "services": ImplementationKind.ACTOR,
}


@dataclass(frozen=True)
class MachineCall:
    """A recognised machine factory call.

    Attributes:
        node:          The ``call_expression`` node.
        callee_name:   Factory name as written (``createMachine`` ...).
        is_member:     True for ``ns.createMachine(...)`` style calls.
        definition:    First argument (the root state config), if any.
        options:       Second argument (implementations), if any.
        setup_options: Argument of a ``setup({...})`` the factory is chained on.
    """

    node: Node
    callee_name: str
    is_member: bool = False
    definition: Optional[Node] = None
    options: Optional[Node] = None
    setup_options: Optional[Node] = None


def _first_argument(call: Node) -> Optional[Node]:
    args = call.child_by_field_name("arguments")
    found = members(args) if args is not None else []
    return found[0] if found else None


def match_machine_call(
    node: Node, source: SourceFile, names: Iterable[str] = DEFAULT_FACTORY_NAMES
) -> Optional[MachineCall]:
    """Return a :class:`MachineCall` if *node* calls one of *names*."""
    if node.type != "call_expression":
        return None
    callee = node.child_by_field_name("function")
    if callee is None:
        return None

    setup_options = None
    if callee.type == "identifier":
        name, is_member = source.node_text(callee), False
    elif callee.type == "member_expression":
        prop = callee.child_by_field_name("property")
        if prop is None:
            return None
        name, is_member = source.node_text(prop), True
        obj = callee.child_by_field_name("object")
        if obj is not None and obj.type == "call_expression":
            inner = obj.child_by_field_name("function")
            if inner is not None and source.node_text(inner) == "setup":
                setup_options = _first_argument(obj)
    else:
        return None

    if name not in set(names):
        return None

    args = node.child_by_field_name("arguments")
    found = members(args) if args is not None else []
    return MachineCall(
        node=node,
        callee_name=name,
        is_member=is_member,
        definition=found[0] if found else None,
        options=found[1] if len(found) > 1 else None,
        setup_options=setup_options,
    )


def find_machine_calls(
    source: SourceFile, names: Iterable[str] = DEFAULT_FACTORY_NAMES
) -> list[MachineCall]:
    """Find machine factory calls in source order (outer calls first)."""
    names = tuple(names)
    calls: list[MachineCall] = []
    stack = [source.root]
    while stack:
        node = stack.pop()
        if node.type in _SKIPPED_TYPES:
            continue
        call = match_machine_call(node, source, names)
        if call is not None:
            calls.append(call)
        stack.extend(reversed(node.children))
    logger.debug("Found %d machine call(s) in %s", len(calls), source.file_name)
    return calls


def extract_machine_options(options: Node, ctx: ExtractionContext) -> None:
    """Register implementations provided in ``{ actions, guards, actors }``."""
    obj = unwrap_expression(options)
    if obj.type != "object":
        return
    for key, member in object_properties(obj, ctx.source):
        kind = _OPTION_KINDS.get(key or "")
        section = property_value(member)
        if kind is None or section is None:
            continue
        section = unwrap_expression(section)
        if section.type != "object":
            continue
        for name, impl_member in object_properties(section, ctx.source):
            # shorthand `{ doThing }` has no value node; the key is the expression
            value = property_value(impl_member) or impl_member
            if not name:
                continue
            ctx.implementations.register(
                Implementation(kind=kind, name=name, expression=placeholder(value, ctx))
            )


def extract_machine(call: MachineCall, source: SourceFile) -> MachineExtraction:
    """Extract the digraph of one machine call.

    Never raises for unreadable configs: problems are returned as errors,
    and ``digraph`` is ``None`` only when there is no root config at all.
    """
    ctx = ExtractionContext(source=source, call=call.node)
    for options in (call.setup_options, call.options):
        if options is not None:
            extract_machine_options(options, ctx)

    if call.definition is None or unwrap_expression(call.definition).type != "object":
        ctx.add_error(
            ExtractionErrorKind.STATE_NODE_UNHANDLED,
            "machine config must be an object literal",
            call.definition if call.definition is not None else call.node,
        )
        return MachineExtraction(digraph=None, errors=ctx.errors)

    extract_state(ctx, call.definition, key=ROOT_NODE_ID, node_id=ROOT_NODE_ID)
    resolve_targets(ctx)

    digraph = Digraph(
        root=ROOT_NODE_ID,
        nodes=ctx.nodes,
        edges=ctx.edges,
        blocks=ctx.blocks,
        implementations=ctx.implementations,
        data=ctx.data,
    )
    logger.info(
        "Extracted machine in %s: %d nodes, %d edges, %d errors",
        source.file_name,
        digraph.node_count,
        digraph.edge_count,
        len(ctx.errors),
    )
    return MachineExtraction(digraph=digraph, errors=ctx.errors, ast_paths=ctx.ast_paths)
