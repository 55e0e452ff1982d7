"""Recursive walk of state configuration literals into digraph nodes and edges.

One call to :func:`extract_state` reads a single state config object,
registers its node, edges, blocks and implementations on the
:class:`~machinegraph.extraction.context.ExtractionContext`, and recurses into
``states``.  Unreadable parts register typed errors and fall back to
defaults; unknown properties are ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Optional

from tree_sitter import Node

from machinegraph.exceptions import ActionExtractionError
from machinegraph.extraction.actions import (
    ACTION_EXTRACTORS,
    UNSUPPORTED_ERROR_KINDS,
    action_creator_name,
    builtin_action_name,
    extract_object_properties,
)
from machinegraph.extraction.context import ExtractionContext
from machinegraph.extraction.scalars import literal_value, placeholder, static_string
from machinegraph.models.digraph import (
    Block,
    Implementation,
    StateNode,
    StateNodeData,
    Transition,
    TransitionData,
)
from machinegraph.models.enums import (
    ExtractionErrorKind,
    HistoryType,
    ImplementationKind,
    StateType,
)
from machinegraph.syntax.nodes import (
    FUNCTION_TYPES,
    members,
    object_properties,
    property_value,
    unwrap_expression,
)

logger = logging.getLogger(__name__)

ALWAYS_EVENT = ""

# Values that mean "nothing here"
_EMPTY_TYPES = frozenset({"undefined", "null"})


def unique_id(base: str, taken: dict[str, Any]) -> str:
    """Return *base*, or *base* with a positional suffix if already taken."""
    if base not in taken:
        return base
    index = 1
    while f"{base}#{index}" in taken:
        index += 1
    return f"{base}#{index}"


def _items(value: Node) -> Iterator[Node]:
    """Yield array elements, or the value itself when it is not an array."""
    value = unwrap_expression(value)
    if value.type == "array":
        yield from (unwrap_expression(m) for m in members(value))
    else:
        yield value


def _pairs(obj: Node, ctx: ExtractionContext) -> dict[str, Node]:
    """Map property names to values; later duplicates win, as at runtime."""
    found: dict[str, Node] = {}
    for key, member in object_properties(obj, ctx.source):
        value = property_value(member)
        if key is not None and value is not None:
            found[key] = value
    return found


def _string(value: Node, ctx: ExtractionContext) -> Optional[str]:
    result = static_string(value, ctx)
    return result.value if result is not None else None


def _register(ctx: ExtractionContext, implementation: Implementation) -> Implementation:
    ctx.implementations.register(implementation)
    return implementation


# ---------------------------------------------------------------------------
# Actions and guards
# ---------------------------------------------------------------------------


def _params(obj: Node, ctx: ExtractionContext) -> Any:
    pairs = _pairs(obj, ctx)
    if "params" not in pairs:
        return None
    params = unwrap_expression(pairs["params"])
    if params.type == "object":
        return extract_object_properties(params, ctx)
    return placeholder(params, ctx)


def extract_action(
    item: Node, ctx: ExtractionContext, owner_id: str, slot: str, index: int
) -> Optional[Implementation]:
    """Turn one action entry into an Implementation (or ``None`` on failure)."""
    inline_name = f"inline:{owner_id}#{slot}[{index}]"
    if item.type in _EMPTY_TYPES:
        return None

    name = _string(item, ctx)
    if name is not None:
        return _register(ctx, Implementation(kind=ImplementationKind.ACTION, name=name))

    if item.type == "call_expression":
        creator = action_creator_name(item, ctx)
        if creator in ACTION_EXTRACTORS:
            try:
                data = ACTION_EXTRACTORS[creator](item, ctx)
            except ActionExtractionError as exc:
                ctx.add_error(UNSUPPORTED_ERROR_KINDS[creator], str(exc), item)
                return None
            return _register(
                ctx,
                Implementation(
                    kind=ImplementationKind.ACTION,
                    name=builtin_action_name(creator),
                    data=data,
                ),
            )

    if item.type == "object":
        action_type = _pairs(item, ctx).get("type")
        name = _string(action_type, ctx) if action_type is not None else None
        if name is None:
            ctx.add_error(
                ExtractionErrorKind.ACTION_UNHANDLED,
                "action object without a static 'type'",
                item,
            )
            return None
        return _register(
            ctx,
            Implementation(
                kind=ImplementationKind.ACTION, name=name, data=_params(item, ctx)
            ),
        )

    # Inline functions, identifiers and calls to unknown creators
    return _register(
        ctx,
        Implementation(
            kind=ImplementationKind.ACTION,
            name=inline_name,
            expression=placeholder(item, ctx),
        ),
    )


def extract_actions(
    value: Node, ctx: ExtractionContext, owner_id: str, slot: str
) -> list[Implementation]:
    actions: list[Implementation] = []
    for index, item in enumerate(_items(value)):
        action = extract_action(item, ctx, owner_id, slot, index)
        if action is not None:
            actions.append(action)
    return actions


def extract_guard(value: Node, ctx: ExtractionContext, edge_id: str) -> Optional[Implementation]:
    guard = unwrap_expression(value)
    name = _string(guard, ctx)
    if name is not None:
        return _register(ctx, Implementation(kind=ImplementationKind.GUARD, name=name))

    if guard.type == "object":
        guard_type = _pairs(guard, ctx).get("type")
        name = _string(guard_type, ctx) if guard_type is not None else None
        if name is None:
            ctx.add_error(
                ExtractionErrorKind.GUARD_UNHANDLED,
                "guard object without a static 'type'",
                guard,
            )
            return None
        return _register(
            ctx,
            Implementation(
                kind=ImplementationKind.GUARD, name=name, data=_params(guard, ctx)
            ),
        )

    return _register(
        ctx,
        Implementation(
            kind=ImplementationKind.GUARD,
            name=f"inline:{edge_id}#guard",
            expression=placeholder(guard, ctx),
        ),
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _targets(value: Node, ctx: ExtractionContext) -> Optional[list[str]]:
    targets: list[str] = []
    for item in _items(value):
        if item.type in _EMPTY_TYPES:
            continue
        target = _string(item, ctx)
        if target is None:
            return None
        targets.append(target)
    return targets


def extract_transition(
    item: Node,
    ctx: ExtractionContext,
    source_id: str,
    event_type: str,
    index: int,
) -> Optional[Transition]:
    """Read one transition (string shorthand or object) into an edge."""
    edge_id = unique_id(f"{source_id}:{event_type}:{index}", ctx.edges)
    data = TransitionData(event_type=event_type)

    if item.type not in _EMPTY_TYPES:
        target = _string(item, ctx)
        if target is not None:
            data.targets = [target]
        elif item.type == "object":
            props = _pairs(item, ctx)
            if "target" in props:
                targets = _targets(props["target"], ctx)
                if targets is None:
                    ctx.add_error(
                        ExtractionErrorKind.TRANSITION_PROPERTY_UNHANDLED,
                        f"unreadable target of '{event_type}' transition",
                        props["target"],
                    )
                else:
                    data.targets = targets
            if "actions" in props:
                data.actions = extract_actions(props["actions"], ctx, edge_id, "actions")
            guard = props.get("guard", props.get("cond"))
            if guard is not None:
                data.guard = extract_guard(guard, ctx, edge_id)
            if "description" in props:
                data.description = _string(props["description"], ctx)
        else:
            ctx.add_error(
                ExtractionErrorKind.TRANSITION_PROPERTY_UNHANDLED,
                f"unsupported '{event_type}' transition of type {item.type}",
                item,
            )
            return None

    edge = Transition(id=edge_id, source_id=source_id, data=data)
    ctx.edges[edge_id] = edge
    ctx.record_edge_path(edge_id, item)
    return edge


def extract_transitions(
    value: Node, ctx: ExtractionContext, source_id: str, event_type: str
) -> list[Transition]:
    """Read a transition value; arrays are ordered guarded alternatives."""
    edges: list[Transition] = []
    for index, item in enumerate(_items(value)):
        edge = extract_transition(item, ctx, source_id, event_type, index)
        if edge is not None:
            edges.append(edge)
    return edges


def _extract_event_map(
    value: Node, ctx: ExtractionContext, node_id: str, event_name: Callable[[str], str]
) -> None:
    obj = unwrap_expression(value)
    if obj.type != "object":
        ctx.add_error(
            ExtractionErrorKind.TRANSITION_PROPERTY_UNHANDLED,
            "transition map must be an object literal",
            obj,
        )
        return
    for key, member in object_properties(obj, ctx.source):
        member_value = property_value(member)
        if key is None or member_value is None:
            ctx.add_error(
                ExtractionErrorKind.TRANSITION_PROPERTY_UNHANDLED,
                "computed or spread event keys are not supported",
                member,
            )
            continue
        extract_transitions(member_value, ctx, node_id, event_name(key))


# ---------------------------------------------------------------------------
# Invoke and context
# ---------------------------------------------------------------------------


def extract_invoke(value: Node, ctx: ExtractionContext, node: StateNode) -> None:
    for index, item in enumerate(_items(value)):
        if item.type != "object":
            ctx.add_error(
                ExtractionErrorKind.INVOKE_UNHANDLED,
                "invoke entries must be object literals",
                item,
            )
            continue
        props = _pairs(item, ctx)
        block_id = unique_id(f"{node.id}:invocation[{index}]", ctx.blocks)
        if "src" not in props:
            ctx.add_error(ExtractionErrorKind.INVOKE_UNHANDLED, "invoke without 'src'", item)
            continue

        invoke_id = _string(props["id"], ctx) if "id" in props else None
        invoke_id = invoke_id or block_id

        src = unwrap_expression(props["src"])
        actor_name = _string(src, ctx)
        if actor_name is None and src.type == "object":
            src_type = _pairs(src, ctx).get("type")
            actor_name = _string(src_type, ctx) if src_type is not None else None
        if actor_name is not None:
            actor = Implementation(kind=ImplementationKind.ACTOR, name=actor_name)
        else:
            actor = Implementation(
                kind=ImplementationKind.ACTOR,
                name=f"inline:{block_id}#src",
                expression=placeholder(src, ctx),
            )
        _register(ctx, actor)

        properties: dict[str, Any] = {"id": invoke_id, "src": actor.name}
        for extra in ("input", "data"):
            if extra in props:
                properties[extra] = literal_value(unwrap_expression(props[extra]), ctx)

        ctx.blocks[block_id] = Block(
            id=block_id, parent_id=node.id, source_id=actor.name, properties=properties
        )
        node.data.invoke.append(block_id)

        if "onDone" in props:
            extract_transitions(props["onDone"], ctx, node.id, f"done.invoke.{invoke_id}")
        if "onError" in props:
            extract_transitions(props["onError"], ctx, node.id, f"error.platform.{invoke_id}")


def extract_context(value: Node, ctx: ExtractionContext) -> None:
    obj = unwrap_expression(value)
    # context: () => ({ ... })
    if obj.type in FUNCTION_TYPES:
        body = obj.child_by_field_name("body")
        obj = unwrap_expression(body) if body is not None else obj
    if obj.type != "object":
        ctx.add_error(
            ExtractionErrorKind.CONTEXT_UNHANDLED,
            "context must be an object literal or a function returning one",
            obj,
        )
        return
    for member in members(obj):
        if member.type != "pair":
            ctx.add_error(
                ExtractionErrorKind.CONTEXT_UNHANDLED,
                f"unsupported {member.type} in context",
                member,
            )
    ctx.data.context.update(extract_object_properties(obj, ctx))


# ---------------------------------------------------------------------------
# State nodes
# ---------------------------------------------------------------------------


def _read_node_type(props: dict[str, Node], ctx: ExtractionContext, data: StateNodeData) -> None:
    if "type" in props:
        value = _string(props["type"], ctx)
        if value in {t.value for t in StateType}:
            data.type = StateType(value)
        else:
            ctx.add_error(
                ExtractionErrorKind.STATE_NODE_UNHANDLED,
                f"unknown state type {value!r}",
                props["type"],
            )
    if "history" in props:
        value = _string(props["history"], ctx)
        if value in {h.value for h in HistoryType}:
            data.history = HistoryType(value)
        else:
            ctx.add_error(
                ExtractionErrorKind.STATE_NODE_UNHANDLED,
                f"unknown history type {value!r}",
                props["history"],
            )
    if data.type == StateType.HISTORY and data.history is None:
        data.history = HistoryType.SHALLOW


def _read_tags(value: Node, ctx: ExtractionContext) -> list[str]:
    tags = []
    for item in _items(value):
        tag = _string(item, ctx)
        if tag is not None:
            tags.append(tag)
    return tags


def _extract_children(value: Node, ctx: ExtractionContext, node: StateNode) -> None:
    states = unwrap_expression(value)
    if states.type != "object":
        ctx.add_error(
            ExtractionErrorKind.STATES_PROPERTY_UNHANDLED,
            "'states' must be an object literal",
            states,
        )
        return
    entries = object_properties(states, ctx.source)
    # a repeated key keeps its first position but takes the last definition
    last = {key: member for key, member in entries if key is not None}
    seen: set[str] = set()
    for key, member in entries:
        if key is not None and key in seen:
            ctx.add_error(
                ExtractionErrorKind.STATES_PROPERTY_UNHANDLED,
                f"duplicate state key {key!r}; the last definition is used",
                member,
            )
            continue
        if key is not None:
            seen.add(key)
            member = last[key]
        child_config = property_value(member)
        if key is None or child_config is None:
            ctx.add_error(
                ExtractionErrorKind.STATES_PROPERTY_UNHANDLED,
                f"unsupported {member.type} in 'states'",
                member,
            )
            continue
        child_id = unique_id(f"{node.id}.{key}", ctx.nodes)
        node.children[key] = child_id
        extract_state(ctx, child_config, key=key, node_id=child_id, parent_id=node.id)


def extract_state(
    ctx: ExtractionContext,
    config: Node,
    key: str,
    node_id: str,
    parent_id: Optional[str] = None,
) -> StateNode:
    """Extract the state config *config* and all of its descendants."""
    node = StateNode(id=node_id, parent_id=parent_id, data=StateNodeData(key=key))
    ctx.nodes[node_id] = node
    ctx.lexical.add(node_id, parent_id, key)

    obj = unwrap_expression(config)
    if obj.type != "object":
        ctx.add_error(
            ExtractionErrorKind.STATE_NODE_UNHANDLED,
            f"state '{key}' is not an object literal",
            config,
        )
        return node
    ctx.record_node_path(node_id, obj)

    props = _pairs(obj, ctx)
    data = node.data

    if "id" in props:
        data.id = _string(props["id"], ctx)
        if data.id is not None:
            ctx.explicit_ids[data.id] = node_id
    _read_node_type(props, ctx, data)
    if "initial" in props:
        data.initial = _string(props["initial"], ctx)
    if "description" in props:
        data.description = _string(props["description"], ctx)
    if "tags" in props:
        data.tags = _read_tags(props["tags"], ctx)
    if "entry" in props:
        data.entry = extract_actions(props["entry"], ctx, node_id, "entry")
    if "exit" in props:
        data.exit = extract_actions(props["exit"], ctx, node_id, "exit")
    if parent_id is None and "context" in props:
        extract_context(props["context"], ctx)

    if "on" in props:
        _extract_event_map(props["on"], ctx, node_id, lambda event: event)
    if "always" in props:
        extract_transitions(props["always"], ctx, node_id, ALWAYS_EVENT)
    if "after" in props:
        _extract_event_map(
            props["after"], ctx, node_id, lambda delay: f"xstate.after({delay})#{node_id}"
        )
    if "onDone" in props:
        extract_transitions(props["onDone"], ctx, node_id, f"done.state.{node_id}")
    if "invoke" in props:
        extract_invoke(props["invoke"], ctx, node)

    if "states" in props:
        _extract_children(props["states"], ctx, node)

    logger.debug("Extracted state %s (%d children)", node_id, len(node.children))
    return node
