"""Extractors for built-in action-creator calls.

Each extractor receives the ``call_expression`` node of an action creator
(``assign(...)``, ``raise(...)`` ...) and returns literal-shaped data, with
:class:`~machinegraph.models.ExpressionPlaceholder` values wherever the
source holds code rather than data.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from tree_sitter import Node

from machinegraph.exceptions import ActionExtractionError
from machinegraph.extraction.scalars import (
    literal_value,
    numeric_literal,
    placeholder,
    static_string,
)
from machinegraph.models.digraph import ExpressionPlaceholder
from machinegraph.models.enums import ExtractionErrorKind
from machinegraph.syntax.nodes import is_plain_object, members, property_key, property_value

if TYPE_CHECKING:
    from machinegraph.extraction.context import ExtractionContext

logger = logging.getLogger(__name__)

EventData = Union[dict[str, Any], ExpressionPlaceholder]


def call_arguments(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    return members(args) if args is not None else []


def action_creator_name(call: Node, ctx: ExtractionContext) -> Optional[str]:
    """Return the callee name of ``creator(...)`` or ``ns.creator(...)``."""
    callee = call.child_by_field_name("function")
    if callee is None:
        return None
    if callee.type == "identifier":
        return ctx.text(callee)
    if callee.type == "member_expression":
        prop = callee.child_by_field_name("property")
        if prop is not None:
            return ctx.text(prop)
    return None


def extract_object_properties(obj: Node, ctx: ExtractionContext) -> dict[str, Any]:
    """Per-property extraction: literals as values, everything else as placeholders."""
    extracted: dict[str, Any] = {}
    for member in members(obj):
        key = property_key(member, ctx.source)
        value = property_value(member)
        if key is None or value is None:
            logger.debug("Skipping %s member in object literal", member.type)
            continue
        extracted[key] = literal_value(value, ctx)
    return extracted


def extract_event_object(obj: Node, ctx: ExtractionContext) -> EventData:
    """Event objects with only plain properties become data, else a placeholder."""
    if not is_plain_object(obj):
        return placeholder(obj, ctx)
    return extract_object_properties(obj, ctx)


def extract_assign_action(call: Node, ctx: ExtractionContext) -> Union[dict[str, Any], ExpressionPlaceholder]:
    args = call_arguments(call)
    if not args:
        raise ActionExtractionError("assign", "missing assigner argument")
    assigner = args[0]
    # assign({ count: 1 })
    if assigner.type == "object" and is_plain_object(assigner):
        return extract_object_properties(assigner, ctx)
    # assign(() => ...), assign({ ...spread }), assign(someVar)
    return placeholder(assigner, ctx)


def extract_raise_action(call: Node, ctx: ExtractionContext) -> EventData:
    args = call_arguments(call)
    if not args:
        raise ActionExtractionError("raise", "missing event argument")
    arg = args[0]
    if arg.type == "object" and is_plain_object(arg):
        return extract_event_object(arg, ctx)
    event_type = static_string(arg, ctx)
    if event_type is not None:
        return {"type": event_type.value}
    return placeholder(arg, ctx)


def extract_log_action(call: Node, ctx: ExtractionContext) -> Union[str, ExpressionPlaceholder]:
    args = call_arguments(call)
    message = static_string(args[0], ctx) if args else None
    if message is not None:
        return message.value
    # log((ctx, evt) => ...) keeps the whole call
    return placeholder(call, ctx)


def extract_stop_action(call: Node, ctx: ExtractionContext) -> Union[str, ExpressionPlaceholder]:
    args = call_arguments(call)
    if not args:
        raise ActionExtractionError("stop", "missing actor argument")
    actor = static_string(args[0], ctx)
    if actor is not None:
        return actor.value
    return placeholder(args[0], ctx)


def extract_send_to_action(call: Node, ctx: ExtractionContext) -> dict[str, Any]:
    """``sendTo(actor, event, options)``; missing arguments keep their defaults."""
    args = call_arguments(call)
    actor_arg = args[0] if args else None
    event_arg = args[1] if len(args) > 1 else None
    options_arg = args[2] if len(args) > 2 else None

    to: Union[str, ExpressionPlaceholder] = ""
    if actor_arg is not None:
        actor = static_string(actor_arg, ctx)
        # sendTo((ctx) => ref) or a variable holding a ref
        to = actor.value if actor is not None else placeholder(actor_arg, ctx)

    event: EventData = {}
    if event_arg is not None:
        event_type = static_string(event_arg, ctx)
        if event_type is not None:
            event = {"type": event_type.value}
        elif event_arg.type == "object":
            event = extract_event_object(event_arg, ctx)
        else:
            event = placeholder(event_arg, ctx)

    options: dict[str, Any] = {"id": "", "delay": 0}
    if options_arg is not None and options_arg.type == "object":
        for member in members(options_arg):
            key = property_key(member, ctx.source)
            value = property_value(member)
            if key is None or value is None:
                continue
            literal = static_string(value, ctx) or numeric_literal(value, ctx)
            options[key] = literal.value if literal is not None else placeholder(value, ctx)

    return {"event": event, "to": to, **options}


ActionExtractor = Callable[[Node, "ExtractionContext"], Any]

ACTION_EXTRACTORS: dict[str, ActionExtractor] = {
    "assign": extract_assign_action,
    "raise": extract_raise_action,
    "log": extract_log_action,
    "stop": extract_stop_action,
    "stopChild": extract_stop_action,
    "sendTo": extract_send_to_action,
}

UNSUPPORTED_ERROR_KINDS: dict[str, ExtractionErrorKind] = {
    "assign": ExtractionErrorKind.ACTION_ASSIGN_UNSUPPORTED,
    "raise": ExtractionErrorKind.ACTION_RAISE_UNSUPPORTED,
    "log": ExtractionErrorKind.ACTION_LOG_UNSUPPORTED,
    "stop": ExtractionErrorKind.ACTION_STOP_UNSUPPORTED,
    "stopChild": ExtractionErrorKind.ACTION_STOP_UNSUPPORTED,
    "sendTo": ExtractionErrorKind.ACTION_SEND_TO_UNSUPPORTED,
}


def builtin_action_name(creator: str) -> str:
    """Canonical implementation name of a built-in creator."""
    return "xstate.stop" if creator == "stopChild" else f"xstate.{creator}"
