"""Patch engine: structural digraph patches to source text edits.

Every patch of a batch is computed against the same unmodified syntax
tree, located through the AST paths recorded by the last extraction.  The
engine never re-parses between patches; the caller applies the returned
edits in one pass (see :func:`~machinegraph.patching.edits.apply_text_edits`).

Insertions are queued while a batch is computed and rendered at the end,
one edit per insertion point, so that patches building on each other
(a new state and the ``initial`` naming it, two new children of one
parent) never produce competing edits at the same offset.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

from tree_sitter import Node

from machinegraph.exceptions import PatchTargetNotFoundError, PatchValidationError
from machinegraph.extraction.context import ExtractionContext
from machinegraph.extraction.scalars import static_string
from machinegraph.models.digraph import Digraph, StateNode
from machinegraph.models.enums import HistoryType, StateType
from machinegraph.models.errors import MachineExtraction
from machinegraph.patching.edits import TextEdit, check_disjoint
from machinegraph.patching.patches import (
    AddEdgeActionPatch,
    AddNodeActionPatch,
    AddNodePatch,
    Patch,
    RemoveContextPatch,
    RemoveNodePatch,
    RenameNodePatch,
    ReplaceContextPatch,
    ReplaceNodeDataPatch,
    parse_patches,
)
from machinegraph.patching.text_ops import (
    format_key,
    format_property,
    format_value,
    insert_members,
    remove_member,
    replace_node,
)
from machinegraph.syntax.ast_path import locate_ast_path
from machinegraph.syntax.nodes import (
    FUNCTION_TYPES,
    enclosing_pair,
    find_property,
    members,
    property_key,
    property_value,
    unwrap_expression,
)
from machinegraph.syntax.source import SourceFile

logger = logging.getLogger(__name__)

# Earlier in the list means higher priority
INSERTION_PRIORITY: tuple[str, ...] = ("states", "initial", "type", "history")
_APPEND_RANK = len(INSERTION_PRIORITY)

_NodeKey = tuple[int, int, str]


def _key(node: Node) -> _NodeKey:
    return (node.start_byte, node.end_byte, node.type)


@dataclass
class _QueuedMember:
    rank: int
    seq: int
    text: str
    name: Optional[str] = None


@dataclass
class _Insertion:
    """Members queued for one position of one object or array literal."""

    container: Node
    index: int
    queued: list[_QueuedMember] = field(default_factory=list)


@dataclass
class _NewProperty:
    """A property created by the batch, collecting its value's parts.

    ``entries`` holds ``key: value`` members when ``as_object`` is set and
    list items otherwise; a single item is written without brackets.
    """

    container: Node
    key: str
    index: int
    rank: int
    seq: int
    as_object: bool
    entries: list[str] = field(default_factory=list)

    def render(self) -> str:
        if self.as_object:
            value = f"{{ {', '.join(self.entries)} }}"
        elif len(self.entries) == 1:
            value = self.entries[0]
        else:
            value = f"[{', '.join(self.entries)}]"
        return format_property(self.key, value)


@dataclass
class _Rewrite:
    """A value replaced as a whole.

    Single actions are promoted to arrays and transition shorthands to objects.
    """

    node: Node
    items: list[str]
    target: Optional[str] = None
    as_transition: bool = False

    def render(self) -> str:
        actions = self.items[0] if len(self.items) == 1 else f"[{', '.join(self.items)}]"
        if not self.as_transition:
            return actions
        if self.target is None:
            return f"{{ actions: {actions} }}"
        return f"{{ target: {self.target}, actions: {actions} }}"


class PatchEngine:
    """Computes text edits for patches against one extracted machine.

    Args:
        source:     The snapshot the extraction was made from.
        call:       The machine ``call_expression`` node in that snapshot.
        extraction: The last extraction of that call (digraph + AST paths).
    """

    def __init__(self, source: SourceFile, call: Node, extraction: MachineExtraction) -> None:
        if extraction.digraph is None:
            raise PatchTargetNotFoundError("Machine has no extracted digraph to patch")
        self.source = source
        self.call = call
        self.extraction = extraction
        self.digraph: Digraph = extraction.digraph
        self._ctx = ExtractionContext(source=source, call=call)
        self._reset()

    def _reset(self) -> None:
        self._seq = itertools.count()
        self._insertions: dict[tuple[_NodeKey, int], _Insertion] = {}
        self._properties: dict[tuple[_NodeKey, str], _NewProperty] = {}
        self._rewrites: dict[_NodeKey, _Rewrite] = {}
        self._added_keys: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute(self, patches: Sequence[Union[Mapping[str, Any], Patch]]) -> list[TextEdit]:
        """Return the disjoint, sorted edits for a whole batch.

        Raises:
            PatchValidationError: A patch has an unsupported shape or value.
            PatchTargetNotFoundError: A node, edge or AST path is missing.
            PatchConflictError: Two edits of the batch overlap.
        """
        self._reset()
        edits: list[TextEdit] = []
        for patch in parse_patches(patches):
            edits.extend(self._dispatch(patch))
        edits.extend(self._flush())
        ordered = check_disjoint(edits)
        logger.info("Computed %d edit(s) for %d patch(es)", len(ordered), len(patches))
        return ordered

    def compute_patch(self, patch: Union[Mapping[str, Any], Patch]) -> list[TextEdit]:
        """Edits of a single patch, as a batch of one."""
        return self.compute([patch])

    def _dispatch(self, patch: Patch) -> list[TextEdit]:
        if isinstance(patch, AddNodePatch):
            return self._add_node(patch)
        if isinstance(patch, RemoveNodePatch):
            return self._remove_node(patch)
        if isinstance(patch, RenameNodePatch):
            return self._rename_node(patch)
        if isinstance(patch, ReplaceNodeDataPatch):
            return self._replace_node_data(patch)
        if isinstance(patch, AddNodeActionPatch):
            return self._add_node_action(patch)
        if isinstance(patch, AddEdgeActionPatch):
            return self._add_edge_action(patch)
        if isinstance(patch, ReplaceContextPatch):
            return self._replace_context(patch)
        if isinstance(patch, RemoveContextPatch):
            return self._remove_context(patch)
        raise PatchValidationError(f"Unsupported patch type {type(patch).__name__}", patch)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _node(self, node_id: str) -> StateNode:
        node = self.digraph.get_node(node_id)
        if node is None:
            raise PatchTargetNotFoundError(f"Node '{node_id}' not found in digraph")
        return node

    def _node_object(self, node_id: str) -> Node:
        self._node(node_id)
        path = self.extraction.ast_paths.nodes.get(node_id)
        located = locate_ast_path(self.call, path) if path is not None else None
        if located is None or located.type != "object":
            raise PatchTargetNotFoundError(f"No object literal recorded for node '{node_id}'")
        return located

    def _edge_value(self, edge_id: str) -> Node:
        if self.digraph.get_edge(edge_id) is None:
            raise PatchTargetNotFoundError(f"Edge '{edge_id}' not found in digraph")
        path = self.extraction.ast_paths.edges.get(edge_id)
        located = locate_ast_path(self.call, path) if path is not None else None
        if located is None:
            raise PatchTargetNotFoundError(f"No syntax location recorded for edge '{edge_id}'")
        return located

    def _static_string(self, node: Node) -> Optional[str]:
        result = static_string(node, self._ctx)
        return result.value if result is not None else None

    # ------------------------------------------------------------------
    # Queued insertions
    # ------------------------------------------------------------------

    def _priority_index(self, obj: Node, key: str) -> int:
        """Member index where a new *key* property goes under insertion priority."""
        rank = INSERTION_PRIORITY.index(key)
        for index, member in enumerate(members(obj)):
            name = property_key(member, self.source)
            if name in INSERTION_PRIORITY and INSERTION_PRIORITY.index(name) > rank:
                return index
        return 0

    def _queue(
        self,
        container: Node,
        index: int,
        text: str,
        *,
        rank: int = _APPEND_RANK,
        seq: Optional[int] = None,
        name: Optional[str] = None,
    ) -> None:
        """Queue *text* as a new member at *index* of *container*.

        A named member replaces an earlier one of the same name at that position.
        """
        insertion = self._insertions.setdefault(
            (_key(container), index), _Insertion(container=container, index=index)
        )
        if name is not None:
            for queued in insertion.queued:
                if queued.name == name:
                    queued.text = text
                    return
        order = next(self._seq) if seq is None else seq
        insertion.queued.append(_QueuedMember(rank=rank, seq=order, text=text, name=name))

    def _append(self, container: Node, text: str, *, name: Optional[str] = None) -> None:
        self._queue(container, len(members(container)), text, name=name)

    def _new_property(
        self,
        container: Node,
        key: str,
        *,
        as_object: bool,
        index: Optional[int] = None,
        rank: int = _APPEND_RANK,
    ) -> _NewProperty:
        prop = self._properties.get((_key(container), key))
        if prop is None:
            prop = _NewProperty(
                container=container,
                key=key,
                index=len(members(container)) if index is None else index,
                rank=rank,
                seq=next(self._seq),
                as_object=as_object,
            )
            self._properties[(_key(container), key)] = prop
        return prop

    def _insert_item(self, items: list[str], index: int, text: str, patch: Patch) -> None:
        if index > len(items):
            raise PatchValidationError(f"Action index {index} out of range 0..{len(items)}", patch)
        items.insert(index, text)

    def _flush(self) -> list[TextEdit]:
        for prop in self._properties.values():
            self._queue(prop.container, prop.index, prop.render(), rank=prop.rank, seq=prop.seq)
        edits = [replace_node(self.source, r.node, r.render()) for r in self._rewrites.values()]
        for insertion in self._insertions.values():
            queued = sorted(insertion.queued, key=lambda q: (q.rank, q.seq))
            edits.append(
                insert_members(
                    self.source, insertion.container, insertion.index, [q.text for q in queued]
                )
            )
        return edits

    def _add_action_to_value(self, value: Node, index: int, action: str, patch: Patch) -> None:
        """Queue *action* into an existing single or array action value."""
        new = format_value(action)
        inner = unwrap_expression(value)
        if inner.type == "array":
            count = len(members(inner))
            if index > count:
                raise PatchValidationError(f"Action index {index} out of range 0..{count}", patch)
            self._queue(inner, index, new)
            return
        rewrite = self._rewrites.setdefault(
            _key(value), _Rewrite(node=value, items=[self.source.node_text(value)])
        )
        self._insert_item(rewrite.items, index, new, patch)

    # ------------------------------------------------------------------
    # Node patches
    # ------------------------------------------------------------------

    def _add_node(self, patch: AddNodePatch) -> list[TextEdit]:
        parent = self._node(patch.parent_id)
        added = self._added_keys.setdefault(patch.parent_id, set())
        if patch.key in parent.children or patch.key in added:
            raise PatchValidationError(
                f"Node '{patch.parent_id}' already has a child '{patch.key}'", patch
            )
        added.add(patch.key)
        obj = self._node_object(patch.parent_id)
        child_text = format_property(patch.key, "{}")
        states_pair = find_property(obj, "states", self.source)
        if states_pair is None:
            states = self._new_property(
                obj,
                "states",
                as_object=True,
                index=self._priority_index(obj, "states"),
                rank=INSERTION_PRIORITY.index("states"),
            )
            states.entries.append(child_text)
            return []
        states_value = unwrap_expression(property_value(states_pair))
        if states_value.type != "object":
            raise PatchTargetNotFoundError(
                f"'states' of node '{patch.parent_id}' is not an object literal"
            )
        self._append(states_value, child_text)
        return []

    def _remove_node(self, patch: RemoveNodePatch) -> list[TextEdit]:
        obj = self._node_object(patch.node_id)
        pair = enclosing_pair(obj)
        if pair is None or pair.parent is None:
            raise PatchTargetNotFoundError(f"No 'states' property holds node '{patch.node_id}'")
        return [remove_member(self.source, pair.parent, pair)]

    def _rename_node(self, patch: RenameNodePatch) -> list[TextEdit]:
        node = self._node(patch.node_id)
        if node.data.key == patch.key:
            return []
        parent = self._node(node.parent_id) if node.parent_id else None
        if parent is not None and patch.key in parent.children:
            raise PatchValidationError(
                f"Node '{node.parent_id}' already has a child '{patch.key}'", patch
            )
        pair = enclosing_pair(self._node_object(patch.node_id))
        key_node = pair.child_by_field_name("key") if pair is not None else None
        if key_node is None:
            raise PatchTargetNotFoundError(f"No property key found for node '{patch.node_id}'")
        return [replace_node(self.source, key_node, format_key(patch.key))]

    def _default_for(self, node: StateNode, field_name: str) -> Optional[str]:
        if field_name == "type":
            return StateType.NORMAL.value
        if field_name == "history" and node.data.type == StateType.HISTORY:
            return HistoryType.SHALLOW.value
        return None

    def _replace_node_data(self, patch: ReplaceNodeDataPatch) -> list[TextEdit]:
        node = self._node(patch.node_id)
        obj = self._node_object(patch.node_id)
        pair = find_property(obj, patch.field, self.source)
        default = self._default_for(node, patch.field)
        is_default = patch.value is None or patch.value == default

        if is_default:
            if pair is None:
                return []
            return [remove_member(self.source, obj, pair)]

        if pair is not None:
            value = property_value(pair)
            if self._static_string(value) == patch.value:
                return []
            return [replace_node(self.source, value, format_value(patch.value))]

        self._queue(
            obj,
            self._priority_index(obj, patch.field),
            format_property(patch.field, format_value(patch.value)),
            rank=INSERTION_PRIORITY.index(patch.field),
            name=patch.field,
        )
        return []

    def _add_node_action(self, patch: AddNodeActionPatch) -> list[TextEdit]:
        obj = self._node_object(patch.node_id)
        pair = find_property(obj, patch.slot, self.source)
        if pair is None:
            prop = self._new_property(obj, patch.slot, as_object=False)
            self._insert_item(prop.entries, patch.index, format_value(patch.action), patch)
            return []
        self._add_action_to_value(property_value(pair), patch.index, patch.action, patch)
        return []

    # ------------------------------------------------------------------
    # Edge patches
    # ------------------------------------------------------------------

    def _add_edge_action(self, patch: AddEdgeActionPatch) -> list[TextEdit]:
        value = self._edge_value(patch.edge_id)
        inner = unwrap_expression(value)
        action_text = format_value(patch.action)

        if inner.type == "object":
            pair = find_property(inner, "actions", self.source)
            if pair is not None:
                self._add_action_to_value(property_value(pair), patch.index, patch.action, patch)
                return []
            prop = self._new_property(inner, "actions", as_object=False)
            self._insert_item(prop.entries, patch.index, action_text, patch)
            return []

        rewrite = self._rewrites.get(_key(value))
        if rewrite is None:
            # "target" shorthand, or an empty transition, becomes an object
            target = None if inner.type in ("undefined", "null") else self.source.node_text(value)
            rewrite = _Rewrite(node=value, items=[], target=target, as_transition=True)
            self._rewrites[_key(value)] = rewrite
        self._insert_item(rewrite.items, patch.index, action_text, patch)
        return []

    # ------------------------------------------------------------------
    # Context patches
    # ------------------------------------------------------------------

    def _context_object(self, root: Node) -> Optional[Node]:
        pair = find_property(root, "context", self.source)
        if pair is None:
            return None
        value = unwrap_expression(property_value(pair))
        if value.type in FUNCTION_TYPES:
            body = value.child_by_field_name("body")
            value = unwrap_expression(body) if body is not None else value
        if value.type != "object":
            raise PatchTargetNotFoundError("Root 'context' is not an object literal")
        return value

    def _replace_context(self, patch: ReplaceContextPatch) -> list[TextEdit]:
        root = self._node_object(self.digraph.root)
        context = self._context_object(root)
        value_text = format_value(patch.value)
        member_text = format_property(patch.key, value_text)
        if context is None:
            prop = self._new_property(root, "context", as_object=True)
            prefix = f"{format_key(patch.key)}: "
            prop.entries = [e for e in prop.entries if not e.startswith(prefix)]
            prop.entries.append(member_text)
            return []
        pair = find_property(context, patch.key, self.source)
        if pair is None:
            self._append(context, member_text, name=patch.key)
            return []
        value = property_value(pair)
        if self.source.node_text(value) == value_text:
            return []
        if isinstance(patch.value, str) and self._static_string(value) == patch.value:
            return []
        return [replace_node(self.source, value, value_text)]

    def _remove_context(self, patch: RemoveContextPatch) -> list[TextEdit]:
        root = self._node_object(self.digraph.root)
        context = self._context_object(root)
        pair = find_property(context, patch.key, self.source) if context is not None else None
        if pair is None:
            return []
        return [remove_member(self.source, context, pair)]


def compute_edits(
    source: SourceFile,
    call: Node,
    extraction: MachineExtraction,
    patches: Sequence[Union[Mapping[str, Any], Patch]],
) -> list[TextEdit]:
    """Compute the text edits of one patch batch (see :class:`PatchEngine`)."""
    return PatchEngine(source, call, extraction).compute(patches)
