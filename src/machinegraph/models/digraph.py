"""Digraph schema: the exported graph model of one state machine."""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from machinegraph.models.enums import (
    BlockType,
    HistoryType,
    ImplementationKind,
    StateType,
)

ROOT_NODE_ID = "(machine)"


class ExpressionPlaceholder(BaseModel):
    """Verbatim source text standing in for a value that is not plain data.

    Placeholders are never edited by the patch engine; they are carried as
    raw code so a consumer can display them.
    """

    model_config = ConfigDict(frozen=True)

    expression: str = Field(..., description="Source text of the expression")


class Implementation(BaseModel):
    """A named reference to an action, actor or guard.

    Exactly one of ``data`` (literal-shaped extracted data) or
    ``expression`` (opaque placeholder) is usually set; plain named
    references carry neither.
    """

    kind: ImplementationKind
    name: str = Field(..., min_length=1)
    data: Any = Field(
        default=None,
        description="Extracted literal data (may nest ExpressionPlaceholder values)",
    )
    expression: Optional[ExpressionPlaceholder] = None

    @property
    def is_inline(self) -> bool:
        """True when the implementation was written inline in the config."""
        return self.name.startswith("inline:")


class StateNodeData(BaseModel):
    """Properties read from one state configuration literal."""

    key: str
    initial: Optional[str] = None
    type: StateType = StateType.NORMAL
    history: Optional[HistoryType] = None
    id: Optional[str] = Field(default=None, description="Explicit id for #id targets")
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    entry: list[Implementation] = Field(default_factory=list)
    exit: list[Implementation] = Field(default_factory=list)
    invoke: list[str] = Field(default_factory=list, description="Block ids")


class StateNode(BaseModel):
    """A state in the machine."""

    id: str
    parent_id: Optional[str] = None
    children: dict[str, str] = Field(
        default_factory=dict,
        description="Child key -> child node id, in source order",
    )
    data: StateNodeData


class TransitionData(BaseModel):
    """Properties read from one transition configuration."""

    event_type: str
    targets: list[str] = Field(
        default_factory=list,
        description="Target path strings as written in the source",
    )
    guard: Optional[Implementation] = None
    actions: list[Implementation] = Field(default_factory=list)
    description: Optional[str] = None


class Transition(BaseModel):
    """An event-keyed edge from one state to zero or more targets."""

    id: str
    source_id: str
    target_ids: list[str] = Field(
        default_factory=list,
        description="Resolved node ids, filled in by target resolution",
    )
    data: TransitionData


class Block(BaseModel):
    """A reusable configuration fragment attached to a state (invoke entry)."""

    id: str
    parent_id: str
    block_type: BlockType = BlockType.ACTOR
    source_id: str = Field(..., description="Name of the referenced implementation")
    properties: dict[str, Any] = Field(default_factory=dict)


class Implementations(BaseModel):
    """Registry of named implementations referenced by the machine."""

    actions: dict[str, Implementation] = Field(default_factory=dict)
    actors: dict[str, Implementation] = Field(default_factory=dict)
    guards: dict[str, Implementation] = Field(default_factory=dict)

    def register(self, implementation: Implementation) -> None:
        """Record *implementation* under its kind, keeping the first one seen."""
        registry = {
            ImplementationKind.ACTION: self.actions,
            ImplementationKind.ACTOR: self.actors,
            ImplementationKind.GUARD: self.guards,
        }[implementation.kind]
        registry.setdefault(implementation.name, implementation)


class DigraphData(BaseModel):
    """Machine-level data."""

    context: dict[str, Any] = Field(default_factory=dict)


class Digraph(BaseModel):
    """The graph model of one machine definition.

    Validators enforce that ``root`` names an existing node and that it is
    the only parentless node.
    """

    model_config = ConfigDict(frozen=False)

    root: str
    nodes: dict[str, StateNode] = Field(default_factory=dict)
    edges: dict[str, Transition] = Field(default_factory=dict)
    blocks: dict[str, Block] = Field(default_factory=dict)
    implementations: Implementations = Field(default_factory=Implementations)
    data: DigraphData = Field(default_factory=DigraphData)

    @model_validator(mode="after")
    def validate_root(self) -> Digraph:
        if self.root not in self.nodes:
            raise ValueError(f"Root node '{self.root}' not found in nodes")
        parentless = [n.id for n in self.nodes.values() if n.parent_id is None]
        if parentless != [self.root]:
            raise ValueError(
                f"Exactly one node may lack a parent, found {parentless}"
            )
        return self

    def get_node(self, node_id: str) -> Optional[StateNode]:
        return self.nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Transition]:
        return self.edges.get(edge_id)

    def child(self, node_id: str, key: str) -> Optional[StateNode]:
        """Return the child of *node_id* keyed *key*, if any."""
        node = self.nodes.get(node_id)
        if node is None or key not in node.children:
            return None
        return self.nodes[node.children[key]]

    def node_at(self, keys: list[str]) -> Optional[StateNode]:
        """Walk child keys from the root, e.g. ``["a", "b"]``."""
        node = self.nodes[self.root]
        for key in keys:
            found = self.child(node.id, key)
            if found is None:
                return None
            node = found
        return node

    def edges_from(self, node_id: str) -> list[Transition]:
        """Return the outgoing edges of *node_id* in extraction order."""
        return [e for e in self.edges.values() if e.source_id == node_id]

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=indent)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def __repr__(self) -> str:
        return (
            f"Digraph(root={self.root!r}, nodes={self.node_count}, "
            f"edges={self.edge_count}, blocks={len(self.blocks)})"
        )
