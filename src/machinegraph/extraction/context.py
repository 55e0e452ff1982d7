"""Call-scoped accumulator threaded through one machine extraction.

All mutable extraction state lives here.  A fresh context is created per
machine call and discarded once the digraph has been built; nothing is
module-global.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from tree_sitter import Node

from machinegraph.models.digraph import (
    Block,
    DigraphData,
    Implementations,
    StateNode,
    Transition,
)
from machinegraph.models.enums import ExtractionErrorKind
from machinegraph.models.errors import AstPaths, ExtractionError, SourceRange
from machinegraph.syntax.ast_path import ast_path_of
from machinegraph.syntax.source import SourceFile


@dataclass
class LexicalNode:
    """One state in the lexical arena.  Links are arena indices."""

    node_id: str
    parent: Optional[int]
    children: dict[str, int] = field(default_factory=dict)


class LexicalTree:
    """Arena of lexical nodes used only for transition-target resolution."""

    def __init__(self) -> None:
        self.nodes: list[LexicalNode] = []
        self._index: dict[str, int] = {}

    def add(self, node_id: str, parent_id: Optional[str], key: str) -> int:
        parent = self._index[parent_id] if parent_id is not None else None
        index = len(self.nodes)
        self.nodes.append(LexicalNode(node_id=node_id, parent=parent))
        self._index[node_id] = index
        if parent is not None:
            self.nodes[parent].children[key] = index
        return index

    def index_of(self, node_id: str) -> Optional[int]:
        return self._index.get(node_id)

    def parent(self, index: int) -> Optional[int]:
        return self.nodes[index].parent

    def child(self, index: int, key: str) -> Optional[int]:
        return self.nodes[index].children.get(key)

    def node_id(self, index: int) -> str:
        return self.nodes[index].node_id

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass
class ExtractionContext:
    """Errors, id registries, partial digraph and lexical tree for one call."""

    source: SourceFile
    call: Node
    errors: list[ExtractionError] = field(default_factory=list)
    nodes: dict[str, StateNode] = field(default_factory=dict)
    edges: dict[str, Transition] = field(default_factory=dict)
    blocks: dict[str, Block] = field(default_factory=dict)
    implementations: Implementations = field(default_factory=Implementations)
    data: DigraphData = field(default_factory=DigraphData)
    explicit_ids: dict[str, str] = field(default_factory=dict)
    lexical: LexicalTree = field(default_factory=LexicalTree)
    ast_paths: AstPaths = field(default_factory=AstPaths)

    def text(self, node: Node) -> str:
        return self.source.node_text(node)

    def add_error(
        self,
        kind: ExtractionErrorKind,
        message: str = "",
        node: Optional[Node] = None,
    ) -> None:
        location = None
        if node is not None:
            start, end = self.source.char_range(node)
            location = SourceRange(start=start, end=end)
        self.errors.append(ExtractionError(kind=kind, message=message, location=location))

    def record_node_path(self, node_id: str, syntax_node: Node) -> None:
        path = ast_path_of(self.call, syntax_node)
        if path is not None:
            self.ast_paths.nodes[node_id] = path

    def record_edge_path(self, edge_id: str, syntax_node: Node) -> None:
        path = ast_path_of(self.call, syntax_node)
        if path is not None:
            self.ast_paths.edges[edge_id] = path
