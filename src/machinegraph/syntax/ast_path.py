"""AST paths: child-index routes from a machine call to a syntax node."""

from __future__ import annotations

from typing import Optional

from tree_sitter import Node


def same_node(a: Node, b: Node) -> bool:
    """Structural identity for nodes of one tree.

    py-tree-sitter hands out fresh wrapper objects on every access, so
    identity is decided by range and type.
    """
    return (
        a.start_byte == b.start_byte
        and a.end_byte == b.end_byte
        and a.type == b.type
    )


def ast_path_of(root: Node, node: Node) -> Optional[list[int]]:
    """Return the child indices leading from *root* down to *node*.

    Returns ``None`` when *node* is not inside *root* (for example a state
    config reached through an identifier declared elsewhere in the file).
    """
    steps: list[int] = []
    current = node
    while not same_node(current, root):
        parent = current.parent
        if parent is None:
            return None
        for index, child in enumerate(parent.children):
            if same_node(child, current):
                steps.append(index)
                break
        else:
            return None
        current = parent
    steps.reverse()
    return steps


def locate_ast_path(root: Node, path: list[int]) -> Optional[Node]:
    """Follow *path* from *root*; ``None`` if a step no longer exists."""
    node = root
    for index in path:
        if index < 0 or index >= node.child_count:
            return None
        node = node.children[index]
    return node
