"""Syntax layer: tree-sitter parsing, node helpers, scopes and AST paths."""

from machinegraph.syntax.ast_path import ast_path_of, locate_ast_path, same_node
from machinegraph.syntax.source import SourceFile, SourceProgram, parse_source

__all__ = [
    "SourceFile",
    "SourceProgram",
    "ast_path_of",
    "locate_ast_path",
    "parse_source",
    "same_node",
]
