"""Parsed source files and program snapshots.

Source text is parsed with tree-sitter using the TypeScript grammar (TSX for
``.tsx``/``.jsx`` files).  tree-sitter reports UTF-8 byte offsets; everything
exported by machinegraph uses character offsets into the Python string, so
:class:`SourceFile` owns the conversion.
"""

from __future__ import annotations

import bisect
import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Optional

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

logger = logging.getLogger(__name__)

TSX_SUFFIXES: frozenset[str] = frozenset({".tsx", ".jsx"})


@lru_cache(maxsize=2)
def _language(tsx: bool) -> Language:
    if tsx:
        return Language(tree_sitter_typescript.language_tsx())
    return Language(tree_sitter_typescript.language_typescript())


def _parser_for(file_name: str) -> Parser:
    parser = Parser()
    parser.language = _language(Path(file_name).suffix.lower() in TSX_SUFFIXES)
    return parser


class SourceFile:
    """One parsed file: text, its UTF-8 encoding and the syntax tree.

    Instances are treated as immutable snapshots.  Editing a file means
    parsing a new ``SourceFile``.
    """

    def __init__(self, file_name: str, text: str, tree: Tree) -> None:
        self.file_name = file_name
        self.text = text
        self.data = text.encode("utf-8")
        self.tree = tree
        self._ascii = len(self.data) == len(text)
        self._line_starts: list[int] | None = None

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def has_syntax_errors(self) -> bool:
        return self.tree.root_node.has_error

    def char_offset(self, byte_offset: int) -> int:
        """Convert a tree-sitter byte offset to a character offset."""
        if self._ascii:
            return byte_offset
        return len(self.data[:byte_offset].decode("utf-8"))

    def char_range(self, node: Node) -> tuple[int, int]:
        return self.char_offset(node.start_byte), self.char_offset(node.end_byte)

    def node_text(self, node: Node) -> str:
        return self.data[node.start_byte:node.end_byte].decode("utf-8")

    def position_at(self, offset: int) -> tuple[int, int]:
        """Return the zero-based ``(line, column)`` of a character offset."""
        if self._line_starts is None:
            starts = [0]
            starts.extend(i + 1 for i, ch in enumerate(self.text) if ch == "\n")
            self._line_starts = starts
        line = bisect.bisect_right(self._line_starts, offset) - 1
        return line, offset - self._line_starts[line]

    def line_indent(self, offset: int) -> str:
        """Return the leading whitespace of the line containing *offset*."""
        line_start = self.text.rfind("\n", 0, offset) + 1
        end = line_start
        while end < len(self.text) and self.text[end] in " \t":
            end += 1
        return self.text[line_start:end]

    def __repr__(self) -> str:
        return f"SourceFile({self.file_name!r}, chars={len(self.text)})"


def parse_source(text: str, file_name: str = "machine.ts") -> SourceFile:
    """Parse *text* into a :class:`SourceFile`.

    tree-sitter always produces a tree; syntax errors surface as ERROR
    nodes and are logged, not raised.
    """
    tree = _parser_for(file_name).parse(text.encode("utf-8"))
    source = SourceFile(file_name, text, tree)
    if source.has_syntax_errors:
        logger.warning("Syntax errors while parsing %s", file_name)
    return source


class SourceProgram:
    """An immutable snapshot of parsed files, keyed by file name."""

    def __init__(self, files: Optional[Mapping[str, SourceFile]] = None) -> None:
        self._files: dict[str, SourceFile] = dict(files or {})

    @classmethod
    def from_sources(cls, sources: Mapping[str, str]) -> SourceProgram:
        """Build a program from in-memory ``{file_name: text}`` pairs."""
        return cls({name: parse_source(text, name) for name, text in sources.items()})

    @classmethod
    def from_files(cls, paths: Iterable[Path]) -> SourceProgram:
        """Read and parse files from disk.

        Raises:
            FileNotFoundError: If a path does not exist.
        """
        files: dict[str, SourceFile] = {}
        for path in paths:
            name = str(path)
            files[name] = parse_source(Path(path).read_text(encoding="utf-8"), name)
        return cls(files)

    def get_source_file(self, file_name: str) -> Optional[SourceFile]:
        return self._files.get(file_name)

    def with_source(self, file_name: str, text: str) -> SourceProgram:
        """Return a new snapshot with *file_name* reparsed from *text*."""
        files = dict(self._files)
        files[file_name] = parse_source(text, file_name)
        return SourceProgram(files)

    @property
    def file_names(self) -> list[str]:
        return list(self._files)

    def __contains__(self, file_name: object) -> bool:
        return file_name in self._files

    def __iter__(self) -> Iterator[SourceFile]:
        return iter(self._files.values())

    def __len__(self) -> int:
        return len(self._files)
