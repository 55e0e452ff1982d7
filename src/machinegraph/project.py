"""Project orchestrator: per-file machine extraction cache and patching."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from machinegraph.exceptions import MachineNotFoundError
from machinegraph.extraction.machine_call import (
    DEFAULT_FACTORY_NAMES,
    MachineCall,
    extract_machine,
    find_machine_calls,
)
from machinegraph.models.errors import MachineExtraction
from machinegraph.patching.edits import TextEdit
from machinegraph.patching.engine import compute_edits
from machinegraph.patching.patches import Patch
from machinegraph.syntax.source import SourceFile, SourceProgram

logger = logging.getLogger(__name__)


@dataclass
class _FileEntry:
    source: SourceFile
    machines: list[MachineExtraction]


class MachineProject:
    """Extracts and patches the machines of a :class:`SourceProgram`.

    Extractions are cached per file name.  A cached entry is only valid for
    the ``SourceFile`` snapshot it was made from.

    Not safe for concurrent use on the same file.
    """

    def __init__(
        self,
        program: SourceProgram,
        factory_names: Iterable[str] = DEFAULT_FACTORY_NAMES,
    ) -> None:
        self.program = program
        self.factory_names: tuple[str, ...] = tuple(factory_names)
        self._cache: dict[str, _FileEntry] = {}

    def _source(self, file_name: str) -> SourceFile:
        source = self.program.get_source_file(file_name)
        if source is None:
            raise MachineNotFoundError(file_name)
        return source

    def find_machine_calls(self, file_name: str) -> list[MachineCall]:
        return find_machine_calls(self._source(file_name), self.factory_names)

    def get_machines_in_file(self, file_name: str) -> list[MachineExtraction]:
        """Return the extraction of every machine in *file_name*, cached."""
        source = self._source(file_name)
        entry = self._cache.get(file_name)
        if entry is not None and entry.source is source:
            return entry.machines
        machines = [extract_machine(call, source) for call in self.find_machine_calls(file_name)]
        self._cache[file_name] = _FileEntry(source=source, machines=machines)
        logger.debug("Cached %d machine(s) for %s", len(machines), file_name)
        return machines

    def extract_machine(self, file_name: str, index: int = 0) -> MachineExtraction:
        machines = self.get_machines_in_file(file_name)
        if not 0 <= index < len(machines):
            raise MachineNotFoundError(file_name, index)
        return machines[index]

    def apply_patches(
        self,
        file_name: str,
        machine_index: int,
        patches: Sequence[Union[Mapping[str, Any], Patch]],
    ) -> list[TextEdit]:
        """Compute edits for *patches* against the last extraction.

        The call site is re-located by position in the current snapshot.
        The file's cache entry is dropped, since applying the edits makes
        it stale.
        """
        extraction = self.extract_machine(file_name, machine_index)
        source = self._source(file_name)
        calls = self.find_machine_calls(file_name)
        if machine_index >= len(calls):
            raise MachineNotFoundError(file_name, machine_index)
        edits = compute_edits(source, calls[machine_index].node, extraction, patches)
        self.invalidate(file_name)
        return edits

    def invalidate(self, file_name: Optional[str] = None) -> None:
        if file_name is None:
            self._cache.clear()
        else:
            self._cache.pop(file_name, None)

    def update_program(self, program: SourceProgram) -> None:
        """Swap the active snapshot, dropping entries whose file changed."""
        self.program = program
        for file_name in list(self._cache):
            if program.get_source_file(file_name) is not self._cache[file_name].source:
                del self._cache[file_name]
