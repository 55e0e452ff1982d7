"""machinegraph exception hierarchy.

All exceptions raised by the library derive from ``MachineGraphError``.
Recoverable extraction problems are never raised; they are returned as
:class:`~machinegraph.models.ExtractionError` records.

Fatal to the current operation:
    MachineNotFoundError       -- file or machine call site cannot be located
    PatchValidationError       -- patch shape not recognised
    PatchTargetNotFoundError   -- node, edge or AST path of a patch is missing
    PatchConflictError         -- two edits of one batch overlap

Internal (converted to extraction errors by the state-node extractor):
    ActionExtractionError      -- unsupported action-creator call shape
"""

from __future__ import annotations

from typing import Any, Optional


class MachineGraphError(Exception):
    """Base class for all machinegraph exceptions."""


class MachineNotFoundError(MachineGraphError):
    """The requested file or machine call site does not exist.

    Attributes:
        file_name:     File that was searched.
        machine_index: Position of the machine call in the file, if relevant.
    """

    def __init__(self, file_name: str, machine_index: Optional[int] = None) -> None:
        self.file_name = file_name
        self.machine_index = machine_index
        if machine_index is None:
            message = f"Source file '{file_name}' is not part of the program"
        else:
            message = f"No machine at index {machine_index} in '{file_name}'"
        super().__init__(message)


class ActionExtractionError(MachineGraphError):
    """An action-creator call has a shape the extractor cannot read.

    Attributes:
        creator: Name of the action creator (``assign``, ``sendTo`` ...).
    """

    def __init__(self, creator: str, message: str) -> None:
        self.creator = creator
        super().__init__(f"Unsupported {creator} action: {message}")


class PatchError(MachineGraphError):
    """Base class for errors that abort a whole patch batch."""


class PatchValidationError(PatchError):
    """A raw patch does not describe any supported digraph change.

    Attributes:
        patch: The offending raw patch.
    """

    def __init__(self, message: str, patch: Any = None) -> None:
        self.patch = patch
        detail = f" in patch {patch!r}" if patch is not None else ""
        super().__init__(f"{message}{detail}")


class PatchTargetNotFoundError(PatchError):
    """A patch refers to a node, edge or syntax location that is missing."""


class PatchConflictError(PatchError):
    """Two edits computed for one batch touch overlapping ranges.

    Attributes:
        first:  The earlier edit.
        second: The edit that overlaps it.
    """

    def __init__(self, first: Any, second: Any) -> None:
        self.first = first
        self.second = second
        super().__init__(
            f"Edits overlap: [{first.start}, {first.end}) and "
            f"[{second.start}, {second.end}). Split the batch and re-extract "
            f"between the parts."
        )
