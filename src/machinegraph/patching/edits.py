"""Text edits produced by the patch engine."""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, model_validator

from machinegraph.exceptions import PatchConflictError


class TextEdit(BaseModel):
    """Replace ``text[start:end]`` of the original source with ``new_text``.

    Offsets are character offsets into the unmodified text.  ``start == end``
    is an insertion; an empty ``new_text`` is a deletion.
    """

    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    new_text: str = ""

    @model_validator(mode="after")
    def validate_range(self) -> TextEdit:
        if self.end < self.start:
            raise ValueError(f"Edit end {self.end} precedes start {self.start}")
        return self

    @property
    def is_insertion(self) -> bool:
        return self.start == self.end


def sort_edits(edits: Iterable[TextEdit]) -> list[TextEdit]:
    return sorted(edits, key=lambda e: (e.start, e.end))


def check_disjoint(edits: Iterable[TextEdit]) -> list[TextEdit]:
    """Sort *edits* and raise :class:`PatchConflictError` on any overlap.

    An insertion may share its offset with the start of a replacement (it
    goes first).  Two insertions at one offset conflict, their relative
    order being undefined; the engine merges its own into a single edit.
    """
    ordered = sort_edits(edits)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            raise PatchConflictError(previous, current)
        if current.start == previous.start and previous.is_insertion and current.is_insertion:
            raise PatchConflictError(previous, current)
    return ordered


def apply_text_edits(text: str, edits: Iterable[TextEdit]) -> str:
    """Apply one batch of edits to *text* in a single pass."""
    parts: list[str] = []
    cursor = 0
    for edit in check_disjoint(edits):
        if edit.end > len(text):
            raise ValueError(f"Edit range [{edit.start}, {edit.end}) is past end of text")
        parts.append(text[cursor:edit.start])
        parts.append(edit.new_text)
        cursor = edit.end
    parts.append(text[cursor:])
    return "".join(parts)
