"""Extraction error records and the per-machine extraction result."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from machinegraph.models.digraph import Digraph
from machinegraph.models.enums import ExtractionErrorKind


class SourceRange(BaseModel):
    """Half-open character range into the source text."""

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)


class ExtractionError(BaseModel):
    """A recoverable problem met while extracting one machine."""

    kind: ExtractionErrorKind
    message: str = ""
    location: Optional[SourceRange] = None


class AstPaths(BaseModel):
    """Recorded AST paths (child-index routes from the machine call)."""

    nodes: dict[str, list[int]] = Field(default_factory=dict)
    edges: dict[str, list[int]] = Field(default_factory=dict)


class MachineExtraction(BaseModel):
    """Best-effort digraph plus accumulated errors for one machine call."""

    digraph: Optional[Digraph] = None
    errors: list[ExtractionError] = Field(default_factory=list)
    ast_paths: AstPaths = Field(default_factory=AstPaths)

    def errors_of(self, kind: ExtractionErrorKind) -> list[ExtractionError]:
        return [e for e in self.errors if e.kind == kind]
