"""Structural digraph patches and the source edits that realise them."""

from machinegraph.patching.edits import TextEdit, apply_text_edits, check_disjoint
from machinegraph.patching.engine import INSERTION_PRIORITY, PatchEngine, compute_edits
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
    parse_patch,
    parse_patches,
)

__all__ = [
    "AddEdgeActionPatch",
    "AddNodeActionPatch",
    "AddNodePatch",
    "INSERTION_PRIORITY",
    "Patch",
    "PatchEngine",
    "RemoveContextPatch",
    "RemoveNodePatch",
    "RenameNodePatch",
    "ReplaceContextPatch",
    "ReplaceNodeDataPatch",
    "TextEdit",
    "apply_text_edits",
    "check_disjoint",
    "compute_edits",
    "parse_patch",
    "parse_patches",
]
