"""Unit tests for machinegraph.patching.patches and edits."""

from __future__ import annotations

import pytest

from machinegraph.exceptions import PatchConflictError, PatchValidationError
from machinegraph.patching import (
    AddEdgeActionPatch,
    AddNodeActionPatch,
    AddNodePatch,
    RemoveContextPatch,
    RemoveNodePatch,
    RenameNodePatch,
    ReplaceContextPatch,
    ReplaceNodeDataPatch,
    TextEdit,
    apply_text_edits,
    check_disjoint,
    parse_patch,
)


# ---------------------------------------------------------------------------
# parse_patch
# ---------------------------------------------------------------------------


class TestParsePatch:
    def test_add_node(self) -> None:
        patch = parse_patch(
            {"op": "add", "path": ["nodes", "(machine).b"], "value": {"parent_id": "(machine)", "data": {"key": "b"}}}
        )
        assert patch == AddNodePatch(node_id="(machine).b", parent_id="(machine)", key="b")

    def test_remove_node(self) -> None:
        assert parse_patch({"op": "remove", "path": ["nodes", "(machine).b"]}) == RemoveNodePatch(
            node_id="(machine).b"
        )

    def test_rename(self) -> None:
        patch = parse_patch({"op": "replace", "path": ["nodes", "(machine).a", "data", "key"], "value": "z"})
        assert isinstance(patch, RenameNodePatch)
        assert patch.key == "z"

    def test_node_data(self) -> None:
        patch = parse_patch({"op": "replace", "path": ["nodes", "(machine)", "data", "type"], "value": "final"})
        assert patch == ReplaceNodeDataPatch(node_id="(machine)", field="type", value="final")

    def test_entry_action(self) -> None:
        patch = parse_patch({"op": "add", "path": ["nodes", "(machine)", "data", "exit", 2], "value": "x"})
        assert patch == AddNodeActionPatch(node_id="(machine)", slot="exit", index=2, action="x")

    def test_action_as_implementation(self) -> None:
        patch = parse_patch(
            {"op": "add", "path": ["edges", "e", "data", "actions", 0], "value": {"kind": "action", "name": "go"}}
        )
        assert patch == AddEdgeActionPatch(edge_id="e", index=0, action="go")

    def test_context(self) -> None:
        assert parse_patch({"op": "replace", "path": ["data", "context", "n"], "value": 1}) == ReplaceContextPatch(
            key="n", value=1
        )
        assert parse_patch({"op": "remove", "path": ["data", "context", "n"]}) == RemoveContextPatch(key="n")

    def test_variant_passthrough(self) -> None:
        patch = RemoveNodePatch(node_id="(machine).a")
        assert parse_patch(patch) is patch

    @pytest.mark.parametrize(
        "raw",
        [
            {"op": "copy", "path": ["nodes", "a"]},
            {"op": "add", "path": []},
            {"op": "add", "path": "nodes"},
            {"op": "replace", "path": ["nodes", "a", "data", "tags"], "value": []},
            {"op": "replace", "path": ["nodes", "a", "data", "initial"]},
            {"op": "remove", "path": ["nodes", "a"], "value": 1},
            {"op": "add", "path": ["nodes", "a", "data", "entry", -1], "value": "x"},
            {"op": "add", "path": ["nodes", "a", "data", "entry", 0], "value": ""},
            {"op": "replace", "path": ["nodes", "a", "data", "history"], "value": "medium"},
            {"op": "remove", "path": ["nodes", "(machine)"]},
            {"op": "add", "path": ["edges", "e", "data", "guard"], "value": "g"},
            "not a patch",
        ],
    )
    def test_rejected(self, raw) -> None:
        with pytest.raises(PatchValidationError):
            parse_patch(raw)


# ---------------------------------------------------------------------------
# Text edits
# ---------------------------------------------------------------------------


class TestTextEdits:
    def test_apply_single_pass(self) -> None:
        edits = [
            TextEdit(start=6, end=11, new_text="there"),
            TextEdit(start=0, end=0, new_text=">> "),
        ]
        assert apply_text_edits("hello world", edits) == ">> hello there"

    def test_deletion(self) -> None:
        assert apply_text_edits("abcdef", [TextEdit(start=1, end=3)]) == "adef"

    def test_overlap_conflicts(self) -> None:
        with pytest.raises(PatchConflictError):
            check_disjoint([TextEdit(start=0, end=5), TextEdit(start=3, end=8)])

    def test_same_offset_insertions_conflict(self) -> None:
        with pytest.raises(PatchConflictError):
            check_disjoint([TextEdit(start=2, end=2, new_text="a"), TextEdit(start=2, end=2, new_text="b")])

    def test_insertion_before_replacement_at_same_offset(self) -> None:
        edits = [TextEdit(start=2, end=4, new_text="X"), TextEdit(start=2, end=2, new_text=">")]
        assert apply_text_edits("abcdef", edits) == "ab>Xef"

    def test_adjacent_edits_allowed(self) -> None:
        ordered = check_disjoint([TextEdit(start=3, end=5), TextEdit(start=0, end=3)])
        assert [e.start for e in ordered] == [0, 3]

    def test_invalid_range(self) -> None:
        with pytest.raises(ValueError):
            TextEdit(start=5, end=2)

    def test_out_of_bounds(self) -> None:
        with pytest.raises(ValueError):
            apply_text_edits("abc", [TextEdit(start=2, end=9)])
