"""Unit tests for machinegraph.patching.engine."""

from __future__ import annotations

from typing import Any

import pytest

from machinegraph.exceptions import (
    PatchConflictError,
    PatchTargetNotFoundError,
    PatchValidationError,
)
from machinegraph.patching import apply_text_edits
from machinegraph.project import MachineProject
from machinegraph.syntax import SourceProgram

FILE = "machine.ts"


def _edits(text: str, patches: list[dict[str, Any]]):
    project = MachineProject(SourceProgram.from_sources({FILE: text}))
    project.get_machines_in_file(FILE)
    return project.apply_patches(FILE, 0, patches)


def _patched(text: str, patches: list[dict[str, Any]]) -> str:
    return apply_text_edits(text, _edits(text, patches))


def _entry(node_id: str, index: int, name: str, slot: str = "entry") -> dict[str, Any]:
    return {"op": "add", "path": ["nodes", node_id, "data", slot, index], "value": name}


def _set(node_id: str, field: str, value: Any) -> dict[str, Any]:
    return {"op": "replace", "path": ["nodes", node_id, "data", field], "value": value}


def _add(parent_id: str, key: str) -> dict[str, Any]:
    value = {"parent_id": parent_id, "data": {"key": key}}
    return {"op": "add", "path": ["nodes", f"{parent_id}.{key}"], "value": value}


# ---------------------------------------------------------------------------
# Entry / exit actions
# ---------------------------------------------------------------------------


class TestAddNodeAction:
    def test_empty_machine_gets_entry(self) -> None:
        result = _patched("createMachine({})", [_entry("(machine)", 0, "doStuff")])
        assert result == 'createMachine({ entry: "doStuff" })'

    def test_single_value_promoted(self) -> None:
        result = _patched("createMachine({ entry: 'bark' })", [_entry("(machine)", 1, "doStuff")])
        assert result == "createMachine({ entry: ['bark', \"doStuff\"] })"

    def test_single_value_promoted_at_front(self) -> None:
        result = _patched("createMachine({ entry: 'bark' })", [_entry("(machine)", 0, "doStuff")])
        assert result == "createMachine({ entry: [\"doStuff\", 'bark'] })"

    def test_nested_state(self) -> None:
        result = _patched(
            "createMachine({ states: { a: {} } })",
            [_entry("(machine).a", 0, "doStuff")],
        )
        assert result == 'createMachine({ states: { a: { entry: "doStuff" } } })'

    def test_array_insert(self) -> None:
        text = "createMachine({ exit: ['a', 'c'] })"
        result = _patched(text, [_entry("(machine)", 1, "b", slot="exit")])
        assert result == "createMachine({ exit: ['a', \"b\", 'c'] })"

    def test_array_append(self) -> None:
        text = "createMachine({ exit: ['a'] })"
        result = _patched(text, [_entry("(machine)", 1, "b", slot="exit")])
        assert result == "createMachine({ exit: ['a', \"b\"] })"

    def test_appended_after_existing_properties(self) -> None:
        text = "createMachine({ id: 'm' })"
        result = _patched(text, [_entry("(machine)", 0, "go")])
        assert result == "createMachine({ id: 'm', entry: \"go\" })"

    def test_index_out_of_range(self) -> None:
        with pytest.raises(PatchValidationError):
            _edits("createMachine({ entry: 'bark' })", [_entry("(machine)", 3, "x")])


# ---------------------------------------------------------------------------
# Transition actions
# ---------------------------------------------------------------------------


class TestAddEdgeAction:
    def test_string_shorthand_promoted(self) -> None:
        text = "createMachine({ on: { FOO: '.a' }, states: { a: {} } })"
        patch = {
            "op": "add",
            "path": ["edges", "(machine):FOO:0", "data", "actions", 0],
            "value": "doStuff",
        }
        result = _patched(text, [patch])
        assert result == (
            "createMachine({ on: { FOO: { target: '.a', actions: \"doStuff\" } }, "
            "states: { a: {} } })"
        )

    def test_object_without_actions(self) -> None:
        text = "createMachine({ on: { GO: { target: '.a' } }, states: { a: {} } })"
        patch = {"op": "add", "path": ["edges", "(machine):GO:0", "data", "actions", 0], "value": "y"}
        result = _patched(text, [patch])
        assert "GO: { target: '.a', actions: \"y\" }" in result

    def test_existing_actions_promoted(self) -> None:
        text = "createMachine({ on: { GO: { actions: 'x' } } })"
        patch = {"op": "add", "path": ["edges", "(machine):GO:0", "data", "actions", 1], "value": "y"}
        assert _patched(text, [patch]) == "createMachine({ on: { GO: { actions: ['x', \"y\"] } } })"

    def test_unknown_edge(self) -> None:
        patch = {"op": "add", "path": ["edges", "nope", "data", "actions", 0], "value": "y"}
        with pytest.raises(PatchTargetNotFoundError):
            _edits("createMachine({})", [patch])


# ---------------------------------------------------------------------------
# initial / type / history
# ---------------------------------------------------------------------------


class TestReplaceNodeData:
    def test_insert_initial_before_states(self) -> None:
        text = "createMachine({ states: { a: {} } })"
        result = _patched(text, [_set("(machine)", "initial", "a")])
        assert result == 'createMachine({ initial: "a", states: { a: {} } })'

    def test_insert_type_before_history(self) -> None:
        text = "createMachine({ states: { h: { history: 'deep' } } })"
        result = _patched(text, [_set("(machine).h", "type", "history")])
        assert result == "createMachine({ states: { h: { type: \"history\", history: 'deep' } } })"

    def test_insert_initial_before_type(self) -> None:
        text = "createMachine({ id: 'm', type: 'parallel' })"
        result = _patched(text, [_set("(machine)", "initial", "a")])
        assert result == "createMachine({ id: 'm', initial: \"a\", type: 'parallel' })"

    def test_replace_existing_value(self) -> None:
        text = "createMachine({ initial: 'a', states: { a: {}, b: {} } })"
        result = _patched(text, [_set("(machine)", "initial", "b")])
        assert result == 'createMachine({ initial: "b", states: { a: {}, b: {} } })'

    def test_default_removes_property(self) -> None:
        text = "createMachine({ states: { a: { type: 'final', entry: 'x' } } })"
        result = _patched(text, [_set("(machine).a", "type", "normal")])
        assert result == "createMachine({ states: { a: { entry: 'x' } } })"

    def test_null_initial_removes_property(self) -> None:
        text = "createMachine({ states: { a: {} }, initial: 'a' })"
        result = _patched(text, [_set("(machine)", "initial", None)])
        assert result == "createMachine({ states: { a: {} } })"

    def test_same_value_is_noop(self) -> None:
        text = "createMachine({ initial: 'a', states: { a: {} } })"
        assert _edits(text, [_set("(machine)", "initial", "a")]) == []

    def test_default_when_absent_is_noop(self) -> None:
        assert _edits("createMachine({})", [_set("(machine)", "type", "normal")]) == []

    def test_shallow_history_is_default(self) -> None:
        text = "createMachine({ states: { h: { type: 'history', history: 'shallow' } } })"
        result = _patched(text, [_set("(machine).h", "history", "shallow")])
        assert result == "createMachine({ states: { h: { type: 'history' } } })"

    def test_invalid_type(self) -> None:
        with pytest.raises(PatchValidationError):
            _edits("createMachine({})", [_set("(machine)", "type", "bogus")])

    def test_unknown_node(self) -> None:
        with pytest.raises(PatchTargetNotFoundError):
            _edits("createMachine({})", [_set("(machine).x", "initial", "a")])


class TestIdempotence:
    def test_replay_yields_no_edits(self) -> None:
        text = "createMachine({ states: { a: {}, b: {} } })"
        patches = [_set("(machine)", "initial", "b"), _set("(machine).a", "type", "final")]
        once = _patched(text, patches)
        assert _edits(once, patches) == []

    def test_round_trip_only_touches_target(self) -> None:
        text = (
            "createMachine({\n"
            "  initial: 'a',\n"
            "  states: {\n"
            "    a: { on: { GO: 'b' } },\n"
            "    b: {},\n"
            "  },\n"
            "});\n"
        )
        edits = _edits(text, [_set("(machine)", "initial", "b")])
        assert len(edits) == 1
        edit = edits[0]
        assert text[edit.start:edit.end] == "'a'"
        result = apply_text_edits(text, edits)
        assert result[: edit.start] == text[: edit.start]
        assert result[edit.start + len(edit.new_text):] == text[edit.end:]


# ---------------------------------------------------------------------------
# Node add / remove / rename
# ---------------------------------------------------------------------------


class TestNodePatches:
    def test_add_to_existing_states(self) -> None:
        text = "createMachine({ states: { a: {} } })"
        patch = {"op": "add", "path": ["nodes", "(machine).b"], "value": {"parent_id": "(machine)", "data": {"key": "b"}}}
        assert _patched(text, [patch]) == "createMachine({ states: { a: {}, b: {} } })"

    def test_add_synthesises_states(self) -> None:
        text = "createMachine({ states: { a: {} } })"
        patch = {
            "op": "add",
            "path": ["nodes", "(machine).a.x"],
            "value": {"parent_id": "(machine).a", "data": {"key": "x"}},
        }
        assert _patched(text, [patch]) == "createMachine({ states: { a: { states: { x: {} } } } })"

    def test_add_states_first_by_priority(self) -> None:
        text = "createMachine({ id: 'm', initial: 'x' })"
        patch = {"op": "add", "path": ["nodes", "(machine).x"], "value": {"parent_id": "(machine)", "data": {"key": "x"}}}
        result = _patched(text, [patch])
        assert result == "createMachine({ id: 'm', states: { x: {} }, initial: 'x' })"

    def test_add_multiline(self) -> None:
        text = (
            "createMachine({\n"
            "  states: {\n"
            "    on: {},\n"
            "  },\n"
            "});\n"
        )
        patch = {"op": "add", "path": ["nodes", "(machine).off"], "value": {"parent_id": "(machine)", "data": {"key": "off"}}}
        assert _patched(text, [patch]) == (
            "createMachine({\n"
            "  states: {\n"
            "    on: {},\n"
            "    off: {},\n"
            "  },\n"
            "});\n"
        )

    def test_add_duplicate_key(self) -> None:
        patch = {"op": "add", "path": ["nodes", "(machine).a"], "value": {"parent_id": "(machine)", "data": {"key": "a"}}}
        with pytest.raises(PatchValidationError):
            _edits("createMachine({ states: { a: {} } })", [patch])

    def test_remove_first(self) -> None:
        text = "createMachine({ states: { a: {}, b: {} } })"
        result = _patched(text, [{"op": "remove", "path": ["nodes", "(machine).a"]}])
        assert result == "createMachine({ states: { b: {} } })"

    def test_remove_last(self) -> None:
        text = "createMachine({ states: { a: {}, b: {} } })"
        result = _patched(text, [{"op": "remove", "path": ["nodes", "(machine).b"]}])
        assert result == "createMachine({ states: { a: {} } })"

    def test_remove_root_rejected(self) -> None:
        with pytest.raises(PatchValidationError):
            _edits("createMachine({})", [{"op": "remove", "path": ["nodes", "(machine)"]}])

    def test_rename(self) -> None:
        text = "createMachine({ initial: 'a', states: { a: { on: { GO: 'a' } } } })"
        result = _patched(text, [_set("(machine).a", "key", "idle")])
        assert result == "createMachine({ initial: 'a', states: { idle: { on: { GO: 'a' } } } })"

    def test_rename_quotes_non_identifiers(self) -> None:
        result = _patched("createMachine({ states: { a: {} } })", [_set("(machine).a", "key", "two words")])
        assert result == 'createMachine({ states: { "two words": {} } })'

    def test_rename_collision(self) -> None:
        with pytest.raises(PatchValidationError):
            _edits("createMachine({ states: { a: {}, b: {} } })", [_set("(machine).a", "key", "b")])


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class TestContextPatches:
    def _ctx(self, op: str, key: str, value: Any = None) -> dict[str, Any]:
        patch: dict[str, Any] = {"op": op, "path": ["data", "context", key]}
        if op != "remove":
            patch["value"] = value
        return patch

    def test_replace_value(self) -> None:
        text = "createMachine({ context: { count: 0 } })"
        assert _patched(text, [self._ctx("replace", "count", 5)]) == "createMachine({ context: { count: 5 } })"

    def test_add_key(self) -> None:
        text = "createMachine({ context: { count: 0 } })"
        result = _patched(text, [self._ctx("add", "name", "x")])
        assert result == 'createMachine({ context: { count: 0, name: "x" } })'

    def test_add_context_property(self) -> None:
        result = _patched("createMachine({ id: 'm' })", [self._ctx("add", "n", 1)])
        assert result == "createMachine({ id: 'm', context: { n: 1 } })"

    def test_function_context(self) -> None:
        text = "createMachine({ context: () => ({ count: 0 }) })"
        result = _patched(text, [self._ctx("replace", "count", 1)])
        assert result == "createMachine({ context: () => ({ count: 1 }) })"

    def test_remove_key(self) -> None:
        text = "createMachine({ context: { count: 0, name: 'x' } })"
        result = _patched(text, [self._ctx("remove", "count")])
        assert result == "createMachine({ context: { name: 'x' } })"

    def test_same_string_is_noop(self) -> None:
        text = "createMachine({ context: { name: 'x' } })"
        assert _edits(text, [self._ctx("replace", "name", "x")]) == []


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


class TestBatches:
    def test_disjoint_patches_combined(self) -> None:
        text = "createMachine({ initial: 'a', states: { a: {}, b: {} } })"
        patches = [_set("(machine)", "initial", "b"), _entry("(machine).b", 0, "hi")]
        result = _patched(text, patches)
        assert result == 'createMachine({ initial: "b", states: { a: {}, b: { entry: "hi" } } })'

    def test_entry_and_exit_on_empty_object(self) -> None:
        patches = [_entry("(machine)", 0, "a"), _entry("(machine)", 0, "b", slot="exit")]
        assert _patched("createMachine({})", patches) == 'createMachine({ entry: "a", exit: "b" })'

    def test_add_two_children(self) -> None:
        patches = [_add("(machine)", "b"), _add("(machine)", "c")]
        result = _patched("createMachine({ states: { a: {} } })", patches)
        assert result == "createMachine({ states: { a: {}, b: {}, c: {} } })"

    def test_add_two_children_multiline(self) -> None:
        text = "createMachine({\n  states: {\n    a: {},\n  },\n});\n"
        result = _patched(text, [_add("(machine)", "b"), _add("(machine)", "c")])
        assert result == "createMachine({\n  states: {\n    a: {},\n    b: {},\n    c: {},\n  },\n});\n"

    def test_add_child_and_set_initial(self) -> None:
        patches = [_add("(machine)", "a"), _set("(machine)", "initial", "a")]
        result = _patched("createMachine({ id: 'x' })", patches)
        assert result == "createMachine({ states: { a: {} }, initial: \"a\", id: 'x' })"

    def test_priority_order_independent_of_patch_order(self) -> None:
        patches = [_set("(machine)", "initial", "a"), _add("(machine)", "a"), _add("(machine)", "b")]
        result = _patched("createMachine({})", patches)
        assert result == 'createMachine({ states: { a: {}, b: {} }, initial: "a" })'

    def test_same_child_added_twice(self) -> None:
        with pytest.raises(PatchValidationError):
            _edits("createMachine({})", [_add("(machine)", "a"), _add("(machine)", "a")])

    def test_two_actions_on_one_shorthand(self) -> None:
        text = "createMachine({ on: { GO: '.a' }, states: { a: {} } })"
        patches = [
            {"op": "add", "path": ["edges", "(machine):GO:0", "data", "actions", 0], "value": "x"},
            {"op": "add", "path": ["edges", "(machine):GO:0", "data", "actions", 1], "value": "y"},
        ]
        result = _patched(text, patches)
        assert "GO: { target: '.a', actions: [\"x\", \"y\"] }" in result

    def test_two_actions_promote_single_value_once(self) -> None:
        patches = [_entry("(machine)", 1, "b"), _entry("(machine)", 2, "c")]
        result = _patched("createMachine({ entry: 'a' })", patches)
        assert result == "createMachine({ entry: ['a', \"b\", \"c\"] })"

    def test_overlapping_patches_conflict(self) -> None:
        patches = [{"op": "remove", "path": ["nodes", "(machine).a"]}, _add("(machine).a", "x")]
        with pytest.raises(PatchConflictError):
            _edits("createMachine({ states: { a: {}, b: {} } })", patches)

    def test_unknown_patch_shape(self) -> None:
        with pytest.raises(PatchValidationError):
            _edits("createMachine({})", [{"op": "move", "path": ["nodes"]}])

    def test_edits_sorted(self) -> None:
        text = "createMachine({ initial: 'a', states: { a: {}, b: {} } })"
        patches = [_entry("(machine).b", 0, "hi"), _set("(machine)", "initial", "b")]
        edits = _edits(text, patches)
        assert [e.start for e in edits] == sorted(e.start for e in edits)
