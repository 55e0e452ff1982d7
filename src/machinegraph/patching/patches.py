"""Validated structural patch variants.

Raw patches arrive as ``{"op": ..., "path": [...], "value": ...}`` mappings
addressed against an extracted :class:`~machinegraph.models.Digraph`.
:func:`parse_patch` converts each into exactly one explicit variant and
rejects every other shape with :class:`PatchValidationError`.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from machinegraph.exceptions import PatchValidationError
from machinegraph.models.digraph import ROOT_NODE_ID
from machinegraph.models.enums import HistoryType, StateType

PatchOp = Literal["add", "remove", "replace"]


class _PatchBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class AddNodePatch(_PatchBase):
    """Add an empty child state ``key`` under ``parent_id``."""

    node_id: str = Field(..., min_length=1)
    parent_id: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)


class RemoveNodePatch(_PatchBase):
    """Delete a state (and its subtree) from its parent's ``states``."""

    node_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_not_root(self) -> RemoveNodePatch:
        if self.node_id == ROOT_NODE_ID:
            raise ValueError("The root node cannot be removed")
        return self


class RenameNodePatch(_PatchBase):
    """Rename the property key of a state."""

    node_id: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_not_root(self) -> RenameNodePatch:
        if self.node_id == ROOT_NODE_ID:
            raise ValueError("The root node has no key to rename")
        return self


class ReplaceNodeDataPatch(_PatchBase):
    """Set ``initial``, ``type`` or ``history`` of a state (``None`` = default)."""

    node_id: str = Field(..., min_length=1)
    field: Literal["initial", "type", "history"]
    value: Optional[str] = None

    @model_validator(mode="after")
    def validate_value(self) -> ReplaceNodeDataPatch:
        if self.value is None:
            return self
        allowed = {
            "type": {t.value for t in StateType},
            "history": {h.value for h in HistoryType},
        }.get(self.field)
        if allowed is not None and self.value not in allowed:
            raise ValueError(
                f"Invalid {self.field} {self.value!r}; expected one of {sorted(allowed)}"
            )
        return self


class AddNodeActionPatch(_PatchBase):
    """Insert a named action into a state's ``entry`` or ``exit`` list."""

    node_id: str = Field(..., min_length=1)
    slot: Literal["entry", "exit"]
    index: int = Field(..., ge=0)
    action: str = Field(..., min_length=1)


class AddEdgeActionPatch(_PatchBase):
    """Insert a named action into a transition's ``actions`` list."""

    edge_id: str = Field(..., min_length=1)
    index: int = Field(..., ge=0)
    action: str = Field(..., min_length=1)


class ReplaceContextPatch(_PatchBase):
    """Set one key of the root ``context`` to a literal value."""

    key: str = Field(..., min_length=1)
    value: Any = None


class RemoveContextPatch(_PatchBase):
    """Delete one key of the root ``context``."""

    key: str = Field(..., min_length=1)


Patch = Union[
    AddNodePatch,
    RemoveNodePatch,
    RenameNodePatch,
    ReplaceNodeDataPatch,
    AddNodeActionPatch,
    AddEdgeActionPatch,
    ReplaceContextPatch,
    RemoveContextPatch,
]

_MISSING = object()


def _action_name(value: Any) -> Any:
    # {"name": "doStuff"} as exported in Implementation form
    if isinstance(value, Mapping):
        return value.get("name")
    return value


def _build(raw: Mapping[str, Any]) -> Patch:
    op = raw.get("op")
    path = raw.get("path")
    value = raw.get("value", _MISSING)
    if op not in ("add", "remove", "replace"):
        raise PatchValidationError(f"Unknown op {op!r}", raw)
    if not isinstance(path, Sequence) or isinstance(path, str) or not path:
        raise PatchValidationError("Patch path must be a non-empty list", raw)
    path = list(path)
    if value is not _MISSING and op == "remove":
        raise PatchValidationError("'remove' patches take no value", raw)
    if value is _MISSING and op != "remove":
        raise PatchValidationError(f"'{op}' patches require a value", raw)

    section = path[0]
    if section == "nodes" and len(path) == 2:
        node_id = path[1]
        if op == "add":
            if not isinstance(value, Mapping):
                raise PatchValidationError("New node must be an object", raw)
            data = value.get("data") or {}
            return AddNodePatch(
                node_id=node_id, parent_id=value.get("parent_id"), key=data.get("key")
            )
        if op == "remove":
            return RemoveNodePatch(node_id=node_id)

    if section == "nodes" and len(path) == 4 and path[2] == "data" and op == "replace":
        if path[3] == "key":
            return RenameNodePatch(node_id=path[1], key=value)
        if path[3] in ("initial", "type", "history"):
            return ReplaceNodeDataPatch(node_id=path[1], field=path[3], value=value)

    if (
        section == "nodes"
        and len(path) == 5
        and path[2] == "data"
        and path[3] in ("entry", "exit")
        and op == "add"
    ):
        return AddNodeActionPatch(
            node_id=path[1], slot=path[3], index=path[4], action=_action_name(value)
        )

    if (
        section == "edges"
        and len(path) == 5
        and path[2:4] == ["data", "actions"]
        and op == "add"
    ):
        return AddEdgeActionPatch(edge_id=path[1], index=path[4], action=_action_name(value))

    if section == "data" and len(path) == 3 and path[1] == "context":
        if op == "remove":
            return RemoveContextPatch(key=path[2])
        return ReplaceContextPatch(key=path[2], value=value)

    raise PatchValidationError(f"Unsupported patch path {path!r} for op '{op}'", raw)


def parse_patch(raw: Union[Mapping[str, Any], Patch]) -> Patch:
    """Convert one raw patch into its validated variant.

    Raises:
        PatchValidationError: If the patch matches no supported shape or
            its values are invalid.
    """
    if isinstance(raw, _PatchBase):
        return raw  # type: ignore[return-value]
    if not isinstance(raw, Mapping):
        raise PatchValidationError("Patch must be an object", raw)
    try:
        return _build(raw)
    except ValidationError as exc:
        raise PatchValidationError(str(exc), raw) from exc


def parse_patches(raws: Sequence[Union[Mapping[str, Any], Patch]]) -> list[Patch]:
    return [parse_patch(raw) for raw in raws]
