"""Enumerations for the machine digraph data model."""

from enum import Enum


class StateType(str, Enum):
    """Kind of a state node."""

    NORMAL = "normal"
    HISTORY = "history"
    FINAL = "final"
    PARALLEL = "parallel"


class HistoryType(str, Enum):
    """Depth of a history state."""

    SHALLOW = "shallow"
    DEEP = "deep"


class ImplementationKind(str, Enum):
    """What an implementation reference stands for."""

    ACTION = "action"
    ACTOR = "actor"
    GUARD = "guard"


class BlockType(str, Enum):
    """Type classification for reusable configuration blocks."""

    ACTOR = "actor"


class ExtractionErrorKind(str, Enum):
    """Typed tags for recoverable extraction problems."""

    TRANSITION_TARGET_UNRESOLVED = "transition_target_unresolved"
    TRANSITION_PROPERTY_UNHANDLED = "transition_property_unhandled"
    STATE_NODE_UNHANDLED = "state_node_unhandled"
    STATES_PROPERTY_UNHANDLED = "states_property_unhandled"
    ACTION_UNHANDLED = "action_unhandled"
    GUARD_UNHANDLED = "guard_unhandled"
    INVOKE_UNHANDLED = "invoke_unhandled"
    CONTEXT_UNHANDLED = "context_unhandled"
    ACTION_ASSIGN_UNSUPPORTED = "action_assign_unsupported"
    ACTION_RAISE_UNSUPPORTED = "action_raise_unsupported"
    ACTION_LOG_UNSUPPORTED = "action_log_unsupported"
    ACTION_STOP_UNSUPPORTED = "action_stop_unsupported"
    ACTION_SEND_TO_UNSUPPORTED = "action_send_to_unsupported"
