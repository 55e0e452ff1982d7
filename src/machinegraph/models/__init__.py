"""machinegraph data models for extracted state machines."""

from machinegraph.models.digraph import (
    ROOT_NODE_ID,
    Block,
    Digraph,
    DigraphData,
    ExpressionPlaceholder,
    Implementation,
    Implementations,
    StateNode,
    StateNodeData,
    Transition,
    TransitionData,
)
from machinegraph.models.enums import (
    BlockType,
    ExtractionErrorKind,
    HistoryType,
    ImplementationKind,
    StateType,
)
from machinegraph.models.errors import (
    AstPaths,
    ExtractionError,
    MachineExtraction,
    SourceRange,
)

__all__ = [
    "AstPaths",
    "Block",
    "BlockType",
    "Digraph",
    "DigraphData",
    "ExpressionPlaceholder",
    "ExtractionError",
    "ExtractionErrorKind",
    "HistoryType",
    "Implementation",
    "ImplementationKind",
    "Implementations",
    "MachineExtraction",
    "ROOT_NODE_ID",
    "SourceRange",
    "StateNode",
    "StateNodeData",
    "StateType",
    "Transition",
    "TransitionData",
]
