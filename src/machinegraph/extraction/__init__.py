"""Extraction of state-machine digraphs from machine config literals."""

from machinegraph.extraction.context import ExtractionContext, LexicalTree
from machinegraph.extraction.machine_call import (
    DEFAULT_FACTORY_NAMES,
    MachineCall,
    extract_machine,
    find_machine_calls,
    match_machine_call,
)
from machinegraph.extraction.resolver import resolve_target, resolve_targets
from machinegraph.extraction.state_node import extract_state

__all__ = [
    "DEFAULT_FACTORY_NAMES",
    "ExtractionContext",
    "LexicalTree",
    "MachineCall",
    "extract_machine",
    "extract_state",
    "find_machine_calls",
    "match_machine_call",
    "resolve_target",
    "resolve_targets",
]
