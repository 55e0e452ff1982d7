"""machinegraph -- state-machine graphs extracted from source, edited back into source."""

__version__ = "0.1.0"

from machinegraph.models import Digraph, ExtractionError, MachineExtraction
from machinegraph.project import MachineProject
from machinegraph.syntax import SourceFile, SourceProgram, parse_source

__all__ = [
    "Digraph",
    "ExtractionError",
    "MachineExtraction",
    "MachineProject",
    "SourceFile",
    "SourceProgram",
    "parse_source",
]
