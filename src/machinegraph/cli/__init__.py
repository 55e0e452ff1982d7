"""machinegraph CLI: command-line interface built with Typer and Rich.

- :data:`app` - The main Typer application
- :class:`MachineGraphConfig` - Configuration model
- :func:`setup_logging` - Logging infrastructure
- :class:`CLIError` - Structured error handling
"""

from machinegraph.cli.app import app
from machinegraph.cli.config import MachineGraphConfig, load_config
from machinegraph.cli.errors import CLIError, ConfigError, error_handler
from machinegraph.cli.logging_setup import setup_logging

__all__ = [
    "CLIError",
    "ConfigError",
    "MachineGraphConfig",
    "app",
    "error_handler",
    "load_config",
    "setup_logging",
]
