"""Exit codes and error reporting for the ``machinegraph`` CLI.

Failures are rendered as a red Rich panel on stderr so that stdout only
ever carries the JSON payload of ``extract`` and ``patch``.

Exit codes:
    0 - Success
    1 - Failure reading sources, extracting or patching
    2 - Bad configuration
    130 - Interrupted by the user
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Generator, Optional

from rich.console import Console
from rich.panel import Panel

from machinegraph.exceptions import (
    MachineGraphError,
    MachineNotFoundError,
    PatchConflictError,
    PatchError,
)

EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

_HINTS: dict[type[MachineGraphError], str] = {
    MachineNotFoundError: "Run `machinegraph extract FILE` to list the machines of a file.",
    PatchConflictError: "Split the batch so no two patches edit the same source range.",
    PatchError: "Patches are computed against the last extraction; re-extract and retry.",
}


class CLIError(Exception):
    """A user-facing failure with its own exit code.

    Parameters
    ----------
    message:
        Text shown in the error panel.
    exit_code:
        Process exit code, :data:`EXIT_GENERAL_ERROR` unless given.
    """

    def __init__(self, message: str, exit_code: int = EXIT_GENERAL_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class ConfigError(CLIError):
    """``config.toml`` or a ``MACHINEGRAPH_*`` variable could not be used."""

    def __init__(self, message: str) -> None:
        super().__init__(message, exit_code=EXIT_CONFIG_ERROR)


def _hint_for(exc: MachineGraphError) -> Optional[str]:
    for cls in type(exc).__mro__:
        hint = _HINTS.get(cls)
        if hint is not None:
            return hint
    return None


def _report(out: Console, title: str, message: str, hint: Optional[str] = None) -> None:
    body = f"[bold red]{message}[/bold red]"
    if hint:
        body += f"\n[dim]{hint}[/dim]"
    out.print(Panel(body, title=f"[red]{title}[/red]", border_style="red", expand=False))


@contextmanager
def error_handler(console: Console | None = None) -> Generator[None, None, None]:
    """Turn exceptions raised inside the block into a panel and an exit code.

    :class:`MachineGraphError` subclasses are titled with their class name
    and carry a short hint where one applies.

    Raises
    ------
    SystemExit
        Whenever the block raised.
    """
    out = console if console is not None else Console(stderr=True)
    try:
        yield
    except CLIError as exc:
        title = "Configuration Error" if exc.exit_code == EXIT_CONFIG_ERROR else "Error"
        _report(out, title, exc.message)
        sys.exit(exc.exit_code)
    except MachineGraphError as exc:
        _report(out, type(exc).__name__, str(exc), _hint_for(exc))
        sys.exit(EXIT_GENERAL_ERROR)
    except KeyboardInterrupt:
        out.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        _report(out, f"Unexpected {type(exc).__name__}", str(exc))
        sys.exit(EXIT_GENERAL_ERROR)
