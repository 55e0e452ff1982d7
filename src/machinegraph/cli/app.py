"""machinegraph CLI application entry point.

Built with `Typer <https://typer.tiangolo.com/>`_ and
`Rich <https://rich.readthedocs.io/>`_.  JSON results go to stdout,
logs and error panels to stderr.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from machinegraph.cli.config import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    MachineGraphConfig,
    default_config_toml,
    load_config,
)
from machinegraph.cli.errors import CLIError, error_handler
from machinegraph.cli.logging_setup import setup_logging
from machinegraph.patching.edits import apply_text_edits
from machinegraph.project import MachineProject
from machinegraph.syntax.source import SourceProgram

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="machinegraph",
    help="Extract state-machine graphs from source and patch them back into source.",
    add_completion=False,
    no_args_is_help=True,
)

_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        from machinegraph import __version__

        _console.print(f"machinegraph {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) output.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration TOML file.",
    ),
) -> None:
    """Global options for the machinegraph CLI."""
    setup_logging("DEBUG" if verbose else "INFO")
    ctx.obj = {"verbose": verbose, "config_path": config}


def _load(ctx: typer.Context) -> MachineGraphConfig:
    """Load config for a command and reconfigure logging from it."""
    state: dict[str, Any] = ctx.obj or {}
    cfg = load_config(config_path=state.get("config_path"))
    level = "DEBUG" if state.get("verbose") else cfg.log_level
    setup_logging(level, cfg.log_file)
    return cfg


def _emit(payload: Any, output: Optional[Path]) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    _console.print(f"[green]Wrote {output}[/green]")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@app.command()
def init(
    path: Optional[Path] = typer.Argument(
        None,
        help="Project directory. Defaults to the current directory.",
    ),
) -> None:
    """Create ``.machinegraph/config.toml`` with default settings."""
    with error_handler(_console):
        project_dir = (path or Path.cwd()).resolve()
        if not project_dir.is_dir():
            raise CLIError(f"Not a directory: {project_dir}")
        config_dir = project_dir / DEFAULT_CONFIG_DIR
        if config_dir.exists():
            raise CLIError(f"Already initialised: {config_dir} exists.")
        config_dir.mkdir(parents=True)
        (config_dir / DEFAULT_CONFIG_FILE).write_text(default_config_toml(), encoding="utf-8")
        _console.print(f"[green]Initialised machinegraph project at {project_dir}[/green]")


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


@app.command()
def extract(
    ctx: typer.Context,
    files: list[Path] = typer.Argument(..., help="Source files to scan for machines."),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the JSON result to this file instead of stdout.",
    ),
) -> None:
    """Extract the digraph of every machine in FILES as JSON.

    Example::

        machinegraph extract src/machines/*.ts -o graphs.json
    """
    with error_handler(_console):
        cfg = _load(ctx)
        missing = [str(f) for f in files if not f.is_file()]
        if missing:
            raise CLIError(f"File(s) not found: {', '.join(missing)}")

        project = MachineProject(SourceProgram.from_files(files), cfg.factory_names)
        results = []
        for file in files:
            machines = project.get_machines_in_file(str(file))
            results.append(
                {
                    "file": str(file),
                    "machines": [
                        m.model_dump(mode="json", exclude={"ast_paths"}) for m in machines
                    ],
                }
            )
            error_count = sum(len(m.errors) for m in machines)
            logger.info(
                "%s: %d machine(s), %d extraction error(s)", file, len(machines), error_count
            )
        _emit(results, output)


# ---------------------------------------------------------------------------
# patch
# ---------------------------------------------------------------------------


@app.command()
def patch(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Source file containing the machine."),
    patches_json: Path = typer.Argument(..., help="JSON file holding a list of patches."),
    machine: int = typer.Option(0, "--machine", "-m", help="Index of the machine in FILE."),
    write: bool = typer.Option(
        False,
        "--write",
        "-w",
        help="Apply the edits to FILE instead of printing them.",
    ),
) -> None:
    """Apply structural patches to a machine in FILE.

    Example::

        machinegraph patch toggle.ts patches.json --write
    """
    with error_handler(_console):
        cfg = _load(ctx)
        for path in (file, patches_json):
            if not path.is_file():
                raise CLIError(f"File not found: {path}")
        try:
            patches = json.loads(patches_json.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CLIError(f"Invalid JSON in {patches_json}: {exc}") from exc
        if not isinstance(patches, list):
            raise CLIError(f"{patches_json} must contain a JSON list of patches")

        program = SourceProgram.from_files([file])
        project = MachineProject(program, cfg.factory_names)
        edits = project.apply_patches(str(file), machine, patches)

        if not write:
            _emit([edit.model_dump() for edit in edits], None)
            return
        source = program.get_source_file(str(file))
        file.write_text(apply_text_edits(source.text, edits), encoding="utf-8")
        _console.print(f"[green]Applied {len(edits)} edit(s) to {file}[/green]")
