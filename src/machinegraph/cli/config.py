"""machinegraph configuration.

Configuration is read from ``<project>/.machinegraph/config.toml`` (or an
explicit path) and can be overridden with ``MACHINEGRAPH_<FIELD>``
environment variables.  TOML sections are flattened, so both::

    [extraction]
    factory_names = ["createMachine"]

and a top-level ``factory_names = [...]`` are accepted.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from machinegraph.cli.errors import ConfigError
from machinegraph.extraction.machine_call import DEFAULT_FACTORY_NAMES

DEFAULT_CONFIG_DIR = ".machinegraph"
DEFAULT_CONFIG_FILE = "config.toml"
ENV_PREFIX = "MACHINEGRAPH_"


class MachineGraphConfig(BaseModel):
    """Settings shared by all CLI commands."""

    model_config = ConfigDict(extra="ignore")

    project_dir: Path = Field(default_factory=Path.cwd)
    factory_names: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FACTORY_NAMES),
        description="Callee names recognised as machine factories",
    )
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @field_validator("factory_names", mode="before")
    @classmethod
    def split_factory_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [name.strip() for name in value.split(",") if name.strip()]
        return value

    @field_validator("factory_names")
    @classmethod
    def require_factory_names(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("At least one factory name is required")
        return value


def _flatten(data: dict[str, Any]) -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return flat


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``MACHINEGRAPH_*`` variables naming known config fields."""
    result = dict(data)
    fields = MachineGraphConfig.model_fields
    for name, value in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        field = name[len(ENV_PREFIX):].lower()
        if field in fields:
            result[field] = value
    return result


def load_config(
    config_path: Optional[Path] = None,
    project_dir: Optional[Path] = None,
) -> MachineGraphConfig:
    """Load configuration from TOML and the environment.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    project = project_dir or Path.cwd()
    path = config_path or project / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    data: dict[str, Any] = {}
    if path.exists():
        try:
            data = _flatten(tomllib.loads(path.read_text(encoding="utf-8")))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    elif config_path is not None:
        raise ConfigError(f"Configuration file not found: {config_path}")

    data = _apply_env_overrides(data)
    data["project_dir"] = project
    try:
        return MachineGraphConfig(**data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def default_config_toml() -> str:
    names = ", ".join(f'"{name}"' for name in DEFAULT_FACTORY_NAMES)
    return (
        "# machinegraph configuration\n"
        "\n"
        "[extraction]\n"
        f"factory_names = [{names}]\n"
        "\n"
        "[logging]\n"
        'log_level = "INFO"\n'
    )
