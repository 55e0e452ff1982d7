"""Unit tests for machinegraph.cli.app - the main Typer application."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from machinegraph.cli.app import app
from machinegraph.cli.config import DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILE

runner = CliRunner()

TOGGLE = "createMachine({ initial: 'on', states: { on: { on: { FLIP: 'off' } }, off: {} } })\n"


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestVersion:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_version_short_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert "machinegraph" in result.output


class TestHelp:
    def test_help_flag(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "extract" in result.output
        assert "patch" in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        # Typer's no_args_is_help exits with code 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output

    def test_verbose_flag_accepted(self) -> None:
        result = runner.invoke(app, ["-v", "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


class TestInit:
    def test_creates_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", str(tmp_path)])
        assert result.exit_code == 0
        assert (tmp_path / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE).is_file()

    def test_already_initialised(self, tmp_path: Path) -> None:
        (tmp_path / DEFAULT_CONFIG_DIR).mkdir()
        result = runner.invoke(app, ["init", str(tmp_path)])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


class TestExtract:
    def test_writes_json(self, tmp_path: Path) -> None:
        source = tmp_path / "toggle.ts"
        source.write_text(TOGGLE, encoding="utf-8")
        output = tmp_path / "out.json"
        result = runner.invoke(app, ["extract", str(source), "--output", str(output)])
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data[0]["file"] == str(source)
        machine = data[0]["machines"][0]
        assert machine["errors"] == []
        assert set(machine["digraph"]["nodes"]) == {"(machine)", "(machine).on", "(machine).off"}
        assert "ast_paths" not in machine

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["extract", str(tmp_path / "nope.ts")])
        assert result.exit_code == 1

    def test_config_factory_names(self, tmp_path: Path) -> None:
        source = tmp_path / "m.ts"
        source.write_text("build({ states: { a: {} } })", encoding="utf-8")
        config = tmp_path / "mg.toml"
        config.write_text('factory_names = ["build"]\n', encoding="utf-8")
        output = tmp_path / "out.json"
        result = runner.invoke(
            app, ["--config", str(config), "extract", str(source), "-o", str(output)]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert len(data[0]["machines"]) == 1

    def test_bad_config(self, tmp_path: Path) -> None:
        source = tmp_path / "m.ts"
        source.write_text(TOGGLE, encoding="utf-8")
        config = tmp_path / "bad.toml"
        config.write_text("factory_names = [", encoding="utf-8")
        result = runner.invoke(app, ["--config", str(config), "extract", str(source)])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# patch
# ---------------------------------------------------------------------------


class TestPatch:
    def _write(self, tmp_path: Path, patches) -> tuple[Path, Path]:
        source = tmp_path / "toggle.ts"
        source.write_text(TOGGLE, encoding="utf-8")
        patch_file = tmp_path / "patches.json"
        patch_file.write_text(json.dumps(patches), encoding="utf-8")
        return source, patch_file

    def test_write_applies_edits(self, tmp_path: Path) -> None:
        patches = [{"op": "replace", "path": ["nodes", "(machine)", "data", "initial"], "value": "off"}]
        source, patch_file = self._write(tmp_path, patches)
        result = runner.invoke(app, ["patch", str(source), str(patch_file), "--write"])
        assert result.exit_code == 0, result.output
        assert "initial: \"off\"" in source.read_text(encoding="utf-8")

    def test_without_write_leaves_file(self, tmp_path: Path) -> None:
        patches = [{"op": "replace", "path": ["nodes", "(machine)", "data", "initial"], "value": "off"}]
        source, patch_file = self._write(tmp_path, patches)
        result = runner.invoke(app, ["patch", str(source), str(patch_file)])
        assert result.exit_code == 0
        assert source.read_text(encoding="utf-8") == TOGGLE

    def test_invalid_patch(self, tmp_path: Path) -> None:
        source, patch_file = self._write(tmp_path, [{"op": "move", "path": ["nodes"]}])
        result = runner.invoke(app, ["patch", str(source), str(patch_file)])
        assert result.exit_code == 1
        assert source.read_text(encoding="utf-8") == TOGGLE

    def test_patches_must_be_list(self, tmp_path: Path) -> None:
        source, patch_file = self._write(tmp_path, {"op": "add"})
        result = runner.invoke(app, ["patch", str(source), str(patch_file)])
        assert result.exit_code == 1

    def test_machine_index_out_of_range(self, tmp_path: Path) -> None:
        source, patch_file = self._write(tmp_path, [])
        result = runner.invoke(app, ["patch", str(source), str(patch_file), "--machine", "3"])
        assert result.exit_code == 1
