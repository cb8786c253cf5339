"""Tests for the tsbean command line."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from tsbean.cli.app import app

runner = CliRunner()

MODEL = """\
/** A monster. */
export class Monster {
  name: string;
  level: number;
}
"""


@pytest.mark.parametrize("flag", ["-h", "--help"])
def test_help_flags(flag: str) -> None:
    result = runner.invoke(app, [flag])
    assert result.exit_code == 0
    assert "Usage" in result.output
    assert "--registrations" in result.output


def test_compile_directory(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    (source / "monster.ts").write_text(MODEL)
    output = tmp_path / "out" / "generated.schema"

    result = runner.invoke(app, ["--input", str(source), "--output", str(output), "--module", "game"])

    assert result.exit_code == 0, result.output
    text = output.read_text()
    assert 'module "game" {' in text
    assert '  bean "Monster" comment="A monster." {' in text
    assert '    var "level" type="int"' in text


def test_unmappable_type_fails_without_writing(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    (source / "monster.ts").write_text("export class Monster {\n  pos: Vector9;\n}\n")
    output = tmp_path / "generated.schema"
    output.write_text("previous\n")

    result = runner.invoke(app, ["--input", str(source), "--output", str(output)])

    assert result.exit_code == 1
    assert "Vector9" in result.output
    assert "type_mappings" in result.output
    assert output.read_text() == "previous\n"


def test_missing_input_fails(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--input", str(tmp_path / "nowhere"), "--output", str(tmp_path / "x.schema")])

    assert result.exit_code == 1
    assert "not found" in result.output
    assert not (tmp_path / "x.schema").exists()


def test_missing_registration_file_fails(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--registrations", str(tmp_path / "regs.ts")])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_missing_config_file_fails(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--config", str(tmp_path / "absent.toml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_config_file_supplies_settings(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    (source / "monster.ts").write_text(MODEL)
    (tmp_path / "tsbean.toml").write_text('module = "fromfile"\ninput = "src"\noutput = "gen.schema"\n')

    result = runner.invoke(app, [])

    assert result.exit_code == 0, result.output
    assert 'module "fromfile" {' in (tmp_path / "gen.schema").read_text()
