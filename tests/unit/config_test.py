"""Tests for loading compiler settings."""

import re
from pathlib import Path

import pytest

from tsbean.config import CompilerSettings, ConfigError, load_settings


def test_defaults_without_config_file() -> None:
    settings = load_settings()

    assert settings == CompilerSettings()
    assert settings.module == ""
    assert settings.registrations == Path("src/types/reflect/registrations.ts")
    assert settings.ambiguous_parent == "warn"
    assert settings.default_parent is None


def test_reads_tsbean_toml_from_working_directory(tmp_path: Path) -> None:
    (tmp_path / "tsbean.toml").write_text(
        'module = "game"\n'
        'output = "build/out.schema"\n'
        'external_types = ["Quaternion"]\n'
        "\n"
        "[type_mappings]\n"
        'Vector9 = "Vector3"\n'
    )

    settings = load_settings()

    assert settings.module == "game"
    assert settings.output == tmp_path.resolve() / "build" / "out.schema"
    assert settings.external_types == ["Quaternion"]
    assert settings.type_mappings == {"Vector9": "Vector3"}


def test_reads_tool_table_from_pyproject(tmp_path: Path) -> None:
    config = tmp_path / "conf" / "pyproject.toml"
    config.parent.mkdir()
    config.write_text('[project]\nname = "x"\n\n[tool.tsbean]\ninput = "src"\nambiguous_parent = "error"\n')

    settings = load_settings(config)

    assert settings.input == tmp_path.resolve() / "conf" / "src"
    assert settings.ambiguous_parent == "error"


def test_config_from_environment_variable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "custom.toml"
    config.write_text('module = "fromenv"\n')
    monkeypatch.setenv("TSBEAN_CONFIG", str(config))

    assert load_settings().module == "fromenv"


def test_environment_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "tsbean.toml").write_text('module = "file"\noutput = "a.schema"\n')
    monkeypatch.setenv("TSBEAN_MODULE", "env")
    monkeypatch.setenv("TSBEAN_OUTPUT", "/abs/b.schema")
    monkeypatch.setenv("TSBEAN_REGISTRATIONS", "regs.ts")

    settings = load_settings()

    assert settings.module == "env"
    assert settings.output == Path("/abs/b.schema")
    assert settings.registrations == Path("regs.ts")


def test_missing_explicit_config_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "absent.toml")


def test_invalid_toml_is_an_error(tmp_path: Path) -> None:
    (tmp_path / "tsbean.toml").write_text("module = \n")
    with pytest.raises(ConfigError, match="Cannot parse"):
        load_settings()


def test_invalid_value_is_an_error(tmp_path: Path) -> None:
    (tmp_path / "tsbean.toml").write_text('ambiguous_parent = "maybe"\n')
    with pytest.raises(ConfigError, match="Invalid settings"):
        load_settings()


def test_virtual_fields_table(tmp_path: Path) -> None:
    (tmp_path / "tsbean.toml").write_text(
        "[[virtual_fields]]\n"
        'class = "Weapon"\n'
        'fields = [{ name = "mainStat", type = "ScalingStat", comment = "Main stat" }]\n'
        "\n"
        "[[virtual_fields]]\n"
        'class = "Weapon"\n'
        'fields = [{ name = "bonus", type = "int", optional = true }]\n'
    )

    settings = load_settings()

    assert [(f.name, f.type, f.optional) for f in settings.virtual_fields_for("Weapon")] == [
        ("mainStat", "ScalingStat", False),
        ("bonus", "int", True),
    ]
    assert settings.virtual_fields_for("Shield") == []


def test_type_discriminator_is_reserved_by_default() -> None:
    pattern = re.compile(CompilerSettings().reserved_field_pattern)
    assert pattern.search("$type")
    assert not pattern.search("type")
