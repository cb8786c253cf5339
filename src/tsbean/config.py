import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tsbean.models import VirtualField

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "tsbean.toml"
DEFAULT_RESERVED_FIELD_PATTERN = r"_nominal_|^_is_trigger_combinator$|^_trigger_type$|^\$type$"

_PATH_FIELDS = ("registrations", "output", "input", "tsconfig")


class ConfigError(Exception):
    pass


class VirtualFieldGroup(BaseModel):
    """One `[[virtual_fields]]` table: extra fields appended to the bean named `class`."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(alias="class")
    fields: list[VirtualField] = []


class CompilerSettings(BaseModel):
    module: str = ""
    registrations: Path = Path("src/types/reflect/registrations.ts")
    output: Path = Path("configs/defines/reflect/generated.schema")
    input: Path | None = None
    tsconfig: Path | None = None
    banner: list[str] = ["Generated by tsbean from TypeScript declarations.", "Do not edit by hand."]
    marker_interface: str = "EntityTrigger"
    polymorphic_base: str = "TsTriggerClass"
    default_parent: str | None = None
    ambiguous_parent: Literal["warn", "error"] = "warn"
    reserved_field_pattern: str = DEFAULT_RESERVED_FIELD_PATTERN
    wrappers: list[str] = ["ObjectFactory", "Readonly", "NonNullable"]
    type_mappings: dict[str, str] = Field(default_factory=dict)
    external_types: list[str] = []
    virtual_fields: list[VirtualFieldGroup] = []

    def virtual_fields_for(self, name: str) -> list[VirtualField]:
        return [field for group in self.virtual_fields if group.class_name == name for field in group.fields]


def load_settings(config_path: Path | None = None) -> CompilerSettings:
    """Build settings from an optional TOML file plus environment overrides.

    The file is ``config_path``, else ``$TSBEAN_CONFIG``, else ``tsbean.toml``
    in the working directory when present. Relative paths inside the file are
    relative to the file. ``TSBEAN_OUTPUT``, ``TSBEAN_REGISTRATIONS`` and
    ``TSBEAN_MODULE`` override the file.
    """
    explicit = config_path or _env_path("TSBEAN_CONFIG")
    path = explicit or Path(DEFAULT_CONFIG_FILE)
    values: dict[str, Any] = {}
    if path.is_file():
        values = _read_toml(path)
        logger.debug("Loaded settings from %s", path)
    elif explicit is not None:
        raise ConfigError(f"Config file not found: {explicit}")

    env_overrides = {
        "output": os.getenv("TSBEAN_OUTPUT"),
        "registrations": os.getenv("TSBEAN_REGISTRATIONS"),
        "module": os.getenv("TSBEAN_MODULE"),
    }
    values.update({key: value for key, value in env_overrides.items() if value is not None})
    try:
        return CompilerSettings.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {path}: {exc}") from exc


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc
    # accept both a bare file and a [tool.tsbean] table (pyproject.toml)
    values = dict(data.get("tool", {}).get("tsbean", data))
    for key in _PATH_FIELDS:
        if isinstance(values.get(key), str):
            values[key] = str(path.resolve().parent / values[key])
    return values


def _env_path(name: str) -> Path | None:
    value = os.getenv(name)
    return Path(value) if value else None
