import json
import logging
import re
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_COMMENT_OR_STRING = re.compile(r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


class CompilerOptions(BaseModel):
    base_url: str | None = Field(default=None, alias="baseUrl")
    paths: dict[str, list[str]] = {}


class TsConfig(BaseModel):
    path: Path | None = None
    extends: str | None = None
    compiler_options: CompilerOptions = Field(default_factory=CompilerOptions, alias="compilerOptions")

    @property
    def directory(self) -> Path:
        return self.path.parent if self.path is not None else Path.cwd()

    @property
    def base_directory(self) -> Path:
        base_url = self.compiler_options.base_url
        return (self.directory / base_url).resolve() if base_url else self.directory


def strip_json_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments and trailing commas from tsconfig JSON."""

    def _keep_strings(match: re.Match[str]) -> str:
        token = match.group(0)
        return token if token.startswith('"') else ""

    return _TRAILING_COMMA.sub(r"\1", _COMMENT_OR_STRING.sub(_keep_strings, text))


def find_tsconfig(start: Path) -> Path | None:
    directory = start if start.is_dir() else start.parent
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / "tsconfig.json"
        if candidate.is_file():
            return candidate
    return None


def load_tsconfig(path: Path) -> TsConfig:
    data = json.loads(strip_json_comments(path.read_text(encoding="utf-8")))
    config = TsConfig.model_validate({**data, "path": path.resolve()})
    if config.extends and config.extends.startswith("."):
        parent_path = (path.parent / config.extends).resolve()
        if parent_path.suffix != ".json":
            parent_path = parent_path.with_name(parent_path.name + ".json")
        if parent_path.is_file():
            parent = load_tsconfig(parent_path)
            options = config.compiler_options
            if options.base_url is None and parent.compiler_options.base_url is not None:
                # baseUrl is relative to the config that declares it
                inherited = parent.base_directory
                options = options.model_copy(update={"base_url": str(inherited)})
            if not options.paths:
                options = options.model_copy(update={"paths": parent.compiler_options.paths})
            config = config.model_copy(update={"compiler_options": options})
        else:
            logger.warning("tsconfig %s extends missing file %s", path, parent_path)
    return config
