from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .backends import DEFAULT_BACKEND, Backend, get_backend
from .errors import ConfigError, ParseError
from .naming import FileNaming
from .paths import full_ref
from .patterns import PathExpressionMatcher, get_matcher

DEFAULT_SETTINGS_FILE = "treeowners.yaml"
ENV_PREFIX = "TREEOWNERS_"
DEFAULT_CONFIG_BRANCH = "refs/meta/config"


@dataclass(frozen=True)
class Settings:
    backend: str = DEFAULT_BACKEND
    # overrides the matcher of the backend
    path_expressions: str | None = None
    file_name: str | None = None
    file_extension: str | None = None
    file_prefix_pattern: str | None = None
    file_suffix_pattern: str | None = None
    enable_default_config: bool = True
    default_config_branch: str = DEFAULT_CONFIG_BRANCH
    allowed_email_domains: tuple[str, ...] = ()
    enforce_visibility: bool = True
    max_import_depth: int = 32
    max_retries: int = 3
    server_name: str = "treeowners"
    server_email: str = "treeowners@localhost"
    source: str | None = field(default=None, compare=False)

    def get_backend(self) -> Backend:
        return get_backend(self.backend)

    def matcher(self) -> PathExpressionMatcher:
        if self.path_expressions:
            return get_matcher(self.path_expressions)
        return self.get_backend().matcher

    def naming(self) -> FileNaming:
        return self.get_backend().naming(
            file_name=self.file_name,
            prefix_pattern=self.file_prefix_pattern,
            suffix_pattern=self.file_suffix_pattern,
            extension=self.file_extension,
        )


_FIELDS = {f.name: f for f in dataclasses.fields(Settings) if f.name != "source"}


def _coerce(name: str, value: Any, *, source: str) -> Any:
    default = _FIELDS[name].default
    if value is None:
        return None if default is None else default
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0", "yes", "no"):
            return value.strip().lower() in ("true", "1", "yes")
        raise ConfigError(f"{source}: '{name}' must be true or false")
    if isinstance(default, int):
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{source}: '{name}' must be an integer") from None
        if number < 0:
            raise ConfigError(f"{source}: '{name}' must not be negative")
        return number
    if isinstance(default, tuple):
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
            raise ConfigError(f"{source}: '{name}' must be a list of strings")
        return tuple(x.strip().lower() for x in value if x.strip())
    if not isinstance(value, str):
        raise ConfigError(f"{source}: '{name}' must be a string")
    if default is None:
        return value.strip() or None
    return value.strip()


def parse_settings_obj(data: Any, *, source: str, env: Mapping[str, str] | None = None) -> Settings:
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"{source}: expected a mapping")

    values: dict[str, Any] = {}
    for name, raw in data.items():
        key = str(name).replace("-", "_")
        if key not in _FIELDS:
            raise ConfigError(f"{source}: unknown setting '{name}'")
        values[key] = _coerce(key, raw, source=source)

    for env_name, raw in (env or {}).items():
        if not env_name.startswith(ENV_PREFIX):
            continue
        key = env_name[len(ENV_PREFIX):].lower()
        if key not in _FIELDS:
            raise ConfigError(f"environment: unknown setting '{env_name}'")
        values[key] = _coerce(key, raw, source=env_name)

    if "default_config_branch" in values:
        values["default_config_branch"] = full_ref(values["default_config_branch"])
    settings = Settings(source=source, **values)
    # fail early on unknown ids
    settings.get_backend()
    settings.matcher()
    return settings


def load_settings(path: Path | None = None, env: Mapping[str, str] | None = None) -> Settings:
    """Loads the settings file (missing file = defaults) and applies TREEOWNERS_* overrides."""
    env = os.environ if env is None else env
    if path is None or not path.exists():
        return parse_settings_obj({}, source=str(path) if path else "<defaults>", env=env)
    try:
        obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ParseError(f"Failed to parse settings file {path}: {e}") from e
    return parse_settings_obj(obj, source=str(path), env=env)
