from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import ConfigError
from .model import OwnerConfig, OwnerConfigKey
from .naming import FileNaming
from .owners_file import FindOwnersParser
from .patterns import FIND_OWNERS_GLOB, GLOB, PathExpressionMatcher
from .yaml_format import YamlParser


class OwnerConfigParser(Protocol):
    name: str

    def parse(self, key: OwnerConfigKey, text: str | None, revision: str | None = None) -> OwnerConfig:
        """Raises InvalidOwnerConfigError if the text is not a valid owner config."""
        ...

    def format(self, config: OwnerConfig) -> str:
        """Returns "" for an empty config."""
        ...


@dataclass(frozen=True)
class Backend:
    id: str
    file_name: str
    parser: OwnerConfigParser
    matcher: PathExpressionMatcher

    def naming(
        self,
        *,
        file_name: str | None = None,
        prefix_pattern: str | None = None,
        suffix_pattern: str | None = None,
        extension: str | None = None,
    ) -> FileNaming:
        return FileNaming(
            base_file_name=file_name or self.file_name,
            prefix_pattern=prefix_pattern,
            suffix_pattern=suffix_pattern,
            extension=extension,
        )


FIND_OWNERS = Backend(id="find-owners", file_name="OWNERS", parser=FindOwnersParser(), matcher=FIND_OWNERS_GLOB)
YAML = Backend(id="yaml", file_name="OWNERS.yaml", parser=YamlParser(), matcher=GLOB)

BACKENDS: dict[str, Backend] = {b.id: b for b in (FIND_OWNERS, YAML)}

DEFAULT_BACKEND = FIND_OWNERS.id


def get_backend(backend_id: str) -> Backend:
    try:
        return BACKENDS[backend_id.strip().lower().replace("_", "-")]
    except KeyError:
        raise ConfigError(f"unknown backend '{backend_id}' (expected one of: {', '.join(sorted(BACKENDS))})") from None
