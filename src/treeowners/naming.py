from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cached_property


@dataclass(frozen=True)
class FileNaming:
    """Which file names are owner config files.

    A name matches if it is the base name, optionally decorated as
    ``<prefix>_<base>`` and/or ``<base>_<suffix>`` (prefix and suffix given as
    regexes), optionally followed by ``.<extension>``.
    """

    base_file_name: str = "OWNERS"
    prefix_pattern: str | None = None
    suffix_pattern: str | None = None
    extension: str | None = None

    def __post_init__(self) -> None:
        if not self.base_file_name or "/" in self.base_file_name:
            raise ValueError(f"invalid owner config file name: {self.base_file_name!r}")

    @cached_property
    def _regex(self) -> re.Pattern[str]:
        pat = re.escape(self.base_file_name)
        if self.prefix_pattern:
            pat = f"(?:(?:{self.prefix_pattern})_)?" + pat
        if self.suffix_pattern:
            pat += f"(?:_(?:{self.suffix_pattern}))?"
        if self.extension:
            pat += f"(?:\\.{re.escape(self.extension)})?"
        return re.compile(pat)

    def file_name(self) -> str:
        """Name used when a key does not specify one."""
        if self.extension:
            return f"{self.base_file_name}.{self.extension}"
        return self.base_file_name

    def matches(self, file_name: str) -> bool:
        return self._regex.fullmatch(file_name) is not None
