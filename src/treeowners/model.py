"""Value records for owner configs and resolution results.

All records are frozen dataclasses; equality and hashing are by value. Sequences
are stored as tuples so that records stay hashable.
"""
from __future__ import annotations

import dataclasses
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Union

from .paths import absolute_path, full_ref, is_full_ref, relativize, require_absolute, short_ref

# Owner reference that makes every user an owner.
ALL_USERS_WILDCARD = "*"


class ImportMode(Enum):
    """Which parts of an imported owner config are taken over by the importing one."""

    # ignore_parent_owners flag, global rule sets and matching per-file rule sets
    ALL = "ALL"
    # global rule sets only
    GLOBAL_RULE_SETS_ONLY = "GLOBAL_RULE_SETS_ONLY"

    @property
    def import_ignore_parent_owners(self) -> bool:
        return self is ImportMode.ALL

    @property
    def import_global_rule_sets(self) -> bool:
        return True

    @property
    def import_per_file_rule_sets(self) -> bool:
        return self is ImportMode.ALL

    @property
    def resolve_imports_of_import(self) -> bool:
        return True


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


@dataclass(frozen=True)
class OwnerConfigKey:
    project: str
    branch: str
    folder: str
    file_name: str | None = None

    def __post_init__(self) -> None:
        if not self.project:
            raise ValueError("project must not be empty")
        if not is_full_ref(self.branch):
            raise ValueError(f"branch must be full name: {self.branch}")
        object.__setattr__(self, "folder", require_absolute(self.folder, "folder"))

    @classmethod
    def create(cls, project: str, branch: str, folder: str, file_name: str | None = None) -> "OwnerConfigKey":
        return cls(project=project, branch=full_ref(branch), folder=absolute_path(folder), file_name=file_name)

    @property
    def short_branch(self) -> str:
        return short_ref(self.branch)

    def file_path(self, default_file_name: str) -> str:
        return posixpath.join(self.folder, self.file_name or default_file_name)

    def with_file_name(self, file_name: str | None) -> "OwnerConfigKey":
        return dataclasses.replace(self, file_name=file_name)

    def format(self, default_file_name: str | None = None) -> str:
        name = self.file_name or default_file_name
        location = posixpath.join(self.folder, name) if name else self.folder
        return f"{self.project}:{self.short_branch}:{location}"


@dataclass(frozen=True)
class ImportDeclaration:
    """Reference from one owner config to another.

    ``file_path`` is absolute or relative to the folder of the importing config;
    it is resolved when the import is resolved. ``branch`` and ``project``
    default to the ones of the importing config.
    """

    mode: ImportMode
    file_path: str
    branch: str | None = None
    project: str | None = None

    def __post_init__(self) -> None:
        if not self.file_path or self.file_path.endswith("/"):
            raise ValueError(f"import must reference a file: {self.file_path!r}")
        if self.branch is not None and not is_full_ref(self.branch):
            raise ValueError(f"branch must be full name: {self.branch}")

    @classmethod
    def create(
        cls,
        mode: ImportMode,
        file_path: str,
        *,
        branch: str | None = None,
        project: str | None = None,
    ) -> "ImportDeclaration":
        return cls(mode=mode, file_path=file_path, branch=full_ref(branch) if branch else None, project=project)

    @property
    def folder(self) -> str:
        return posixpath.dirname(self.file_path)

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.file_path)

    def with_mode(self, mode: ImportMode) -> "ImportDeclaration":
        return dataclasses.replace(self, mode=mode)

    def format(self) -> str:
        prefix = ""
        if self.project:
            prefix += f"{self.project}:"
        if self.branch:
            prefix += f"{self.branch}:"
        return prefix + self.file_path


@dataclass(frozen=True, eq=False)
class OwnerRuleSet:
    """Owners for the files matching any of ``path_expressions``, or for all files if there are none.

    Path expressions, owners and imports keep their order for display but
    compare as sets.
    """

    path_expressions: tuple[str, ...] = ()
    owners: tuple[str, ...] = ()
    ignore_global_and_parent_owners: bool = False
    imports: tuple[ImportDeclaration, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "path_expressions", _unique(self.path_expressions))
        object.__setattr__(self, "owners", _unique(o.strip() for o in self.owners))
        object.__setattr__(self, "imports", tuple(dict.fromkeys(self.imports)))
        if self.ignore_global_and_parent_owners and not self.path_expressions:
            raise ValueError("ignore_global_and_parent_owners requires path expressions")

    def _identity(self) -> tuple:
        return (
            frozenset(self.path_expressions),
            frozenset(self.owners),
            self.ignore_global_and_parent_owners,
            frozenset(self.imports),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OwnerRuleSet):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    @property
    def is_global(self) -> bool:
        return not self.path_expressions

    def with_owner(self, email: str) -> "OwnerRuleSet":
        return dataclasses.replace(self, owners=self.owners + (email,))

    def without_owner(self, email: str) -> "OwnerRuleSet":
        return dataclasses.replace(self, owners=tuple(o for o in self.owners if o != email))


@dataclass(frozen=True)
class OwnerConfig:
    key: OwnerConfigKey
    revision: str | None = None
    ignore_parent_owners: bool = False
    rule_sets: tuple[OwnerRuleSet, ...] = ()
    imports: tuple[ImportDeclaration, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rule_sets", tuple(dict.fromkeys(self.rule_sets)))
        object.__setattr__(self, "imports", tuple(dict.fromkeys(self.imports)))

    @property
    def is_empty(self) -> bool:
        """Nothing left that a config file would need to store."""
        return not self.rule_sets and not self.imports and not self.ignore_parent_owners

    def global_rule_sets(self) -> tuple[OwnerRuleSet, ...]:
        return tuple(rs for rs in self.rule_sets if rs.is_global)

    def per_file_rule_sets(self) -> tuple[OwnerRuleSet, ...]:
        return tuple(rs for rs in self.rule_sets if not rs.is_global)

    def relativize(self, path: str) -> str:
        return relativize(self.key.folder, path)

    def with_revision(self, revision: str) -> "OwnerConfig":
        if self.revision is not None and self.revision != revision:
            raise ValueError(f"revision of {self.key.format()} is already set to {self.revision}")
        return dataclasses.replace(self, revision=revision)

    def replace(self, **changes) -> "OwnerConfig":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class Identity:
    """A concrete account that an owner reference resolved to."""

    account_id: int
    email: str
    name: str | None = None

    def display(self) -> str:
        return f"{self.name} <{self.email}>" if self.name else self.email


@dataclass(frozen=True)
class ResolvedImport:
    importing_key: OwnerConfigKey
    imported_key: OwnerConfigKey
    declaration: ImportDeclaration

    resolved = True


@dataclass(frozen=True)
class UnresolvedImport:
    importing_key: OwnerConfigKey
    imported_key: OwnerConfigKey
    declaration: ImportDeclaration
    message: str

    resolved = False

    def format(self) -> str:
        return (
            f"The import of {self.imported_key.format()} in {self.importing_key.format()} "
            f"cannot be resolved: {self.message}"
        )


ImportResult = Union[ResolvedImport, UnresolvedImport]


@dataclass(frozen=True)
class InvalidConfig:
    path: str
    message: str


@dataclass(frozen=True)
class PathOwnersResult:
    """One owner config evaluated for one path (imports resolved, parents not considered)."""

    path: str
    config_key: OwnerConfigKey
    ignore_parent_owners: bool
    rule_sets: tuple[OwnerRuleSet, ...]
    resolved_imports: tuple[ResolvedImport, ...] = ()
    unresolved_imports: tuple[UnresolvedImport, ...] = ()
    messages: tuple[str, ...] = ()

    @property
    def has_unresolved_imports(self) -> bool:
        return bool(self.unresolved_imports)

    def owner_references(self) -> tuple[str, ...]:
        return _unique(owner for rs in self.rule_sets for owner in rs.owners)


@dataclass(frozen=True)
class OwnerResolverResult:
    path: str
    owners: tuple[Identity, ...] = ()
    owned_by_all_users: bool = False
    has_unresolved_owners: bool = False
    resolved_imports: tuple[ResolvedImport, ...] = ()
    unresolved_imports: tuple[UnresolvedImport, ...] = ()
    invalid_configs: tuple[InvalidConfig, ...] = ()
    messages: tuple[str, ...] = ()
    # best (smallest) distance of the owning folder per owner, see scoring.DISTANCE
    distances: dict[Identity, int] = field(default_factory=dict, hash=False)
    max_distance: int = 0

    @property
    def has_unresolved_imports(self) -> bool:
        return bool(self.unresolved_imports)

    @property
    def has_invalid_configs(self) -> bool:
        return bool(self.invalid_configs)

    def has_relevant_definitions(self) -> bool:
        """Whether any owners are defined for the path, resolvable or not."""
        return bool(self.owners) or self.owned_by_all_users or self.has_unresolved_owners or self.has_unresolved_imports

    def emails(self) -> list[str]:
        return [o.email for o in self.owners]
