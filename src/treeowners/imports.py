"""Resolution of owner config imports.

Imports are expanded with a worklist. Every pending import carries the chain
of configs that led to it; an import of a config that is already on its chain
is a cycle and is recorded as unresolved instead of being followed.
"""
from __future__ import annotations

import logging
import posixpath
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from .errors import InvalidOwnerConfigError
from .model import (
    ImportDeclaration,
    ImportMode,
    ImportResult,
    OwnerConfig,
    OwnerConfigKey,
    OwnerRuleSet,
    ResolvedImport,
    UnresolvedImport,
)
from .paths import join_folder, relativize
from .patterns import PathExpressionMatcher
from .store import OwnerConfigStore, StoreSession

logger = logging.getLogger(__name__)

CYCLE_MESSAGE = "import cycle detected"


def matches_path(rule_set: OwnerRuleSet, relative_path: str, matcher: PathExpressionMatcher) -> bool:
    return any(matcher.matches(expr, relative_path) for expr in rule_set.path_expressions)


def matching_per_file_rule_sets(
    config: OwnerConfig, relative_path: str, matcher: PathExpressionMatcher
) -> tuple[OwnerRuleSet, ...]:
    return tuple(rs for rs in config.per_file_rule_sets() if matches_path(rs, relative_path, matcher))


def imported_key(importing_key: OwnerConfigKey, declaration: ImportDeclaration) -> OwnerConfigKey:
    """Key of the config that ``declaration`` in the config of ``importing_key`` refers to."""
    path = join_folder(importing_key.folder, declaration.file_path)
    return OwnerConfigKey(
        project=declaration.project or importing_key.project,
        branch=declaration.branch or importing_key.branch,
        folder=posixpath.dirname(path),
        file_name=posixpath.basename(path),
    )


@dataclass(frozen=True)
class _PendingImport:
    importing_key: OwnerConfigKey
    declaration: ImportDeclaration
    chain: tuple[str, ...]
    level: int


@dataclass
class ImportExpansion:
    """What a set of imports contributes to the importing config."""

    ignore_parent_owners: bool = False
    rule_sets: list[OwnerRuleSet] = field(default_factory=list)
    resolved: list[ResolvedImport] = field(default_factory=list)
    unresolved: list[UnresolvedImport] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


class ImportResolver:
    def __init__(self, store: OwnerConfigStore, matcher: PathExpressionMatcher, *, max_import_depth: int = 32):
        self.store = store
        self.matcher = matcher
        self.max_import_depth = max_import_depth

    def _id(self, key: OwnerConfigKey) -> str:
        return f"{key.project}:{key.branch}:{self.store.file_path(key)}"

    def _load(
        self,
        session: StoreSession,
        importing_key: OwnerConfigKey,
        declaration: ImportDeclaration,
        key: OwnerConfigKey,
        revisions: dict[tuple[str, str], str],
    ) -> OwnerConfig | UnresolvedImport:
        if session.repository(key.project) is None:
            return UnresolvedImport(importing_key, key, declaration, f"project {key.project} not found")
        revision = revisions.get((key.project, key.branch))
        logger.debug("import %s from %s", key.format(), f"revision {revision}" if revision else "current revision")
        try:
            config = session.load(key, revision)
        except InvalidOwnerConfigError as e:
            return UnresolvedImport(importing_key, key, declaration, f"invalid owner config: {e.message}")
        if config is None:
            return UnresolvedImport(
                importing_key, key, declaration, f"owner config does not exist (revision = {revision or 'current'})"
            )
        return config

    def resolve(
        self, config: OwnerConfig, declaration: ImportDeclaration, *, session: StoreSession | None = None
    ) -> ImportResult:
        """Resolves one import of ``config`` without following the imports of the imported config."""
        key = imported_key(config.key, declaration)
        revisions = {(config.key.project, config.key.branch): config.revision} if config.revision else {}
        if session is None:
            with self.store.session() as s:
                outcome = self._load(s, config.key, declaration, key, revisions)
        else:
            outcome = self._load(session, config.key, declaration, key, revisions)
        if isinstance(outcome, UnresolvedImport):
            return outcome
        return ResolvedImport(config.key, key, declaration)

    def expand(
        self,
        config: OwnerConfig,
        declarations: Iterable[ImportDeclaration],
        path: str,
        *,
        session: StoreSession,
    ) -> ImportExpansion:
        """Resolves ``declarations`` of ``config`` transitively for the file ``path``.

        Per-file rule sets of imported configs are matched against ``path``
        relative to the folder of ``config``.
        """
        expansion = ImportExpansion()
        relative_path = relativize(config.key.folder, path)
        revisions: dict[tuple[str, str], str] = {}
        if config.revision:
            revisions[(config.key.project, config.key.branch)] = config.revision

        queue = deque(_PendingImport(config.key, d, (self._id(config.key),), 1) for d in declarations)
        while queue:
            item = queue.popleft()
            declaration = item.declaration
            key = imported_key(item.importing_key, declaration)
            expansion.messages.append(f"{item.importing_key.format()} imports {key.format()} ({declaration.mode.value})")

            if self._id(key) in item.chain:
                logger.debug("import cycle: %s -> %s", " -> ".join(item.chain), self._id(key))
                expansion.unresolved.append(UnresolvedImport(item.importing_key, key, declaration, CYCLE_MESSAGE))
                continue
            if item.level > self.max_import_depth:
                expansion.unresolved.append(
                    UnresolvedImport(
                        item.importing_key, key, declaration, f"import depth exceeds {self.max_import_depth}"
                    )
                )
                continue

            outcome = self._load(session, item.importing_key, declaration, key, revisions)
            if isinstance(outcome, UnresolvedImport):
                expansion.messages.append(f"  failed to resolve: {outcome.message}")
                expansion.unresolved.append(outcome)
                continue

            imported = outcome
            if imported.revision:
                revisions.setdefault((key.project, key.branch), imported.revision)
            expansion.resolved.append(ResolvedImport(item.importing_key, key, declaration))

            mode = declaration.mode
            if mode.import_ignore_parent_owners and imported.ignore_parent_owners:
                expansion.ignore_parent_owners = True
            if mode.import_global_rule_sets:
                expansion.rule_sets.extend(imported.global_rule_sets())
            matching: tuple[OwnerRuleSet, ...] = ()
            if mode.import_per_file_rule_sets:
                matching = matching_per_file_rule_sets(imported, relative_path, self.matcher)
                for rs in matching:
                    expansion.messages.append(f"  per-file rule set with path expressions {list(rs.path_expressions)} matches")
                expansion.rule_sets.extend(matching)

            if mode.resolve_imports_of_import:
                transitive = list(imported.imports)
                # imports of per-file rule sets only contribute global rule sets
                transitive.extend(d.with_mode(ImportMode.GLOBAL_RULE_SETS_ONLY) for rs in matching for d in rs.imports)
                if mode is ImportMode.GLOBAL_RULE_SETS_ONLY:
                    transitive = [d.with_mode(ImportMode.GLOBAL_RULE_SETS_ONLY) for d in transitive]
                chain = item.chain + (self._id(key),)
                queue.extend(_PendingImport(key, d, chain, item.level + 1) for d in transitive)

        return expansion
