from __future__ import annotations

import logging

from .imports import ImportResolver, matches_path, matching_per_file_rule_sets
from .model import ImportMode, OwnerConfig, OwnerRuleSet, PathOwnersResult
from .paths import relativize, require_absolute
from .patterns import PathExpressionMatcher
from .store import StoreSession

logger = logging.getLogger(__name__)


class PathOwners:
    """Evaluates a single owner config for one file path, imports included."""

    def __init__(self, import_resolver: ImportResolver, matcher: PathExpressionMatcher):
        self.import_resolver = import_resolver
        self.matcher = matcher

    def resolve(self, config: OwnerConfig, path: str, *, session: StoreSession) -> PathOwnersResult:
        path = require_absolute(path)
        relative_path = relativize(config.key.folder, path)
        logger.debug("resolve owners for %s from owner config %s", path, config.key.format())
        messages: list[str] = []

        ignore_parent = config.ignore_parent_owners
        rule_sets: list[OwnerRuleSet] = list(config.global_rule_sets())
        own_per_file = matching_per_file_rule_sets(config, relative_path, self.matcher)
        for rs in own_per_file:
            messages.append(f"per-file rule set with path expressions {list(rs.path_expressions)} matches")
            rule_sets.append(rs)

        global_imports = self.import_resolver.expand(config, config.imports, path, session=session)
        ignore_parent = ignore_parent or global_imports.ignore_parent_owners
        rule_sets.extend(global_imports.rule_sets)
        messages.extend(global_imports.messages)

        # a matching per-file stop wins over the folder's own settings
        stopping = next(
            (
                rs
                for rs in rule_sets
                if rs.ignore_global_and_parent_owners and matches_path(rs, relative_path, self.matcher)
            ),
            None,
        )
        if stopping is not None:
            messages.append(
                f"matching per-file rule set {list(stopping.path_expressions)} ignores global and parent owners"
            )
            ignore_parent = True
            rule_sets = [rs for rs in rule_sets if not rs.is_global]

        # imported per-file rule sets had their imports expanded with their own config
        per_file_imports = [d.with_mode(ImportMode.GLOBAL_RULE_SETS_ONLY) for rs in own_per_file for d in rs.imports]
        per_file = self.import_resolver.expand(config, per_file_imports, path, session=session)
        rule_sets.extend(per_file.rule_sets)
        messages.extend(per_file.messages)

        return PathOwnersResult(
            path=path,
            config_key=config.key,
            ignore_parent_owners=ignore_parent,
            rule_sets=tuple(dict.fromkeys(rule_sets)),
            resolved_imports=tuple(global_imports.resolved + per_file.resolved),
            unresolved_imports=tuple(global_imports.unresolved + per_file.unresolved),
            messages=tuple(messages),
        )
