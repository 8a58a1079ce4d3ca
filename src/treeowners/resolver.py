"""Resolution of the owners of a file.

The owner configs of all folders from the file up to the root are evaluated,
nearest first, until a config (or one of its matching rule sets or imports)
ignores the parent owners. The owner references that were found are then
resolved to identities.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .config import DEFAULT_CONFIG_BRANCH, Settings
from .errors import (
    InternalError,
    InvalidOwnerConfigError,
    RevisionNotFoundError,
    StorageError,
    TransientStorageError,
    TreeOwnersError,
)
from .hierarchy import OwnerConfigHierarchy, warn_invalid_config
from .identity import IdentityResolver
from .imports import ImportResolver
from .model import (
    ALL_USERS_WILDCARD,
    Identity,
    InvalidConfig,
    OwnerConfig,
    OwnerResolverResult,
    ResolvedImport,
    UnresolvedImport,
)
from .path_owners import PathOwners
from .paths import depth, full_ref, require_absolute
from .patterns import PathExpressionMatcher
from .scoring import (
    DISTANCE,
    IS_REVIEWER,
    IS_REVIEWER_SCORING_VALUE,
    NO_REVIEWER_SCORING_VALUE,
    ScoredOwner,
    Scoring,
    Scorings,
)
from .storage import TreeStorage
from .store import OwnerConfigStore

logger = logging.getLogger(__name__)


@dataclass
class _Collected:
    # owner reference -> best distance, in the order in which they were found
    references: dict[str, int] = field(default_factory=dict)
    owned_by_all_users: bool = False
    resolved_imports: list[ResolvedImport] = field(default_factory=list)
    unresolved_imports: list[UnresolvedImport] = field(default_factory=list)
    invalid_configs: list[InvalidConfig] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


class OwnerResolver:
    def __init__(
        self,
        store: OwnerConfigStore,
        identities: IdentityResolver,
        matcher: PathExpressionMatcher,
        *,
        enable_default_config: bool = False,
        default_config_branch: str = DEFAULT_CONFIG_BRANCH,
        max_import_depth: int = 32,
    ):
        self.store = store
        self.identities = identities
        self.hierarchy = OwnerConfigHierarchy(
            store, enable_default_config=enable_default_config, default_config_branch=default_config_branch
        )
        self.path_owners = PathOwners(ImportResolver(store, matcher, max_import_depth=max_import_depth), matcher)

    @classmethod
    def from_settings(cls, storage: TreeStorage, settings: Settings, identities: IdentityResolver) -> "OwnerResolver":
        return cls(
            OwnerConfigStore.from_settings(storage, settings),
            identities,
            settings.matcher(),
            enable_default_config=settings.enable_default_config,
            default_config_branch=settings.default_config_branch,
            max_import_depth=settings.max_import_depth,
        )

    def resolve(self, project: str, branch: str, file_path: str, *, trace: bool = False) -> OwnerResolverResult:
        """Resolves the owners of ``file_path`` in ``branch``.

        Invalid owner configs, unresolved imports and unresolvable owner
        references are reported in the result. Storage failures, other than an
        unknown revision or a retryable one, and unexpected failures are raised
        as InternalError.
        """
        if project is None or branch is None:
            raise TypeError("project and branch are required")
        path = require_absolute(file_path, "file_path")
        branch = full_ref(branch)
        try:
            return self._resolve(project, branch, path, trace)
        except (RevisionNotFoundError, TransientStorageError):
            raise
        except StorageError as e:
            raise self._internal_error(project, branch, path, e) from e
        except TreeOwnersError:
            raise
        except Exception as e:
            raise self._internal_error(project, branch, path, e) from e

    def _internal_error(self, project: str, branch: str, path: str, e: Exception) -> InternalError:
        detail = f"failed to resolve owners of {path} in {project}:{branch}: {e!r}"
        logger.exception(detail)
        return InternalError("Failed to resolve owners", detail)

    def _resolve(self, project: str, branch: str, path: str, trace: bool) -> OwnerResolverResult:
        max_distance = depth(path)
        collected = _Collected()

        def on_invalid_config(config_path: str, error: InvalidOwnerConfigError) -> None:
            warn_invalid_config(config_path, error)
            collected.invalid_configs.append(InvalidConfig(config_path, error.message))

        with self.store.session() as session:

            def visitor(config: OwnerConfig) -> bool:
                result = self.path_owners.resolve(config, path, session=session)
                # the default config counts as the most distant one
                if config.key.branch != branch:
                    distance = max_distance
                else:
                    distance = max_distance - depth(config.key.folder)
                collected.messages.append(f"resolve code owners for {path} from {config.key.format()}")
                collected.messages.extend(result.messages)
                for reference in result.owner_references():
                    if reference == ALL_USERS_WILDCARD:
                        collected.owned_by_all_users = True
                        continue
                    best = collected.references.get(reference)
                    if best is None or distance < best:
                        collected.references[reference] = distance
                collected.resolved_imports.extend(result.resolved_imports)
                collected.unresolved_imports.extend(result.unresolved_imports)
                if result.ignore_parent_owners:
                    collected.messages.append(f"parent owners of {config.key.format()} are ignored")
                    return False
                return True

            self.hierarchy.visit(project, branch, path, visitor, on_invalid_config, session=session)

        owners: dict[Identity, int] = {}
        has_unresolved_owners = False
        if collected.owned_by_all_users:
            collected.messages.append("found the all users wildcard, owners are not resolved")
        else:
            for reference, distance in collected.references.items():
                lookup = self.identities.lookup(reference)
                collected.messages.append(lookup.message)
                if lookup.identity is None:
                    has_unresolved_owners = True
                    continue
                best = owners.get(lookup.identity)
                if best is None or distance < best:
                    owners[lookup.identity] = distance

        logger.debug("owners of %s in %s:%s: %s", path, project, branch, [o.email for o in owners])
        return OwnerResolverResult(
            path=path,
            owners=tuple(owners),
            owned_by_all_users=collected.owned_by_all_users,
            has_unresolved_owners=has_unresolved_owners,
            resolved_imports=tuple(collected.resolved_imports),
            unresolved_imports=tuple(collected.unresolved_imports),
            invalid_configs=tuple(collected.invalid_configs),
            messages=tuple(collected.messages) if trace else (),
            distances=owners,
            max_distance=max_distance,
        )

    def suggest(
        self,
        project: str,
        branch: str,
        file_path: str,
        *,
        reviewers: Iterable[str] = (),
        limit: int | None = None,
    ) -> list[ScoredOwner]:
        """Owners of ``file_path``, best first.

        Owners defined closer to the file rank higher; owners that already
        review the change rank higher still.
        """
        result = self.resolve(project, branch, file_path)
        reviewer_emails = {r.lower() for r in reviewers}
        distance = Scoring(DISTANCE, max_value=result.max_distance)
        is_reviewer = Scoring(IS_REVIEWER)
        for owner in result.owners:
            distance.put_value(owner, result.distances[owner])
            is_reviewer.put_value(
                owner,
                IS_REVIEWER_SCORING_VALUE if owner.email.lower() in reviewer_emails else NO_REVIEWER_SCORING_VALUE,
            )
        scorings = Scorings(distance, is_reviewer)
        ranked = [ScoredOwner(owner, scorings.total(owner)) for owner in scorings.sort(result.owners)]
        return ranked if limit is None else ranked[:limit]
