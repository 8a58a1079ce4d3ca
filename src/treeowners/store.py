from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

from .backends import OwnerConfigParser
from .config import Settings
from .errors import BranchNotFoundError, InvalidOwnerConfigError, StorageError, TransientStorageError
from .model import ImportDeclaration, OwnerConfig, OwnerConfigKey, OwnerRuleSet
from .naming import FileNaming
from .storage import Signature, TreeRepository, TreeStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")

RuleSetModification = Callable[[Sequence[OwnerRuleSet]], Sequence[OwnerRuleSet]]
ImportModification = Callable[[Sequence[ImportDeclaration]], Sequence[ImportDeclaration]]


def keep(items: Sequence) -> tuple:
    return tuple(items)


def clear(items: Sequence) -> tuple:
    return ()


def append(*new_items) -> Callable[[Sequence], tuple]:
    return lambda items: tuple(items) + tuple(new_items)


def set_to(*new_items) -> Callable[[Sequence], tuple]:
    return lambda items: tuple(new_items)


def remove(*old_items) -> Callable[[Sequence], tuple]:
    return lambda items: tuple(i for i in items if i not in old_items)


def _only(rule_sets: Sequence[OwnerRuleSet]) -> OwnerRuleSet:
    if len(rule_sets) != 1:
        raise ValueError(f"expected exactly one rule set, got {len(rule_sets)}")
    return rule_sets[0]


def add_to_only_set(email: str) -> RuleSetModification:
    def apply(rule_sets: Sequence[OwnerRuleSet]) -> tuple[OwnerRuleSet, ...]:
        rs = _only(rule_sets)
        return (rs if email in rs.owners else rs.with_owner(email),)

    return apply


def remove_from_only_set(email: str) -> RuleSetModification:
    def apply(rule_sets: Sequence[OwnerRuleSet]) -> tuple[OwnerRuleSet, ...]:
        return (_only(rule_sets).without_owner(email),)

    return apply


@dataclass(frozen=True)
class OwnerConfigUpdate:
    """Changes to apply to an owner config; the defaults leave it unchanged."""

    ignore_parent_owners: bool | None = None
    rule_set_modification: RuleSetModification = keep
    import_modification: ImportModification = keep

    def apply(self, config: OwnerConfig) -> OwnerConfig:
        ignore_parent = config.ignore_parent_owners if self.ignore_parent_owners is None else self.ignore_parent_owners
        return config.replace(
            revision=None,
            ignore_parent_owners=ignore_parent,
            rule_sets=tuple(self.rule_set_modification(config.rule_sets)),
            imports=tuple(self.import_modification(config.imports)),
        )


def with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Calls ``fn``, retrying on TransientStorageError with exponential backoff."""
    attempt = 1
    while True:
        try:
            return fn()
        except TransientStorageError as e:
            if attempt >= max_attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.info("retrying after transient storage error (attempt %d/%d): %s", attempt, max_attempts, e)
            sleep(delay)
            attempt += 1


class StoreSession:
    """Keeps repositories open across several loads of one top-level operation."""

    def __init__(self, store: "OwnerConfigStore"):
        self.store = store
        self._stack = ExitStack()
        self._repos: dict[str, TreeRepository | None] = {}

    def repository(self, project: str) -> TreeRepository | None:
        if project not in self._repos:
            if not self.store.storage.has_project(project):
                self._repos[project] = None
            else:
                self._repos[project] = self._stack.enter_context(self.store.storage.open(project))
        return self._repos[project]

    def head_of(self, project: str, branch: str) -> str | None:
        repo = self.repository(project)
        return repo.head_of(branch) if repo is not None else None

    def list_files(self, project: str, revision: str) -> list[str]:
        repo = self.repository(project)
        if repo is None:
            raise StorageError(f"project {project} not found")
        return repo.list_files(revision)

    def load(self, key: OwnerConfigKey, revision: str | None = None) -> OwnerConfig | None:
        """Loads the owner config of ``key`` from ``revision`` (default: tip of the branch).

        Returns None if the project, the branch or the file doesn't exist, or if
        the key names an unsupported file name. Raises RevisionNotFoundError for
        an unknown explicit revision and InvalidOwnerConfigError for unparsable content.
        """
        store = self.store
        if key.file_name is not None and not store.naming.matches(key.file_name):
            # can happen for imports, users see it when the configs are checked
            logger.warning("Cannot load owner config %s: unsupported file name", key.format())
            return None
        repo = self.repository(key.project)
        if repo is None:
            return None
        if revision is None:
            revision = repo.head_of(key.branch)
            if revision is None:
                logger.debug("branch %s of %s doesn't exist", key.branch, key.project)
                return None
        path = store.file_path(key)
        blob = repo.read_blob(revision, path)
        if blob is None:
            return None
        try:
            text = blob.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidOwnerConfigError(path, f"not UTF-8 encoded: {e}") from e
        try:
            return store.parser.parse(key, text, revision)
        except InvalidOwnerConfigError as e:
            raise InvalidOwnerConfigError(path, e.message) from e

    def close(self) -> None:
        self._stack.close()

    def __enter__(self) -> "StoreSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class OwnerConfigStore:
    def __init__(
        self,
        storage: TreeStorage,
        parser: OwnerConfigParser,
        naming: FileNaming,
        *,
        server_identity: Signature = Signature("treeowners", "treeowners@localhost"),
        max_retries: int = 3,
    ):
        self.storage = storage
        self.parser = parser
        self.naming = naming
        self.server_identity = server_identity
        self.max_retries = max_retries

    @classmethod
    def from_settings(cls, storage: TreeStorage, settings: Settings) -> "OwnerConfigStore":
        return cls(
            storage,
            settings.get_backend().parser,
            settings.naming(),
            server_identity=Signature(settings.server_name, settings.server_email),
            max_retries=settings.max_retries,
        )

    def file_path(self, key: OwnerConfigKey) -> str:
        return key.file_path(self.naming.file_name())

    def session(self) -> StoreSession:
        return StoreSession(self)

    def load(self, key: OwnerConfigKey, revision: str | None = None) -> OwnerConfig | None:
        with self.session() as s:
            return s.load(key, revision)

    def upsert(
        self,
        key: OwnerConfigKey,
        update: OwnerConfigUpdate,
        acting_identity: Signature | None = None,
    ) -> OwnerConfig | None:
        """Creates, updates or deletes the owner config of ``key``.

        Writes at most one commit and none if nothing changes. An update that
        leaves nothing to store deletes the file. Returns the stored config, or
        None if there is none afterwards.
        """
        if key.file_name is not None and not self.naming.matches(key.file_name):
            raise ValueError(f"unsupported owner config file name: {key.file_name}")
        return with_retry(lambda: self._upsert(key, update, acting_identity), max_attempts=self.max_retries + 1)

    def _upsert(self, key: OwnerConfigKey, update: OwnerConfigUpdate, acting_identity: Signature | None) -> OwnerConfig | None:
        with self.session() as s:
            repo = s.repository(key.project)
            head = repo.head_of(key.branch) if repo is not None else None
            if repo is None or head is None:
                raise BranchNotFoundError(f"branch {key.branch} of {key.project} does not exist")

            current = s.load(key, head)
            original = current.replace(revision=None) if current is not None else OwnerConfig(key=key)
            updated = update.apply(original)
            if updated == original:
                logger.debug("owner config %s unchanged, nothing to commit", key.format())
                return current

            content = self.parser.format(updated)
            if current is None and not content:
                return None
            path = self.file_path(key)
            if current is not None and content and repo.read_blob(head, path) == content.encode("utf-8"):
                logger.debug("owner config %s formats to its current content, nothing to commit", key.format())
                return current
            if current is None:
                action = "Create"
            elif not content:
                action = "Delete"
            else:
                action = "Update"
            revision = repo.commit(
                key.branch,
                head,
                {path: content.encode("utf-8") if content else None},
                author=acting_identity or self.server_identity,
                committer=self.server_identity,
                message=f"{action} owner config",
            )
            logger.info("%s owner config %s (revision %s)", action, path, revision)
            return updated.with_revision(revision) if content else None
