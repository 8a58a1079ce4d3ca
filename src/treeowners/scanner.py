from __future__ import annotations

import logging
import posixpath
from typing import Callable

from .config import DEFAULT_CONFIG_BRANCH
from .errors import BranchNotFoundError, InvalidOwnerConfigError
from .model import OwnerConfig, OwnerConfigKey
from .paths import full_ref
from .patterns import GLOB
from .store import OwnerConfigStore, StoreSession

logger = logging.getLogger(__name__)

# Returns False to stop the scan.
ConfigVisitor = Callable[[OwnerConfig], bool]
InvalidConfigCallback = Callable[[str, InvalidOwnerConfigError], None]


def ignore_invalid_configs(path: str, error: InvalidOwnerConfigError) -> None:
    logger.debug("ignoring invalid owner config file %s", path)


class OwnerConfigScanner:
    """Visits all owner config files of a branch in tree order."""

    def __init__(self, store: OwnerConfigStore, *, default_config_branch: str = DEFAULT_CONFIG_BRANCH):
        self.store = store
        self.default_config_branch = full_ref(default_config_branch)

    def scan(
        self,
        project: str,
        branch: str,
        visitor: ConfigVisitor,
        on_invalid_config: InvalidConfigCallback = ignore_invalid_configs,
        *,
        include_default_config: bool = False,
        path_glob: str | None = None,
    ) -> None:
        """Calls ``visitor`` for every owner config in ``branch``.

        Unparsable files go to ``on_invalid_config`` and the scan continues.
        With ``include_default_config`` the default config (root of the
        default config branch) is visited first, unless that branch is the one
        being scanned. ``path_glob`` restricts the scan to matching file paths.
        """
        branch = full_ref(branch)
        with self.store.session() as s:
            revision = s.head_of(project, branch)
            if revision is None:
                raise BranchNotFoundError(f"branch {branch} of project {project} not found")

            if include_default_config and branch != self.default_config_branch:
                key = OwnerConfigKey(project, self.default_config_branch, "/")
                if not self._visit(s, key, None, visitor, on_invalid_config):
                    return

            for path in s.list_files(project, revision):
                file_name = posixpath.basename(path)
                if not self.store.naming.matches(file_name):
                    continue
                if path_glob and not GLOB.matches(path_glob, path.lstrip("/")):
                    continue
                key = OwnerConfigKey(project, branch, posixpath.dirname(path), file_name)
                if not self._visit(s, key, revision, visitor, on_invalid_config):
                    return

    def _visit(
        self,
        session: StoreSession,
        key: OwnerConfigKey,
        revision: str | None,
        visitor: ConfigVisitor,
        on_invalid_config: InvalidConfigCallback,
    ) -> bool:
        try:
            config = session.load(key, revision)
        except InvalidOwnerConfigError as e:
            on_invalid_config(e.path, e)
            return True
        if config is None:
            return True
        return bool(visitor(config))

    def contains_any_config(self, project: str, branch: str) -> bool:
        found = False

        def visitor(config: OwnerConfig) -> bool:
            nonlocal found
            found = True
            return False

        self.scan(project, branch, visitor)
        return found

    def config_file_paths(self, project: str, branch: str, *, include_default_config: bool = False) -> list[str]:
        """File paths of all owner configs of the branch, invalid ones included."""
        paths: list[str] = []
        branch = full_ref(branch)

        def visitor(config: OwnerConfig) -> bool:
            path = self.store.file_path(config.key)
            # the default config lives in another branch
            paths.append(path if config.key.branch == branch else f"{config.key.branch}:{path}")
            return True

        self.scan(
            project,
            branch,
            visitor,
            lambda path, error: paths.append(path),
            include_default_config=include_default_config,
        )
        return paths
