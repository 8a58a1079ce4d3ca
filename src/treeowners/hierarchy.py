from __future__ import annotations

import logging
from typing import Callable

from .config import DEFAULT_CONFIG_BRANCH
from .errors import InvalidOwnerConfigError
from .model import OwnerConfig, OwnerConfigKey
from .paths import ancestor_folders, full_ref, parent_folder, require_absolute
from .store import OwnerConfigStore, StoreSession

logger = logging.getLogger(__name__)

# Returns False to stop the walk.
ConfigVisitor = Callable[[OwnerConfig], bool]
InvalidConfigCallback = Callable[[str, InvalidOwnerConfigError], None]


def warn_invalid_config(path: str, error: InvalidOwnerConfigError) -> None:
    logger.warning("skipping invalid owner config %s: %s", path, error.message)


class OwnerConfigHierarchy:
    """Walks the owner configs of a file from its folder up to the root.

    The nearest config is visited first. The walk stops when the visitor returns
    False or when a visited config ignores its parent owners. If enabled, the
    default config (root of the default config branch) is visited after the
    root folder.
    """

    def __init__(
        self,
        store: OwnerConfigStore,
        *,
        enable_default_config: bool = False,
        default_config_branch: str = DEFAULT_CONFIG_BRANCH,
    ):
        self.store = store
        self.enable_default_config = enable_default_config
        self.default_config_branch = full_ref(default_config_branch)

    def visit(
        self,
        project: str,
        branch: str,
        file_path: str,
        visitor: ConfigVisitor,
        on_invalid_config: InvalidConfigCallback = warn_invalid_config,
        *,
        session: StoreSession | None = None,
    ) -> None:
        file_path = require_absolute(file_path, "file_path")
        branch = full_ref(branch)
        if session is None:
            with self.store.session() as s:
                self._walk(s, project, branch, file_path, visitor, on_invalid_config)
        else:
            self._walk(session, project, branch, file_path, visitor, on_invalid_config)

    def _walk(
        self,
        session: StoreSession,
        project: str,
        branch: str,
        file_path: str,
        visitor: ConfigVisitor,
        on_invalid_config: InvalidConfigCallback,
    ) -> None:
        # all folders are read from the same snapshot
        revision = session.head_of(project, branch)
        if revision is not None:
            for folder in ancestor_folders(parent_folder(file_path)):
                key = OwnerConfigKey(project, branch, folder)
                if not self._visit(session, key, revision, visitor, on_invalid_config):
                    return
        else:
            logger.debug("branch %s of %s doesn't exist", branch, project)

        if self.enable_default_config and branch != self.default_config_branch:
            key = OwnerConfigKey(project, self.default_config_branch, "/")
            self._visit(session, key, None, visitor, on_invalid_config)

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
        logger.debug("visiting owner config %s", key.format())
        if not visitor(config):
            return False
        if config.ignore_parent_owners:
            logger.debug("%s ignores parent owners", key.format())
            return False
        return True
