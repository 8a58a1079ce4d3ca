"""Access to versioned source trees.

A ``TreeStorage`` hands out one ``TreeRepository`` per project. Repositories
are opened per top-level operation and closed on every exit path
(``with storage.open(project) as repo: ...``).

Paths are absolute (``/foo/OWNERS``), branches are full ref names.
"""
from __future__ import annotations

import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import ContextManager, Iterator, Mapping, Protocol

from .errors import BranchNotFoundError, ConcurrentUpdateError, GitError, RevisionNotFoundError, StorageError
from .gitutils import BlobReader, git_commit_changes, git_ls_tree, git_resolve_commit, git_update_ref
from .paths import absolute_path, full_ref

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signature:
    name: str
    email: str


@dataclass(frozen=True)
class CommitInfo:
    revision: str
    parent: str | None
    message: str
    author: Signature
    committer: Signature


class TreeRepository(Protocol):
    project: str

    def head_of(self, branch: str) -> str | None:
        ...

    def has_revision(self, revision: str) -> bool:
        ...

    def read_blob(self, revision: str, path: str) -> bytes | None:
        """Raises RevisionNotFoundError if the revision does not exist."""
        ...

    def list_files(self, revision: str) -> list[str]:
        """All file paths of the revision in tree order."""
        ...

    def commit(
        self,
        branch: str,
        parent: str,
        changes: Mapping[str, bytes | None],
        *,
        author: Signature,
        committer: Signature,
        message: str,
    ) -> str:
        """Raises BranchNotFoundError, or ConcurrentUpdateError if ``parent`` is not the tip."""
        ...


class TreeStorage(Protocol):
    def has_project(self, project: str) -> bool:
        ...

    def open(self, project: str) -> ContextManager[TreeRepository]:
        ...


def _relative(path: str) -> str:
    return absolute_path(path).lstrip("/")


class _MemoryRepository:
    def __init__(self, project: str):
        self.project = project
        self.refs: dict[str, str] = {}
        self.trees: dict[str, dict[str, bytes]] = {}
        self.commits: dict[str, CommitInfo] = {}

    def head_of(self, branch: str) -> str | None:
        return self.refs.get(full_ref(branch))

    def has_revision(self, revision: str) -> bool:
        return revision in self.trees

    def _tree(self, revision: str) -> dict[str, bytes]:
        try:
            return self.trees[revision]
        except KeyError:
            raise RevisionNotFoundError(f"revision {revision} not found in {self.project}") from None

    def read_blob(self, revision: str, path: str) -> bytes | None:
        return self._tree(revision).get(_relative(path))

    def list_files(self, revision: str) -> list[str]:
        return ["/" + p for p in sorted(self._tree(revision))]

    def _write(self, parent: str | None, tree: dict[str, bytes], info: dict) -> str:
        h = hashlib.sha1()
        h.update((parent or "").encode("utf-8"))
        for path in sorted(tree):
            h.update(path.encode("utf-8") + b"\0" + hashlib.sha1(tree[path]).digest())
        h.update(repr(sorted(info.items())).encode("utf-8"))
        h.update(str(len(self.commits)).encode("utf-8"))
        revision = h.hexdigest()
        self.trees[revision] = tree
        self.commits[revision] = CommitInfo(revision=revision, parent=parent, **info)
        return revision

    def commit(
        self,
        branch: str,
        parent: str,
        changes: Mapping[str, bytes | None],
        *,
        author: Signature,
        committer: Signature,
        message: str,
    ) -> str:
        branch = full_ref(branch)
        tip = self.refs.get(branch)
        if tip is None:
            raise BranchNotFoundError(f"branch {branch} not found in {self.project}")
        if tip != parent:
            raise ConcurrentUpdateError(f"branch {branch} moved from {parent} to {tip}")
        tree = dict(self.trees[parent])
        for path, content in changes.items():
            if content is None:
                tree.pop(_relative(path), None)
            else:
                tree[_relative(path)] = content
        revision = self._write(parent, tree, {"message": message, "author": author, "committer": committer})
        self.refs[branch] = revision
        return revision


class InMemoryTreeStorage:
    """Tree storage kept in memory, for tests and for embedding."""

    def __init__(self) -> None:
        self._projects: dict[str, _MemoryRepository] = {}

    def create_project(self, project: str) -> None:
        self._projects.setdefault(project, _MemoryRepository(project))

    def create_branch(
        self,
        project: str,
        branch: str,
        files: Mapping[str, str | bytes] | None = None,
        *,
        message: str = "Initial commit",
    ) -> str:
        self.create_project(project)
        repo = self._projects[project]
        tree = {_relative(p): c.encode("utf-8") if isinstance(c, str) else c for p, c in (files or {}).items()}
        ident = Signature("Administrator", "admin@localhost")
        revision = repo._write(None, tree, {"message": message, "author": ident, "committer": ident})
        repo.refs[full_ref(branch)] = revision
        return revision

    def log(self, project: str, branch: str) -> list[CommitInfo]:
        """Commits of the branch, newest first."""
        repo = self._projects[project]
        out = []
        revision = repo.refs.get(full_ref(branch))
        while revision is not None:
            info = repo.commits[revision]
            out.append(info)
            revision = info.parent
        return out

    def has_project(self, project: str) -> bool:
        return project in self._projects

    @contextmanager
    def open(self, project: str) -> Iterator[_MemoryRepository]:
        try:
            repo = self._projects[project]
        except KeyError:
            raise StorageError(f"project {project} not found") from None
        yield repo


class _GitRepository:
    def __init__(self, project: str, root: Path, reader: BlobReader):
        self.project = project
        self.root = root
        self._reader = reader

    def head_of(self, branch: str) -> str | None:
        return git_resolve_commit(self.root, full_ref(branch))

    def has_revision(self, revision: str) -> bool:
        return git_resolve_commit(self.root, revision) is not None

    def _require(self, revision: str) -> None:
        if not self.has_revision(revision):
            raise RevisionNotFoundError(f"revision {revision} not found in {self.project}")

    def read_blob(self, revision: str, path: str) -> bytes | None:
        self._require(revision)
        try:
            return self._reader.read(revision, _relative(path))
        except GitError as e:
            raise StorageError(str(e)) from e

    def list_files(self, revision: str) -> list[str]:
        self._require(revision)
        try:
            return ["/" + p for p in sorted(git_ls_tree(self.root, revision))]
        except GitError as e:
            raise StorageError(str(e)) from e

    def commit(
        self,
        branch: str,
        parent: str,
        changes: Mapping[str, bytes | None],
        *,
        author: Signature,
        committer: Signature,
        message: str,
    ) -> str:
        branch = full_ref(branch)
        tip = self.head_of(branch)
        if tip is None:
            raise BranchNotFoundError(f"branch {branch} not found in {self.project}")
        if tip != parent:
            raise ConcurrentUpdateError(f"branch {branch} moved from {parent} to {tip}")
        try:
            revision = git_commit_changes(
                self.root,
                parent,
                {_relative(p): c for p, c in changes.items()},
                author=(author.name, author.email),
                committer=(committer.name, committer.email),
                message=message,
            )
            git_update_ref(self.root, branch, revision, parent)
        except GitError as e:
            if self.head_of(branch) != parent:
                raise ConcurrentUpdateError(f"branch {branch} was updated concurrently") from e
            raise StorageError(str(e)) from e
        logger.debug("committed %s to %s in %s", revision, branch, self.project)
        return revision


class GitTreeStorage:
    """Tree storage backed by local git repositories, one per project."""

    def __init__(self, repositories: Mapping[str, Path]):
        self.repositories = dict(repositories)

    def has_project(self, project: str) -> bool:
        return project in self.repositories

    @contextmanager
    def open(self, project: str) -> Iterator[_GitRepository]:
        try:
            root = self.repositories[project]
        except KeyError:
            raise StorageError(f"project {project} not found") from None
        try:
            reader = BlobReader(root)
        except GitError as e:
            raise StorageError(str(e)) from e
        try:
            yield _GitRepository(project, root, reader)
        finally:
            reader.close()
