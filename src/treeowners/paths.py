from __future__ import annotations

import posixpath
from pathlib import Path, PurePosixPath
from typing import Iterable

REFS_PREFIX = "refs/"
REFS_HEADS = "refs/heads/"


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def normalize_repo_path(path: str, repo_root: Path | None = None) -> str:
    """Normalize a repository file path given by a user or by git.

    - Converts backslashes to slashes
    - If absolute and repo_root is provided, makes it relative to repo_root
    - Strips leading './' (repeatable) and a single leading '/'
    """
    p = to_posix(path).strip()

    # Trim surrounding quotes (common when copying from tooling)
    if len(p) >= 2 and ((p.startswith('"') and p.endswith('"')) or (p.startswith("'") and p.endswith("'"))):
        p = p[1:-1]

    if repo_root is not None:
        pp = Path(p)
        if pp.is_absolute():
            try:
                p = to_posix(str(pp.relative_to(repo_root)))
            except ValueError:
                # Outside of the repo, keep as given.
                pass

    while p.startswith("./"):
        p = p[2:]
    if p.startswith("/"):
        p = p[1:]

    return str(PurePosixPath(p))


def normalize_paths(paths: Iterable[str], repo_root: Path | None = None) -> list[str]:
    return [normalize_repo_path(p, repo_root=repo_root) for p in paths if p and p.strip()]


def absolute_path(path: str) -> str:
    """Turns a repository path into the normalized absolute form used by owner configs.

    ``foo/bar/`` and ``/foo//bar`` both become ``/foo/bar``; the root is ``/``.
    """
    p = to_posix(path).strip().lstrip("/")
    p = posixpath.normpath("/" + p)
    if p.startswith("//"):
        p = "/" + p.lstrip("/")
    return p


def require_absolute(path: str, name: str = "path") -> str:
    if path is None:
        raise TypeError(name)
    if not to_posix(path).startswith("/"):
        raise ValueError(f"{name} {path} must be absolute")
    return absolute_path(path)


def require_relative(path: str, name: str = "path") -> str:
    if path is None:
        raise TypeError(name)
    if to_posix(path).startswith("/"):
        raise ValueError(f"{name} {path} must be relative")
    return to_posix(path)


def parent_folder(path: str) -> str:
    return posixpath.dirname(require_absolute(path)) or "/"


def ancestor_folders(folder: str) -> list[str]:
    """Returns ``folder`` and all of its parents, nearest first, ending with ``/``."""
    current = require_absolute(folder, "folder")
    out = [current]
    while current != "/":
        current = posixpath.dirname(current)
        out.append(current)
    return out


def relativize(folder: str, path: str) -> str:
    return posixpath.relpath(require_absolute(path), require_absolute(folder, "folder"))


def depth(path: str) -> int:
    """Number of name segments of an absolute path (``/`` has depth 0)."""
    p = require_absolute(path)
    return 0 if p == "/" else p.count("/")


def join_folder(folder: str, path: str) -> str:
    """Resolves ``path`` against ``folder`` unless it is absolute already."""
    p = to_posix(path)
    if p.startswith("/"):
        return absolute_path(p)
    return absolute_path(posixpath.join(require_absolute(folder, "folder"), p))


def full_ref(branch: str) -> str:
    if branch.startswith(REFS_PREFIX):
        return branch
    return REFS_HEADS + branch


def short_ref(ref: str) -> str:
    if ref.startswith(REFS_HEADS):
        return ref[len(REFS_HEADS):]
    return ref


def is_full_ref(branch: str) -> bool:
    return branch.startswith(REFS_PREFIX)
