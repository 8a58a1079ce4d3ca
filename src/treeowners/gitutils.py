from __future__ import annotations

import os
import subprocess
import tempfile
from pathlib import Path
from typing import Mapping, Sequence

from .errors import GitError


def _run_git(
    repo_root: Path,
    args: Sequence[str],
    *,
    input: str | bytes | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    binary = isinstance(input, bytes)
    try:
        cp = subprocess.run(
            ["git", *args],
            cwd=str(repo_root),
            input=input,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=not binary,
            env={**os.environ, **env} if env else None,
            check=True,
        )
        return cp.stdout.decode("utf-8") if binary else cp.stdout
    except FileNotFoundError as e:
        raise GitError("git not found on PATH") from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode("utf-8", "replace") if isinstance(e.stderr, bytes) else e.stderr
        stdout = e.stdout.decode("utf-8", "replace") if isinstance(e.stdout, bytes) else e.stdout
        msg = (stderr or "").strip() or (stdout or "").strip() or str(e)
        raise GitError(f"git {' '.join(args)} failed: {msg}") from e


def find_repo_root(cwd: Path | None = None) -> Path:
    cwd = cwd or Path.cwd()
    out = _run_git(cwd, ["rev-parse", "--show-toplevel"]).strip()
    if not out:
        raise GitError("Not a git repository (or any of the parent directories)")
    return Path(out)


def git_diff_name_only(repo_root: Path, rev_range: str) -> list[str]:
    # Include renames and deletions; callers can decide how to treat missing files.
    out = _run_git(repo_root, ["diff", "--name-only", rev_range])
    files = [line.strip() for line in out.splitlines() if line.strip()]
    return files


def git_resolve_commit(repo_root: Path, rev: str) -> str | None:
    """Commit id of ``rev``, None if it does not name a commit."""
    try:
        cp = subprocess.run(
            ["git", "rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"],
            cwd=str(repo_root),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except FileNotFoundError as e:
        raise GitError("git not found on PATH") from e
    if cp.returncode != 0:
        return None
    return cp.stdout.strip() or None


def git_current_branch(repo_root: Path) -> str:
    """Full ref name of the checked out branch."""
    out = _run_git(repo_root, ["symbolic-ref", "-q", "HEAD"]).strip()
    if not out:
        raise GitError("HEAD is detached, pass a branch explicitly")
    return out


def git_ls_tree(repo_root: Path, rev: str) -> list[str]:
    out = _run_git(repo_root, ["ls-tree", "-r", "-z", "--name-only", rev])
    return [p for p in out.split("\0") if p]


def git_hash_object(repo_root: Path, data: bytes) -> str:
    return _run_git(repo_root, ["hash-object", "-w", "--stdin"], input=data).strip()


def git_commit_changes(
    repo_root: Path,
    parent: str,
    changes: Mapping[str, bytes | None],
    *,
    author: tuple[str, str],
    committer: tuple[str, str],
    message: str,
) -> str:
    """Writes a commit on top of ``parent`` with ``changes`` applied (None deletes a file).

    Uses a throw-away index, the working tree is not touched. Returns the new commit id;
    no ref is updated.
    """
    with tempfile.TemporaryDirectory(prefix="treeowners-") as tmp:
        env = {"GIT_INDEX_FILE": str(Path(tmp) / "index")}
        _run_git(repo_root, ["read-tree", parent], env=env)
        index_info = []
        for path, content in sorted(changes.items()):
            if content is None:
                index_info.append(f"0 {'0' * 40}\t{path}")
            else:
                index_info.append(f"100644 {git_hash_object(repo_root, content)}\t{path}")
        if index_info:
            _run_git(repo_root, ["update-index", "--index-info"], input="\n".join(index_info) + "\n", env=env)
        tree = _run_git(repo_root, ["write-tree"], env=env).strip()

    ident_env = {
        "GIT_AUTHOR_NAME": author[0],
        "GIT_AUTHOR_EMAIL": author[1],
        "GIT_COMMITTER_NAME": committer[0],
        "GIT_COMMITTER_EMAIL": committer[1],
    }
    return _run_git(repo_root, ["commit-tree", tree, "-p", parent, "-m", message], env=ident_env).strip()


def git_update_ref(repo_root: Path, ref: str, new: str, old: str) -> None:
    """Moves ``ref`` to ``new`` if it still points to ``old``."""
    _run_git(repo_root, ["update-ref", ref, new, old])


class BlobReader:
    """Reads blobs through one long-running ``git cat-file --batch`` process."""

    def __init__(self, repo_root: Path):
        self.repo_root = repo_root
        try:
            self._proc = subprocess.Popen(
                ["git", "cat-file", "--batch"],
                cwd=str(repo_root),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise GitError("git not found on PATH") from e

    def read(self, rev: str, path: str) -> bytes | None:
        assert self._proc.stdin is not None and self._proc.stdout is not None
        self._proc.stdin.write(f"{rev}:{path}\n".encode("utf-8"))
        self._proc.stdin.flush()
        header = self._proc.stdout.readline().decode("utf-8").rstrip("\n")
        if not header:
            raise GitError("git cat-file --batch terminated unexpectedly")
        parts = header.split(" ")
        if parts[-1] in ("missing", "ambiguous"):
            return None
        _, kind, size = parts
        data = self._proc.stdout.read(int(size))
        self._proc.stdout.read(1)
        if kind != "blob":
            return None
        return data

    def close(self) -> None:
        if self._proc.stdin is not None:
            self._proc.stdin.close()
        self._proc.wait()
        if self._proc.stdout is not None:
            self._proc.stdout.close()

    def __enter__(self) -> "BlobReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def is_git_available() -> bool:
    try:
        subprocess.run(["git", "--version"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True)
        return True
    except (OSError, subprocess.CalledProcessError):
        return False
