import subprocess
from pathlib import Path

import pytest

from treeowners.backends import FIND_OWNERS
from treeowners.gitutils import is_git_available
from treeowners.identity import EmailDirectory
from treeowners.resolver import OwnerResolver
from treeowners.storage import InMemoryTreeStorage
from treeowners.store import OwnerConfigStore


@pytest.fixture
def storage():
    return InMemoryTreeStorage()


@pytest.fixture
def store(storage):
    return OwnerConfigStore(storage, FIND_OWNERS.parser, FIND_OWNERS.naming())


@pytest.fixture
def make_resolver(store):
    def make(identities=None, **kwargs):
        return OwnerResolver(store, identities or EmailDirectory(), FIND_OWNERS.matcher, **kwargs)

    return make


class GitRepo:
    def __init__(self, path: Path):
        self.path = path

    def git(self, *args: str) -> str:
        cp = subprocess.run(
            ["git", *args],
            cwd=str(self.path),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=True,
        )
        return cp.stdout

    def commit(self, files: dict[str, str], message: str = "update") -> str:
        for name, content in files.items():
            p = self.path / name
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content, encoding="utf-8")
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_repo(tmp_path):
    if not is_git_available():
        pytest.skip("git not available")
    path = tmp_path / "repo"
    path.mkdir()
    repo = GitRepo(path)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    repo.git("config", "user.name", "Test")
    repo.git("config", "user.email", "test@example.com")
    repo.git("config", "commit.gpgsign", "false")
    return repo
