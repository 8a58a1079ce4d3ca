import pytest

from treeowners.backends import FIND_OWNERS
from treeowners.errors import BranchNotFoundError, RevisionNotFoundError
from treeowners.identity import EmailDirectory
from treeowners.model import OwnerConfigKey
from treeowners.resolver import OwnerResolver
from treeowners.storage import GitTreeStorage
from treeowners.store import OwnerConfigStore, OwnerConfigUpdate, add_to_only_set, clear

KEY = OwnerConfigKey.create("proj", "main", "/foo")


def _store(git_repo):
    return OwnerConfigStore(GitTreeStorage({"proj": git_repo.path}), FIND_OWNERS.parser, FIND_OWNERS.naming())


def test_load_from_git(git_repo):
    rev = git_repo.commit({"foo/OWNERS": "alice@example.com\n", "README.md": "hi\n"})
    store = _store(git_repo)
    config = store.load(KEY)
    assert config.revision == rev
    assert config.rule_sets[0].owners == ("alice@example.com",)
    assert store.load(OwnerConfigKey.create("proj", "main", "/")) is None
    assert store.load(OwnerConfigKey.create("proj", "nope", "/foo")) is None
    with pytest.raises(RevisionNotFoundError):
        store.load(KEY, "0" * 40)


def test_upsert_writes_commits_without_touching_the_worktree(git_repo):
    git_repo.commit({"foo/OWNERS": "alice@example.com\n"})
    store = _store(git_repo)

    updated = store.upsert(KEY, OwnerConfigUpdate(rule_set_modification=add_to_only_set("bob@example.com")))
    assert updated.revision == git_repo.git("rev-parse", "refs/heads/main").strip()
    assert git_repo.git("log", "-1", "--format=%s").strip() == "Update owner config"
    assert git_repo.git("show", "main:foo/OWNERS") == "alice@example.com\nbob@example.com\n"
    assert (git_repo.path / "foo" / "OWNERS").read_text(encoding="utf-8") == "alice@example.com\n"

    assert store.upsert(KEY, OwnerConfigUpdate(rule_set_modification=clear)) is None
    assert git_repo.git("log", "-1", "--format=%s").strip() == "Delete owner config"
    assert store.load(KEY) is None

    with pytest.raises(BranchNotFoundError):
        store.upsert(OwnerConfigKey.create("proj", "nope", "/"), OwnerConfigUpdate(ignore_parent_owners=True))


def test_resolve_owners_from_git(git_repo):
    git_repo.commit({"OWNERS": "root@example.com\n", "foo/OWNERS": "set noparent\nfoo@example.com\n"})
    resolver = OwnerResolver(_store(git_repo), EmailDirectory(), FIND_OWNERS.matcher)
    assert resolver.resolve("proj", "main", "/foo/a.c").emails() == ["foo@example.com"]
    assert resolver.resolve("proj", "main", "/a.c").emails() == ["root@example.com"]
