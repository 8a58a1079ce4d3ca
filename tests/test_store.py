import pytest

from treeowners.errors import (
    BranchNotFoundError,
    ConcurrentUpdateError,
    InvalidOwnerConfigError,
    RevisionNotFoundError,
    StorageError,
)
from treeowners.model import ImportDeclaration, ImportMode, OwnerConfigKey, OwnerRuleSet
from treeowners.storage import Signature
from treeowners.store import (
    OwnerConfigUpdate,
    add_to_only_set,
    append,
    clear,
    remove,
    remove_from_only_set,
    set_to,
    with_retry,
)

KEY = OwnerConfigKey.create("proj", "main", "/foo")


def test_load_missing_config(storage, store):
    storage.create_branch("proj", "main", {"/README.md": "hi"})
    assert store.load(KEY) is None
    assert store.load(OwnerConfigKey.create("proj", "other", "/foo")) is None
    assert store.load(OwnerConfigKey.create("nope", "main", "/foo")) is None
    assert store.load(KEY.with_file_name("README.md")) is None


def test_load_sets_revision(storage, store):
    rev = storage.create_branch("proj", "main", {"/foo/OWNERS": "alice@example.com\n"})
    config = store.load(KEY)
    assert config.revision == rev
    assert config.rule_sets == (OwnerRuleSet(owners=("alice@example.com",)),)


def test_load_unknown_revision_raises(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "alice@example.com\n"})
    with pytest.raises(RevisionNotFoundError):
        store.load(KEY, "0" * 40)


def test_load_invalid_config_reports_file_path(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "what is this\n"})
    with pytest.raises(InvalidOwnerConfigError) as e:
        store.load(KEY)
    assert e.value.path == "/foo/OWNERS"
    assert "invalid line" in e.value.message


def test_upsert_creates_config(storage, store):
    storage.create_branch("proj", "main")
    alice = Signature("Alice", "alice@example.com")
    config = store.upsert(
        KEY,
        OwnerConfigUpdate(rule_set_modification=append(OwnerRuleSet(owners=("alice@example.com",)))),
        acting_identity=alice,
    )
    head = storage.log("proj", "main")[0]
    assert config.revision == head.revision
    assert head.message == "Create owner config"
    assert head.author == alice
    assert head.committer == store.server_identity
    assert store.load(KEY) == config


def test_noop_upsert_does_not_commit(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "alice@example.com\n"})
    before = storage.log("proj", "main")
    config = store.upsert(KEY, OwnerConfigUpdate())
    assert storage.log("proj", "main") == before
    assert config == store.load(KEY)

    assert store.upsert(OwnerConfigKey.create("proj", "main", "/bar"), OwnerConfigUpdate()) is None
    assert storage.log("proj", "main") == before


def test_upsert_updates_and_deletes(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "alice@example.com\n"})

    store.upsert(KEY, OwnerConfigUpdate(rule_set_modification=add_to_only_set("bob@example.com")))
    assert storage.log("proj", "main")[0].message == "Update owner config"
    assert store.load(KEY).rule_sets[0].owners == ("alice@example.com", "bob@example.com")

    assert store.upsert(KEY, OwnerConfigUpdate(rule_set_modification=clear)) is None
    assert storage.log("proj", "main")[0].message == "Delete owner config"
    assert store.load(KEY) is None
    assert len(storage.log("proj", "main")) == 3


def test_rule_set_and_import_modifications(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "alice@example.com\ninclude /common/OWNERS\n"})
    md = OwnerRuleSet(("*.md",), ("bob@example.com",))
    config = store.upsert(
        KEY,
        OwnerConfigUpdate(
            rule_set_modification=set_to(md),
            import_modification=remove(ImportDeclaration(ImportMode.ALL, "/common/OWNERS")),
        ),
    )
    assert config.rule_sets == (md,)
    assert config.imports == ()
    assert store.load(KEY).rule_sets == (md,)


def test_only_set_modifications_need_exactly_one_set(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "alice@example.com\nper-file *.md=bob@example.com\n"})
    with pytest.raises(ValueError):
        store.upsert(KEY, OwnerConfigUpdate(rule_set_modification=remove_from_only_set("alice@example.com")))


def test_upsert_into_missing_branch_fails(storage, store):
    storage.create_branch("proj", "main")
    with pytest.raises(BranchNotFoundError):
        store.upsert(OwnerConfigKey.create("proj", "nope", "/"), OwnerConfigUpdate(ignore_parent_owners=True))
    with pytest.raises(BranchNotFoundError):
        store.upsert(OwnerConfigKey.create("nope", "main", "/"), OwnerConfigUpdate(ignore_parent_owners=True))


def test_upsert_rejects_unsupported_file_name(storage, store):
    storage.create_branch("proj", "main")
    with pytest.raises(ValueError):
        store.upsert(KEY.with_file_name("README"), OwnerConfigUpdate(ignore_parent_owners=True))


def test_upsert_retries_after_concurrent_update(storage, store, monkeypatch):
    storage.create_branch("proj", "main")
    with storage.open("proj") as repo:
        real_commit = repo.commit
    attempts = []

    def flaky_commit(*args, **kwargs):
        attempts.append(1)
        if len(attempts) == 1:
            raise ConcurrentUpdateError("branch moved")
        return real_commit(*args, **kwargs)

    monkeypatch.setattr(repo, "commit", flaky_commit)
    config = store.upsert(KEY, OwnerConfigUpdate(ignore_parent_owners=True))
    assert len(attempts) == 2
    assert config.ignore_parent_owners


def test_with_retry():
    calls = []
    sleeps = []

    def fn():
        calls.append(1)
        if len(calls) < 3:
            raise ConcurrentUpdateError("moved")
        return "ok"

    assert with_retry(fn, max_attempts=3, sleep=sleeps.append) == "ok"
    assert sleeps == pytest.approx([0.05, 0.1])


def test_with_retry_gives_up_and_skips_fatal_errors():
    calls = []

    def transient():
        calls.append(1)
        raise ConcurrentUpdateError("moved")

    with pytest.raises(ConcurrentUpdateError):
        with_retry(transient, max_attempts=2, sleep=lambda s: None)
    assert len(calls) == 2

    def fatal():
        calls.append(1)
        raise StorageError("broken")

    calls.clear()
    with pytest.raises(StorageError):
        with_retry(fatal, max_attempts=5, sleep=lambda s: None)
    assert len(calls) == 1


def test_reordering_owners_does_not_commit(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "a@example.com\nb@example.com\n"})
    before = storage.log("proj", "main")
    reordered = OwnerRuleSet(owners=("b@example.com", "a@example.com"))
    config = store.upsert(KEY, OwnerConfigUpdate(rule_set_modification=set_to(reordered)))
    assert storage.log("proj", "main") == before
    assert config == store.load(KEY)


def test_update_formatting_to_current_content_does_not_commit(storage, store):
    storage.create_branch("proj", "main", {"/foo/OWNERS": "a@example.com\nper-file *.md=b@example.com\n"})
    before = storage.log("proj", "main")
    split = (OwnerRuleSet(owners=("a@example.com",)), OwnerRuleSet(("*.md",), ("b@example.com",)))
    with_empty_set = (OwnerRuleSet(owners=("a@example.com",)), OwnerRuleSet(), split[1])
    config = store.upsert(KEY, OwnerConfigUpdate(rule_set_modification=set_to(*with_empty_set)))
    assert storage.log("proj", "main") == before
    assert config.rule_sets == split
