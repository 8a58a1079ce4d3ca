import pytest

from treeowners.model import (
    Identity,
    ImportDeclaration,
    ImportMode,
    OwnerConfig,
    OwnerConfigKey,
    OwnerResolverResult,
    OwnerRuleSet,
)


def test_key_requires_full_branch_and_absolute_folder():
    with pytest.raises(ValueError):
        OwnerConfigKey("proj", "main", "/")
    with pytest.raises(ValueError):
        OwnerConfigKey("proj", "refs/heads/main", "foo")

    key = OwnerConfigKey.create("proj", "main", "foo/")
    assert key.branch == "refs/heads/main"
    assert key.folder == "/foo"
    assert key.format("OWNERS") == "proj:main:/foo/OWNERS"
    assert key.with_file_name("OWNERS_x").file_path("OWNERS") == "/foo/OWNERS_x"


def test_import_declaration_validation():
    with pytest.raises(ValueError):
        ImportDeclaration(ImportMode.ALL, "/foo/")
    with pytest.raises(ValueError):
        ImportDeclaration(ImportMode.ALL, "/foo/OWNERS", branch="main")

    d = ImportDeclaration.create(ImportMode.ALL, "/foo/OWNERS", branch="stable", project="other")
    assert d.branch == "refs/heads/stable"
    assert d.folder == "/foo"
    assert d.file_name == "OWNERS"
    assert d.with_mode(ImportMode.GLOBAL_RULE_SETS_ONLY).mode is ImportMode.GLOBAL_RULE_SETS_ONLY


def test_import_modes():
    assert ImportMode.ALL.import_ignore_parent_owners
    assert ImportMode.ALL.import_per_file_rule_sets
    assert not ImportMode.GLOBAL_RULE_SETS_ONLY.import_ignore_parent_owners
    assert not ImportMode.GLOBAL_RULE_SETS_ONLY.import_per_file_rule_sets
    assert ImportMode.GLOBAL_RULE_SETS_ONLY.import_global_rule_sets


def test_rule_set_dedups_and_validates():
    rs = OwnerRuleSet(owners=("a@example.com", " a@example.com", "b@example.com"))
    assert rs.owners == ("a@example.com", "b@example.com")
    assert rs.is_global
    assert rs.without_owner("a@example.com").owners == ("b@example.com",)
    with pytest.raises(ValueError):
        OwnerRuleSet(owners=("a@example.com",), ignore_global_and_parent_owners=True)


def test_rule_sets_compare_as_sets():
    a = OwnerRuleSet(("*.md", "*.txt"), ("a@example.com", "b@example.com"))
    b = OwnerRuleSet(("*.txt", "*.md"), ("b@example.com", "a@example.com"))
    assert a == b
    assert hash(a) == hash(b)
    assert b.owners == ("b@example.com", "a@example.com")
    assert a != OwnerRuleSet(("*.md",), ("a@example.com", "b@example.com"))


def test_config_is_empty_and_revision():
    key = OwnerConfigKey.create("proj", "main", "/")
    assert OwnerConfig(key).is_empty
    assert not OwnerConfig(key, ignore_parent_owners=True).is_empty

    config = OwnerConfig(key, rule_sets=(OwnerRuleSet(("*.md",), ("a@example.com",)), OwnerRuleSet(owners=("b@example.com",))))
    assert [rs.owners for rs in config.global_rule_sets()] == [("b@example.com",)]
    assert [rs.owners for rs in config.per_file_rule_sets()] == [("a@example.com",)]

    with_rev = config.with_revision("abc")
    assert with_rev.with_revision("abc") == with_rev
    with pytest.raises(ValueError):
        with_rev.with_revision("def")


def test_result_relevant_definitions():
    assert not OwnerResolverResult("/a.md").has_relevant_definitions()
    assert OwnerResolverResult("/a.md", owned_by_all_users=True).has_relevant_definitions()
    result = OwnerResolverResult("/a.md", owners=(Identity(1, "a@example.com", "A"),))
    assert result.emails() == ["a@example.com"]
    assert result.owners[0].display() == "A <a@example.com>"
