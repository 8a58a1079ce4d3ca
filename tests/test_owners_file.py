import pytest

from treeowners.errors import InvalidOwnerConfigError
from treeowners.model import ImportDeclaration, ImportMode, OwnerConfig, OwnerConfigKey, OwnerRuleSet
from treeowners.owners_file import FindOwnersParser, format_import, parse_import, split_globs

KEY = OwnerConfigKey.create("proj", "main", "/foo")
PARSER = FindOwnersParser()


def test_parse_all_line_kinds():
    config = PARSER.parse(
        KEY,
        """
# comment
set noparent
include other:stable:/common/OWNERS
file: /docs/OWNERS
alice@example.com
bob@example.com  # trailing comment
per-file *.md,docs/**=carol@example.com, dave@example.com
per-file BUILD=set noparent
per-file *.proto=file: /api/OWNERS
""",
        "rev1",
    )
    assert config.revision == "rev1"
    assert config.ignore_parent_owners
    assert config.imports == (
        ImportDeclaration.create(ImportMode.ALL, "/common/OWNERS", branch="stable", project="other"),
        ImportDeclaration(ImportMode.GLOBAL_RULE_SETS_ONLY, "/docs/OWNERS"),
    )
    assert config.rule_sets == (
        OwnerRuleSet(owners=("alice@example.com", "bob@example.com")),
        OwnerRuleSet(("*.md", "docs/**"), ("carol@example.com", "dave@example.com")),
        OwnerRuleSet(("BUILD",), ignore_global_and_parent_owners=True),
        OwnerRuleSet(("*.proto",), imports=(ImportDeclaration(ImportMode.GLOBAL_RULE_SETS_ONLY, "/api/OWNERS"),)),
    )


def test_wildcard_owner():
    config = PARSER.parse(KEY, "*\n")
    assert config.rule_sets == (OwnerRuleSet(owners=("*",)),)


def test_invalid_lines_are_reported_together():
    with pytest.raises(InvalidOwnerConfigError) as e:
        PARSER.parse(KEY, "alice@example.com\nnot an owner\nper-file *.md=include /x/OWNERS\n")
    assert "invalid line: not an owner" in e.value.message
    assert "'include' is not supported in per-file lines" in e.value.message


def test_split_globs_respects_groups():
    assert split_globs("{a,b}.md,c") == ["{a,b}.md", "c"]
    assert split_globs("[,x].md,d") == ["[,x].md", "d"]


def test_parse_import():
    assert parse_import("alice@example.com") is None
    assert parse_import("include ../OWNERS") == ImportDeclaration(ImportMode.ALL, "../OWNERS")
    assert parse_import("file: other:/OWNERS") == ImportDeclaration(
        ImportMode.GLOBAL_RULE_SETS_ONLY, "/OWNERS", project="other"
    )


def test_format_is_canonical():
    config = OwnerConfig(
        KEY,
        ignore_parent_owners=True,
        rule_sets=(
            OwnerRuleSet(owners=("b@example.com", "a@example.com")),
            OwnerRuleSet(("*.md",), ("c@example.com",)),
        ),
        imports=(ImportDeclaration.create(ImportMode.ALL, "/common/OWNERS", branch="stable", project="other"),),
    )
    assert PARSER.format(config) == (
        "set noparent\n"
        "include other:stable:/common/OWNERS\n"
        "a@example.com\n"
        "b@example.com\n"
        "per-file *.md=c@example.com\n"
    )


def test_round_trip():
    config = OwnerConfig(
        KEY,
        ignore_parent_owners=True,
        rule_sets=(
            OwnerRuleSet(owners=("a@example.com", "b@example.com")),
            OwnerRuleSet(("*.md", "docs/**"), ("c@example.com",)),
            OwnerRuleSet(("BUILD",), ignore_global_and_parent_owners=True),
            OwnerRuleSet(("*.proto",), imports=(ImportDeclaration(ImportMode.GLOBAL_RULE_SETS_ONLY, "/api/OWNERS"),)),
        ),
        imports=(ImportDeclaration(ImportMode.ALL, "/common/OWNERS"),),
    )
    assert PARSER.parse(KEY, PARSER.format(config)) == config


def test_round_trip_of_unsorted_owners_and_globs():
    config = PARSER.parse(KEY, "b@example.com\na@example.com\nper-file z.md,a.md=y@example.com,x@example.com\n")
    assert config.rule_sets[0].owners == ("b@example.com", "a@example.com")
    assert PARSER.parse(KEY, PARSER.format(config)) == config


def test_format_merges_global_rule_sets_and_splits_per_file_parts():
    config = OwnerConfig(
        KEY,
        rule_sets=(
            OwnerRuleSet(owners=("a@example.com",)),
            OwnerRuleSet(owners=("b@example.com",)),
            OwnerRuleSet(("*.md",), ("c@example.com",), ignore_global_and_parent_owners=True),
        ),
    )
    assert PARSER.parse(KEY, PARSER.format(config)).rule_sets == (
        OwnerRuleSet(owners=("a@example.com", "b@example.com")),
        OwnerRuleSet(("*.md",), ignore_global_and_parent_owners=True),
        OwnerRuleSet(("*.md",), ("c@example.com",)),
    )


def test_empty_config_formats_to_empty_text():
    assert PARSER.format(OwnerConfig(KEY)) == ""
    assert PARSER.parse(KEY, "") == OwnerConfig(KEY)


def test_branch_without_project_cannot_be_formatted():
    with pytest.raises(ValueError):
        format_import(ImportDeclaration.create(ImportMode.ALL, "/x/OWNERS", branch="dev"))
